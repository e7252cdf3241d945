from __future__ import annotations

from fastapi.testclient import TestClient

import routes.health as health_routes
from main import create_app


class _BrokenConn:
    def __enter__(self):
        raise RuntimeError("db down")

    def __exit__(self, exc_type, exc, tb):
        return False


def test_health_reports_mode_and_routing():
    client = TestClient(create_app())
    r = client.get("/health")
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["ok"] is True
    assert body["airtime_mode"] == "sandbox"
    assert body["carrier_providers"]["SAFARICOM"] == "SAFARICOM"


def test_healthz_and_readyz_report_db_failure(monkeypatch):
    monkeypatch.setattr(health_routes, "get_conn", lambda: _BrokenConn())
    client = TestClient(create_app())

    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json()["db_ok"] is False
    assert "db down" in r.json()["db_error"]

    r = client.get("/readyz")
    assert r.status_code == 200
    body = r.json()
    assert body["ready"] is False
    assert body["migrations_ok"] is False
    assert body["migration_revision"] == "0001_airtime_baseline"


class _RevisionCursor:
    def __init__(self, revision):
        self.revision = revision
        self._last = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, sql, params=None):
        self._last = sql

    def fetchone(self):
        if "to_regclass" in self._last:
            return ("alembic_version",)
        return (self.revision,)


class _RevisionConn:
    def __init__(self, revision):
        self.revision = revision

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def cursor(self):
        return _RevisionCursor(self.revision)


def test_readyz_requires_current_revision(monkeypatch):
    client = TestClient(create_app())

    monkeypatch.setattr(health_routes, "get_conn", lambda: _RevisionConn("0001_airtime_baseline"))
    body = client.get("/readyz").json()
    assert body["ready"] is True
    assert body["applied_revision"] == "0001_airtime_baseline"

    monkeypatch.setattr(health_routes, "get_conn", lambda: _RevisionConn("0000_old"))
    body = client.get("/readyz").json()
    assert body["ready"] is False
    assert body["db_ok"] is True
    assert body["migrations_ok"] is False
