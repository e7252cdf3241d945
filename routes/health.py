# routes/health.py
from __future__ import annotations

import logging
import os

from fastapi import APIRouter

from app.carriers.routing import carrier_pools, carrier_providers
from db import get_conn
from settings import settings

logger = logging.getLogger("airtime.health")

router = APIRouter(tags=["health"])

MIGRATION_REVISION = "0001_airtime_baseline"


def _app_version() -> str:
    return os.getenv("APP_VERSION", "1.0.0")


def _probe_db() -> tuple[bool, str | None, str | None]:
    """
    (db_ok, db_error, applied alembic revision). A reachable database with no
    alembic_version table reports revision None.
    """
    try:
        with get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT to_regclass('public.alembic_version')")
                if not cur.fetchone()[0]:
                    return True, None, None
                cur.execute("SELECT version_num FROM alembic_version LIMIT 1")
                row = cur.fetchone()
                return True, None, (row[0] if row else None)
    except Exception as exc:
        logger.warning("health db probe failed err=%s", type(exc).__name__)
        return False, f"{type(exc).__name__}: {exc}", None


def _routing_gaps() -> list[str]:
    pools = carrier_pools()
    providers = carrier_providers()
    return sorted(set(providers) - set(pools))


@router.get("/healthz")
def healthz():
    db_ok, db_error, _revision = _probe_db()
    return {"ok": True, "version": _app_version(), "db_ok": db_ok, "db_error": db_error}


@router.get("/health")
def health():
    return {
        "ok": True,
        "env": settings.ENV,
        "airtime_mode": settings.AIRTIME_MODE,
        "mock_providers": bool(settings.AIRTIME_USE_MOCK),
        "carrier_providers": carrier_providers(),
    }


@router.get("/readyz")
def readyz():
    db_ok, db_error, revision = _probe_db()
    migrations_ok = revision == MIGRATION_REVISION
    unrouted = _routing_gaps()
    return {
        "ready": bool(db_ok and migrations_ok and not unrouted),
        "version": _app_version(),
        "db_ok": db_ok,
        "db_error": db_error,
        "migrations_ok": migrations_ok,
        "migration_revision": MIGRATION_REVISION,
        "applied_revision": revision,
        "carriers_without_pool": unrouted,
    }
