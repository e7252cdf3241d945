from fastapi.testclient import TestClient

from main import create_app
from services.metrics import counter_value, gauge_value, increment_dispatch_attempt, render_prometheus


def test_render_prometheus_format():
    increment_dispatch_attempt("SAFARICOM", "success")
    increment_dispatch_attempt("SAFARICOM", "success")

    text = render_prometheus()
    assert "# TYPE airtime_dispatch_total counter" in text
    assert 'airtime_dispatch_total{provider="SAFARICOM",result="success"} 2' in text


def test_metrics_endpoint_counts_requests():
    client = TestClient(create_app())
    client.get("/health")

    r = client.get("/metrics")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/plain")
    assert 'http_requests_total{route="/health",status="200"} 1' in r.text
    assert counter_value("http_requests_total", {"route": "/health", "status": "200"}) == 1


def test_ledger_publishes_pool_balance_gauge():
    from app.floats.ledger import FloatLedger
    from tests.fakes import FakeFloatStore

    ledger = FloatLedger(FakeFloatStore({"SAF_FLOAT": 10_000}), sleep=lambda _s: None)
    ledger.debit("SAF_FLOAT", 2_500, transaction_id="QK1")

    assert gauge_value("float_balance_cents", {"pool": "SAF_FLOAT"}) == 7_500
    assert 'float_balance_cents{pool="SAF_FLOAT"} 7500' in render_prometheus()
    assert counter_value("float_adjustments_total", {"kind": "DEBIT", "result": "ok"}) == 1


def test_http_series_use_route_template(client):
    client.get("/v1/transactions/QKA1")
    client.get("/v1/transactions/QKB2")
    client.get("/no/such/path")

    series = [
        line
        for line in render_prometheus().splitlines()
        if line.startswith("http_requests_total{") and 'status="404"' in line
    ]
    assert sorted(series) == [
        'http_requests_total{route="/v1/transactions/{transaction_id}",status="404"} 2',
        'http_requests_total{route="unmatched",status="404"} 1',
    ]
