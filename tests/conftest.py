# tests/conftest.py
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

import services.metrics as metrics
from app.dispatch import factory as dispatch_factory
from app.dispatch.orchestrator import DispatchOrchestrator
from app.floats.ledger import FloatLedger
from app.payments.model import InboundPayment
from app.providers.airtime.factory import reset_provider_cache
from app.providers.airtime.gateway import AirtimeGateway
from app.providers.mock import MockAirtimeProvider
from main import create_app
from tests.fakes import POOLS, PROVIDERS, SAFARICOM_NUMBER, FakeErrorLog, FakeFloatStore, FakeRecordStore


@pytest.fixture(autouse=True)
def _reset_process_state():
    metrics.reset()
    reset_provider_cache()
    dispatch_factory.reset()
    yield
    reset_provider_cache()
    dispatch_factory.reset()


# ---------------------------
# Stores + components
# ---------------------------

@pytest.fixture
def float_store() -> FakeFloatStore:
    # KES 1000 in each pool
    return FakeFloatStore({"SAF_FLOAT": 100_000, "AT_FLOAT": 100_000})


@pytest.fixture
def ledger(float_store) -> FloatLedger:
    return FloatLedger(float_store, known_pools=set(POOLS.values()), sleep=lambda _s: None)


@pytest.fixture
def records() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture
def error_log() -> FakeErrorLog:
    return FakeErrorLog()


@pytest.fixture
def safaricom() -> MockAirtimeProvider:
    return MockAirtimeProvider(name="SAFARICOM")


@pytest.fixture
def africastalking() -> MockAirtimeProvider:
    return MockAirtimeProvider(name="AFRICASTALKING")


@pytest.fixture
def gateway(safaricom, africastalking) -> AirtimeGateway:
    return AirtimeGateway({"SAFARICOM": safaricom, "AFRICASTALKING": africastalking}, PROVIDERS)


@pytest.fixture
def orchestrator(records, ledger, gateway, error_log) -> DispatchOrchestrator:
    return DispatchOrchestrator(records=records, ledger=ledger, gateway=gateway, errors=error_log, pools=POOLS)


@pytest.fixture
def make_payment():
    def _make(transaction_id: str = "QGH7XK2P1A", amount_cents: int = 5_000, topup_number=SAFARICOM_NUMBER):
        return InboundPayment(
            transaction_id=transaction_id,
            amount_cents=amount_cents,
            currency="KES",
            payer_msisdn="254722000111",
            payer_name="Jane W Doe",
            topup_number=topup_number,
            raw_callback={"TransID": transaction_id},
        )

    return _make


# ---------------------------
# HTTP client
# ---------------------------

@pytest.fixture
def app(orchestrator, ledger, records, error_log):
    app = create_app()
    app.dependency_overrides[dispatch_factory.get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[dispatch_factory.get_ledger] = lambda: ledger
    app.dependency_overrides[dispatch_factory.get_record_store] = lambda: records
    app.dependency_overrides[dispatch_factory.get_error_log] = lambda: error_log
    return app


@pytest.fixture
def client(app) -> TestClient:
    # Needed so tests can assert 500s instead of pytest re-raising server exceptions
    return TestClient(app, raise_server_exceptions=False)
