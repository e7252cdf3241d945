from __future__ import annotations

import threading
import time

import app.providers.airtime.factory as airtime_factory
from app.dispatch import factory as dispatch_factory
from app.providers.airtime.africastalking import AfricasTalkingAirtimeProvider
from app.providers.airtime.factory import build_gateway, get_provider
from app.providers.airtime.safaricom import SafaricomAirtimeProvider
from app.providers.mock import MockAirtimeProvider
from settings import settings


def test_real_providers_by_name(monkeypatch):
    monkeypatch.setattr(settings, "AIRTIME_USE_MOCK", False)

    assert isinstance(get_provider("safaricom"), SafaricomAirtimeProvider)
    assert isinstance(get_provider("africas-talking"), AfricasTalkingAirtimeProvider)
    assert get_provider("SAFARICOM") is get_provider("safaricom")
    assert get_provider("ACME") is None
    assert get_provider("") is None


def test_mock_mode_returns_mock_providers(monkeypatch):
    monkeypatch.setattr(settings, "AIRTIME_USE_MOCK", True)

    provider = get_provider("SAFARICOM")
    assert isinstance(provider, MockAirtimeProvider)
    assert provider.name == "SAFARICOM"


def test_build_gateway_follows_carrier_mapping(monkeypatch):
    monkeypatch.setattr(settings, "AIRTIME_USE_MOCK", True)
    monkeypatch.setattr(settings, "CARRIER_PROVIDERS", "SAFARICOM:SAFARICOM,AIRTEL:AFRICASTALKING")

    gateway = build_gateway()

    assert gateway.provider_for("airtel") == "AFRICASTALKING"
    assert gateway.provider_for("TELKOM") is None
    result = gateway.dispatch("AIRTEL", "0733123456", 5_000, reference="s1")
    assert result.ok
    assert result.provider == "AFRICASTALKING"


def _race(fn, workers=8):
    barrier = threading.Barrier(workers)
    results = []

    def run():
        barrier.wait()
        results.append(fn())

    threads = [threading.Thread(target=run) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def test_concurrent_first_calls_share_one_provider(monkeypatch):
    builds = []

    def slow_build(key):
        builds.append(key)
        time.sleep(0.05)
        return MockAirtimeProvider(name=key)

    monkeypatch.setattr(airtime_factory, "_build", slow_build)

    results = _race(lambda: get_provider("safaricom"))

    assert builds == ["SAFARICOM"]
    assert all(r is results[0] for r in results)


def test_aliases_resolve_to_one_instance(monkeypatch):
    monkeypatch.setattr(settings, "AIRTIME_USE_MOCK", False)
    assert get_provider("AT") is get_provider("africas talking") is get_provider("AFRICASTALKING")


def test_concurrent_first_confirmations_build_one_orchestrator(monkeypatch):
    gateways = []

    def slow_gateway():
        time.sleep(0.05)
        gateways.append(object())
        return gateways[-1]

    monkeypatch.setattr(dispatch_factory, "build_gateway", slow_gateway)

    results = _race(dispatch_factory.get_orchestrator)

    assert len(gateways) == 1
    assert all(r is results[0] for r in results)
    assert results[0].ledger is dispatch_factory.get_ledger()
