# app/providers/airtime/factory.py
from __future__ import annotations

import threading
from typing import Any, Dict

from app.carriers.routing import carrier_providers
from app.providers.airtime.config import use_mock_providers
from app.providers.airtime.gateway import AirtimeGateway

_PROVIDER_CACHE: Dict[str, Any] = {}
_CACHE_LOCK = threading.Lock()

_ALIASES = {
    "SAFARICOM": "SAFARICOM",
    "AFRICASTALKING": "AFRICASTALKING",
    "AFRICAS_TALKING": "AFRICASTALKING",
    "AT": "AFRICASTALKING",
}


def _canonical(name: str) -> str:
    key = (name or "").strip().upper().replace("-", "_").replace(" ", "_").replace("'", "")
    return _ALIASES.get(key, key)


def _build(key: str):
    if use_mock_providers():
        from app.providers.mock import MockAirtimeProvider
        return MockAirtimeProvider(name=key)

    if key == "SAFARICOM":
        from app.providers.airtime.safaricom import SafaricomAirtimeProvider
        return SafaricomAirtimeProvider()

    if key == "AFRICASTALKING":
        from app.providers.airtime.africastalking import AfricasTalkingAirtimeProvider
        return AfricasTalkingAirtimeProvider()

    return None


def get_provider(name: str):
    """
    One instance per provider for the process; concurrent first calls share it
    (the Safaricom instance owns the only token cache).
    """
    key = _canonical(name)
    if not key:
        return None

    provider = _PROVIDER_CACHE.get(key)
    if provider is not None:
        return provider

    with _CACHE_LOCK:
        provider = _PROVIDER_CACHE.get(key)
        if provider is None:
            provider = _build(key)
            if provider is not None:
                _PROVIDER_CACHE[key] = provider
    return provider


def reset_provider_cache() -> None:
    with _CACHE_LOCK:
        _PROVIDER_CACHE.clear()


def build_gateway() -> AirtimeGateway:
    mapping = carrier_providers()
    providers = {}
    for name in sorted(set(mapping.values())):
        provider = get_provider(name)
        if provider is not None:
            providers[name] = provider
    return AirtimeGateway(providers, mapping)
