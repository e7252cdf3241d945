# app/carriers/routing.py
from __future__ import annotations

from settings import settings


def _normalize_key(value: str) -> str:
    return (value or "").strip().upper().replace("-", "_").replace(" ", "_")


def parse_mapping(raw: str | None) -> dict[str, str]:
    """
    "SAFARICOM:SAF_FLOAT, AIRTEL:AT_FLOAT" -> {"SAFARICOM": "SAF_FLOAT", "AIRTEL": "AT_FLOAT"}

    Entries without a colon or with an empty side are skipped.
    """
    out: dict[str, str] = {}
    for item in (raw or "").split(","):
        if ":" not in item:
            continue
        key, value = item.split(":", 1)
        key = _normalize_key(key)
        value = value.strip()
        if key and value:
            out[key] = value
    return out


def carrier_pools() -> dict[str, str]:
    pools = parse_mapping(settings.CARRIER_POOLS)
    return {carrier: pool.upper() for carrier, pool in pools.items()}


def carrier_providers() -> dict[str, str]:
    providers = parse_mapping(settings.CARRIER_PROVIDERS)
    return {carrier: _normalize_key(p) for carrier, p in providers.items()}


def known_pools() -> set[str]:
    return set(carrier_pools().values())
