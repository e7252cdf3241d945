# app/providers/airtime/validate.py
from __future__ import annotations

import logging

from app.carriers.routing import carrier_pools, carrier_providers
from app.providers.airtime.config import (
    africastalking_config,
    airtime_mode,
    is_strict_startup_validation,
    safaricom_config,
    use_mock_providers,
)

logger = logging.getLogger("airtime.startup")

ALLOWED_PROVIDERS = {"SAFARICOM", "AFRICASTALKING"}


def _sorted_csv(items) -> str:
    return ", ".join(sorted(set(items)))


def _required_for(provider: str) -> list[str]:
    missing: list[str] = []
    if provider == "SAFARICOM":
        cfg = safaricom_config()
        prefix = "SAFARICOM_REAL" if cfg.mode == "real" else "SAFARICOM_SANDBOX"
        for name, value in (
            (f"{prefix}_BASE_URL", cfg.base_url),
            (f"{prefix}_CONSUMER_KEY", cfg.consumer_key),
            (f"{prefix}_CONSUMER_SECRET", cfg.consumer_secret),
            ("SAFARICOM_SENDER_MSISDN", cfg.sender_msisdn),
            ("SAFARICOM_SERVICE_PIN", cfg.service_pin),
        ):
            if not value:
                missing.append(name)
    elif provider == "AFRICASTALKING":
        cfg = africastalking_config()
        prefix = "AT_REAL" if cfg.mode == "real" else "AT_SANDBOX"
        for name, value in (
            (f"{prefix}_BASE_URL", cfg.base_url),
            ("AT_USERNAME", cfg.username),
            ("AT_API_KEY", cfg.api_key),
        ):
            if not value:
                missing.append(name)
    return missing


def validate_airtime_startup() -> None:
    mode = airtime_mode()
    strict = is_strict_startup_validation()
    providers = carrier_providers()
    enabled = sorted(set(providers.values()))

    logger.info(
        "airtime startup check: mode=%s strict=%s mock=%s providers=%s pools=%s",
        mode,
        strict,
        use_mock_providers(),
        ",".join(enabled) if enabled else "<none>",
        ",".join(sorted(set(carrier_pools().values()))) or "<none>",
    )

    if mode not in ("sandbox", "real"):
        raise RuntimeError(
            "Airtime startup validation failed. "
            f"Invalid AIRTIME_MODE={mode!r}. Allowed: sandbox, real"
        )

    if use_mock_providers() or (mode == "sandbox" and not strict):
        return

    if not enabled:
        raise RuntimeError("Airtime startup validation failed. CARRIER_PROVIDERS is empty.")

    unknown = sorted(set(enabled) - ALLOWED_PROVIDERS)
    if unknown:
        raise RuntimeError(
            "Airtime startup validation failed. "
            f"Unknown providers in CARRIER_PROVIDERS: {_sorted_csv(unknown)}. "
            f"Allowed: {_sorted_csv(ALLOWED_PROVIDERS)}"
        )

    missing: list[str] = []
    for provider in enabled:
        missing.extend(_required_for(provider))
    if missing:
        raise RuntimeError(
            "Airtime startup validation failed. Missing required settings: " + _sorted_csv(missing)
        )
