# app/providers/airtime/config.py
from __future__ import annotations

from dataclasses import dataclass

from settings import settings


def airtime_mode() -> str:
    return (settings.AIRTIME_MODE or "sandbox").strip().lower()


def is_strict_startup_validation() -> bool:
    return bool(settings.AIRTIME_STRICT_STARTUP_VALIDATION)


def use_mock_providers() -> bool:
    return bool(settings.AIRTIME_USE_MOCK)


def http_timeout_s() -> float:
    return float(getattr(settings, "AIRTIME_HTTP_TIMEOUT_S", 20.0))


@dataclass(frozen=True)
class SafaricomConfig:
    mode: str  # "sandbox" | "real"
    base_url: str
    consumer_key: str
    consumer_secret: str
    sender_msisdn: str
    service_pin: str
    token_path: str
    recharge_path: str
    token_ttl_s: int

    @property
    def token_url(self) -> str:
        return f"{self.base_url}{self.token_path}"

    @property
    def recharge_url(self) -> str:
        return f"{self.base_url}{self.recharge_path}"


def safaricom_config() -> SafaricomConfig:
    mode = airtime_mode()
    if mode == "real":
        base = settings.SAFARICOM_REAL_BASE_URL
        key = settings.SAFARICOM_REAL_CONSUMER_KEY
        secret = settings.SAFARICOM_REAL_CONSUMER_SECRET
    else:
        base = settings.SAFARICOM_SANDBOX_BASE_URL
        key = settings.SAFARICOM_SANDBOX_CONSUMER_KEY
        secret = settings.SAFARICOM_SANDBOX_CONSUMER_SECRET

    return SafaricomConfig(
        mode=mode,
        base_url=(base or "").strip().rstrip("/"),
        consumer_key=(key or "").strip(),
        consumer_secret=(secret or "").strip(),
        sender_msisdn=(settings.SAFARICOM_SENDER_MSISDN or "").strip(),
        service_pin=(settings.SAFARICOM_SERVICE_PIN or "").strip(),
        token_path=(settings.SAFARICOM_TOKEN_PATH or "").strip(),
        recharge_path=(settings.SAFARICOM_RECHARGE_PATH or "").strip(),
        token_ttl_s=int(settings.SAFARICOM_TOKEN_TTL_S or 3600),
    )


@dataclass(frozen=True)
class AfricasTalkingConfig:
    mode: str
    base_url: str
    username: str
    api_key: str
    currency: str

    @property
    def send_url(self) -> str:
        return f"{self.base_url}/version1/airtime/send"


def africastalking_config() -> AfricasTalkingConfig:
    mode = airtime_mode()
    base = settings.AT_REAL_BASE_URL if mode == "real" else settings.AT_SANDBOX_BASE_URL
    return AfricasTalkingConfig(
        mode=mode,
        base_url=(base or "").strip().rstrip("/"),
        username=(settings.AT_USERNAME or "").strip(),
        api_key=(settings.AT_API_KEY or "").strip(),
        currency=(settings.C2B_CURRENCY or "KES").strip().upper(),
    )
