# settings.py
from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # -----------------------
    # Runtime
    # -----------------------
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    # -----------------------
    # DB
    # -----------------------
    DATABASE_URL: str = Field(default="")
    DB_POOL_MIN: int = Field(default=1, ge=1)
    DB_POOL_MAX: int = Field(default=10, ge=1)
    DB_CONNECT_TIMEOUT_S: int = 5
    DB_STATEMENT_TIMEOUT_MS: int = 5000

    # -----------------------
    # C2B (payment callbacks)
    # -----------------------
    C2B_MIN_AMOUNT_CENTS: int = Field(default=1000, ge=0)
    C2B_CURRENCY: str = "KES"

    # -----------------------
    # Carrier routing
    # -----------------------
    # carrier -> float pool (several carriers may share one pool)
    CARRIER_POOLS: str = "SAFARICOM:SAF_FLOAT,AIRTEL:AT_FLOAT,TELKOM:AT_FLOAT,EQUITEL:AT_FLOAT"
    # carrier -> dispatch provider (independent of pool grouping)
    CARRIER_PROVIDERS: str = (
        "SAFARICOM:SAFARICOM,AIRTEL:AFRICASTALKING,TELKOM:AFRICASTALKING,EQUITEL:AFRICASTALKING"
    )

    # -----------------------
    # Float ledger
    # -----------------------
    FLOAT_LEDGER_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    FLOAT_LEDGER_RETRY_BACKOFF_S: float = 0.05
    FLOAT_LOCK_TIMEOUT_MS: int = 2000

    # -----------------------
    # Airtime providers (Mode Switch)
    # -----------------------
    AIRTIME_MODE: Literal["sandbox", "real"] = "sandbox"
    AIRTIME_USE_MOCK: bool = False
    AIRTIME_STRICT_STARTUP_VALIDATION: bool = False
    AIRTIME_HTTP_TIMEOUT_S: float = 20.0

    # -----------------------
    # SAFARICOM (sandbox/real)
    # -----------------------
    SAFARICOM_SANDBOX_BASE_URL: str = "https://sandbox.safaricom.co.ke"
    SAFARICOM_SANDBOX_CONSUMER_KEY: str = ""
    SAFARICOM_SANDBOX_CONSUMER_SECRET: str = ""

    SAFARICOM_REAL_BASE_URL: str = "https://prod.safaricom.co.ke"
    SAFARICOM_REAL_CONSUMER_KEY: str = ""
    SAFARICOM_REAL_CONSUMER_SECRET: str = ""

    SAFARICOM_SENDER_MSISDN: str = ""
    SAFARICOM_SERVICE_PIN: str = ""
    SAFARICOM_TOKEN_PATH: str = "/oauth2/v1/generate?grant_type=client_credentials"
    SAFARICOM_RECHARGE_PATH: str = "/v1/pretups/api/recharge"
    SAFARICOM_TOKEN_TTL_S: int = 3600

    # -----------------------
    # AFRICA'S TALKING (sandbox/real)
    # -----------------------
    AT_SANDBOX_BASE_URL: str = "https://api.sandbox.africastalking.com"
    AT_REAL_BASE_URL: str = "https://api.africastalking.com"
    AT_USERNAME: str = "sandbox"
    AT_API_KEY: str = ""


settings = Settings()


def validate_env_settings() -> None:
    env = (settings.ENV or "dev").strip().lower()
    if env not in ("staging", "prod", "production"):
        return

    missing: list[str] = []
    if not (settings.DATABASE_URL or "").strip():
        missing.append("DATABASE_URL")
    if not (settings.CARRIER_POOLS or "").strip():
        missing.append("CARRIER_POOLS")
    if not (settings.CARRIER_PROVIDERS or "").strip():
        missing.append("CARRIER_PROVIDERS")

    if missing:
        raise RuntimeError(
            f"Environment validation failed for ENV={env}. Missing required settings: "
            + ", ".join(sorted(missing))
        )
