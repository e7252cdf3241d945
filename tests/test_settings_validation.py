from __future__ import annotations

import pytest

from app.carriers.routing import carrier_pools, carrier_providers
from settings import settings, validate_env_settings


@pytest.fixture()
def env(monkeypatch):
    def _set(**values):
        for key, value in values.items():
            monkeypatch.setattr(settings, key, value, raising=False)

    return _set


def test_dev_tolerates_missing_database_url(env):
    env(ENV="dev", DATABASE_URL="")
    validate_env_settings()


@pytest.mark.parametrize("name", ["prod", "production", "STAGING"])
def test_deployed_envs_require_database_and_routing(env, name):
    env(ENV=name, DATABASE_URL="", CARRIER_POOLS="", CARRIER_PROVIDERS="SAFARICOM:SAFARICOM")

    with pytest.raises(RuntimeError) as exc:
        validate_env_settings()

    message = str(exc.value)
    assert "DATABASE_URL" in message
    assert "CARRIER_POOLS" in message
    assert "CARRIER_PROVIDERS" not in message


def test_deployed_env_passes_when_configured(env):
    env(ENV="prod", DATABASE_URL="postgresql://airtime@db/airtime")
    validate_env_settings()


def test_default_routing_shares_one_pool_across_non_safaricom_carriers():
    pools = carrier_pools()
    assert pools["SAFARICOM"] == "SAF_FLOAT"
    assert pools["AIRTEL"] == pools["TELKOM"] == pools["EQUITEL"] == "AT_FLOAT"
    assert carrier_providers()["TELKOM"] == "AFRICASTALKING"
