from __future__ import annotations

import pytest
import requests

from app.providers.airtime.africastalking import AfricasTalkingAirtimeProvider, AfricasTalkingResponseParser
from app.providers.airtime.config import AfricasTalkingConfig
from tests.fakes import FakeHttpResponse


def _provider(**overrides) -> AfricasTalkingAirtimeProvider:
    values = dict(
        mode="sandbox",
        base_url="https://api.sandbox.africastalking.com",
        username="sandbox",
        api_key="at-key",
        currency="KES",
    )
    values.update(overrides)
    return AfricasTalkingAirtimeProvider(config=AfricasTalkingConfig(**values), timeout_s=5)


def _sent_payload(status="Sent", error="None"):
    return {
        "errorMessage": "None",
        "numSent": 1,
        "totalAmount": "KES 50.0000",
        "responses": [
            {
                "phoneNumber": "+254733123456",
                "amount": "KES 50.0000",
                "discount": "KES 2.0000",
                "status": status,
                "requestId": "ATQid_123",
                "errorMessage": error,
            }
        ],
    }


def test_send_success(monkeypatch):
    captured = {}

    def fake_post(url, headers=None, json=None, timeout=None):
        captured.update(url=url, headers=headers, json=json, timeout=timeout)
        return FakeHttpResponse(201, _sent_payload())

    monkeypatch.setattr("app.providers.airtime.africastalking.requests.post", fake_post)

    result = _provider().send_airtime(msisdn="0733123456", amount_cents=5_000, reference="sale-1")

    assert result.ok
    assert result.provider == "AFRICASTALKING"
    assert result.provider_ref == "ATQid_123"
    assert result.reported_balance_cents is None

    assert captured["url"] == "https://api.sandbox.africastalking.com/version1/airtime/send"
    assert captured["headers"]["apiKey"] == "at-key"
    assert captured["timeout"] == 5
    assert captured["json"] == {
        "username": "sandbox",
        "recipients": [{"phoneNumber": "+254733123456", "currencyCode": "KES", "amount": "50.00"}],
    }
    assert "at-key" not in str(result.response)


def test_recipient_failure_status(monkeypatch):
    monkeypatch.setattr(
        "app.providers.airtime.africastalking.requests.post",
        lambda url, headers=None, json=None, timeout=None: FakeHttpResponse(
            201, _sent_payload(status="Failed", error="Insufficient Credit")
        ),
    )

    result = _provider().send_airtime(msisdn="0733123456", amount_cents=5_000, reference="sale-1")

    assert result.status == "FAILED"
    assert result.error == "Insufficient Credit"
    assert result.provider_ref == "ATQid_123"


def test_timeout_is_failed(monkeypatch):
    def fake_post(url, headers=None, json=None, timeout=None):
        raise requests.Timeout("read timed out")

    monkeypatch.setattr("app.providers.airtime.africastalking.requests.post", fake_post)

    result = _provider().send_airtime(msisdn="0733123456", amount_cents=5_000, reference="sale-1")
    assert result.status == "FAILED"
    assert result.error == "Gateway timeout"


def test_connection_error_is_failed(monkeypatch):
    def fake_post(url, headers=None, json=None, timeout=None):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr("app.providers.airtime.africastalking.requests.post", fake_post)

    result = _provider().send_airtime(msisdn="0733123456", amount_cents=5_000, reference="sale-1")
    assert result.status == "FAILED"
    assert "connection refused" in result.error


def test_non_json_body_is_failed(monkeypatch):
    monkeypatch.setattr(
        "app.providers.airtime.africastalking.requests.post",
        lambda url, headers=None, json=None, timeout=None: FakeHttpResponse(200, None, text="<html>oops</html>"),
    )

    result = _provider().send_airtime(msisdn="0733123456", amount_cents=5_000, reference="sale-1")
    assert result.status == "FAILED"
    assert result.error == "MALFORMED_RESPONSE"


def test_missing_api_key_fails_without_network(monkeypatch):
    def fake_post(*args, **kwargs):
        raise AssertionError("no network call expected")

    monkeypatch.setattr("app.providers.airtime.africastalking.requests.post", fake_post)

    result = _provider(api_key="").send_airtime(msisdn="0733123456", amount_cents=5_000, reference="x")
    assert result.status == "FAILED"
    assert result.error == "AT_CONFIG_MISSING"
    assert result.response == {"missing": ["AT_API_KEY"]}


@pytest.mark.parametrize(
    "status_code,body,success,error",
    [
        (201, _sent_payload(status="Success"), True, None),
        (201, {"errorMessage": "Invalid phone number", "responses": []}, False, "Invalid phone number"),
        (201, {"responses": []}, False, "NO_RECIPIENT_STATUS"),
        (401, {"errorMessage": "Unauthorized"}, False, "HTTP 401"),
        (201, _sent_payload(status="Queued"), False, "status=Queued"),
    ],
)
def test_parser(status_code, body, success, error):
    parsed = AfricasTalkingResponseParser().parse(status_code, body, "")
    assert parsed.success is success
    assert parsed.error == error
