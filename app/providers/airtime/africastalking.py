# app/providers/airtime/africastalking.py
from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from app.carriers.msisdn import to_e164
from app.payments.model import format_amount
from app.providers.airtime.config import AfricasTalkingConfig, africastalking_config, http_timeout_s
from app.providers.base import DispatchResult, ParsedResponse, ResponseParser

logger = logging.getLogger("airtime.providers.africastalking")

SENT_STATUSES = {"SENT", "SUCCESS"}


class AfricasTalkingResponseParser:
    def parse(self, status_code: int, body: Any, text: str) -> ParsedResponse:
        if not 200 <= int(status_code) < 300:
            return ParsedResponse(success=False, error=f"HTTP {status_code}")
        if not isinstance(body, dict):
            return ParsedResponse(success=False, error="MALFORMED_RESPONSE")

        responses = body.get("responses")
        if not isinstance(responses, list) or not responses or not isinstance(responses[0], dict):
            return ParsedResponse(success=False, error=_clean_error(body.get("errorMessage")) or "NO_RECIPIENT_STATUS")

        first = responses[0]
        status = str(first.get("status") or "").strip()
        error = _clean_error(first.get("errorMessage"))
        ref = first.get("requestId") or None

        if status.upper() in SENT_STATUSES and not error:
            return ParsedResponse(success=True, provider_ref=ref)
        return ParsedResponse(success=False, provider_ref=ref, error=error or f"status={status or 'missing'}")


class AfricasTalkingAirtimeProvider:
    """Airtime for Airtel, Telkom and Equitel numbers via Africa's Talking."""

    name = "AFRICASTALKING"

    def __init__(
        self,
        *,
        config: Optional[AfricasTalkingConfig] = None,
        parser: Optional[ResponseParser] = None,
        timeout_s: Optional[float] = None,
    ):
        self.cfg = config or africastalking_config()
        self.parser = parser or AfricasTalkingResponseParser()
        self.timeout_s = timeout_s if timeout_s is not None else http_timeout_s()

    def send_airtime(self, *, msisdn: str, amount_cents: int, reference: str) -> DispatchResult:
        missing = _missing_config(self.cfg)
        if missing:
            return DispatchResult.failed("AT_CONFIG_MISSING", provider=self.name, response={"missing": missing})

        phone = to_e164(msisdn)
        if not phone:
            return DispatchResult.failed("Invalid receiver msisdn", provider=self.name)
        if amount_cents is None or int(amount_cents) <= 0:
            return DispatchResult.failed("Missing/invalid amount_cents", provider=self.name)

        headers = {
            "apiKey": self.cfg.api_key,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        body = {
            "username": self.cfg.username,
            "recipients": [
                {
                    "phoneNumber": phone,
                    "currencyCode": self.cfg.currency,
                    "amount": format_amount(amount_cents),
                }
            ],
        }
        request_meta = {"phone": phone, "amount_cents": int(amount_cents), "reference": reference}

        try:
            resp = requests.post(self.cfg.send_url, headers=headers, json=body, timeout=self.timeout_s)
        except requests.Timeout:
            logger.warning("africastalking send timeout reference=%s", reference)
            return DispatchResult.failed(
                "Gateway timeout", provider=self.name, response={"stage": "send", "request": request_meta}
            )
        except requests.RequestException as exc:
            logger.warning("africastalking send error reference=%s err=%s", reference, exc)
            return DispatchResult.failed(
                f"Provider error: {exc}",
                provider=self.name,
                response={"stage": "send", "error": str(exc), "request": request_meta},
            )

        logger.info("africastalking send status=%s reference=%s", resp.status_code, reference)
        payload = _safe_json(resp)
        parsed = self.parser.parse(resp.status_code, payload, getattr(resp, "text", "") or "")
        response = {
            "stage": "send",
            "http_status": resp.status_code,
            "body": payload,
            "request": request_meta,
        }
        if not parsed.success:
            return DispatchResult(
                status="FAILED",
                provider=self.name,
                provider_ref=parsed.provider_ref,
                response=response,
                error=parsed.error,
            )
        return DispatchResult(
            status="SUCCESS",
            provider=self.name,
            provider_ref=parsed.provider_ref,
            reported_balance_cents=parsed.reported_balance_cents,
            response=response,
        )


def _clean_error(value: Any) -> str | None:
    # AT reports "None" as the errorMessage of a successful send
    text = str(value or "").strip()
    if not text or text.lower() == "none":
        return None
    return text


def _safe_json(resp) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None


def _missing_config(cfg: AfricasTalkingConfig) -> list[str]:
    missing: list[str] = []
    prefix = "AT_REAL" if cfg.mode == "real" else "AT_SANDBOX"
    if not cfg.base_url:
        missing.append(f"{prefix}_BASE_URL")
    if not cfg.username:
        missing.append("AT_USERNAME")
    if not cfg.api_key:
        missing.append("AT_API_KEY")
    return missing
