# app/providers/airtime/safaricom.py
from __future__ import annotations

import base64
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import httpx

from app.carriers.msisdn import national_number
from app.providers.airtime.config import SafaricomConfig, http_timeout_s, safaricom_config
from app.providers.airtime.http import HttpClient, HttpResponse
from app.providers.airtime.token_cache import TokenCache, TokenError
from app.providers.base import DispatchResult, ParsedResponse, ResponseParser

logger = logging.getLogger("airtime.providers.safaricom")

TOKEN_SAFETY_BUFFER_S = 60
SUCCESS_STATUSES = {"200", "0", "00"}

# "Recharge of KES 50.00 to 712345678 successful. Transaction ID R230101.1234.C00001. New balance is KES 9,950.00"
_REF_RE = re.compile(
    r"(?:transaction|txn|trans)\s*(?:id|ref(?:erence)?|no\.?)\s*[:#]?\s*([A-Z0-9][A-Z0-9.\-]{5,}[A-Z0-9])",
    re.IGNORECASE,
)
_BALANCE_RE = re.compile(
    r"new\s+(?:float\s+)?balance\s*(?:is|:)?\s*(?:KES|KSH\.?)?\s*([0-9][0-9,]*(?:\.[0-9]{1,2})?)",
    re.IGNORECASE,
)


def _balance_cents(raw: str | None) -> int | None:
    if not raw:
        return None
    try:
        value = Decimal(raw.replace(",", ""))
    except InvalidOperation:
        return None
    if not value.is_finite() or value < 0:
        return None
    return int((value * 100).to_integral_value())


class SafaricomResponseParser:
    """
    Safaricom's recharge API answers 200 with a JSON envelope and puts the
    useful parts (reference, remaining float) in a human-readable
    responseDesc, so both are pulled out with patterns.
    """

    def parse(self, status_code: int, body: Any, text: str) -> ParsedResponse:
        if not 200 <= int(status_code) < 300:
            return ParsedResponse(success=False, error=f"HTTP {status_code}")
        if not isinstance(body, dict):
            return ParsedResponse(success=False, error="MALFORMED_RESPONSE")

        code = _first_present(body, "responseStatus", "responseCode")
        desc = str(body.get("responseDesc") or body.get("responseDescription") or "").strip()

        ref = None
        m = _REF_RE.search(desc)
        if m:
            ref = m.group(1)
        ref = ref or _first_str(body, "transactionId", "transId", "responseId")

        balance = None
        m = _BALANCE_RE.search(desc)
        if m:
            balance = _balance_cents(m.group(1))

        if code not in SUCCESS_STATUSES:
            return ParsedResponse(
                success=False,
                provider_ref=ref,
                reported_balance_cents=balance,
                error=desc or f"responseStatus={code or 'missing'}",
            )
        return ParsedResponse(success=True, provider_ref=ref, reported_balance_cents=balance)


class SafaricomAirtimeProvider:
    name = "SAFARICOM"

    def __init__(
        self,
        http: Optional[HttpClient] = None,
        *,
        config: Optional[SafaricomConfig] = None,
        token_cache: Optional[TokenCache] = None,
        parser: Optional[ResponseParser] = None,
    ):
        self.cfg = config or safaricom_config()
        self.http = http or HttpClient(timeout_s=http_timeout_s())
        self.tokens = token_cache or TokenCache(
            self._fetch_token,
            safety_buffer_s=TOKEN_SAFETY_BUFFER_S,
            name="safaricom",
        )
        self.parser = parser or SafaricomResponseParser()

    def send_airtime(self, *, msisdn: str, amount_cents: int, reference: str) -> DispatchResult:
        missing = _missing_config(self.cfg)
        if missing:
            return DispatchResult.failed(
                "SAFARICOM_CONFIG_MISSING", provider=self.name, response={"missing": missing}
            )

        receiver = national_number(msisdn)
        if not receiver:
            return DispatchResult.failed("Invalid receiver msisdn", provider=self.name)
        if amount_cents is None or int(amount_cents) <= 0:
            return DispatchResult.failed("Missing/invalid amount_cents", provider=self.name)

        body = {
            "senderMsisdn": national_number(self.cfg.sender_msisdn) or self.cfg.sender_msisdn,
            "amount": int(amount_cents),
            "servicePin": base64.b64encode(self.cfg.service_pin.encode("utf-8")).decode("ascii"),
            "receiverMsisdn": receiver,
        }
        request_meta = {"receiver": receiver, "amount_cents": int(amount_cents), "reference": reference}

        resp: HttpResponse | None = None
        for attempt in (1, 2):
            try:
                token = self.tokens.get()
            except TokenError as exc:
                logger.warning("safaricom token error reference=%s err=%s", reference, exc)
                return DispatchResult.failed("SAFARICOM_TOKEN_ERROR", provider=self.name, response={"error": str(exc)})

            headers = {
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
            try:
                resp = self.http.post(self.cfg.recharge_url, headers=headers, json_body=body)
            except httpx.TimeoutException:
                logger.warning("safaricom recharge timeout reference=%s", reference)
                return DispatchResult.failed(
                    "Gateway timeout", provider=self.name, response={"stage": "recharge", "request": request_meta}
                )
            except httpx.HTTPError as exc:
                logger.warning("safaricom recharge error reference=%s err=%s", reference, exc)
                return DispatchResult.failed(
                    f"Provider error: {exc}",
                    provider=self.name,
                    response={"stage": "recharge", "error": str(exc), "request": request_meta},
                )

            # stale token: drop it and try once more with a fresh one
            if resp.status_code == 401 and attempt == 1:
                logger.info("safaricom recharge unauthorized, refreshing token reference=%s", reference)
                self.tokens.invalidate()
                continue
            break

        logger.info("safaricom recharge status=%s reference=%s", resp.status_code, reference)
        parsed = self.parser.parse(resp.status_code, resp.json, resp.text)
        response = {
            "stage": "recharge",
            "http_status": resp.status_code,
            "body": resp.json,
            "text": (resp.text or "")[:2000],
            "request": request_meta,
        }
        if not parsed.success:
            return DispatchResult(
                status="FAILED",
                provider=self.name,
                provider_ref=parsed.provider_ref,
                reported_balance_cents=parsed.reported_balance_cents,
                response=response,
                error=parsed.error or f"HTTP {resp.status_code}",
            )
        return DispatchResult(
            status="SUCCESS",
            provider=self.name,
            provider_ref=parsed.provider_ref,
            reported_balance_cents=parsed.reported_balance_cents,
            response=response,
        )

    def _fetch_token(self) -> tuple[str, float]:
        basic = base64.b64encode(
            f"{self.cfg.consumer_key}:{self.cfg.consumer_secret}".encode("utf-8")
        ).decode("ascii")
        resp = self.http.get(self.cfg.token_url, headers={"Authorization": f"Basic {basic}"})
        payload = resp.json if isinstance(resp.json, dict) else {}
        token = payload.get("access_token")
        if resp.status_code != 200 or not token:
            raise TokenError(f"safaricom token request failed: HTTP {resp.status_code}")
        return str(token), float(payload.get("expires_in") or self.cfg.token_ttl_s)


def _first_str(payload: dict, *keys: str) -> str | None:
    for key in keys:
        value = payload.get(key)
        if value:
            return str(value)
    return None


def _missing_config(cfg: SafaricomConfig) -> list[str]:
    missing: list[str] = []
    prefix = "SAFARICOM_REAL" if cfg.mode == "real" else "SAFARICOM_SANDBOX"
    if not cfg.base_url:
        missing.append(f"{prefix}_BASE_URL")
    if not cfg.consumer_key:
        missing.append(f"{prefix}_CONSUMER_KEY")
    if not cfg.consumer_secret:
        missing.append(f"{prefix}_CONSUMER_SECRET")
    if not cfg.sender_msisdn:
        missing.append("SAFARICOM_SENDER_MSISDN")
    if not cfg.service_pin:
        missing.append("SAFARICOM_SERVICE_PIN")
    return missing


def _first_present(payload: dict, *keys: str) -> str:
    # integer 0 is a valid status code
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return str(value).strip()
    return ""
