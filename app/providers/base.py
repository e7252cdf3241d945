# app/providers/base.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, Literal

DispatchStatus = Literal["SUCCESS", "FAILED"]


@dataclass(frozen=True)
class DispatchResult:
    status: DispatchStatus
    provider: Optional[str] = None
    provider_ref: Optional[str] = None
    # provider-reported float balance after this dispatch, minor units
    reported_balance_cents: Optional[int] = None
    # raw provider response / transport error, kept verbatim for audit
    response: Optional[dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "SUCCESS"

    @classmethod
    def failed(
        cls,
        error: str,
        *,
        provider: Optional[str] = None,
        provider_ref: Optional[str] = None,
        response: Optional[dict[str, Any]] = None,
    ) -> "DispatchResult":
        return cls(status="FAILED", provider=provider, provider_ref=provider_ref, response=response, error=error)


@dataclass(frozen=True)
class ParsedResponse:
    success: bool
    provider_ref: Optional[str] = None
    reported_balance_cents: Optional[int] = None
    error: Optional[str] = None


class ResponseParser(Protocol):
    def parse(self, status_code: int, body: Any, text: str) -> ParsedResponse: ...


class AirtimeProvider(Protocol):
    name: str

    def send_airtime(self, *, msisdn: str, amount_cents: int, reference: str) -> DispatchResult: ...
