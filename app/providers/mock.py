# app/providers/mock.py
from __future__ import annotations

from typing import Optional

from app.providers.base import DispatchResult


class MockAirtimeProvider:
    """
    Test/dev provider. Never touches the network.

    reported_balance_cents is echoed on success so reconciliation paths can
    be exercised without a real provider.
    """

    def __init__(
        self,
        *,
        name: str = "MOCK",
        succeed: bool = True,
        reported_balance_cents: Optional[int] = None,
        error: str = "Gateway timeout",
    ):
        self.name = name
        self.succeed = succeed
        self.reported_balance_cents = reported_balance_cents
        self.error = error
        self.calls: list[dict] = []

    def send_airtime(self, *, msisdn: str, amount_cents: int, reference: str) -> DispatchResult:
        self.calls.append({"msisdn": msisdn, "amount_cents": amount_cents, "reference": reference})
        if self.succeed:
            return DispatchResult(
                status="SUCCESS",
                provider=self.name,
                provider_ref=f"mock-{reference}",
                reported_balance_cents=self.reported_balance_cents,
                response={"http_status": 200, "mock": True},
            )
        return DispatchResult.failed(
            self.error,
            provider=self.name,
            response={"http_status": 504, "mock": True},
        )
