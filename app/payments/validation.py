# app/payments/validation.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from app.payments.model import format_amount, parse_amount_cents

RESULT_ACCEPT = 0
RESULT_REJECT = 1


@dataclass(frozen=True)
class ValidationDecision:
    result_code: int
    result_desc: str

    @property
    def accepted(self) -> bool:
        return self.result_code == RESULT_ACCEPT


def validate_amount(raw_amount: Any, *, min_amount_cents: int) -> ValidationDecision:
    """Stateless pre-confirmation gate: only the declared amount is checked."""
    amount_cents = parse_amount_cents(raw_amount)
    if amount_cents is None:
        return ValidationDecision(RESULT_REJECT, "Rejected: invalid amount")
    if amount_cents < int(min_amount_cents):
        return ValidationDecision(
            RESULT_REJECT,
            f"Rejected: amount below minimum of {format_amount(min_amount_cents)}",
        )
    return ValidationDecision(RESULT_ACCEPT, "Accepted")
