from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, Optional


class PaymentStatus(str, Enum):
    RECEIVED_PENDING_SALE = "RECEIVED_PENDING_SALE"
    RECEIVED_FULFILLED = "RECEIVED_FULFILLED"
    RECEIVED_FULFILLMENT_FAILED = "RECEIVED_FULFILLMENT_FAILED"
    RECEIVED_FLOAT_ISSUE = "RECEIVED_FLOAT_ISSUE"
    RECEIVED_PROCESSING_ERROR = "RECEIVED_PROCESSING_ERROR"


class SaleStatus(str, Enum):
    PENDING_DISPATCH = "PENDING_DISPATCH"
    COMPLETED = "COMPLETED"
    FAILED_DISPATCH_API = "FAILED_DISPATCH_API"
    FAILED_SERVER_ERROR = "FAILED_SERVER_ERROR"


class FulfillmentState(str, Enum):
    DISPATCHING = "DISPATCHING"
    FULFILLED = "FULFILLED"
    REVERSED = "REVERSED"
    REVERSAL_FAILED = "REVERSAL_FAILED"
    FAILED_UNKNOWN_CARRIER = "FAILED_UNKNOWN_CARRIER"
    POOL_MAPPING_MISSING = "POOL_MAPPING_MISSING"
    FLOAT_DEBIT_FAILED = "FLOAT_DEBIT_FAILED"
    DISPATCH_OUTCOME_UNKNOWN = "DISPATCH_OUTCOME_UNKNOWN"
    PROCESSING_ERROR = "PROCESSING_ERROR"


@dataclass(frozen=True)
class InboundPayment:
    transaction_id: str
    amount_cents: int
    currency: str
    payer_msisdn: Optional[str]
    payer_name: Optional[str]
    topup_number: Optional[str]
    raw_callback: dict[str, Any] = field(default_factory=dict)
    trans_time: Optional[str] = None
    status: PaymentStatus = PaymentStatus.RECEIVED_PENDING_SALE
    fulfillment_state: Optional[FulfillmentState] = None
    linked_sale_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class AirtimeSale:
    id: str
    related_transaction_id: str
    topup_number: str
    amount_cents: int
    carrier: str
    pool_id: str
    provider: Optional[str] = None
    status: SaleStatus = SaleStatus.PENDING_DISPATCH
    provider_ref: Optional[str] = None
    dispatch_result: Optional[dict[str, Any]] = None
    error_message: Optional[str] = None


_CENTS = Decimal("0.01")


def parse_amount_cents(raw: Any) -> int | None:
    """
    "50", "50.00", 50, 50.0 -> 5000. Returns None for anything that is not a
    positive amount with at most two decimal places.
    """
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = Decimal(str(raw).strip().replace(",", ""))
    except InvalidOperation:
        return None
    if not value.is_finite() or value <= 0:
        return None
    if value.quantize(_CENTS, rounding=ROUND_HALF_UP) != value:
        return None
    return int((value * 100).to_integral_value())


def format_amount(amount_cents: int) -> str:
    return f"{Decimal(int(amount_cents)) / 100:.2f}"


def join_name(*parts: str | None) -> str | None:
    name = " ".join(p.strip() for p in parts if p and p.strip())
    return name or None
