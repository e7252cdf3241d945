# app/payments/state_machine.py
from app.payments.model import PaymentStatus, SaleStatus


class InvalidTransition(Exception):
    pass


SALE_ALLOWED = {
    SaleStatus.PENDING_DISPATCH: {
        SaleStatus.COMPLETED,
        SaleStatus.FAILED_DISPATCH_API,
        SaleStatus.FAILED_SERVER_ERROR,
    },
    SaleStatus.COMPLETED: set(),
    SaleStatus.FAILED_DISPATCH_API: set(),
    SaleStatus.FAILED_SERVER_ERROR: set(),
}

PAYMENT_ALLOWED = {
    PaymentStatus.RECEIVED_PENDING_SALE: {
        PaymentStatus.RECEIVED_FULFILLED,
        PaymentStatus.RECEIVED_FULFILLMENT_FAILED,
        PaymentStatus.RECEIVED_FLOAT_ISSUE,
        PaymentStatus.RECEIVED_PROCESSING_ERROR,
    },
    PaymentStatus.RECEIVED_FULFILLED: set(),
    PaymentStatus.RECEIVED_FULFILLMENT_FAILED: set(),
    PaymentStatus.RECEIVED_FLOAT_ISSUE: set(),
    PaymentStatus.RECEIVED_PROCESSING_ERROR: set(),
}


def assert_sale_transition(old: SaleStatus, new: SaleStatus) -> None:
    if new not in SALE_ALLOWED.get(SaleStatus(old), set()):
        raise InvalidTransition(f"Illegal sale transition: {old} -> {new}")


def assert_payment_transition(old: PaymentStatus, new: PaymentStatus) -> None:
    if new not in PAYMENT_ALLOWED.get(PaymentStatus(old), set()):
        raise InvalidTransition(f"Illegal payment transition: {old} -> {new}")


def assert_completed_invariant(new_status: SaleStatus, provider: str | None) -> None:
    """
    Invariant: a COMPLETED sale names the provider that delivered it.
    """
    if new_status == SaleStatus.COMPLETED and not provider:
        raise ValueError("Invariant violation: status=COMPLETED requires provider")
