import pytest

from app.payments.model import PaymentStatus, SaleStatus
from app.payments.state_machine import (
    InvalidTransition,
    assert_completed_invariant,
    assert_payment_transition,
    assert_sale_transition,
)


def test_sale_pending_can_settle_once():
    for status in (SaleStatus.COMPLETED, SaleStatus.FAILED_DISPATCH_API, SaleStatus.FAILED_SERVER_ERROR):
        assert_sale_transition(SaleStatus.PENDING_DISPATCH, status)


@pytest.mark.parametrize("old", [SaleStatus.COMPLETED, SaleStatus.FAILED_DISPATCH_API])
def test_settled_sale_is_terminal(old):
    with pytest.raises(InvalidTransition):
        assert_sale_transition(old, SaleStatus.COMPLETED)


def test_payment_terminal_states():
    assert_payment_transition(PaymentStatus.RECEIVED_PENDING_SALE, PaymentStatus.RECEIVED_FLOAT_ISSUE)
    with pytest.raises(InvalidTransition):
        assert_payment_transition(PaymentStatus.RECEIVED_FULFILLED, PaymentStatus.RECEIVED_FULFILLMENT_FAILED)
    with pytest.raises(InvalidTransition):
        assert_payment_transition("RECEIVED_FLOAT_ISSUE", PaymentStatus.RECEIVED_PENDING_SALE)


def test_completed_requires_provider():
    with pytest.raises(ValueError):
        assert_completed_invariant(SaleStatus.COMPLETED, None)
    assert_completed_invariant(SaleStatus.COMPLETED, "SAFARICOM")
    assert_completed_invariant(SaleStatus.FAILED_DISPATCH_API, None)
