# app/dispatch/orchestrator.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

from app.audit.model import ErrorRecord, ErrorType, Severity
from app.carriers.classifier import classify
from app.floats.ledger import FloatLedger, FloatLedgerError, InsufficientFloat, LedgerCorrupt
from app.payments.model import AirtimeSale, FulfillmentState, InboundPayment, PaymentStatus, SaleStatus
from app.payments.state_machine import (
    assert_completed_invariant,
    assert_payment_transition,
    assert_sale_transition,
)
from app.providers.airtime.gateway import AirtimeGateway
from app.providers.base import DispatchResult
from services.metrics import increment_confirmation
from services.redaction import redact_msisdn

logger = logging.getLogger("airtime.dispatch")

_SEVERITY_LEVELS = {
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
    Severity.CRITICAL: logging.CRITICAL,
}


class RecordStore(Protocol):
    def create_if_absent(self, payment: InboundPayment) -> bool: ...
    def update_status(
        self,
        transaction_id: str,
        *,
        status: Optional[PaymentStatus] = None,
        fulfillment_state: Optional[FulfillmentState] = None,
        linked_sale_id: Optional[str] = None,
        from_status: Optional[PaymentStatus] = None,
    ) -> bool: ...
    def record_sale(self, sale: AirtimeSale) -> None: ...
    def update_sale(
        self,
        sale_id: str,
        *,
        status: SaleStatus,
        provider: Optional[str] = None,
        provider_ref: Optional[str] = None,
        dispatch_result: Optional[dict[str, Any]] = None,
        error_message: Optional[str] = None,
        from_status: Optional[SaleStatus] = SaleStatus.PENDING_DISPATCH,
    ) -> bool: ...


class ErrorLog(Protocol):
    def record(self, entry: ErrorRecord) -> None: ...


class PaymentNotRecorded(Exception):
    """The inbound payment could not be persisted; the caller must not acknowledge it."""

    def __init__(self, transaction_id: str):
        super().__init__(f"Inbound payment {transaction_id} could not be recorded")
        self.transaction_id = transaction_id


@dataclass(frozen=True)
class ConfirmationOutcome:
    transaction_id: str
    created: bool
    state: Optional[FulfillmentState] = None
    payment_status: Optional[PaymentStatus] = None
    sale_id: Optional[str] = None

    @property
    def duplicate(self) -> bool:
        return not self.created

    @property
    def result_desc(self) -> str:
        if self.duplicate:
            return "Duplicate confirmation ignored"
        return "Confirmation received successfully"


@dataclass
class _Progress:
    """How far one confirmation got; drives compensation after an unexpected error."""

    carrier: Optional[str] = None
    pool_id: Optional[str] = None
    debited: bool = False
    sale_id: Optional[str] = None
    dispatch_started: bool = False
    result: Optional[DispatchResult] = None
    reversal_state: Optional[FulfillmentState] = None


class DispatchOrchestrator:
    """
    Saga for one confirmed payment: record, classify, debit, dispatch, and
    credit the pool back when the dispatch fails.

    Only the initial record write can fail the caller (PaymentNotRecorded).
    Everything after it ends in a terminal fulfillment state written to the
    payment record plus an ErrorRecord for every failure.
    """

    def __init__(
        self,
        records: RecordStore,
        ledger: FloatLedger,
        gateway: AirtimeGateway,
        errors: ErrorLog,
        pools: Mapping[str, str],
    ):
        self.records = records
        self.ledger = ledger
        self.gateway = gateway
        self.errors = errors
        self.pools = dict(pools)

    def handle_confirmation(self, payment: InboundPayment) -> ConfirmationOutcome:
        txn = payment.transaction_id

        # 1. idempotency gate
        try:
            created = self.records.create_if_absent(payment)
        except Exception as exc:
            logger.exception("confirmation not recorded transaction_id=%s", txn)
            increment_confirmation("record_failed")
            raise PaymentNotRecorded(txn) from exc

        if not created:
            logger.info("duplicate confirmation ignored transaction_id=%s", txn)
            self._audit(
                ErrorRecord(
                    type=ErrorType.DUPLICATE_CONFIRMATION,
                    severity=Severity.WARNING,
                    message="Confirmation already processed",
                    transaction_id=txn,
                )
            )
            increment_confirmation("duplicate")
            return ConfirmationOutcome(transaction_id=txn, created=False)

        logger.info(
            "confirmation recorded transaction_id=%s amount_cents=%s topup_number=%s",
            txn,
            payment.amount_cents,
            redact_msisdn(payment.topup_number),
        )

        progress = _Progress()
        try:
            outcome = self._fulfil(payment, progress)
        except Exception as exc:
            outcome = self._on_unexpected(payment, progress, exc)

        increment_confirmation(outcome.state.value.lower() if outcome.state else "unknown")
        return outcome

    # ------------------------------------------------------------------
    # Steps 2-7
    # ------------------------------------------------------------------

    def _fulfil(self, payment: InboundPayment, progress: _Progress) -> ConfirmationOutcome:
        txn = payment.transaction_id

        # 2. classify
        classification = classify(payment.topup_number, self.pools)
        if not classification.known:
            return self._finish(
                payment,
                PaymentStatus.RECEIVED_FULFILLMENT_FAILED,
                FulfillmentState.FAILED_UNKNOWN_CARRIER,
                error=ErrorRecord(
                    type=ErrorType.UNKNOWN_CARRIER,
                    message=f"Cannot determine carrier for {redact_msisdn(payment.topup_number)}",
                    transaction_id=txn,
                    context={"topup_number": payment.topup_number},
                ),
            )
        carrier = classification.carrier.value
        progress.carrier = carrier

        # 3. carrier -> pool
        pool_id = classification.pool_key
        if not pool_id:
            return self._finish(
                payment,
                PaymentStatus.RECEIVED_PROCESSING_ERROR,
                FulfillmentState.POOL_MAPPING_MISSING,
                error=ErrorRecord(
                    type=ErrorType.POOL_MAPPING_MISSING,
                    message=f"No float pool configured for carrier {carrier}",
                    transaction_id=txn,
                    context={"carrier": carrier, "pools": self.pools},
                ),
            )
        progress.pool_id = pool_id

        # 4. debit
        try:
            self.ledger.debit(pool_id, payment.amount_cents, transaction_id=txn, note="airtime sale")
        except Exception as exc:
            return self._finish(
                payment,
                PaymentStatus.RECEIVED_FLOAT_ISSUE,
                FulfillmentState.FLOAT_DEBIT_FAILED,
                error=_debit_error(exc, txn, pool_id, payment.amount_cents),
            )
        progress.debited = True

        # 5. sale record, linked to the payment before anything leaves the process
        sale = AirtimeSale(
            id=str(uuid.uuid4()),
            related_transaction_id=txn,
            topup_number=classification.msisdn,
            amount_cents=payment.amount_cents,
            carrier=carrier,
            pool_id=pool_id,
            provider=self.gateway.provider_for(carrier),
        )
        self.records.record_sale(sale)
        progress.sale_id = sale.id
        self.records.update_status(
            txn,
            fulfillment_state=FulfillmentState.DISPATCHING,
            linked_sale_id=sale.id,
            from_status=PaymentStatus.RECEIVED_PENDING_SALE,
        )

        # 6. dispatch
        progress.dispatch_started = True
        result = self.gateway.dispatch(carrier, classification.msisdn, payment.amount_cents, reference=sale.id)
        progress.result = result

        if result.ok:
            self._settle_sale(sale, SaleStatus.COMPLETED, result)
            if result.reported_balance_cents is not None:
                self._reconcile(pool_id, result, txn=txn, sale_id=sale.id)
            return self._finish(
                payment,
                PaymentStatus.RECEIVED_FULFILLED,
                FulfillmentState.FULFILLED,
                sale_id=sale.id,
            )

        self._settle_sale(sale, SaleStatus.FAILED_DISPATCH_API, result)
        self._audit(
            ErrorRecord(
                type=ErrorType.PROVIDER_DISPATCH_FAILED,
                message=result.error or "Dispatch failed",
                sub_type=result.provider,
                transaction_id=txn,
                sale_id=sale.id,
                context={"provider": result.provider, "provider_ref": result.provider_ref, "response": result.response},
            )
        )
        state = self._compensate(payment, progress, reason="dispatch failed")
        return self._finish(
            payment,
            PaymentStatus.RECEIVED_FULFILLMENT_FAILED,
            state,
            sale_id=sale.id,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _settle_sale(self, sale: AirtimeSale, status: SaleStatus, result: DispatchResult) -> None:
        assert_sale_transition(SaleStatus.PENDING_DISPATCH, status)
        provider = result.provider or sale.provider
        assert_completed_invariant(status, provider)
        try:
            updated = self.records.update_sale(
                sale.id,
                status=status,
                provider=provider,
                provider_ref=result.provider_ref,
                dispatch_result={"status": result.status, "error": result.error, "response": result.response},
                error_message=result.error,
            )
        except Exception as exc:
            logger.exception("sale update failed sale_id=%s status=%s", sale.id, status.value)
            self._audit(
                ErrorRecord(
                    type=ErrorType.RECORD_WRITE_FAILED,
                    message=f"Could not mark sale {status.value}: {exc}",
                    sub_type="airtime_sale",
                    transaction_id=sale.related_transaction_id,
                    sale_id=sale.id,
                    context={"dispatch_status": result.status, "provider_ref": result.provider_ref},
                )
            )
            return
        if not updated:
            logger.warning("sale update skipped sale_id=%s status=%s (not pending)", sale.id, status.value)

    def _reconcile(self, pool_id: str, result: DispatchResult, *, txn: str, sale_id: str) -> None:
        reported = result.reported_balance_cents
        if isinstance(reported, bool) or not isinstance(reported, int) or reported < 0:
            logger.warning(
                "reported balance ignored pool_id=%s reported=%r transaction_id=%s", pool_id, reported, txn
            )
            return
        try:
            self.ledger.reconcile(
                pool_id,
                reported,
                transaction_id=txn,
                sale_id=sale_id,
                note=f"reported by {result.provider}",
            )
        except Exception as exc:
            # the dispatch itself succeeded; only the side channel is lost
            logger.warning("float reconciliation failed pool_id=%s transaction_id=%s err=%s", pool_id, txn, exc)
            self._audit(
                ErrorRecord(
                    type=ErrorType.RECONCILIATION_WRITE_FAILED,
                    severity=Severity.WARNING,
                    message=str(exc),
                    sub_type=type(exc).__name__,
                    transaction_id=txn,
                    sale_id=sale_id,
                    context={"pool_id": pool_id, "reported_balance_cents": reported},
                )
            )

    def _compensate(self, payment: InboundPayment, progress: _Progress, *, reason: str) -> FulfillmentState:
        txn = payment.transaction_id
        try:
            balance = self.ledger.reverse(
                progress.pool_id,
                payment.amount_cents,
                transaction_id=txn,
                sale_id=progress.sale_id,
                note=f"reversal: {reason}",
            )
        except Exception as exc:
            self._audit(
                ErrorRecord(
                    type=ErrorType.REVERSAL_FAILED,
                    severity=Severity.CRITICAL,
                    message=(
                        f"Manual reconciliation required: could not credit {payment.amount_cents} "
                        f"back to {progress.pool_id} after {reason}: {exc}"
                    ),
                    sub_type=type(exc).__name__,
                    transaction_id=txn,
                    sale_id=progress.sale_id,
                    context={"pool_id": progress.pool_id, "amount_cents": payment.amount_cents},
                )
            )
            progress.reversal_state = FulfillmentState.REVERSAL_FAILED
            return progress.reversal_state

        logger.info(
            "float reversed pool_id=%s amount_cents=%s balance_cents=%s transaction_id=%s",
            progress.pool_id,
            payment.amount_cents,
            balance,
            txn,
        )
        progress.reversal_state = FulfillmentState.REVERSED
        return progress.reversal_state

    def _on_unexpected(self, payment: InboundPayment, progress: _Progress, exc: Exception) -> ConfirmationOutcome:
        txn = payment.transaction_id
        logger.exception("confirmation processing error transaction_id=%s", txn)
        context = {
            "exception": type(exc).__name__,
            "carrier": progress.carrier,
            "pool_id": progress.pool_id,
            "debited": progress.debited,
            "dispatch_started": progress.dispatch_started,
        }

        def _error(sub_type: str) -> ErrorRecord:
            return ErrorRecord(
                type=ErrorType.UNEXPECTED_EXCEPTION,
                severity=Severity.CRITICAL if progress.debited else Severity.ERROR,
                message=str(exc) or type(exc).__name__,
                sub_type=sub_type,
                transaction_id=txn,
                sale_id=progress.sale_id,
                context=context,
            )

        if not progress.debited:
            return self._finish(
                payment,
                PaymentStatus.RECEIVED_PROCESSING_ERROR,
                FulfillmentState.PROCESSING_ERROR,
                error=_error("before_debit"),
            )

        if not progress.dispatch_started:
            # nothing was sent, so the float can go back
            if progress.sale_id:
                self._settle_sale_failed(progress.sale_id, str(exc))
            state = self._compensate(payment, progress, reason="processing error before dispatch")
            return self._finish(
                payment,
                PaymentStatus.RECEIVED_PROCESSING_ERROR,
                state,
                sale_id=progress.sale_id,
                error=_error("before_dispatch"),
            )

        result = progress.result
        if result is None:
            return self._finish(
                payment,
                PaymentStatus.RECEIVED_PROCESSING_ERROR,
                FulfillmentState.DISPATCH_OUTCOME_UNKNOWN,
                sale_id=progress.sale_id,
                error=_error("dispatch_outcome_unknown"),
            )

        context["dispatch_status"] = result.status
        if result.ok:
            return self._finish(
                payment,
                PaymentStatus.RECEIVED_FULFILLED,
                FulfillmentState.FULFILLED,
                sale_id=progress.sale_id,
                error=_error("after_dispatch"),
            )

        state = progress.reversal_state or self._compensate(payment, progress, reason="dispatch failed")
        return self._finish(
            payment,
            PaymentStatus.RECEIVED_FULFILLMENT_FAILED,
            state,
            sale_id=progress.sale_id,
            error=_error("after_dispatch"),
        )

    def _settle_sale_failed(self, sale_id: str, message: str) -> None:
        try:
            self.records.update_sale(sale_id, status=SaleStatus.FAILED_SERVER_ERROR, error_message=message)
        except Exception:
            logger.exception("sale update failed sale_id=%s status=FAILED_SERVER_ERROR", sale_id)

    def _finish(
        self,
        payment: InboundPayment,
        status: PaymentStatus,
        state: FulfillmentState,
        *,
        sale_id: Optional[str] = None,
        error: Optional[ErrorRecord] = None,
    ) -> ConfirmationOutcome:
        txn = payment.transaction_id
        if error is not None:
            self._audit(error)

        assert_payment_transition(PaymentStatus.RECEIVED_PENDING_SALE, status)
        try:
            updated = self.records.update_status(
                txn,
                status=status,
                fulfillment_state=state,
                linked_sale_id=sale_id,
                from_status=PaymentStatus.RECEIVED_PENDING_SALE,
            )
            if not updated:
                logger.warning("payment status not updated transaction_id=%s status=%s", txn, status.value)
        except Exception as exc:
            logger.exception("payment status update failed transaction_id=%s status=%s", txn, status.value)
            self._audit(
                ErrorRecord(
                    type=ErrorType.RECORD_WRITE_FAILED,
                    message=f"Could not mark payment {status.value}/{state.value}: {exc}",
                    sub_type="inbound_payment",
                    transaction_id=txn,
                    sale_id=sale_id,
                )
            )

        logger.info(
            "confirmation done transaction_id=%s status=%s state=%s sale_id=%s",
            txn,
            status.value,
            state.value,
            sale_id,
        )
        return ConfirmationOutcome(
            transaction_id=txn,
            created=True,
            state=state,
            payment_status=status,
            sale_id=sale_id,
        )

    def _audit(self, entry: ErrorRecord) -> None:
        logger.log(
            _SEVERITY_LEVELS.get(entry.severity, logging.ERROR),
            "error record type=%s sub_type=%s transaction_id=%s sale_id=%s message=%s",
            entry.type.value,
            entry.sub_type,
            entry.transaction_id,
            entry.sale_id,
            entry.message,
        )
        try:
            self.errors.record(entry)
        except Exception:
            logger.exception(
                "error record write failed type=%s transaction_id=%s", entry.type.value, entry.transaction_id
            )


def _debit_error(exc: Exception, txn: str, pool_id: str, amount_cents: int) -> ErrorRecord:
    context = {"pool_id": pool_id, "amount_cents": amount_cents}
    if isinstance(exc, InsufficientFloat):
        context["balance_cents"] = exc.balance_cents
        return ErrorRecord(
            type=ErrorType.INSUFFICIENT_FLOAT,
            message=str(exc),
            transaction_id=txn,
            context=context,
        )
    if isinstance(exc, LedgerCorrupt):
        context["raw_balance"] = repr(exc.raw)
        return ErrorRecord(
            type=ErrorType.LEDGER_CORRUPT,
            severity=Severity.CRITICAL,
            message=str(exc),
            transaction_id=txn,
            context=context,
        )
    return ErrorRecord(
        type=ErrorType.LEDGER_FAILURE,
        message=str(exc) or type(exc).__name__,
        sub_type=exc.code if isinstance(exc, FloatLedgerError) else type(exc).__name__,
        transaction_id=txn,
        context=context,
    )
