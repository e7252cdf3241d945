# routes/c2b.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.dispatch.factory import get_orchestrator
from app.dispatch.orchestrator import DispatchOrchestrator, PaymentNotRecorded
from app.payments.model import InboundPayment, join_name, parse_amount_cents
from app.payments.validation import RESULT_REJECT, validate_amount
from schemas import C2BConfirmationRequest, C2BResponse, C2BValidationRequest
from services.metrics import increment_confirmation, increment_validation
from services.redaction import redact_dict, redact_msisdn
from settings import settings

logger = logging.getLogger("airtime.c2b")
router = APIRouter(prefix="/v1/c2b", tags=["c2b"])


def _reject(status_code: int, desc: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ResultCode": RESULT_REJECT, "ResultDesc": desc})


@router.post("/validation", response_model=C2BResponse)
def c2b_validation(req: C2BValidationRequest):
    decision = validate_amount(req.TransAmount, min_amount_cents=settings.C2B_MIN_AMOUNT_CENTS)
    increment_validation(decision.accepted)
    logger.info(
        "c2b validation trans_id=%s amount=%s msisdn=%s result_code=%s",
        req.TransID,
        req.TransAmount,
        redact_msisdn(req.MSISDN),
        decision.result_code,
    )
    return C2BResponse(ResultCode=decision.result_code, ResultDesc=decision.result_desc)


@router.post("/confirmation", response_model=C2BResponse)
def c2b_confirmation(
    req: C2BConfirmationRequest,
    orchestrator: DispatchOrchestrator = Depends(get_orchestrator),
):
    trans_id = (req.TransID or "").strip()
    amount_cents = parse_amount_cents(req.TransAmount)
    if not trans_id or amount_cents is None:
        logger.warning("c2b confirmation unusable trans_id=%r amount=%r", req.TransID, req.TransAmount)
        increment_confirmation("rejected")
        return _reject(400, "Rejected: missing TransID or invalid TransAmount")

    payment = InboundPayment(
        transaction_id=trans_id,
        amount_cents=amount_cents,
        currency=settings.C2B_CURRENCY,
        payer_msisdn=(req.MSISDN or "").strip() or None,
        payer_name=join_name(req.FirstName, req.MiddleName, req.LastName),
        topup_number=(req.BillRefNumber or "").strip() or None,
        raw_callback=req.model_dump(mode="json", exclude_unset=True),
        trans_time=req.TransTime,
    )

    logger.debug("c2b confirmation payload=%s", redact_dict(payment.raw_callback))

    try:
        outcome = orchestrator.handle_confirmation(payment)
    except PaymentNotRecorded:
        return _reject(500, "Confirmation could not be recorded")

    return C2BResponse(ResultCode=0, ResultDesc=outcome.result_desc)
