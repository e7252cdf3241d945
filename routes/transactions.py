# routes/transactions.py
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from app.audit.repository import PostgresErrorLog
from app.dispatch.factory import get_error_log, get_record_store
from app.payments.repository import PostgresRecordStore
from schemas import ErrorRecordView, SaleView, TransactionView

router = APIRouter(prefix="/v1", tags=["transactions"])


def _str_or_none(value: Any) -> str | None:
    return str(value) if value is not None else None


@router.get("/transactions/{transaction_id}", response_model=TransactionView)
def get_transaction(
    transaction_id: str,
    records: PostgresRecordStore = Depends(get_record_store),
    errors: PostgresErrorLog = Depends(get_error_log),
):
    payment = records.get_payment(transaction_id)
    if not payment:
        raise HTTPException(status_code=404, detail="TRANSACTION_NOT_FOUND")

    sale_row = records.get_sale_for_transaction(transaction_id)
    sale = None
    if sale_row:
        sale = SaleView(**{**sale_row, "id": str(sale_row["id"])})

    error_rows = errors.list_for_transaction(transaction_id)
    return TransactionView(
        **{
            **payment,
            "linked_sale_id": _str_or_none(payment.get("linked_sale_id")),
        },
        sale=sale,
        errors=[
            ErrorRecordView(
                type=r["type"],
                sub_type=r.get("sub_type"),
                severity=r["severity"],
                message=r["message"],
                sale_id=_str_or_none(r.get("sale_id")),
                created_at=r.get("created_at"),
            )
            for r in error_rows
        ],
    )
