# app/payments/repository.py
from __future__ import annotations

import json
from typing import Any, Callable, Optional

from psycopg2.extras import RealDictCursor

from db import get_conn
from app.payments.model import (
    AirtimeSale,
    FulfillmentState,
    InboundPayment,
    PaymentStatus,
    SaleStatus,
)


def _adapt_json(value: Any):
    """
    psycopg2 can't adapt dict -> use psycopg2.extras.Json
    """
    from psycopg2.extras import Json as Psycopg2Json
    return Psycopg2Json(value, dumps=lambda v: json.dumps(v, default=str))


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


class PostgresRecordStore:
    """
    Durable record of inbound payments and the airtime sales they fund.

    Every method runs in its own transaction so each step of a confirmation
    is committed before the next one starts. Writes are inserts or field
    patches; nothing is ever deleted.
    """

    def __init__(self, connect: Callable = get_conn):
        self._connect = connect

    # ==========================================================
    # Inbound payments
    # ==========================================================

    def create_if_absent(self, payment: InboundPayment) -> bool:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO app.inbound_payments (
                      transaction_id, amount_cents, currency,
                      payer_msisdn, payer_name, topup_number,
                      trans_time, raw_callback, status,
                      created_at, updated_at
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s::jsonb, %s, now(), now())
                    ON CONFLICT (transaction_id) DO NOTHING
                    RETURNING transaction_id
                    """,
                    (
                        payment.transaction_id,
                        int(payment.amount_cents),
                        payment.currency,
                        payment.payer_msisdn,
                        payment.payer_name,
                        payment.topup_number,
                        payment.trans_time,
                        _adapt_json(payment.raw_callback or {}),
                        _enum_value(payment.status),
                    ),
                )
                return cur.fetchone() is not None

    def update_status(
        self,
        transaction_id: str,
        *,
        status: Optional[PaymentStatus] = None,
        fulfillment_state: Optional[FulfillmentState] = None,
        linked_sale_id: Optional[str] = None,
        from_status: Optional[PaymentStatus] = None,
    ) -> bool:
        guard_sql = "AND status = %(from_status)s" if from_status is not None else ""
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    UPDATE app.inbound_payments
                    SET
                      status = COALESCE(%(status)s, status),
                      fulfillment_state = COALESCE(%(fulfillment_state)s, fulfillment_state),
                      linked_sale_id = COALESCE(%(linked_sale_id)s::uuid, linked_sale_id),
                      updated_at = now()
                    WHERE transaction_id = %(transaction_id)s
                    {guard_sql}
                    """,
                    {
                        "status": _enum_value(status),
                        "fulfillment_state": _enum_value(fulfillment_state),
                        "linked_sale_id": linked_sale_id,
                        "transaction_id": transaction_id,
                        "from_status": _enum_value(from_status),
                    },
                )
                return cur.rowcount == 1

    def get_payment(self, transaction_id: str) -> dict[str, Any] | None:
        with self._connect() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    """
                    SELECT transaction_id, amount_cents, currency, payer_msisdn, payer_name,
                           topup_number, trans_time, raw_callback, status, fulfillment_state,
                           linked_sale_id, created_at, updated_at
                    FROM app.inbound_payments
                    WHERE transaction_id = %s
                    """,
                    (transaction_id,),
                )
                row = cur.fetchone()
                return dict(row) if row else None

    # ==========================================================
    # Airtime sales
    # ==========================================================

    def record_sale(self, sale: AirtimeSale) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO app.airtime_sales (
                      id, related_transaction_id, topup_number, amount_cents,
                      carrier, pool_id, provider, status,
                      created_at, updated_at
                    )
                    VALUES (%s::uuid, %s, %s, %s, %s, %s, %s, %s, now(), now())
                    """,
                    (
                        sale.id,
                        sale.related_transaction_id,
                        sale.topup_number,
                        int(sale.amount_cents),
                        sale.carrier,
                        sale.pool_id,
                        sale.provider,
                        _enum_value(sale.status),
                    ),
                )

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
    ) -> bool:
        guard_sql = "AND status = %(from_status)s" if from_status is not None else ""
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    UPDATE app.airtime_sales
                    SET
                      status = %(status)s,
                      provider = COALESCE(%(provider)s, provider),
                      provider_ref = COALESCE(%(provider_ref)s, provider_ref),
                      dispatch_result = COALESCE(%(dispatch_result)s::jsonb, dispatch_result),
                      error_message = %(error_message)s,
                      updated_at = now()
                    WHERE id = %(sale_id)s::uuid
                    {guard_sql}
                    """,
                    {
                        "status": _enum_value(status),
                        "provider": provider,
                        "provider_ref": provider_ref,
                        "dispatch_result": _adapt_json(dispatch_result) if dispatch_result is not None else None,
                        "error_message": error_message,
                        "sale_id": sale_id,
                        "from_status": _enum_value(from_status),
                    },
                )
                return cur.rowcount == 1

    def get_sale_for_transaction(self, transaction_id: str) -> dict[str, Any] | None:
        with self._connect() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    """
                    SELECT id, related_transaction_id, topup_number, amount_cents, carrier,
                           pool_id, provider, provider_ref, status, dispatch_result,
                           error_message, created_at, updated_at
                    FROM app.airtime_sales
                    WHERE related_transaction_id = %s
                    """,
                    (transaction_id,),
                )
                row = cur.fetchone()
                return dict(row) if row else None
