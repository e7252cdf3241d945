"""airtime baseline schema

Revision ID: 0001_airtime_baseline
Revises:
Create Date: 2026-10-16 00:00:00.000000

"""

from __future__ import annotations

from alembic import op


revision = "0001_airtime_baseline"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE SCHEMA IF NOT EXISTS app;")
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.inbound_payments (
            transaction_id text PRIMARY KEY,
            amount_cents bigint NOT NULL CHECK (amount_cents > 0),
            currency text NOT NULL DEFAULT 'KES',
            payer_msisdn text,
            payer_name text,
            topup_number text,
            trans_time text,
            raw_callback jsonb NOT NULL DEFAULT '{}'::jsonb,
            status text NOT NULL,
            fulfillment_state text,
            linked_sale_id uuid,
            created_at timestamptz NOT NULL DEFAULT now(),
            updated_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.airtime_sales (
            id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            related_transaction_id text NOT NULL
                REFERENCES app.inbound_payments (transaction_id),
            topup_number text NOT NULL,
            amount_cents bigint NOT NULL CHECK (amount_cents > 0),
            carrier text NOT NULL,
            pool_id text NOT NULL,
            provider text,
            provider_ref text,
            status text NOT NULL,
            dispatch_result jsonb,
            error_message text,
            created_at timestamptz NOT NULL DEFAULT now(),
            updated_at timestamptz NOT NULL DEFAULT now(),
            CONSTRAINT airtime_sales_completed_requires_provider
                CHECK (status <> 'COMPLETED' OR provider IS NOT NULL)
        );
        """
    )
    op.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS airtime_sales_related_transaction_id_uq
        ON app.airtime_sales (related_transaction_id);
        """
    )

    # numeric (not bigint) so a damaged value is readable and reported as corrupt
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.float_pools (
            pool_id text PRIMARY KEY,
            balance_cents numeric,
            updated_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.float_logs (
            id bigserial PRIMARY KEY,
            pool_id text NOT NULL REFERENCES app.float_pools (pool_id),
            kind text NOT NULL
                CHECK (kind IN ('DEBIT', 'CREDIT', 'REVERSAL', 'RECONCILE', 'TOPUP')),
            delta_cents bigint NOT NULL,
            balance_after_cents bigint NOT NULL CHECK (balance_after_cents >= 0),
            transaction_id text,
            sale_id uuid,
            note text,
            created_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )
    op.execute(
        """
        CREATE INDEX IF NOT EXISTS float_logs_pool_created_idx
        ON app.float_logs (pool_id, created_at DESC);
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.error_logs (
            id bigserial PRIMARY KEY,
            type text NOT NULL,
            sub_type text,
            severity text NOT NULL DEFAULT 'ERROR',
            message text NOT NULL,
            transaction_id text,
            sale_id uuid,
            context jsonb NOT NULL DEFAULT '{}'::jsonb,
            created_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )
    op.execute(
        """
        CREATE INDEX IF NOT EXISTS error_logs_transaction_idx
        ON app.error_logs (transaction_id, created_at);
        """
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS app.error_logs;")
    op.execute("DROP TABLE IF EXISTS app.float_logs;")
    op.execute("DROP TABLE IF EXISTS app.float_pools;")
    op.execute("DROP TABLE IF EXISTS app.airtime_sales;")
    op.execute("DROP TABLE IF EXISTS app.inbound_payments;")
