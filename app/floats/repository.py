# app/floats/repository.py
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

import psycopg2
from psycopg2.extras import RealDictCursor

from db import get_conn
from app.floats.ledger import FloatLogEntry, LedgerConflict
from services.db_errors import is_retryable_db_error


class _PgFloatTransaction:
    def __init__(self, conn):
        self.conn = conn
        self.pool_id: str | None = None

    def lock_pool(self, pool_id: str) -> Optional[dict[str, Any]]:
        self.pool_id = pool_id
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(
                """
                SELECT pool_id, balance_cents, updated_at
                FROM app.float_pools
                WHERE pool_id = %s
                FOR UPDATE
                """,
                (pool_id,),
            )
            row = cur.fetchone()
            return dict(row) if row else None

    def create_pool(self, pool_id: str, balance_cents: int) -> None:
        with self.conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO app.float_pools (pool_id, balance_cents, updated_at)
                VALUES (%s, %s, now())
                ON CONFLICT (pool_id) DO NOTHING
                """,
                (pool_id, int(balance_cents)),
            )

    def write_balance(self, pool_id: str, balance_cents: int) -> None:
        with self.conn.cursor() as cur:
            cur.execute(
                """
                UPDATE app.float_pools
                SET balance_cents = %s,
                    updated_at = now()
                WHERE pool_id = %s
                """,
                (int(balance_cents), pool_id),
            )

    def append_log(self, entry: FloatLogEntry) -> None:
        with self.conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO app.float_logs
                  (pool_id, kind, delta_cents, balance_after_cents, transaction_id, sale_id, note)
                VALUES (%s, %s, %s, %s, %s, %s::uuid, %s)
                """,
                (
                    entry.pool_id,
                    entry.kind,
                    int(entry.delta_cents),
                    int(entry.balance_after_cents),
                    entry.transaction_id,
                    entry.sale_id,
                    entry.note,
                ),
            )


class PostgresFloatStore:
    """
    float_pools holds one current-balance row per pool; row locks taken with
    SELECT ... FOR UPDATE serialize adjustments on the same pool. Lock waits
    are bounded by lock_timeout (see db.get_conn) and surface as
    LedgerConflict so the ledger can retry.
    """

    def __init__(self, connect: Callable = get_conn):
        self._connect = connect

    @contextmanager
    def transaction(self) -> Iterator[_PgFloatTransaction]:
        txn: _PgFloatTransaction | None = None
        try:
            with self._connect() as conn:
                txn = _PgFloatTransaction(conn)
                yield txn
        except psycopg2.Error as exc:
            if is_retryable_db_error(exc):
                pool_id = (txn.pool_id if txn else None) or "?"
                raise LedgerConflict(pool_id, type(exc).__name__) from exc
            raise

    def get_pool(self, pool_id: str) -> Optional[dict[str, Any]]:
        with self._connect() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    "SELECT pool_id, balance_cents, updated_at FROM app.float_pools WHERE pool_id = %s",
                    (pool_id,),
                )
                row = cur.fetchone()
                return dict(row) if row else None

    def list_pools(self) -> list[dict[str, Any]]:
        with self._connect() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute("SELECT pool_id, balance_cents, updated_at FROM app.float_pools ORDER BY pool_id")
                return [dict(r) for r in cur.fetchall()]

    def recent_logs(self, *, pool_id: str | None = None, limit: int = 50) -> list[dict[str, Any]]:
        limit = max(1, min(int(limit or 50), 200))
        where_sql = "WHERE pool_id = %(pool_id)s" if pool_id else ""
        with self._connect() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"""
                    SELECT id, pool_id, kind, delta_cents, balance_after_cents,
                           transaction_id, sale_id, note, created_at
                    FROM app.float_logs
                    {where_sql}
                    ORDER BY created_at DESC, id DESC
                    LIMIT %(limit)s
                    """,
                    {"pool_id": pool_id, "limit": limit},
                )
                return [dict(r) for r in cur.fetchall()]
