from __future__ import annotations

import json
from typing import Any, Callable

from psycopg2.extras import Json, RealDictCursor

from db import get_conn
from app.audit.model import ErrorRecord


class PostgresErrorLog:
    """Append-only; rows are never updated or deleted."""

    def __init__(self, connect: Callable = get_conn):
        self._connect = connect

    def record(self, entry: ErrorRecord) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO app.error_logs
                      (type, sub_type, severity, message, transaction_id, sale_id, context)
                    VALUES (%s, %s, %s, %s, %s, %s::uuid, %s::jsonb);
                    """,
                    (
                        entry.type.value,
                        entry.sub_type,
                        entry.severity.value,
                        entry.message,
                        entry.transaction_id,
                        entry.sale_id,
                        Json(entry.context or {}, dumps=lambda v: json.dumps(v, default=str)),
                    ),
                )

    def list_for_transaction(self, transaction_id: str, *, limit: int = 50) -> list[dict[str, Any]]:
        limit = max(1, min(int(limit or 50), 200))
        with self._connect() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    """
                    SELECT id, type, sub_type, severity, message, transaction_id, sale_id,
                           context, created_at
                    FROM app.error_logs
                    WHERE transaction_id = %s
                    ORDER BY created_at ASC, id ASC
                    LIMIT %s
                    """,
                    (transaction_id, limit),
                )
                return [dict(r) for r in cur.fetchall()]
