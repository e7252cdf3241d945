# db.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

import psycopg2
import psycopg2.extras
from psycopg2.pool import SimpleConnectionPool

from settings import settings

logger = logging.getLogger("airtime.db")

_pool: SimpleConnectionPool | None = None


def _session_settings() -> list[tuple[str, str]]:
    return [
        ("statement_timeout", f"{int(settings.DB_STATEMENT_TIMEOUT_MS)}ms"),
        # bounds the wait on a float pool row lock; expiry surfaces as LockNotAvailable
        ("lock_timeout", f"{int(settings.FLOAT_LOCK_TIMEOUT_MS)}ms"),
        ("idle_in_transaction_session_timeout", f"{int(settings.DB_STATEMENT_TIMEOUT_MS)}ms"),
        ("application_name", "airtime_api"),
    ]


def init_pool() -> SimpleConnectionPool:
    """
    Open the shared connection pool on first use.
    """
    global _pool
    if _pool is None:
        psycopg2.extras.register_uuid()
        _pool = SimpleConnectionPool(
            minconn=int(settings.DB_POOL_MIN),
            maxconn=int(settings.DB_POOL_MAX),
            dsn=settings.DATABASE_URL,
            connect_timeout=int(settings.DB_CONNECT_TIMEOUT_S),
        )
        logger.info("db pool opened min=%s max=%s", settings.DB_POOL_MIN, settings.DB_POOL_MAX)
    return _pool


def close_pool() -> None:
    global _pool
    if _pool is not None:
        _pool.closeall()
        _pool = None
        logger.info("db pool closed")


@contextmanager
def get_conn() -> Iterator["psycopg2.extensions.connection"]:
    """
    One transaction on a pooled connection: commit when the block exits
    cleanly, roll back and re-raise otherwise.
    """
    pool = init_pool()
    conn = pool.getconn()
    try:
        with conn.cursor() as cur:
            for name, value in _session_settings():
                cur.execute("SELECT set_config(%s, %s, false)", (name, value))

        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        pool.putconn(conn)
