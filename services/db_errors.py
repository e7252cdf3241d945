# services/db_errors.py
from __future__ import annotations

import psycopg2
import psycopg2.errors
from psycopg2 import errorcodes

# Contention between concurrent float adjustments on the same pool. Safe to
# retry the whole read-modify-write transaction.
RETRYABLE_PGCODES: frozenset[str] = frozenset(
    {
        errorcodes.SERIALIZATION_FAILURE,
        errorcodes.DEADLOCK_DETECTED,
        errorcodes.LOCK_NOT_AVAILABLE,
    }
)


RETRYABLE_ERROR_CLASSES = (
    psycopg2.errors.SerializationFailure,
    psycopg2.errors.DeadlockDetected,
    psycopg2.errors.LockNotAvailable,
    # statement_timeout surfaces as QueryCanceled while waiting on a row lock
    psycopg2.errors.QueryCanceled,
)


def pgcode_of(exc: BaseException) -> str | None:
    code = getattr(exc, "pgcode", None)
    if isinstance(code, str) and code:
        return code
    return None


def is_retryable_db_error(exc: BaseException) -> bool:
    if not isinstance(exc, psycopg2.Error):
        return False
    if pgcode_of(exc) in RETRYABLE_PGCODES:
        return True
    return isinstance(exc, RETRYABLE_ERROR_CLASSES)

