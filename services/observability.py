from __future__ import annotations

import logging
import uuid
from contextvars import ContextVar


_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)


def set_request_id(value: str | None) -> None:
    _request_id.set(value)


def get_request_id() -> str | None:
    return _request_id.get()


def ensure_request_id(value: str | None = None) -> str:
    """Return the caller-supplied id or the bound one, minting a uuid4 when neither exists."""
    current = (value or "").strip() or _request_id.get()
    if not current:
        current = str(uuid.uuid4())
    _request_id.set(current)
    return current


class RequestIdLogFilter(logging.Filter):
    """Stamps every record with the request id bound to the current context ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get() or "-"
        return True
