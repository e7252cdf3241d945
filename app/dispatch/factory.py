# app/dispatch/factory.py
from __future__ import annotations

import threading
from typing import Optional

from app.audit.repository import PostgresErrorLog
from app.carriers.routing import carrier_pools, known_pools
from app.dispatch.orchestrator import DispatchOrchestrator
from app.floats.ledger import FloatLedger
from app.floats.repository import PostgresFloatStore
from app.payments.repository import PostgresRecordStore
from app.providers.airtime.factory import build_gateway
from settings import settings

_LEDGER: Optional[FloatLedger] = None
_ORCHESTRATOR: Optional[DispatchOrchestrator] = None
# reentrant: get_orchestrator builds the ledger while holding it
_LOCK = threading.RLock()


def get_ledger() -> FloatLedger:
    global _LEDGER
    if _LEDGER is not None:
        return _LEDGER
    with _LOCK:
        if _LEDGER is None:
            _LEDGER = FloatLedger(
                PostgresFloatStore(),
                known_pools=known_pools(),
                max_attempts=settings.FLOAT_LEDGER_MAX_ATTEMPTS,
                retry_backoff_s=settings.FLOAT_LEDGER_RETRY_BACKOFF_S,
            )
    return _LEDGER


def get_record_store() -> PostgresRecordStore:
    return PostgresRecordStore()


def get_error_log() -> PostgresErrorLog:
    return PostgresErrorLog()


def get_orchestrator() -> DispatchOrchestrator:
    global _ORCHESTRATOR
    if _ORCHESTRATOR is not None:
        return _ORCHESTRATOR
    with _LOCK:
        if _ORCHESTRATOR is None:
            _ORCHESTRATOR = DispatchOrchestrator(
                records=get_record_store(),
                ledger=get_ledger(),
                gateway=build_gateway(),
                errors=get_error_log(),
                pools=carrier_pools(),
            )
    return _ORCHESTRATOR


def reset() -> None:
    global _LEDGER, _ORCHESTRATOR
    with _LOCK:
        _LEDGER = None
        _ORCHESTRATOR = None
