from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class ErrorType(str, Enum):
    DUPLICATE_CONFIRMATION = "DuplicateConfirmation"
    UNKNOWN_CARRIER = "UnknownCarrier"
    POOL_MAPPING_MISSING = "PoolMappingMissing"
    INSUFFICIENT_FLOAT = "InsufficientFloat"
    LEDGER_CORRUPT = "LedgerCorrupt"
    LEDGER_FAILURE = "LedgerFailure"
    PROVIDER_DISPATCH_FAILED = "ProviderDispatchFailed"
    REVERSAL_FAILED = "ReversalFailed"
    RECONCILIATION_WRITE_FAILED = "ReconciliationWriteFailed"
    RECORD_WRITE_FAILED = "RecordWriteFailed"
    UNEXPECTED_EXCEPTION = "UnexpectedException"


class Severity(str, Enum):
    WARNING = "WARNING"
    ERROR = "ERROR"
    # financial discrepancy, needs a human
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class ErrorRecord:
    type: ErrorType
    message: str
    severity: Severity = Severity.ERROR
    sub_type: Optional[str] = None
    transaction_id: Optional[str] = None
    sale_id: Optional[str] = None
    context: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
