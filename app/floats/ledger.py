# app/floats/ledger.py
from __future__ import annotations

import logging
import time
from contextlib import AbstractContextManager
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, Optional, Protocol

from services.metrics import increment_ledger_adjustment, set_float_balance

logger = logging.getLogger("airtime.ledger")

KIND_DEBIT = "DEBIT"
KIND_CREDIT = "CREDIT"
KIND_REVERSAL = "REVERSAL"
KIND_RECONCILE = "RECONCILE"
KIND_TOPUP = "TOPUP"

ADJUSTMENT_KINDS = {KIND_DEBIT, KIND_CREDIT, KIND_REVERSAL, KIND_RECONCILE, KIND_TOPUP}


class FloatLedgerError(Exception):
    code = "LEDGER_ERROR"

    def __init__(self, pool_id: str | None, message: str):
        super().__init__(message)
        self.pool_id = pool_id


class PoolNotFound(FloatLedgerError):
    code = "POOL_NOT_FOUND"

    def __init__(self, pool_id: str | None):
        super().__init__(pool_id, f"Float pool not found: {pool_id!r}")


class LedgerCorrupt(FloatLedgerError):
    code = "LEDGER_CORRUPT"

    def __init__(self, pool_id: str, raw: Any):
        super().__init__(pool_id, f"Stored balance for pool {pool_id} is not a valid amount: {raw!r}")
        self.raw = raw


class InsufficientFloat(FloatLedgerError):
    code = "INSUFFICIENT_FLOAT"

    def __init__(self, pool_id: str, *, balance_cents: int, requested_cents: int):
        super().__init__(
            pool_id,
            f"Insufficient float in {pool_id}: balance={balance_cents} requested={requested_cents}",
        )
        self.balance_cents = balance_cents
        self.requested_cents = requested_cents


class LedgerConflict(FloatLedgerError):
    """Concurrent adjustment on the same pool; the transaction was rolled back."""

    code = "LEDGER_CONFLICT"

    def __init__(self, pool_id: str, detail: str | None = None):
        super().__init__(pool_id, f"Conflicting float adjustment on {pool_id}: {detail or 'retry'}")


@dataclass(frozen=True)
class FloatLogEntry:
    pool_id: str
    kind: str
    delta_cents: int
    balance_after_cents: int
    transaction_id: Optional[str] = None
    sale_id: Optional[str] = None
    note: Optional[str] = None


class FloatTransaction(Protocol):
    def lock_pool(self, pool_id: str) -> Optional[dict[str, Any]]: ...
    def create_pool(self, pool_id: str, balance_cents: int) -> None: ...
    def write_balance(self, pool_id: str, balance_cents: int) -> None: ...
    def append_log(self, entry: FloatLogEntry) -> None: ...


class FloatStore(Protocol):
    def transaction(self) -> AbstractContextManager[FloatTransaction]: ...
    def get_pool(self, pool_id: str) -> Optional[dict[str, Any]]: ...
    def list_pools(self) -> list[dict[str, Any]]: ...
    def recent_logs(self, *, pool_id: str | None = None, limit: int = 50) -> list[dict[str, Any]]: ...


def coerce_balance(raw: Any, pool_id: str) -> int:
    """
    Stored balances are integer minor units. A missing value reads as zero;
    anything non-numeric, fractional, non-finite or negative is corruption.
    """
    if raw is None:
        return 0
    if isinstance(raw, bool) or not isinstance(raw, (int, float, Decimal)):
        raise LedgerCorrupt(pool_id, raw)
    try:
        value = Decimal(str(raw))
    except InvalidOperation:
        raise LedgerCorrupt(pool_id, raw)
    if not value.is_finite() or value != value.to_integral_value() or value < 0:
        raise LedgerCorrupt(pool_id, raw)
    return int(value)


class FloatLedger:
    """
    Sole writer of float pool balances.

    Every mutation is one read-modify-write inside a store transaction that
    locks the pool row, so concurrent adjustments on a pool are linearized
    by the store. A conflicting transaction is retried here up to
    max_attempts before LedgerConflict propagates.
    """

    def __init__(
        self,
        store: FloatStore,
        *,
        known_pools: Iterable[str] | None = None,
        max_attempts: int = 3,
        retry_backoff_s: float = 0.05,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.known_pools = {p.upper() for p in known_pools} if known_pools else None
        self.max_attempts = max(1, int(max_attempts))
        self.retry_backoff_s = max(0.0, float(retry_backoff_s))
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def atomic_adjust(
        self,
        pool_id: str,
        delta_cents: int,
        *,
        kind: str | None = None,
        transaction_id: str | None = None,
        sale_id: str | None = None,
        note: str | None = None,
    ) -> int:
        delta = _as_cents(delta_cents)
        kind = kind or (KIND_DEBIT if delta < 0 else KIND_CREDIT)
        return self._apply(
            pool_id,
            kind,
            lambda current: current + delta,
            transaction_id=transaction_id,
            sale_id=sale_id,
            note=note,
        )

    def debit(self, pool_id: str, amount_cents: int, **refs: Any) -> int:
        amount = _positive_cents(amount_cents)
        return self.atomic_adjust(pool_id, -amount, kind=KIND_DEBIT, **refs)

    def credit(self, pool_id: str, amount_cents: int, *, kind: str = KIND_CREDIT, **refs: Any) -> int:
        amount = _positive_cents(amount_cents)
        return self.atomic_adjust(pool_id, amount, kind=kind, **refs)

    def reverse(self, pool_id: str, amount_cents: int, **refs: Any) -> int:
        return self.credit(pool_id, amount_cents, kind=KIND_REVERSAL, **refs)

    def reconcile(
        self,
        pool_id: str,
        reported_balance_cents: int,
        *,
        transaction_id: str | None = None,
        sale_id: str | None = None,
        note: str | None = None,
    ) -> int:
        """Overwrite the balance with a provider-reported figure."""
        reported = _as_cents(reported_balance_cents)
        if reported < 0:
            raise ValueError(f"reported balance must be >= 0, got {reported}")
        return self._apply(
            pool_id,
            KIND_RECONCILE,
            lambda _current: reported,
            transaction_id=transaction_id,
            sale_id=sale_id,
            note=note or "provider reported balance",
        )

    # ------------------------------------------------------------------
    # Reads (display only; mutations always re-read under lock)
    # ------------------------------------------------------------------

    def balance(self, pool_id: str) -> int:
        pool_id = self._check_pool(pool_id)
        row = self.store.get_pool(pool_id)
        if row is None:
            return 0
        return coerce_balance(row.get("balance_cents"), pool_id)

    def balances(self) -> dict[str, int]:
        out: dict[str, int] = {p: 0 for p in sorted(self.known_pools or ())}
        for row in self.store.list_pools():
            pool_id = str(row["pool_id"])
            out[pool_id] = coerce_balance(row.get("balance_cents"), pool_id)
        return out

    def recent_logs(self, pool_id: str | None = None, limit: int = 50) -> list[dict[str, Any]]:
        if pool_id is not None:
            pool_id = self._check_pool(pool_id)
        return self.store.recent_logs(pool_id=pool_id, limit=limit)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_pool(self, pool_id: str | None) -> str:
        normalized = (pool_id or "").strip().upper()
        if not normalized:
            raise PoolNotFound(pool_id)
        if self.known_pools is not None and normalized not in self.known_pools:
            raise PoolNotFound(normalized)
        return normalized

    def _apply(
        self,
        pool_id: str,
        kind: str,
        compute: Callable[[int], int],
        *,
        transaction_id: str | None,
        sale_id: str | None,
        note: str | None,
    ) -> int:
        if kind not in ADJUSTMENT_KINDS:
            raise ValueError(f"Unknown adjustment kind: {kind}")
        pool_id = self._check_pool(pool_id)

        attempt = 0
        while True:
            attempt += 1
            try:
                new_balance = self._apply_once(
                    pool_id,
                    kind,
                    compute,
                    transaction_id=transaction_id,
                    sale_id=sale_id,
                    note=note,
                )
            except LedgerConflict:
                increment_ledger_adjustment(kind, "conflict")
                if attempt >= self.max_attempts:
                    logger.error(
                        "float adjust gave up pool_id=%s kind=%s transaction_id=%s attempts=%s",
                        pool_id,
                        kind,
                        transaction_id,
                        attempt,
                    )
                    raise
                logger.warning(
                    "float adjust conflict pool_id=%s kind=%s attempt=%s/%s",
                    pool_id,
                    kind,
                    attempt,
                    self.max_attempts,
                )
                self._sleep(self.retry_backoff_s * attempt)
                continue
            except FloatLedgerError as exc:
                increment_ledger_adjustment(kind, "rejected")
                logger.info(
                    "float adjust rejected pool_id=%s kind=%s transaction_id=%s code=%s",
                    pool_id,
                    kind,
                    transaction_id,
                    exc.code,
                )
                raise

            increment_ledger_adjustment(kind, "ok")
            set_float_balance(pool_id, new_balance)
            return new_balance

    def _apply_once(
        self,
        pool_id: str,
        kind: str,
        compute: Callable[[int], int],
        *,
        transaction_id: str | None,
        sale_id: str | None,
        note: str | None,
    ) -> int:
        with self.store.transaction() as tx:
            row = tx.lock_pool(pool_id)
            if row is None:
                # first use of a pool: start it at zero inside this transaction
                tx.create_pool(pool_id, 0)
                row = tx.lock_pool(pool_id)
                if row is None:
                    raise PoolNotFound(pool_id)

            current = coerce_balance(row.get("balance_cents"), pool_id)
            new_balance = int(compute(current))
            if new_balance < 0:
                raise InsufficientFloat(
                    pool_id,
                    balance_cents=current,
                    requested_cents=current - new_balance,
                )

            tx.write_balance(pool_id, new_balance)
            tx.append_log(
                FloatLogEntry(
                    pool_id=pool_id,
                    kind=kind,
                    delta_cents=new_balance - current,
                    balance_after_cents=new_balance,
                    transaction_id=transaction_id,
                    sale_id=sale_id,
                    note=note,
                )
            )

        logger.info(
            "float adjusted pool_id=%s kind=%s delta_cents=%s balance_cents=%s transaction_id=%s",
            pool_id,
            kind,
            new_balance - current,
            new_balance,
            transaction_id,
        )
        return new_balance


def _as_cents(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"amounts are integer minor units, got {value!r}")
    return value


def _positive_cents(value: Any) -> int:
    cents = _as_cents(value)
    if cents <= 0:
        raise ValueError(f"amount must be > 0, got {cents}")
    return cents
