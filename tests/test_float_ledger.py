from __future__ import annotations

import threading
from decimal import Decimal

import pytest

from app.floats.ledger import (
    KIND_DEBIT,
    KIND_RECONCILE,
    KIND_REVERSAL,
    FloatLedger,
    InsufficientFloat,
    LedgerConflict,
    LedgerCorrupt,
    PoolNotFound,
    coerce_balance,
)
from services.metrics import counter_value
from tests.fakes import FakeFloatStore


def _ledger(store, **kwargs) -> FloatLedger:
    kwargs.setdefault("sleep", lambda _s: None)
    return FloatLedger(store, known_pools={"SAF_FLOAT", "AT_FLOAT"}, **kwargs)


def test_debit_and_credit_update_balance_and_log():
    store = FakeFloatStore({"SAF_FLOAT": 100_000})
    ledger = _ledger(store)

    assert ledger.debit("SAF_FLOAT", 5_000, transaction_id="T1") == 95_000
    assert ledger.credit("saf_float", 1_000) == 96_000

    assert store.balance_of("SAF_FLOAT") == 96_000
    assert [(e.kind, e.delta_cents, e.balance_after_cents) for e in store.logs] == [
        ("DEBIT", -5_000, 95_000),
        ("CREDIT", 1_000, 96_000),
    ]
    assert store.logs[0].transaction_id == "T1"


def test_missing_pool_bootstraps_at_zero():
    store = FakeFloatStore()
    ledger = _ledger(store)

    assert ledger.credit("AT_FLOAT", 2_500) == 2_500
    assert store.balance_of("AT_FLOAT") == 2_500


def test_debit_of_missing_pool_is_insufficient_and_leaves_no_trace_of_the_debit():
    store = FakeFloatStore()
    ledger = _ledger(store)

    with pytest.raises(InsufficientFloat) as exc:
        ledger.debit("AT_FLOAT", 100)

    assert exc.value.balance_cents == 0
    assert exc.value.requested_cents == 100
    assert store.logs == []


def test_insufficient_float_rejects_without_mutation():
    store = FakeFloatStore({"SAF_FLOAT": 2_000})
    ledger = _ledger(store)

    with pytest.raises(InsufficientFloat):
        ledger.debit("SAF_FLOAT", 5_000)

    assert store.balance_of("SAF_FLOAT") == 2_000
    assert store.logs == []
    assert counter_value("float_adjustments_total", {"kind": "DEBIT", "result": "rejected"}) == 1


def test_debit_to_exactly_zero_is_allowed():
    store = FakeFloatStore({"SAF_FLOAT": 5_000})
    assert _ledger(store).debit("SAF_FLOAT", 5_000) == 0


@pytest.mark.parametrize("pool_id", ["", None, "NOPE_FLOAT"])
def test_unknown_pool_is_rejected(pool_id):
    ledger = _ledger(FakeFloatStore())
    with pytest.raises(PoolNotFound):
        ledger.debit(pool_id, 100)


@pytest.mark.parametrize("raw", ["abc", "100", float("nan"), Decimal("12.5"), -5, True, [1]])
def test_corrupt_stored_balance(raw):
    store = FakeFloatStore({"SAF_FLOAT": raw})
    ledger = _ledger(store)

    with pytest.raises(LedgerCorrupt):
        ledger.debit("SAF_FLOAT", 100)
    assert store.logs == []


def test_coerce_balance_accepts_integral_numbers():
    assert coerce_balance(None, "P") == 0
    assert coerce_balance(Decimal("1500"), "P") == 1500
    assert coerce_balance(1500.0, "P") == 1500


def test_amounts_must_be_integer_cents():
    ledger = _ledger(FakeFloatStore({"SAF_FLOAT": 1_000}))
    with pytest.raises(TypeError):
        ledger.debit("SAF_FLOAT", 10.5)
    with pytest.raises(ValueError):
        ledger.debit("SAF_FLOAT", 0)
    with pytest.raises(ValueError):
        ledger.credit("SAF_FLOAT", -10)


def test_conflict_is_retried_then_succeeds():
    store = FakeFloatStore({"SAF_FLOAT": 10_000})
    store.conflicts_to_raise = 2
    sleeps = []
    ledger = _ledger(store, max_attempts=3, retry_backoff_s=0.1, sleep=sleeps.append)

    assert ledger.debit("SAF_FLOAT", 1_000) == 9_000
    assert store.transactions == 3
    assert sleeps == [0.1, 0.2]


def test_conflict_gives_up_after_max_attempts():
    store = FakeFloatStore({"SAF_FLOAT": 10_000})
    store.conflicts_to_raise = 5
    ledger = _ledger(store, max_attempts=3)

    with pytest.raises(LedgerConflict):
        ledger.debit("SAF_FLOAT", 1_000)

    assert store.transactions == 3
    assert store.balance_of("SAF_FLOAT") == 10_000


def test_failed_write_rolls_back_balance():
    store = FakeFloatStore({"SAF_FLOAT": 10_000})
    store.fail_on_kinds.add(KIND_REVERSAL)
    ledger = _ledger(store)

    with pytest.raises(RuntimeError):
        ledger.reverse("SAF_FLOAT", 1_000)

    assert store.balance_of("SAF_FLOAT") == 10_000
    assert store.logs == []


def test_reconcile_overwrites_balance():
    store = FakeFloatStore({"SAF_FLOAT": 95_000})
    ledger = _ledger(store)

    assert ledger.reconcile("SAF_FLOAT", 90_000, transaction_id="T1") == 90_000
    entry = store.logs[-1]
    assert entry.kind == KIND_RECONCILE
    assert entry.delta_cents == -5_000

    with pytest.raises(ValueError):
        ledger.reconcile("SAF_FLOAT", -1)


def test_balance_reads():
    store = FakeFloatStore({"SAF_FLOAT": 1_234})
    ledger = _ledger(store)

    assert ledger.balance("saf_float") == 1_234
    assert ledger.balance("AT_FLOAT") == 0
    assert ledger.balances() == {"AT_FLOAT": 0, "SAF_FLOAT": 1_234}


def test_balance_equals_sum_of_committed_deltas():
    store = FakeFloatStore()
    ledger = _ledger(store)
    deltas = [50_000, -1_200, -300, 7_000, -55_500, 2_000, -2_000, -1]

    applied = []
    for delta in deltas:
        try:
            ledger.atomic_adjust("SAF_FLOAT", delta)
        except InsufficientFloat:
            continue
        applied.append(delta)
        assert store.balance_of("SAF_FLOAT") >= 0

    assert store.balance_of("SAF_FLOAT") == sum(applied)
    assert sum(e.delta_cents for e in store.logs) == sum(applied)


def test_concurrent_debits_never_overdraw():
    store = FakeFloatStore({"SAF_FLOAT": 10_000})
    ledger = _ledger(store)
    results = {"ok": 0, "insufficient": 0}
    guard = threading.Lock()

    def worker():
        try:
            ledger.debit("SAF_FLOAT", 300)
            outcome = "ok"
        except InsufficientFloat:
            outcome = "insufficient"
        with guard:
            results[outcome] += 1

    threads = [threading.Thread(target=worker) for _ in range(50)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    # 10_000 / 300 -> 33 debits fit
    assert results == {"ok": 33, "insufficient": 17}
    assert store.balance_of("SAF_FLOAT") == 100
    assert len([e for e in store.logs if e.kind == KIND_DEBIT]) == 33
