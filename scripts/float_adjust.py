from __future__ import annotations

import argparse
import logging
import sys
from decimal import Decimal, InvalidOperation

from app.dispatch.factory import get_ledger
from app.floats.ledger import KIND_TOPUP, FloatLedgerError
from app.payments.model import format_amount


def _to_cents(raw: str) -> int:
    try:
        value = Decimal(raw.strip().replace(",", ""))
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid amount: {raw!r}")
    if not value.is_finite() or value == 0 or value.quantize(Decimal("0.01")) != value:
        raise argparse.ArgumentTypeError(f"invalid amount: {raw!r}")
    return int(value * 100)


def _print_pool(ledger, pool_id: str, limit: int) -> None:
    print("pool:", pool_id, "balance:", format_amount(ledger.balance(pool_id)))
    for row in ledger.recent_logs(pool_id, limit=limit):
        print(
            " ",
            row.get("created_at"),
            row["kind"],
            format_amount(int(row["delta_cents"])),
            "->",
            format_amount(int(row["balance_after_cents"])),
            row.get("transaction_id") or "",
            row.get("note") or "",
        )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Top up, debit or inspect a float pool.")
    parser.add_argument("--pool", required=True, help="float pool id, e.g. SAF_FLOAT")
    parser.add_argument("--amount", type=_to_cents, help="signed amount in KES, e.g. 5000 or -120.50")
    parser.add_argument("--note", default="manual adjustment")
    parser.add_argument("--show", action="store_true", help="print balance and recent log rows")
    parser.add_argument("--limit", type=int, default=10)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    ledger = get_ledger()

    try:
        if args.amount is not None:
            if args.amount > 0:
                new_balance = ledger.credit(args.pool, args.amount, kind=KIND_TOPUP, note=args.note)
            else:
                new_balance = ledger.debit(args.pool, -args.amount, note=args.note)
            print("new balance:", format_amount(new_balance))
        if args.show or args.amount is None:
            _print_pool(ledger, args.pool, args.limit)
    except FloatLedgerError as exc:
        print(f"error: {exc.code}: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
