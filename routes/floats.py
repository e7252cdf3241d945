# routes/floats.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from app.carriers.routing import carrier_pools
from app.dispatch.factory import get_ledger
from app.floats.ledger import FloatLedger, LedgerCorrupt, PoolNotFound
from schemas import FloatDetailResponse, FloatListResponse, FloatLogView, FloatPoolView

router = APIRouter(prefix="/v1", tags=["floats"])


def _carriers_by_pool() -> dict[str, list[str]]:
    out: dict[str, list[str]] = {}
    for carrier, pool_id in sorted(carrier_pools().items()):
        out.setdefault(pool_id, []).append(carrier)
    return out


@router.get("/floats", response_model=FloatListResponse)
def list_floats(ledger: FloatLedger = Depends(get_ledger)):
    try:
        balances = ledger.balances()
    except LedgerCorrupt as exc:
        raise HTTPException(status_code=409, detail=f"LEDGER_CORRUPT:{exc.pool_id}")

    carriers = _carriers_by_pool()
    return FloatListResponse(
        pools=[
            FloatPoolView(pool_id=pool_id, balance_cents=balance, carriers=carriers.get(pool_id, []))
            for pool_id, balance in sorted(balances.items())
        ]
    )


@router.get("/floats/{pool_id}", response_model=FloatDetailResponse)
def get_float(
    pool_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    ledger: FloatLedger = Depends(get_ledger),
):
    try:
        balance = ledger.balance(pool_id)
        logs = ledger.recent_logs(pool_id, limit=limit)
    except PoolNotFound:
        raise HTTPException(status_code=404, detail="POOL_NOT_FOUND")
    except LedgerCorrupt:
        raise HTTPException(status_code=409, detail="LEDGER_CORRUPT")

    normalized = pool_id.strip().upper()
    return FloatDetailResponse(
        pool=FloatPoolView(
            pool_id=normalized,
            balance_cents=balance,
            carriers=_carriers_by_pool().get(normalized, []),
        ),
        recent_logs=[
            FloatLogView(
                pool_id=r["pool_id"],
                kind=r["kind"],
                delta_cents=int(r["delta_cents"]),
                balance_after_cents=int(r["balance_after_cents"]),
                transaction_id=r.get("transaction_id"),
                sale_id=str(r["sale_id"]) if r.get("sale_id") else None,
                note=r.get("note"),
                created_at=r.get("created_at"),
            )
            for r in logs
        ],
    )
