"""Fills, positions and the combined portfolio view."""
from typing import Optional

from fastapi import APIRouter, Depends

from clob_gateway.api.dependencies import get_reconciler, require_address
from clob_gateway.gateway.reconcile import ReconciliationEngine

router = APIRouter(tags=["portfolio"])


def _dump(models) -> list[dict]:
    return [m.model_dump(mode="json", by_alias=True) for m in models]


@router.get("/trades")
def trades(
    address: Optional[str] = None,
    market: Optional[str] = None,
    before: Optional[str] = None,
    after: Optional[str] = None,
    reconciler: ReconciliationEngine = Depends(get_reconciler),
):
    result = reconciler.trades(require_address(address), market=market, before=before, after=after)
    return {"success": True, "trades": _dump(result)}


@router.get("/positions")
def positions(
    address: Optional[str] = None,
    reconciler: ReconciliationEngine = Depends(get_reconciler),
):
    return {"success": True, "positions": _dump(reconciler.positions(require_address(address)))}


@router.get("/portfolio")
def portfolio(
    address: Optional[str] = None,
    reconciler: ReconciliationEngine = Depends(get_reconciler),
):
    view = reconciler.portfolio(require_address(address))
    return {
        "success": True,
        **view,
        "positions": _dump(view["positions"]),
        "openOrders": _dump(view["openOrders"]),
    }
