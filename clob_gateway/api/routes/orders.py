"""Order placement, cancellation and open-order endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends

from clob_gateway.api.dependencies import get_order_router, get_reconciler, require_address
from clob_gateway.api.schemas import CancelBody, PlaceOrderBody
from clob_gateway.errors import PartialBatchFailure
from clob_gateway.gateway.orders import OrderRouter, PlaceOrderRequest
from clob_gateway.gateway.reconcile import ReconciliationEngine

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("")
def place_order(body: PlaceOrderBody, orders: OrderRouter = Depends(get_order_router)):
    result = orders.place(PlaceOrderRequest(
        wallet_address=body.wallet_address,
        token_id=body.token_id,
        side=body.side,
        size=body.size,
        price=body.price,
        order_type=body.order_type,
        wallet_type=body.wallet_type,
        signed_order=body.signed_order or {},
        client_order_id=body.client_order_id,
    ))
    return {"success": True, **result}


@router.post("/cancel")
def cancel_orders(body: CancelBody, orders: OrderRouter = Depends(get_order_router)):
    """Cancel by id. Partial failure still reports success with both lists."""
    try:
        result = orders.cancel(body.wallet_address, body.order_ids)
    except PartialBatchFailure as e:
        logger.warning(f"Partial cancel for {body.wallet_address[:10]}: {e.message}")
        return {
            "success": True,
            "cancelled": e.cancelled,
            "errors": e.errors,
            "code": e.code,
        }
    return {"success": True, "cancelled": result.cancelled, "errors": result.errors}


@router.get("/open")
def open_orders(
    address: Optional[str] = None,
    market: Optional[str] = None,
    reconciler: ReconciliationEngine = Depends(get_reconciler),
):
    orders = reconciler.open_orders(require_address(address), market=market)
    return {
        "success": True,
        "orders": [o.model_dump(mode="json", by_alias=True) for o in orders],
    }
