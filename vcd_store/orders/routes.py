from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from vcd_store.shared.utils import settings, get_database, require_auth, Identity
from vcd_store.orders.schemas import (
    OrderCreate, OrderCreateResponse, OrderListResponse, OrderResponse,
)
from vcd_store.orders.checkout import CheckoutOrchestrator, list_orders

router = APIRouter(prefix="/orders", tags=["orders"])


def get_checkout(db: AsyncIOMotorDatabase = Depends(get_database)) -> CheckoutOrchestrator:
    return CheckoutOrchestrator(
        db,
        compensate=settings.CHECKOUT_COMPENSATE,
        use_catalog_prices=settings.CHECKOUT_USE_CATALOG_PRICES,
    )


@router.post("/create", response_model=OrderCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    order: OrderCreate,
    user: Identity = Depends(require_auth),
    checkout: CheckoutOrchestrator = Depends(get_checkout),
):
    result = await checkout.place_order(
        user.email or order.email or "",
        order.items,
        payment_method=order.payment_method,
        address=order.address,
        clear_cart=order.clear_cart,
    )
    return OrderCreateResponse(
        message="Order placed",
        order_id=result.order_id,
        order=OrderResponse(**result.order),
        warnings=result.warnings,
    )


@router.get("", response_model=OrderListResponse)
async def get_orders(
    email: Optional[str] = Query(None),
    user: Identity = Depends(require_auth),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    orders = await list_orders(db, user.email or email or "")
    return OrderListResponse(count=len(orders), orders=[OrderResponse(**o) for o in orders])
