from typing import List

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from vcd_store.shared.utils import get_database, require_auth, Identity
from vcd_store.cart.schemas import (
    CartItemAdd, CartItemUpdate, CartItemRemove,
    CartLine, CartResponse, CartUpdateResponse, CartCountResponse,
)
from vcd_store.cart.service import CartService

# All cart routes act on the cart of the token's own account
router = APIRouter(prefix="/cart", tags=["cart"], dependencies=[Depends(require_auth)])


def get_cart_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> CartService:
    return CartService(db)


@router.post("/add", response_model=CartResponse)
async def add_to_cart(
    item: CartItemAdd,
    user: Identity = Depends(require_auth),
    carts: CartService = Depends(get_cart_service),
):
    cart = await carts.add(user.email, item.item_ref, item.quantity)
    return CartResponse(message="Cart updated", cart=cart)


@router.get("", response_model=List[CartLine])
async def get_cart(user: Identity = Depends(require_auth), carts: CartService = Depends(get_cart_service)):
    return await carts.get(user.email)


@router.put("/update", response_model=CartUpdateResponse)
async def update_cart_item(
    update: CartItemUpdate,
    user: Identity = Depends(require_auth),
    carts: CartService = Depends(get_cart_service),
):
    cart = await carts.update_quantity(user.email, update.item_id, update.quantity)
    return CartUpdateResponse(cart=cart)


@router.delete("/remove", response_model=CartResponse)
async def remove_cart_item(
    item: CartItemRemove,
    user: Identity = Depends(require_auth),
    carts: CartService = Depends(get_cart_service),
):
    cart = await carts.remove(user.email, item.item_ref)
    return CartResponse(message="Item removed if existed", cart=cart)


@router.delete("/empty", response_model=CartResponse)
async def empty_cart(user: Identity = Depends(require_auth), carts: CartService = Depends(get_cart_service)):
    cart = await carts.clear(user.email)
    return CartResponse(message="Cart emptied", cart=cart)


@router.get("/count", response_model=CartCountResponse)
async def cart_count(user: Identity = Depends(require_auth), carts: CartService = Depends(get_cart_service)):
    return await carts.count(user.email)
