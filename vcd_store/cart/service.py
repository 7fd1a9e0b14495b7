"""
Cart operations on the cart embedded in each account document.

Every mutation is a single atomic update against the owning account, so a
cart never ends up with two lines for the same item.
"""
import logging
import math
from typing import Any, List

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from vcd_store.shared.security_config import normalize_email
from vcd_store.shared.utils import (
    error_boundary, ValidationException, NotFoundException, ServerErrorException,
)

logger = logging.getLogger("vcd-store.cart")

# Attempts at the merge-or-append pair before giving up
MERGE_ATTEMPTS = 2


def validate_quantity(value: Any) -> int:
    """Accept positive whole numbers only; 3.0 is read as 3."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationException("quantity must be a positive integer")
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            raise ValidationException("quantity must be a positive integer")
        value = int(value)
    if value < 1:
        raise ValidationException("quantity must be a positive integer")
    return value


def validate_item_ref(value: Any) -> str:
    item_ref = str(value or "").strip()
    if not item_ref:
        raise ValidationException("item_ref is required")
    return item_ref


class CartService:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.users = db.users

    async def _cart_of(self, email: str) -> List[dict]:
        account = await self.users.find_one({"email": email}, {"cart": 1})
        if not account:
            raise NotFoundException("User not found")
        return account.get("cart") or []

    async def add(self, email: str, item_ref: Any, quantity: Any) -> List[dict]:
        item_ref = validate_item_ref(item_ref)
        quantity = validate_quantity(quantity)
        email = normalize_email(email)

        with error_boundary(logger, "cart add"):
            for _ in range(MERGE_ATTEMPTS):
                merged = await self.users.update_one(
                    {"email": email, "cart.item_ref": item_ref},
                    {"$inc": {"cart.$.quantity": quantity}},
                )
                if merged.matched_count:
                    break
                # The $ne guard keeps a concurrent add from creating a duplicate line
                appended = await self.users.update_one(
                    {"email": email, "cart.item_ref": {"$ne": item_ref}},
                    {"$push": {"cart": {"item_ref": item_ref, "quantity": quantity}}},
                )
                if appended.matched_count:
                    break
            else:
                # Neither update matched: a missing account raises 404 here
                await self._cart_of(email)
                logger.error("Cart add lost every merge attempt", extra={"email": email, "item_ref": item_ref})
                raise ServerErrorException("Cart update conflict, please retry")
            return await self._cart_of(email)

    async def get(self, email: str) -> List[dict]:
        with error_boundary(logger, "cart fetch"):
            return await self._cart_of(normalize_email(email))

    async def update_quantity(self, email: str, item_ref: Any, quantity: Any) -> List[dict]:
        """Set a line's quantity. A missing line is left alone and is not an error."""
        item_ref = validate_item_ref(item_ref)
        quantity = validate_quantity(quantity)
        email = normalize_email(email)

        with error_boundary(logger, "cart update"):
            await self.users.update_one(
                {"email": email, "cart.item_ref": item_ref},
                {"$set": {"cart.$.quantity": quantity}},
            )
            return await self._cart_of(email)

    async def remove(self, email: str, item_ref: Any) -> List[dict]:
        item_ref = validate_item_ref(item_ref)
        email = normalize_email(email)

        with error_boundary(logger, "cart remove"):
            await self.users.update_one({"email": email}, {"$pull": {"cart": {"item_ref": item_ref}}})
            return await self._cart_of(email)

    async def clear(self, email: str) -> List[dict]:
        email = normalize_email(email)
        with error_boundary(logger, "cart empty"):
            account = await self.users.find_one_and_update(
                {"email": email},
                {"$set": {"cart": []}},
                projection={"cart": 1},
                return_document=ReturnDocument.AFTER,
            )
        if not account:
            raise NotFoundException("User not found")
        return account.get("cart") or []

    async def count(self, email: str) -> dict:
        email = normalize_email(email)
        with error_boundary(logger, "cart count"):
            cart = await self._cart_of(email)
        return {
            "email": email,
            "line_count": len(cart),
            "total_quantity": sum(int(line.get("quantity") or 0) for line in cart),
        }
