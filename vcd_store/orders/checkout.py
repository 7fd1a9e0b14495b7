"""
Checkout: turn a list of purchased items into a placed order.

The steps run in sequence without a wrapping transaction:

1. confirm the buyer's account exists
2. take each item out of stock with a conditional decrement
3. total the items
4. store the order snapshot
5. optionally empty the buyer's cart

A failed decrement stops the checkout and no order is written, but units
already taken for earlier items stay taken unless ``compensate`` is on.
A cart that cannot be emptied does not undo the order; it is reported back
as a warning.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from vcd_store.shared.security_config import normalize_email
from vcd_store.shared.utils import error_boundary, ValidationException, NotFoundException
from vcd_store.catalog import store
from vcd_store.cart.service import CartService
from vcd_store.orders.models import OrderDB, OrderItemDB
from vcd_store.orders.schemas import OrderItemIn

logger = logging.getLogger("vcd-store.checkout")


@dataclass
class CheckoutResult:
    order: dict
    warnings: List[str] = field(default_factory=list)

    @property
    def order_id(self) -> str:
        return self.order["id"]


def order_to_dict(doc: dict) -> dict:
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return doc


class CheckoutOrchestrator:
    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        compensate: bool = False,
        use_catalog_prices: bool = False,
    ):
        self.db = db
        self.compensate = compensate
        self.use_catalog_prices = use_catalog_prices

    async def place_order(
        self,
        email: str,
        items: Sequence[OrderItemIn],
        payment_method: Optional[str] = None,
        address: Optional[str] = None,
        clear_cart: bool = True,
    ) -> CheckoutResult:
        email = normalize_email(email)
        if not email or not items:
            raise ValidationException("email and non-empty items array required")

        with error_boundary(logger, "create order"):
            account = await self.db.users.find_one({"email": email}, {"_id": 1})
            if not account:
                raise NotFoundException("User not found")

            taken = await self._take_stock(items)
            order_items = [self._snapshot(item, catalog_doc) for item, catalog_doc in zip(items, taken)]
            total = sum(line.price * line.quantity for line in order_items)

            order_db = OrderDB(
                user_id=str(account["_id"]),
                email=email,
                items=order_items,
                total=total,
                payment_method=payment_method or "unknown",
                address=address or "",
            )
            result = await self.db.orders.insert_one(order_db.dict(by_alias=True, exclude={"id"}))
            created = await self.db.orders.find_one({"_id": result.inserted_id})

        order = order_to_dict(created)
        logger.info("Order placed", extra={"order_id": order["id"], "email": email})

        warnings = []
        if clear_cart:
            try:
                await CartService(self.db).clear(email)
            except Exception:
                logger.warning("Order placed but cart could not be cleared", exc_info=True,
                               extra={"order_id": order["id"]})
                warnings.append("Order placed, but the cart could not be cleared")

        return CheckoutResult(order=order, warnings=warnings)

    async def _take_stock(self, items: Sequence[OrderItemIn]) -> List[dict]:
        taken: List[Tuple[OrderItemIn, dict]] = []
        for item in items:
            updated = await store.decrement_stock(self.db, item.quantity, item_ref=item.item_ref)
            if updated is None:
                logger.warning(
                    "Stock decrement failed after %d successful decrement(s)", len(taken),
                    extra={"item_ref": item.item_ref},
                )
                if self.compensate:
                    await self._restock(taken)
                raise NotFoundException(f"{item.item_ref}: VCD not found or insufficient quantity")
            taken.append((item, updated))
        return [doc for _, doc in taken]

    async def _restock(self, taken: List[Tuple[OrderItemIn, dict]]):
        for item, _ in reversed(taken):
            try:
                restored = await store.increment_stock(self.db, item.item_ref, item.quantity)
            except Exception:
                logger.exception("Restock failed", extra={"item_ref": item.item_ref})
                continue
            if not restored:
                logger.error("Restock target disappeared", extra={"item_ref": item.item_ref})

    def _snapshot(self, item: OrderItemIn, catalog_doc: dict) -> OrderItemDB:
        if self.use_catalog_prices:
            return OrderItemDB(
                item_ref=item.item_ref,
                title=catalog_doc.get("name", item.title),
                price=float(catalog_doc.get("cost", 0)),
                quantity=item.quantity,
            )
        return OrderItemDB(item_ref=item.item_ref, title=item.title, price=item.price, quantity=item.quantity)


async def list_orders(db: AsyncIOMotorDatabase, email: str) -> List[dict]:
    email = normalize_email(email)
    if not email:
        raise ValidationException("Email is required")
    with error_boundary(logger, "fetch orders"):
        docs = await db.orders.find({"email": email}, sort=[("placed_at", -1)]).to_list(length=None)
    return [order_to_dict(doc) for doc in docs]
