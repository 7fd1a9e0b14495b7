"""
Catalog persistence helpers shared by the catalog routes and checkout.

Stock changes use single-document atomic updates so concurrent decrements of
the same item can never push ``quantity`` below zero.
"""
from datetime import datetime
from typing import Optional, List

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from vcd_store.catalog.schemas import CatalogItemResponse


def to_response(doc: dict) -> CatalogItemResponse:
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return CatalogItemResponse(**doc)


async def find_by_ref(db: AsyncIOMotorDatabase, item_ref: str) -> Optional[dict]:
    return await db.vcds.find_one({"item_ref": item_ref})


async def find_by_refs(db: AsyncIOMotorDatabase, item_refs: List[str]) -> List[dict]:
    if not item_refs:
        return []
    cursor = db.vcds.find({"item_ref": {"$in": item_refs}})
    return await cursor.to_list(length=None)


async def decrement_stock(
    db: AsyncIOMotorDatabase,
    quantity: int,
    item_ref: Optional[str] = None,
    name: Optional[str] = None,
) -> Optional[dict]:
    """
    Take ``quantity`` units out of stock, matching by item_ref (preferred) or name.

    Returns the updated document, or None when the item is absent or holds
    fewer than ``quantity`` units. In that case nothing is changed.
    """
    query = {"item_ref": item_ref} if item_ref else {"name": name}
    query["quantity"] = {"$gte": quantity}
    return await db.vcds.find_one_and_update(
        query,
        {"$inc": {"quantity": -quantity}, "$set": {"updated_at": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )


async def increment_stock(db: AsyncIOMotorDatabase, item_ref: str, quantity: int) -> bool:
    result = await db.vcds.update_one(
        {"item_ref": item_ref},
        {"$inc": {"quantity": quantity}, "$set": {"updated_at": datetime.utcnow()}},
    )
    return result.matched_count == 1
