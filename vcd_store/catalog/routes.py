import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from vcd_store.shared.utils import (
    get_database, require_auth, error_boundary, SuccessResponse,
    Identity, ValidationException, NotFoundException,
)
from vcd_store.auth.access import require_admin
from vcd_store.catalog.models import CatalogItemDB
from vcd_store.catalog.schemas import (
    CatalogItemCreate, CatalogItemUpdate, CatalogItemResponse,
    StockDecrease, ImagesResponse,
)
from vcd_store.catalog import store

logger = logging.getLogger("vcd-store.catalog")

router = APIRouter(prefix="/vcds", tags=["catalog"])


async def apply_update(db: AsyncIOMotorDatabase, query: dict, update: CatalogItemUpdate) -> dict:
    update_data = update.dict(exclude_unset=True)
    if not update_data:
        item = await db.vcds.find_one(query, sort=[("_id", 1)])
    else:
        update_data["updated_at"] = datetime.utcnow()
        try:
            item = await db.vcds.find_one_and_update(
                query,
                {"$set": update_data},
                sort=[("_id", 1)],
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            raise ValidationException(f"VCD with item_ref '{update_data.get('item_ref')}' already exists")
    if not item:
        raise NotFoundException("VCD not found")
    return item


async def delete_one(db: AsyncIOMotorDatabase, query: dict) -> dict:
    deleted = await db.vcds.find_one_and_delete(query, sort=[("_id", 1)])
    if not deleted:
        raise NotFoundException("VCD not found")
    return deleted


# --- Admin ---

@router.post("", response_model=SuccessResponse[CatalogItemResponse], status_code=status.HTTP_201_CREATED)
async def create_item(
    item: CatalogItemCreate,
    admin: Optional[Identity] = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    with error_boundary(logger, "create VCD"):
        item_db = CatalogItemDB(**item.dict())
        try:
            result = await db.vcds.insert_one(item_db.dict(by_alias=True, exclude={"id"}))
        except DuplicateKeyError:
            raise ValidationException(f"VCD with item_ref '{item.item_ref}' already exists")
        created = store.to_response(await db.vcds.find_one({"_id": result.inserted_id}))
    logger.info("VCD created", extra={"item_ref": item.item_ref})
    return SuccessResponse(data=created, message="VCD added successfully")


@router.delete("/by-name/{name}", response_model=SuccessResponse[dict])
async def delete_by_name(
    name: str,
    admin: Optional[Identity] = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    with error_boundary(logger, "delete VCD by name", "Deletion failed"):
        deleted = await delete_one(db, {"name": name})
    return SuccessResponse(data={"item_ref": deleted["item_ref"]}, message="VCD deleted successfully")


@router.patch("/by-name/{name}", response_model=SuccessResponse[CatalogItemResponse])
async def update_by_name(
    name: str,
    update: CatalogItemUpdate,
    admin: Optional[Identity] = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    with error_boundary(logger, "update VCD by name", "Update failed"):
        updated = store.to_response(await apply_update(db, {"name": name}, update))
    return SuccessResponse(data=updated, message="VCD updated successfully")


@router.delete("/by-id/{item_ref}", response_model=SuccessResponse[dict])
async def delete_by_ref(
    item_ref: str,
    admin: Optional[Identity] = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    with error_boundary(logger, "delete VCD", "Deletion failed"):
        deleted = await delete_one(db, {"item_ref": item_ref.strip()})
    return SuccessResponse(data={"item_ref": deleted["item_ref"]}, message="VCD deleted successfully")


@router.patch("/by-id/{item_ref}", response_model=SuccessResponse[CatalogItemResponse])
async def update_by_ref(
    item_ref: str,
    update: CatalogItemUpdate,
    admin: Optional[Identity] = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    with error_boundary(logger, "update VCD", "Update failed"):
        updated = store.to_response(await apply_update(db, {"item_ref": item_ref.strip()}, update))
    return SuccessResponse(data=updated, message="VCD updated successfully")


# --- Public ---

@router.get("", response_model=List[CatalogItemResponse])
async def list_items(db: AsyncIOMotorDatabase = Depends(get_database)):
    with error_boundary(logger, "list VCDs"):
        docs = await db.vcds.find({}).to_list(length=None)
        return [store.to_response(doc) for doc in docs]


@router.get("/by-ids", response_model=List[CatalogItemResponse])
async def list_by_ids(ids: str = Query(""), db: AsyncIOMotorDatabase = Depends(get_database)):
    refs = [s.strip() for s in ids.split(",") if s.strip()]
    with error_boundary(logger, "list VCDs by ids", "Failed to fetch VCDs"):
        docs = await store.find_by_refs(db, refs)
        return [store.to_response(doc) for doc in docs]


@router.get("/by-id/{item_ref}", response_model=CatalogItemResponse)
async def get_item(item_ref: str, db: AsyncIOMotorDatabase = Depends(get_database)):
    with error_boundary(logger, "get VCD"):
        doc = await store.find_by_ref(db, item_ref.strip())
        if not doc:
            raise NotFoundException("VCD not found")
        return store.to_response(doc)


@router.patch("/decrease", response_model=SuccessResponse[CatalogItemResponse])
async def decrease_stock(body: StockDecrease, db: AsyncIOMotorDatabase = Depends(get_database)):
    key = body.item_ref or body.name
    with error_boundary(logger, "decrease stock", "Failed to decrease quantity"):
        updated = await store.decrement_stock(db, body.quantity, item_ref=body.item_ref, name=body.name)
        if not updated:
            raise NotFoundException("VCD not found or insufficient quantity")
        data = store.to_response(updated)
    logger.info("Stock decreased", extra={"item_ref": data.item_ref})
    return SuccessResponse(
        data=data,
        message=f"Quantity of '{key}' decreased by {body.quantity}",
    )


@router.get("/images/{item_ref}", response_model=ImagesResponse)
async def get_images(
    item_ref: str,
    identity: Identity = Depends(require_auth),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    item_ref = item_ref.strip()
    with error_boundary(logger, "get VCD images", "Failed to fetch images"):
        doc = await db.vcds.find_one({"item_ref": item_ref}, {"images": 1, "name": 1, "item_ref": 1})
        if not doc:
            raise NotFoundException(f"VCD with id '{item_ref}' not found")
        return ImagesResponse(item_ref=doc["item_ref"], name=doc["name"], images=doc.get("images") or [])
