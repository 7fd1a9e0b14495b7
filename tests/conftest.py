import os

# Must be set before the application settings are loaded
os.environ["RATE_LIMIT_ENABLED"] = "false"

import httpx
import pytest
from mongomock_motor import AsyncMongoMockClient

from vcd_store.main import app, create_unique_indexes
from vcd_store.auth.access import AdminGate
from vcd_store.catalog.models import CatalogItemDB
from vcd_store.shared.utils import settings, create_access_token, Identity

BUYER_EMAIL = "buyer@vcdstore.com"
BUYER_PASSWORD = "Password123"


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def token_for(email: str, role: str = "user", user_id: str = "u-1") -> str:
    return create_access_token(Identity(id=user_id, email=email, role=role).claims())


async def seed_item(db, item_ref: str, quantity: int, cost: float = 100, name: str = None) -> dict:
    item = CatalogItemDB(item_ref=item_ref, name=name or f"Movie {item_ref}", quantity=quantity, cost=cost,
                         images=[f"https://img.example/{item_ref}.jpg"])
    await db.vcds.insert_one(item.dict(by_alias=True, exclude={"id"}))
    return await db.vcds.find_one({"item_ref": item_ref})


async def stock_of(db, item_ref: str) -> int:
    doc = await db.vcds.find_one({"item_ref": item_ref})
    return doc["quantity"]


@pytest.fixture
async def db():
    client = AsyncMongoMockClient()
    database = client["vcd_store_test"]
    await create_unique_indexes(database)
    return database


@pytest.fixture
async def api(db):
    app.mongodb = db
    app.state.admin_gate = AdminGate(settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD, allow_legacy=True)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def buyer(api):
    """A registered account; returns the signup payload plus auth headers."""
    resp = await api.post("/api/auth/signup", json={
        "email": BUYER_EMAIL,
        "password": BUYER_PASSWORD,
        "first_name": "Asha",
        "last_name": "Rao",
    })
    assert resp.status_code == 201, resp.text
    body = resp.json()
    body["headers"] = bearer(body["token"])
    return body


@pytest.fixture
def admin_headers():
    return bearer(token_for(settings.ADMIN_EMAIL, role="admin", user_id="admin"))


@pytest.fixture
def user_headers():
    return bearer(token_for("someone@vcdstore.com"))
