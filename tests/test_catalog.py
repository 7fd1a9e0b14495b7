import pytest

from vcd_store.main import app
from vcd_store.auth.access import AdminGate
from vcd_store.catalog import store
from vcd_store.shared.utils import settings
from conftest import bearer, token_for, seed_item, stock_of

NEW_VCD = {
    "item_ref": "BW-001",
    "name": "Sholay",
    "images": ["https://img.example/sholay.jpg"],
    "summary": "Two ex-convicts are hired to capture a ruthless dacoit.",
    "year": 1975,
    "cast": {"leads": ["Dharmendra", "Amitabh Bachchan"], "featured": ["Hema Malini"]},
    "genre": {"primary": "Action", "tags": ["classic", "western"]},
    "language": "Hindi",
    "category": "Bollywood",
    "rating": 4.8,
    "director": "Ramesh Sippy",
    "runtime_minutes": 204,
    "quantity": 6,
    "cost": 149,
}


def legacy_admin(**extra):
    return {"email": settings.ADMIN_EMAIL, "password": settings.ADMIN_PASSWORD, **extra}


# --- Admin mutations ---

async def test_admin_can_create_vcd(api, db, admin_headers):
    resp = await api.post("/api/vcds", json=NEW_VCD, headers=admin_headers)
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "VCD added successfully"
    assert body["data"]["item_ref"] == "BW-001"
    assert body["data"]["cast"]["leads"] == ["Dharmendra", "Amitabh Bachchan"]
    assert await stock_of(db, "BW-001") == 6


async def test_plain_user_cannot_mutate_catalog(api, db, user_headers):
    await seed_item(db, "A", quantity=2)

    resp = await api.post("/api/vcds", json=NEW_VCD, headers=user_headers)
    assert resp.status_code == 403
    assert resp.json()["error"] == "Access denied. Admin only."

    resp = await api.patch("/api/vcds/by-id/A", json={"cost": 1}, headers=user_headers)
    assert resp.status_code == 403

    resp = await api.delete("/api/vcds/by-id/A", headers=user_headers)
    assert resp.status_code == 403

    assert await db.vcds.count_documents({}) == 1
    assert await stock_of(db, "A") == 2


async def test_configured_admin_email_is_admin_whatever_the_role(api):
    headers = bearer(token_for(settings.ADMIN_EMAIL.upper(), role="user"))
    resp = await api.post("/api/vcds", json=NEW_VCD, headers=headers)
    assert resp.status_code == 201


async def test_anonymous_request_is_forbidden(api):
    resp = await api.post("/api/vcds", json=NEW_VCD)
    assert resp.status_code == 403


async def test_invalid_token_is_unauthorized(api):
    resp = await api.post("/api/vcds", json=NEW_VCD, headers=bearer("garbage"))
    assert resp.status_code == 401


async def test_legacy_body_credentials_grant_admin(api):
    resp = await api.post("/api/vcds", json=legacy_admin(**NEW_VCD))
    assert resp.status_code == 201


async def test_legacy_body_credentials_with_wrong_password(api):
    resp = await api.post("/api/vcds", json={**NEW_VCD, "email": settings.ADMIN_EMAIL, "password": "nope"})
    assert resp.status_code == 403


async def test_legacy_body_credentials_can_be_disabled(api):
    app.state.admin_gate = AdminGate(settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD, allow_legacy=False)
    resp = await api.post("/api/vcds", json=legacy_admin(**NEW_VCD))
    assert resp.status_code == 403


async def test_duplicate_item_ref_is_rejected(api, db, admin_headers):
    await seed_item(db, "BW-001", quantity=1)
    resp = await api.post("/api/vcds", json=NEW_VCD, headers=admin_headers)
    assert resp.status_code == 400
    assert "already exists" in resp.json()["error"]
    assert await db.vcds.count_documents({}) == 1


async def test_create_validates_fields(api, admin_headers):
    resp = await api.post("/api/vcds", json={**NEW_VCD, "rating": 9}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["details"][0]["field"] == "rating"

    resp = await api.post("/api/vcds", json={**NEW_VCD, "category": "Tollywood"}, headers=admin_headers)
    assert resp.status_code == 400

    resp = await api.post("/api/vcds", json={**NEW_VCD, "quantity": -1}, headers=admin_headers)
    assert resp.status_code == 400


async def test_partial_update_by_name_keeps_other_fields(api, db, admin_headers):
    await api.post("/api/vcds", json=NEW_VCD, headers=admin_headers)

    resp = await api.patch("/api/vcds/by-name/Sholay", json={"cost": 199, "quantity": 10}, headers=admin_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["cost"] == 199
    assert data["quantity"] == 10
    assert data["director"] == "Ramesh Sippy"
    assert data["genre"]["tags"] == ["classic", "western"]
    assert data["updated_at"] is not None


async def test_update_by_ref(api, db, admin_headers):
    await seed_item(db, "A", quantity=2, cost=100)
    resp = await api.patch("/api/vcds/by-id/A", json={"summary": "Restored print"}, headers=admin_headers)
    assert resp.status_code == 200
    stored = await store.find_by_ref(db, "A")
    assert stored["summary"] == "Restored print"
    assert stored["cost"] == 100


async def test_update_of_missing_vcd_is_404(api, admin_headers):
    resp = await api.patch("/api/vcds/by-name/Nope", json={"cost": 1}, headers=admin_headers)
    assert resp.status_code == 404
    assert resp.json()["error"] == "VCD not found"


async def test_delete_by_name_and_by_ref(api, db, admin_headers):
    await seed_item(db, "A", quantity=1, name="Anand")
    await seed_item(db, "B", quantity=1)

    resp = await api.delete("/api/vcds/by-name/Anand", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"] == {"item_ref": "A"}

    resp = await api.delete("/api/vcds/by-id/B", headers=admin_headers)
    assert resp.status_code == 200
    assert await db.vcds.count_documents({}) == 0

    resp = await api.delete("/api/vcds/by-id/B", headers=admin_headers)
    assert resp.status_code == 404


async def test_delete_with_legacy_credentials_in_body(api, db):
    await seed_item(db, "A", quantity=1)
    resp = await api.request("DELETE", "/api/vcds/by-id/A", json=legacy_admin())
    assert resp.status_code == 200


# --- Public reads ---

async def test_list_is_public(api, db):
    await seed_item(db, "A", quantity=1)
    await seed_item(db, "B", quantity=0)
    resp = await api.get("/api/vcds")
    assert resp.status_code == 200
    assert sorted(v["item_ref"] for v in resp.json()) == ["A", "B"]


async def test_by_ids_returns_only_matches(api, db):
    for ref in ("A", "B", "C"):
        await seed_item(db, ref, quantity=1)
    resp = await api.get("/api/vcds/by-ids", params={"ids": "A, C,MISSING,"})
    assert sorted(v["item_ref"] for v in resp.json()) == ["A", "C"]

    resp = await api.get("/api/vcds/by-ids")
    assert resp.json() == []


async def test_get_by_ref(api, db):
    await seed_item(db, "A", quantity=3, cost=75)
    resp = await api.get("/api/vcds/by-id/A")
    assert resp.status_code == 200
    assert resp.json()["cost"] == 75

    resp = await api.get("/api/vcds/by-id/NOPE")
    assert resp.status_code == 404


async def test_images_require_a_token(api, db, user_headers):
    await seed_item(db, "A", quantity=1)

    resp = await api.get("/api/vcds/images/A")
    assert resp.status_code == 401

    resp = await api.get("/api/vcds/images/A", headers=user_headers)
    assert resp.status_code == 200
    assert resp.json() == {"item_ref": "A", "name": "Movie A", "images": ["https://img.example/A.jpg"]}

    resp = await api.get("/api/vcds/images/NOPE", headers=user_headers)
    assert resp.status_code == 404


# --- Stock decrease ---

async def test_decrease_by_ref(api, db):
    await seed_item(db, "A", quantity=3)
    resp = await api.patch("/api/vcds/decrease", json={"item_ref": "A", "quantity": 2})
    assert resp.status_code == 200
    assert resp.json()["data"]["quantity"] == 1
    assert await stock_of(db, "A") == 1


async def test_decrease_by_name(api, db):
    await seed_item(db, "A", quantity=3, name="Anand")
    resp = await api.patch("/api/vcds/decrease", json={"name": "Anand", "quantity": 3})
    assert resp.status_code == 200
    assert await stock_of(db, "A") == 0


async def test_decrease_beyond_stock_changes_nothing(api, db):
    await seed_item(db, "A", quantity=3)
    resp = await api.patch("/api/vcds/decrease", json={"item_ref": "A", "quantity": 5})
    assert resp.status_code == 404
    assert resp.json()["error"] == "VCD not found or insufficient quantity"
    assert await stock_of(db, "A") == 3


@pytest.mark.parametrize("payload", [{"quantity": 1}, {"item_ref": "A", "quantity": 0}, {"item_ref": "A"}])
async def test_decrease_rejects_bad_requests(api, db, payload):
    await seed_item(db, "A", quantity=3)
    resp = await api.patch("/api/vcds/decrease", json=payload)
    assert resp.status_code == 400
    assert await stock_of(db, "A") == 3


async def test_stock_never_goes_negative(db):
    await seed_item(db, "A", quantity=3)
    results = [await store.decrement_stock(db, 1, item_ref="A") for _ in range(5)]
    assert sum(r is not None for r in results) == 3
    assert await stock_of(db, "A") == 0


@pytest.mark.parametrize("field", ["cost", "quantity", "name", "item_ref", "images", "cast"])
async def test_update_cannot_null_a_required_field(api, db, admin_headers, field):
    await api.post("/api/vcds", json=NEW_VCD, headers=admin_headers)

    resp = await api.patch("/api/vcds/by-name/Sholay", json={field: None}, headers=admin_headers)
    assert resp.status_code == 400
    assert field in resp.json()["error"]

    resp = await api.patch("/api/vcds/by-id/BW-001", json={"summary": "x", field: None}, headers=admin_headers)
    assert resp.status_code == 400

    stored = await store.find_by_ref(db, "BW-001")
    assert stored[field] is not None
    assert stored["summary"] == NEW_VCD["summary"]


async def test_update_can_clear_optional_metadata(api, db, admin_headers):
    await api.post("/api/vcds", json=NEW_VCD, headers=admin_headers)

    resp = await api.patch("/api/vcds/by-id/BW-001", json={"rating": None, "language": None}, headers=admin_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["rating"] is None
    assert data["language"] is None
    assert data["cost"] == 149


async def test_public_reads_still_work_after_admin_edits(api, db, admin_headers):
    await api.post("/api/vcds", json=NEW_VCD, headers=admin_headers)
    await api.patch("/api/vcds/by-name/Sholay", json={"cost": None}, headers=admin_headers)
    await api.patch("/api/vcds/by-name/Sholay", json={"cost": 99, "year": None}, headers=admin_headers)

    resp = await api.get("/api/vcds")
    assert resp.status_code == 200
    [item] = resp.json()
    assert item["cost"] == 99
    assert item["year"] is None

    resp = await api.get("/api/vcds/by-id/BW-001")
    assert resp.status_code == 200

    resp = await api.patch("/api/vcds/decrease", json={"item_ref": "BW-001", "quantity": 1})
    assert resp.status_code == 200
    assert resp.json()["data"]["quantity"] == 5


async def test_unreadable_stored_document_is_a_server_error(api, db):
    await seed_item(db, "A", quantity=1)
    await db.vcds.update_one({"item_ref": "A"}, {"$set": {"cost": None}})

    resp = await api.get("/api/vcds/by-id/A")
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "Internal Server Error"}
