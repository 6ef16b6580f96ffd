import pytest
from sqlalchemy import text

from crud6.db.tables import clear_table_cache

PRODUCT_PERMISSIONS = ("uri_products", "create_product", "update_product", "delete_product")
MEMBER_PERMISSIONS = ("uri_members", "create_member", "update_member", "delete_member")


def _h(email: str):
    return {"x-auth-request-user": email.split("@")[0], "x-auth-request-email": email}


@pytest.fixture
def manager(user_factory):
    return user_factory("manager@example.com", PRODUCT_PERMISSIONS + MEMBER_PERMISSIONS)


def _create_product(client, headers, **overrides):
    payload = {"name": "Widget", "sku": "W-1", "price": 9.5}
    payload.update(overrides)
    r = client.post("/api/crud6/products", json=payload, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["id"]


def test_create_product_returns_record(client, manager):
    h = _h(manager.email)
    r = client.post(
        "/api/crud6/products",
        json={"name": "Widget", "sku": "W-1", "price": "9.5", "launched_on": "2024-05-01"},
        headers=h,
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["title"] == "Successfully created Product"
    assert body["description"] == body["title"]
    assert isinstance(body["id"], int)
    data = body["data"]
    assert data["name"] == "Widget"
    assert data["price"] == 9.5
    # Schema default applied when the key is absent
    assert data["is_active"] is True
    assert data["launched_on"] == "2024-05-01"
    assert data["created_at"] is not None


def test_create_validation_errors(client, manager):
    h = _h(manager.email)
    r = client.post("/api/crud6/products", json={"sku": "W-2", "price": -1}, headers=h)
    assert r.status_code == 400
    body = r.json()
    assert body["detail"] == "Validation failed"
    assert body["errors"]["name"] == ["Name is required"]
    assert body["errors"]["price"] == ["Price must be at least 0"]

    r = client.post("/api/crud6/products", json={"name": "W", "price": "abc"}, headers=h)
    assert r.status_code == 400
    errors = r.json()["errors"]
    assert errors["name"] == ["Name must be at least 2 characters"]
    assert errors["price"] == ["Price must be a number"]


def test_create_rejects_duplicate_unique_value(client, manager):
    h = _h(manager.email)
    _create_product(client, h)
    r = client.post("/api/crud6/products", json={"name": "Other", "sku": "W-1"}, headers=h)
    assert r.status_code == 400
    assert r.json()["errors"]["sku"] == ["SKU must be unique"]


def test_read_record(client, manager):
    h = _h(manager.email)
    product_id = _create_product(client, h)
    r = client.get(f"/api/crud6/products/{product_id}", headers=h)
    assert r.status_code == 200
    body = r.json()
    assert body["model"] == "products"
    assert body["modelDisplayName"] == "Product"
    assert body["id"] == product_id
    assert body["message"] == "Retrieved Product for editing"
    assert body["data"]["sku"] == "W-1"


def test_read_missing_record_returns_404(client, manager):
    h = _h(manager.email)
    r = client.get("/api/crud6/products/999", headers=h)
    assert r.status_code == 404
    assert r.json()["detail"] == "No record found with ID '999' in table 'products'."

    r = client.get("/api/crud6/products/not-a-number", headers=h)
    assert r.status_code == 404


def test_update_record_partial(client, manager):
    h = _h(manager.email)
    product_id = _create_product(client, h)
    r = client.put(f"/api/crud6/products/{product_id}", json={"price": 12, "created_at": "2000-01-01"}, headers=h)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["title"] == "Updated"
    assert body["description"] == "Successfully updated Product"
    assert body["data"]["price"] == 12.0
    assert body["data"]["name"] == "Widget"
    # Readonly fields are ignored
    assert not body["data"]["created_at"].startswith("2000")


def test_update_keeps_own_unique_value(client, manager):
    h = _h(manager.email)
    product_id = _create_product(client, h)
    _create_product(client, h, name="Gadget", sku="G-1")

    r = client.put(f"/api/crud6/products/{product_id}", json={"sku": "W-1", "name": "Widget 2"}, headers=h)
    assert r.status_code == 200, r.text

    r = client.put(f"/api/crud6/products/{product_id}", json={"sku": "G-1"}, headers=h)
    assert r.status_code == 400
    assert "sku" in r.json()["errors"]


def test_update_single_field(client, manager):
    h = _h(manager.email)
    product_id = _create_product(client, h)
    r = client.put(f"/api/crud6/products/{product_id}/is_active", json={"is_active": False}, headers=h)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["description"] == "Successfully updated Active for Product"
    assert body["data"]["is_active"] is False

    r = client.put(f"/api/crud6/products/{product_id}/name", json={"value": "Renamed"}, headers=h)
    assert r.status_code == 200
    assert r.json()["data"]["name"] == "Renamed"


def test_update_single_field_rejections(client, manager):
    h = _h(manager.email)
    product_id = _create_product(client, h)

    r = client.put(f"/api/crud6/products/{product_id}/unknown", json={"value": 1}, headers=h)
    assert r.status_code == 404

    r = client.put(f"/api/crud6/products/{product_id}/created_at", json={"value": "2020-01-01"}, headers=h)
    assert r.status_code == 400
    assert r.json()["detail"] == "Field 'created_at' is not editable"

    r = client.put(f"/api/crud6/products/{product_id}/name", json={}, headers=h)
    assert r.status_code == 400

    r = client.put(f"/api/crud6/products/{product_id}/name", json={"name": "x"}, headers=h)
    assert r.status_code == 400
    assert "name" in r.json()["errors"]


def test_soft_delete_hides_record(client, manager, db_session):
    h = _h(manager.email)
    product_id = _create_product(client, h)
    r = client.delete(f"/api/crud6/products/{product_id}", headers=h)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["soft_delete"] is True
    assert body["message"] == "Successfully deleted Product"

    assert client.get(f"/api/crud6/products/{product_id}", headers=h).status_code == 404
    listing = client.get("/api/crud6/products", headers=h).json()
    assert listing["count"] == 0

    deleted_at = db_session.execute(
        text("SELECT deleted_at FROM products WHERE id = :id"), {"id": product_id}
    ).scalar_one()
    assert deleted_at is not None


def test_delete_missing_record_returns_404(client, manager):
    r = client.delete("/api/crud6/products/12345", headers=_h(manager.email))
    assert r.status_code == 404


def test_list_sorting_filtering_and_paging(client, manager):
    h = _h(manager.email)
    _create_product(client, h, name="Alpha", sku="A", price=3)
    _create_product(client, h, name="Bravo", sku="B", price=1, is_active=False)
    _create_product(client, h, name="Charlie", sku="C", price=2)

    body = client.get("/api/crud6/products", headers=h).json()
    assert body["count"] == 3
    assert body["count_filtered"] == 3
    # Default sort comes from the schema
    assert [row["name"] for row in body["rows"]] == ["Alpha", "Bravo", "Charlie"]
    # Non-listable columns are left out
    assert "description" not in body["rows"][0]
    assert "id" in body["rows"][0]

    body = client.get("/api/crud6/products", params={"sorts[price]": "desc", "size": 2, "page": 0}, headers=h).json()
    assert [row["name"] for row in body["rows"]] == ["Alpha", "Charlie"]
    assert body["count"] == 3

    body = client.get("/api/crud6/products", params={"sorts[price]": "desc", "size": 2, "page": 1}, headers=h).json()
    assert [row["name"] for row in body["rows"]] == ["Bravo"]

    body = client.get("/api/crud6/products", params={"filters[name]": "ha||bra"}, headers=h).json()
    assert sorted(row["name"] for row in body["rows"]) == ["Alpha", "Bravo", "Charlie"]

    body = client.get("/api/crud6/products", params={"filters[is_active]": "0"}, headers=h).json()
    assert [row["name"] for row in body["rows"]] == ["Bravo"]
    assert body["count"] == 3
    assert body["count_filtered"] == 1

    body = client.get("/api/crud6/products", params={"search": "char"}, headers=h).json()
    assert [row["name"] for row in body["rows"]] == ["Charlie"]

    body = client.get("/api/crud6/products", params={"lists[]": "is_active"}, headers=h).json()
    assert sorted(body["listable"]["is_active"]) == [False, True]


def test_list_rejects_unknown_sort_and_filter(client, manager):
    h = _h(manager.email)
    r = client.get("/api/crud6/products", params={"sorts[sku]": "asc"}, headers=h)
    assert r.status_code == 400
    assert "sorts" in r.json()["errors"]

    r = client.get("/api/crud6/products", params={"filters[description]": "x"}, headers=h)
    assert r.status_code == 400

    r = client.get("/api/crud6/products", params={"sorts[name]": "sideways"}, headers=h)
    assert r.status_code == 400

    r = client.get("/api/crud6/products", params={"size": "-1"}, headers=h)
    assert r.status_code == 400


def test_member_password_is_hashed_and_hidden(client, manager, db_session):
    h = _h(manager.email)
    r = client.post(
        "/api/crud6/members",
        json={"user_name": "alice", "email": "alice@example.com", "password": "correct horse"},
        headers=h,
    )
    assert r.status_code == 201, r.text
    member_id = r.json()["id"]
    assert "password" not in r.json()["data"]

    stored = db_session.execute(
        text("SELECT password FROM members WHERE id = :id"), {"id": member_id}
    ).scalar_one()
    assert stored.startswith("$argon2")

    # An empty password on update keeps the stored hash
    r = client.put(f"/api/crud6/members/{member_id}", json={"password": "", "user_name": "alice2"}, headers=h)
    assert r.status_code == 200, r.text
    unchanged = db_session.execute(
        text("SELECT password FROM members WHERE id = :id"), {"id": member_id}
    ).scalar_one()
    assert unchanged == stored

    r = client.post(
        "/api/crud6/members",
        json={"user_name": "bob", "email": "bob@example.com", "password": "short"},
        headers=h,
    )
    assert r.status_code == 400
    assert r.json()["errors"]["password"] == ["Password must be at least 8 characters"]


def test_member_relationship_actions(client, manager, db_session):
    h = _h(manager.email)
    r = client.post("/api/crud6/members", json={"user_name": "carol", "email": "carol@example.com"}, headers=h)
    assert r.status_code == 201, r.text
    member_id = r.json()["id"]

    rows = db_session.execute(
        text("SELECT role_id, assigned_by, created_at FROM member_roles WHERE member_id = :id"), {"id": member_id}
    ).all()
    assert len(rows) == 1
    assert rows[0].role_id == 1
    assert rows[0].assigned_by == str(manager.id)
    assert rows[0].created_at is not None

    r = client.put(f"/api/crud6/members/{member_id}", json={"roles_ids": [2, 3]}, headers=h)
    assert r.status_code == 200, r.text
    role_ids = db_session.execute(
        text("SELECT role_id FROM member_roles WHERE member_id = :id ORDER BY role_id"), {"id": member_id}
    ).scalars().all()
    assert role_ids == [2, 3]

    r = client.delete(f"/api/crud6/members/{member_id}", headers=h)
    assert r.status_code == 200
    assert r.json()["soft_delete"] is False
    remaining = db_session.execute(
        text("SELECT COUNT(*) FROM member_roles WHERE member_id = :id"), {"id": member_id}
    ).scalar_one()
    assert remaining == 0


def test_create_reflecting_pivot_table_mid_transaction(client, manager, db_session):
    clear_table_cache()
    r = client.post("/api/crud6/members", json={"user_name": "zed", "email": "zed@example.com"}, headers=_h(manager.email))
    assert r.status_code == 201, r.text
    member_id = r.json()["id"]
    assert r.json()["data"]["user_name"] == "zed"

    assert db_session.execute(text("SELECT COUNT(*) FROM members")).scalar_one() == 1
    attached = db_session.execute(
        text("SELECT role_id FROM member_roles WHERE member_id = :id"), {"id": member_id}
    ).scalars().all()
    assert attached == [1]


def test_sync_keeps_pivot_data_of_retained_roles(client, manager, db_session):
    h = _h(manager.email)
    r = client.post("/api/crud6/members", json={"user_name": "frank", "email": "frank@example.com"}, headers=h)
    assert r.status_code == 201, r.text
    member_id = r.json()["id"]
    before = db_session.execute(
        text("SELECT assigned_by, created_at FROM member_roles WHERE member_id = :id AND role_id = 1"),
        {"id": member_id},
    ).one()

    r = client.put(f"/api/crud6/members/{member_id}", json={"roles_ids": [1, 2]}, headers=h)
    assert r.status_code == 200, r.text
    rows = db_session.execute(
        text("SELECT role_id, assigned_by, created_at FROM member_roles WHERE member_id = :id ORDER BY role_id"),
        {"id": member_id},
    ).all()
    assert [row.role_id for row in rows] == [1, 2]
    assert rows[0].assigned_by == str(manager.id)
    assert rows[0].created_at == before.created_at
    assert rows[1].assigned_by is None

def test_unknown_model_and_invalid_name(client, manager):
    h = _h(manager.email)
    r = client.get("/api/crud6/unicorns", headers=h)
    assert r.status_code == 404
    assert r.json()["detail"] == "Schema file not found for model: unicorns"

    r = client.get("/api/crud6/bad-name", headers=h)
    assert r.status_code == 400

    r = client.get("/api/crud6/broken", headers=h)
    assert r.status_code == 500
