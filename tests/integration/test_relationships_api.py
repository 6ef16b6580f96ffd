import pytest
from sqlalchemy import text

PERMISSIONS = (
    "uri_products", "create_product", "update_product", "delete_product",
    "uri_categories", "create_category", "update_category", "delete_category",
    "uri_orders", "create_order", "update_order", "delete_order",
)


def _h(email: str):
    return {"x-auth-request-user": email.split("@")[0], "x-auth-request-email": email}


@pytest.fixture
def h(user_factory):
    user = user_factory("catalog@example.com", PERMISSIONS)
    return _h(user.email)


def _post(client, h, model, payload):
    r = client.post(f"/api/crud6/{model}", json=payload, headers=h)
    assert r.status_code == 201, r.text
    return r.json()["id"]


def _insert_order_line(db_session, order_id, product_name, quantity=1):
    db_session.execute(
        text("INSERT INTO order_details (order_id, product_name, quantity) VALUES (:o, :p, :q)"),
        {"o": order_id, "p": product_name, "q": quantity},
    )
    db_session.commit()


def test_attach_and_detach_many_to_many(client, h, db_session):
    product_id = _post(client, h, "products", {"name": "Widget"})

    r = client.post(f"/api/crud6/products/{product_id}/tags", json={"ids": [1, 2]}, headers=h)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["title"] == "Success"
    assert body["description"] == "Successfully attached 2 tags"
    assert body["data"] == {"relation": "tags", "ids": [1, 2], "count": 2}

    # Already attached ids are skipped
    r = client.post(f"/api/crud6/products/{product_id}/tags", json={"ids": [2, 3]}, headers=h)
    assert r.json()["data"]["count"] == 1

    r = client.request("DELETE", f"/api/crud6/products/{product_id}/tags", json={"ids": [1]}, headers=h)
    assert r.status_code == 200, r.text
    assert r.json()["description"] == "Successfully detached 1 tags"

    tag_ids = db_session.execute(
        text("SELECT tag_id FROM product_tags WHERE product_id = :id ORDER BY tag_id"), {"id": product_id}
    ).scalars().all()
    assert tag_ids == [2, 3]


def test_attach_rejections(client, h):
    product_id = _post(client, h, "products", {"name": "Widget"})

    r = client.post(f"/api/crud6/products/{product_id}/tags", json={"ids": []}, headers=h)
    assert r.status_code == 400

    r = client.post(f"/api/crud6/products/{product_id}/colors", json={"ids": [1]}, headers=h)
    assert r.status_code == 404

    r = client.post("/api/crud6/products/999/tags", json={"ids": [1]}, headers=h)
    assert r.status_code == 404


def test_list_detail_children(client, h):
    tools = _post(client, h, "categories", {"name": "Tools", "slug": "tools"})
    toys = _post(client, h, "categories", {"name": "Toys"})
    _post(client, h, "products", {"name": "Hammer", "price": 12, "category_id": tools})
    saw = _post(client, h, "products", {"name": "Saw", "price": 20, "category_id": str(tools)})
    _post(client, h, "products", {"name": "Yo-yo", "price": 2, "category_id": toys})

    r = client.get(f"/api/crud6/categories/{tools}/products", headers=h)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["count"] == 2
    assert [row["name"] for row in body["rows"]] == ["Hammer", "Saw"]
    assert set(body["rows"][0]) == {"id", "name", "price"}

    # Soft-deleted children drop out of the listing
    client.delete(f"/api/crud6/products/{saw}", headers=h)
    body = client.get(f"/api/crud6/categories/{tools}/products", headers=h).json()
    assert [row["name"] for row in body["rows"]] == ["Hammer"]

    r = client.get(f"/api/crud6/categories/{tools}/suppliers", headers=h)
    assert r.status_code == 404


def test_hard_delete_cascades_to_children(client, h, db_session):
    tools = _post(client, h, "categories", {"name": "Tools"})
    _post(client, h, "products", {"name": "Hammer", "category_id": tools})
    _post(client, h, "products", {"name": "Saw", "category_id": tools})

    r = client.delete(f"/api/crud6/categories/{tools}", headers=h)
    assert r.status_code == 200, r.text
    assert r.json()["soft_delete"] is False

    remaining = db_session.execute(
        text("SELECT COUNT(*) FROM products WHERE category_id = :id"), {"id": tools}
    ).scalar_one()
    assert remaining == 0


def test_soft_delete_cascades_to_soft_deletable_children(client, h, db_session):
    order_id = _post(client, h, "orders", {"order_number": "SO-1", "customer_email": "buyer@example.com"})
    _insert_order_line(db_session, order_id, "Hammer", 2)
    _insert_order_line(db_session, order_id, "Saw", 1)

    body = client.get(f"/api/crud6/orders/{order_id}/order_details", headers=h).json()
    assert body["count"] == 2
    assert [row["product_name"] for row in body["rows"]] == ["Hammer", "Saw"]

    r = client.delete(f"/api/crud6/orders/{order_id}", headers=h)
    assert r.status_code == 200, r.text
    assert r.json()["soft_delete"] is True

    rows = db_session.execute(
        text("SELECT deleted_at FROM order_details WHERE order_id = :id"), {"id": order_id}
    ).scalars().all()
    assert len(rows) == 2
    assert all(value is not None for value in rows)

    r = client.get(f"/api/crud6/orders/{order_id}/order_details", headers=h)
    assert r.status_code == 404
