from crud6 import audit
from crud6.db.repositories import audits as audit_repo


def _h(email: str):
    return {"x-auth-request-user": email.split("@")[0], "x-auth-request-email": email}


def test_writes_are_audited(client, user_factory):
    user = user_factory("auditor@example.com", ("uri_products", "create_product", "update_product", "delete_product"))
    h = _h(user.email)

    product_id = client.post("/api/crud6/products", json={"name": "Widget"}, headers=h).json()["id"]
    client.put(f"/api/crud6/products/{product_id}", json={"price": 3}, headers=h)
    client.put(f"/api/crud6/products/{product_id}/name", json={"value": "Gizmo"}, headers=h)
    client.post(f"/api/crud6/products/{product_id}/tags", json={"ids": [4]}, headers=h)
    client.post(f"/api/crud6/products/{product_id}/a/toggle_active", headers=h)
    client.delete(f"/api/crud6/products/{product_id}", headers=h)

    r = client.get("/audits/", params={"model": "products"}, headers=h)
    assert r.status_code == 200, r.text
    entries = r.json()
    assert {entry["action_type"] for entry in entries} == {
        "crud6_products_create",
        "crud6_products_update",
        "crud6_products_update_field",
        "crud6_products_attach",
        "crud6_products_action",
        "crud6_products_delete",
    }
    assert all(entry["target_id"] == str(product_id) for entry in entries)
    assert all(entry["actor_user_id"] == str(user.id) for entry in entries)

    update = next(entry for entry in entries if entry["action_type"] == "crud6_products_update")
    assert update["metadata"] == {"fields": ["price"]}
    delete = next(entry for entry in entries if entry["action_type"] == "crud6_products_delete")
    assert delete["metadata"] == {"soft_delete": True}


def test_reads_and_failures_are_not_audited(client, user_factory, db_session):
    user = user_factory("quiet@example.com", ("uri_products", "create_product"))
    h = _h(user.email)
    client.get("/api/crud6/products", headers=h)
    client.post("/api/crud6/products", json={"name": ""}, headers=h)
    assert audit_repo.get_audit_logs(db_session, model="products") == []


def test_regular_users_only_see_their_own_entries(client, user_factory, db_session):
    alice = user_factory("alice@example.com")
    bob = user_factory("bob@example.com")
    audit.log(db_session, model="products", action=audit.AuditAction.CREATE, target_id=1, actor_user_id=alice.id)
    audit.log(db_session, model="products", action=audit.AuditAction.CREATE, target_id=2, actor_user_id=bob.id)

    r = client.get("/audits/", headers=_h(alice.email))
    assert r.status_code == 200
    assert [entry["target_id"] for entry in r.json()] == ["1"]

    r = client.get("/audits/", params={"user_id": str(bob.id)}, headers=_h(alice.email))
    assert r.status_code == 403


def test_superadmin_sees_everything(client, user_factory, db_session):
    admin = user_factory("root@example.com", is_superadmin=True)
    other = user_factory("someone@example.com")
    audit.log(db_session, model="orders", action=audit.AuditAction.DELETE, target_id=7, actor_user_id=other.id)
    audit.log(db_session, model="products", action="action", status=audit.AuditStatus.FAILURE, target_id=8)

    r = client.get("/audits/", headers=_h(admin.email))
    assert len(r.json()) == 2

    r = client.get("/audits/", params={"user_id": str(other.id)}, headers=_h(admin.email))
    assert [entry["action_type"] for entry in r.json()] == ["crud6_orders_delete"]

    r = client.get("/audits/", params={"action_type": "crud6_products_action"}, headers=_h(admin.email))
    assert [entry["status"] for entry in r.json()] == ["failure"]
