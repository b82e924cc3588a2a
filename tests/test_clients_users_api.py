"""
Client administration and user management API tests.

Tests:
1. test_clients_admin_only
2. test_list_clients_with_counts
3. test_create_client_normalizes_code
4. test_create_client_validation
5. test_client_code_is_immutable
6. test_update_client_ignores_null_status
7. test_delete_client_rules
8. test_client_stats
9. test_client_admin_manages_own_users
10. test_user_role_and_email_rules
11. test_delete_user_is_soft
12. test_admin_manages_users_in_client_context
"""

from workorder_portal import models


def test_clients_admin_only(client, staff_headers, client_admin_headers):
    assert client.get("/api/clients", headers=staff_headers).status_code == 403
    assert client.post("/api/clients", json={"name": "X", "code": "X"}, headers=client_admin_headers).status_code == 403


def test_list_clients_with_counts(client, admin_headers):
    body = client.get("/api/clients", headers=admin_headers).json()
    assert body["pagination"]["total"] == 3
    by_code = {c["code"]: c for c in body["data"]}
    assert by_code["ACME"]["user_count"] == 2
    assert by_code["VISIONWEST"]["protected"] is True
    assert by_code["OTHER"]["work_order_count"] == 0

    found = client.get("/api/clients", params={"search": "acme"}, headers=admin_headers).json()["data"]
    assert [c["code"] for c in found] == ["ACME"]


def test_create_client_normalizes_code(client, admin_headers):
    resp = client.post("/api/clients", json={
        "name": "Harbour Trust", "code": "harbour_trust", "primary_contact_email": "ops@harbour.example",
    }, headers=admin_headers)
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["code"] == "HARBOUR_TRUST"
    assert data["status"] == "active"
    assert data["protected"] is False
    assert data["user_count"] == 0


def test_create_client_validation(client, admin_headers):
    resp = client.post("/api/clients", json={"name": "", "code": "bad code!"}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Validation error"
    assert [e["field"] for e in resp.json()["errors"]] == ["name", "code"]

    resp = client.post("/api/clients", json={"name": "Acme Two", "code": "acme"}, headers=admin_headers)
    assert resp.status_code == 409
    assert resp.json()["errors"] == [{"field": "code", "message": "Code must be unique"}]

    resp = client.post("/api/clients", json={"name": "Odd", "code": "ODD", "status": "paused"}, headers=admin_headers)
    assert resp.status_code == 400


def test_client_code_is_immutable(client, admin_headers, seed):
    url = f"/api/clients/{seed.acme.id}"
    resp = client.put(url, json={"code": "ACME2"}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["message"] == "Code cannot be modified"

    resp = client.put(url, json={"code": "ACME", "name": "Acme Housing Ltd", "status": "inactive"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["name"] == "Acme Housing Ltd"
    assert resp.json()["data"]["status"] == "inactive"
    assert resp.json()["data"]["code"] == "ACME"


def test_update_client_ignores_null_status(client, admin_headers, seed):
    url = f"/api/clients/{seed.acme.id}"
    resp = client.put(url, json={"status": None, "primary_contact_name": "Pat"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "active"
    assert resp.json()["data"]["primary_contact_name"] == "Pat"

    resp = client.put(url, json={"name": None}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "name"
    assert client.get(url, headers=admin_headers).json()["data"]["name"] == "Acme Housing"


def test_delete_client_rules(client, admin_headers, seed):
    assert client.delete(f"/api/clients/{seed.other.id}", headers=admin_headers).status_code == 400

    resp = client.delete(f"/api/clients/{seed.visionwest.id}", params={"confirm": True}, headers=admin_headers)
    assert resp.status_code == 403

    resp = client.delete(f"/api/clients/{seed.acme.id}", params={"confirm": True}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Cannot delete client with active users or work orders"
    assert resp.json()["details"] == {"user_count": 2, "work_order_count": 0}

    empty = client.post("/api/clients", json={"name": "Empty", "code": "EMPTY"}, headers=admin_headers).json()["data"]
    resp = client.delete(f"/api/clients/{empty['id']}", params={"confirm": True}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "archived"
    assert client.get(f"/api/clients/{empty['id']}", headers=admin_headers).json()["data"]["status"] == "archived"

    assert client.delete("/api/clients/9999", params={"confirm": True}, headers=admin_headers).status_code == 404


def test_client_stats(client, admin_headers, make_quote, seed):
    make_quote("Draft")
    stats = client.get(f"/api/clients/{seed.acme.id}/stats", headers=admin_headers).json()["data"]
    assert stats["client"]["code"] == "ACME"
    assert stats["quote_count"] == 1
    assert stats["users_by_role"] == {"client_admin": 1, "client": 1}
    assert stats["work_orders_by_status"] == {}


def test_client_admin_manages_own_users(client, client_admin_headers, client_headers):
    assert client.get("/api/users", headers=client_headers).status_code == 403

    users = client.get("/api/users", headers=client_admin_headers).json()["data"]
    assert {u["email"] for u in users} == {"manager@acme.example", "tenant@acme.example"}
    assert all("password_hash" not in u for u in users)

    resp = client.post("/api/users", json={
        "full_name": "New Tenant", "email": "New.Tenant@Acme.example", "role": "client",
    }, headers=client_admin_headers)
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["email"] == "new.tenant@acme.example"
    assert data["temporary_password"]

    # The generated password works
    resp = client.post("/api/auth/login", json={
        "email": "new.tenant@acme.example", "password": data["temporary_password"],
    })
    assert resp.status_code == 200


def test_user_role_and_email_rules(client, client_admin_headers, seed):
    resp = client.post("/api/users", json={
        "full_name": "Sneaky", "email": "sneaky@acme.example", "role": "staff", "password": "pw123456",
    }, headers=client_admin_headers)
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "role"

    resp = client.post("/api/users", json={
        "full_name": "Dup", "email": "tenant@acme.example", "role": "client", "password": "pw123456",
    }, headers=client_admin_headers)
    assert resp.status_code == 400

    resp = client.post("/api/users", json={"full_name": "", "email": "bad", "role": None}, headers=client_admin_headers)
    assert [e["field"] for e in resp.json()["errors"]] == ["full_name", "email", "role"]

    resp = client.patch(f"/api/users/{seed.client_admin.id}", json={"role": "client"}, headers=client_admin_headers)
    assert resp.status_code == 400

    resp = client.patch(f"/api/users/{seed.client_user.id}", json={"role": "client_admin"}, headers=client_admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["role"] == "client_admin"

    resp = client.patch(
        f"/api/users/{seed.client_user.id}", json={"email": "manager@acme.example"}, headers=client_admin_headers,
    )
    assert resp.status_code == 400


def test_delete_user_is_soft(client, db, client_admin_headers, other_admin_headers, seed):
    tenant_id = seed.client_user.id
    assert client.delete(f"/api/users/{seed.client_admin.id}", headers=client_admin_headers).status_code == 400
    assert client.delete(f"/api/users/{tenant_id}", headers=other_admin_headers).status_code == 404

    resp = client.delete(f"/api/users/{tenant_id}", headers=client_admin_headers)
    assert resp.status_code == 200

    db.expire_all()
    user = db.query(models.User).filter(models.User.id == tenant_id).first()
    assert user is not None
    assert user.is_active is False


def test_admin_manages_users_in_client_context(client, admin_headers, seed):
    own = client.get("/api/users", headers=admin_headers).json()["data"]
    assert {u["email"] for u in own} == {"admin@visionwest.example", "staff@visionwest.example"}

    headers = {**admin_headers, "X-Client-Context": str(seed.acme.id)}
    acme = client.get("/api/users", headers=headers).json()["data"]
    assert {u["email"] for u in acme} == {"manager@acme.example", "tenant@acme.example"}

    resp = client.post("/api/users", json={
        "full_name": "Acme Staff", "email": "crew@acme.example", "role": "staff", "password": "pw123456",
    }, headers=headers)
    assert resp.status_code == 201
    assert resp.json()["data"]["client_id"] == seed.acme.id
    assert "temporary_password" not in resp.json()["data"]
