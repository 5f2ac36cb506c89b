from types import SimpleNamespace

from models import UserRole
from utils.decorators import can_access


def test_can_access():
    admin = SimpleNamespace(id="a", role=UserRole.ADMIN)
    owner = SimpleNamespace(id="o", role=UserRole.CUSTOMER)

    assert can_access(admin, "o")
    assert can_access(owner, "o")
    assert not can_access(owner, "someone-else")
    assert not can_access(None, "o")


def test_list_users_admin_only(client, customer, customer_headers):
    resp = client.get("/api/users", headers=customer_headers)

    assert resp.status_code == 403
    assert resp.get_json()["message"] == "Admin access required"


def test_list_users(client, admin_headers, customer):
    resp = client.get("/api/users?role=customer", headers=admin_headers)

    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert [u["email"] for u in data["users"]] == [customer.email]
    assert data["pagination"]["total_items"] == 1


def test_promote_customer(client, admin_headers, customer, customer_headers):
    resp = client.put(f"/api/users/{customer.id}/role", json={"role": "admin"}, headers=admin_headers)

    assert resp.status_code == 200
    assert resp.get_json()["data"]["user"]["role"] == "admin"
    # role is re-read on every request
    assert client.get("/api/users", headers=customer_headers).status_code == 200


def test_invalid_role(client, admin_headers, customer):
    resp = client.put(f"/api/users/{customer.id}/role", json={"role": "owner"}, headers=admin_headers)

    assert resp.status_code == 400
    assert resp.get_json()["errors"][0]["field"] == "role"


def test_admin_cannot_demote_self(client, admin, admin_headers):
    resp = client.put(f"/api/users/{admin.id}/role", json={"role": "customer"}, headers=admin_headers)

    assert resp.status_code == 400


def test_unknown_user(client, admin_headers):
    resp = client.put("/api/users/missing/role", json={"role": "admin"}, headers=admin_headers)

    assert resp.status_code == 404
