import pytest

from quoteflow.models import CompanyMember
from quoteflow.permissions import has_permission
from tests.conftest import make_user


def join(client, tenant, user, role_name="salesperson"):
    """Invite user into the tenant's company as the owner, then accept as user"""
    client.current["user"] = tenant.user
    response = client.post(f"/api/companies/{tenant.company.id}/invitations", json={"role_name": role_name})
    assert response.status_code == 201, response.text
    code = response.json()["data"]["invite_code"]

    client.current["user"] = user
    assert client.post(f"/api/invitations/{code}/accept").status_code == 200
    client.current["user"] = tenant.user


@pytest.fixture
def member(client, db, kv, tenant):
    user = make_user(db, "member@example.com", kv=kv)
    join(client, tenant, user)
    return user


def role_names(response):
    return [r["name"] for r in response.json()["data"]]


def test_owner_cannot_grant_super_admin(client, tenant):
    response = client.post(f"/api/rbac/users/{tenant.user.id}/roles", json={"role_name": "super_admin"})
    assert response.status_code == 403
    assert response.json()["code"] == "ROLE_ASSIGNMENT_FORBIDDEN"


def test_owner_cannot_grant_owner_role(client, member):
    response = client.post(f"/api/rbac/users/{member.id}/roles", json={"role_name": "company_owner"})
    assert response.status_code == 403


def test_owner_cannot_touch_users_outside_company(client, db, kv):
    outsider = make_user(db, "outsider@example.com", kv=kv)
    response = client.post(f"/api/rbac/users/{outsider.id}/roles", json={"role_name": "accountant"})
    assert response.status_code == 403
    assert response.json()["code"] == "NOT_COMPANY_MEMBER"

    response = client.delete(f"/api/rbac/users/{outsider.id}/roles/accountant")
    assert response.status_code == 403


def test_owner_grants_lower_role_within_company(client, db, tenant, member):
    response = client.post(f"/api/rbac/users/{member.id}/roles", json={"role_name": "accountant"})
    assert response.status_code == 200
    assert role_names(response) == ["salesperson", "accountant"]
    assert has_permission(db, member.id, "payments:write", tenant.company.id)
    assert not has_permission(db, member.id, "payments:write")

    response = client.delete(f"/api/rbac/users/{member.id}/roles/accountant")
    assert response.json()["data"] == {"removed": True}
    assert not has_permission(db, member.id, "payments:write", tenant.company.id)


def test_super_admin_grants_platform_role(client, db, kv, tenant):
    admin = make_user(db, "admin@example.com", "super_admin", kv)
    outsider = make_user(db, "outsider@example.com", kv=kv)
    client.current["user"] = admin

    response = client.post(f"/api/rbac/users/{outsider.id}/roles", json={"role_name": "accountant"})
    assert response.status_code == 200
    assert has_permission(db, outsider.id, "payments:write")


def test_roles_stay_within_their_company(client, db, kv, tenant):
    founder = make_user(db, "founder@example.com", kv=kv)
    client.current["user"] = founder
    own_company = client.post("/api/companies", json={"name": "創辦人有限公司"}).json()["data"]

    join(client, tenant, founder)
    for role_name in ("accountant", "salesperson"):
        response = client.put(
            f"/api/companies/{tenant.company.id}/members/{founder.id}", json={"role_name": role_name}
        )
        assert response.status_code == 200, response.text

    # still owner of the company they created
    assert has_permission(db, founder.id, "contracts:delete", own_company["id"])
    # but only a salesperson in the tenant's company
    assert not has_permission(db, founder.id, "contracts:delete", tenant.company.id)

    client.current["user"] = founder
    headers = {"X-Company-Id": str(tenant.company.id)}
    assert client.get("/api/rbac/me", headers=headers).json()["data"]["highest_role"]["name"] == "salesperson"
    assert client.delete("/api/contracts/1", headers=headers).status_code == 403

    headers = {"X-Company-Id": str(own_company["id"])}
    assert client.get("/api/rbac/me", headers=headers).json()["data"]["highest_role"]["name"] == "company_owner"


def test_removed_member_loses_company_roles(client, db, tenant, member):
    assert has_permission(db, member.id, "quotations:write", tenant.company.id)

    response = client.delete(f"/api/companies/{tenant.company.id}/members/{member.id}")
    assert response.status_code == 200
    assert db.query(CompanyMember).filter_by(user_id=member.id).count() == 0
    assert not has_permission(db, member.id, "quotations:write", tenant.company.id)
