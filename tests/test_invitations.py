from datetime import datetime, timedelta

from quoteflow.models import CompanyInvitation, CompanyMember
from quoteflow.permissions import has_permission
from tests.conftest import make_user


def invite(client, company_id, **payload):
    response = client.post(f"/api/companies/{company_id}/invitations", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_invite_code_format(client, tenant):
    invitation = invite(client, tenant.company.id, role_name="accountant", max_uses=2)
    assert len(invitation["invite_code"]) == 8
    assert invitation["invite_code"].isalnum()
    assert invitation["invite_code"] == invitation["invite_code"].upper()
    assert invitation["used_count"] == 0


def test_accept_joins_company_with_role(client, db, kv, tenant):
    invitation = invite(client, tenant.company.id, role_name="accountant")
    newcomer = make_user(db, "newcomer@example.com", kv=kv)
    client.current["user"] = newcomer

    described = client.get(f"/api/invitations/{invitation['invite_code'].lower()}").json()["data"]
    assert described["company_name"] == tenant.company.name
    assert described["role_name"] == "accountant"

    response = client.post(f"/api/invitations/{invitation['invite_code']}/accept")
    assert response.status_code == 200
    assert response.json()["data"] == {"company_id": tenant.company.id, "role_name": "accountant"}

    member = db.query(CompanyMember).filter_by(company_id=tenant.company.id, user_id=newcomer.id).one()
    assert member.role_name == "accountant"
    assert has_permission(db, newcomer.id, "payments:write", tenant.company.id)
    assert not has_permission(db, newcomer.id, "payments:write")


def test_use_count_is_enforced(client, db, kv, tenant):
    invitation = invite(client, tenant.company.id, max_uses=1)
    code = invitation["invite_code"]

    client.current["user"] = make_user(db, "first@example.com", kv=kv)
    assert client.post(f"/api/invitations/{code}/accept").status_code == 200

    client.current["user"] = make_user(db, "second@example.com", kv=kv)
    response = client.post(f"/api/invitations/{code}/accept")
    assert response.status_code == 400
    assert response.json()["code"] == "INVITATION_MAX_USES_REACHED"

    db.expire_all()
    stored = db.query(CompanyInvitation).filter_by(invite_code=code).one()
    assert stored.used_count == 1


def test_existing_member_cannot_accept_again(client, tenant):
    invitation = invite(client, tenant.company.id, max_uses=5)
    response = client.post(f"/api/invitations/{invitation['invite_code']}/accept")
    assert response.status_code == 409
    assert response.json()["code"] == "ALREADY_MEMBER"


def test_revoked_and_expired_codes(client, db, kv, tenant):
    revoked = invite(client, tenant.company.id)
    client.post(f"/api/companies/{tenant.company.id}/invitations/{revoked['id']}/revoke")

    expired = invite(client, tenant.company.id)
    row = db.get(CompanyInvitation, expired["id"])
    row.expires_at = datetime.utcnow() - timedelta(hours=1)
    db.commit()

    client.current["user"] = make_user(db, "late@example.com", kv=kv)
    assert client.post(f"/api/invitations/{revoked['invite_code']}/accept").json()["code"] == "INVITATION_REVOKED"
    assert client.post(f"/api/invitations/{expired['invite_code']}/accept").json()["code"] == "INVITATION_EXPIRED"
    assert client.get("/api/invitations/NOPE0000").status_code == 404


def test_only_managers_create_invitations(client, db, kv, tenant):
    client.current["user"] = make_user(db, "stranger@example.com", "salesperson", kv)
    response = client.post(f"/api/companies/{tenant.company.id}/invitations", json={})
    assert response.status_code == 403
