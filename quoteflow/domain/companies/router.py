"""Company router - companies, members and invitation codes"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...cache import KVCache, get_kv
from ...database import get_db
from ...models import User
from ...responses import ok
from .schemas import (
    CompanyCreate,
    CompanyResponse,
    CompanyUpdate,
    InvitationCreate,
    InvitationResponse,
    MemberRoleUpdate,
)
from .service import CompanyService, InvitationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/companies", tags=["Companies"])
invitations_router = APIRouter(prefix="/api/invitations", tags=["Invitations"])


def get_company_service(db: Session = Depends(get_db), kv: KVCache = Depends(get_kv)) -> CompanyService:
    """Dependency injection for CompanyService"""
    return CompanyService(db, kv)


def get_invitation_service(db: Session = Depends(get_db), kv: KVCache = Depends(get_kv)) -> InvitationService:
    return InvitationService(db, kv)


def _company(company) -> dict:
    return CompanyResponse.model_validate(company).model_dump()


def _invitation(invitation) -> dict:
    return InvitationResponse.model_validate(invitation).model_dump()


# ============================================================================
# COMPANIES
# ============================================================================


@router.get("")
async def list_companies(
    user: User = Depends(get_current_user),
    service: CompanyService = Depends(get_company_service),
):
    """Companies the current user is an active member of"""
    return ok(service.get_user_companies(user))


@router.post("", status_code=201)
async def create_company(
    data: CompanyCreate,
    user: User = Depends(get_current_user),
    service: CompanyService = Depends(get_company_service),
):
    return ok(_company(service.create_company(data, user)), "Company created")


@router.get("/{company_id}")
async def get_company(
    company_id: int,
    user: User = Depends(get_current_user),
    service: CompanyService = Depends(get_company_service),
):
    return ok(_company(service.get_company(company_id, user)))


@router.put("/{company_id}")
async def update_company(
    company_id: int,
    data: CompanyUpdate,
    user: User = Depends(get_current_user),
    service: CompanyService = Depends(get_company_service),
):
    return ok(_company(service.update_company(company_id, data, user)))


@router.delete("/{company_id}")
async def delete_company(
    company_id: int,
    user: User = Depends(get_current_user),
    service: CompanyService = Depends(get_company_service),
):
    return ok(service.delete_company(company_id, user))


@router.get("/{company_id}/stats")
async def get_company_stats(
    company_id: int,
    user: User = Depends(get_current_user),
    service: CompanyService = Depends(get_company_service),
):
    return ok(service.get_stats(company_id, user))


# ============================================================================
# MEMBERS
# ============================================================================


@router.get("/{company_id}/members")
async def list_members(
    company_id: int,
    user: User = Depends(get_current_user),
    service: CompanyService = Depends(get_company_service),
):
    return ok(service.get_members(company_id, user))


@router.put("/{company_id}/members/{member_user_id}")
async def update_member_role(
    company_id: int,
    member_user_id: int,
    data: MemberRoleUpdate,
    user: User = Depends(get_current_user),
    service: CompanyService = Depends(get_company_service),
):
    member = service.update_member_role(company_id, member_user_id, data.role_name, user)
    return ok({"user_id": member.user_id, "role_name": member.role_name, "is_active": member.is_active})


@router.post("/{company_id}/members/{member_user_id}/deactivate")
async def deactivate_member(
    company_id: int,
    member_user_id: int,
    user: User = Depends(get_current_user),
    service: CompanyService = Depends(get_company_service),
):
    member = service.deactivate_member(company_id, member_user_id, user)
    return ok({"user_id": member.user_id, "is_active": member.is_active})


@router.delete("/{company_id}/members/{member_user_id}")
async def remove_member(
    company_id: int,
    member_user_id: int,
    user: User = Depends(get_current_user),
    service: CompanyService = Depends(get_company_service),
):
    return ok(service.remove_member(company_id, member_user_id, user))


# ============================================================================
# INVITATIONS
# ============================================================================


@router.get("/{company_id}/invitations")
async def list_invitations(
    company_id: int,
    user: User = Depends(get_current_user),
    service: InvitationService = Depends(get_invitation_service),
):
    return ok([_invitation(i) for i in service.get_invitations(company_id, user)])


@router.post("/{company_id}/invitations", status_code=201)
async def create_invitation(
    company_id: int,
    data: InvitationCreate,
    user: User = Depends(get_current_user),
    service: InvitationService = Depends(get_invitation_service),
):
    return ok(_invitation(service.create_invitation(company_id, data, user)))


@router.post("/{company_id}/invitations/{invitation_id}/revoke")
async def revoke_invitation(
    company_id: int,
    invitation_id: int,
    user: User = Depends(get_current_user),
    service: InvitationService = Depends(get_invitation_service),
):
    return ok(_invitation(service.revoke_invitation(company_id, invitation_id, user)))


@router.delete("/{company_id}/invitations/{invitation_id}")
async def delete_invitation(
    company_id: int,
    invitation_id: int,
    user: User = Depends(get_current_user),
    service: InvitationService = Depends(get_invitation_service),
):
    return ok(service.delete_invitation(company_id, invitation_id, user))


@invitations_router.get("/{code}")
async def validate_invitation(
    code: str,
    user: User = Depends(get_current_user),
    service: InvitationService = Depends(get_invitation_service),
):
    """Check an invite code before joining"""
    return ok(service.describe_invitation(code))


@invitations_router.post("/{code}/accept")
async def accept_invitation(
    code: str,
    user: User = Depends(get_current_user),
    service: InvitationService = Depends(get_invitation_service),
):
    return ok(service.accept_invitation(code, user), "Joined company")


__all__ = ["router", "invitations_router"]
