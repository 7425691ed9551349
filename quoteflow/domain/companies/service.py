"""Company service - companies, members and invitations"""

import logging
import secrets
import string
from datetime import datetime, timedelta

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...cache import KVCache
from ...models import Company, CompanyInvitation, CompanyMember, User
from ...permissions import assign_role, can_assign_role, check_permission, remove_company_roles, remove_role
from ..billing.subscription_service import SubscriptionService
from .repository import CompanyRepository, InvitationRepository
from .schemas import CompanyCreate, CompanyUpdate, InvitationCreate

logger = logging.getLogger(__name__)

INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits
INVITE_CODE_LENGTH = 8


def generate_invite_code() -> str:
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))


def serialize_member(member: CompanyMember, user: User, company: Company) -> dict:
    return {
        "user_id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "role_name": member.role_name,
        "is_active": member.is_active,
        "is_owner": user.id == company.owner_id,
        "joined_at": member.joined_at,
    }


class CompanyService:
    """Service layer for company business logic"""

    def __init__(self, db: Session, kv: KVCache):
        self.db = db
        self.kv = kv
        self.repo = CompanyRepository()

    def get_user_companies(self, user: User) -> list[dict]:
        return [
            {
                "id": company.id,
                "public_id": company.public_id,
                "name": company.name,
                "tax_id": company.tax_id,
                "role_name": member.role_name,
                "is_owner": company.owner_id == user.id,
            }
            for company, member in self.repo.get_user_companies(self.db, user.id)
        ]

    def get_company(self, company_id: int, user: User) -> Company:
        """Company visible to an active member"""
        company = self.repo.get_company(self.db, company_id)
        if not company:
            raise HTTPException(status_code=404, detail="Company not found")
        member = self.repo.get_member(self.db, company_id, user.id)
        if not member or not member.is_active:
            raise HTTPException(status_code=403, detail="You are not a member of this company")
        return company

    def _require_owner(self, company_id: int, user: User) -> Company:
        company = self.get_company(company_id, user)
        if company.owner_id != user.id:
            raise HTTPException(status_code=403, detail="Only the company owner can do this")
        return company

    def _require_manager(self, company_id: int, user: User) -> Company:
        company = self.get_company(company_id, user)
        if company.owner_id != user.id and not check_permission(
            self.kv, self.db, user.id, "users:write", company_id
        ):
            raise HTTPException(status_code=403, detail="You cannot manage members of this company")
        return company

    def create_company(self, data: CompanyCreate, user: User) -> Company:
        """Create a company; the creator becomes its owner on the FREE plan"""
        logger.info(f"🏢 Creating company for user_id: {user.id}")
        company = self.repo.create_company(self.db, user.id, **data.model_dump())
        assign_role(self.db, self.kv, user.id, "company_owner", assigned_by=user.id, company_id=company.id)
        SubscriptionService(self.db).ensure_free_subscription(company.id)
        return company

    def update_company(self, company_id: int, data: CompanyUpdate, user: User) -> Company:
        company = self._require_owner(company_id, user)
        return self.repo.update_company(self.db, company, **data.model_dump(exclude_unset=True))

    def delete_company(self, company_id: int, user: User) -> dict:
        company = self._require_owner(company_id, user)
        self.repo.delete_company(self.db, company)
        logger.info(f"🗑️ Company {company_id} deleted by user {user.id}")
        return {"message": "Company deleted"}

    def get_stats(self, company_id: int, user: User) -> dict:
        self.get_company(company_id, user)
        return self.repo.get_stats(self.db, company_id)

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    def get_members(self, company_id: int, user: User) -> list[dict]:
        company = self.get_company(company_id, user)
        return [serialize_member(m, u, company) for m, u in self.repo.get_members(self.db, company_id)]

    def _get_target_member(self, company: Company, member_user_id: int) -> CompanyMember:
        member = self.repo.get_member(self.db, company.id, member_user_id)
        if not member:
            raise HTTPException(status_code=404, detail="Member not found")
        return member

    def _require_assignable(self, company: Company, role_name: str, user: User) -> None:
        if not can_assign_role(self.db, user.id, role_name, company.id):
            raise HTTPException(
                status_code=403,
                detail={"message": f"You cannot assign the role {role_name}", "code": "ROLE_ASSIGNMENT_FORBIDDEN"},
            )

    def update_member_role(self, company_id: int, member_user_id: int, role_name: str, user: User) -> CompanyMember:
        company = self.get_company(company_id, user)
        if not check_permission(self.kv, self.db, user.id, "users:assign_roles", company.id):
            raise HTTPException(status_code=403, detail="You cannot assign roles in this company")
        self._require_assignable(company, role_name, user)
        if member_user_id == company.owner_id:
            raise HTTPException(status_code=400, detail="The owner's role cannot be changed")

        member = self._get_target_member(company, member_user_id)
        previous_role = member.role_name
        member.role_name = role_name
        self.repo.save(self.db, member)

        if previous_role != role_name:
            assign_role(self.db, self.kv, member_user_id, role_name, assigned_by=user.id, company_id=company.id)
            remove_role(self.db, self.kv, member_user_id, previous_role, company_id=company.id)
        logger.info(f"👤 Member {member_user_id} of company {company_id}: {previous_role} -> {role_name}")
        return member

    def deactivate_member(self, company_id: int, member_user_id: int, user: User) -> CompanyMember:
        company = self._require_manager(company_id, user)
        if member_user_id == company.owner_id:
            raise HTTPException(status_code=400, detail="The company owner cannot be deactivated")
        member = self._get_target_member(company, member_user_id)
        member.is_active = False
        self.repo.save(self.db, member)
        remove_company_roles(self.db, self.kv, member_user_id, company.id)
        return member

    def remove_member(self, company_id: int, member_user_id: int, user: User) -> dict:
        company = self._require_manager(company_id, user)
        if member_user_id == company.owner_id:
            raise HTTPException(status_code=400, detail="The company owner cannot be removed")
        member = self._get_target_member(company, member_user_id)
        self.repo.delete_member(self.db, member)
        remove_company_roles(self.db, self.kv, member_user_id, company.id)
        logger.info(f"🗑️ Removed member {member_user_id} from company {company_id}")
        return {"message": "Member removed"}


class InvitationService:
    """Service layer for invitation codes"""

    def __init__(self, db: Session, kv: KVCache):
        self.db = db
        self.kv = kv
        self.repo = InvitationRepository()
        self.companies = CompanyService(db, kv)

    def create_invitation(self, company_id: int, data: InvitationCreate, user: User) -> CompanyInvitation:
        company = self.companies._require_manager(company_id, user)
        self.companies._require_assignable(company, data.role_name, user)

        code = generate_invite_code()
        while self.repo.code_exists(self.db, code):
            code = generate_invite_code()

        invitation = self.repo.create_invitation(
            self.db,
            company_id=company_id,
            invite_code=code,
            role_name=data.role_name,
            max_uses=data.max_uses,
            used_count=0,
            expires_at=datetime.utcnow() + timedelta(days=data.expires_in_days),
            is_active=True,
            created_by=user.id,
        )
        logger.info(f"✉️ Invitation {code} created for company {company_id} ({data.role_name})")
        return invitation

    def get_invitations(self, company_id: int, user: User) -> list[CompanyInvitation]:
        self.companies._require_manager(company_id, user)
        return self.repo.get_invitations(self.db, company_id)

    def _get_invitation(self, company_id: int, invitation_id: int, user: User) -> CompanyInvitation:
        self.companies._require_manager(company_id, user)
        invitation = self.repo.get_invitation(self.db, company_id, invitation_id)
        if not invitation:
            raise HTTPException(status_code=404, detail="Invitation not found")
        return invitation

    def revoke_invitation(self, company_id: int, invitation_id: int, user: User) -> CompanyInvitation:
        invitation = self._get_invitation(company_id, invitation_id, user)
        invitation.is_active = False
        self.db.commit()
        self.db.refresh(invitation)
        return invitation

    def delete_invitation(self, company_id: int, invitation_id: int, user: User) -> dict:
        invitation = self._get_invitation(company_id, invitation_id, user)
        self.repo.delete_invitation(self.db, invitation)
        return {"message": "Invitation deleted"}

    def validate_invitation(self, code: str) -> CompanyInvitation:
        """Raise unless the invitation can still be used"""
        invitation = self.repo.get_by_code(self.db, code.strip().upper())
        if not invitation:
            raise HTTPException(status_code=404, detail={"message": "Invitation not found", "code": "INVITATION_NOT_FOUND"})
        if not invitation.is_active:
            raise HTTPException(status_code=400, detail={"message": "Invitation has been revoked", "code": "INVITATION_REVOKED"})
        if datetime.utcnow() > invitation.expires_at:
            raise HTTPException(status_code=400, detail={"message": "Invitation has expired", "code": "INVITATION_EXPIRED"})
        if invitation.used_count >= invitation.max_uses:
            raise HTTPException(
                status_code=400,
                detail={"message": "Invitation has reached its maximum uses", "code": "INVITATION_MAX_USES_REACHED"},
            )
        return invitation

    def describe_invitation(self, code: str) -> dict:
        invitation = self.validate_invitation(code)
        company = invitation.company
        return {
            "company_id": company.id,
            "company_name": company.name,
            "role_name": invitation.role_name,
            "expires_at": invitation.expires_at,
        }

    def accept_invitation(self, code: str, user: User) -> dict:
        invitation = self.validate_invitation(code)

        member = self.companies.repo.get_member(self.db, invitation.company_id, user.id)
        if member and member.is_active:
            raise HTTPException(status_code=409, detail={"message": "Already a member of this company", "code": "ALREADY_MEMBER"})

        if not self.repo.claim_use(self.db, invitation.id):
            self.db.rollback()
            raise HTTPException(
                status_code=409,
                detail={"message": "Invitation has reached its maximum uses", "code": "INVITATION_MAX_USES_REACHED"},
            )

        if member:
            remove_company_roles(self.db, self.kv, user.id, invitation.company_id)
            member.is_active = True
            member.role_name = invitation.role_name
        else:
            self.db.add(
                CompanyMember(
                    company_id=invitation.company_id,
                    user_id=user.id,
                    role_name=invitation.role_name,
                )
            )
        self.db.commit()

        assign_role(
            self.db,
            self.kv,
            user.id,
            invitation.role_name,
            assigned_by=invitation.created_by,
            company_id=invitation.company_id,
        )
        logger.info(f"✅ User {user.id} joined company {invitation.company_id} via {invitation.invite_code}")
        return {"company_id": invitation.company_id, "role_name": invitation.role_name}
