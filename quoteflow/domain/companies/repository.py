"""Company repository - Database operations for companies, members and invitations"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Company, CompanyInvitation, CompanyMember, Customer, Quotation, User, UserRole


class CompanyRepository:
    """Repository for company database operations"""

    @staticmethod
    def get_user_companies(db: Session, user_id: int) -> list[tuple[Company, CompanyMember]]:
        return (
            db.query(Company, CompanyMember)
            .join(CompanyMember, CompanyMember.company_id == Company.id)
            .filter(CompanyMember.user_id == user_id, CompanyMember.is_active.is_(True))
            .order_by(CompanyMember.joined_at.asc(), Company.id.asc())
            .all()
        )

    @staticmethod
    def get_company(db: Session, company_id: int) -> Optional[Company]:
        return db.query(Company).filter(Company.id == company_id).first()

    @staticmethod
    def create_company(db: Session, owner_id: int, **data) -> Company:
        company = Company(owner_id=owner_id, **data)
        db.add(company)
        db.flush()
        db.add(CompanyMember(company_id=company.id, user_id=owner_id, role_name="company_owner"))
        db.commit()
        db.refresh(company)
        return company

    @staticmethod
    def update_company(db: Session, company: Company, **updates) -> Company:
        for key, value in updates.items():
            if value is not None and hasattr(company, key):
                setattr(company, key, value)
        db.commit()
        db.refresh(company)
        return company

    @staticmethod
    def delete_company(db: Session, company: Company) -> None:
        db.query(UserRole).filter(UserRole.company_id == company.id).delete(synchronize_session=False)
        db.delete(company)
        db.commit()

    @staticmethod
    def get_member(db: Session, company_id: int, user_id: int) -> Optional[CompanyMember]:
        return (
            db.query(CompanyMember)
            .filter(CompanyMember.company_id == company_id, CompanyMember.user_id == user_id)
            .first()
        )

    @staticmethod
    def get_members(db: Session, company_id: int) -> list[tuple[CompanyMember, User]]:
        return (
            db.query(CompanyMember, User)
            .join(User, User.id == CompanyMember.user_id)
            .filter(CompanyMember.company_id == company_id)
            .order_by(CompanyMember.joined_at.asc(), CompanyMember.id.asc())
            .all()
        )

    @staticmethod
    def save(db: Session, row):
        db.commit()
        db.refresh(row)
        return row

    @staticmethod
    def delete_member(db: Session, member: CompanyMember) -> None:
        db.delete(member)
        db.commit()

    @staticmethod
    def get_stats(db: Session, company_id: int) -> dict:
        return {
            "active_members": db.query(CompanyMember)
            .filter(CompanyMember.company_id == company_id, CompanyMember.is_active.is_(True))
            .count(),
            "total_customers": db.query(Customer).filter(Customer.company_id == company_id).count(),
            "total_quotations": db.query(Quotation).filter(Quotation.company_id == company_id).count(),
        }


class InvitationRepository:
    """Repository for invitation database operations"""

    @staticmethod
    def get_invitations(db: Session, company_id: int) -> list[CompanyInvitation]:
        return (
            db.query(CompanyInvitation)
            .filter(CompanyInvitation.company_id == company_id)
            .order_by(CompanyInvitation.created_at.desc(), CompanyInvitation.id.desc())
            .all()
        )

    @staticmethod
    def get_invitation(db: Session, company_id: int, invitation_id: int) -> Optional[CompanyInvitation]:
        return (
            db.query(CompanyInvitation)
            .filter(CompanyInvitation.id == invitation_id, CompanyInvitation.company_id == company_id)
            .first()
        )

    @staticmethod
    def get_by_code(db: Session, code: str) -> Optional[CompanyInvitation]:
        return db.query(CompanyInvitation).filter(CompanyInvitation.invite_code == code).first()

    @staticmethod
    def code_exists(db: Session, code: str) -> bool:
        return db.query(CompanyInvitation.id).filter(CompanyInvitation.invite_code == code).first() is not None

    @staticmethod
    def create_invitation(db: Session, **data) -> CompanyInvitation:
        invitation = CompanyInvitation(**data)
        db.add(invitation)
        db.commit()
        db.refresh(invitation)
        return invitation

    @staticmethod
    def claim_use(db: Session, invitation_id: int) -> bool:
        """
        Atomically take one use of an invitation.

        The increment only applies while used_count < max_uses, so concurrent
        accepts can never push it past the limit.
        """
        updated = (
            db.query(CompanyInvitation)
            .filter(
                CompanyInvitation.id == invitation_id,
                CompanyInvitation.is_active.is_(True),
                CompanyInvitation.used_count < CompanyInvitation.max_uses,
            )
            .update(
                {CompanyInvitation.used_count: CompanyInvitation.used_count + 1},
                synchronize_session=False,
            )
        )
        return updated == 1

    @staticmethod
    def delete_invitation(db: Session, invitation: CompanyInvitation) -> None:
        db.delete(invitation)
        db.commit()
