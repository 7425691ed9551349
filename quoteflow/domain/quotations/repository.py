"""Quotation repository - Database operations for quotations"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from ...models import Quotation, QuotationItem
from ...shared.numbering import next_number


class QuotationRepository:
    """Repository for quotation database operations"""

    @staticmethod
    def get_quotations(
        db: Session,
        company_id: int,
        status: Optional[str] = None,
        customer_id: Optional[int] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Quotation]:
        query = db.query(Quotation).filter(Quotation.company_id == company_id)
        if status:
            query = query.filter(Quotation.status == status)
        if customer_id:
            query = query.filter(Quotation.customer_id == customer_id)
        return (
            query.options(selectinload(Quotation.items))
            .order_by(Quotation.issue_date.desc(), Quotation.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_quotation(db: Session, quotation_id: int, company_id: int) -> Optional[Quotation]:
        return (
            db.query(Quotation)
            .options(selectinload(Quotation.items))
            .filter(Quotation.id == quotation_id, Quotation.company_id == company_id)
            .first()
        )

    @staticmethod
    def next_quotation_number(db: Session, company_id: int, today: Optional[date] = None) -> str:
        today = today or date.today()
        return next_number(
            db, Quotation.quotation_number, Quotation.company_id, company_id, f"Q{today:%Y%m}-", 4
        )

    @staticmethod
    def replace_items(db: Session, quotation: Quotation, items: list[QuotationItem]) -> None:
        quotation.items.clear()
        db.flush()
        quotation.items.extend(items)

    @staticmethod
    def save(db: Session, quotation: Quotation) -> Quotation:
        db.commit()
        db.refresh(quotation)
        return quotation

    @staticmethod
    def delete_quotation(db: Session, quotation: Quotation) -> None:
        db.delete(quotation)
        db.commit()
