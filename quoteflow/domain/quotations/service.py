"""Quotation service - pricing, numbering and status of quotations"""

import logging
from datetime import date
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Company, Quotation, QuotationItem, User
from ...shared.money import calculate_totals, line_amount
from ...shared.numbering import insert_numbered
from ...utils.sanitization import sanitize_string
from ..billing.subscription_service import SubscriptionService
from ..customers.repository import CustomerRepository
from .repository import QuotationRepository
from .schemas import QuotationCreate, QuotationItemIn, QuotationResponse, QuotationUpdate

logger = logging.getLogger(__name__)

QUOTATION_FEATURE = "quotations"


def build_items(items: list[QuotationItemIn]) -> list[QuotationItem]:
    return [
        QuotationItem(
            product_id=item.product_id,
            description=item.description,
            quantity=item.quantity,
            unit=item.unit,
            unit_price=item.unit_price,
            discount=item.discount,
            amount=line_amount(item.quantity, item.unit_price, item.discount),
            sort_order=index,
        )
        for index, item in enumerate(items)
    ]


def apply_totals(quotation: Quotation) -> None:
    totals = calculate_totals(
        [item.amount for item in quotation.items], quotation.tax_rate, quotation.discount_amount
    )
    quotation.subtotal = totals["subtotal"]
    quotation.tax_amount = totals["tax_amount"]
    quotation.total_amount = totals["total_amount"]


def serialize_quotation(quotation: Quotation) -> dict:
    return QuotationResponse.model_validate(quotation).model_dump()


class QuotationService:
    """Service layer for quotation business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = QuotationRepository()

    def get_quotations(self, company: Company, status: Optional[str] = None, customer_id: Optional[int] = None,
                       limit: int = 50, offset: int = 0) -> list[Quotation]:
        return self.repo.get_quotations(self.db, company.id, status, customer_id, limit, offset)

    def get_quotation(self, quotation_id: int, company: Company) -> Quotation:
        quotation = self.repo.get_quotation(self.db, quotation_id, company.id)
        if not quotation:
            raise HTTPException(status_code=404, detail="Quotation not found")
        return quotation

    def _require_customer(self, customer_id: int, company: Company) -> None:
        if not CustomerRepository.get_customer(self.db, customer_id, company.id):
            raise HTTPException(status_code=404, detail="Customer not found")

    def create_quotation(self, data: QuotationCreate, company: Company, user: User) -> Quotation:
        self._require_customer(data.customer_id, company)

        subscriptions = SubscriptionService(self.db)
        subscriptions.require_usage_within_limit(company.id, QUOTATION_FEATURE)

        def build(number: str) -> Quotation:
            quotation = Quotation(
                company_id=company.id,
                user_id=user.id,
                customer_id=data.customer_id,
                quotation_number=number,
                status="draft",
                issue_date=data.issue_date or date.today(),
                valid_until=data.valid_until,
                currency=data.currency,
                exchange_rate=data.exchange_rate,
                tax_rate=data.tax_rate,
                discount_amount=data.discount_amount,
                payment_due_date=data.payment_due_date,
                notes=sanitize_string(data.notes),
                items=build_items(data.items),
            )
            apply_totals(quotation)
            return quotation

        quotation = insert_numbered(
            self.db, lambda: self.repo.next_quotation_number(self.db, company.id), build
        )
        subscriptions.increment_usage(company.id, QUOTATION_FEATURE)
        logger.info(f"🧾 Quotation {quotation.quotation_number} created for company {company.id}")
        return quotation

    def update_quotation(self, quotation_id: int, data: QuotationUpdate, company: Company) -> Quotation:
        quotation = self.get_quotation(quotation_id, company)
        updates = data.model_dump(exclude_unset=True, exclude={"items"})
        if "notes" in updates:
            updates["notes"] = sanitize_string(updates["notes"])

        if updates.get("customer_id"):
            self._require_customer(updates["customer_id"], company)
        for key, value in updates.items():
            if value is not None:
                setattr(quotation, key, value)

        if data.items is not None:
            self.repo.replace_items(self.db, quotation, build_items(data.items))
        apply_totals(quotation)
        return self.repo.save(self.db, quotation)

    def update_status(self, quotation_id: int, status: str, company: Company) -> Quotation:
        quotation = self.get_quotation(quotation_id, company)
        quotation.status = status
        return self.repo.save(self.db, quotation)

    def delete_quotation(self, quotation_id: int, company: Company) -> dict:
        quotation = self.get_quotation(quotation_id, company)
        self.repo.delete_quotation(self.db, quotation)
        return {"message": "Quotation deleted"}
