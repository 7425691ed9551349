"""Accounting invoice service - uniform invoice lifecycle"""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Company, User
from ...models_accounting import AccountingInvoice
from ...shared.money import round_amount
from .repository import InvoiceRepository
from .schemas import InvoiceCreate, InvoiceResponse, InvoiceUpdate

logger = logging.getLogger(__name__)

VAT_RATE = 0.05


def vat_for(untaxed_amount: float) -> float:
    return round_amount(untaxed_amount * VAT_RATE)


def serialize_invoice(invoice: AccountingInvoice) -> dict:
    return InvoiceResponse.model_validate(invoice).model_dump()


class InvoiceService:
    """Service layer for accounting invoices"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = InvoiceRepository()

    def get_invoices(
        self,
        company: Company,
        invoice_type: Optional[str] = None,
        status: Optional[str] = None,
        year: Optional[int] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AccountingInvoice]:
        start_date = date(year, 1, 1) if year else None
        end_date = date(year, 12, 31) if year else None
        return self.repo.get_invoices(
            self.db, company.id, invoice_type, status, start_date, end_date, limit, offset
        )

    def get_invoice(self, invoice_id: int, company: Company) -> AccountingInvoice:
        invoice = self.repo.get_invoice(self.db, invoice_id, company.id)
        if not invoice:
            raise HTTPException(status_code=404, detail="Invoice not found")
        return invoice

    def create_invoice(self, data: InvoiceCreate, company: Company, user: User, **extra) -> AccountingInvoice:
        if self.repo.number_exists(self.db, company.id, data.invoice_number):
            raise HTTPException(
                status_code=409,
                detail={"message": f"Invoice number {data.invoice_number} already exists", "code": "DUPLICATE"},
            )

        untaxed = round_amount(data.untaxed_amount)
        tax = round_amount(data.tax_amount) if data.tax_amount is not None else vat_for(untaxed)
        invoice = self.repo.create_invoice(
            self.db,
            company_id=company.id,
            user_id=user.id,
            invoice_number=data.invoice_number,
            invoice_type=data.invoice_type,
            status="DRAFT",
            date=data.date,
            untaxed_amount=untaxed,
            tax_amount=tax,
            total_amount=round_amount(untaxed + tax),
            counterparty_name=data.counterparty_name,
            counterparty_tax_id=data.counterparty_tax_id,
            description=data.description,
            order_id=data.order_id,
            **extra,
        )
        logger.info(f"🧾 {invoice.invoice_type} invoice {invoice.invoice_number} created for company {company.id}")
        return invoice

    def update_invoice(self, invoice_id: int, data: InvoiceUpdate, company: Company) -> AccountingInvoice:
        invoice = self.get_invoice(invoice_id, company)
        if invoice.status != "DRAFT":
            raise HTTPException(status_code=400, detail="Only draft invoices can be modified")

        updates = data.model_dump(exclude_unset=True)
        for key, value in updates.items():
            if value is not None:
                setattr(invoice, key, value)
        if "untaxed_amount" in updates and "tax_amount" not in updates:
            invoice.tax_amount = vat_for(invoice.untaxed_amount)
        invoice.total_amount = round_amount(invoice.untaxed_amount + invoice.tax_amount)
        return self.repo.save(self.db, invoice)

    def verify_invoice(self, invoice_id: int, company: Company) -> AccountingInvoice:
        invoice = self.get_invoice(invoice_id, company)
        if invoice.status != "DRAFT":
            raise HTTPException(status_code=400, detail="Only draft invoices can be verified")
        invoice.status = "VERIFIED"
        return self.repo.save(self.db, invoice)

    def post_invoice(self, invoice_id: int, company: Company) -> AccountingInvoice:
        invoice = self.get_invoice(invoice_id, company)
        if invoice.status != "VERIFIED":
            raise HTTPException(status_code=400, detail="Only verified invoices can be posted")
        invoice.status = "POSTED"
        invoice.posted_at = datetime.utcnow()
        return self.repo.save(self.db, invoice)

    def void_invoice(self, invoice_id: int, reason: str, company: Company) -> AccountingInvoice:
        invoice = self.get_invoice(invoice_id, company)
        if invoice.status == "VOIDED":
            raise HTTPException(status_code=400, detail="Invoice is already voided")
        invoice.status = "VOIDED"
        invoice.voided_at = datetime.utcnow()
        invoice.void_reason = reason
        logger.info(f"🗑️ Invoice {invoice.invoice_number} voided: {reason}")
        return self.repo.save(self.db, invoice)

    def delete_invoice(self, invoice_id: int, company: Company) -> dict:
        invoice = self.get_invoice(invoice_id, company)
        if invoice.status == "POSTED":
            raise HTTPException(status_code=400, detail="Posted invoices cannot be deleted")
        self.repo.delete_invoice(self.db, invoice)
        return {"message": "Invoice deleted"}
