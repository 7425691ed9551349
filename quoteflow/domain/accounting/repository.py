"""Accounting repository - invoices, profit rates and income tax filings"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import extract, or_
from sqlalchemy.orm import Session

from ...models_accounting import AccountingInvoice, IncomeTaxFiling, IndustryProfitRate


class InvoiceRepository:
    """Repository for accounting invoice database operations"""

    @staticmethod
    def get_invoices(
        db: Session,
        company_id: int,
        invoice_type: Optional[str] = None,
        status: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AccountingInvoice]:
        query = db.query(AccountingInvoice).filter(AccountingInvoice.company_id == company_id)
        if invoice_type:
            query = query.filter(AccountingInvoice.invoice_type == invoice_type)
        if status:
            query = query.filter(AccountingInvoice.status == status)
        if start_date:
            query = query.filter(AccountingInvoice.date >= start_date)
        if end_date:
            query = query.filter(AccountingInvoice.date <= end_date)
        return (
            query.order_by(AccountingInvoice.date.desc(), AccountingInvoice.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_invoices_for_year(
        db: Session, company_id: int, year: int, invoice_type: str, status: str
    ) -> list[AccountingInvoice]:
        return (
            db.query(AccountingInvoice)
            .filter(
                AccountingInvoice.company_id == company_id,
                AccountingInvoice.invoice_type == invoice_type,
                AccountingInvoice.status == status,
                extract("year", AccountingInvoice.date) == year,
            )
            .all()
        )

    @staticmethod
    def get_invoice(db: Session, invoice_id: int, company_id: int) -> Optional[AccountingInvoice]:
        return (
            db.query(AccountingInvoice)
            .filter(AccountingInvoice.id == invoice_id, AccountingInvoice.company_id == company_id)
            .first()
        )

    @staticmethod
    def number_exists(db: Session, company_id: int, invoice_number: str) -> bool:
        return (
            db.query(AccountingInvoice.id)
            .filter(
                AccountingInvoice.company_id == company_id,
                AccountingInvoice.invoice_number == invoice_number,
            )
            .first()
            is not None
        )

    @staticmethod
    def create_invoice(db: Session, **data) -> AccountingInvoice:
        invoice = AccountingInvoice(**data)
        db.add(invoice)
        db.commit()
        db.refresh(invoice)
        return invoice

    @staticmethod
    def save(db: Session, invoice: AccountingInvoice) -> AccountingInvoice:
        db.commit()
        db.refresh(invoice)
        return invoice

    @staticmethod
    def delete_invoice(db: Session, invoice: AccountingInvoice) -> None:
        db.delete(invoice)
        db.commit()


class ProfitRateRepository:
    """Repository for industry profit rate lookups"""

    @staticmethod
    def get_rate(db: Session, industry_code: str, tax_year: int) -> Optional[IndustryProfitRate]:
        return (
            db.query(IndustryProfitRate)
            .filter(
                IndustryProfitRate.industry_code == industry_code,
                IndustryProfitRate.tax_year == tax_year,
                IndustryProfitRate.is_active.is_(True),
            )
            .first()
        )

    @staticmethod
    def get_by_id(db: Session, rate_id: int) -> Optional[IndustryProfitRate]:
        return db.get(IndustryProfitRate, rate_id)

    @staticmethod
    def exists(db: Session, industry_code: str, tax_year: int) -> bool:
        return (
            db.query(IndustryProfitRate.id)
            .filter(
                IndustryProfitRate.industry_code == industry_code,
                IndustryProfitRate.tax_year == tax_year,
            )
            .first()
            is not None
        )

    @staticmethod
    def get_rates(
        db: Session,
        tax_year: Optional[int] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        is_active: bool = True,
        limit: int = 100,
        offset: int = 0,
    ) -> list[IndustryProfitRate]:
        query = db.query(IndustryProfitRate).filter(IndustryProfitRate.is_active.is_(is_active))
        if tax_year:
            query = query.filter(IndustryProfitRate.tax_year == tax_year)
        if category:
            query = query.filter(IndustryProfitRate.industry_category == category)
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(
                    IndustryProfitRate.industry_code.ilike(pattern),
                    IndustryProfitRate.industry_name.ilike(pattern),
                )
            )
        return query.order_by(IndustryProfitRate.industry_code).offset(offset).limit(limit).all()

    @staticmethod
    def count_for_year(db: Session, tax_year: int) -> int:
        return (
            db.query(IndustryProfitRate)
            .filter(IndustryProfitRate.tax_year == tax_year, IndustryProfitRate.is_active.is_(True))
            .count()
        )

    @staticmethod
    def get_categories(db: Session, tax_year: Optional[int] = None) -> list[str]:
        query = db.query(IndustryProfitRate.industry_category).filter(
            IndustryProfitRate.is_active.is_(True), IndustryProfitRate.industry_category.isnot(None)
        )
        if tax_year:
            query = query.filter(IndustryProfitRate.tax_year == tax_year)
        return sorted({row[0] for row in query.distinct().all()})

    @staticmethod
    def create_rate(db: Session, **data) -> IndustryProfitRate:
        rate = IndustryProfitRate(**data)
        db.add(rate)
        db.commit()
        db.refresh(rate)
        return rate

    @staticmethod
    def save(db: Session, rate: IndustryProfitRate) -> IndustryProfitRate:
        db.commit()
        db.refresh(rate)
        return rate


class FilingRepository:
    """Repository for income tax filings. Deleted filings are hidden."""

    @staticmethod
    def _active(db: Session, company_id: int):
        return db.query(IncomeTaxFiling).filter(
            IncomeTaxFiling.company_id == company_id, IncomeTaxFiling.deleted_at.is_(None)
        )

    @staticmethod
    def get_filings(
        db: Session,
        company_id: int,
        tax_year: Optional[int] = None,
        status: Optional[str] = None,
        filing_method: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[IncomeTaxFiling]:
        query = FilingRepository._active(db, company_id)
        if tax_year:
            query = query.filter(IncomeTaxFiling.tax_year == tax_year)
        if status:
            query = query.filter(IncomeTaxFiling.status == status)
        if filing_method:
            query = query.filter(IncomeTaxFiling.filing_method == filing_method)
        return query.order_by(IncomeTaxFiling.tax_year.desc()).offset(offset).limit(limit).all()

    @staticmethod
    def get_filing(db: Session, filing_id: int, company_id: int) -> Optional[IncomeTaxFiling]:
        return FilingRepository._active(db, company_id).filter(IncomeTaxFiling.id == filing_id).first()

    @staticmethod
    def get_by_year(db: Session, company_id: int, tax_year: int) -> Optional[IncomeTaxFiling]:
        return FilingRepository._active(db, company_id).filter(IncomeTaxFiling.tax_year == tax_year).first()

    @staticmethod
    def create_filing(db: Session, **data) -> IncomeTaxFiling:
        filing = IncomeTaxFiling(**data)
        db.add(filing)
        db.commit()
        db.refresh(filing)
        return filing

    @staticmethod
    def save(db: Session, filing: IncomeTaxFiling) -> IncomeTaxFiling:
        db.commit()
        db.refresh(filing)
        return filing

    @staticmethod
    def soft_delete(db: Session, filing: IncomeTaxFiling) -> None:
        filing.deleted_at = datetime.utcnow()
        db.commit()
