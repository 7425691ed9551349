"""Income tax filing service - filing records and their status flow"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Company, User
from ...models_accounting import IncomeTaxFiling
from .repository import FilingRepository
from .schemas import FilingCreate, FilingResponse, FilingUpdate

logger = logging.getLogger(__name__)

FILING_STATUSES = ("DRAFT", "CALCULATED", "SUBMITTED", "ACCEPTED", "REJECTED")
LOCKED_STATUSES = ("SUBMITTED", "ACCEPTED")
LOCKED_EDITABLE_FIELDS = {"status", "acceptance_number", "rejection_reason", "pdf_url", "pdf_generated_at"}


def serialize_filing(filing: IncomeTaxFiling) -> dict:
    return FilingResponse.model_validate(filing).model_dump()


class FilingService:
    """Service layer for income tax filings"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = FilingRepository()

    def get_filings(
        self,
        company: Company,
        tax_year: Optional[int] = None,
        status: Optional[str] = None,
        filing_method: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[IncomeTaxFiling]:
        return self.repo.get_filings(self.db, company.id, tax_year, status, filing_method, limit, offset)

    def get_filing(self, filing_id: int, company: Company) -> IncomeTaxFiling:
        filing = self.repo.get_filing(self.db, filing_id, company.id)
        if not filing:
            raise HTTPException(status_code=404, detail="申報記錄不存在")
        return filing

    def get_by_year(self, company: Company, tax_year: int) -> Optional[IncomeTaxFiling]:
        return self.repo.get_by_year(self.db, company.id, tax_year)

    def create_filing(self, data: FilingCreate, company: Company, user: User) -> IncomeTaxFiling:
        if self.repo.get_by_year(self.db, company.id, data.tax_year):
            raise HTTPException(
                status_code=409,
                detail={"message": f"{data.tax_year} 年度的營所稅申報記錄已存在", "code": "DUPLICATE"},
            )
        return self.repo.create_filing(
            self.db,
            company_id=company.id,
            tax_year=data.tax_year,
            filing_method=data.filing_method,
            status="DRAFT",
            company_name=company.name or "",
            company_tax_id=company.tax_id or "",
            created_by=user.id,
        )

    def save_calculation(self, company: Company, result: dict, user: User) -> tuple[IncomeTaxFiling, bool]:
        """
        Store a calculation result on the filing for its year.

        Returns:
            (filing, created) where created is False when an existing filing was updated
        """
        calculation = result["calculation"]
        values = {
            "status": "CALCULATED",
            "company_name": result["company_name"],
            "company_tax_id": result["company_tax_id"],
            "total_revenue": calculation["total_revenue"],
            "other_income": calculation["other_income"],
            "gross_income": calculation["gross_income"],
            "industry_code": calculation["industry_code"],
            "industry_name": calculation["industry_name"],
            "profit_rate": calculation["profit_rate"],
            "taxable_income": calculation["total_taxable_income"],
            "deductions": calculation["deductions"],
            "calculated_tax": calculation["calculated_tax"],
            "final_tax": calculation["final_tax"],
            "is_eligible": result["is_eligible"],
            "calculation_details": {
                **calculation,
                "summary": result["summary"],
                "is_eligible": result["is_eligible"],
                "ineligible_reason": result["ineligible_reason"],
            },
            "calculated_at": datetime.utcnow(),
        }

        existing = self.repo.get_by_year(self.db, company.id, result["tax_year"])
        if existing:
            if existing.status in LOCKED_STATUSES:
                raise HTTPException(
                    status_code=400,
                    detail={"message": "已提交的申報記錄不能修改", "code": "FILING_LOCKED"},
                )
            for key, value in values.items():
                setattr(existing, key, value)
            existing.updated_by = user.id
            return self.repo.save(self.db, existing), False

        filing = self.repo.create_filing(
            self.db,
            company_id=company.id,
            tax_year=result["tax_year"],
            filing_method="EXPANDED_AUDIT",
            created_by=user.id,
            **values,
        )
        logger.info(f"📝 Income tax filing {filing.tax_year} saved for company {company.id}")
        return filing, True

    def update_filing(self, filing_id: int, data: FilingUpdate, company: Company, user: User) -> IncomeTaxFiling:
        filing = self.get_filing(filing_id, company)
        updates = data.model_dump(exclude_unset=True)
        return self._apply_update(filing, updates, user)

    def _apply_update(self, filing: IncomeTaxFiling, updates: dict, user: User) -> IncomeTaxFiling:
        if filing.status in LOCKED_STATUSES:
            attempted = sorted(set(updates) - LOCKED_EDITABLE_FIELDS)
            if attempted:
                raise HTTPException(
                    status_code=400,
                    detail={
                        "message": f"已提交的申報記錄不能修改: {', '.join(attempted)}",
                        "code": "FILING_LOCKED",
                    },
                )

        for key, value in updates.items():
            setattr(filing, key, value)
        if "total_revenue" in updates or "other_income" in updates:
            filing.gross_income = (filing.total_revenue or 0) + (filing.other_income or 0)
        filing.updated_by = user.id
        return self.repo.save(self.db, filing)

    def mark_submitted(self, filing_id: int, company: Company, user: User) -> IncomeTaxFiling:
        filing = self.get_filing(filing_id, company)
        if filing.status != "CALCULATED":
            raise HTTPException(status_code=400, detail="只能提交已計算完成的申報記錄")
        filing.submitted_by = user.id
        return self._apply_update(filing, {"status": "SUBMITTED", "submitted_at": datetime.utcnow()}, user)

    def mark_accepted(self, filing_id: int, acceptance_number: str, company: Company, user: User) -> IncomeTaxFiling:
        filing = self.get_filing(filing_id, company)
        return self._apply_update(filing, {"status": "ACCEPTED", "acceptance_number": acceptance_number}, user)

    def mark_rejected(self, filing_id: int, reason: str, company: Company, user: User) -> IncomeTaxFiling:
        filing = self.get_filing(filing_id, company)
        return self._apply_update(filing, {"status": "REJECTED", "rejection_reason": reason}, user)

    def delete_filing(self, filing_id: int, company: Company) -> dict:
        filing = self.get_filing(filing_id, company)
        if filing.status in LOCKED_STATUSES:
            raise HTTPException(status_code=400, detail="已提交或已受理的申報記錄不能刪除")
        self.repo.soft_delete(self.db, filing)
        return {"message": "Filing deleted"}

    def get_summary(self, company: Company) -> dict:
        filings = self.repo.get_filings(self.db, company.id, limit=100)
        by_status = {status: 0 for status in FILING_STATUSES}
        total_tax_paid = 0.0
        for filing in filings:
            by_status[filing.status] = by_status.get(filing.status, 0) + 1
            if filing.status == "ACCEPTED":
                total_tax_paid += filing.final_tax or 0
        return {
            "total_filings": len(filings),
            "latest_year": filings[0].tax_year if filings else None,
            "total_tax_paid": total_tax_paid,
            "filings_by_status": by_status,
        }
