"""Accounting router - invoices, industry profit rates and income tax"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...auth import get_current_company
from ...database import get_db
from ...models import Company, User
from ...permissions import require_permission
from ...responses import ok
from ..billing.subscription_service import require_feature
from .expanded_audit import EXPANDED_AUDIT_REVENUE_LIMIT, ExpandedAuditService, check_eligibility
from .filing_service import FilingService, serialize_filing
from .invoice_service import InvoiceService, serialize_invoice
from .profit_rates import ProfitRateService, serialize_rate
from .schemas import (
    ExpandedAuditRequest,
    FilingAccept,
    FilingCreate,
    FilingReject,
    FilingStatus,
    FilingUpdate,
    InvoiceCreate,
    InvoiceStatus,
    InvoiceType,
    InvoiceUpdate,
    ProfitRateCopy,
    ProfitRateCreate,
    ProfitRateImport,
    ProfitRateSearch,
    ProfitRateUpdate,
    VoidRequest,
)

router = APIRouter(prefix="/api/accounting", tags=["Accounting"])

INCOME_TAX_FEATURE = "income_tax"


def get_invoice_service(db: Session = Depends(get_db)) -> InvoiceService:
    return InvoiceService(db)


def get_profit_rate_service(db: Session = Depends(get_db)) -> ProfitRateService:
    return ProfitRateService(db)


def get_filing_service(db: Session = Depends(get_db)) -> FilingService:
    return FilingService(db)


def get_expanded_audit_service(db: Session = Depends(get_db)) -> ExpandedAuditService:
    return ExpandedAuditService(db)


# ==========================================
# Invoices
# ==========================================


@router.get("/invoices")
async def list_invoices(
    invoice_type: Optional[InvoiceType] = None,
    status: Optional[InvoiceStatus] = None,
    year: Optional[int] = Query(None, ge=2000, le=2100),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user: User = Depends(require_permission("reports:read")),
    company: Company = Depends(get_current_company),
    service: InvoiceService = Depends(get_invoice_service),
):
    invoices = service.get_invoices(company, invoice_type, status, year, limit, offset)
    return ok([serialize_invoice(i) for i in invoices])


@router.get("/invoices/{invoice_id}")
async def get_invoice(
    invoice_id: int,
    user: User = Depends(require_permission("reports:read")),
    company: Company = Depends(get_current_company),
    service: InvoiceService = Depends(get_invoice_service),
):
    return ok(serialize_invoice(service.get_invoice(invoice_id, company)))


@router.post("/invoices", status_code=201)
async def create_invoice(
    data: InvoiceCreate,
    user: User = Depends(require_permission("reports:write")),
    company: Company = Depends(get_current_company),
    service: InvoiceService = Depends(get_invoice_service),
):
    return ok(serialize_invoice(service.create_invoice(data, company, user)))


@router.put("/invoices/{invoice_id}")
async def update_invoice(
    invoice_id: int,
    data: InvoiceUpdate,
    user: User = Depends(require_permission("reports:write")),
    company: Company = Depends(get_current_company),
    service: InvoiceService = Depends(get_invoice_service),
):
    return ok(serialize_invoice(service.update_invoice(invoice_id, data, company)))


@router.post("/invoices/{invoice_id}/verify")
async def verify_invoice(
    invoice_id: int,
    user: User = Depends(require_permission("reports:write")),
    company: Company = Depends(get_current_company),
    service: InvoiceService = Depends(get_invoice_service),
):
    return ok(serialize_invoice(service.verify_invoice(invoice_id, company)))


@router.post("/invoices/{invoice_id}/post")
async def post_invoice(
    invoice_id: int,
    user: User = Depends(require_permission("reports:write")),
    company: Company = Depends(get_current_company),
    service: InvoiceService = Depends(get_invoice_service),
):
    return ok(serialize_invoice(service.post_invoice(invoice_id, company)))


@router.post("/invoices/{invoice_id}/void")
async def void_invoice(
    invoice_id: int,
    data: VoidRequest,
    user: User = Depends(require_permission("reports:write")),
    company: Company = Depends(get_current_company),
    service: InvoiceService = Depends(get_invoice_service),
):
    return ok(serialize_invoice(service.void_invoice(invoice_id, data.reason, company)))


@router.delete("/invoices/{invoice_id}")
async def delete_invoice(
    invoice_id: int,
    user: User = Depends(require_permission("reports:write")),
    company: Company = Depends(get_current_company),
    service: InvoiceService = Depends(get_invoice_service),
):
    return ok(service.delete_invoice(invoice_id, company))


# ==========================================
# Industry profit rates
# ==========================================


@router.get("/profit-rates")
async def list_profit_rates(
    tax_year: Optional[int] = Query(None, ge=2000, le=2100),
    category: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    user: User = Depends(require_permission("reports:read")),
    service: ProfitRateService = Depends(get_profit_rate_service),
):
    return ok(service.list_rates(tax_year, category, search, limit, offset))


@router.get("/profit-rates/categories")
async def list_profit_rate_categories(
    tax_year: Optional[int] = Query(None, ge=2000, le=2100),
    user: User = Depends(require_permission("reports:read")),
    service: ProfitRateService = Depends(get_profit_rate_service),
):
    return ok(service.get_categories(tax_year))


@router.get("/profit-rates/{industry_code}")
async def get_profit_rate(
    industry_code: str,
    tax_year: int = Query(..., ge=2000, le=2100),
    user: User = Depends(require_permission("reports:read")),
    service: ProfitRateService = Depends(get_profit_rate_service),
):
    rate = service.get_rate(industry_code, tax_year)
    if not rate:
        raise HTTPException(status_code=404, detail=f"找不到行業代碼 {industry_code} 的純益率資料")
    return ok(rate)


@router.post("/profit-rates", status_code=201)
async def create_profit_rate(
    data: ProfitRateCreate,
    user: User = Depends(require_permission("reports:write")),
    service: ProfitRateService = Depends(get_profit_rate_service),
):
    return ok(serialize_rate(service.create_rate(data)))


@router.post("/profit-rates/import")
async def import_profit_rates(
    data: ProfitRateImport,
    user: User = Depends(require_permission("reports:write")),
    service: ProfitRateService = Depends(get_profit_rate_service),
):
    return ok(service.bulk_import(data.rates))


@router.post("/profit-rates/copy")
async def copy_profit_rates(
    data: ProfitRateCopy,
    user: User = Depends(require_permission("reports:write")),
    service: ProfitRateService = Depends(get_profit_rate_service),
):
    copied = service.copy_year(data.from_year, data.to_year)
    return ok({"copied": copied, "from_year": data.from_year, "to_year": data.to_year})


@router.put("/profit-rates/{rate_id}")
async def update_profit_rate(
    rate_id: int,
    data: ProfitRateUpdate,
    user: User = Depends(require_permission("reports:write")),
    service: ProfitRateService = Depends(get_profit_rate_service),
):
    return ok(serialize_rate(service.update_rate(rate_id, data)))


@router.delete("/profit-rates/{rate_id}")
async def delete_profit_rate(
    rate_id: int,
    user: User = Depends(require_permission("reports:write")),
    service: ProfitRateService = Depends(get_profit_rate_service),
):
    return ok(service.delete_rate(rate_id))


# ==========================================
# Income tax - expanded audit
# ==========================================


@router.get("/income-tax/expanded-audit")
async def get_expanded_audit(
    action: Literal["preview", "list", "summary"] = "preview",
    tax_year: Optional[int] = None,
    industry_code: Optional[str] = None,
    company_name: Optional[str] = None,
    tax_id: Optional[str] = None,
    user: User = Depends(require_permission("reports:read")),
    company: Company = Depends(require_feature(INCOME_TAX_FEATURE)),
    audit: ExpandedAuditService = Depends(get_expanded_audit_service),
    filings: FilingService = Depends(get_filing_service),
):
    if action == "summary":
        return ok(filings.get_summary(company))
    if action == "list":
        return ok([serialize_filing(f) for f in filings.get_filings(company)])

    if tax_year is None:
        raise HTTPException(status_code=400, detail="tax_year is required for preview")
    if tax_year < 2000 or tax_year > 2100:
        raise HTTPException(status_code=400, detail="Invalid tax_year")

    revenue_summary = audit.aggregate_annual_revenue(company.id, tax_year)
    if not industry_code:
        return ok(
            {
                "tax_year": tax_year,
                "revenue_summary": revenue_summary,
                "eligibility": check_eligibility(revenue_summary["total_revenue"]),
                "revenue_limit": EXPANDED_AUDIT_REVENUE_LIMIT,
                "message": "請提供 industry_code 以計算稅額",
            }
        )

    result = audit.run_calculation(
        company.id,
        company_name or company.name,
        tax_id or company.tax_id or "",
        tax_year,
        industry_code,
    )
    return ok({"result": result, "revenue_summary": revenue_summary})


@router.post("/income-tax/expanded-audit")
async def calculate_expanded_audit(
    data: ExpandedAuditRequest,
    user: User = Depends(require_permission("reports:write")),
    company: Company = Depends(require_feature(INCOME_TAX_FEATURE)),
    audit: ExpandedAuditService = Depends(get_expanded_audit_service),
    filings: FilingService = Depends(get_filing_service),
):
    result = audit.run_calculation(
        company.id,
        data.company_name,
        data.tax_id,
        data.tax_year,
        data.industry_code,
        other_income=data.other_income,
        deductions=data.deductions,
        override_profit_rate=data.override_profit_rate,
        override_revenue=data.override_revenue,
    )
    filing, created = filings.save_calculation(company, result, user)
    return ok(
        {"filing": serialize_filing(filing), "calculation": result},
        message="已建立申報記錄" if created else "已更新申報記錄",
    )


@router.put("/income-tax/expanded-audit")
async def search_profit_rates(
    data: ProfitRateSearch,
    user: User = Depends(require_permission("reports:read")),
    service: ProfitRateService = Depends(get_profit_rate_service),
):
    results = service.search_rates(data.query, data.tax_year)
    year = results[0]["tax_year"] if results else data.tax_year
    return ok(results, meta={"query": data.query, "tax_year": year, "count": len(results)})


# ==========================================
# Income tax - filings
# ==========================================


@router.get("/income-tax/filings")
async def list_filings(
    tax_year: Optional[int] = None,
    status: Optional[FilingStatus] = None,
    user: User = Depends(require_permission("reports:read")),
    company: Company = Depends(get_current_company),
    service: FilingService = Depends(get_filing_service),
):
    return ok([serialize_filing(f) for f in service.get_filings(company, tax_year, status)])


@router.post("/income-tax/filings", status_code=201)
async def create_filing(
    data: FilingCreate,
    user: User = Depends(require_permission("reports:write")),
    company: Company = Depends(get_current_company),
    service: FilingService = Depends(get_filing_service),
):
    return ok(serialize_filing(service.create_filing(data, company, user)))


@router.get("/income-tax/filings/{filing_id}")
async def get_filing(
    filing_id: int,
    user: User = Depends(require_permission("reports:read")),
    company: Company = Depends(get_current_company),
    service: FilingService = Depends(get_filing_service),
):
    return ok(serialize_filing(service.get_filing(filing_id, company)))


@router.put("/income-tax/filings/{filing_id}")
async def update_filing(
    filing_id: int,
    data: FilingUpdate,
    user: User = Depends(require_permission("reports:write")),
    company: Company = Depends(get_current_company),
    service: FilingService = Depends(get_filing_service),
):
    return ok(serialize_filing(service.update_filing(filing_id, data, company, user)))


@router.post("/income-tax/filings/{filing_id}/submit")
async def submit_filing(
    filing_id: int,
    user: User = Depends(require_permission("reports:write")),
    company: Company = Depends(get_current_company),
    service: FilingService = Depends(get_filing_service),
):
    return ok(serialize_filing(service.mark_submitted(filing_id, company, user)))


@router.post("/income-tax/filings/{filing_id}/accept")
async def accept_filing(
    filing_id: int,
    data: FilingAccept,
    user: User = Depends(require_permission("reports:write")),
    company: Company = Depends(get_current_company),
    service: FilingService = Depends(get_filing_service),
):
    return ok(serialize_filing(service.mark_accepted(filing_id, data.acceptance_number, company, user)))


@router.post("/income-tax/filings/{filing_id}/reject")
async def reject_filing(
    filing_id: int,
    data: FilingReject,
    user: User = Depends(require_permission("reports:write")),
    company: Company = Depends(get_current_company),
    service: FilingService = Depends(get_filing_service),
):
    return ok(serialize_filing(service.mark_rejected(filing_id, data.reason, company, user)))


@router.delete("/income-tax/filings/{filing_id}")
async def delete_filing(
    filing_id: int,
    user: User = Depends(require_permission("reports:write")),
    company: Company = Depends(get_current_company),
    service: FilingService = Depends(get_filing_service),
):
    return ok(service.delete_filing(filing_id, company))


__all__ = ["router"]
