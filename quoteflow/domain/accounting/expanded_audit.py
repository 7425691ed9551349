"""
Expanded-audit (擴大書審) income tax calculator.

Small enterprises with annual revenue up to NT$30M may file on a published
industry profit rate instead of actual books:

    taxable income = revenue * profit rate + other income - deductions

Tax brackets on taxable income:
- up to 120,000: exempt
- 120,000 to 200,000: (income - 120,000) * 50% * 20%
- above 200,000: income * 20%
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...shared.money import round_amount, round_integer
from .profit_rates import ProfitRateService
from .repository import InvoiceRepository

logger = logging.getLogger(__name__)

EXPANDED_AUDIT_REVENUE_LIMIT = 30_000_000
INCOME_TAX_RATE = 0.2
TAX_FREE_THRESHOLD = 120_000
HALF_TAX_THRESHOLD = 200_000

CUSTOM_PROFIT_RATE_NAME = "自訂純益率"


def format_twd(amount: float) -> str:
    """NT$ whole-dollar display, e.g. $1,234,567"""
    value = round_integer(amount)
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,}"


def check_eligibility(total_revenue: float) -> dict:
    exceeds = total_revenue > EXPANDED_AUDIT_REVENUE_LIMIT
    return {
        "is_eligible": not exceeds,
        "reason": (
            f"年營業收入 {format_twd(total_revenue)} 超過擴大書審上限 {format_twd(EXPANDED_AUDIT_REVENUE_LIMIT)}"
            if exceeds
            else None
        ),
        "details": {
            "total_revenue": total_revenue,
            "revenue_limit": EXPANDED_AUDIT_REVENUE_LIMIT,
            "exceeds_limit": exceeds,
        },
    }


def calculate_income_tax(taxable_income: float) -> dict:
    income = max(0, taxable_income)

    if income <= TAX_FREE_THRESHOLD:
        return {
            "type": "TAX_FREE",
            "description": f"課稅所得 {format_twd(income)} ≤ {format_twd(TAX_FREE_THRESHOLD)}，免稅",
            "calculated_tax": 0,
            "final_tax": 0,
        }

    if income <= HALF_TAX_THRESHOLD:
        calculated = (income - TAX_FREE_THRESHOLD) * 0.5 * INCOME_TAX_RATE
        return {
            "type": "HALF_TAX",
            "description": (
                f"課稅所得 {format_twd(income)} 介於 {format_twd(TAX_FREE_THRESHOLD)} "
                f"至 {format_twd(HALF_TAX_THRESHOLD)}，適用半數課稅"
            ),
            "calculated_tax": calculated,
            "final_tax": round_integer(calculated),
        }

    calculated = income * INCOME_TAX_RATE
    return {
        "type": "FULL_TAX",
        "description": f"課稅所得 {format_twd(income)} > {format_twd(HALF_TAX_THRESHOLD)}，適用 20% 稅率",
        "calculated_tax": calculated,
        "final_tax": round_integer(calculated),
    }


def calculate_expanded_audit(
    company_id: int,
    company_name: str,
    company_tax_id: str,
    tax_year: int,
    industry_code: str,
    profit_rate: float,
    total_revenue: float,
    industry_name: Optional[str] = None,
    other_income: float = 0,
    deductions: float = 0,
) -> dict:
    """Pure calculation of an expanded-audit filing"""
    other_income = other_income or 0
    deductions = deductions or 0
    gross_income = total_revenue + other_income
    eligibility = check_eligibility(total_revenue)

    result = {
        "company_id": company_id,
        "company_name": company_name,
        "company_tax_id": company_tax_id,
        "tax_year": tax_year,
        "is_eligible": eligibility["is_eligible"],
        "ineligible_reason": eligibility["reason"],
        "calculated_at": datetime.utcnow().isoformat(),
    }
    calculation = {
        "total_revenue": total_revenue,
        "other_income": other_income,
        "gross_income": gross_income,
        "industry_code": industry_code,
        "industry_name": industry_name or "",
        "profit_rate": profit_rate,
        "profit_rate_display": f"{profit_rate * 100:.1f}%",
        "deductions": deductions,
    }

    if not eligibility["is_eligible"]:
        calculation.update(
            taxable_income_from_business=0,
            total_taxable_income=0,
            tax_calculation_type="TAX_FREE",
            tax_calculation_description="不符合擴大書審資格",
            calculated_tax=0,
            final_tax=0,
        )
        result["calculation"] = calculation
        result["summary"] = {
            "total_revenue_display": format_twd(total_revenue),
            "taxable_income_display": format_twd(0),
            "tax_amount_display": format_twd(0),
            "effective_tax_rate": "0%",
        }
        return result

    from_business = round_integer(total_revenue * profit_rate)
    total_taxable = max(0, from_business + other_income - deductions)
    tax = calculate_income_tax(total_taxable)
    effective = f"{tax['final_tax'] / gross_income * 100:.2f}%" if gross_income > 0 else "0%"

    calculation.update(
        taxable_income_from_business=from_business,
        total_taxable_income=total_taxable,
        tax_calculation_type=tax["type"],
        tax_calculation_description=tax["description"],
        calculated_tax=tax["calculated_tax"],
        final_tax=tax["final_tax"],
    )
    result["calculation"] = calculation
    result["summary"] = {
        "total_revenue_display": format_twd(total_revenue),
        "taxable_income_display": format_twd(total_taxable),
        "tax_amount_display": format_twd(tax["final_tax"]),
        "effective_tax_rate": effective,
    }
    return result


class ExpandedAuditService:
    """Revenue aggregation and the full expanded-audit calculation"""

    def __init__(self, db: Session):
        self.db = db
        self.rates = ProfitRateService(db)

    def aggregate_annual_revenue(self, company_id: int, year: int) -> dict:
        """Sum posted OUTPUT invoices of the year, with monthly buckets"""
        invoices = InvoiceRepository.get_invoices_for_year(self.db, company_id, year, "OUTPUT", "POSTED")

        by_month = {month: {"month": month, "revenue": 0.0, "tax": 0.0, "count": 0} for month in range(1, 13)}
        total_revenue = 0.0
        total_tax = 0.0
        for invoice in invoices:
            untaxed = invoice.untaxed_amount or 0
            tax = invoice.tax_amount or 0
            total_revenue += untaxed
            total_tax += tax
            bucket = by_month[invoice.date.month]
            bucket["revenue"] = round_amount(bucket["revenue"] + untaxed)
            bucket["tax"] = round_amount(bucket["tax"] + tax)
            bucket["count"] += 1

        return {
            "year": year,
            "total_revenue": round_amount(total_revenue),
            "total_tax": round_amount(total_tax),
            "invoice_count": len(invoices),
            "by_month": [by_month[month] for month in range(1, 13)],
        }

    def run_calculation(
        self,
        company_id: int,
        company_name: str,
        company_tax_id: str,
        tax_year: int,
        industry_code: str,
        other_income: float = 0,
        deductions: float = 0,
        override_profit_rate: Optional[float] = None,
        override_revenue: Optional[float] = None,
    ) -> dict:
        if override_revenue is not None:
            total_revenue = override_revenue
        else:
            total_revenue = self.aggregate_annual_revenue(company_id, tax_year)["total_revenue"]

        if override_profit_rate is not None:
            profit_rate = override_profit_rate
            industry_name = CUSTOM_PROFIT_RATE_NAME
        else:
            rate = self.rates.get_rate(industry_code, tax_year)
            if not rate:
                raise HTTPException(
                    status_code=404,
                    detail={"message": f"找不到行業代碼 {industry_code} 的純益率資料", "code": "NOT_FOUND"},
                )
            profit_rate = rate["profit_rate"]
            industry_name = rate["industry_name"]

        logger.info(f"🧮 Expanded audit for company {company_id}, year {tax_year}, industry {industry_code}")
        return calculate_expanded_audit(
            company_id=company_id,
            company_name=company_name,
            company_tax_id=company_tax_id,
            tax_year=tax_year,
            industry_code=industry_code,
            industry_name=industry_name,
            profit_rate=profit_rate,
            total_revenue=total_revenue,
            other_income=other_income,
            deductions=deductions,
        )
