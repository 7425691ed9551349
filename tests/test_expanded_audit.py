import pytest

from quoteflow.domain.accounting.expanded_audit import (
    calculate_expanded_audit,
    calculate_income_tax,
    check_eligibility,
    format_twd,
)


def test_format_twd():
    assert format_twd(1234567.5) == "$1,234,568"
    assert format_twd(-1500) == "-$1,500"
    assert format_twd(0) == "$0"


def test_eligibility_limit():
    assert check_eligibility(30_000_000)["is_eligible"] is True
    over = check_eligibility(30_000_001)
    assert over["is_eligible"] is False
    assert "$30,000,000" in over["reason"]


@pytest.mark.parametrize(
    "income, kind, tax",
    [
        (0, "TAX_FREE", 0),
        (120_000, "TAX_FREE", 0),
        (150_000, "HALF_TAX", 3_000),
        (200_000, "HALF_TAX", 8_000),
        (200_001, "FULL_TAX", 40_000),
        (1_000_000, "FULL_TAX", 200_000),
    ],
)
def test_income_tax_brackets(income, kind, tax):
    result = calculate_income_tax(income)
    assert result["type"] == kind
    assert result["final_tax"] == tax


def test_negative_income_is_tax_free():
    assert calculate_income_tax(-5000)["type"] == "TAX_FREE"


def test_full_calculation():
    result = calculate_expanded_audit(
        company_id=1,
        company_name="測試股份有限公司",
        company_tax_id="04595257",
        tax_year=2025,
        industry_code="4610",
        profit_rate=0.06,
        total_revenue=10_000_000,
        industry_name="批發經紀代理",
        other_income=50_000,
        deductions=20_000,
    )

    calc = result["calculation"]
    assert result["is_eligible"] is True
    assert calc["taxable_income_from_business"] == 600_000
    assert calc["total_taxable_income"] == 630_000
    assert calc["final_tax"] == 126_000
    assert calc["profit_rate_display"] == "6.0%"
    assert result["summary"]["effective_tax_rate"] == "1.25%"
    assert result["summary"]["tax_amount_display"] == "$126,000"


def test_ineligible_company_owes_nothing():
    result = calculate_expanded_audit(
        company_id=1,
        company_name="大公司",
        company_tax_id="04595257",
        tax_year=2025,
        industry_code="4610",
        profit_rate=0.06,
        total_revenue=50_000_000,
    )
    assert result["is_eligible"] is False
    assert result["calculation"]["final_tax"] == 0
    assert result["summary"]["effective_tax_rate"] == "0%"
