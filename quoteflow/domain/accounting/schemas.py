"""Accounting domain schemas - invoices, profit rates and income tax filings"""

import datetime as dt
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...shared.validators import validate_industry_code, validate_tax_id

InvoiceType = Literal["OUTPUT", "INPUT"]
InvoiceStatus = Literal["DRAFT", "VERIFIED", "POSTED", "VOIDED"]
FilingStatus = Literal["DRAFT", "CALCULATED", "SUBMITTED", "ACCEPTED", "REJECTED"]
FilingMethod = Literal["EXPANDED_AUDIT", "REGULAR", "CPA_CERTIFIED"]


def _check_industry_code(v: Optional[str]) -> Optional[str]:
    if v is not None and not validate_industry_code(v):
        raise ValueError("Industry code must be 4 digits")
    return v


# ==========================================
# Invoices
# ==========================================


class InvoiceCreate(BaseModel):
    invoice_number: str = Field(..., min_length=1, max_length=20)
    invoice_type: InvoiceType
    date: dt.date
    untaxed_amount: float = Field(..., ge=0)
    tax_amount: Optional[float] = Field(None, ge=0)
    counterparty_name: Optional[str] = None
    counterparty_tax_id: Optional[str] = None
    description: Optional[str] = None
    order_id: Optional[int] = None

    @field_validator("invoice_number")
    @classmethod
    def normalize_number(cls, v):
        return v.strip().upper()

    @field_validator("counterparty_tax_id")
    @classmethod
    def check_tax_id(cls, v):
        return validate_tax_id(v)


class InvoiceUpdate(BaseModel):
    date: Optional[dt.date] = None
    untaxed_amount: Optional[float] = Field(None, ge=0)
    tax_amount: Optional[float] = Field(None, ge=0)
    counterparty_name: Optional[str] = None
    counterparty_tax_id: Optional[str] = None
    description: Optional[str] = None

    @field_validator("counterparty_tax_id")
    @classmethod
    def check_tax_id(cls, v):
        return validate_tax_id(v)


class VoidRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_number: str
    invoice_type: str
    status: str
    date: dt.date
    untaxed_amount: float
    tax_amount: float
    total_amount: float
    counterparty_name: Optional[str] = None
    counterparty_tax_id: Optional[str] = None
    description: Optional[str] = None
    order_id: Optional[int] = None
    shipment_id: Optional[int] = None
    posted_at: Optional[dt.datetime] = None
    voided_at: Optional[dt.datetime] = None
    void_reason: Optional[str] = None
    created_at: Optional[dt.datetime] = None


# ==========================================
# Industry profit rates
# ==========================================


class ProfitRateCreate(BaseModel):
    industry_code: str
    industry_name: str = Field(..., min_length=1, max_length=255)
    industry_category: Optional[str] = None
    profit_rate: float = Field(..., ge=0, le=1)
    tax_year: int = Field(..., ge=2000, le=2100)
    source: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("industry_code")
    @classmethod
    def check_code(cls, v):
        return _check_industry_code(v)


class ProfitRateUpdate(BaseModel):
    industry_name: Optional[str] = Field(None, min_length=1, max_length=255)
    industry_category: Optional[str] = None
    profit_rate: Optional[float] = Field(None, ge=0, le=1)
    source: Optional[str] = None
    notes: Optional[str] = None
    is_active: Optional[bool] = None


class ProfitRateImport(BaseModel):
    rates: list[ProfitRateCreate] = Field(..., min_length=1)


class ProfitRateCopy(BaseModel):
    from_year: int = Field(..., ge=2000, le=2100)
    to_year: int = Field(..., ge=2000, le=2100)


class ProfitRateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    industry_code: str
    industry_name: str
    industry_category: Optional[str] = None
    profit_rate: float
    tax_year: int
    source: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool = True


# ==========================================
# Expanded audit and filings
# ==========================================


class ExpandedAuditRequest(BaseModel):
    company_name: str = Field(..., min_length=1)
    tax_id: str = Field(..., min_length=1)
    tax_year: int = Field(..., ge=2000, le=2100)
    industry_code: str
    other_income: float = 0
    deductions: float = 0
    override_revenue: Optional[float] = Field(None, ge=0)
    override_profit_rate: Optional[float] = Field(None, ge=0, le=1)

    @field_validator("industry_code")
    @classmethod
    def check_code(cls, v):
        return _check_industry_code(v)


class ProfitRateSearch(BaseModel):
    query: str = Field(..., min_length=2)
    tax_year: Optional[int] = Field(None, ge=2000, le=2100)


class FilingCreate(BaseModel):
    tax_year: int = Field(..., ge=2000, le=2100)
    filing_method: FilingMethod = "EXPANDED_AUDIT"


class FilingUpdate(BaseModel):
    status: Optional[FilingStatus] = None
    total_revenue: Optional[float] = Field(None, ge=0)
    other_income: Optional[float] = None
    industry_code: Optional[str] = None
    profit_rate: Optional[float] = Field(None, ge=0, le=1)
    deductions: Optional[float] = None
    acceptance_number: Optional[str] = None
    rejection_reason: Optional[str] = None
    pdf_url: Optional[str] = None

    @field_validator("industry_code")
    @classmethod
    def check_code(cls, v):
        return _check_industry_code(v)


class FilingAccept(BaseModel):
    acceptance_number: str = Field(..., min_length=1, max_length=100)


class FilingReject(BaseModel):
    reason: str = Field(..., min_length=1)


class FilingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tax_year: int
    filing_method: str
    status: str
    company_name: str
    company_tax_id: str
    total_revenue: float
    other_income: float
    gross_income: float
    industry_code: Optional[str] = None
    industry_name: Optional[str] = None
    profit_rate: Optional[float] = None
    taxable_income: float
    deductions: float
    calculated_tax: float
    final_tax: float
    is_eligible: bool
    calculation_details: Optional[dict[str, Any]] = None
    calculated_at: Optional[dt.datetime] = None
    submitted_at: Optional[dt.datetime] = None
    acceptance_number: Optional[str] = None
    rejection_reason: Optional[str] = None
    pdf_url: Optional[str] = None
    created_at: Optional[dt.datetime] = None
