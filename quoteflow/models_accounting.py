from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from .database import Base


class AccountingInvoice(Base):
    """Uniform invoice (統一發票) used for VAT and annual revenue aggregation"""

    __tablename__ = "accounting_invoices"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    invoice_number = Column(String(20), nullable=False, index=True)  # e.g. AB12345678
    invoice_type = Column(String(10), nullable=False)  # OUTPUT (sales), INPUT (purchase)
    status = Column(String(20), default="DRAFT", nullable=False)  # DRAFT, VERIFIED, POSTED, VOIDED
    date = Column(Date, nullable=False, index=True)
    untaxed_amount = Column(Float, default=0, nullable=False)
    tax_amount = Column(Float, default=0, nullable=False)
    total_amount = Column(Float, default=0, nullable=False)
    counterparty_name = Column(String(255), nullable=True)
    counterparty_tax_id = Column(String(8), nullable=True)
    description = Column(Text, nullable=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=True)
    shipment_id = Column(Integer, nullable=True)
    posted_at = Column(DateTime, nullable=True)
    voided_at = Column(DateTime, nullable=True)
    void_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class IndustryProfitRate(Base):
    """Published net profit rate (純益率) per industry code and tax year"""

    __tablename__ = "industry_profit_rates"
    __table_args__ = (
        UniqueConstraint("industry_code", "tax_year", name="uq_profit_rate_code_year"),
    )

    id = Column(Integer, primary_key=True, index=True)
    industry_code = Column(String(4), nullable=False, index=True)
    industry_name = Column(String(255), nullable=False)
    industry_category = Column(String(100), nullable=True)
    profit_rate = Column(Float, nullable=False)  # 0.06 == 6%
    tax_year = Column(Integer, nullable=False, index=True)
    source = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class IncomeTaxFiling(Base):
    """Annual profit-seeking enterprise income tax filing (營所稅申報)"""

    __tablename__ = "income_tax_filings"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    tax_year = Column(Integer, nullable=False, index=True)
    filing_method = Column(String(20), default="EXPANDED_AUDIT", nullable=False)  # EXPANDED_AUDIT, REGULAR, CPA_CERTIFIED
    status = Column(String(20), default="DRAFT", nullable=False)  # DRAFT, CALCULATED, SUBMITTED, ACCEPTED, REJECTED
    company_name = Column(String(255), default="", nullable=False)
    company_tax_id = Column(String(8), default="", nullable=False)
    total_revenue = Column(Float, default=0, nullable=False)
    other_income = Column(Float, default=0, nullable=False)
    gross_income = Column(Float, default=0, nullable=False)
    industry_code = Column(String(4), nullable=True)
    industry_name = Column(String(255), nullable=True)
    profit_rate = Column(Float, nullable=True)
    taxable_income = Column(Float, default=0, nullable=False)
    deductions = Column(Float, default=0, nullable=False)
    calculated_tax = Column(Float, default=0, nullable=False)
    final_tax = Column(Float, default=0, nullable=False)
    is_eligible = Column(Boolean, default=False, nullable=False)
    calculation_details = Column(JSON, nullable=True)
    calculated_at = Column(DateTime, nullable=True)
    submitted_at = Column(DateTime, nullable=True)
    submitted_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    acceptance_number = Column(String(100), nullable=True)  # 財政部受理編號
    rejection_reason = Column(Text, nullable=True)
    pdf_url = Column(String(500), nullable=True)
    pdf_generated_at = Column(DateTime, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime, nullable=True)  # Soft delete
