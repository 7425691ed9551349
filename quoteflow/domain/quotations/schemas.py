"""Quotation domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...shared.validators import validate_currency

QuotationStatus = Literal["draft", "sent", "accepted", "rejected", "expired"]
PaymentStatus = Literal["unpaid", "partial", "paid", "overdue"]


class QuotationItemIn(BaseModel):
    product_id: Optional[int] = None
    description: Optional[str] = None
    quantity: float = Field(1, gt=0)
    unit: Optional[str] = None
    unit_price: float = Field(0, ge=0)
    discount: float = Field(0, ge=0, le=100)


class QuotationCreate(BaseModel):
    customer_id: int
    issue_date: Optional[date] = None
    valid_until: Optional[date] = None
    currency: str = "TWD"
    exchange_rate: float = Field(1.0, gt=0)
    tax_rate: float = Field(5, ge=0, le=100)
    discount_amount: float = Field(0, ge=0)
    payment_due_date: Optional[date] = None
    notes: Optional[str] = None
    items: list[QuotationItemIn] = []

    @field_validator("currency")
    @classmethod
    def check_currency(cls, v):
        return validate_currency(v)


class QuotationUpdate(BaseModel):
    customer_id: Optional[int] = None
    issue_date: Optional[date] = None
    valid_until: Optional[date] = None
    currency: Optional[str] = None
    exchange_rate: Optional[float] = Field(None, gt=0)
    tax_rate: Optional[float] = Field(None, ge=0, le=100)
    discount_amount: Optional[float] = Field(None, ge=0)
    payment_due_date: Optional[date] = None
    notes: Optional[str] = None
    items: Optional[list[QuotationItemIn]] = None

    @field_validator("currency")
    @classmethod
    def check_currency(cls, v):
        return validate_currency(v)


class QuotationStatusUpdate(BaseModel):
    status: QuotationStatus


class QuotationItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: Optional[int] = None
    description: Optional[str] = None
    quantity: float
    unit: Optional[str] = None
    unit_price: float
    discount: float
    amount: float


class QuotationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    public_id: str
    quotation_number: str
    customer_id: int
    status: str
    issue_date: date
    valid_until: Optional[date] = None
    currency: str
    exchange_rate: float
    subtotal: float
    tax_rate: float
    tax_amount: float
    discount_amount: float
    total_amount: float
    payment_status: str
    payment_due_date: Optional[date] = None
    total_paid: float
    payment_frequency: Optional[str] = None
    contract_signed_date: Optional[date] = None
    contract_expiry_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    items: list[QuotationItemResponse] = []
