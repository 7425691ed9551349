"""Contract and payment schedule schemas"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ...shared.validators import validate_currency

PaymentTerms = Literal["quarterly", "semi_annual", "annual"]
ContractStatus = Literal["active", "expired", "terminated"]


class ContractCreate(BaseModel):
    customer_id: int
    title: str = Field(..., min_length=1, max_length=255)
    start_date: date
    end_date: date
    signed_date: Optional[date] = None
    total_amount: float = Field(..., ge=0)
    currency: str = "TWD"
    payment_terms: Optional[PaymentTerms] = None
    notes: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def check_currency(cls, v):
        return validate_currency(v)

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ContractUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    end_date: Optional[date] = None
    signed_date: Optional[date] = None
    status: Optional[ContractStatus] = None
    notes: Optional[str] = None


class ContractFromQuotation(BaseModel):
    quotation_id: int
    signed_date: date
    expiry_date: date
    payment_frequency: PaymentTerms
    payment_day: int = Field(5, ge=1, le=28)


class MarkSchedulePaid(BaseModel):
    paid_date: Optional[date] = None
    paid_amount: Optional[float] = Field(None, gt=0)
    payment_id: Optional[int] = None


class ScheduleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    contract_id: int
    customer_id: int
    schedule_number: int
    due_date: date
    amount: float
    currency: str
    status: str
    paid_amount: float
    paid_date: Optional[date] = None
    payment_id: Optional[int] = None
    days_overdue: int
    reminder_count: int
    last_reminder_sent_at: Optional[datetime] = None


class ContractResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    public_id: str
    contract_number: str
    customer_id: int
    quotation_id: Optional[int] = None
    title: str
    start_date: date
    end_date: date
    signed_date: Optional[date] = None
    total_amount: float
    currency: str
    payment_terms: Optional[str] = None
    status: str
    next_billing_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    schedules: list[ScheduleResponse] = []
