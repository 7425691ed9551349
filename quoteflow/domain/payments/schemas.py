"""Payment schemas"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...shared.validators import validate_currency

PaymentMethod = Literal["bank_transfer", "cash", "check", "credit_card"]
PaymentType = Literal["deposit", "installment", "final", "full"]
PaymentStatus = Literal["confirmed", "pending", "cancelled"]
ReminderBucket = Literal["overdue", "due_today", "due_soon", "upcoming"]


class PaymentCreate(BaseModel):
    customer_id: int
    quotation_id: Optional[int] = None
    contract_id: Optional[int] = None
    schedule_id: Optional[int] = None
    payment_type: PaymentType = "installment"
    amount: float = Field(..., gt=0)
    currency: str = "TWD"
    payment_date: date
    payment_method: Optional[PaymentMethod] = None
    reference_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def check_currency(cls, v):
        return validate_currency(v)


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    customer_id: int
    quotation_id: Optional[int] = None
    contract_id: Optional[int] = None
    payment_type: str
    amount: float
    currency: str
    payment_date: date
    payment_method: Optional[str] = None
    reference_number: Optional[str] = None
    status: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
