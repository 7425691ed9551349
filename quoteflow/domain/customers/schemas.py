"""Customer domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...shared.validators import validate_currency, validate_email, validate_tax_id


class CustomerBase(BaseModel):
    contact_person: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    fax: Optional[str] = None
    address: Optional[str] = None
    tax_id: Optional[str] = None
    notes: Optional[str] = None
    payment_terms: Optional[str] = None
    payment_currency: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("tax_id")
    @classmethod
    def check_tax_id(cls, v):
        return validate_tax_id(v)

    @field_validator("payment_currency")
    @classmethod
    def check_currency(cls, v):
        return validate_currency(v)


class CustomerCreate(CustomerBase):
    name_zh: str = Field(..., min_length=1, max_length=255)
    name_en: Optional[str] = None


class CustomerUpdate(CustomerBase):
    name_zh: Optional[str] = Field(None, min_length=1, max_length=255)
    name_en: Optional[str] = None
    is_active: Optional[bool] = None


class CustomerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name_zh: str
    name_en: Optional[str] = None
    contact_person: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    fax: Optional[str] = None
    address: Optional[str] = None
    tax_id: Optional[str] = None
    notes: Optional[str] = None
    contract_status: str
    contract_expiry_date: Optional[date] = None
    payment_terms: Optional[str] = None
    next_payment_due_date: Optional[date] = None
    next_payment_amount: Optional[float] = None
    payment_currency: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        data = self.model_dump()
        data["name"] = {"zh": self.name_zh, "en": self.name_en}
        return data
