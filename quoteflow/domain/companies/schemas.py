"""Company domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...permissions import ROLES
from ...shared.validators import validate_email, validate_tax_id


def _validate_role(value: Optional[str]) -> Optional[str]:
    if value is not None and value not in ROLES:
        raise ValueError(f"Unknown role: {value}")
    if value == "super_admin":
        raise ValueError("super_admin cannot be granted through a company")
    return value


class CompanyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    tax_id: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None

    @field_validator("tax_id")
    @classmethod
    def check_tax_id(cls, v):
        return validate_tax_id(v)

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)


class CompanyUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    tax_id: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None

    @field_validator("tax_id")
    @classmethod
    def check_tax_id(cls, v):
        return validate_tax_id(v)

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)


class CompanyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    public_id: str
    name: str
    tax_id: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    owner_id: int
    created_at: Optional[datetime] = None


class MemberRoleUpdate(BaseModel):
    role_name: str

    @field_validator("role_name")
    @classmethod
    def check_role(cls, v):
        return _validate_role(v)


class InvitationCreate(BaseModel):
    role_name: str = "salesperson"
    max_uses: int = Field(1, ge=1, le=100)
    expires_in_days: int = Field(7, ge=1, le=90)

    @field_validator("role_name")
    @classmethod
    def check_role(cls, v):
        return _validate_role(v)


class InvitationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    invite_code: str
    role_name: str
    max_uses: int
    used_count: int
    expires_at: datetime
    is_active: bool
    created_at: Optional[datetime] = None
