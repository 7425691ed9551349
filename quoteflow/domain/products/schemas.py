"""Product domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...shared.validators import validate_currency

COST_FIELDS = ("cost_price", "cost_currency")


class ProductBase(BaseModel):
    sku: Optional[str] = Field(None, max_length=100)
    name_en: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    unit: Optional[str] = None
    currency: Optional[str] = None
    cost_price: Optional[float] = Field(None, ge=0)
    cost_currency: Optional[str] = None

    @field_validator("currency", "cost_currency")
    @classmethod
    def check_currency(cls, v):
        return validate_currency(v)


class ProductCreate(ProductBase):
    name_zh: str = Field(..., min_length=1, max_length=255)
    unit_price: float = Field(..., ge=0)
    currency: Optional[str] = "TWD"


class ProductUpdate(ProductBase):
    name_zh: Optional[str] = Field(None, min_length=1, max_length=255)
    unit_price: Optional[float] = Field(None, ge=0)
    is_active: Optional[bool] = None


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sku: Optional[str] = None
    name_zh: str
    name_en: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    unit: Optional[str] = None
    unit_price: float
    currency: str
    cost_price: Optional[float] = None
    cost_currency: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
