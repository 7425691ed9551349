"""Order domain schemas"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...shared.validators import validate_currency

OrderStatus = Literal["draft", "confirmed", "shipped", "completed", "cancelled"]


class OrderItemIn(BaseModel):
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    description: Optional[str] = None
    sku: Optional[str] = None
    quantity: float = Field(1, gt=0)
    unit: Optional[str] = None
    unit_price: float = Field(0, ge=0)
    discount: float = Field(0, ge=0, le=100)
    notes: Optional[str] = None


class OrderItemUpdate(BaseModel):
    product_name: Optional[str] = None
    description: Optional[str] = None
    sku: Optional[str] = None
    quantity: Optional[float] = Field(None, gt=0)
    unit: Optional[str] = None
    unit_price: Optional[float] = Field(None, ge=0)
    discount: Optional[float] = Field(None, ge=0, le=100)
    notes: Optional[str] = None


class OrderCreate(BaseModel):
    customer_id: int
    order_date: Optional[date] = None
    expected_delivery_date: Optional[date] = None
    currency: str = "TWD"
    exchange_rate: float = Field(1.0, gt=0)
    tax_rate: float = Field(5, ge=0, le=100)
    discount_amount: float = Field(0, ge=0)
    show_tax: bool = True
    notes: Optional[str] = None
    terms: Optional[str] = None
    shipping_address: Optional[str] = None
    billing_address: Optional[str] = None
    items: list[OrderItemIn] = []

    @field_validator("currency")
    @classmethod
    def check_currency(cls, v):
        return validate_currency(v)


class OrderFromQuotation(BaseModel):
    quotation_id: int
    order_date: Optional[date] = None
    expected_delivery_date: Optional[date] = None
    shipping_address: Optional[str] = None
    billing_address: Optional[str] = None
    notes: Optional[str] = None


class OrderUpdate(BaseModel):
    expected_delivery_date: Optional[date] = None
    tax_rate: Optional[float] = Field(None, ge=0, le=100)
    discount_amount: Optional[float] = Field(None, ge=0)
    show_tax: Optional[bool] = None
    notes: Optional[str] = None
    terms: Optional[str] = None
    shipping_address: Optional[str] = None
    billing_address: Optional[str] = None


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: Optional[int] = None
    quotation_item_id: Optional[int] = None
    product_name: Optional[str] = None
    description: Optional[str] = None
    sku: Optional[str] = None
    quantity: float
    unit: Optional[str] = None
    unit_price: float
    discount: float
    amount: float
    quantity_shipped: float
    quantity_remaining: float
    notes: Optional[str] = None


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    public_id: str
    order_number: str
    customer_id: int
    quotation_id: Optional[int] = None
    status: str
    order_date: date
    expected_delivery_date: Optional[date] = None
    currency: str
    exchange_rate: float
    subtotal: float
    tax_rate: float
    tax_amount: float
    discount_amount: float
    total_amount: float
    show_tax: bool
    notes: Optional[str] = None
    terms: Optional[str] = None
    shipping_address: Optional[str] = None
    billing_address: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    items: list[OrderItemResponse] = []
