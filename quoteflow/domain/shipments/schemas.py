"""Shipment domain schemas"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

ShipmentStatus = Literal["pending", "in_transit", "delivered", "cancelled"]


class ShipmentLineIn(BaseModel):
    order_item_id: int
    quantity: float = Field(..., gt=0)


class ShipmentFromOrder(BaseModel):
    order_id: int
    ship_all: bool = True
    items: list[ShipmentLineIn] = []
    shipping_date: Optional[date] = None
    expected_delivery: Optional[date] = None
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    shipping_fee: float = Field(0, ge=0)
    recipient_name: Optional[str] = None
    recipient_phone: Optional[str] = None
    recipient_address: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_items(self):
        if not self.ship_all and not self.items:
            raise ValueError("items are required when ship_all is false")
        return self


class ShipmentUpdate(BaseModel):
    expected_delivery: Optional[date] = None
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    shipping_fee: Optional[float] = Field(None, ge=0)
    recipient_name: Optional[str] = None
    recipient_phone: Optional[str] = None
    recipient_address: Optional[str] = None
    notes: Optional[str] = None


class ShipRequest(BaseModel):
    shipping_date: Optional[date] = None
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None


class DeliverRequest(BaseModel):
    actual_delivery: Optional[date] = None


class ShipmentItemIn(BaseModel):
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    sku: Optional[str] = None
    quantity_shipped: float = Field(..., gt=0)
    unit: Optional[str] = None
    unit_price: float = Field(0, ge=0)


class ShipmentItemUpdate(BaseModel):
    product_name: Optional[str] = None
    sku: Optional[str] = None
    quantity_shipped: Optional[float] = Field(None, gt=0)
    unit: Optional[str] = None
    unit_price: Optional[float] = Field(None, ge=0)


class InvoiceFromShipment(BaseModel):
    invoice_number: Optional[str] = Field(None, max_length=20)
    invoice_date: Optional[date] = None


class ShipmentItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_item_id: Optional[int] = None
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    sku: Optional[str] = None
    quantity_shipped: float
    unit: Optional[str] = None
    unit_price: float
    amount: float


class ShipmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    public_id: str
    shipment_number: str
    order_id: int
    customer_id: int
    status: str
    shipping_date: Optional[date] = None
    expected_delivery: Optional[date] = None
    actual_delivery: Optional[date] = None
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    currency: str
    subtotal: float
    shipping_fee: float
    total_amount: float
    recipient_name: Optional[str] = None
    recipient_phone: Optional[str] = None
    recipient_address: Optional[str] = None
    notes: Optional[str] = None
    invoice_id: Optional[int] = None
    created_at: Optional[datetime] = None
    items: list[ShipmentItemResponse] = []
