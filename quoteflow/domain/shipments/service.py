"""Shipment service - shipping against orders and the shipment lifecycle"""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Company, Order, OrderItem, Shipment, ShipmentItem, User
from ...models_accounting import AccountingInvoice
from ...shared.money import line_amount, round_amount
from ...shared.numbering import insert_numbered
from ..accounting.invoice_service import InvoiceService
from ..accounting.schemas import InvoiceCreate
from ..orders.repository import OrderRepository
from .repository import ShipmentRepository
from .schemas import (
    InvoiceFromShipment,
    ShipmentFromOrder,
    ShipmentItemIn,
    ShipmentItemUpdate,
    ShipmentResponse,
    ShipmentUpdate,
    ShipRequest,
)

logger = logging.getLogger(__name__)

SHIPMENT_STATUSES = ("pending", "in_transit", "delivered", "cancelled")
SHIPPABLE_ORDER_STATUSES = ("confirmed", "shipped")


def recalculate_totals(shipment: Shipment) -> None:
    """total = subtotal + shipping_fee"""
    shipment.subtotal = round_amount(sum(item.amount or 0 for item in shipment.items))
    shipment.total_amount = round_amount(shipment.subtotal + (shipment.shipping_fee or 0))


def serialize_shipment(shipment: Shipment) -> dict:
    return ShipmentResponse.model_validate(shipment).model_dump()


class ShipmentService:
    """Service layer for shipment business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ShipmentRepository()

    def get_shipments(
        self,
        company: Company,
        status: Optional[str] = None,
        order_id: Optional[int] = None,
        customer_id: Optional[int] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Shipment]:
        return self.repo.get_shipments(self.db, company.id, status, order_id, customer_id, limit, offset)

    def get_shipment(self, shipment_id: int, company: Company) -> Shipment:
        shipment = self.repo.get_shipment(self.db, shipment_id, company.id)
        if not shipment:
            raise HTTPException(status_code=404, detail="Shipment not found")
        return shipment

    def get_stats(self, company: Company) -> dict:
        counts = self.repo.get_status_counts(self.db, company.id)
        stats = {"total": sum(counts.values())}
        for status in SHIPMENT_STATUSES:
            stats[status] = counts.get(status, 0)
        return stats

    # ==========================================
    # Shipping against an order
    # ==========================================

    def _shipment_lines(self, order: Order, data: ShipmentFromOrder) -> list[tuple[OrderItem, float]]:
        if data.ship_all:
            return [(item, item.quantity_remaining) for item in order.items if item.quantity_remaining > 0]

        by_id = {item.id: item for item in order.items}
        lines = []
        for line in data.items:
            item = by_id.get(line.order_item_id)
            if not item:
                raise HTTPException(status_code=400, detail=f"Order item {line.order_item_id} not in order")
            if line.quantity > item.quantity_remaining:
                raise HTTPException(
                    status_code=400,
                    detail=f"Quantity {line.quantity} exceeds remaining {item.quantity_remaining} for item {item.id}",
                )
            lines.append((item, line.quantity))
        return lines

    def create_from_order(self, data: ShipmentFromOrder, company: Company, user: User) -> Shipment:
        order = OrderRepository.get_order(self.db, data.order_id, company.id)
        if not order:
            raise HTTPException(status_code=404, detail="Order not found")
        if order.status not in SHIPPABLE_ORDER_STATUSES:
            raise HTTPException(
                status_code=400,
                detail=f"Only confirmed or shipped orders can be shipped. Current status: {order.status}",
            )

        lines = self._shipment_lines(order, data)
        if not lines:
            raise HTTPException(status_code=400, detail="Nothing left to ship on this order")

        def build(number: str) -> Shipment:
            shipment = Shipment(
                company_id=company.id,
                user_id=user.id,
                order_id=order.id,
                customer_id=order.customer_id,
                shipment_number=number,
                status="pending",
                shipping_date=data.shipping_date,
                expected_delivery=data.expected_delivery or order.expected_delivery_date,
                carrier=data.carrier,
                tracking_number=data.tracking_number,
                currency=order.currency,
                shipping_fee=data.shipping_fee,
                recipient_name=data.recipient_name,
                recipient_phone=data.recipient_phone,
                recipient_address=data.recipient_address or order.shipping_address,
                notes=data.notes,
                items=[
                    ShipmentItem(
                        order_item_id=item.id,
                        product_id=item.product_id,
                        product_name=item.product_name,
                        sku=item.sku,
                        quantity_shipped=quantity,
                        unit=item.unit,
                        unit_price=item.unit_price,
                        amount=line_amount(quantity, item.unit_price, item.discount),
                        sort_order=index,
                    )
                    for index, (item, quantity) in enumerate(lines)
                ],
            )
            recalculate_totals(shipment)
            return shipment

        shipment = insert_numbered(
            self.db, lambda: self.repo.next_shipment_number(self.db, company.id), build
        )

        for item, quantity in lines:
            item.quantity_shipped = (item.quantity_shipped or 0) + quantity
            item.quantity_remaining = max(item.quantity - item.quantity_shipped, 0)
        if all(item.quantity_remaining <= 0 for item in order.items):
            order.status = "shipped"
            order.shipped_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(shipment)

        logger.info(f"🚚 Shipment {shipment.shipment_number} created for order {order.order_number}")
        return shipment

    def _return_quantities(self, shipment: Shipment) -> None:
        """Give shipped quantities back to the order lines"""
        order_items = self.repo.get_order_items(
            self.db, [item.order_item_id for item in shipment.items if item.order_item_id]
        )
        for item in shipment.items:
            order_item = order_items.get(item.order_item_id)
            if not order_item:
                continue
            order_item.quantity_shipped = max((order_item.quantity_shipped or 0) - item.quantity_shipped, 0)
            order_item.quantity_remaining = max(order_item.quantity - order_item.quantity_shipped, 0)

        order = shipment.order
        if order and order.status == "shipped" and any(i.quantity_remaining > 0 for i in order.items):
            order.status = "confirmed"
            order.shipped_at = None

    # ==========================================
    # Lifecycle
    # ==========================================

    def update_shipment(self, shipment_id: int, data: ShipmentUpdate, company: Company) -> Shipment:
        shipment = self.get_shipment(shipment_id, company)
        for key, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(shipment, key, value)
        recalculate_totals(shipment)
        return self.repo.save(self.db, shipment)

    def ship(self, shipment_id: int, data: ShipRequest, company: Company) -> Shipment:
        shipment = self.get_shipment(shipment_id, company)
        if shipment.status != "pending":
            raise HTTPException(
                status_code=400,
                detail=f"Only pending shipments can be shipped. Current status: {shipment.status}",
            )
        shipment.status = "in_transit"
        shipment.shipping_date = data.shipping_date or date.today()
        if data.carrier:
            shipment.carrier = data.carrier
        if data.tracking_number:
            shipment.tracking_number = data.tracking_number
        return self.repo.save(self.db, shipment)

    def deliver(self, shipment_id: int, company: Company, actual_delivery: Optional[date] = None) -> Shipment:
        shipment = self.get_shipment(shipment_id, company)
        if shipment.status not in ("pending", "in_transit"):
            raise HTTPException(
                status_code=400,
                detail=f"Only in-transit or pending shipments can be delivered. Current status: {shipment.status}",
            )
        shipment.status = "delivered"
        shipment.actual_delivery = actual_delivery or date.today()
        return self.repo.save(self.db, shipment)

    def cancel(self, shipment_id: int, company: Company) -> Shipment:
        shipment = self.get_shipment(shipment_id, company)
        if shipment.status in ("delivered", "cancelled"):
            raise HTTPException(status_code=400, detail=f"Cannot cancel shipment with status: {shipment.status}")
        self._return_quantities(shipment)
        shipment.status = "cancelled"
        return self.repo.save(self.db, shipment)

    def delete_shipment(self, shipment_id: int, company: Company) -> dict:
        shipment = self.get_shipment(shipment_id, company)
        if shipment.status != "pending":
            raise HTTPException(status_code=400, detail="Only pending shipments can be deleted")
        self._return_quantities(shipment)
        self.repo.delete_shipment(self.db, shipment)
        return {"message": "Shipment deleted"}

    # ==========================================
    # Items
    # ==========================================

    def _get_item(self, shipment: Shipment, item_id: int) -> ShipmentItem:
        item = self.repo.get_item(self.db, shipment, item_id)
        if not item:
            raise HTTPException(status_code=404, detail="Shipment item not found")
        return item

    def add_item(self, shipment_id: int, data: ShipmentItemIn, company: Company) -> Shipment:
        shipment = self.get_shipment(shipment_id, company)
        shipment.items.append(
            ShipmentItem(
                product_id=data.product_id,
                product_name=data.product_name,
                sku=data.sku,
                quantity_shipped=data.quantity_shipped,
                unit=data.unit,
                unit_price=data.unit_price,
                amount=line_amount(data.quantity_shipped, data.unit_price),
                sort_order=len(shipment.items),
            )
        )
        recalculate_totals(shipment)
        return self.repo.save(self.db, shipment)

    def update_item(self, shipment_id: int, item_id: int, data: ShipmentItemUpdate, company: Company) -> Shipment:
        shipment = self.get_shipment(shipment_id, company)
        item = self._get_item(shipment, item_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(item, key, value)
        item.amount = line_amount(item.quantity_shipped, item.unit_price)
        recalculate_totals(shipment)
        return self.repo.save(self.db, shipment)

    def delete_item(self, shipment_id: int, item_id: int, company: Company) -> Shipment:
        shipment = self.get_shipment(shipment_id, company)
        shipment.items.remove(self._get_item(shipment, item_id))
        recalculate_totals(shipment)
        return self.repo.save(self.db, shipment)

    # ==========================================
    # Invoicing
    # ==========================================

    def create_invoice(
        self, shipment_id: int, data: InvoiceFromShipment, company: Company, user: User
    ) -> AccountingInvoice:
        """Issue a draft OUTPUT invoice for the shipment total at 5% VAT"""
        shipment = self.get_shipment(shipment_id, company)
        if shipment.status == "cancelled":
            raise HTTPException(status_code=400, detail="Cannot invoice a cancelled shipment")
        if shipment.invoice_id:
            raise HTTPException(status_code=409, detail="Shipment already has an invoice")

        customer = shipment.order.customer if shipment.order else None
        invoice = InvoiceService(self.db).create_invoice(
            InvoiceCreate(
                invoice_number=data.invoice_number or shipment.shipment_number,
                invoice_type="OUTPUT",
                date=data.invoice_date or date.today(),
                untaxed_amount=shipment.total_amount,
                counterparty_name=customer.name_zh if customer else None,
                counterparty_tax_id=customer.tax_id if customer else None,
                description=f"Shipment {shipment.shipment_number}",
                order_id=shipment.order_id,
            ),
            company,
            user,
            shipment_id=shipment.id,
        )
        shipment.invoice_id = invoice.id
        self.db.commit()
        return invoice
