"""Order service - order lifecycle and item pricing"""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Company, Order, OrderItem, Quotation, User
from ...shared.money import calculate_totals, line_amount
from ...shared.numbering import insert_numbered
from ..customers.repository import CustomerRepository
from ..quotations.repository import QuotationRepository
from .repository import OrderRepository
from .schemas import (
    OrderCreate,
    OrderFromQuotation,
    OrderItemIn,
    OrderItemUpdate,
    OrderResponse,
    OrderUpdate,
)

logger = logging.getLogger(__name__)

ORDER_STATUSES = ("draft", "confirmed", "shipped", "completed", "cancelled")
DEFAULT_TAX_RATE = 5


def build_item(item: OrderItemIn, sort_order: int = 0) -> OrderItem:
    return OrderItem(
        product_id=item.product_id,
        product_name=item.product_name,
        description=item.description,
        sku=item.sku,
        quantity=item.quantity,
        unit=item.unit,
        unit_price=item.unit_price,
        discount=item.discount,
        amount=line_amount(item.quantity, item.unit_price, item.discount),
        quantity_shipped=0,
        quantity_remaining=item.quantity,
        sort_order=sort_order,
        notes=item.notes,
    )


def recalculate_totals(order: Order) -> None:
    """Subtotal, tax and total from the current items"""
    tax_rate = order.tax_rate if order.tax_rate is not None else DEFAULT_TAX_RATE
    totals = calculate_totals([item.amount for item in order.items], tax_rate, order.discount_amount)
    order.subtotal = totals["subtotal"]
    order.tax_amount = totals["tax_amount"]
    order.total_amount = totals["total_amount"]


def serialize_order(order: Order) -> dict:
    return OrderResponse.model_validate(order).model_dump()


class OrderService:
    """Service layer for order business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = OrderRepository()

    def get_orders(
        self,
        company: Company,
        status: Optional[str] = None,
        customer_id: Optional[int] = None,
        quotation_id: Optional[int] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Order]:
        return self.repo.get_orders(
            self.db, company.id, status, customer_id, quotation_id, date_from, date_to, limit, offset
        )

    def get_order(self, order_id: int, company: Company) -> Order:
        order = self.repo.get_order(self.db, order_id, company.id)
        if not order:
            raise HTTPException(status_code=404, detail="Order not found")
        return order

    def get_stats(self, company: Company) -> dict:
        counts = self.repo.get_status_counts(self.db, company.id)
        stats = {"total": sum(counts.values())}
        for status in ORDER_STATUSES:
            stats[status] = counts.get(status, 0)
        return stats

    def _insert(self, company: Company, build) -> Order:
        order = insert_numbered(self.db, lambda: self.repo.next_order_number(self.db, company.id), build)
        logger.info(f"📦 Order {order.order_number} created for company {company.id}")
        return order

    def create_order(self, data: OrderCreate, company: Company, user: User) -> Order:
        if not CustomerRepository.get_customer(self.db, data.customer_id, company.id):
            raise HTTPException(status_code=404, detail="Customer not found")

        def build(number: str) -> Order:
            order = Order(
                company_id=company.id,
                user_id=user.id,
                customer_id=data.customer_id,
                order_number=number,
                status="draft",
                order_date=data.order_date or date.today(),
                expected_delivery_date=data.expected_delivery_date,
                currency=data.currency,
                exchange_rate=data.exchange_rate,
                tax_rate=data.tax_rate,
                discount_amount=data.discount_amount,
                show_tax=data.show_tax,
                notes=data.notes,
                terms=data.terms,
                shipping_address=data.shipping_address,
                billing_address=data.billing_address,
                items=[build_item(item, i) for i, item in enumerate(data.items)],
            )
            recalculate_totals(order)
            return order

        return self._insert(company, build)

    def create_from_quotation(self, data: OrderFromQuotation, company: Company, user: User) -> Order:
        quotation: Optional[Quotation] = QuotationRepository.get_quotation(
            self.db, data.quotation_id, company.id
        )
        if not quotation:
            raise HTTPException(status_code=404, detail="Quotation not found")
        if quotation.status != "accepted":
            raise HTTPException(
                status_code=400,
                detail=f"Only accepted quotations can be converted. Current status: {quotation.status}",
            )

        def build(number: str) -> Order:
            items = []
            for q_item in quotation.items:
                product = q_item.product
                items.append(
                    OrderItem(
                        product_id=q_item.product_id,
                        quotation_item_id=q_item.id,
                        product_name=product.name_zh if product else q_item.description,
                        description=q_item.description,
                        sku=product.sku if product else None,
                        quantity=q_item.quantity,
                        unit=q_item.unit,
                        unit_price=q_item.unit_price,
                        discount=q_item.discount,
                        amount=q_item.amount,
                        quantity_shipped=0,
                        quantity_remaining=q_item.quantity,
                        sort_order=q_item.sort_order,
                    )
                )
            customer = quotation.customer
            order = Order(
                company_id=company.id,
                user_id=user.id,
                customer_id=quotation.customer_id,
                quotation_id=quotation.id,
                order_number=number,
                status="draft",
                order_date=data.order_date or date.today(),
                expected_delivery_date=data.expected_delivery_date,
                currency=quotation.currency,
                exchange_rate=quotation.exchange_rate,
                tax_rate=quotation.tax_rate,
                discount_amount=quotation.discount_amount,
                notes=data.notes or quotation.notes,
                shipping_address=data.shipping_address or (customer.address if customer else None),
                billing_address=data.billing_address or (customer.address if customer else None),
                items=items,
            )
            recalculate_totals(order)
            return order

        return self._insert(company, build)

    def update_order(self, order_id: int, data: OrderUpdate, company: Company) -> Order:
        order = self.get_order(order_id, company)
        for key, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(order, key, value)
        recalculate_totals(order)
        return self.repo.save(self.db, order)

    # ==========================================
    # Status transitions
    # ==========================================

    def confirm_order(self, order_id: int, company: Company) -> Order:
        order = self.get_order(order_id, company)
        if order.status != "draft":
            raise HTTPException(
                status_code=400,
                detail=f"Only draft orders can be confirmed. Current status: {order.status}",
            )
        order.status = "confirmed"
        order.confirmed_at = datetime.utcnow()
        return self.repo.save(self.db, order)

    def cancel_order(self, order_id: int, company: Company) -> Order:
        order = self.get_order(order_id, company)
        if order.status in ("completed", "cancelled"):
            raise HTTPException(status_code=400, detail=f"Cannot cancel order with status: {order.status}")
        order.status = "cancelled"
        order.cancelled_at = datetime.utcnow()
        return self.repo.save(self.db, order)

    def complete_order(self, order_id: int, company: Company) -> Order:
        order = self.get_order(order_id, company)
        if order.status != "shipped":
            raise HTTPException(
                status_code=400,
                detail=f"Only shipped orders can be completed. Current status: {order.status}",
            )
        order.status = "completed"
        order.completed_at = datetime.utcnow()
        return self.repo.save(self.db, order)

    def delete_order(self, order_id: int, company: Company) -> dict:
        order = self.get_order(order_id, company)
        if order.status != "draft":
            raise HTTPException(status_code=400, detail="Only draft orders can be deleted")
        self.repo.delete_order(self.db, order)
        return {"message": "Order deleted"}

    # ==========================================
    # Items
    # ==========================================

    def _get_item(self, order: Order, item_id: int) -> OrderItem:
        item = self.repo.get_item(self.db, order, item_id)
        if not item:
            raise HTTPException(status_code=404, detail="Order item not found")
        return item

    def add_item(self, order_id: int, data: OrderItemIn, company: Company) -> Order:
        order = self.get_order(order_id, company)
        order.items.append(build_item(data, len(order.items)))
        recalculate_totals(order)
        return self.repo.save(self.db, order)

    def update_item(self, order_id: int, item_id: int, data: OrderItemUpdate, company: Company) -> Order:
        order = self.get_order(order_id, company)
        item = self._get_item(order, item_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(item, key, value)
        item.amount = line_amount(item.quantity, item.unit_price, item.discount)
        item.quantity_remaining = max(item.quantity - (item.quantity_shipped or 0), 0)
        recalculate_totals(order)
        return self.repo.save(self.db, order)

    def delete_item(self, order_id: int, item_id: int, company: Company) -> Order:
        order = self.get_order(order_id, company)
        item = self._get_item(order, item_id)
        order.items.remove(item)
        recalculate_totals(order)
        return self.repo.save(self.db, order)
