"""Order repository - Database operations for orders"""

from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from ...models import Order, OrderItem
from ...shared.numbering import next_number


class OrderRepository:
    """Repository for order database operations"""

    @staticmethod
    def get_orders(
        db: Session,
        company_id: int,
        status: Optional[str] = None,
        customer_id: Optional[int] = None,
        quotation_id: Optional[int] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Order]:
        query = db.query(Order).filter(Order.company_id == company_id)
        if status:
            query = query.filter(Order.status == status)
        if customer_id:
            query = query.filter(Order.customer_id == customer_id)
        if quotation_id:
            query = query.filter(Order.quotation_id == quotation_id)
        if date_from:
            query = query.filter(Order.order_date >= date_from)
        if date_to:
            query = query.filter(Order.order_date <= date_to)
        return (
            query.options(selectinload(Order.items))
            .order_by(Order.order_date.desc(), Order.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_order(db: Session, order_id: int, company_id: int) -> Optional[Order]:
        return (
            db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.id == order_id, Order.company_id == company_id)
            .first()
        )

    @staticmethod
    def get_status_counts(db: Session, company_id: int) -> dict[str, int]:
        rows = (
            db.query(Order.status, func.count(Order.id))
            .filter(Order.company_id == company_id)
            .group_by(Order.status)
            .all()
        )
        return {status: count for status, count in rows}

    @staticmethod
    def next_order_number(db: Session, company_id: int, today: Optional[date] = None) -> str:
        today = today or date.today()
        return next_number(db, Order.order_number, Order.company_id, company_id, f"ORD-{today:%Y%m%d}-", 4)

    @staticmethod
    def get_item(db: Session, order: Order, item_id: int) -> Optional[OrderItem]:
        return (
            db.query(OrderItem)
            .filter(OrderItem.id == item_id, OrderItem.order_id == order.id)
            .first()
        )

    @staticmethod
    def save(db: Session, order: Order) -> Order:
        db.commit()
        db.refresh(order)
        return order

    @staticmethod
    def delete_order(db: Session, order: Order) -> None:
        db.delete(order)
        db.commit()
