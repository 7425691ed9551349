"""Shipment repository - Database operations for shipments"""

from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from ...models import OrderItem, Shipment, ShipmentItem
from ...shared.numbering import next_number


class ShipmentRepository:
    """Repository for shipment database operations"""

    @staticmethod
    def get_shipments(
        db: Session,
        company_id: int,
        status: Optional[str] = None,
        order_id: Optional[int] = None,
        customer_id: Optional[int] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Shipment]:
        query = db.query(Shipment).filter(Shipment.company_id == company_id)
        if status:
            query = query.filter(Shipment.status == status)
        if order_id:
            query = query.filter(Shipment.order_id == order_id)
        if customer_id:
            query = query.filter(Shipment.customer_id == customer_id)
        return (
            query.options(selectinload(Shipment.items))
            .order_by(Shipment.created_at.desc(), Shipment.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_shipment(db: Session, shipment_id: int, company_id: int) -> Optional[Shipment]:
        return (
            db.query(Shipment)
            .options(selectinload(Shipment.items))
            .filter(Shipment.id == shipment_id, Shipment.company_id == company_id)
            .first()
        )

    @staticmethod
    def get_status_counts(db: Session, company_id: int) -> dict[str, int]:
        rows = (
            db.query(Shipment.status, func.count(Shipment.id))
            .filter(Shipment.company_id == company_id)
            .group_by(Shipment.status)
            .all()
        )
        return {status: count for status, count in rows}

    @staticmethod
    def next_shipment_number(db: Session, company_id: int, today: Optional[date] = None) -> str:
        today = today or date.today()
        return next_number(
            db, Shipment.shipment_number, Shipment.company_id, company_id, f"SHP-{today:%Y%m%d}-", 4
        )

    @staticmethod
    def get_item(db: Session, shipment: Shipment, item_id: int) -> Optional[ShipmentItem]:
        return (
            db.query(ShipmentItem)
            .filter(ShipmentItem.id == item_id, ShipmentItem.shipment_id == shipment.id)
            .first()
        )

    @staticmethod
    def get_order_items(db: Session, order_item_ids: list[int]) -> dict[int, OrderItem]:
        if not order_item_ids:
            return {}
        rows = db.query(OrderItem).filter(OrderItem.id.in_(order_item_ids)).all()
        return {row.id: row for row in rows}

    @staticmethod
    def save(db: Session, shipment: Shipment) -> Shipment:
        db.commit()
        db.refresh(shipment)
        return shipment

    @staticmethod
    def delete_shipment(db: Session, shipment: Shipment) -> None:
        db.delete(shipment)
        db.commit()
