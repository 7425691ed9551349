"""Customer repository - Database operations for customers"""

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models import Customer


class CustomerRepository:
    """Repository for customer database operations"""

    @staticmethod
    def get_customers(db: Session, company_id: int, active_only: bool = False) -> list[Customer]:
        query = db.query(Customer).filter(Customer.company_id == company_id)
        if active_only:
            query = query.filter(Customer.is_active.is_(True))
        return query.order_by(Customer.created_at.desc(), Customer.id.desc()).all()

    @staticmethod
    def get_customer(db: Session, customer_id: int, company_id: int) -> Optional[Customer]:
        return (
            db.query(Customer)
            .filter(Customer.id == customer_id, Customer.company_id == company_id)
            .first()
        )

    @staticmethod
    def get_customers_by_ids(db: Session, customer_ids: list[int], company_id: int) -> list[Customer]:
        if not customer_ids:
            return []
        return (
            db.query(Customer)
            .filter(Customer.id.in_(customer_ids), Customer.company_id == company_id)
            .all()
        )

    @staticmethod
    def search_customers(db: Session, company_id: int, query: str, limit: int = 20) -> list[Customer]:
        pattern = f"%{query}%"
        return (
            db.query(Customer)
            .filter(
                Customer.company_id == company_id,
                or_(
                    Customer.name_zh.ilike(pattern),
                    Customer.name_en.ilike(pattern),
                    Customer.email.ilike(pattern),
                    Customer.tax_id.ilike(pattern),
                ),
            )
            .order_by(Customer.name_zh.asc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def create_customer(db: Session, company_id: int, user_id: int, **data) -> Customer:
        customer = Customer(company_id=company_id, user_id=user_id, **data)
        db.add(customer)
        db.commit()
        db.refresh(customer)
        return customer

    @staticmethod
    def update_customer(db: Session, customer: Customer, **updates) -> Customer:
        for key, value in updates.items():
            if hasattr(customer, key):
                setattr(customer, key, value)
        db.commit()
        db.refresh(customer)
        return customer

    @staticmethod
    def delete_customer(db: Session, customer: Customer) -> None:
        db.delete(customer)
        db.commit()
