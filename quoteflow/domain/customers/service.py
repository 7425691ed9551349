"""Customer service - Business logic for customer operations"""

import logging

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import Company, Customer, User
from ...utils.sanitization import sanitize_dict
from .repository import CustomerRepository
from .schemas import CustomerCreate, CustomerUpdate

logger = logging.getLogger(__name__)

TEXT_FIELDS = ["name_zh", "name_en", "contact_person", "address", "notes", "payment_terms"]


class CustomerService:
    """Service layer for customer business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = CustomerRepository()

    def get_customers(self, company: Company, active_only: bool = False) -> list[Customer]:
        return self.repo.get_customers(self.db, company.id, active_only)

    def get_customer(self, customer_id: int, company: Company) -> Customer:
        customer = self.repo.get_customer(self.db, customer_id, company.id)
        if not customer:
            raise HTTPException(status_code=404, detail="Customer not found")
        return customer

    def search_customers(self, company: Company, query: str) -> list[Customer]:
        query = (query or "").strip()
        if len(query) < 1:
            return []
        return self.repo.search_customers(self.db, company.id, query)

    def create_customer(self, data: CustomerCreate, company: Company, user: User) -> Customer:
        logger.info(f"📥 Creating customer for company {company.id}")
        return self.repo.create_customer(self.db, company.id, user.id, **sanitize_dict(data.model_dump(), TEXT_FIELDS))

    def update_customer(self, customer_id: int, data: CustomerUpdate, company: Company) -> Customer:
        customer = self.get_customer(customer_id, company)
        return self.repo.update_customer(self.db, customer, **sanitize_dict(data.model_dump(exclude_unset=True), TEXT_FIELDS))

    def delete_customer(self, customer_id: int, company: Company) -> dict:
        customer = self.get_customer(customer_id, company)
        try:
            self.repo.delete_customer(self.db, customer)
        except IntegrityError as e:
            self.db.rollback()
            raise HTTPException(
                status_code=409,
                detail="Customer has quotations, orders or contracts and cannot be deleted",
            ) from e
        return {"message": "Customer deleted"}
