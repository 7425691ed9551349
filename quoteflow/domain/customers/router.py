"""Customer router - FastAPI endpoints for customer operations"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_company
from ...database import get_db
from ...models import Company, User
from ...permissions import require_permission
from ...responses import ok
from .schemas import CustomerCreate, CustomerResponse, CustomerUpdate
from .service import CustomerService

router = APIRouter(prefix="/api/customers", tags=["Customers"])


def get_customer_service(db: Session = Depends(get_db)) -> CustomerService:
    """Dependency injection for CustomerService"""
    return CustomerService(db)


def _customer(customer) -> dict:
    return CustomerResponse.model_validate(customer).to_dict()


@router.get("")
async def list_customers(
    q: Optional[str] = Query(None, description="Search by name, email or tax id"),
    active_only: bool = False,
    user: User = Depends(require_permission("customers:read")),
    company: Company = Depends(get_current_company),
    service: CustomerService = Depends(get_customer_service),
):
    customers = service.search_customers(company, q) if q else service.get_customers(company, active_only)
    return ok([_customer(c) for c in customers])


@router.get("/{customer_id}")
async def get_customer(
    customer_id: int,
    user: User = Depends(require_permission("customers:read")),
    company: Company = Depends(get_current_company),
    service: CustomerService = Depends(get_customer_service),
):
    return ok(_customer(service.get_customer(customer_id, company)))


@router.post("", status_code=201)
async def create_customer(
    data: CustomerCreate,
    user: User = Depends(require_permission("customers:write")),
    company: Company = Depends(get_current_company),
    service: CustomerService = Depends(get_customer_service),
):
    return ok(_customer(service.create_customer(data, company, user)))


@router.put("/{customer_id}")
async def update_customer(
    customer_id: int,
    data: CustomerUpdate,
    user: User = Depends(require_permission("customers:write")),
    company: Company = Depends(get_current_company),
    service: CustomerService = Depends(get_customer_service),
):
    return ok(_customer(service.update_customer(customer_id, data, company)))


@router.delete("/{customer_id}")
async def delete_customer(
    customer_id: int,
    user: User = Depends(require_permission("customers:delete")),
    company: Company = Depends(get_current_company),
    service: CustomerService = Depends(get_customer_service),
):
    return ok(service.delete_customer(customer_id, company))


__all__ = ["router"]
