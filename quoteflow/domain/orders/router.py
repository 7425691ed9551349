"""Order router - FastAPI endpoints for orders and order items"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_company
from ...database import get_db
from ...models import Company, User
from ...permissions import require_permission
from ...responses import ok
from .schemas import OrderCreate, OrderFromQuotation, OrderItemIn, OrderItemUpdate, OrderStatus, OrderUpdate
from .service import OrderService, serialize_order

router = APIRouter(prefix="/api/orders", tags=["Orders"])


def get_order_service(db: Session = Depends(get_db)) -> OrderService:
    """Dependency injection for OrderService"""
    return OrderService(db)


# ==========================================
# Orders
# ==========================================


@router.get("")
async def list_orders(
    status: Optional[OrderStatus] = None,
    customer_id: Optional[int] = None,
    quotation_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: User = Depends(require_permission("orders:read")),
    company: Company = Depends(get_current_company),
    service: OrderService = Depends(get_order_service),
):
    orders = service.get_orders(company, status, customer_id, quotation_id, date_from, date_to, limit, offset)
    return ok([serialize_order(o) for o in orders])


@router.get("/stats")
async def get_order_stats(
    user: User = Depends(require_permission("orders:read")),
    company: Company = Depends(get_current_company),
    service: OrderService = Depends(get_order_service),
):
    return ok(service.get_stats(company))


@router.get("/{order_id}")
async def get_order(
    order_id: int,
    user: User = Depends(require_permission("orders:read")),
    company: Company = Depends(get_current_company),
    service: OrderService = Depends(get_order_service),
):
    return ok(serialize_order(service.get_order(order_id, company)))


@router.post("", status_code=201)
async def create_order(
    data: OrderCreate,
    user: User = Depends(require_permission("orders:write")),
    company: Company = Depends(get_current_company),
    service: OrderService = Depends(get_order_service),
):
    return ok(serialize_order(service.create_order(data, company, user)))


@router.post("/from-quotation", status_code=201)
async def create_order_from_quotation(
    data: OrderFromQuotation,
    user: User = Depends(require_permission("orders:write")),
    company: Company = Depends(get_current_company),
    service: OrderService = Depends(get_order_service),
):
    return ok(serialize_order(service.create_from_quotation(data, company, user)))


@router.put("/{order_id}")
async def update_order(
    order_id: int,
    data: OrderUpdate,
    user: User = Depends(require_permission("orders:write")),
    company: Company = Depends(get_current_company),
    service: OrderService = Depends(get_order_service),
):
    return ok(serialize_order(service.update_order(order_id, data, company)))


@router.post("/{order_id}/confirm")
async def confirm_order(
    order_id: int,
    user: User = Depends(require_permission("orders:write")),
    company: Company = Depends(get_current_company),
    service: OrderService = Depends(get_order_service),
):
    return ok(serialize_order(service.confirm_order(order_id, company)))


@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: int,
    user: User = Depends(require_permission("orders:write")),
    company: Company = Depends(get_current_company),
    service: OrderService = Depends(get_order_service),
):
    return ok(serialize_order(service.cancel_order(order_id, company)))


@router.post("/{order_id}/complete")
async def complete_order(
    order_id: int,
    user: User = Depends(require_permission("orders:write")),
    company: Company = Depends(get_current_company),
    service: OrderService = Depends(get_order_service),
):
    return ok(serialize_order(service.complete_order(order_id, company)))


@router.delete("/{order_id}")
async def delete_order(
    order_id: int,
    user: User = Depends(require_permission("orders:delete")),
    company: Company = Depends(get_current_company),
    service: OrderService = Depends(get_order_service),
):
    return ok(service.delete_order(order_id, company))


# ==========================================
# Order items
# ==========================================


@router.post("/{order_id}/items", status_code=201)
async def add_order_item(
    order_id: int,
    data: OrderItemIn,
    user: User = Depends(require_permission("orders:write")),
    company: Company = Depends(get_current_company),
    service: OrderService = Depends(get_order_service),
):
    return ok(serialize_order(service.add_item(order_id, data, company)))


@router.put("/{order_id}/items/{item_id}")
async def update_order_item(
    order_id: int,
    item_id: int,
    data: OrderItemUpdate,
    user: User = Depends(require_permission("orders:write")),
    company: Company = Depends(get_current_company),
    service: OrderService = Depends(get_order_service),
):
    return ok(serialize_order(service.update_item(order_id, item_id, data, company)))


@router.delete("/{order_id}/items/{item_id}")
async def delete_order_item(
    order_id: int,
    item_id: int,
    user: User = Depends(require_permission("orders:write")),
    company: Company = Depends(get_current_company),
    service: OrderService = Depends(get_order_service),
):
    return ok(serialize_order(service.delete_item(order_id, item_id, company)))


__all__ = ["router"]
