"""Shipment router - FastAPI endpoints for shipments"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_company
from ...database import get_db
from ...models import Company, User
from ...permissions import require_permission
from ...responses import ok
from ..accounting.invoice_service import serialize_invoice
from .schemas import (
    DeliverRequest,
    InvoiceFromShipment,
    ShipmentFromOrder,
    ShipmentItemIn,
    ShipmentItemUpdate,
    ShipmentStatus,
    ShipmentUpdate,
    ShipRequest,
)
from .service import ShipmentService, serialize_shipment

router = APIRouter(prefix="/api/shipments", tags=["Shipments"])


def get_shipment_service(db: Session = Depends(get_db)) -> ShipmentService:
    """Dependency injection for ShipmentService"""
    return ShipmentService(db)


# ==========================================
# Shipments
# ==========================================


@router.get("")
async def list_shipments(
    status: Optional[ShipmentStatus] = None,
    order_id: Optional[int] = None,
    customer_id: Optional[int] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: User = Depends(require_permission("shipments:read")),
    company: Company = Depends(get_current_company),
    service: ShipmentService = Depends(get_shipment_service),
):
    shipments = service.get_shipments(company, status, order_id, customer_id, limit, offset)
    return ok([serialize_shipment(s) for s in shipments])


@router.get("/stats")
async def get_shipment_stats(
    user: User = Depends(require_permission("shipments:read")),
    company: Company = Depends(get_current_company),
    service: ShipmentService = Depends(get_shipment_service),
):
    return ok(service.get_stats(company))


@router.get("/{shipment_id}")
async def get_shipment(
    shipment_id: int,
    user: User = Depends(require_permission("shipments:read")),
    company: Company = Depends(get_current_company),
    service: ShipmentService = Depends(get_shipment_service),
):
    return ok(serialize_shipment(service.get_shipment(shipment_id, company)))


@router.post("", status_code=201)
async def create_shipment(
    data: ShipmentFromOrder,
    user: User = Depends(require_permission("shipments:write")),
    company: Company = Depends(get_current_company),
    service: ShipmentService = Depends(get_shipment_service),
):
    return ok(serialize_shipment(service.create_from_order(data, company, user)))


@router.put("/{shipment_id}")
async def update_shipment(
    shipment_id: int,
    data: ShipmentUpdate,
    user: User = Depends(require_permission("shipments:write")),
    company: Company = Depends(get_current_company),
    service: ShipmentService = Depends(get_shipment_service),
):
    return ok(serialize_shipment(service.update_shipment(shipment_id, data, company)))


@router.post("/{shipment_id}/ship")
async def ship_shipment(
    shipment_id: int,
    data: ShipRequest,
    user: User = Depends(require_permission("shipments:write")),
    company: Company = Depends(get_current_company),
    service: ShipmentService = Depends(get_shipment_service),
):
    return ok(serialize_shipment(service.ship(shipment_id, data, company)))


@router.post("/{shipment_id}/deliver")
async def deliver_shipment(
    shipment_id: int,
    data: DeliverRequest,
    user: User = Depends(require_permission("shipments:write")),
    company: Company = Depends(get_current_company),
    service: ShipmentService = Depends(get_shipment_service),
):
    return ok(serialize_shipment(service.deliver(shipment_id, company, data.actual_delivery)))


@router.post("/{shipment_id}/cancel")
async def cancel_shipment(
    shipment_id: int,
    user: User = Depends(require_permission("shipments:write")),
    company: Company = Depends(get_current_company),
    service: ShipmentService = Depends(get_shipment_service),
):
    return ok(serialize_shipment(service.cancel(shipment_id, company)))


@router.delete("/{shipment_id}")
async def delete_shipment(
    shipment_id: int,
    user: User = Depends(require_permission("shipments:delete")),
    company: Company = Depends(get_current_company),
    service: ShipmentService = Depends(get_shipment_service),
):
    return ok(service.delete_shipment(shipment_id, company))


@router.post("/{shipment_id}/invoice", status_code=201)
async def create_shipment_invoice(
    shipment_id: int,
    data: InvoiceFromShipment,
    user: User = Depends(require_permission("shipments:write")),
    company: Company = Depends(get_current_company),
    service: ShipmentService = Depends(get_shipment_service),
):
    return ok(serialize_invoice(service.create_invoice(shipment_id, data, company, user)))


# ==========================================
# Shipment items
# ==========================================


@router.post("/{shipment_id}/items", status_code=201)
async def add_shipment_item(
    shipment_id: int,
    data: ShipmentItemIn,
    user: User = Depends(require_permission("shipments:write")),
    company: Company = Depends(get_current_company),
    service: ShipmentService = Depends(get_shipment_service),
):
    return ok(serialize_shipment(service.add_item(shipment_id, data, company)))


@router.put("/{shipment_id}/items/{item_id}")
async def update_shipment_item(
    shipment_id: int,
    item_id: int,
    data: ShipmentItemUpdate,
    user: User = Depends(require_permission("shipments:write")),
    company: Company = Depends(get_current_company),
    service: ShipmentService = Depends(get_shipment_service),
):
    return ok(serialize_shipment(service.update_item(shipment_id, item_id, data, company)))


@router.delete("/{shipment_id}/items/{item_id}")
async def delete_shipment_item(
    shipment_id: int,
    item_id: int,
    user: User = Depends(require_permission("shipments:write")),
    company: Company = Depends(get_current_company),
    service: ShipmentService = Depends(get_shipment_service),
):
    return ok(serialize_shipment(service.delete_item(shipment_id, item_id, company)))


__all__ = ["router"]
