"""Quotation router - FastAPI endpoints for quotations"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_company
from ...database import get_db
from ...models import Company, User
from ...permissions import require_permission
from ...responses import ok
from .schemas import QuotationCreate, QuotationStatus, QuotationStatusUpdate, QuotationUpdate
from .service import QuotationService, serialize_quotation

router = APIRouter(prefix="/api/quotations", tags=["Quotations"])


def get_quotation_service(db: Session = Depends(get_db)) -> QuotationService:
    """Dependency injection for QuotationService"""
    return QuotationService(db)


@router.get("")
async def list_quotations(
    status: Optional[QuotationStatus] = None,
    customer_id: Optional[int] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: User = Depends(require_permission("quotations:read")),
    company: Company = Depends(get_current_company),
    service: QuotationService = Depends(get_quotation_service),
):
    quotations = service.get_quotations(company, status, customer_id, limit, offset)
    return ok([serialize_quotation(q) for q in quotations])


@router.get("/{quotation_id}")
async def get_quotation(
    quotation_id: int,
    user: User = Depends(require_permission("quotations:read")),
    company: Company = Depends(get_current_company),
    service: QuotationService = Depends(get_quotation_service),
):
    return ok(serialize_quotation(service.get_quotation(quotation_id, company)))


@router.post("", status_code=201)
async def create_quotation(
    data: QuotationCreate,
    user: User = Depends(require_permission("quotations:write")),
    company: Company = Depends(get_current_company),
    service: QuotationService = Depends(get_quotation_service),
):
    return ok(serialize_quotation(service.create_quotation(data, company, user)))


@router.put("/{quotation_id}")
async def update_quotation(
    quotation_id: int,
    data: QuotationUpdate,
    user: User = Depends(require_permission("quotations:write")),
    company: Company = Depends(get_current_company),
    service: QuotationService = Depends(get_quotation_service),
):
    return ok(serialize_quotation(service.update_quotation(quotation_id, data, company)))


@router.patch("/{quotation_id}/status")
async def update_quotation_status(
    quotation_id: int,
    data: QuotationStatusUpdate,
    user: User = Depends(require_permission("quotations:write")),
    company: Company = Depends(get_current_company),
    service: QuotationService = Depends(get_quotation_service),
):
    return ok(serialize_quotation(service.update_status(quotation_id, data.status, company)))


@router.delete("/{quotation_id}")
async def delete_quotation(
    quotation_id: int,
    user: User = Depends(require_permission("quotations:delete")),
    company: Company = Depends(get_current_company),
    service: QuotationService = Depends(get_quotation_service),
):
    return ok(service.delete_quotation(quotation_id, company))


__all__ = ["router"]
