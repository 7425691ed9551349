"""Payment router - payments, collections and overdue tracking"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_company
from ...database import get_db
from ...models import Company, User
from ...permissions import require_permission
from ...responses import ok
from ..contracts.service import serialize_schedule
from .schemas import PaymentCreate, PaymentStatus, ReminderBucket
from .service import PaymentService, serialize_payment

router = APIRouter(prefix="/api/payments", tags=["Payments"])


def get_payment_service(db: Session = Depends(get_db)) -> PaymentService:
    """Dependency injection for PaymentService"""
    return PaymentService(db)


# ==========================================
# Reports
# ==========================================


@router.get("/summary")
async def get_payment_summary(
    user: User = Depends(require_permission("payments:read")),
    company: Company = Depends(get_current_company),
    service: PaymentService = Depends(get_payment_service),
):
    return ok(service.get_summary(company))


@router.get("/reminders")
async def get_collection_reminders(
    days_ahead: int = Query(30, ge=0, le=365),
    status: Optional[ReminderBucket] = None,
    user: User = Depends(require_permission("payments:read")),
    company: Company = Depends(get_current_company),
    service: PaymentService = Depends(get_payment_service),
):
    reminders = service.get_collection_reminders(company, days_ahead, status)
    return ok(reminders, total=len(reminders))


@router.get("/outstanding/{customer_id}")
async def get_outstanding_balance(
    customer_id: int,
    user: User = Depends(require_permission("payments:read")),
    company: Company = Depends(get_current_company),
    service: PaymentService = Depends(get_payment_service),
):
    return ok(service.calculate_outstanding_balance(customer_id, company))


# ==========================================
# Overdue tracking
# ==========================================


@router.post("/check-overdue")
async def check_overdue(
    user: User = Depends(require_permission("payments:write")),
    company: Company = Depends(get_current_company),
    service: PaymentService = Depends(get_payment_service),
):
    return ok(service.check_overdue(company.id))


@router.post("/schedules/{schedule_id}/overdue")
async def mark_schedule_overdue(
    schedule_id: int,
    user: User = Depends(require_permission("payments:write")),
    company: Company = Depends(get_current_company),
    service: PaymentService = Depends(get_payment_service),
):
    return ok(serialize_schedule(service.mark_as_overdue(schedule_id, company)))


@router.post("/schedules/{schedule_id}/reminder")
async def record_reminder(
    schedule_id: int,
    user: User = Depends(require_permission("payments:write")),
    company: Company = Depends(get_current_company),
    service: PaymentService = Depends(get_payment_service),
):
    return ok(serialize_schedule(service.record_reminder(schedule_id, company)), "Reminder recorded")


# ==========================================
# Payments
# ==========================================


@router.get("")
async def list_payments(
    customer_id: Optional[int] = None,
    quotation_id: Optional[int] = None,
    contract_id: Optional[int] = None,
    status: Optional[PaymentStatus] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: User = Depends(require_permission("payments:read")),
    company: Company = Depends(get_current_company),
    service: PaymentService = Depends(get_payment_service),
):
    payments = service.get_payments(
        company,
        customer_id=customer_id,
        quotation_id=quotation_id,
        contract_id=contract_id,
        status=status,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )
    return ok([serialize_payment(p) for p in payments])


@router.post("", status_code=201)
async def record_payment(
    data: PaymentCreate,
    user: User = Depends(require_permission("payments:write")),
    company: Company = Depends(get_current_company),
    service: PaymentService = Depends(get_payment_service),
):
    return ok(serialize_payment(service.record_payment(data, company, user)), "Payment recorded")


@router.get("/{payment_id}")
async def get_payment(
    payment_id: int,
    user: User = Depends(require_permission("payments:read")),
    company: Company = Depends(get_current_company),
    service: PaymentService = Depends(get_payment_service),
):
    return ok(serialize_payment(service.get_payment(payment_id, company)))


__all__ = ["router"]
