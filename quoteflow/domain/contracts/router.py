"""Contract router - contracts, quotation conversion and payment schedules"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_company
from ...database import get_db
from ...models import Company, User
from ...permissions import require_permission
from ...responses import ok
from ..quotations.service import serialize_quotation
from .schemas import ContractCreate, ContractFromQuotation, ContractStatus, ContractUpdate, MarkSchedulePaid
from .service import ContractService, serialize_contract, serialize_schedule

router = APIRouter(prefix="/api/contracts", tags=["Contracts"])


def get_contract_service(db: Session = Depends(get_db)) -> ContractService:
    """Dependency injection for ContractService"""
    return ContractService(db)


# ==========================================
# Payment schedules
# ==========================================


@router.get("/schedules")
async def list_schedules(
    contract_id: Optional[int] = None,
    user: User = Depends(require_permission("contracts:read")),
    company: Company = Depends(get_current_company),
    service: ContractService = Depends(get_contract_service),
):
    return ok([serialize_schedule(s) for s in service.get_schedules(company, contract_id)])


@router.get("/schedules/overdue")
async def list_overdue_schedules(
    user: User = Depends(require_permission("contracts:read")),
    company: Company = Depends(get_current_company),
    service: ContractService = Depends(get_contract_service),
):
    return ok([serialize_schedule(s) for s in service.get_overdue_schedules(company)])


@router.get("/schedules/upcoming")
async def list_upcoming_schedules(
    user: User = Depends(require_permission("contracts:read")),
    company: Company = Depends(get_current_company),
    service: ContractService = Depends(get_contract_service),
):
    return ok([serialize_schedule(s) for s in service.get_upcoming_schedules(company)])


@router.post("/schedules/{schedule_id}/paid")
async def mark_schedule_paid(
    schedule_id: int,
    data: MarkSchedulePaid,
    user: User = Depends(require_permission("contracts:write")),
    company: Company = Depends(get_current_company),
    service: ContractService = Depends(get_contract_service),
):
    schedule = service.mark_schedule_paid(schedule_id, data, company)
    return ok(serialize_schedule(schedule), "Payment schedule marked as paid")


# ==========================================
# Contracts
# ==========================================


@router.get("")
async def list_contracts(
    customer_id: Optional[int] = None,
    status: Optional[ContractStatus] = None,
    user: User = Depends(require_permission("contracts:read")),
    company: Company = Depends(get_current_company),
    service: ContractService = Depends(get_contract_service),
):
    return ok([serialize_contract(c) for c in service.get_contracts(company, customer_id, status)])


@router.post("", status_code=201)
async def create_contract(
    data: ContractCreate,
    user: User = Depends(require_permission("contracts:write")),
    company: Company = Depends(get_current_company),
    service: ContractService = Depends(get_contract_service),
):
    return ok(serialize_contract(service.create_contract(data, company, user)))


@router.post("/from-quotation", status_code=201)
async def convert_quotation_to_contract(
    data: ContractFromQuotation,
    user: User = Depends(require_permission("contracts:write")),
    company: Company = Depends(get_current_company),
    service: ContractService = Depends(get_contract_service),
):
    result = service.convert_quotation(data, company, user)
    return ok(
        {
            "contract": serialize_contract(result["contract"]),
            "quotation": serialize_quotation(result["quotation"]),
        },
        "Quotation converted to contract",
    )


@router.get("/{contract_id}")
async def get_contract(
    contract_id: int,
    user: User = Depends(require_permission("contracts:read")),
    company: Company = Depends(get_current_company),
    service: ContractService = Depends(get_contract_service),
):
    return ok(serialize_contract(service.get_contract(contract_id, company)))


@router.get("/{contract_id}/progress")
async def get_contract_progress(
    contract_id: int,
    user: User = Depends(require_permission("contracts:read")),
    company: Company = Depends(get_current_company),
    service: ContractService = Depends(get_contract_service),
):
    return ok(service.get_payment_progress(contract_id, company))


@router.put("/{contract_id}")
async def update_contract(
    contract_id: int,
    data: ContractUpdate,
    user: User = Depends(require_permission("contracts:write")),
    company: Company = Depends(get_current_company),
    service: ContractService = Depends(get_contract_service),
):
    return ok(serialize_contract(service.update_contract(contract_id, data, company)))


@router.delete("/{contract_id}")
async def delete_contract(
    contract_id: int,
    user: User = Depends(require_permission("contracts:delete")),
    company: Company = Depends(get_current_company),
    service: ContractService = Depends(get_contract_service),
):
    return ok(service.delete_contract(contract_id, company))


__all__ = ["router"]
