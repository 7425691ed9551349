"""Contract service - customer contracts and their payment schedules"""

import logging
from datetime import date, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Company, Customer, CustomerContract, PaymentSchedule, User
from ...shared.money import round_amount
from ...shared.numbering import insert_numbered
from ...utils.sanitization import sanitize_dict, sanitize_string
from ..customers.repository import CustomerRepository
from ..quotations.repository import QuotationRepository
from .repository import ContractRepository, ScheduleRepository
from .schemas import (
    ContractCreate,
    ContractFromQuotation,
    ContractResponse,
    ContractUpdate,
    MarkSchedulePaid,
    ScheduleResponse,
)

logger = logging.getLogger(__name__)

# payment terms -> (number of payments, months between payments)
PAYMENT_PLANS = {
    "quarterly": (4, 3),
    "semi_annual": (2, 6),
    "annual": (1, 12),
}
DEFAULT_PAYMENT_DAY = 5
UPCOMING_WINDOW_DAYS = 30


def schedule_due_dates(start_date: date, payment_terms: str, payment_day: int = DEFAULT_PAYMENT_DAY) -> list[date]:
    if payment_terms not in PAYMENT_PLANS:
        raise HTTPException(status_code=400, detail="Invalid payment terms")
    count, interval = PAYMENT_PLANS[payment_terms]
    return [
        (start_date + relativedelta(months=i * interval)).replace(day=payment_day)
        for i in range(count)
    ]


def split_installments(total: float, count: int) -> list[float]:
    """Equal installments rounded to cents; the last one takes the remainder so they sum to total"""
    if count <= 0:
        return []
    amount = round_amount(total / count)
    last = round_amount(total - amount * (count - 1))
    return [amount] * (count - 1) + [last]


def serialize_contract(contract: CustomerContract) -> dict:
    return ContractResponse.model_validate(contract).model_dump()


def serialize_schedule(schedule: PaymentSchedule) -> dict:
    return ScheduleResponse.model_validate(schedule).model_dump()


def update_customer_next_payment(db: Session, company_id: int, customer_id: int) -> Optional[PaymentSchedule]:
    """Point the customer's next-payment fields at its earliest pending schedule, or clear them"""
    customer = db.get(Customer, customer_id)
    if not customer:
        return None

    schedule = ScheduleRepository.get_next_unpaid(db, company_id, customer_id=customer_id)
    if schedule:
        customer.next_payment_due_date = schedule.due_date
        customer.next_payment_amount = schedule.amount
        customer.payment_currency = schedule.currency
    else:
        customer.next_payment_due_date = None
        customer.next_payment_amount = None
        customer.payment_currency = None

    for contract in db.query(CustomerContract).filter(
        CustomerContract.company_id == company_id, CustomerContract.customer_id == customer_id
    ):
        upcoming = ScheduleRepository.get_next_unpaid(
            db, company_id, contract_id=contract.id, statuses=("pending", "overdue")
        )
        contract.next_billing_date = upcoming.due_date if upcoming else None

    db.commit()
    return schedule


class ContractService:
    """Service layer for contracts and payment schedules"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ContractRepository()
        self.schedules = ScheduleRepository()

    def get_contracts(
        self, company: Company, customer_id: Optional[int] = None, status: Optional[str] = None
    ) -> list[CustomerContract]:
        return self.repo.get_contracts(self.db, company.id, customer_id, status)

    def get_contract(self, contract_id: int, company: Company) -> CustomerContract:
        contract = self.repo.get_contract(self.db, contract_id, company.id)
        if not contract:
            raise HTTPException(status_code=404, detail="Contract not found")
        return contract

    def _get_customer(self, customer_id: int, company: Company) -> Customer:
        customer = CustomerRepository.get_customer(self.db, customer_id, company.id)
        if not customer:
            raise HTTPException(status_code=404, detail="Customer not found")
        return customer

    def _mark_customer_contracted(self, customer: Customer, end_date: date, payment_terms: Optional[str]) -> None:
        customer.contract_status = "contracted"
        customer.contract_expiry_date = end_date
        customer.payment_terms = payment_terms

    def _insert(self, company: Company, build) -> CustomerContract:
        contract = insert_numbered(
            self.db, lambda: self.repo.next_contract_number(self.db, company.id), build
        )
        logger.info(f"📄 Contract {contract.contract_number} created for company {company.id}")
        return contract

    def create_contract(self, data: ContractCreate, company: Company, user: User) -> CustomerContract:
        customer = self._get_customer(data.customer_id, company)

        def build(number: str) -> CustomerContract:
            return CustomerContract(
                company_id=company.id,
                user_id=user.id,
                customer_id=data.customer_id,
                contract_number=number,
                title=data.title,
                start_date=data.start_date,
                end_date=data.end_date,
                signed_date=data.signed_date,
                total_amount=data.total_amount,
                currency=data.currency,
                payment_terms=data.payment_terms,
                status="active",
                notes=sanitize_string(data.notes),
            )

        contract = self._insert(company, build)
        self._mark_customer_contracted(customer, data.end_date, data.payment_terms)
        self.db.commit()

        if data.payment_terms:
            self.generate_payment_schedule(contract, user)
        return self.repo.save(self.db, contract)

    def convert_quotation(self, data: ContractFromQuotation, company: Company, user: User) -> dict:
        quotation = QuotationRepository.get_quotation(self.db, data.quotation_id, company.id)
        if not quotation:
            raise HTTPException(status_code=404, detail="Quotation not found")
        customer = self._get_customer(quotation.customer_id, company)

        def build(number: str) -> CustomerContract:
            return CustomerContract(
                company_id=company.id,
                user_id=user.id,
                customer_id=quotation.customer_id,
                quotation_id=quotation.id,
                contract_number=number,
                title=f"合約 - {quotation.quotation_number}",
                start_date=data.signed_date,
                end_date=data.expiry_date,
                signed_date=data.signed_date,
                total_amount=quotation.total_amount,
                currency=quotation.currency,
                payment_terms=data.payment_frequency,
                status="active",
                notes=f"由報價單 {quotation.quotation_number} 轉換而成",
            )

        contract = self._insert(company, build)

        quotation.status = "accepted"
        quotation.contract_signed_date = data.signed_date
        quotation.contract_expiry_date = data.expiry_date
        quotation.payment_frequency = data.payment_frequency
        self._mark_customer_contracted(customer, data.expiry_date, data.payment_frequency)
        self.db.commit()

        self.generate_payment_schedule(contract, user, data.payment_day)
        self.db.refresh(quotation)
        return {"contract": self.repo.save(self.db, contract), "quotation": quotation}

    def update_contract(self, contract_id: int, data: ContractUpdate, company: Company) -> CustomerContract:
        contract = self.get_contract(contract_id, company)
        updates = sanitize_dict(data.model_dump(exclude_unset=True), ["title", "notes", "payment_terms"])
        if not updates:
            raise HTTPException(status_code=400, detail="No fields to update")
        for key, value in updates.items():
            if value is not None:
                setattr(contract, key, value)
        return self.repo.save(self.db, contract)

    def delete_contract(self, contract_id: int, company: Company) -> dict:
        contract = self.get_contract(contract_id, company)
        customer_id = contract.customer_id
        self.repo.delete_contract(self.db, contract)

        customer = self.db.get(Customer, customer_id)
        if customer:
            customer.contract_status = "prospect"
            customer.contract_expiry_date = None
            customer.payment_terms = None
            self.db.commit()
        update_customer_next_payment(self.db, company.id, customer_id)
        return {"message": "Contract deleted"}

    # ==========================================
    # Payment schedules
    # ==========================================

    def generate_payment_schedule(
        self, contract: CustomerContract, user: User, payment_day: int = DEFAULT_PAYMENT_DAY
    ) -> list[PaymentSchedule]:
        due_dates = schedule_due_dates(contract.start_date, contract.payment_terms, payment_day)
        amounts = split_installments(contract.total_amount, len(due_dates))

        schedules = [
            PaymentSchedule(
                company_id=contract.company_id,
                user_id=user.id,
                contract_id=contract.id,
                customer_id=contract.customer_id,
                schedule_number=i + 1,
                due_date=due_date,
                amount=amounts[i],
                currency=contract.currency,
                status="pending",
            )
            for i, due_date in enumerate(due_dates)
        ]
        self.db.add_all(schedules)
        self.db.commit()

        update_customer_next_payment(self.db, contract.company_id, contract.customer_id)
        logger.info(f"📅 Generated {len(schedules)} payment schedules for contract {contract.contract_number}")
        return schedules

    def get_schedules(self, company: Company, contract_id: Optional[int] = None) -> list[PaymentSchedule]:
        return self.schedules.get_schedules(self.db, company.id, contract_id)

    def get_overdue_schedules(self, company: Company) -> list[PaymentSchedule]:
        return self.schedules.get_overdue(self.db, company.id)

    def get_upcoming_schedules(self, company: Company, today: Optional[date] = None) -> list[PaymentSchedule]:
        today = today or date.today()
        return self.schedules.get_due_between(
            self.db, company.id, today, today + timedelta(days=UPCOMING_WINDOW_DAYS)
        )

    def get_schedule(self, schedule_id: int, company: Company) -> PaymentSchedule:
        schedule = self.schedules.get_schedule(self.db, schedule_id, company.id)
        if not schedule:
            raise HTTPException(status_code=404, detail="Payment schedule not found")
        return schedule

    def mark_schedule_paid(self, schedule_id: int, data: MarkSchedulePaid, company: Company) -> PaymentSchedule:
        schedule = self.get_schedule(schedule_id, company)
        schedule.status = "paid"
        schedule.paid_date = data.paid_date or date.today()
        schedule.paid_amount = data.paid_amount if data.paid_amount is not None else schedule.amount
        schedule.days_overdue = 0
        if data.payment_id:
            schedule.payment_id = data.payment_id
        self.db.commit()
        update_customer_next_payment(self.db, company.id, schedule.customer_id)
        self.db.refresh(schedule)
        return schedule

    def get_payment_progress(self, contract_id: int, company: Company) -> dict:
        contract = self.get_contract(contract_id, company)
        paid = [s for s in contract.schedules if s.status == "paid"]
        total_paid = round_amount(sum(s.paid_amount or 0 for s in paid))
        return {
            "contract_id": contract.id,
            "contract_number": contract.contract_number,
            "total_amount": contract.total_amount,
            "total_paid": total_paid,
            "remaining": round_amount(contract.total_amount - total_paid),
            "schedules_total": len(contract.schedules),
            "schedules_paid": len(paid),
            "schedules_overdue": sum(1 for s in contract.schedules if s.status == "overdue"),
            "next_billing_date": contract.next_billing_date,
        }
