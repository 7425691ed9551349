"""
Payment service - recording payments and reconciling them against schedules

A contract payment settles the earliest open schedule of that contract (or the
one named explicitly). A quotation payment accumulates into the quotation's
total_paid. Either way the customer's next-payment fields are refreshed.
"""

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Company, Payment, PaymentSchedule, Quotation, User
from ...shared.money import round_amount
from ..contracts.repository import UNPAID_STATUSES, ContractRepository, ScheduleRepository
from ..contracts.service import update_customer_next_payment
from ..customers.repository import CustomerRepository
from ..quotations.repository import QuotationRepository
from .repository import PaymentRepository
from .schemas import PaymentCreate, PaymentResponse

logger = logging.getLogger(__name__)

OVERDUE_AFTER_DAYS = 30
DUE_SOON_DAYS = 7
DEFAULT_REMINDER_DAYS = 30


def serialize_payment(payment: Payment) -> dict:
    return PaymentResponse.model_validate(payment).model_dump()


def reminder_bucket(days_until_due: int) -> str:
    if days_until_due < 0:
        return "overdue"
    if days_until_due == 0:
        return "due_today"
    if days_until_due <= DUE_SOON_DAYS:
        return "due_soon"
    return "upcoming"


def remaining_amount(schedule: PaymentSchedule) -> float:
    return round_amount((schedule.amount or 0) - (schedule.paid_amount or 0))


class PaymentService:
    """Service layer for payments and collections"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PaymentRepository()

    def get_payments(self, company: Company, **filters) -> list[Payment]:
        return self.repo.get_payments(self.db, company.id, **filters)

    def get_payment(self, payment_id: int, company: Company) -> Payment:
        payment = self.repo.get_payment(self.db, payment_id, company.id)
        if not payment:
            raise HTTPException(status_code=404, detail="Payment not found")
        return payment

    def _get_schedule(self, schedule_id: int, company_id: int) -> PaymentSchedule:
        schedule = ScheduleRepository.get_schedule(self.db, schedule_id, company_id)
        if not schedule:
            raise HTTPException(status_code=404, detail="Payment schedule not found")
        return schedule

    # ==========================================
    # Recording
    # ==========================================

    def record_payment(self, data: PaymentCreate, company: Company, user: User) -> Payment:
        if not data.quotation_id and not data.contract_id:
            raise HTTPException(status_code=400, detail="Either quotation_id or contract_id must be provided")

        if not CustomerRepository.get_customer(self.db, data.customer_id, company.id):
            raise HTTPException(status_code=404, detail="Customer not found")

        quotation = None
        if data.quotation_id:
            quotation = QuotationRepository.get_quotation(self.db, data.quotation_id, company.id)
            if not quotation:
                raise HTTPException(status_code=404, detail="Quotation not found")
            if quotation.customer_id != data.customer_id:
                raise HTTPException(status_code=400, detail="Quotation belongs to a different customer")

        contract = None
        if data.contract_id:
            contract = ContractRepository.get_contract(self.db, data.contract_id, company.id)
            if not contract:
                raise HTTPException(status_code=404, detail="Contract not found")
            if contract.customer_id != data.customer_id:
                raise HTTPException(status_code=400, detail="Contract belongs to a different customer")

        payment = self.repo.create_payment(
            self.db,
            Payment(
                company_id=company.id,
                user_id=user.id,
                customer_id=data.customer_id,
                quotation_id=data.quotation_id,
                contract_id=data.contract_id,
                payment_type=data.payment_type,
                amount=data.amount,
                currency=data.currency,
                payment_date=data.payment_date,
                payment_method=data.payment_method,
                reference_number=data.reference_number,
                status="confirmed",
                notes=data.notes,
            ),
        )

        if contract:
            self._settle_schedule(payment, contract.id, data.schedule_id, company.id)
        if quotation:
            self._apply_to_quotation(quotation, payment.amount)

        self.db.commit()
        self.db.refresh(payment)
        update_customer_next_payment(self.db, company.id, data.customer_id)

        logger.info(f"💰 Payment {payment.id} recorded: {payment.amount} {payment.currency} (company {company.id})")
        return payment

    def _settle_schedule(
        self, payment: Payment, contract_id: int, schedule_id: Optional[int], company_id: int
    ) -> Optional[PaymentSchedule]:
        if schedule_id:
            schedule = self._get_schedule(schedule_id, company_id)
            if schedule.contract_id != contract_id:
                raise HTTPException(status_code=400, detail="Payment schedule does not belong to this contract")
        else:
            schedule = ScheduleRepository.get_next_unpaid(
                self.db, company_id, contract_id=contract_id, statuses=UNPAID_STATUSES
            )
        if not schedule:
            logger.warning(f"⚠️ No open payment schedule for contract {contract_id}, payment {payment.id} left unmatched")
            return None

        schedule.status = "paid"
        schedule.paid_date = payment.payment_date
        schedule.paid_amount = payment.amount
        schedule.payment_id = payment.id
        schedule.days_overdue = 0
        return schedule

    @staticmethod
    def _apply_to_quotation(quotation: Quotation, amount: float) -> None:
        quotation.total_paid = round_amount((quotation.total_paid or 0) + amount)
        quotation.payment_status = "paid" if quotation.total_paid >= (quotation.total_amount or 0) else "partial"

    # ==========================================
    # Reporting
    # ==========================================

    def get_summary(self, company: Company) -> dict:
        by_currency = defaultdict(lambda: {"total_paid": 0.0, "total_pending": 0.0, "total_overdue": 0.0})

        for payment in self.repo.get_confirmed(self.db, company.id):
            by_currency[payment.currency]["total_paid"] += payment.amount or 0

        for schedule in self.repo.get_open_schedules(self.db, company.id):
            key = "total_overdue" if schedule.status == "overdue" else "total_pending"
            by_currency[schedule.currency][key] += remaining_amount(schedule)

        currencies = {
            currency: {name: round_amount(value) for name, value in totals.items()}
            for currency, totals in by_currency.items()
        }
        return {
            "total_paid": round_amount(sum(c["total_paid"] for c in currencies.values())),
            "total_pending": round_amount(sum(c["total_pending"] for c in currencies.values())),
            "total_overdue": round_amount(sum(c["total_overdue"] for c in currencies.values())),
            "by_currency": currencies,
        }

    def calculate_outstanding_balance(self, customer_id: int, company: Company, today: Optional[date] = None) -> dict:
        """Outstanding and overdue totals for a customer across schedules and accepted quotations"""
        today = today or date.today()
        if not CustomerRepository.get_customer(self.db, customer_id, company.id):
            raise HTTPException(status_code=404, detail="Customer not found")

        overdue_cutoff = today - timedelta(days=OVERDUE_AFTER_DAYS)
        outstanding = 0.0
        overdue = 0.0

        for schedule in ScheduleRepository.get_customer_unpaid(self.db, company.id, customer_id):
            remaining = remaining_amount(schedule)
            outstanding += remaining
            if schedule.status == "overdue" or schedule.due_date < overdue_cutoff:
                overdue += remaining

        for quotation in self.repo.get_customer_open_quotations(self.db, company.id, customer_id):
            remaining = round_amount((quotation.total_amount or 0) - (quotation.total_paid or 0))
            if remaining <= 0:
                continue
            outstanding += remaining
            due = quotation.payment_due_date or quotation.issue_date
            if quotation.payment_status == "overdue" or (due and due < overdue_cutoff):
                overdue += remaining

        return {
            "customer_id": customer_id,
            "outstanding": round_amount(outstanding),
            "overdue": round_amount(overdue),
        }

    def get_collection_reminders(
        self,
        company: Company,
        days_ahead: int = DEFAULT_REMINDER_DAYS,
        status: Optional[str] = None,
        today: Optional[date] = None,
    ) -> list[dict]:
        today = today or date.today()
        schedules = ScheduleRepository.get_due_between(
            self.db, company.id, date.min, today + timedelta(days=days_ahead), statuses=UNPAID_STATUSES
        )

        reminders = []
        for schedule in schedules:
            days_until_due = (schedule.due_date - today).days
            bucket = reminder_bucket(days_until_due)
            if status and bucket != status:
                continue
            reminders.append(
                {
                    "schedule_id": schedule.id,
                    "contract_id": schedule.contract_id,
                    "customer_id": schedule.customer_id,
                    "customer_name": schedule.customer.name_zh if schedule.customer else None,
                    "schedule_number": schedule.schedule_number,
                    "due_date": schedule.due_date,
                    "amount": remaining_amount(schedule),
                    "currency": schedule.currency,
                    "days_until_due": days_until_due,
                    "reminder_status": bucket,
                    "reminder_count": schedule.reminder_count,
                    "last_reminder_sent_at": schedule.last_reminder_sent_at,
                }
            )
        return reminders

    # ==========================================
    # Overdue tracking
    # ==========================================

    def check_overdue(self, company_id: int, today: Optional[date] = None) -> dict:
        """Flag past-due pending schedules and unpaid quotations as overdue"""
        today = today or date.today()

        schedules = self.repo.get_pending_past_due(self.db, company_id, today)
        for schedule in schedules:
            schedule.status = "overdue"
            schedule.days_overdue = (today - schedule.due_date).days

        quotations = self.repo.get_unpaid_quotations_past_due(self.db, company_id, today)
        for quotation in quotations:
            quotation.payment_status = "overdue"

        self.db.commit()

        for customer_id in {s.customer_id for s in schedules}:
            update_customer_next_payment(self.db, company_id, customer_id)

        if schedules or quotations:
            logger.info(
                f"⏰ Company {company_id}: {len(schedules)} schedules and {len(quotations)} quotations marked overdue"
            )
        return {"schedules_marked": len(schedules), "quotations_marked": len(quotations)}

    def mark_as_overdue(self, schedule_id: int, company: Company, today: Optional[date] = None) -> PaymentSchedule:
        today = today or date.today()
        schedule = self._get_schedule(schedule_id, company.id)
        if schedule.status == "paid":
            raise HTTPException(status_code=400, detail="Paid schedules cannot be marked overdue")
        schedule.status = "overdue"
        schedule.days_overdue = max((today - schedule.due_date).days, 0)
        self.db.commit()
        self.db.refresh(schedule)
        return schedule

    def record_reminder(self, schedule_id: int, company: Company) -> PaymentSchedule:
        schedule = self._get_schedule(schedule_id, company.id)
        schedule.reminder_count = (schedule.reminder_count or 0) + 1
        schedule.last_reminder_sent_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(schedule)
        return schedule
