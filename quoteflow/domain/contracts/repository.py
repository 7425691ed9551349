"""Contract repository - contracts and their payment schedules"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from ...models import CustomerContract, PaymentSchedule
from ...shared.numbering import next_number

UNPAID_STATUSES = ("pending", "overdue")


class ContractRepository:
    """Repository for contract database operations"""

    @staticmethod
    def get_contracts(
        db: Session, company_id: int, customer_id: Optional[int] = None, status: Optional[str] = None
    ) -> list[CustomerContract]:
        query = db.query(CustomerContract).filter(CustomerContract.company_id == company_id)
        if customer_id:
            query = query.filter(CustomerContract.customer_id == customer_id)
        if status:
            query = query.filter(CustomerContract.status == status)
        return (
            query.options(selectinload(CustomerContract.schedules))
            .order_by(CustomerContract.created_at.desc(), CustomerContract.id.desc())
            .all()
        )

    @staticmethod
    def get_contract(db: Session, contract_id: int, company_id: int) -> Optional[CustomerContract]:
        return (
            db.query(CustomerContract)
            .options(selectinload(CustomerContract.schedules))
            .filter(CustomerContract.id == contract_id, CustomerContract.company_id == company_id)
            .first()
        )

    @staticmethod
    def next_contract_number(db: Session, company_id: int, today: Optional[date] = None) -> str:
        today = today or date.today()
        return next_number(
            db, CustomerContract.contract_number, CustomerContract.company_id, company_id, f"C{today:%Y}-", 3
        )

    @staticmethod
    def save(db: Session, contract: CustomerContract) -> CustomerContract:
        db.commit()
        db.refresh(contract)
        return contract

    @staticmethod
    def delete_contract(db: Session, contract: CustomerContract) -> None:
        db.delete(contract)
        db.commit()


class ScheduleRepository:
    """Repository for payment schedule queries"""

    @staticmethod
    def get_schedules(db: Session, company_id: int, contract_id: Optional[int] = None) -> list[PaymentSchedule]:
        query = db.query(PaymentSchedule).filter(PaymentSchedule.company_id == company_id)
        if contract_id:
            query = query.filter(PaymentSchedule.contract_id == contract_id)
        return query.order_by(PaymentSchedule.due_date, PaymentSchedule.schedule_number).all()

    @staticmethod
    def get_schedule(db: Session, schedule_id: int, company_id: int) -> Optional[PaymentSchedule]:
        return (
            db.query(PaymentSchedule)
            .filter(PaymentSchedule.id == schedule_id, PaymentSchedule.company_id == company_id)
            .first()
        )

    @staticmethod
    def get_overdue(db: Session, company_id: int) -> list[PaymentSchedule]:
        return (
            db.query(PaymentSchedule)
            .filter(PaymentSchedule.company_id == company_id, PaymentSchedule.status == "overdue")
            .order_by(PaymentSchedule.days_overdue.desc(), PaymentSchedule.due_date)
            .all()
        )

    @staticmethod
    def get_due_between(
        db: Session, company_id: int, start: date, end: date, statuses: tuple = ("pending",)
    ) -> list[PaymentSchedule]:
        return (
            db.query(PaymentSchedule)
            .filter(
                PaymentSchedule.company_id == company_id,
                PaymentSchedule.status.in_(statuses),
                PaymentSchedule.due_date >= start,
                PaymentSchedule.due_date <= end,
            )
            .order_by(PaymentSchedule.due_date)
            .all()
        )

    @staticmethod
    def get_next_unpaid(
        db: Session,
        company_id: int,
        customer_id: Optional[int] = None,
        contract_id: Optional[int] = None,
        statuses: tuple = ("pending",),
    ) -> Optional[PaymentSchedule]:
        query = db.query(PaymentSchedule).filter(
            PaymentSchedule.company_id == company_id, PaymentSchedule.status.in_(statuses)
        )
        if customer_id:
            query = query.filter(PaymentSchedule.customer_id == customer_id)
        if contract_id:
            query = query.filter(PaymentSchedule.contract_id == contract_id)
        return query.order_by(PaymentSchedule.due_date, PaymentSchedule.schedule_number).first()

    @staticmethod
    def get_customer_unpaid(db: Session, company_id: int, customer_id: int) -> list[PaymentSchedule]:
        return (
            db.query(PaymentSchedule)
            .filter(
                PaymentSchedule.company_id == company_id,
                PaymentSchedule.customer_id == customer_id,
                PaymentSchedule.status.in_(UNPAID_STATUSES),
            )
            .all()
        )
