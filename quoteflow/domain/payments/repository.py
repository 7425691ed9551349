"""Payment repository - payments and the schedule/quotation queries reconciliation needs"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Payment, PaymentSchedule, Quotation

OPEN_QUOTATION_PAYMENT_STATUSES = ("unpaid", "partial")


class PaymentRepository:
    """Repository for payment database operations"""

    @staticmethod
    def get_payments(
        db: Session,
        company_id: int,
        customer_id: Optional[int] = None,
        quotation_id: Optional[int] = None,
        contract_id: Optional[int] = None,
        status: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Payment]:
        query = db.query(Payment).filter(Payment.company_id == company_id)
        if customer_id:
            query = query.filter(Payment.customer_id == customer_id)
        if quotation_id:
            query = query.filter(Payment.quotation_id == quotation_id)
        if contract_id:
            query = query.filter(Payment.contract_id == contract_id)
        if status:
            query = query.filter(Payment.status == status)
        if date_from:
            query = query.filter(Payment.payment_date >= date_from)
        if date_to:
            query = query.filter(Payment.payment_date <= date_to)
        return (
            query.order_by(Payment.payment_date.desc(), Payment.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_payment(db: Session, payment_id: int, company_id: int) -> Optional[Payment]:
        return db.query(Payment).filter(Payment.id == payment_id, Payment.company_id == company_id).first()

    @staticmethod
    def get_confirmed(db: Session, company_id: int) -> list[Payment]:
        return db.query(Payment).filter(Payment.company_id == company_id, Payment.status == "confirmed").all()

    @staticmethod
    def get_open_schedules(db: Session, company_id: int) -> list[PaymentSchedule]:
        return (
            db.query(PaymentSchedule)
            .filter(PaymentSchedule.company_id == company_id, PaymentSchedule.status.in_(("pending", "overdue")))
            .all()
        )

    @staticmethod
    def get_pending_past_due(db: Session, company_id: int, today: date) -> list[PaymentSchedule]:
        return (
            db.query(PaymentSchedule)
            .filter(
                PaymentSchedule.company_id == company_id,
                PaymentSchedule.status == "pending",
                PaymentSchedule.due_date < today,
            )
            .all()
        )

    @staticmethod
    def get_unpaid_quotations_past_due(db: Session, company_id: int, today: date) -> list[Quotation]:
        return (
            db.query(Quotation)
            .filter(
                Quotation.company_id == company_id,
                Quotation.payment_status.in_(OPEN_QUOTATION_PAYMENT_STATUSES),
                Quotation.payment_due_date.isnot(None),
                Quotation.payment_due_date < today,
            )
            .all()
        )

    @staticmethod
    def get_customer_open_quotations(db: Session, company_id: int, customer_id: int) -> list[Quotation]:
        return (
            db.query(Quotation)
            .filter(
                Quotation.company_id == company_id,
                Quotation.customer_id == customer_id,
                Quotation.status == "accepted",
                Quotation.payment_status != "paid",
            )
            .all()
        )

    @staticmethod
    def company_ids_with_pending_schedules(db: Session) -> list[int]:
        rows = (
            db.query(PaymentSchedule.company_id)
            .filter(PaymentSchedule.status == "pending")
            .distinct()
            .all()
        )
        return [row[0] for row in rows]

    @staticmethod
    def create_payment(db: Session, payment: Payment) -> Payment:
        db.add(payment)
        db.flush()
        return payment
