from datetime import date

import pytest
from fastapi import HTTPException

from quoteflow.domain.contracts.schemas import ContractCreate
from quoteflow.domain.contracts.service import ContractService
from quoteflow.domain.payments.schemas import PaymentCreate
from quoteflow.domain.payments.service import PaymentService, reminder_bucket
from quoteflow.models import Customer
from tests.conftest import make_quotation


@pytest.fixture
def contract(db, tenant):
    return ContractService(db).create_contract(
        ContractCreate(
            customer_id=tenant.customer.id,
            title="設備租賃合約",
            start_date=date(2026, 1, 1),
            end_date=date(2026, 12, 31),
            total_amount=40000,
            payment_terms="quarterly",
        ),
        tenant.company,
        tenant.user,
    )


def pay(db, tenant, **fields):
    values = dict(customer_id=tenant.customer.id, amount=10000, payment_date=date(2026, 1, 6))
    values.update(fields)
    return PaymentService(db).record_payment(PaymentCreate(**values), tenant.company, tenant.user)


def test_reminder_bucket():
    assert reminder_bucket(-1) == "overdue"
    assert reminder_bucket(0) == "due_today"
    assert reminder_bucket(7) == "due_soon"
    assert reminder_bucket(8) == "upcoming"


def test_payment_needs_quotation_or_contract(client, tenant):
    response = client.post(
        "/api/payments",
        json={"customer_id": tenant.customer.id, "amount": 100, "payment_date": "2026-01-06"},
    )
    assert response.status_code == 400


def test_contract_payment_settles_earliest_schedule(db, tenant, contract):
    payment = pay(db, tenant, contract_id=contract.id, payment_method="bank_transfer")
    assert payment.status == "confirmed"

    db.refresh(contract)
    first, second = contract.schedules[0], contract.schedules[1]
    assert first.status == "paid"
    assert first.payment_id == payment.id
    assert first.paid_date == date(2026, 1, 6)
    assert second.status == "pending"

    db.refresh(tenant.customer)
    assert tenant.customer.next_payment_due_date == second.due_date
    assert contract.next_billing_date == second.due_date


def test_explicit_schedule_must_belong_to_contract(db, tenant, contract):
    other = ContractService(db).create_contract(
        ContractCreate(
            customer_id=tenant.customer.id,
            title="另一份合約",
            start_date=date(2026, 1, 1),
            end_date=date(2026, 12, 31),
            total_amount=1000,
            payment_terms="annual",
        ),
        tenant.company,
        tenant.user,
    )
    with pytest.raises(HTTPException) as exc:
        pay(db, tenant, contract_id=contract.id, schedule_id=other.schedules[0].id)
    assert exc.value.status_code == 400


def test_payment_customer_must_own_document(db, tenant, contract):
    other = Customer(company_id=tenant.company.id, user_id=tenant.user.id, name_zh="其他客戶")
    db.add(other)
    db.commit()
    quotation = make_quotation(db, tenant, total=10500)

    for document in ({"quotation_id": quotation.id}, {"contract_id": contract.id}):
        with pytest.raises(HTTPException) as exc:
            pay(db, tenant, customer_id=other.id, **document)
        assert exc.value.status_code == 400

    db.refresh(quotation)
    assert not quotation.total_paid


def test_quotation_payments_accumulate(db, tenant):
    quotation = make_quotation(db, tenant, total=10500)

    pay(db, tenant, quotation_id=quotation.id, amount=5000, payment_type="deposit")
    db.refresh(quotation)
    assert quotation.total_paid == 5000
    assert quotation.payment_status == "partial"

    pay(db, tenant, quotation_id=quotation.id, amount=5500, payment_type="final")
    db.refresh(quotation)
    assert quotation.total_paid == 10500
    assert quotation.payment_status == "paid"


def test_summary_splits_paid_pending_overdue(db, tenant, contract):
    service = PaymentService(db)
    pay(db, tenant, contract_id=contract.id)
    service.check_overdue(tenant.company.id, today=date(2026, 5, 1))

    summary = service.get_summary(tenant.company)
    assert summary["total_paid"] == 10000.0
    assert summary["total_overdue"] == 10000.0
    assert summary["total_pending"] == 20000.0
    assert summary["by_currency"]["TWD"]["total_paid"] == 10000.0


def test_check_overdue_marks_schedules_and_quotations(db, tenant, contract):
    quotation = make_quotation(db, tenant, payment_due_date=date(2026, 2, 1))

    result = PaymentService(db).check_overdue(tenant.company.id, today=date(2026, 4, 10))
    assert result == {"schedules_marked": 2, "quotations_marked": 1}

    db.refresh(contract)
    assert [s.status for s in contract.schedules] == ["overdue", "overdue", "pending", "pending"]
    assert contract.schedules[0].days_overdue == 95
    db.refresh(quotation)
    assert quotation.payment_status == "overdue"

    again = PaymentService(db).check_overdue(tenant.company.id, today=date(2026, 4, 10))
    assert again["schedules_marked"] == 0


def test_outstanding_balance(db, tenant, contract):
    make_quotation(db, tenant, total=5000, payment_due_date=date(2026, 1, 15))
    make_quotation(db, tenant, number="Q202601-0002", total=3000, payment_status="paid", total_paid=3000)

    balance = PaymentService(db).calculate_outstanding_balance(
        tenant.customer.id, tenant.company, today=date(2026, 3, 1)
    )
    # schedules due 2026-01-05 and the quotation due 2026-01-15 are more than 30 days old
    assert balance["outstanding"] == 45000.0
    assert balance["overdue"] == 15000.0


def test_collection_reminders(db, tenant, contract):
    service = PaymentService(db)
    reminders = service.get_collection_reminders(tenant.company, days_ahead=30, today=date(2026, 3, 30))

    assert [r["due_date"] for r in reminders] == [date(2026, 1, 5), date(2026, 4, 5)]
    assert [r["reminder_status"] for r in reminders] == ["overdue", "due_soon"]
    assert reminders[1]["days_until_due"] == 6
    assert reminders[0]["customer_name"] == "大同商行"

    overdue_only = service.get_collection_reminders(
        tenant.company, days_ahead=30, status="overdue", today=date(2026, 3, 30)
    )
    assert len(overdue_only) == 1


def test_reminder_and_manual_overdue_routes(client, contract):
    schedule_id = contract.schedules[0].id

    reminded = client.post(f"/api/payments/schedules/{schedule_id}/reminder").json()["data"]
    assert reminded["reminder_count"] == 1
    assert reminded["last_reminder_sent_at"] is not None

    overdue = client.post(f"/api/payments/schedules/{schedule_id}/overdue").json()["data"]
    assert overdue["status"] == "overdue"

    client.post(f"/api/contracts/schedules/{schedule_id}/paid", json={})
    assert client.post(f"/api/payments/schedules/{schedule_id}/overdue").status_code == 400


def test_list_and_fetch_payments(client, db, tenant, contract):
    payment = pay(db, tenant, contract_id=contract.id)

    listed = client.get("/api/payments").json()["data"]
    assert [p["id"] for p in listed] == [payment.id]
    assert client.get(f"/api/payments/{payment.id}").json()["data"]["amount"] == 10000.0
    assert client.get("/api/payments/9999").status_code == 404
