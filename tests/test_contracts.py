from datetime import date

import pytest
from fastapi import HTTPException

from quoteflow.domain.contracts.schemas import ContractCreate, ContractFromQuotation
from quoteflow.domain.contracts.service import ContractService, schedule_due_dates, split_installments
from tests.conftest import make_quotation


def test_schedule_due_dates():
    assert schedule_due_dates(date(2026, 1, 20), "quarterly") == [
        date(2026, 1, 5),
        date(2026, 4, 5),
        date(2026, 7, 5),
        date(2026, 10, 5),
    ]
    assert schedule_due_dates(date(2026, 11, 1), "semi_annual", 15) == [date(2026, 11, 15), date(2027, 5, 15)]
    assert schedule_due_dates(date(2026, 3, 1), "annual") == [date(2026, 3, 5)]

    with pytest.raises(HTTPException) as exc:
        schedule_due_dates(date(2026, 1, 1), "monthly")
    assert exc.value.status_code == 400


def contract_payload(customer_id, **overrides):
    payload = dict(
        customer_id=customer_id,
        title="年度維護合約",
        start_date=date(2026, 1, 1),
        end_date=date(2026, 12, 31),
        total_amount=100000,
        payment_terms="quarterly",
    )
    payload.update(overrides)
    return ContractCreate(**payload)


def test_create_contract_generates_schedules(db, tenant):
    service = ContractService(db)
    contract = service.create_contract(contract_payload(tenant.customer.id), tenant.company, tenant.user)

    assert contract.contract_number == f"C{date.today():%Y}-001"
    assert [s.amount for s in contract.schedules] == [25000.0] * 4
    assert [s.schedule_number for s in contract.schedules] == [1, 2, 3, 4]
    assert contract.next_billing_date == date(2026, 1, 5)

    db.refresh(tenant.customer)
    assert tenant.customer.contract_status == "contracted"
    assert tenant.customer.contract_expiry_date == date(2026, 12, 31)
    assert tenant.customer.next_payment_due_date == date(2026, 1, 5)
    assert tenant.customer.next_payment_amount == 25000.0


def test_split_installments_last_takes_remainder():
    assert split_installments(1000, 4) == [250.0, 250.0, 250.0, 250.0]
    assert split_installments(100.01, 4) == [25.0, 25.0, 25.0, 25.01]
    assert split_installments(1000.1, 4) == [250.03, 250.03, 250.03, 250.01]
    assert split_installments(100, 0) == []


def test_uneven_split_sums_to_contract_total(db, tenant):
    contract = ContractService(db).create_contract(
        contract_payload(tenant.customer.id, total_amount=1000, payment_terms="quarterly"),
        tenant.company,
        tenant.user,
    )
    assert all(s.amount == 250.0 for s in contract.schedules)

    for total in (1000.1, 100.01):
        odd = ContractService(db).create_contract(
            contract_payload(tenant.customer.id, total_amount=total, payment_terms="quarterly"),
            tenant.company,
            tenant.user,
        )
        amounts = [s.amount for s in odd.schedules]
        assert round(sum(amounts), 2) == total
        assert amounts[:3] == [amounts[0]] * 3


def test_contract_without_terms_has_no_schedules(db, tenant):
    contract = ContractService(db).create_contract(
        contract_payload(tenant.customer.id, payment_terms=None), tenant.company, tenant.user
    )
    assert contract.schedules == []
    assert contract.next_billing_date is None


def test_convert_quotation(db, tenant):
    quotation = make_quotation(db, tenant, status="sent", total=120000)

    result = ContractService(db).convert_quotation(
        ContractFromQuotation(
            quotation_id=quotation.id,
            signed_date=date(2026, 2, 1),
            expiry_date=date(2027, 1, 31),
            payment_frequency="semi_annual",
            payment_day=10,
        ),
        tenant.company,
        tenant.user,
    )
    contract = result["contract"]

    assert contract.title == "合約 - Q202601-0001"
    assert contract.quotation_id == quotation.id
    assert contract.total_amount == 120000
    assert [s.due_date for s in contract.schedules] == [date(2026, 2, 10), date(2026, 8, 10)]
    assert [s.amount for s in contract.schedules] == [60000.0, 60000.0]

    assert result["quotation"].status == "accepted"
    assert result["quotation"].payment_frequency == "semi_annual"
    assert result["quotation"].contract_expiry_date == date(2027, 1, 31)


def test_mark_schedule_paid_moves_next_payment(client, db, tenant):
    contract = ContractService(db).create_contract(contract_payload(tenant.customer.id), tenant.company, tenant.user)
    first = contract.schedules[0]

    response = client.post(f"/api/contracts/schedules/{first.id}/paid", json={"paid_date": "2026-01-06"})
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "paid"
    assert response.json()["data"]["paid_amount"] == 25000.0

    db.refresh(tenant.customer)
    assert tenant.customer.next_payment_due_date == date(2026, 4, 5)

    progress = client.get(f"/api/contracts/{contract.id}/progress").json()["data"]
    assert progress["total_paid"] == 25000.0
    assert progress["remaining"] == 75000.0
    assert progress["schedules_paid"] == 1
    assert progress["next_billing_date"] == "2026-04-05"


def test_update_requires_fields(client, db, tenant):
    contract = ContractService(db).create_contract(contract_payload(tenant.customer.id), tenant.company, tenant.user)

    assert client.put(f"/api/contracts/{contract.id}", json={}).status_code == 400
    updated = client.put(f"/api/contracts/{contract.id}", json={"status": "terminated"}).json()["data"]
    assert updated["status"] == "terminated"


def test_delete_contract_resets_customer(client, db, tenant):
    contract = ContractService(db).create_contract(contract_payload(tenant.customer.id), tenant.company, tenant.user)

    assert client.delete(f"/api/contracts/{contract.id}").status_code == 200
    assert client.get(f"/api/contracts/{contract.id}").status_code == 404

    db.refresh(tenant.customer)
    assert tenant.customer.contract_status == "prospect"
    assert tenant.customer.next_payment_due_date is None
    assert client.get("/api/contracts/schedules").json()["data"] == []


def test_end_date_before_start_is_rejected(client, tenant):
    response = client.post(
        "/api/contracts",
        json={
            "customer_id": tenant.customer.id,
            "title": "倒置合約",
            "start_date": "2026-06-01",
            "end_date": "2026-01-01",
            "total_amount": 1000,
        },
    )
    assert response.status_code == 400
