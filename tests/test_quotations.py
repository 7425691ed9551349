from datetime import date

from quoteflow.domain.quotations.repository import QuotationRepository
from tests.conftest import make_quotation


def quotation_payload(customer_id, **overrides):
    payload = {
        "customer_id": customer_id,
        "issue_date": "2026-03-02",
        "discount_amount": 100,
        "items": [
            {"description": "冷氣清洗", "quantity": 3, "unit_price": 1999.99},
            {"description": "濾網更換", "quantity": 2, "unit_price": 350, "discount": 20},
        ],
    }
    payload.update(overrides)
    return payload


def test_create_quotation_totals(client, tenant):
    response = client.post("/api/quotations", json=quotation_payload(tenant.customer.id))
    assert response.status_code == 201
    quotation = response.json()["data"]

    assert quotation["status"] == "draft"
    assert quotation["payment_status"] == "unpaid"
    assert [i["amount"] for i in quotation["items"]] == [5999.97, 560.0]
    assert quotation["subtotal"] == 6559.97
    assert quotation["tax_amount"] == 328.0
    assert quotation["total_amount"] == 6787.97


def test_quotation_number_sequence(db, tenant):
    assert QuotationRepository.next_quotation_number(db, tenant.company.id, date(2026, 1, 20)) == "Q202601-0001"
    make_quotation(db, tenant, number="Q202601-0007")
    assert QuotationRepository.next_quotation_number(db, tenant.company.id, date(2026, 1, 20)) == "Q202601-0008"
    assert QuotationRepository.next_quotation_number(db, tenant.company.id, date(2026, 2, 1)) == "Q202602-0001"


def test_replace_items_recomputes(client, tenant):
    quotation = client.post("/api/quotations", json=quotation_payload(tenant.customer.id)).json()["data"]

    updated = client.put(
        f"/api/quotations/{quotation['id']}",
        json={"discount_amount": 0, "items": [{"description": "年度保養", "quantity": 1, "unit_price": 10000}]},
    ).json()["data"]
    assert len(updated["items"]) == 1
    assert updated["total_amount"] == 10500.0


def test_status_update_and_validation(client, tenant):
    quotation = client.post("/api/quotations", json=quotation_payload(tenant.customer.id)).json()["data"]

    accepted = client.patch(f"/api/quotations/{quotation['id']}/status", json={"status": "accepted"})
    assert accepted.json()["data"]["status"] == "accepted"

    bogus = client.patch(f"/api/quotations/{quotation['id']}/status", json={"status": "signed"})
    assert bogus.status_code == 400


def test_unknown_customer(client):
    response = client.post("/api/quotations", json=quotation_payload(9999))
    assert response.status_code == 404
