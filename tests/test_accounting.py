import pytest

from quoteflow.domain.billing.subscription_service import SubscriptionService


def create_invoice(client, number, amount, invoice_date="2025-03-15", invoice_type="OUTPUT"):
    response = client.post(
        "/api/accounting/invoices",
        json={
            "invoice_number": number,
            "invoice_type": invoice_type,
            "date": invoice_date,
            "untaxed_amount": amount,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


def post(client, invoice_id):
    assert client.post(f"/api/accounting/invoices/{invoice_id}/verify").status_code == 200
    response = client.post(f"/api/accounting/invoices/{invoice_id}/post")
    assert response.status_code == 200
    return response.json()["data"]


@pytest.fixture
def standard_plan(db, tenant):
    service = SubscriptionService(db)
    service.ensure_free_subscription(tenant.company.id)
    service.upgrade_plan(tenant.company.id, "STANDARD", "YEARLY")


def test_invoice_vat_and_duplicate_number(client):
    invoice = create_invoice(client, "ab12345678", 10001)
    assert invoice["invoice_number"] == "AB12345678"
    assert invoice["tax_amount"] == 500.05
    assert invoice["total_amount"] == 10501.05

    duplicate = client.post(
        "/api/accounting/invoices",
        json={"invoice_number": "AB12345678", "invoice_type": "INPUT", "date": "2025-03-15", "untaxed_amount": 1},
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "DUPLICATE"


def test_invoice_lifecycle(client):
    invoice = create_invoice(client, "AB00000001", 1000)
    invoice_id = invoice["id"]

    assert client.post(f"/api/accounting/invoices/{invoice_id}/post").status_code == 400
    posted = post(client, invoice_id)
    assert posted["status"] == "POSTED"
    assert posted["posted_at"] is not None

    assert client.put(f"/api/accounting/invoices/{invoice_id}", json={"untaxed_amount": 5}).status_code == 400
    assert client.delete(f"/api/accounting/invoices/{invoice_id}").status_code == 400

    voided = client.post(f"/api/accounting/invoices/{invoice_id}/void", json={"reason": "開立錯誤"}).json()["data"]
    assert voided["status"] == "VOIDED"
    assert voided["void_reason"] == "開立錯誤"
    assert client.post(f"/api/accounting/invoices/{invoice_id}/void", json={"reason": "again"}).status_code == 400


def test_income_tax_requires_standard_plan(client):
    response = client.get("/api/accounting/income-tax/expanded-audit", params={"tax_year": 2025})
    assert response.status_code == 403
    assert response.json()["code"] == "FEATURE_NOT_AVAILABLE"


def test_preview_aggregates_posted_output_invoices(client, standard_plan):
    post(client, create_invoice(client, "AB00000001", 100000, "2025-01-20")["id"])
    post(client, create_invoice(client, "AB00000002", 50000, "2025-01-31")["id"])
    post(client, create_invoice(client, "AB00000003", 70000, "2025-06-01", "INPUT")["id"])
    create_invoice(client, "AB00000004", 999999, "2025-02-01")
    post(client, create_invoice(client, "AB00000005", 80000, "2024-12-31")["id"])

    data = client.get("/api/accounting/income-tax/expanded-audit", params={"tax_year": 2025}).json()["data"]
    summary = data["revenue_summary"]
    assert summary["total_revenue"] == 150000.0
    assert summary["total_tax"] == 7500.0
    assert summary["invoice_count"] == 2
    assert summary["by_month"][0] == {"month": 1, "revenue": 150000.0, "tax": 7500.0, "count": 2}
    assert data["eligibility"]["is_eligible"] is True


def test_preview_with_industry_code(client, standard_plan):
    post(client, create_invoice(client, "AB00000001", 5_000_000, "2025-05-05")["id"])

    data = client.get(
        "/api/accounting/income-tax/expanded-audit", params={"tax_year": 2025, "industry_code": "4610"}
    ).json()["data"]
    calculation = data["result"]["calculation"]
    assert calculation["profit_rate"] == 0.04
    assert calculation["total_taxable_income"] == 200_000
    assert calculation["final_tax"] == 8_000


def test_calculate_saves_filing_then_updates(client, standard_plan):
    payload = {
        "company_name": "測試股份有限公司",
        "tax_id": "04595257",
        "tax_year": 2025,
        "industry_code": "6201",
        "override_revenue": 2_000_000,
    }
    first = client.post("/api/accounting/income-tax/expanded-audit", json=payload).json()
    assert first["message"] == "已建立申報記錄"
    filing = first["data"]["filing"]
    assert filing["status"] == "CALCULATED"
    assert filing["final_tax"] == 0

    payload["override_profit_rate"] = 0.2
    second = client.post("/api/accounting/income-tax/expanded-audit", json=payload).json()
    assert second["message"] == "已更新申報記錄"
    assert second["data"]["filing"]["id"] == filing["id"]
    assert second["data"]["calculation"]["calculation"]["industry_name"] == "自訂純益率"
    assert second["data"]["filing"]["final_tax"] == 80_000


def test_unknown_industry_code(client, standard_plan):
    response = client.post(
        "/api/accounting/income-tax/expanded-audit",
        json={"company_name": "x", "tax_id": "04595257", "tax_year": 2025, "industry_code": "0000"},
    )
    assert response.status_code == 404


def test_filing_status_flow(client, standard_plan):
    client.post(
        "/api/accounting/income-tax/expanded-audit",
        json={
            "company_name": "測試股份有限公司",
            "tax_id": "04595257",
            "tax_year": 2025,
            "industry_code": "6201",
            "override_revenue": 10_000_000,
        },
    )
    filing = client.get("/api/accounting/income-tax/filings").json()["data"][0]
    filing_id = filing["id"]

    assert client.post(f"/api/accounting/income-tax/filings/{filing_id}/submit").json()["data"]["status"] == "SUBMITTED"
    locked = client.put(f"/api/accounting/income-tax/filings/{filing_id}", json={"total_revenue": 1})
    assert locked.status_code == 400
    assert locked.json()["code"] == "FILING_LOCKED"
    assert client.delete(f"/api/accounting/income-tax/filings/{filing_id}").status_code == 400

    accepted = client.post(
        f"/api/accounting/income-tax/filings/{filing_id}/accept", json={"acceptance_number": "A-2025-001"}
    ).json()["data"]
    assert accepted["status"] == "ACCEPTED"

    summary = client.get("/api/accounting/income-tax/expanded-audit", params={"action": "summary"}).json()["data"]
    assert summary["total_filings"] == 1
    assert summary["latest_year"] == 2025
    assert summary["total_tax_paid"] == 120_000
    assert summary["filings_by_status"]["ACCEPTED"] == 1

    duplicate = client.post("/api/accounting/income-tax/filings", json={"tax_year": 2025})
    assert duplicate.status_code == 409
