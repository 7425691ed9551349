import asyncio
from datetime import date, datetime

import pytest

from quoteflow import config
from quoteflow.domain.contracts.schemas import ContractCreate
from quoteflow.domain.contracts.service import ContractService
from quoteflow.domain.cron import notifications
from quoteflow.domain.cron.router import next_run_time
from quoteflow.domain.exchange_rates import service as rates_service


@pytest.fixture
def cron_secret(monkeypatch):
    monkeypatch.setattr(config, "CRON_SECRET", "cron-secret")
    monkeypatch.setattr(config, "ERROR_WEBHOOK_URL", None)
    monkeypatch.setattr(config, "SLACK_WEBHOOK_URL", None)
    return {"Authorization": "Bearer cron-secret"}


@pytest.fixture
def sent(monkeypatch):
    messages = []

    async def fake_post(url, payload):
        messages.append((url, payload))
        return True

    monkeypatch.setattr(notifications, "post_webhook", fake_post)
    return messages


def test_next_run_time():
    assert next_run_time(datetime(2026, 3, 31, 15, 42)) == "2026-04-01T00:00:00Z"


def test_missing_secret_is_server_error(client, monkeypatch):
    monkeypatch.setattr(config, "CRON_SECRET", None)
    assert client.get("/api/cron/mark-overdue").status_code == 500


def test_wrong_secret_is_unauthorized(client, cron_secret):
    response = client.get("/api/cron/mark-overdue", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401
    assert client.get("/api/cron/mark-overdue").status_code == 401


def test_mark_overdue_job(client, db, tenant, cron_secret):
    ContractService(db).create_contract(
        ContractCreate(
            customer_id=tenant.customer.id,
            title="清潔服務合約",
            start_date=date(2020, 1, 1),
            end_date=date(2020, 12, 31),
            total_amount=4000,
            payment_terms="quarterly",
        ),
        tenant.company,
        tenant.user,
    )

    response = client.get("/api/cron/mark-overdue", headers=cron_secret)
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["results"] == [
        {"company_id": tenant.company.id, "success": True, "schedules_marked": 4, "quotations_marked": 0}
    ]
    assert body["nextRun"].endswith("T00:00:00Z")
    assert body["duration"].endswith("ms")


def test_exchange_rate_job_reports_failures(client, cron_secret, monkeypatch, sent):
    monkeypatch.setattr(config, "ERROR_WEBHOOK_URL", "https://hooks.example.com/errors")

    async def failing_fetch(base_currency="USD", api_key=None):
        return None

    monkeypatch.setattr(rates_service, "fetch_latest_rates", failing_fetch)

    body = client.get("/api/cron/exchange-rates", headers=cron_secret).json()
    assert body["success"] is False
    assert body["message"] == "Synced 0 out of 5 currencies"
    assert sent[0][0] == "https://hooks.example.com/errors"
    assert sent[0][1]["text"] == "⚠️ Exchange Rate Sync Failed"


def test_manual_trigger_requires_admin_key_in_production(client, monkeypatch):
    monkeypatch.setattr(config, "IS_PRODUCTION", True)
    monkeypatch.setattr(config, "ADMIN_API_KEY", "admin-key")

    assert client.post("/api/cron/mark-overdue").status_code == 401
    response = client.post("/api/cron/mark-overdue", headers={"X-Admin-API-Key": "admin-key"})
    assert response.status_code == 200


def test_success_notification_only_in_production(monkeypatch, sent):
    monkeypatch.setattr(config, "SUCCESS_WEBHOOK_URL", "https://hooks.example.com/ok")
    monkeypatch.setattr(config, "IS_PRODUCTION", False)
    assert asyncio.run(notifications.send_success_notification("done")) is False

    monkeypatch.setattr(config, "IS_PRODUCTION", True)
    assert asyncio.run(notifications.send_success_notification("done")) is True
    assert sent == [("https://hooks.example.com/ok", {"text": "✅ done"})]
