import asyncio
from datetime import date

import pytest

from quoteflow import rate_limiter
from quoteflow.domain.exchange_rates import service as rates_service
from quoteflow.domain.exchange_rates.service import (
    ExchangeRateService,
    convert_currency,
    fallback_rates,
    rates_cache_key,
)

API_PAYLOAD = {
    "result": "success",
    "conversion_rates": {"USD": 1, "TWD": 32.0, "EUR": 0.9, "JPY": 150.0, "CNY": 7.2},
}

RATES = {"USD": 1.0, "TWD": 32.0, "EUR": 0.9, "JPY": 150.0}


@pytest.fixture
def fake_api(monkeypatch):
    calls = []

    async def fake_fetch(base_currency="USD", api_key=None):
        calls.append(base_currency)
        return API_PAYLOAD

    monkeypatch.setattr(rates_service, "fetch_latest_rates", fake_fetch)
    return calls


def test_convert_currency_through_usd():
    assert convert_currency(100, "USD", "TWD", RATES) == 3200.0
    assert convert_currency(3200, "TWD", "USD", RATES) == 100.0
    assert convert_currency(90, "EUR", "JPY", RATES) == pytest.approx(15000.0)
    assert convert_currency(50, "TWD", "TWD", {}) == 50


def test_convert_currency_without_rate_returns_amount():
    assert convert_currency(100, "USD", "CNY", RATES) == 100
    assert convert_currency(100, "CNY", "TWD", RATES) == 100


def test_fetch_without_api_key(monkeypatch):
    monkeypatch.setattr(rates_service, "EXCHANGE_RATE_API_KEY", None)
    assert asyncio.run(rates_service.fetch_latest_rates("USD")) is None


def test_sync_stores_rates_and_clears_cache(db, kv, fake_api):
    kv.set(rates_cache_key("USD"), {"TWD": 1.0})
    service = ExchangeRateService(db, kv)

    assert asyncio.run(service.sync_rates_to_database("USD", today=date(2026, 3, 1)))
    assert kv.get(rates_cache_key("USD")) is None

    rates = service.get_rates_by_date(date(2026, 3, 1))
    assert rates["TWD"] == 32.0
    assert rates["USD"] == 1.0
    assert service.get_rates_by_date(date(2026, 2, 1)) is None

    # syncing the same day again updates rather than duplicates
    assert asyncio.run(service.sync_rates_to_database("USD", today=date(2026, 3, 1)))
    assert len(service.repo.get_by_date(db, "USD", date(2026, 3, 1))) == 4


def test_rates_fall_back_to_api_then_cache(db, kv, fake_api):
    service = ExchangeRateService(db, kv)

    rates = asyncio.run(service.get_exchange_rates("USD"))
    assert rates["EUR"] == 0.9
    assert fake_api == ["USD"]
    assert kv.get(rates_cache_key("USD"))["EUR"] == 0.9

    asyncio.run(service.get_exchange_rates("USD"))
    assert fake_api == ["USD"]


def test_rates_unavailable_uses_fallback(db, kv, monkeypatch):
    async def failing_fetch(base_currency="USD", api_key=None):
        return None

    monkeypatch.setattr(rates_service, "fetch_latest_rates", failing_fetch)
    rates = asyncio.run(ExchangeRateService(db, kv).get_exchange_rates("USD"))
    assert rates == fallback_rates()
    assert kv.get(rates_cache_key("USD")) is None


def test_convert_route(client, fake_api):
    response = client.get("/api/exchange-rates/convert", params={"amount": 10, "from": "USD", "to": "TWD"})
    assert response.status_code == 200
    assert response.json()["data"]["converted_amount"] == 320.0

    unsupported = client.get("/api/exchange-rates/convert", params={"amount": 10, "from": "USD", "to": "GBP"})
    assert unsupported.status_code == 400


def test_history_route_404(client):
    assert client.get("/api/exchange-rates/history/2020-01-01").status_code == 404


def test_sync_route_reports_every_currency(client, fake_api):
    response = client.post("/api/exchange-rates/sync")
    assert response.status_code == 200
    body = response.json()
    assert [r["currency"] for r in body["data"]] == ["TWD", "USD", "EUR", "JPY", "CNY"]
    assert body["message"] == "Synced 5 out of 5 currencies"


def test_sync_route_is_rate_limited(client, fake_api, monkeypatch):
    monkeypatch.setattr(rate_limiter.config, "RATE_LIMIT_ENABLED", True)
    for _ in range(5):
        assert client.post("/api/exchange-rates/sync").status_code == 200

    blocked = client.post("/api/exchange-rates/sync")
    assert blocked.status_code == 429
    assert blocked.json()["code"] == "RATE_LIMIT_EXCEEDED"
    assert 0 < int(blocked.headers["Retry-After"]) <= 3600
