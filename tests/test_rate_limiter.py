from fastapi import FastAPI
from fastapi.testclient import TestClient

from quoteflow import rate_limiter
from quoteflow.rate_limiter import (
    RateLimitMiddleware,
    check_rate_limit,
    get_client_ip,
    resolve_rule,
)


def test_allows_up_to_limit_then_denies():
    results = [check_rate_limit("rate_limit:test:1.2.3.4", 3, 60) for _ in range(4)]
    assert [allowed for allowed, _, _ in results] == [True, True, True, False]
    assert results[2][1] == 3
    assert 0 < results[3][2] <= 60


def test_keys_are_counted_separately():
    for _ in range(2):
        check_rate_limit("rate_limit:a", 2, 60)
    assert check_rate_limit("rate_limit:a", 2, 60)[0] is False
    assert check_rate_limit("rate_limit:b", 2, 60)[0] is True


def test_window_resets_after_expiry(monkeypatch):
    now = [1_000_000]
    monkeypatch.setattr(rate_limiter.time, "time", lambda: now[0])

    assert check_rate_limit("rate_limit:reset", 1, 60)[0] is True
    assert check_rate_limit("rate_limit:reset", 1, 60)[0] is False
    now[0] += 61
    assert check_rate_limit("rate_limit:reset", 1, 60)[0] is True


def test_new_window_resumes_count_from_redis(redis_client):
    redis_client.set("rate_limit:shared", 5, ex=30)
    allowed, count, ttl = check_rate_limit("rate_limit:shared", 5, 60, redis_client)
    assert allowed is False
    assert count == 5
    assert ttl <= 30


def test_count_is_synced_to_redis_every_interval(redis_client, monkeypatch):
    now = [2_000_000]
    monkeypatch.setattr(rate_limiter.time, "time", lambda: now[0])

    check_rate_limit("rate_limit:sync", 10, 60, redis_client)
    assert redis_client.get("rate_limit:sync") is None
    now[0] += rate_limiter.MEMORY_CACHE_SYNC_INTERVAL
    check_rate_limit("rate_limit:sync", 10, 60, redis_client)
    assert redis_client.get("rate_limit:sync") == "2"


def test_rule_resolution():
    assert resolve_rule("/api/ocr/business-card") == ("/api/ocr/", 10, 60)
    assert resolve_rule("/api/orders") == ("/api/", 60, 60)
    assert resolve_rule("/api/cron/mark-overdue") is None
    assert resolve_rule("/api/webhooks/affiliate-payment") is None
    assert resolve_rule("/health") is None


def test_client_ip_prefers_forwarded_header():
    class FakeRequest:
        headers = {"X-Forwarded-For": "203.0.113.9, 10.0.0.1"}
        client = None

    assert get_client_ip(FakeRequest()) == "203.0.113.9"


def test_middleware_returns_429_with_retry_after(monkeypatch):
    monkeypatch.setattr(rate_limiter, "RATE_LIMIT_RULES", [("/api/", 2, 60)])
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware)

    @app.get("/api/ping")
    async def ping():
        return {"pong": True}

    client = TestClient(app)
    first = client.get("/api/ping")
    assert first.status_code == 200
    assert first.headers["X-RateLimit-Limit"] == "2"
    assert first.headers["X-RateLimit-Remaining"] == "1"

    client.get("/api/ping")
    blocked = client.get("/api/ping")
    assert blocked.status_code == 429
    assert blocked.json()["code"] == "RATE_LIMIT_EXCEEDED"
    assert "Retry-After" in blocked.headers
