import json
import time

from quoteflow.domain.billing import router as billing_router
from quoteflow.domain.billing.subscription_service import SubscriptionService
from quoteflow.webhook_security import (
    compute_hmac_sha256,
    constant_time_compare,
    verify_signature,
    verify_timestamp,
)

SECRET = "whsec_test"


def signed_headers(body: bytes, secret: str = SECRET, timestamp=None) -> dict:
    headers = {
        "Content-Type": "application/json",
        "X-Webhook-Signature": compute_hmac_sha256(secret, body),
    }
    if timestamp is not None:
        headers["X-Webhook-Timestamp"] = str(timestamp)
    return headers


def test_constant_time_compare_rejects_empty():
    assert constant_time_compare("abc", "abc")
    assert not constant_time_compare("", "")
    assert not constant_time_compare("abc", "abd")


def test_signature_accepts_prefix_and_uppercase():
    body = b'{"status":"SUCCESS"}'
    signature = compute_hmac_sha256(SECRET, body)
    assert verify_signature(SECRET, body, signature)
    assert verify_signature(SECRET, body, f"sha256={signature.upper()}")
    assert not verify_signature("other", body, signature)
    assert not verify_signature(SECRET, body, None)


def test_signature_over_compact_json_is_accepted_for_pretty_body():
    payload = {"status": "SUCCESS", "orderId": "SUB-1"}
    compact = json.dumps(payload, separators=(",", ":")).encode()
    pretty = json.dumps(payload, indent=2).encode()
    assert verify_signature(SECRET, pretty, compute_hmac_sha256(SECRET, compact))


def test_timestamp_window():
    now = int(time.time())
    assert verify_timestamp(None)
    assert verify_timestamp(str(now - 10))
    assert not verify_timestamp(str(now - 3600))
    assert not verify_timestamp("yesterday")


def test_webhook_rejects_missing_and_bad_signatures(client, monkeypatch):
    monkeypatch.setattr(billing_router, "AFFILIATE_PAYMENT_WEBHOOK_SECRET", SECRET)
    body = json.dumps({"status": "FAILED", "orderId": "SUB-1"}).encode()

    missing = client.post("/api/webhooks/affiliate-payment", content=body, headers={"Content-Type": "application/json"})
    assert missing.status_code == 401
    assert missing.json()["code"] == "MISSING_SIGNATURE"

    forged = client.post("/api/webhooks/affiliate-payment", content=body, headers=signed_headers(body, "wrong"))
    assert forged.status_code == 401
    assert forged.json()["code"] == "INVALID_SIGNATURE"

    stale = client.post(
        "/api/webhooks/affiliate-payment",
        content=body,
        headers=signed_headers(body, timestamp=int(time.time()) - 3600),
    )
    assert stale.json()["code"] == "TIMESTAMP_EXPIRED"


def test_webhook_without_configured_secret(client, monkeypatch):
    monkeypatch.setattr(billing_router, "AFFILIATE_PAYMENT_WEBHOOK_SECRET", None)
    body = b'{"status":"FAILED"}'
    response = client.post("/api/webhooks/affiliate-payment", content=body, headers=signed_headers(body))
    assert response.status_code == 401
    assert response.json()["code"] == "CONFIG_ERROR"


def test_successful_payment_upgrades_subscription(client, db, tenant, monkeypatch):
    monkeypatch.setattr(billing_router, "AFFILIATE_PAYMENT_WEBHOOK_SECRET", SECRET)
    service = SubscriptionService(db)
    service.ensure_free_subscription(tenant.company.id)

    body = json.dumps(
        {
            "paymentId": "pay_123",
            "orderId": "SUB-abc-1",
            "status": "SUCCESS",
            "metadata": {
                "company_id": tenant.company.public_id,
                "tier": "STANDARD",
                "billing_cycle": "MONTHLY",
                "type": "subscription",
            },
        }
    ).encode()
    response = client.post(
        "/api/webhooks/affiliate-payment", content=body, headers=signed_headers(body, timestamp=int(time.time()))
    )

    assert response.status_code == 200
    db.expire_all()
    assert service.get_tier(tenant.company.id) == "STANDARD"
