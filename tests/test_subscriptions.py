from datetime import date, timedelta

import pytest
from fastapi import HTTPException

from quoteflow.domain.billing.affiliate_tracking import (
    get_referral_code_from_cookie,
    parse_referral_code_from_url,
)
from quoteflow.domain.billing.payment_gateway import (
    PaymentGatewayError,
    build_order_id,
    build_recurring_subscription_payment,
    build_subscription_payment,
)
from quoteflow.domain.billing.subscription_service import SubscriptionService


@pytest.fixture
def subscriptions(db, tenant):
    service = SubscriptionService(db)
    service.ensure_free_subscription(tenant.company.id)
    return service


def test_plans_are_seeded(subscriptions):
    tiers = [plan["tier"] for plan in subscriptions.get_plans()]
    assert tiers == ["FREE", "STARTER", "STANDARD", "PROFESSIONAL"]
    standard = subscriptions.get_plan_details("STANDARD")
    assert standard["monthly_price"] == 599
    assert standard["yearly_price"] == 5990


def test_ensure_free_subscription_is_idempotent(subscriptions, tenant):
    first = subscriptions.get_subscription(tenant.company.id)
    assert subscriptions.ensure_free_subscription(tenant.company.id).id == first.id
    assert len(subscriptions.get_history(tenant.company.id)) == 1


def test_upgrade_sets_new_period(subscriptions, tenant):
    subscription = subscriptions.upgrade_plan(
        tenant.company.id, "STANDARD", "YEARLY", external_subscription_id="SUB-abc-1"
    )
    assert subscription.plan.tier == "STANDARD"
    assert subscription.billing_cycle == "YEARLY"
    assert subscription.external_subscription_id == "SUB-abc-1"
    assert subscription.current_period_end - subscription.current_period_start >= timedelta(days=365)
    assert subscription.last_payment_at is not None

    with pytest.raises(HTTPException) as exc:
        subscriptions.upgrade_plan(tenant.company.id, "STARTER")
    assert exc.value.status_code == 400


def test_downgrade_end_of_period_keeps_plan(subscriptions, tenant):
    subscriptions.upgrade_plan(tenant.company.id, "PROFESSIONAL", "MONTHLY")

    scheduled = subscriptions.downgrade_plan(tenant.company.id, "STARTER")
    assert scheduled.plan.tier == "PROFESSIONAL"
    assert subscriptions.get_history(tenant.company.id)[0]["change_type"] == "downgrade"

    immediate = subscriptions.downgrade_plan(tenant.company.id, "STARTER", "immediately")
    assert immediate.plan.tier == "STARTER"


def test_cancel(subscriptions, tenant):
    with pytest.raises(HTTPException):
        subscriptions.cancel_subscription(tenant.company.id)

    subscriptions.upgrade_plan(tenant.company.id, "STARTER", "MONTHLY")
    pending = subscriptions.cancel_subscription(tenant.company.id)
    assert pending.plan.tier == "STARTER"
    assert pending.cancelled_at is not None

    cancelled = subscriptions.cancel_subscription(tenant.company.id, "immediately")
    assert cancelled.plan.tier == "FREE"
    assert cancelled.status == "CANCELLED"
    assert not subscriptions.has_feature_access(tenant.company.id, "quotations")


def test_feature_access(subscriptions, tenant):
    assert subscriptions.has_feature_access(tenant.company.id, "quotations")
    with pytest.raises(HTTPException) as exc:
        subscriptions.require_feature_access(tenant.company.id, "income_tax")
    assert exc.value.status_code == 403
    assert exc.value.detail["code"] == "FEATURE_NOT_AVAILABLE"

    subscriptions.upgrade_plan(tenant.company.id, "STANDARD", "MONTHLY")
    subscriptions.require_feature_access(tenant.company.id, "income_tax")


def test_monthly_quota(subscriptions, tenant):
    for _ in range(9):
        subscriptions.increment_usage(tenant.company.id, "quotations")
    limit = subscriptions.check_usage_limit(tenant.company.id, "quotations")
    assert limit == {"is_within_limit": True, "current_usage": 9, "quota_limit": 10, "remaining": 1}

    subscriptions.increment_usage(tenant.company.id, "quotations")
    with pytest.raises(HTTPException) as exc:
        subscriptions.require_usage_within_limit(tenant.company.id, "quotations")
    assert exc.value.detail["code"] == "USAGE_LIMIT_EXCEEDED"

    subscriptions.upgrade_plan(tenant.company.id, "STANDARD", "MONTHLY")
    assert subscriptions.check_usage_limit(tenant.company.id, "quotations")["remaining"] is None


def test_quotation_creation_counts_against_quota(client, subscriptions, tenant):
    for _ in range(10):
        subscriptions.increment_usage(tenant.company.id, "quotations")
    response = client.post("/api/quotations", json={"customer_id": tenant.customer.id, "items": []})
    assert response.status_code == 403
    assert response.json()["code"] == "USAGE_LIMIT_EXCEEDED"


def test_order_id_format():
    assert build_order_id("SUB", "a1b2_c3d4e5f6", 1700000000000) == "SUB-a1b2-c3d-1700000000000"


def test_subscription_payment_params():
    params = build_subscription_payment("company1", "STARTER", "YEARLY", "owner@example.com", now_ms=1)
    assert params["amount"] == 2990
    assert params["orderId"] == "SUB-company1-1"
    assert params["metadata"] == {
        "company_id": "company1",
        "tier": "STARTER",
        "billing_cycle": "YEARLY",
        "type": "subscription",
    }

    with pytest.raises(PaymentGatewayError):
        build_subscription_payment("company1", "FREE", "MONTHLY", "owner@example.com")


def test_recurring_payment_is_monthly_only():
    params = build_recurring_subscription_payment(
        "company1", "PROFESSIONAL", "MONTHLY", "owner@example.com", today=date(2026, 12, 15), now_ms=1
    )
    assert params["orderId"].startswith("RSUB-")
    assert params["periodParams"]["periodTimes"] == 12
    assert params["periodParams"]["periodFirstdate"] == "2027-01-01"
    assert params["periodParams"]["periodAmt"] == 1299

    with pytest.raises(PaymentGatewayError):
        build_recurring_subscription_payment("company1", "STARTER", "YEARLY", "owner@example.com")


def test_referral_codes():
    assert parse_referral_code_from_url("https://app.example.com/signup?ref=abcd1234") == "ABCD1234"
    assert parse_referral_code_from_url("https://app.example.com/signup?referral=ZZZZ9999") == "ZZZZ9999"
    assert parse_referral_code_from_url("https://app.example.com/signup?ref=short") is None
    assert get_referral_code_from_cookie("theme=dark; ref_code=QWER1234") == "QWER1234"
    assert get_referral_code_from_cookie(None) is None


def test_history_is_newest_first(subscriptions, tenant):
    subscriptions.upgrade_plan(tenant.company.id, "STARTER", "MONTHLY")
    history = subscriptions.get_history(tenant.company.id)
    assert [h["change_type"] for h in history] == ["upgrade", "create"]
