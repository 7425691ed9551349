"""Subscription service - plans, upgrades, feature access and usage quotas"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta
from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from ...auth import get_current_company
from ...config import FRONTEND_URL
from ...database import get_db
from ...models import Company, User
from ...models_billing import CompanySubscription, SubscriptionPlan
from .affiliate_tracking import is_valid_referral_code, track_registration
from .payment_gateway import (
    PaymentGatewayError,
    build_recurring_subscription_payment,
    build_subscription_payment,
    payment_gateway,
)
from .plans import ACTIVE_STATUSES, BILLING_CYCLES, TIER_ORDER, is_downgrade, is_upgrade
from .repository import BillingRepository

logger = logging.getLogger(__name__)

FREE_PERIOD_DAYS = 100 * 365


def current_period_start(today: Optional[date] = None) -> date:
    """Usage is tracked per calendar month"""
    return (today or date.today()).replace(day=1)


def serialize_plan(plan: SubscriptionPlan) -> dict:
    return {
        "id": plan.id,
        "tier": plan.tier,
        "name": plan.name,
        "name_en": plan.name_en,
        "description": plan.description,
        "monthly_price": plan.monthly_price,
        "yearly_price": plan.yearly_price,
        "currency": "TWD",
        "max_products": plan.max_products,
        "max_customers": plan.max_customers,
        "max_quotations_per_month": plan.max_quotations_per_month,
        "max_companies": plan.max_companies,
        "is_popular": plan.is_popular,
    }


def serialize_subscription(subscription: CompanySubscription) -> dict:
    return {
        "id": subscription.id,
        "company_id": subscription.company_id,
        "tier": subscription.plan.tier if subscription.plan else None,
        "status": subscription.status,
        "billing_cycle": subscription.billing_cycle,
        "current_period_start": subscription.current_period_start,
        "current_period_end": subscription.current_period_end,
        "trial_ends_at": subscription.trial_ends_at,
        "cancelled_at": subscription.cancelled_at,
        "last_payment_at": subscription.last_payment_at,
        "external_subscription_id": subscription.external_subscription_id,
    }


class SubscriptionService:
    """Service for subscription management"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BillingRepository()

    # ------------------------------------------------------------------
    # Plans
    # ------------------------------------------------------------------

    def get_plans(self) -> list[dict]:
        return [serialize_plan(p) for p in self.repo.get_active_plans(self.db)]

    def get_plan(self, tier: str) -> SubscriptionPlan:
        plan = self.repo.get_plan_by_tier(self.db, tier)
        if not plan:
            raise HTTPException(status_code=404, detail=f"Plan {tier} not found")
        return plan

    def get_plan_details(self, tier: str) -> dict:
        plan = self.get_plan(tier)
        features = [
            {
                "code": pf.feature.code,
                "name": pf.feature.name,
                "category": pf.feature.category,
                "is_enabled": pf.is_enabled,
                "quota_limit": pf.quota_limit,
            }
            for pf in self.repo.get_plan_features(self.db, plan.id)
        ]
        return {**serialize_plan(plan), "features": features}

    # ------------------------------------------------------------------
    # Subscription lifecycle
    # ------------------------------------------------------------------

    def get_subscription(self, company_id: int) -> Optional[CompanySubscription]:
        return self.repo.get_subscription(self.db, company_id)

    def _require_subscription(self, company_id: int) -> CompanySubscription:
        subscription = self.get_subscription(company_id)
        if not subscription:
            raise HTTPException(status_code=404, detail="No existing subscription found")
        return subscription

    def get_tier(self, company_id: int) -> str:
        subscription = self.get_subscription(company_id)
        return subscription.plan.tier if subscription else "FREE"

    def ensure_free_subscription(self, company_id: int) -> Optional[CompanySubscription]:
        """Give a company the FREE plan unless it already has a subscription"""
        existing = self.get_subscription(company_id)
        if existing:
            return existing

        free_plan = self.repo.get_plan_by_tier(self.db, "FREE")
        if not free_plan:
            logger.error("❌ FREE plan not found in database")
            return None

        now = datetime.utcnow()
        subscription = self.repo.create_subscription(
            self.db,
            company_id=company_id,
            plan_id=free_plan.id,
            status="ACTIVE",
            billing_cycle="MONTHLY",
            current_period_start=now,
            current_period_end=now + timedelta(days=FREE_PERIOD_DAYS),
        )
        self.repo.create_history(
            self.db,
            company_id=company_id,
            to_plan_id=free_plan.id,
            change_type="create",
            changed_by="system",
        )
        logger.info(f"✅ Created FREE subscription for company {company_id}")
        return subscription

    def upgrade_plan(
        self,
        company_id: int,
        new_tier: str,
        billing_cycle: Optional[str] = None,
        changed_by: Optional[str] = None,
        external_subscription_id: Optional[str] = None,
        external_customer_id: Optional[str] = None,
    ) -> CompanySubscription:
        subscription = self._require_subscription(company_id)
        current_tier = subscription.plan.tier

        if not is_upgrade(current_tier, new_tier):
            raise HTTPException(
                status_code=400,
                detail=f"Cannot upgrade from {current_tier} to {new_tier}. Use downgrade for downgrades.",
            )

        new_plan = self.get_plan(new_tier)
        cycle = billing_cycle or subscription.billing_cycle
        if cycle not in BILLING_CYCLES:
            raise HTTPException(status_code=400, detail=f"Invalid billing cycle: {cycle}")

        now = datetime.utcnow()
        period_end = now + (relativedelta(months=1) if cycle == "MONTHLY" else relativedelta(years=1))
        previous_plan_id = subscription.plan_id

        subscription = self.repo.update_subscription(
            self.db,
            subscription,
            plan_id=new_plan.id,
            billing_cycle=cycle,
            status="ACTIVE",
            current_period_start=now,
            current_period_end=period_end,
            last_payment_at=now,
            cancelled_at=None,
            external_subscription_id=external_subscription_id,
            external_customer_id=external_customer_id,
        )
        self.repo.create_history(
            self.db,
            company_id=company_id,
            from_plan_id=previous_plan_id,
            to_plan_id=new_plan.id,
            change_type="upgrade",
            changed_by=changed_by,
        )
        logger.info(f"⬆️ Company {company_id} upgraded {current_tier} -> {new_tier} ({cycle})")
        return subscription

    def downgrade_plan(
        self,
        company_id: int,
        new_tier: str,
        effective_at: str = "end_of_period",
        changed_by: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> CompanySubscription:
        subscription = self._require_subscription(company_id)
        current_tier = subscription.plan.tier

        if not is_downgrade(current_tier, new_tier):
            raise HTTPException(
                status_code=400,
                detail=f"Cannot downgrade from {current_tier} to {new_tier}. Use upgrade for upgrades.",
            )

        new_plan = self.get_plan(new_tier)
        previous_plan_id = subscription.plan_id

        if effective_at == "immediately":
            subscription = self.repo.update_subscription(
                self.db,
                subscription,
                plan_id=new_plan.id,
                status="ACTIVE",
                current_period_start=datetime.utcnow(),
            )
            change_reason = reason
        else:
            # Applied when the current period ends; only the intent is recorded
            change_reason = f"Scheduled for end of period: {reason or ''}"

        self.repo.create_history(
            self.db,
            company_id=company_id,
            from_plan_id=previous_plan_id,
            to_plan_id=new_plan.id,
            change_type="downgrade",
            reason=change_reason,
            changed_by=changed_by,
        )
        logger.info(f"⬇️ Company {company_id} downgrade {current_tier} -> {new_tier} ({effective_at})")
        return subscription

    def cancel_subscription(
        self,
        company_id: int,
        effective_at: str = "end_of_period",
        reason: Optional[str] = None,
        changed_by: Optional[str] = None,
    ) -> CompanySubscription:
        subscription = self._require_subscription(company_id)
        if subscription.plan.tier == "FREE":
            raise HTTPException(status_code=400, detail="Cannot cancel free subscription")

        now = datetime.utcnow()
        previous_plan_id = subscription.plan_id

        if effective_at == "immediately":
            free_plan = self.get_plan("FREE")
            subscription = self.repo.update_subscription(
                self.db, subscription, plan_id=free_plan.id, status="CANCELLED", cancelled_at=now
            )
            to_plan_id = free_plan.id
            change_reason = reason
        else:
            subscription = self.repo.update_subscription(self.db, subscription, cancelled_at=now)
            to_plan_id = previous_plan_id
            change_reason = f"Scheduled for end of period: {reason or ''}"

        self.repo.create_history(
            self.db,
            company_id=company_id,
            from_plan_id=previous_plan_id,
            to_plan_id=to_plan_id,
            change_type="cancel",
            reason=change_reason,
            changed_by=changed_by,
        )
        logger.info(f"🛑 Company {company_id} subscription cancelled ({effective_at})")
        return subscription

    def get_history(self, company_id: int) -> list[dict]:
        return [
            {
                "from_plan_id": h.from_plan_id,
                "to_plan_id": h.to_plan_id,
                "change_type": h.change_type,
                "reason": h.reason,
                "changed_by": h.changed_by,
                "created_at": h.created_at,
            }
            for h in self.repo.get_history(self.db, company_id)
        ]

    # ------------------------------------------------------------------
    # Feature access and usage
    # ------------------------------------------------------------------

    def check_feature_access(self, company_id: int, feature_code: str) -> dict:
        subscription = self.get_subscription(company_id)
        if not subscription or subscription.status not in ACTIVE_STATUSES:
            return {
                "has_access": False,
                "feature_code": feature_code,
                "current_tier": "FREE",
                "quota_limit": None,
            }

        plan_feature = self.repo.get_plan_feature(self.db, subscription.plan_id, feature_code)
        return {
            "has_access": bool(plan_feature and plan_feature.is_enabled),
            "feature_code": feature_code,
            "current_tier": subscription.plan.tier,
            "quota_limit": plan_feature.quota_limit if plan_feature else None,
        }

    def has_feature_access(self, company_id: int, feature_code: str) -> bool:
        return self.check_feature_access(company_id, feature_code)["has_access"]

    def require_feature_access(self, company_id: int, feature_code: str) -> None:
        access = self.check_feature_access(company_id, feature_code)
        if not access["has_access"]:
            raise HTTPException(
                status_code=403,
                detail={
                    "message": f"Feature '{feature_code}' is not available in the {access['current_tier']} plan",
                    "code": "FEATURE_NOT_AVAILABLE",
                },
            )

    def get_current_usage(self, company_id: int, feature_code: str) -> int:
        usage = self.repo.get_usage(self.db, company_id, feature_code, current_period_start())
        return usage.usage_count if usage else 0

    def increment_usage(self, company_id: int, feature_code: str, amount: int = 1) -> int:
        usage = self.repo.increment_usage(
            self.db, company_id, feature_code, current_period_start(), amount
        )
        return usage.usage_count

    def check_usage_limit(self, company_id: int, feature_code: str) -> dict:
        current_usage = self.get_current_usage(company_id, feature_code)
        quota = self.check_feature_access(company_id, feature_code)["quota_limit"]

        if quota is None or quota == -1:
            return {
                "is_within_limit": True,
                "current_usage": current_usage,
                "quota_limit": quota,
                "remaining": None,
            }

        remaining = quota - current_usage
        return {
            "is_within_limit": remaining > 0,
            "current_usage": current_usage,
            "quota_limit": quota,
            "remaining": max(0, remaining),
        }

    def require_usage_within_limit(self, company_id: int, feature_code: str) -> None:
        result = self.check_usage_limit(company_id, feature_code)
        if not result["is_within_limit"]:
            raise HTTPException(
                status_code=403,
                detail={
                    "message": (
                        f"Usage limit exceeded for '{feature_code}': "
                        f"{result['current_usage']}/{result['quota_limit']}"
                    ),
                    "code": "USAGE_LIMIT_EXCEEDED",
                },
            )

    def get_subscription_summary(self, company_id: int) -> dict:
        subscription = self.get_subscription(company_id)
        if not subscription:
            details = self.get_plan_details("FREE")
            return {
                "tier": "FREE",
                "tier_name": details["name"],
                "status": "ACTIVE",
                "billing_cycle": "MONTHLY",
                "current_period_end": None,
                "days_remaining": None,
                "is_trial": False,
                "features": details["features"],
            }

        details = self.get_plan_details(subscription.plan.tier)
        days_remaining = None
        if subscription.current_period_end:
            days_remaining = max(0, (subscription.current_period_end - datetime.utcnow()).days)

        return {
            "tier": subscription.plan.tier,
            "tier_name": subscription.plan.name,
            "status": subscription.status,
            "billing_cycle": subscription.billing_cycle,
            "current_period_end": subscription.current_period_end,
            "days_remaining": days_remaining,
            "is_trial": subscription.status == "TRIAL",
            "features": details["features"],
        }

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    async def create_checkout(
        self,
        company: Company,
        user: User,
        tier: str,
        billing_cycle: str,
        recurring: bool = False,
        referral_code: Optional[str] = None,
    ) -> dict:
        if not payment_gateway.is_configured():
            logger.error("❌ Payment gateway credentials are not set")
            raise HTTPException(status_code=503, detail="付款系統尚未設定，請聯繫管理員")

        if tier == "FREE":
            raise HTTPException(status_code=400, detail="免費方案無需付款")
        if tier not in TIER_ORDER:
            raise HTTPException(status_code=400, detail="無效的方案")
        if billing_cycle not in BILLING_CYCLES:
            raise HTTPException(status_code=400, detail="無效的計費週期")
        if not user.email:
            raise HTTPException(status_code=400, detail="無法取得用戶 Email")

        if referral_code and is_valid_referral_code(referral_code):
            result = await track_registration(
                referral_code=referral_code.upper(),
                referred_user_id=user.supabase_uid,
                referred_user_email=user.email,
            )
            if not result["success"]:
                logger.warning(f"⚠️ Referral tracking skipped: {result.get('error')}")

        try:
            if recurring:
                params = build_recurring_subscription_payment(
                    company.public_id, tier, billing_cycle, user.email
                )
            else:
                params = build_subscription_payment(company.public_id, tier, billing_cycle, user.email)
            params["callbackUrl"] = (
                f"{FRONTEND_URL}/pricing/callback?order_id={params['orderId']}&tier={tier}"
            )
            result = await payment_gateway.create_payment(params)
        except PaymentGatewayError as e:
            status_code = 400 if e.code == "VALIDATION_ERROR" else 502
            raise HTTPException(status_code=status_code, detail={"message": str(e), "code": e.code}) from e

        logger.info(f"💳 Checkout created for company {company.id}: {params['orderId']}")
        return {"order_id": params["orderId"], "amount": params["amount"], "payment": result}


def require_feature(feature_code: str):
    """Dependency factory: 403 FEATURE_NOT_AVAILABLE unless the tenant's plan has the feature"""

    async def dependency(
        company: Company = Depends(get_current_company),
        db: Session = Depends(get_db),
    ) -> Company:
        SubscriptionService(db).require_feature_access(company.id, feature_code)
        return company

    return dependency
