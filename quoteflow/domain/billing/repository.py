"""Billing repository - Database operations for subscriptions"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Company
from ...models_billing import (
    CompanySubscription,
    PlanFeature,
    SubscriptionFeature,
    SubscriptionHistory,
    SubscriptionPlan,
    UsageTracking,
)


class BillingRepository:
    """Repository for subscription database operations"""

    @staticmethod
    def get_active_plans(db: Session) -> list[SubscriptionPlan]:
        return (
            db.query(SubscriptionPlan)
            .filter(SubscriptionPlan.is_active.is_(True))
            .order_by(SubscriptionPlan.sort_order.asc())
            .all()
        )

    @staticmethod
    def get_plan_by_tier(db: Session, tier: str) -> Optional[SubscriptionPlan]:
        return db.query(SubscriptionPlan).filter(SubscriptionPlan.tier == tier).first()

    @staticmethod
    def get_plan_features(db: Session, plan_id: int) -> list[PlanFeature]:
        return (
            db.query(PlanFeature)
            .options(joinedload(PlanFeature.feature))
            .filter(PlanFeature.plan_id == plan_id)
            .all()
        )

    @staticmethod
    def get_plan_feature(db: Session, plan_id: int, feature_code: str) -> Optional[PlanFeature]:
        return (
            db.query(PlanFeature)
            .join(SubscriptionFeature, SubscriptionFeature.id == PlanFeature.feature_id)
            .filter(PlanFeature.plan_id == plan_id, SubscriptionFeature.code == feature_code)
            .first()
        )

    @staticmethod
    def get_subscription(db: Session, company_id: int) -> Optional[CompanySubscription]:
        return (
            db.query(CompanySubscription)
            .options(joinedload(CompanySubscription.plan))
            .filter(CompanySubscription.company_id == company_id)
            .first()
        )

    @staticmethod
    def create_subscription(db: Session, **data) -> CompanySubscription:
        subscription = CompanySubscription(**data)
        db.add(subscription)
        db.commit()
        db.refresh(subscription)
        return subscription

    @staticmethod
    def update_subscription(db: Session, subscription: CompanySubscription, **updates) -> CompanySubscription:
        for key, value in updates.items():
            setattr(subscription, key, value)
        db.commit()
        db.refresh(subscription)
        return subscription

    @staticmethod
    def create_history(db: Session, **data) -> SubscriptionHistory:
        history = SubscriptionHistory(**data)
        db.add(history)
        db.commit()
        return history

    @staticmethod
    def get_history(db: Session, company_id: int, limit: int = 50) -> list[SubscriptionHistory]:
        return (
            db.query(SubscriptionHistory)
            .filter(SubscriptionHistory.company_id == company_id)
            .order_by(SubscriptionHistory.created_at.desc(), SubscriptionHistory.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_usage(db: Session, company_id: int, feature_code: str, period_start: date) -> Optional[UsageTracking]:
        return (
            db.query(UsageTracking)
            .filter(
                UsageTracking.company_id == company_id,
                UsageTracking.feature_code == feature_code,
                UsageTracking.period_start == period_start,
            )
            .first()
        )

    @staticmethod
    def increment_usage(
        db: Session, company_id: int, feature_code: str, period_start: date, amount: int = 1
    ) -> UsageTracking:
        usage = BillingRepository.get_usage(db, company_id, feature_code, period_start)
        if usage:
            usage.usage_count = usage.usage_count + amount
        else:
            usage = UsageTracking(
                company_id=company_id,
                feature_code=feature_code,
                period_start=period_start,
                usage_count=amount,
            )
            db.add(usage)
        db.commit()
        db.refresh(usage)
        return usage

    @staticmethod
    def get_company(db: Session, company_id: int) -> Optional[Company]:
        return db.query(Company).filter(Company.id == company_id).first()
