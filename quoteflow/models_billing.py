from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id = Column(Integer, primary_key=True, index=True)
    tier = Column(String(20), unique=True, nullable=False)  # FREE, STARTER, STANDARD, PROFESSIONAL
    name = Column(String(100), nullable=False)
    name_en = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    monthly_price = Column(Float, default=0, nullable=False)  # TWD
    yearly_price = Column(Float, default=0, nullable=False)  # TWD
    # -1 means unlimited
    max_products = Column(Integer, default=-1, nullable=False)
    max_customers = Column(Integer, default=-1, nullable=False)
    max_quotations_per_month = Column(Integer, default=-1, nullable=False)
    max_companies = Column(Integer, default=1, nullable=False)
    is_popular = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    plan_features = relationship("PlanFeature", back_populates="plan", cascade="all, delete-orphan")


class SubscriptionFeature(Base):
    __tablename__ = "subscription_features"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False)  # e.g. income_tax, ocr
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=True)


class PlanFeature(Base):
    __tablename__ = "plan_features"
    __table_args__ = (UniqueConstraint("plan_id", "feature_id", name="uq_plan_feature"),)

    id = Column(Integer, primary_key=True, index=True)
    plan_id = Column(Integer, ForeignKey("subscription_plans.id"), nullable=False, index=True)
    feature_id = Column(Integer, ForeignKey("subscription_features.id"), nullable=False)
    is_enabled = Column(Boolean, default=True, nullable=False)
    quota_limit = Column(Integer, nullable=True)  # None or -1 means unlimited

    plan = relationship("SubscriptionPlan", back_populates="plan_features")
    feature = relationship("SubscriptionFeature")


class CompanySubscription(Base):
    __tablename__ = "company_subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), unique=True, nullable=False)
    plan_id = Column(Integer, ForeignKey("subscription_plans.id"), nullable=False)
    status = Column(String(20), default="ACTIVE", nullable=False)  # ACTIVE, TRIAL, PAST_DUE, CANCELLED, EXPIRED
    billing_cycle = Column(String(10), default="MONTHLY", nullable=False)  # MONTHLY, YEARLY
    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    trial_ends_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    last_payment_at = Column(DateTime, nullable=True)
    external_subscription_id = Column(String(255), nullable=True)  # Gateway payment / subscription id
    external_customer_id = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    plan = relationship("SubscriptionPlan")


class SubscriptionHistory(Base):
    __tablename__ = "subscription_history"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    from_plan_id = Column(Integer, ForeignKey("subscription_plans.id"), nullable=True)
    to_plan_id = Column(Integer, ForeignKey("subscription_plans.id"), nullable=False)
    change_type = Column(String(20), nullable=False)  # create, upgrade, downgrade, cancel
    reason = Column(Text, nullable=True)
    changed_by = Column(String(255), nullable=True)  # user id or "system:<source>"
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class UsageTracking(Base):
    __tablename__ = "usage_tracking"
    __table_args__ = (
        UniqueConstraint("company_id", "feature_code", "period_start", name="uq_usage_period"),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    feature_code = Column(String(50), nullable=False)
    period_start = Column(Date, nullable=False)  # First day of the month
    usage_count = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
