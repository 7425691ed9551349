"""Subscription plan catalogue and feature matrix"""

import logging

from sqlalchemy.orm import Session

from ...models_billing import PlanFeature, SubscriptionFeature, SubscriptionPlan

logger = logging.getLogger(__name__)

TIER_ORDER = {"FREE": 0, "STARTER": 1, "STANDARD": 2, "PROFESSIONAL": 3}
BILLING_CYCLES = ("MONTHLY", "YEARLY")
ACTIVE_STATUSES = ("ACTIVE", "TRIAL")

PLAN_PRICES = {
    "FREE": {"MONTHLY": 0, "YEARLY": 0},
    "STARTER": {"MONTHLY": 299, "YEARLY": 2990},
    "STANDARD": {"MONTHLY": 599, "YEARLY": 5990},
    "PROFESSIONAL": {"MONTHLY": 1299, "YEARLY": 12990},
}

PLAN_NAMES = {
    "FREE": ("免費版", "Free"),
    "STARTER": ("入門版", "Starter"),
    "STANDARD": ("標準版", "Standard"),
    "PROFESSIONAL": ("專業版", "Professional"),
}

# tier -> (max_products, max_customers, max_quotations_per_month, max_companies)
PLAN_LIMITS = {
    "FREE": (50, 20, 10, 1),
    "STARTER": (200, 100, 50, 1),
    "STANDARD": (-1, -1, -1, 3),
    "PROFESSIONAL": (-1, -1, -1, 10),
}

# code -> (name, category)
FEATURES = {
    "quotations": ("報價單", "QUOTA"),
    "business_card_ocr": ("名片辨識", "FEATURE"),
    "vat_filing": ("營業稅計算", "FEATURE"),
    "media_401": ("401 媒體檔匯出", "FEATURE"),
    "income_tax": ("營所稅申報", "FEATURE"),
    "api_access": ("API 存取", "INTEGRATION"),
}

# tier -> {feature code: quota limit}. None is unlimited.
PLAN_FEATURE_MATRIX = {
    "FREE": {"quotations": 10, "business_card_ocr": 5},
    "STARTER": {"quotations": 50, "business_card_ocr": 50, "vat_filing": None},
    "STANDARD": {
        "quotations": None,
        "business_card_ocr": None,
        "vat_filing": None,
        "media_401": None,
        "income_tax": None,
    },
    "PROFESSIONAL": {
        "quotations": None,
        "business_card_ocr": None,
        "vat_filing": None,
        "media_401": None,
        "income_tax": None,
        "api_access": None,
    },
}


def is_upgrade(current_tier: str, new_tier: str) -> bool:
    return TIER_ORDER.get(new_tier, -1) > TIER_ORDER.get(current_tier, -1)


def is_downgrade(current_tier: str, new_tier: str) -> bool:
    return TIER_ORDER.get(new_tier, 99) < TIER_ORDER.get(current_tier, 99)


def get_plan_price(tier: str, billing_cycle: str) -> int:
    return PLAN_PRICES.get(tier, {}).get(billing_cycle, 0)


def seed_subscription_plans(db: Session) -> None:
    """Insert the default plans and feature matrix when missing"""
    features = {f.code: f for f in db.query(SubscriptionFeature).all()}
    for code, (name, category) in FEATURES.items():
        if code not in features:
            features[code] = SubscriptionFeature(code=code, name=name, category=category)
            db.add(features[code])

    plans = {p.tier: p for p in db.query(SubscriptionPlan).all()}
    for sort_order, tier in enumerate(TIER_ORDER):
        if tier in plans:
            continue
        name, name_en = PLAN_NAMES[tier]
        max_products, max_customers, max_quotations, max_companies = PLAN_LIMITS[tier]
        plans[tier] = SubscriptionPlan(
            tier=tier,
            name=name,
            name_en=name_en,
            monthly_price=PLAN_PRICES[tier]["MONTHLY"],
            yearly_price=PLAN_PRICES[tier]["YEARLY"],
            max_products=max_products,
            max_customers=max_customers,
            max_quotations_per_month=max_quotations,
            max_companies=max_companies,
            is_popular=tier == "STANDARD",
            sort_order=sort_order,
        )
        db.add(plans[tier])
    db.flush()

    existing = {(pf.plan_id, pf.feature_id) for pf in db.query(PlanFeature).all()}
    for tier, granted in PLAN_FEATURE_MATRIX.items():
        for code, quota in granted.items():
            key = (plans[tier].id, features[code].id)
            if key not in existing:
                db.add(
                    PlanFeature(
                        plan_id=plans[tier].id,
                        feature_id=features[code].id,
                        is_enabled=True,
                        quota_limit=quota,
                    )
                )
    db.commit()
    logger.info("✅ Subscription plans seeded")
