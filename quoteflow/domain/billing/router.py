"""Billing router - subscription plans, checkout and the payment webhook"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ...auth import get_current_company
from ...config import AFFILIATE_PAYMENT_WEBHOOK_SECRET
from ...database import get_db
from ...models import Company, User
from ...permissions import require_permission
from ...responses import ok
from ...webhook_security import WebhookSignatureError, verify_affiliate_webhook
from .affiliate_tracking import DUPLICATE_ORDER, create_commission
from .schemas import CancelRequest, CheckoutRequest, DowngradeRequest, PaymentWebhookEvent
from .subscription_service import SubscriptionService, serialize_subscription

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/subscriptions", tags=["Subscriptions"])
webhooks_router = APIRouter(prefix="/api/webhooks", tags=["Webhooks"])


def get_subscription_service(db: Session = Depends(get_db)) -> SubscriptionService:
    """Dependency injection for SubscriptionService"""
    return SubscriptionService(db)


# ============================================================================
# PLANS
# ============================================================================


@router.get("/plans")
async def list_plans(service: SubscriptionService = Depends(get_subscription_service)):
    """Public plan catalogue"""
    return ok(service.get_plans())


@router.get("/plans/{tier}")
async def get_plan(tier: str, service: SubscriptionService = Depends(get_subscription_service)):
    return ok(service.get_plan_details(tier.upper()))


# ============================================================================
# SUBSCRIPTION MANAGEMENT
# ============================================================================


@router.get("/current")
async def get_current_subscription(
    user: User = Depends(require_permission("subscriptions:read")),
    company: Company = Depends(get_current_company),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Current plan, status and feature list of the active company"""
    return ok(service.get_subscription_summary(company.id))


@router.get("/usage/{feature_code}")
async def get_usage(
    feature_code: str,
    user: User = Depends(require_permission("subscriptions:read")),
    company: Company = Depends(get_current_company),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return ok(service.check_usage_limit(company.id, feature_code))


@router.get("/history")
async def get_history(
    user: User = Depends(require_permission("subscriptions:read")),
    company: Company = Depends(get_current_company),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return ok(service.get_history(company.id))


@router.post("/checkout")
async def create_checkout(
    body: CheckoutRequest,
    user: User = Depends(require_permission("subscriptions:write")),
    company: Company = Depends(get_current_company),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Create a gateway payment for a paid plan"""
    result = await service.create_checkout(
        company,
        user,
        body.tier,
        body.billing_cycle,
        recurring=body.recurring,
        referral_code=body.referral_code,
    )
    return ok(result)


@router.post("/downgrade")
async def downgrade(
    body: DowngradeRequest,
    user: User = Depends(require_permission("subscriptions:write")),
    company: Company = Depends(get_current_company),
    service: SubscriptionService = Depends(get_subscription_service),
):
    subscription = service.downgrade_plan(
        company.id, body.tier, body.effective_at, changed_by=str(user.id), reason=body.reason
    )
    return ok(serialize_subscription(subscription))


@router.post("/cancel")
async def cancel(
    body: CancelRequest,
    user: User = Depends(require_permission("subscriptions:write")),
    company: Company = Depends(get_current_company),
    service: SubscriptionService = Depends(get_subscription_service),
):
    subscription = service.cancel_subscription(
        company.id, body.effective_at, reason=body.reason, changed_by=str(user.id)
    )
    return ok(serialize_subscription(subscription))


# ============================================================================
# PAYMENT WEBHOOK
# ============================================================================


def _resolve_company(db: Session, company_key: str):
    company = db.query(Company).filter(Company.public_id == company_key).first()
    if company is None and company_key.isdigit():
        company = db.query(Company).filter(Company.id == int(company_key)).first()
    return company


async def handle_payment_success(event: PaymentWebhookEvent, db: Session) -> JSONResponse:
    metadata = event.metadata or {}
    if not metadata.get("company_id") or not metadata.get("tier"):
        logger.error(f"❌ Payment webhook missing metadata: {metadata}")
        return JSONResponse(status_code=400, content={"success": False, "error": "Missing required metadata"})

    company = _resolve_company(db, metadata["company_id"])
    if company is None:
        logger.error(f"❌ Payment webhook for unknown company {metadata['company_id']}")
        return JSONResponse(status_code=200, content={"success": True, "message": "Unknown company noted"})

    logger.info(
        f"💰 Payment success: order={event.orderId} company={company.id} tier={metadata['tier']}"
    )

    service = SubscriptionService(db)
    try:
        service.upgrade_plan(
            company.id,
            metadata["tier"],
            billing_cycle=metadata.get("billing_cycle"),
            changed_by="system:affiliate-payment",
            external_subscription_id=event.paymentId,
        )
    except Exception as e:
        # Still 200 so the gateway does not redeliver; the failure stays in the log
        detail = getattr(e, "detail", str(e))
        logger.error(f"❌ Subscription upgrade failed for company {company.id}: {detail}")

    if event.amount and event.amount > 0:
        owner = db.get(User, company.owner_id) if company.owner_id else None
        if owner:
            result = await create_commission(
                external_order_id=event.orderId,
                order_amount=event.amount,
                order_type=metadata.get("type") or "subscription",
                referred_user_id=owner.supabase_uid,
            )
            if result["success"] and result.get("commission_id"):
                logger.info(f"✅ Commission created: {result['commission_id']}")
            elif result.get("error") != DUPLICATE_ORDER:
                logger.warning(f"⚠️ Commission creation skipped: {result.get('error')}")

    return JSONResponse(status_code=200, content={"success": True, "message": "Payment processed successfully"})


@webhooks_router.post("/affiliate-payment")
async def affiliate_payment_webhook(request: Request, db: Session = Depends(get_db)):
    """Payment gateway notification; signed with X-Webhook-Signature"""
    try:
        payload = await verify_affiliate_webhook(request, AFFILIATE_PAYMENT_WEBHOOK_SECRET)
    except WebhookSignatureError as e:
        logger.error(f"❌ Payment webhook signature verification failed: {e}")
        return JSONResponse(status_code=401, content={"success": False, "error": str(e), "code": e.code})

    try:
        event = PaymentWebhookEvent.model_validate(payload)
    except ValidationError:
        return JSONResponse(status_code=400, content={"success": False, "error": "Invalid webhook payload"})

    logger.info(f"📨 Payment webhook: order={event.orderId} status={event.status} amount={event.amount}")

    if event.status == "SUCCESS":
        return await handle_payment_success(event, db)
    if event.status == "FAILED":
        logger.error(f"❌ Payment failed: order={event.orderId} error={event.errorMessage}")
        return {"success": True, "message": "Failure logged"}
    if event.status == "CANCELLED":
        logger.info(f"ℹ️ Payment cancelled: {event.orderId}")
        return {"success": True, "message": "Cancellation noted"}
    if event.status == "REFUNDED":
        logger.info(f"ℹ️ Payment refunded: {event.orderId}")
        return {"success": True, "message": "Refund noted"}

    logger.warning(f"⚠️ Unknown payment status: {event.status}")
    return {"success": True, "message": "Status noted"}


__all__ = ["router", "webhooks_router", "get_subscription_service"]
