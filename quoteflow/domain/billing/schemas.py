"""Billing domain schemas - Pydantic models for validation"""

from typing import Literal, Optional

from pydantic import BaseModel, Field

Tier = Literal["FREE", "STARTER", "STANDARD", "PROFESSIONAL"]
BillingCycle = Literal["MONTHLY", "YEARLY"]
EffectiveAt = Literal["immediately", "end_of_period"]


class CheckoutRequest(BaseModel):
    tier: Tier
    billing_cycle: BillingCycle = "MONTHLY"
    recurring: bool = False
    referral_code: Optional[str] = Field(None, max_length=16)


class DowngradeRequest(BaseModel):
    tier: Tier
    effective_at: EffectiveAt = "end_of_period"
    reason: Optional[str] = None


class CancelRequest(BaseModel):
    effective_at: EffectiveAt = "end_of_period"
    reason: Optional[str] = None


class PaymentWebhookEvent(BaseModel):
    """Event posted by the payment gateway"""

    paymentId: Optional[str] = None
    orderId: Optional[str] = None
    status: str
    amount: Optional[float] = None
    paidAt: Optional[str] = None
    errorMessage: Optional[str] = None
    metadata: Optional[dict[str, str]] = None
