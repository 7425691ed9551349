"""Affiliate payment gateway client (PAYUNi through the affiliate payment service)"""

import logging
import re
import time
from datetime import date
from typing import Optional

import httpx
from dateutil.relativedelta import relativedelta

from ...config import (
    AFFILIATE_PAYMENT_API_KEY,
    AFFILIATE_PAYMENT_API_URL,
    AFFILIATE_PAYMENT_ENV,
    AFFILIATE_PAYMENT_SITE_CODE,
)
from .plans import PLAN_NAMES, PLAN_PRICES

logger = logging.getLogger(__name__)

DEFAULT_URLS = {
    "sandbox": "https://sandbox.affiliate.1wayseo.com",
    "production": "https://affiliate.1wayseo.com",
}
DEFAULT_TIMEOUT = 30.0

ORDER_ID_RE = re.compile(r"^[a-zA-Z0-9-]+$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class PaymentGatewayError(Exception):
    def __init__(self, message: str, code: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.status_code = status_code


def is_valid_order_id(order_id: Optional[str]) -> bool:
    return bool(order_id) and len(order_id) <= 50 and bool(ORDER_ID_RE.match(order_id))


def build_order_id(prefix: str, company_key: str, now_ms: Optional[int] = None) -> str:
    """SUB-{first 8 chars of company}-{epoch ms}; underscores are not allowed by the gateway"""
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{prefix}-{company_key.replace('_', '-')[:8]}-{timestamp}"


def first_of_next_month(today: Optional[date] = None) -> date:
    today = today or date.today()
    return today.replace(day=1) + relativedelta(months=1)


class PaymentGatewayClient:
    """Thin httpx client for the payment gateway REST API"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        site_code: Optional[str] = None,
        environment: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.api_key = (api_key or AFFILIATE_PAYMENT_API_KEY or "").strip()
        self.site_code = (site_code or AFFILIATE_PAYMENT_SITE_CODE or "").strip().upper()
        self.environment = (environment or AFFILIATE_PAYMENT_ENV or "sandbox").strip().lower()
        self.base_url = (
            base_url or AFFILIATE_PAYMENT_API_URL or DEFAULT_URLS.get(self.environment, DEFAULT_URLS["sandbox"])
        ).rstrip("/")
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.api_key and self.site_code)

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key,
            "X-Site-Code": self.site_code,
        }

    def validate_payment_params(self, params: dict) -> None:
        if not is_valid_order_id(params.get("orderId")):
            raise PaymentGatewayError("orderId 格式無效（只允許英文、數字、連字號，最長 50 字元）", "VALIDATION_ERROR")
        amount = params.get("amount")
        if not isinstance(amount, int) or amount <= 0:
            raise PaymentGatewayError("amount 必須是正整數", "VALIDATION_ERROR")
        if not (params.get("description") or "").strip():
            raise PaymentGatewayError("description 是必填參數", "VALIDATION_ERROR")
        if not EMAIL_RE.match(params.get("email") or ""):
            raise PaymentGatewayError("email 格式無效", "VALIDATION_ERROR")

    async def create_payment(self, params: dict) -> dict:
        if not self.is_configured():
            raise PaymentGatewayError("Payment gateway is not configured", "CONFIG_ERROR")
        self.validate_payment_params(params)

        url = f"{self.base_url}/api/payment/create"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    url, json={**params, "siteCode": self.site_code}, headers=self._headers()
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ Payment gateway request failed: {e}")
            raise PaymentGatewayError("網路請求失敗", "NETWORK_ERROR") from e

        if response.status_code >= 400:
            try:
                message = response.json().get("error") or "建立付款失敗"
            except ValueError:
                message = "建立付款失敗"
            logger.error(f"❌ Payment creation failed ({response.status_code}): {message}")
            raise PaymentGatewayError(message, "CREATE_PAYMENT_FAILED", response.status_code)

        return response.json()

    async def get_payment_status(self, payment_id: str) -> dict:
        if not (payment_id or "").strip():
            raise PaymentGatewayError("paymentId 是必填參數", "MISSING_PAYMENT_ID")

        url = f"{self.base_url}/api/payment/{payment_id}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, headers=self._headers())
        except httpx.HTTPError as e:
            raise PaymentGatewayError("網路請求失敗", "NETWORK_ERROR") from e

        if response.status_code >= 400:
            raise PaymentGatewayError("查詢付款狀態失敗", "GET_PAYMENT_STATUS_FAILED", response.status_code)
        return response.json()


def build_subscription_payment(
    company_key: str,
    tier: str,
    billing_cycle: str,
    email: str,
    callback_url: Optional[str] = None,
    now_ms: Optional[int] = None,
) -> dict:
    """One-off subscription payment parameters"""
    price = PLAN_PRICES.get(tier, {}).get(billing_cycle)
    if not price:
        raise PaymentGatewayError(f"無效的方案組合: {tier} / {billing_cycle}", "VALIDATION_ERROR")

    plan_name = PLAN_NAMES[tier][0]
    cycle_label = "月繳" if billing_cycle == "MONTHLY" else "年繳"
    params = {
        "orderId": build_order_id("SUB", company_key, now_ms),
        "amount": price,
        "description": f"報價系統 {plan_name}（{cycle_label}）",
        "email": email,
        "metadata": {
            "company_id": company_key,
            "tier": tier,
            "billing_cycle": billing_cycle,
            "type": "subscription",
        },
    }
    if callback_url:
        params["callbackUrl"] = callback_url
    return params


def build_recurring_subscription_payment(
    company_key: str,
    tier: str,
    billing_cycle: str,
    email: str,
    callback_url: Optional[str] = None,
    today: Optional[date] = None,
    now_ms: Optional[int] = None,
) -> dict:
    """Monthly recurring payment: 12 periods, first charge on the 1st of next month"""
    if billing_cycle != "MONTHLY":
        raise PaymentGatewayError("定期定額目前只支援月繳方案", "VALIDATION_ERROR")

    price = PLAN_PRICES.get(tier, {}).get("MONTHLY")
    if not price:
        raise PaymentGatewayError(f"無效的方案: {tier}", "VALIDATION_ERROR")

    params = {
        "orderId": build_order_id("RSUB", company_key, now_ms),
        "amount": price,
        "description": f"報價系統 {PLAN_NAMES[tier][0]}（每月定期扣款）",
        "email": email,
        "metadata": {
            "company_id": company_key,
            "tier": tier,
            "billing_cycle": billing_cycle,
            "type": "recurring_subscription",
        },
        "periodParams": {
            "periodType": "M",
            "periodPoint": "01",
            "periodAmt": price,
            "periodTimes": 12,
            "periodFirstdate": first_of_next_month(today).isoformat(),
        },
    }
    if callback_url:
        params["callbackUrl"] = callback_url
    return params


payment_gateway = PaymentGatewayClient()
