"""Affiliate tracking: referral registrations and commissions"""

import logging
import re
from typing import Optional
from urllib.parse import parse_qs, urlparse

import httpx

from ...config import AFFILIATE_API_URL, AFFILIATE_PRODUCT_CODE, AFFILIATE_WEBHOOK_SECRET

logger = logging.getLogger(__name__)

TRACKING_TIMEOUT = 10.0
REFERRAL_CODE_RE = re.compile(r"^[A-Z0-9]{8}$")
REFERRAL_COOKIE = "ref_code"
DUPLICATE_ORDER = "Duplicate order (already processed)"


def is_affiliate_configured() -> bool:
    return bool(AFFILIATE_API_URL and AFFILIATE_PRODUCT_CODE and AFFILIATE_WEBHOOK_SECRET)


def is_valid_referral_code(code: Optional[str]) -> bool:
    return bool(code) and bool(REFERRAL_CODE_RE.match(code.upper()))


def parse_referral_code_from_url(url: str) -> Optional[str]:
    try:
        query = parse_qs(urlparse(url).query)
    except ValueError:
        return None
    values = query.get("ref") or query.get("referral") or []
    code = values[0] if values else None
    if is_valid_referral_code(code):
        return code.upper()
    return None


def get_referral_code_from_cookie(cookie_header: Optional[str]) -> Optional[str]:
    for part in (cookie_header or "").split(";"):
        part = part.strip()
        if part.startswith(f"{REFERRAL_COOKIE}="):
            code = part[len(REFERRAL_COOKIE) + 1:]
            if is_valid_referral_code(code):
                return code.upper()
    return None


async def _post(path: str, body: dict) -> httpx.Response:
    async with httpx.AsyncClient(timeout=TRACKING_TIMEOUT) as client:
        return await client.post(
            f"{AFFILIATE_API_URL.rstrip('/')}{path}",
            json=body,
            headers={"Content-Type": "application/json", "X-Webhook-Secret": AFFILIATE_WEBHOOK_SECRET},
        )


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json().get("error") or "Unknown error"
    except ValueError:
        return "Unknown error"


async def track_registration(
    referral_code: str,
    referred_user_id: str,
    referred_user_email: Optional[str] = None,
    source_url: Optional[str] = None,
) -> dict:
    if not is_affiliate_configured():
        return {"success": False, "error": "Affiliate tracking not configured"}

    body = {
        "referralCode": referral_code,
        "productCode": AFFILIATE_PRODUCT_CODE,
        "referredUserId": referred_user_id,
        "referredUserEmail": referred_user_email,
        "sourceUrl": source_url,
    }
    try:
        response = await _post("/api/tracking/registration", body)
    except httpx.HTTPError as e:
        logger.error(f"❌ Affiliate registration tracking network error: {e}")
        return {"success": False, "error": str(e) or "Network error"}

    if response.status_code >= 400:
        error = _error_message(response)
        logger.error(f"❌ Affiliate registration tracking failed: {error}")
        return {"success": False, "error": error}

    return {"success": True, "referral_id": response.json().get("referralId")}


async def create_commission(
    external_order_id: str,
    order_amount: float,
    order_type: str,
    referred_user_id: str,
    currency: str = "TWD",
) -> dict:
    if not is_affiliate_configured():
        return {"success": False, "error": "Affiliate tracking not configured"}

    body = {
        "productCode": AFFILIATE_PRODUCT_CODE,
        "externalOrderId": external_order_id,
        "orderAmount": order_amount,
        "orderType": order_type,
        "referredUserId": referred_user_id,
        "currency": currency,
    }
    try:
        response = await _post("/api/commissions/create", body)
    except httpx.HTTPError as e:
        logger.error(f"❌ Affiliate commission network error: {e}")
        return {"success": False, "error": str(e) or "Network error"}

    if response.status_code == 409:
        logger.info(f"ℹ️ Duplicate commission order, skipping: {external_order_id}")
        return {"success": True, "error": DUPLICATE_ORDER}

    if response.status_code >= 400:
        error = _error_message(response)
        logger.error(f"❌ Affiliate commission creation failed: {error}")
        return {"success": False, "error": error}

    data = response.json()
    return {
        "success": True,
        "commission_id": data.get("commissionId"),
        "commission_amount": data.get("commissionAmount"),
        "effective_rate": data.get("effectiveRate"),
        "unlock_at": data.get("unlockAt"),
    }
