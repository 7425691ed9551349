"""
Webhook Security Module

Signature verification for inbound webhooks:
- Constant-time signature comparison
- Optional timestamp validation against replay
- Raw body is read once, verified and decoded
"""

import hashlib
import hmac
import json
import logging
import time
from typing import Optional

from fastapi import Request

logger = logging.getLogger(__name__)

# Maximum age of webhook in seconds (5 minutes)
MAX_WEBHOOK_AGE_SECONDS = 300

AFFILIATE_SIGNATURE_HEADER = "X-Webhook-Signature"
AFFILIATE_TIMESTAMP_HEADER = "X-Webhook-Timestamp"


class WebhookSignatureError(Exception):
    """Raised when webhook signature verification fails"""

    def __init__(self, message: str, code: str = "INVALID_SIGNATURE"):
        super().__init__(message)
        self.code = code


def constant_time_compare(a: str, b: str) -> bool:
    """Compare two strings in constant time. Empty values never match."""
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    """Compute HMAC-SHA256 signature of payload as lowercase hex"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_timestamp(timestamp: Optional[str], max_age: int = MAX_WEBHOOK_AGE_SECONDS) -> bool:
    """
    Verify webhook timestamp is within acceptable range.

    Args:
        timestamp: Unix timestamp as string, or None when the sender does not provide one
        max_age: Maximum age in seconds

    Returns:
        True if timestamp is valid or absent, False otherwise
    """
    if not timestamp:
        return True

    try:
        age = abs(int(time.time()) - int(timestamp))
    except (ValueError, TypeError):
        logger.warning(f"🚫 Invalid webhook timestamp format: {timestamp}")
        return False

    if age > max_age:
        logger.warning(f"🚫 Webhook timestamp too old: {age}s (max: {max_age}s)")
        return False
    return True


def verify_signature(secret: str, raw_body: bytes, signature: Optional[str]) -> bool:
    """
    Check an HMAC-SHA256 hex signature over the body.

    Accepts an optional "sha256=" prefix. The sender signs the compact JSON
    serialization of its payload, so a re-serialized body is accepted as well.
    """
    if not secret or not signature:
        return False

    received = signature.strip()
    if received.startswith("sha256="):
        received = received[len("sha256="):]
    received = received.lower()

    if constant_time_compare(compute_hmac_sha256(secret, raw_body), received):
        return True

    try:
        compact = json.dumps(
            json.loads(raw_body), separators=(",", ":"), ensure_ascii=False
        ).encode("utf-8")
    except (ValueError, UnicodeDecodeError):
        return False
    return constant_time_compare(compute_hmac_sha256(secret, compact), received)


async def verify_affiliate_webhook(request: Request, secret: Optional[str]) -> dict:
    """
    Verify and parse an affiliate payment gateway webhook.

    Returns:
        The decoded event payload

    Raises:
        WebhookSignatureError: with a code describing why the webhook was rejected
    """
    raw_body = await request.body()
    signature = request.headers.get(AFFILIATE_SIGNATURE_HEADER)
    timestamp = request.headers.get(AFFILIATE_TIMESTAMP_HEADER)

    if not secret:
        raise WebhookSignatureError("Webhook secret not configured", "CONFIG_ERROR")
    if not signature:
        raise WebhookSignatureError("缺少 Webhook 簽名", "MISSING_SIGNATURE")

    try:
        payload = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError) as e:
        raise WebhookSignatureError("無效的 JSON 格式", "INVALID_JSON") from e

    if not verify_timestamp(timestamp):
        raise WebhookSignatureError("Webhook timestamp expired", "TIMESTAMP_EXPIRED")
    if not verify_signature(secret, raw_body, signature):
        raise WebhookSignatureError("Webhook 簽名驗證失敗", "INVALID_SIGNATURE")

    logger.info("✅ Affiliate webhook signature verified")
    return payload
