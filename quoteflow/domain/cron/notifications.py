"""Slack-style webhook notifications for scheduled jobs"""

import logging
from datetime import datetime

import httpx

from ... import config

logger = logging.getLogger(__name__)

NOTIFY_TIMEOUT = 10.0


def error_payload(title: str, message: str) -> dict:
    return {
        "text": f"⚠️ {title}",
        "blocks": [
            {"type": "section", "text": {"type": "mrkdwn", "text": f"*{title}*\n```{message}```"}},
            {
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": f"Time: {datetime.utcnow().isoformat()}Z"}],
            },
        ],
    }


async def post_webhook(url: str, payload: dict) -> bool:
    try:
        async with httpx.AsyncClient(timeout=NOTIFY_TIMEOUT) as client:
            response = await client.post(url, json=payload)
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error(f"❌ Failed to send notification: {type(e).__name__}")
        return False
    return True


async def send_error_notification(title: str, message: str) -> bool:
    url = config.ERROR_WEBHOOK_URL or config.SLACK_WEBHOOK_URL
    if not url:
        logger.error("❌ No webhook URL configured for error notifications")
        return False
    return await post_webhook(url, error_payload(title, message))


async def send_success_notification(text: str) -> bool:
    """Success notices go out from production only"""
    if not config.IS_PRODUCTION or not config.SUCCESS_WEBHOOK_URL:
        return False
    return await post_webhook(config.SUCCESS_WEBHOOK_URL, {"text": f"✅ {text}"})
