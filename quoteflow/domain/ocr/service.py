"""
Business card OCR through an OpenRouter-compatible vision model

Models are tried in order until one returns parseable JSON.
"""

import json
import logging
import re
from typing import Optional

import httpx

from ... import config
from .schemas import BusinessCardData

logger = logging.getLogger(__name__)

OCR_MODELS = ("qwen/qwen-vl-plus", "z-ai/glm-4.6v")
OCR_TIMEOUT = 60.0

BUSINESS_CARD_PROMPT = """請從這張名片圖片中提取以下資訊，以 JSON 格式回傳：
{
  "name": { "zh": "中文姓名", "en": "English Name" },
  "company": "公司名稱",
  "title": "職稱",
  "email": "電子郵件",
  "phone": "電話號碼",
  "fax": "傳真號碼",
  "address": { "zh": "中文地址", "en": "English Address" }
}

注意事項：
1. 只回傳純 JSON，不要任何其他說明或 markdown 格式
2. 如果某個欄位無法識別，設為 null
3. 如果姓名只有中文或只有英文，另一個設為空字串
4. 電話號碼包含國碼和區碼（如果有的話）"""

BASE64_SIGNATURES = (
    ("/9j/", "image/jpeg"),
    ("iVBORw0KGgo", "image/png"),
    ("R0lGODlh", "image/gif"),
    ("R0lGODdh", "image/gif"),
    ("UklGR", "image/webp"),
)

JSON_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


class OCRError(Exception):
    """Raised when no model could read the card"""


def detect_image_mime_type(image_base64: str) -> str:
    for prefix, mime_type in BASE64_SIGNATURES:
        if image_base64.startswith(prefix):
            return mime_type
    return "image/jpeg"


def _clean(value) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def _localized(value) -> Optional[dict]:
    if not isinstance(value, dict):
        return None
    return {"zh": _clean(value.get("zh")) or "", "en": _clean(value.get("en")) or ""}


def normalize_card(data: dict) -> BusinessCardData:
    email = _clean(data.get("email"))
    return BusinessCardData(
        name=_localized(data.get("name")),
        company=_clean(data.get("company")),
        title=_clean(data.get("title")),
        email=email.lower() if email else None,
        phone=_clean(data.get("phone")),
        fax=_clean(data.get("fax")),
        address=_localized(data.get("address")),
    )


def parse_card_json(content: str) -> BusinessCardData:
    text = content.strip()
    match = JSON_FENCE_RE.search(text)
    if match:
        text = match.group(1).strip()

    try:
        parsed = json.loads(text)
    except ValueError as e:
        logger.error(f"❌ OCR returned non-JSON content: {content[:200]}")
        raise OCRError("無法解析 OCR 結果為 JSON 格式") from e
    if not isinstance(parsed, dict):
        raise OCRError("無法解析 OCR 結果為 JSON 格式")
    return normalize_card(parsed)


async def call_model(model: str, image_base64: str, api_key: Optional[str] = None) -> BusinessCardData:
    api_key = api_key or config.OPENROUTER_API_KEY
    if not api_key:
        raise OCRError("缺少 OPENROUTER_API_KEY 環境變數")

    payload = {
        "model": model,
        "messages": [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": BUSINESS_CARD_PROMPT},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{detect_image_mime_type(image_base64)};base64,{image_base64}"},
                    },
                ],
            }
        ],
        "max_tokens": 1000,
        "temperature": 0.1,
    }
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
        "HTTP-Referer": config.SITE_URL,
        "X-Title": "Quotation System - Business Card OCR",
    }

    try:
        async with httpx.AsyncClient(timeout=OCR_TIMEOUT) as client:
            response = await client.post(f"{config.OPENROUTER_BASE_URL}/chat/completions", json=payload, headers=headers)
    except httpx.HTTPError as e:
        raise OCRError(f"網路請求失敗: {type(e).__name__}") from e

    if response.status_code >= 400:
        raise OCRError(f"API 請求失敗 ({response.status_code}): {response.text[:200]}")

    try:
        data = response.json()
    except ValueError as e:
        raise OCRError("API 回應不是有效的 JSON") from e

    if data.get("error"):
        raise OCRError(data["error"].get("message") or "未知 API 錯誤")

    choices = data.get("choices") or []
    content = choices[0].get("message", {}).get("content") if choices else None
    if not content:
        raise OCRError("API 回應中沒有內容")
    return parse_card_json(content)


async def scan_business_card(image_base64: str) -> BusinessCardData:
    errors = []
    for model in OCR_MODELS:
        try:
            result = await call_model(model, image_base64)
        except OCRError as e:
            logger.error(f"❌ OCR model {model} failed: {e}")
            errors.append(f"{model}: {e}")
            continue
        logger.info(f"✅ Business card read with {model}")
        return result

    raise OCRError(f"所有 OCR 模型都失敗了: {'; '.join(errors)}")
