"""
PII redaction for logs and error reports

Patterns cover Taiwan-specific identifiers (mobile and landline phones,
national ID numbers) alongside emails, card numbers, JWTs and IPv4 addresses.
"""

import logging
import re
from typing import Any

# Order matters: tokens contain dots and digits that other patterns would split
PII_PATTERNS: list[tuple[str, re.Pattern, str]] = [
    (
        "token",
        re.compile(r"\beyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+"),
        "[TOKEN_REDACTED]",
    ),
    (
        "email",
        re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
        "[EMAIL_REDACTED]",
    ),
    (
        "card",
        re.compile(r"(?<!\d)\d{4}[ -]?\d{4}[ -]?\d{4}[ -]?\d{4}(?!\d)"),
        "[CARD_REDACTED]",
    ),
    (
        "id",
        re.compile(r"\b[A-Z][12]\d{8}\b"),
        "[ID_REDACTED]",
    ),
    (
        "phone",
        re.compile(
            r"(?<!\d)(?:(?:\+886[- ]?|0)9\d{2}[- ]?\d{3}[- ]?\d{3}"
            r"|(?:\+886[- ]?|0)[2-8]\d?[- ]?\d{3,4}[- ]?\d{4})(?!\d)"
        ),
        "[PHONE_REDACTED]",
    ),
    (
        "ip",
        re.compile(r"\b(?:(?:25[0-5]|2[0-4]\d|1?\d?\d)\.){3}(?:25[0-5]|2[0-4]\d|1?\d?\d)\b"),
        "[IP_REDACTED]",
    ),
]

SENSITIVE_KEYS = {
    "password",
    "secret",
    "token",
    "access_token",
    "refresh_token",
    "api_key",
    "apikey",
    "authorization",
    "cookie",
    "credit_card",
    "card_number",
}


def _mask_email(match: re.Match) -> str:
    local, _, domain = match.group(0).partition("@")
    return f"{local[:2]}***@{domain}"


def _mask_phone(match: re.Match) -> str:
    digits = re.sub(r"\D", "", match.group(0))
    return f"{digits[:4]}-***-{digits[-3:]}"


def _mask_card(match: re.Match) -> str:
    digits = re.sub(r"\D", "", match.group(0))
    return f"****-****-****-{digits[-4:]}"


def _mask_id(match: re.Match) -> str:
    value = match.group(0)
    return f"{value[0]}{'*' * 8}{value[-1]}"


def _mask_ip(match: re.Match) -> str:
    octets = match.group(0).split(".")
    return f"{octets[0]}.{octets[1]}.*.*"


PRESERVING_MASKS = {
    "email": _mask_email,
    "phone": _mask_phone,
    "card": _mask_card,
    "id": _mask_id,
    "ip": _mask_ip,
}


def redact_pii(text: str, preserve_structure: bool = False) -> str:
    """
    Replace PII in text with placeholders.

    With preserve_structure, values are partially masked instead
    (user@example.com -> us***@example.com). Tokens are always fully replaced.
    """
    if not text:
        return text

    result = text
    for pii_type, pattern, placeholder in PII_PATTERNS:
        if preserve_structure and pii_type in PRESERVING_MASKS:
            result = pattern.sub(PRESERVING_MASKS[pii_type], result)
        else:
            result = pattern.sub(placeholder, result)
    return result


def redact_pii_from_object(value: Any, preserve_structure: bool = False) -> Any:
    """Recursively redact strings inside dicts and lists; other values are returned unchanged"""
    if isinstance(value, str):
        return redact_pii(value, preserve_structure)
    if isinstance(value, dict):
        redacted = {}
        for key, item in value.items():
            if isinstance(key, str) and key.lower() in SENSITIVE_KEYS and item is not None:
                redacted[key] = "[REDACTED]"
            else:
                redacted[key] = redact_pii_from_object(item, preserve_structure)
        return redacted
    if isinstance(value, (list, tuple)):
        return type(value)(redact_pii_from_object(item, preserve_structure) for item in value)
    return value


def contains_pii(text: str) -> bool:
    if not text:
        return False
    return any(pattern.search(text) for _, pattern, _ in PII_PATTERNS)


def detect_pii_types(text: str) -> list[str]:
    """Names of the PII kinds present in text, in pattern order"""
    if not text:
        return []

    found = []
    remaining = text
    for pii_type, pattern, _ in PII_PATTERNS:
        if pattern.search(remaining):
            found.append(pii_type)
            # Remove matches so overlapping patterns are not double counted
            remaining = pattern.sub(" ", remaining)
    return found


class PIIRedactingFilter(logging.Filter):
    """Logging filter that redacts PII from the rendered message"""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            return True
        record.msg = redact_pii(message)
        record.args = None
        return True


def install_pii_filter(logger: logging.Logger = None) -> None:
    """Attach the redacting filter to every handler of the given (default root) logger"""
    target = logger or logging.getLogger()
    for handler in target.handlers:
        if not any(isinstance(f, PIIRedactingFilter) for f in handler.filters):
            handler.addFilter(PIIRedactingFilter())
