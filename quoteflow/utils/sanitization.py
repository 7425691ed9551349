from typing import Any, Optional

import bleach


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """
    Strip HTML tags from a string to prevent stored XSS.
    Returns None if input is None.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        return value
    return bleach.clean(value, tags=[], attributes={}, strip=True)


def sanitize_dict(data: dict[str, Any], fields: Optional[list[str]] = None) -> dict[str, Any]:
    """
    Sanitize specific fields in a dictionary.
    If fields is None, sanitizes all string values.
    """
    if not data:
        return data

    sanitized = {}
    for key, value in data.items():
        if fields is None or key in fields:
            if isinstance(value, str):
                sanitized[key] = sanitize_string(value)
            elif isinstance(value, dict):
                sanitized[key] = sanitize_dict(value, fields)
            elif isinstance(value, list):
                sanitized[key] = [
                    (
                        sanitize_dict(item, fields)
                        if isinstance(item, dict)
                        else sanitize_string(item) if isinstance(item, str) else item
                    )
                    for item in value
                ]
            else:
                sanitized[key] = value
        else:
            sanitized[key] = value

    return sanitized

