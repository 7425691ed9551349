"""Retry helper with exponential backoff"""

import logging
import time
from typing import Callable, Optional, TypeVar

from sqlalchemy.exc import IntegrityError

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNIQUE_VIOLATION_CODE = "23505"


def is_unique_violation(error: BaseException) -> bool:
    """True for unique-constraint conflicts (Postgres 23505 or SQLite UNIQUE failures)"""
    code = getattr(error, "code", None) or getattr(error, "pgcode", None)
    if code == UNIQUE_VIOLATION_CODE:
        return True

    if isinstance(error, IntegrityError):
        orig = getattr(error, "orig", None)
        if getattr(orig, "pgcode", None) == UNIQUE_VIOLATION_CODE:
            return True
        message = str(error).lower()
        return "unique constraint" in message or "duplicate key" in message
    return False


def with_retry(
    operation: Callable[[], T],
    max_retries: int = 3,
    base_delay_ms: int = 100,
    should_retry: Optional[Callable[[BaseException], bool]] = None,
) -> T:
    """
    Run operation, retrying on errors accepted by should_retry.

    The delay before retry n (0-based) is base_delay_ms * 2**n. The operation
    runs at most 1 + max_retries times and the last error is re-raised.
    Errors rejected by should_retry are raised immediately.
    """
    check = should_retry or is_unique_violation
    attempt = 0

    while True:
        try:
            return operation()
        except Exception as e:
            if attempt >= max_retries or not check(e):
                raise

            delay_ms = base_delay_ms * (2**attempt)
            logger.warning(
                f"🔁 Retry {attempt + 1}/{max_retries} after {delay_ms}ms: {type(e).__name__}"
            )
            time.sleep(delay_ms / 1000)
            attempt += 1
