"""
CSRF Protection Middleware for FastAPI

Implements the double-submit cookie pattern with signed tokens.
- Tokens are `random.signature` strings signed with CSRF_SECRET (itsdangerous)
- State-changing methods (POST, PUT, PATCH, DELETE) must echo the cookie
  value in the X-CSRF-Token header
- Webhooks, cron jobs and bearer-token API clients are exempt
"""
import logging
import secrets
from typing import Callable, Optional

from fastapi import Request
from fastapi.responses import JSONResponse, Response
from itsdangerous import BadSignature, Signer
from starlette.middleware.base import BaseHTTPMiddleware

from .config import CSRF_SECRET, IS_PRODUCTION

logger = logging.getLogger(__name__)

CSRF_COOKIE_NAME = "csrf_token"
CSRF_HEADER_NAME = "X-CSRF-Token"
CSRF_COOKIE_MAX_AGE = 86400

PROTECTED_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

EXEMPT_PATHS: list[str] = [
    "/api/webhooks/",
    "/api/cron/",
    "/api/auth/callback",
    "/health",
    "/csrf-token",
]

_signer = Signer(CSRF_SECRET, salt="csrf-token")


def generate_csrf_token() -> str:
    """Generate a signed CSRF token"""
    return _signer.sign(secrets.token_hex(32)).decode()


def verify_csrf_token(token: Optional[str]) -> bool:
    """Check that a token carries a valid signature"""
    if not token:
        return False
    try:
        _signer.unsign(token)
        return True
    except BadSignature:
        return False


def is_path_exempt(path: str) -> bool:
    return any(path.startswith(exempt) for exempt in EXEMPT_PATHS)


def set_csrf_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=CSRF_COOKIE_NAME,
        value=token,
        httponly=False,  # The frontend reads it to echo in the header
        secure=IS_PRODUCTION,
        samesite="strict",
        max_age=CSRF_COOKIE_MAX_AGE,
        path="/",
    )


def _csrf_error(code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=403,
        content={"success": False, "error": message, "code": code},
    )


class CSRFMiddleware(BaseHTTPMiddleware):
    """
    CSRF Protection Middleware using double-submit cookie pattern.

    1. For state-changing requests, the X-CSRF-Token header must match the
       csrf_token cookie and carry a valid signature
    2. Requests authenticated with a Bearer token are not cookie-driven and skip the check
    3. A cookie is issued on any response that lacks one
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        csrf_cookie = request.cookies.get(CSRF_COOKIE_NAME)
        auth_header = request.headers.get("Authorization", "")

        needs_validation = (
            request.method in PROTECTED_METHODS
            and not is_path_exempt(request.url.path)
            and not auth_header.lower().startswith("bearer ")
        )

        if needs_validation:
            csrf_header = request.headers.get(CSRF_HEADER_NAME)

            if not csrf_cookie or not csrf_header:
                logger.warning(f"🚫 CSRF: Missing token for {request.method} {request.url.path}")
                return _csrf_error(
                    "CSRF_TOKEN_MISSING", "CSRF token missing. Please refresh the page and try again."
                )

            if not secrets.compare_digest(csrf_cookie, csrf_header) or not verify_csrf_token(
                csrf_header
            ):
                logger.warning(f"🚫 CSRF: Token invalid for {request.method} {request.url.path}")
                return _csrf_error(
                    "CSRF_TOKEN_INVALID", "CSRF token invalid. Please refresh the page and try again."
                )

            logger.debug(f"✅ CSRF: Valid token for {request.method} {request.url.path}")

        response = await call_next(request)

        if not csrf_cookie:
            set_csrf_cookie(response, generate_csrf_token())
            logger.debug("🔑 CSRF: Set new token cookie")

        return response
