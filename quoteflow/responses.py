"""Response envelope helpers: {success, data, error}"""

from typing import Any, Optional

from fastapi.responses import JSONResponse

# HTTP status -> machine-readable error code
STATUS_ERROR_CODES = {
    400: "INVALID_INPUT",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
    422: "VALIDATION_FAILED",
    429: "RATE_LIMIT_EXCEEDED",
    500: "INTERNAL_ERROR",
    502: "BAD_GATEWAY",
    503: "SERVICE_UNAVAILABLE",
}


def ok(data: Any = None, message: Optional[str] = None, **extra) -> dict:
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    body.update(extra)
    return body


def error_response(
    status_code: int,
    message: str,
    code: Optional[str] = None,
    details: Any = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    content = {
        "success": False,
        "error": message,
        "code": code or STATUS_ERROR_CODES.get(status_code, "ERROR"),
    }
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers=headers)
