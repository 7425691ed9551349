"""
Hybrid in-memory + Redis rate limiting utilities

Fixed-window counters are kept in process memory and synced to Redis
periodically so several workers converge on a shared count.
"""

import logging
import time
from threading import Lock
from typing import Callable, Optional

import redis
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from . import config

logger = logging.getLogger(__name__)

# Redis connection
redis_client: Optional[redis.Redis] = None

# In-memory window cache
# Format: {key: {'count': int, 'reset_time': int, 'last_redis_sync': int}}
memory_cache: dict[str, dict] = {}
cache_lock = Lock()

MEMORY_CACHE_SYNC_INTERVAL = 10  # Sync to Redis every 10 seconds
MEMORY_CACHE_CLEANUP_INTERVAL = 60  # Clean up expired entries every 60 seconds
last_cleanup_time = 0

# Path prefix -> (limit, window_seconds). First match wins, so specific prefixes go first.
RATE_LIMIT_RULES: list[tuple[str, int, int]] = [
    ("/api/ocr/", 10, 60),
    ("/api/auth/", 10, 60),
    ("/api/exchange-rates/sync", 5, 60),
    ("/api/", 60, 60),
]
RATE_LIMIT_EXEMPT_PREFIXES = ("/api/webhooks/", "/api/cron/")


def get_redis_client() -> redis.Redis:
    """
    Get or create the Redis client from REDIS_URL.
    Raises when Redis is not configured or unreachable.
    """
    global redis_client

    if redis_client is None:
        redis_url = config.REDIS_URL
        if not redis_url:
            raise RuntimeError("REDIS_URL is not configured")

        # Mask password in URL for logging
        if "@" in redis_url:
            url_parts = redis_url.split("@")
            protocol = url_parts[0].split(":")[0]
            masked_url = f"{protocol}:****@{url_parts[1]}"
        else:
            masked_url = "****"
        logger.info(f"📡 Using Redis URL connection: {masked_url}")

        try:
            client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=10,
                retry_on_timeout=True,
                health_check_interval=30,
                max_connections=20,
            )
            client.ping()
            redis_client = client
            logger.info("✅ Redis connected successfully via URL")
        except Exception as e:
            logger.error(f"❌ Failed to connect to Redis via URL: {str(e)}")
            raise

    return redis_client


def _optional_redis() -> Optional[redis.Redis]:
    try:
        return get_redis_client()
    except Exception:
        return None


def cleanup_expired_cache():
    """Remove expired entries from memory cache"""
    global last_cleanup_time
    current_time = int(time.time())

    if current_time - last_cleanup_time < MEMORY_CACHE_CLEANUP_INTERVAL:
        return

    with cache_lock:
        expired_keys = [
            k for k, v in memory_cache.items() if current_time >= v.get("reset_time", 0)
        ]
        for k in expired_keys:
            del memory_cache[k]

        if expired_keys:
            logger.debug(f"🧹 Cleaned up {len(expired_keys)} expired rate limit entries")

    last_cleanup_time = current_time


def reset_rate_limits() -> None:
    """Drop all in-memory windows"""
    with cache_lock:
        memory_cache.clear()


def _new_window(current_time: int, window_seconds: int) -> dict:
    return {
        "count": 0,
        "reset_time": current_time + window_seconds,
        "last_redis_sync": current_time,
    }


def check_rate_limit(
    key: str, limit: int, window_seconds: int, redis_client: Optional[redis.Redis] = None
) -> tuple[bool, int, int]:
    """Check if rate limit is exceeded using the hybrid in-memory + Redis approach

    Args:
        key: Counter key for this client and route group
        limit: Maximum number of requests allowed in the window
        window_seconds: Window length in seconds
        redis_client: Optional Redis client; None keeps the window in memory only

    Returns:
        Tuple of (is_allowed, current_count, ttl_seconds)
    """
    try:
        current_time = int(time.time())
        cleanup_expired_cache()

        with cache_lock:
            if key not in memory_cache:
                entry = _new_window(current_time, window_seconds)
                if redis_client is not None:
                    try:
                        redis_count = redis_client.get(key)
                        redis_ttl = redis_client.ttl(key)
                        if redis_count and redis_ttl > 0:
                            entry = {
                                "count": int(redis_count),
                                "reset_time": current_time + redis_ttl,
                                "last_redis_sync": current_time,
                            }
                    except Exception as e:
                        logger.warning(f"⚠️ Failed to load from Redis, using memory only: {e}")
                memory_cache[key] = entry

            cache_entry = memory_cache[key]

            if current_time >= cache_entry["reset_time"]:
                cache_entry["count"] = 0
                cache_entry["reset_time"] = current_time + window_seconds
                cache_entry["last_redis_sync"] = 0

            is_allowed = cache_entry["count"] < limit
            if is_allowed:
                cache_entry["count"] += 1

            time_since_sync = current_time - cache_entry.get("last_redis_sync", 0)
            if redis_client is not None and time_since_sync >= MEMORY_CACHE_SYNC_INTERVAL:
                try:
                    ttl = max(1, cache_entry["reset_time"] - current_time)
                    redis_client.set(key, cache_entry["count"], ex=ttl)
                    cache_entry["last_redis_sync"] = current_time
                    logger.debug(f"📡 Synced {key} to Redis: {cache_entry['count']}/{limit}")
                except Exception as e:
                    logger.warning(f"⚠️ Failed to sync to Redis: {e}")

            ttl = cache_entry["reset_time"] - current_time
            return is_allowed, cache_entry["count"], max(0, ttl)

    except Exception as e:
        logger.error(f"❌ Rate limit check failed: {str(e)}")
        logger.warning("🔒 Denying request due to rate limiting error (fail-closed mode)")
        return False, limit, 0


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


def resolve_rule(path: str) -> Optional[tuple[str, int, int]]:
    """Find the (prefix, limit, window) rule for a path, None when exempt or unmatched"""
    if path.startswith(RATE_LIMIT_EXEMPT_PREFIXES):
        return None
    for prefix, limit, window in RATE_LIMIT_RULES:
        if path.startswith(prefix):
            return prefix, limit, window
    return None


def rate_limit_headers(limit: int, remaining: int, reset_at: int) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(max(0, remaining)),
        "X-RateLimit-Reset": str(reset_at),
    }


def too_many_requests_response(limit: int, retry_after: int) -> JSONResponse:
    headers = rate_limit_headers(limit, 0, int(time.time()) + retry_after)
    headers["Retry-After"] = str(retry_after)
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": "Too many requests, please try again later",
            "code": "RATE_LIMIT_EXCEEDED",
            "retryAfter": retry_after,
        },
        headers=headers,
    )


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP fixed-window limits applied by path prefix"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rule = resolve_rule(request.url.path)
        if rule is None or request.method == "OPTIONS":
            return await call_next(request)

        prefix, limit, window = rule
        client_ip = get_client_ip(request)
        key = f"rate_limit:{prefix}:{client_ip}"

        is_allowed, current_count, ttl = check_rate_limit(key, limit, window, _optional_redis())
        if not is_allowed:
            logger.warning(f"🚫 Rate limit EXCEEDED for {key} - {current_count}/{limit} requests used")
            return too_many_requests_response(limit, ttl)

        response = await call_next(request)
        for header, value in rate_limit_headers(
            limit, limit - current_count, int(time.time()) + ttl
        ).items():
            response.headers[header] = value
        return response


async def rate_limit_dependency(
    request: Request,
    limit: int,
    window_seconds: int,
    key_prefix: str = "rate_limit",
    use_ip: bool = True,
):
    """
    FastAPI dependency for rate limiting a single route

    Args:
        request: FastAPI request object
        limit: Maximum requests allowed
        window_seconds: Time window in seconds
        key_prefix: Prefix for the counter key
        use_ip: If True, use client IP in key (per-IP limit), otherwise global
    """
    key = f"{key_prefix}:{get_client_ip(request)}" if use_ip else f"{key_prefix}:global"
    is_allowed, current_count, ttl = check_rate_limit(key, limit, window_seconds, _optional_redis())

    if not is_allowed:
        logger.warning(f"🚫 Rate limit EXCEEDED for {key} - {current_count}/{limit} requests used")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
            headers={"Retry-After": str(ttl)},
        )

    request.state.rate_limit_remaining = limit - current_count
    request.state.rate_limit_limit = limit
    request.state.rate_limit_reset = int(time.time()) + ttl


def create_rate_limiter(
    limit: int, window_seconds: int, key_prefix: str = "rate_limit", use_ip: bool = True
):
    """
    Create a rate limiter dependency with specific parameters

    Example usage:
        ocr_limit = create_rate_limiter(limit=10, window_seconds=60, key_prefix="ocr")

        @router.post("/business-card")
        async def scan(_: None = Depends(ocr_limit)):
            ...
    """

    async def rate_limiter(request: Request):
        if not config.RATE_LIMIT_ENABLED:
            return
        return await rate_limit_dependency(request, limit, window_seconds, key_prefix, use_ip)

    return rate_limiter
