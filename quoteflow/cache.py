"""
Redis-backed key-value cache

Used for session lookups, permission checks and exchange rates.
Cache failures are logged and treated as misses so they never fail a request.
"""
import json
import logging
from typing import Any, Callable, Optional

from .rate_limiter import get_redis_client

logger = logging.getLogger(__name__)

DEFAULT_TTL = 3600
LIST_SCAN_COUNT = 100


class KVCache:
    """Redis cache wrapper with automatic JSON serialization"""

    def __init__(self, redis_client=None):
        self.redis_client = redis_client

    def _get_client(self):
        """Lazy load Redis client"""
        if self.redis_client is None:
            try:
                self.redis_client = get_redis_client()
            except Exception as e:
                logger.warning(f"⚠️ Redis cache unavailable: {e}")
                return None
        return self.redis_client

    def get(self, key: str) -> Optional[Any]:
        client = self._get_client()
        if not client:
            return None

        try:
            value = client.get(key)
            if value is None:
                logger.debug(f"❌ Cache MISS: {key}")
                return None
            logger.debug(f"✅ Cache HIT: {key}")
            return json.loads(value)
        except Exception as e:
            logger.error(f"❌ Cache get error for {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = DEFAULT_TTL) -> bool:
        """Set value in cache. A ttl of None stores the key without expiry."""
        client = self._get_client()
        if not client:
            return False

        try:
            serialized = json.dumps(value, default=str)
            if ttl:
                client.setex(key, ttl, serialized)
            else:
                client.set(key, serialized)
            logger.debug(f"✅ Cache SET: {key} (TTL: {ttl}s)")
            return True
        except Exception as e:
            logger.error(f"❌ Cache set error for {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        client = self._get_client()
        if not client:
            return False

        try:
            client.delete(key)
            logger.debug(f"✅ Cache DELETE: {key}")
            return True
        except Exception as e:
            logger.error(f"❌ Cache delete error for {key}: {e}")
            return False

    def delete_many(self, keys: list[str]) -> int:
        client = self._get_client()
        if not client or not keys:
            return 0

        try:
            deleted = client.delete(*keys)
            logger.debug(f"✅ Cache DELETE many: {deleted} keys")
            return deleted
        except Exception as e:
            logger.error(f"❌ Cache delete_many error: {e}")
            return 0

    def list(self, prefix: str, limit: int = 1000) -> list[str]:
        """List keys starting with prefix, at most `limit` of them"""
        client = self._get_client()
        if not client:
            return []

        keys: list[str] = []
        try:
            for key in client.scan_iter(match=f"{prefix}*", count=LIST_SCAN_COUNT):
                keys.append(key.decode() if isinstance(key, bytes) else key)
                if len(keys) >= limit:
                    break
        except Exception as e:
            logger.error(f"❌ Cache list error for {prefix}: {e}")
        return keys

    def get_cached(self, key: str, fetcher: Callable[[], Any], ttl: int = DEFAULT_TTL) -> Any:
        """Cache-aside read: return the cached value or fetch, store and return it"""
        cached_value = self.get(key)
        if cached_value is not None:
            return cached_value

        result = fetcher()
        if result is not None:
            self.set(key, result, ttl)
        return result

    def is_available(self) -> bool:
        return self._get_client() is not None


class NoOpCache(KVCache):
    """Stand-in used when no Redis is configured; every read is a miss"""

    def _get_client(self):
        return None


_kv: Optional[KVCache] = None


def get_kv() -> KVCache:
    """Process-wide KV instance (also usable as a FastAPI dependency)"""
    global _kv

    if _kv is None:
        try:
            _kv = KVCache(get_redis_client())
            logger.info("✅ KV cache connected to Redis")
        except Exception as e:
            logger.warning(f"⚠️ KV cache running without Redis: {e}")
            _kv = NoOpCache()
    return _kv


def set_kv(instance: Optional[KVCache]) -> None:
    """Replace the process-wide KV instance (None resets to lazy init)"""
    global _kv
    _kv = instance
