"""Redis connection and the JSON cache behind revenue statistics."""

import json
from typing import Any, cast

import redis
import structlog

from clinicq.config import settings

logger = structlog.get_logger(__name__)

_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """Shared Redis client, created on first use."""
    global _client

    if _client is None:
        _client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            username=settings.redis_username or None,
            password=settings.redis_password or None,
            decode_responses=settings.redis_decode_responses,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
    return _client


async def check_redis_connection() -> bool:
    """True if Redis answers a PING."""
    try:
        return bool(get_redis_client().ping())
    except Exception:
        return False


def close_redis_connection() -> None:
    global _client

    if _client is not None:
        _client.close()
        _client = None


class CacheManager:
    """
    JSON values in Redis with best-effort semantics.

    A failed read is a miss and a failed write returns ``False``, so callers
    fall back to the database while Redis is unavailable.
    """

    def __init__(self, redis_client: redis.Redis):
        self.redis = redis_client

    def get_json(self, key: str) -> Any | None:
        """Cached value for ``key``, or None on a miss."""
        try:
            raw = cast(str | None, self.redis.get(key))
            return json.loads(raw) if raw else None
        except Exception as e:
            logger.warning("cache_read_failed", key=key, error=str(e))
            return None

    def set_json(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """
        Store ``value`` as JSON.

        Decimals, dates and UUIDs are written as strings.

        Args:
            key: Cache key
            value: JSON-compatible value
            ttl: Expiry in seconds, none when omitted

        Returns:
            Whether the value was stored
        """
        try:
            self.redis.set(key, json.dumps(value, default=str), ex=ttl)
            return True
        except Exception as e:
            logger.warning("cache_write_failed", key=key, error=str(e))
            return False

    def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob ``pattern`` and return how many went."""
        try:
            keys = list(self.redis.scan_iter(match=pattern))
            return cast(int, self.redis.delete(*keys)) if keys else 0
        except Exception as e:
            logger.warning("cache_invalidation_failed", pattern=pattern, error=str(e))
            return 0
