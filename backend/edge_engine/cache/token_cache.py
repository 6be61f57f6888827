from __future__ import annotations
import json
import logging
from typing import Any, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

# Anything the network or the payload can throw; the cache must never break a caller
CACHE_ERRORS = (RedisError, OSError, ValueError, TypeError)


class TokenCache:
    """Best-effort JSON cache and publish channel over Redis.

    Every method swallows cache-side failures, logs them, and reports a miss
    (``None``/``False``) so callers fall through to the cold path.
    """

    def __init__(self, redis: Optional[Redis] = None):
        self._redis = redis

    @classmethod
    def from_url(cls, url: str) -> "TokenCache":
        return cls(Redis.from_url(url, decode_responses=True))

    async def get_json(self, key: str) -> Optional[Any]:
        if not self._redis:
            return None
        try:
            cached = await self._redis.get(key)
            if cached is None:
                return None
            return json.loads(cached if isinstance(cached, str) else cached.decode())
        except CACHE_ERRORS as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

    async def set_json(self, key: str, value: Any, ttl: int) -> bool:
        if not self._redis:
            return False
        try:
            await self._redis.set(key, json.dumps(value, default=str), ex=ttl)
            return True
        except CACHE_ERRORS as e:
            logger.warning(f"Cache write failed for {key}: {e}")
            return False

    async def delete(self, *keys: str) -> bool:
        if not self._redis or not keys:
            return False
        try:
            await self._redis.delete(*keys)
            return True
        except CACHE_ERRORS as e:
            logger.warning(f"Cache delete failed for {keys}: {e}")
            return False

    async def publish(self, channel: str, message: Any) -> bool:
        if not self._redis:
            return False
        try:
            await self._redis.publish(channel, json.dumps(message, default=str))
            return True
        except CACHE_ERRORS as e:
            logger.warning(f"Publish to {channel} failed: {e}")
            return False

    async def close(self):
        if self._redis:
            try:
                await self._redis.aclose()
            except CACHE_ERRORS as e:
                logger.warning(f"Closing cache connection failed: {e}")
            self._redis = None
