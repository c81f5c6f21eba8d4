"""
Redis side-cache for synchronized publication objects.
"""

import json

from notubiz_sync.config import settings
from notubiz_sync.features.event_sync.domain.models import TargetObject
from notubiz_sync.services.redis_client import FastRedisClient, fast_redis

CACHE_KEY_PREFIX = "target_object"


def cache_key(object_id: str) -> str:
    return f"{CACHE_KEY_PREFIX}:{object_id}"


class ObjectCache:
    """Caches rendered objects; misses and Redis errors are never fatal."""

    def __init__(self, redis_client: FastRedisClient | None = None, ttl_s: int | None = None):
        self._redis = redis_client or fast_redis
        self._ttl_s = ttl_s if ttl_s is not None else settings.OBJECT_CACHE_TTL_SECONDS

    async def cache_object(self, target: TargetObject) -> bool:
        payload = json.dumps(target.to_dict(), default=str)
        return await self._redis.set_with_ttl(cache_key(target.id), payload, self._ttl_s)

    async def evict(self, object_id: str) -> bool:
        return await self._redis.delete(cache_key(object_id))
