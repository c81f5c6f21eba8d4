"""
Event fan-out over Redis pub/sub.

Subscribers (e.g. the document download worker) listen on
settings.EVENT_CHANNEL. Dispatching is fire-and-forget: a failed publish
is logged by the Redis client and never bubbles up into the sync.
"""

import json
from datetime import UTC, datetime
from typing import Any

from notubiz_sync.config import settings
from notubiz_sync.infrastructure.observability.logging import get_logger
from notubiz_sync.services.redis_client import FastRedisClient, fast_redis

logger = get_logger(__name__)


class RedisEventDispatcher:
    """Publishes named events with a JSON payload."""

    def __init__(self, redis_client: FastRedisClient | None = None, channel: str | None = None):
        self._redis = redis_client or fast_redis
        self._channel = channel or settings.EVENT_CHANNEL

    async def dispatch(self, event_name: str, payload: dict[str, Any]) -> None:
        message = json.dumps(
            {
                "event": event_name,
                "payload": payload,
                "dispatched_at": datetime.now(UTC).isoformat(),
            },
            default=str,
        )
        receivers = await self._redis.publish(self._channel, message)
        logger.debug(
            "Event dispatched",
            event_name=event_name,
            channel=self._channel,
            receivers=receivers,
        )


event_dispatcher = RedisEventDispatcher()
