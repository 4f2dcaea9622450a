from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
NOTIFICATION_CHANNEL = "notifications"
_redis = None


async def get_redis():
    global _redis
    if _redis is None:
        if os.getenv("TESTING") == "1":
            from fakeredis import aioredis
            _redis = aioredis.FakeRedis()
        else:
            _redis = redis.from_url(REDIS_URL)
    return _redis


def _json_default(value: Any) -> Any:
    # purpose: convert datetime objects to ISO strings for event payloads
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _serialize_event(event: dict[str, Any]) -> str:
    return json.dumps(event, default=_json_default)


async def publish_notifications(events: list[dict[str, Any]]) -> None:
    """Broadcast cascade notifications to every connected viewer.

    Delivery is best effort: the submission has already committed.
    """

    if not events:
        return
    try:
        r = await get_redis()
        for event in events:
            await r.publish(NOTIFICATION_CHANNEL, _serialize_event(event))
    except RedisError as exc:
        logger.warning("Could not broadcast %d notification(s): %s", len(events), exc)

