"""
Redis pub/sub for document status events, or a silent no-op.
Controlled by the FF_USE_REDIS flag. Publishing never fails the caller.
"""

import json
import logging
from typing import Any, Optional

from .config import get_settings
from .flags import get_flags
from ..models.base import utcnow

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "docsense"

_redis_client = None
_warned_missing_url = False


def channel_name(channel: str) -> str:
    return f"{CHANNEL_PREFIX}:{channel}"


def build_event(event_type: str, data: Any = None) -> str:
    return json.dumps(
        {"type": event_type, "at": utcnow().isoformat(), "data": data},
        default=str,
    )


async def _get_redis():
    global _redis_client
    if _redis_client is None:
        import redis.asyncio as aioredis

        _redis_client = aioredis.from_url(
            get_settings().redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
        )
    return _redis_client


def _enabled() -> bool:
    global _warned_missing_url
    if not get_flags().use_redis:
        return False
    if not get_settings().redis_url:
        if not _warned_missing_url:
            logger.warning("FF_USE_REDIS is on but REDIS_URL is empty; events are dropped")
            _warned_missing_url = True
        return False
    return True


async def publish(channel: str, event_type: str, data: Any = None) -> Optional[int]:
    """Publish an event. Returns the subscriber count, or None when skipped."""
    if not _enabled():
        return None

    try:
        client = await _get_redis()
        return await client.publish(channel_name(channel), build_event(event_type, data))
    except Exception as e:
        logger.warning("Redis publish failed (channel=%s, event=%s): %s", channel, event_type, e)
        return None


async def close_redis() -> None:
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("Redis connection closed")
