import redis.asyncio as redis
import logging

from src.config.settings import settings

logger = logging.getLogger(__name__)

EVENT_TTL_SECONDS = 24 * 60 * 60

_redis_connection = None


def get_redis():
    """Shared connection for the rate limiter and webhook de-duplication"""
    global _redis_connection
    if _redis_connection is None:
        _redis_connection = redis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)
    return _redis_connection


async def claim_event(event_id: str, connection=None) -> bool:
    """
    Record a webhook event id. Returns False when it was already seen.
    If Redis is unreachable the event is processed anyway; booking writes are
    compare-and-set, so a replay cannot move a booking twice.
    """
    connection = connection or get_redis()
    try:
        created = await connection.set(f"event:{event_id}", "1", nx=True, ex=EVENT_TTL_SECONDS)
        return bool(created)
    except redis.RedisError as e:
        logger.warning(f"⚠️ Could not record webhook event {event_id} in Redis: {e}")
        return True
