"""Redis connection configuration."""

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from vodstream.core.config import settings

logger = logging.getLogger(__name__)

redis_client = redis.from_url(
    settings.REDIS_URL,
    decode_responses=True,
    socket_connect_timeout=2,
)


async def check_redis() -> str:
    """Ping Redis and report connectivity for health checks.

    Returns:
        "connected" when the server answers, otherwise "disconnected".
    """
    try:
        await redis_client.ping()
        return "connected"
    except (RedisError, OSError) as e:
        logger.warning(f"Redis health check failed: {e}")
        return "disconnected"
