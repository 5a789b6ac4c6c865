"""Core module for configuration and utilities."""

from vodstream.core.config import settings
from vodstream.core.database import Base, get_db
from vodstream.core.redis import check_redis, redis_client

__all__ = [
    "settings",
    "Base",
    "get_db",
    "check_redis",
    "redis_client",
]
