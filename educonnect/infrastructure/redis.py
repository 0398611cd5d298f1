"""Redis-backed storage for the shared chat rate limit.

Set ``RATE_LIMIT_BACKEND=redis`` to keep chat rate-limit windows in Redis so
that several API processes share one budget per student:
- REDIS_HOST / REDIS_PORT / REDIS_DB select the instance
- REDIS_PASSWORD if authentication is enabled
"""
from typing import Optional
from urllib.parse import quote

from limits.storage import RedisStorage

from educonnect.core.config import Settings
from educonnect.core.logging import get_logger

logger = get_logger(__name__)


def redis_uri(settings: Settings) -> str:
    """Connection URI for the configured Redis instance."""
    auth = f":{quote(settings.redis_password, safe='')}@" if settings.redis_password else ""
    return f"redis://{auth}{settings.redis_host}:{settings.redis_port}/{settings.redis_db}"


def get_rate_limit_storage(settings: Settings) -> Optional[RedisStorage]:
    """Create the Redis rate-limit storage and verify it answers PING.

    Returns None if Redis is not available (callers fall back to memory).
    """
    logger.info(f"Initializing Redis rate-limit storage: {settings.redis_host}:{settings.redis_port}")

    storage = RedisStorage(
        redis_uri(settings),
        wrap_exceptions=True,
        max_connections=50,
        socket_connect_timeout=5,
        socket_timeout=5,
    )
    if not storage.check():
        logger.error("Failed to connect to Redis for rate limiting")
        return None

    logger.info("Redis connection established successfully")
    return storage
