"""Redis client lifecycle management.

The client backs the durable thread title state. It is opened in the
application lifespan and shared by every request through ``get_redis``.
"""

import redis.asyncio as redis
import structlog

from title_sync.core.config import settings
from title_sync.core.exceptions import StateStoreUnavailableError

logger = structlog.get_logger()

redis_client: redis.Redis | None = None  # type: ignore[type-arg]


async def init_redis(url: str | None = None) -> redis.Redis:  # type: ignore[type-arg]
    """Open the Redis connection and verify it with a PING."""
    global redis_client  # noqa: PLW0603
    redis_client = redis.from_url(url or settings.redis.url, decode_responses=True)
    await redis_client.ping()
    logger.info("Redis connected", key_prefix=settings.redis.key_prefix)
    return redis_client


async def close_redis() -> None:
    """Close the Redis connection if one is open."""
    global redis_client  # noqa: PLW0603
    if redis_client:
        await redis_client.aclose()
        redis_client = None


def get_redis() -> redis.Redis:  # type: ignore[type-arg]
    """Get the active Redis client or fail with a 503-mapped error."""
    if redis_client is None:
        raise StateStoreUnavailableError()
    return redis_client
