"""Redis client construction."""

from typing import Optional

import redis.asyncio as aioredis

from app.config import Settings


def create_redis(settings: Settings) -> Optional[aioredis.Redis]:
    """Build the shared async Redis client, or None when REDIS_URL is unset.

    Called once from the application lifespan; the returned handle is shared
    by the job store and the rate limiter and closed on shutdown.
    """
    if not settings.redis_url:
        return None
    return aioredis.Redis.from_url(settings.redis_url, decode_responses=True)
