"""Redis async client factory."""

import redis.asyncio as aioredis


def build_redis(redis_url: str) -> aioredis.Redis:
    """Return a Redis client with its own connection pool (connects lazily)."""
    return aioredis.Redis.from_url(redis_url, decode_responses=True)
