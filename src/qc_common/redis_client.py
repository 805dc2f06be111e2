"""Redis client factory: used for cross-instance listing fan-out only.

Listing state never lives in Redis; PostgreSQL is the source of truth.
Each API instance publishes to one channel and relays what it receives
to its own WebSocket subscribers.
"""

import redis.asyncio as aioredis
from redis.asyncio.client import PubSub

from config.settings import settings

_redis_pool: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """Get or create the Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
    return _redis_pool


async def subscribe(channel: str) -> PubSub:
    """Open a pub/sub handle already subscribed to `channel`.

    The caller owns the handle and must `await pubsub.aclose()` when done.
    """
    redis = await get_redis()
    pubsub = redis.pubsub(ignore_subscribe_messages=True)
    await pubsub.subscribe(channel)
    return pubsub


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None
