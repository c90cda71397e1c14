"""Redis connection management (backs the shared token store)."""

from __future__ import annotations

import redis.asyncio as redis

from docsign_federation.core.config import get_settings

_redis_pool: redis.Redis | None = None


async def get_redis(url: str | None = None) -> redis.Redis:
    """Get or create the Redis connection."""
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = redis.from_url(
            url or get_settings().redis_url,
            decode_responses=True,
        )
    return _redis_pool


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None
