"""
config/redis_client.py
Async Redis client for caching, the JWT deny-list and rate-limit counters.
Redis is optional: with REDIS_URL unset every helper degrades to a no-op.
"""

import json
import logging
from typing import Any, Optional

import redis.asyncio as aioredis
from fastapi import Request

from config.settings import settings

logger = logging.getLogger(__name__)


async def init_redis(url: Optional[str] = settings.REDIS_URL) -> Optional[aioredis.Redis]:
    """Create the Redis connection pool, or return None when disabled/unreachable."""
    if not url:
        logger.info("REDIS_URL not set, caching disabled")
        return None
    client = aioredis.from_url(
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )
    try:
        await client.ping()
    except aioredis.RedisError as e:
        logger.warning(f"Redis unavailable, caching disabled: {e}")
        await client.aclose()
        return None
    return client


async def close_redis(client: Optional[aioredis.Redis]) -> None:
    """Close Redis connection pool."""
    if client:
        await client.aclose()


def get_redis(request: Request) -> Optional[aioredis.Redis]:
    """FastAPI dependency to get the (optional) Redis client from app.state."""
    return getattr(request.app.state, "redis", None)


# ── Cache Helpers ─────────────────────────────────────────────
class RedisCache:
    """
    Helper class for common Redis caching patterns.
    Errors are logged and treated as cache misses so Redis is never
    on the critical path.
    """

    def __init__(self, client: Optional[aioredis.Redis]):
        self.client = client

    @property
    def enabled(self) -> bool:
        return self.client is not None

    async def get(self, key: str) -> Optional[Any]:
        if not self.client:
            return None
        try:
            value = await self.client.get(key)
        except aioredis.RedisError as e:
            logger.warning(f"Cache get failed for {key}: {e}")
            return None
        if value:
            return json.loads(value)
        return None

    async def set(self, key: str, value: Any, ttl: int = settings.REDIS_CACHE_TTL) -> None:
        if not self.client:
            return
        try:
            await self.client.setex(key, ttl, json.dumps(value, default=str))
        except aioredis.RedisError as e:
            logger.warning(f"Cache set failed for {key}: {e}")

    async def delete(self, key: str) -> None:
        if self.client:
            await self.client.delete(key)

    # ── JWT Deny List ─────────────────────────────────────────
    async def revoke_token(self, jti: str, ttl_seconds: int) -> None:
        """Add JWT ID to deny list until it expires."""
        if self.client and ttl_seconds > 0:
            await self.client.setex(f"jwt_revoked:{jti}", ttl_seconds, "1")

    async def is_token_revoked(self, jti: str) -> bool:
        if not self.client:
            return False
        try:
            return await self.client.exists(f"jwt_revoked:{jti}") == 1
        except aioredis.RedisError as e:
            logger.warning(f"Deny-list lookup failed: {e}")
            return False

    # ── Rate Limiting ─────────────────────────────────────────
    async def hit(self, key: str, window_seconds: int) -> int:
        """
        Fixed-window counter: INCR + EXPIRE on first hit.
        Returns the request count in the current window.
        """
        count = await self.client.incr(key)
        if count == 1:
            await self.client.expire(key, window_seconds)
        return int(count)
