"""
shared/middleware/rate_limit.py
Per-route rate limiting backed by Redis counters.
Fails open: with Redis disabled or erroring, requests pass through.
"""

import logging
from dataclasses import dataclass

import redis.asyncio as aioredis
from fastapi import Depends, Request
from jose import JWTError

from config.redis_client import RedisCache, get_redis
from config.settings import settings
from shared.utils.exceptions import RateLimitError
from shared.utils.security import verify_access_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitTier:
    name: str
    window_seconds: int
    max_requests: int
    message: str = "Too many requests, please try again later."


# ── Tiers ─────────────────────────────────────────────────────
TIERS = {
    "global": RateLimitTier("global", settings.rate_limit_window_seconds, settings.RATE_LIMIT_MAX_REQUESTS),
    "auth": RateLimitTier("auth", 15 * 60, 10, "Too many authentication attempts, please try again later."),
    "upload": RateLimitTier("upload", 60 * 60, 50, "Upload limit exceeded, please try again later."),
    "search": RateLimitTier("search", 10 * 60, 100, "Too many search requests, please slow down."),
    "message": RateLimitTier("message", 60 * 60, 200, "Message limit exceeded, please try again later."),
    "event_creation": RateLimitTier("event_creation", 24 * 60 * 60, 20, "Daily event creation limit reached."),
    "booking": RateLimitTier("booking", 60 * 60, 30, "Too many booking requests, please try again later."),
    "review": RateLimitTier("review", 24 * 60 * 60, 10, "Daily review limit reached."),
    "admin": RateLimitTier("admin", 15 * 60, 100),
}


def client_key(request: Request) -> str:
    """
    The peer address as uvicorn reports it. Behind a proxy, uvicorn's
    proxy_headers / forwarded_allow_ips rewrite it from X-Forwarded-For,
    but only for trusted proxies; the raw header is never read here.
    """
    return request.client.host if request.client else "unknown"


def caller_key(request: Request) -> str:
    """Authenticated callers are limited per user, everyone else per address."""
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        try:
            payload = verify_access_token(auth[7:])
        except JWTError:
            payload = {}
        if payload.get("sub"):
            return f"user:{payload['sub']}"
    return f"ip:{client_key(request)}"


class RateLimit:
    """Dependency factory: `Depends(RateLimit("search"))`."""

    def __init__(self, tier: str):
        self.tier = TIERS[tier]

    async def __call__(self, request: Request, redis=Depends(get_redis)) -> None:
        cache = RedisCache(redis)
        if not cache.enabled:
            return
        key = f"rate:{self.tier.name}:{caller_key(request)}"
        try:
            count = await cache.hit(key, self.tier.window_seconds)
        except aioredis.RedisError as e:
            logger.error(f"Rate limit check failed: {e}")
            return
        if count > self.tier.max_requests:
            logger.warning(f"Rate limit '{self.tier.name}' exceeded for {key}")
            raise RateLimitError(self.tier.message, retry_after=self.tier.window_seconds)
