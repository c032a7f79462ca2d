"""
Fixed-window rate limiting for abuse-prone endpoints (login, registration)

Backends:
    memory  per-process counters, fine for a single instance and tests
    redis   shared counters (INCR + EXPIRE), survives multiple instances

The Redis backend degrades gracefully: when Redis is unreachable the request
is allowed and a warning is logged.

Key Pattern:
    rl:{scope}:{identity}:{window_index}
"""

import logging
import time
from typing import Dict, Optional, Tuple

import redis.asyncio as redis
from fastapi import Request

from jobboard.config import get_settings
from jobboard.errors import RateLimited

logger = logging.getLogger(__name__)


class InMemoryRateLimiter:
    def __init__(self):
        self._counters: Dict[str, Tuple[int, int]] = {}

    async def hit(self, key: str, limit: int, window_seconds: int, now: Optional[float] = None) -> bool:
        """Count one request; returns False once the window's limit is exceeded."""
        now = time.time() if now is None else now
        window = int(now // window_seconds)
        current_window, count = self._counters.get(key, (window, 0))
        if current_window != window:
            count = 0
        count += 1
        self._counters[key] = (window, count)
        return count <= limit

    def reset(self) -> None:
        self._counters.clear()


class RedisRateLimiter:
    """
    Redis-backed fixed-window counter.

    Attributes:
        redis_url: Redis connection URL
        redis: Lazily created async client
    """

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self.redis: Optional[redis.Redis] = None

    async def _ensure_connected(self) -> Optional[redis.Redis]:
        if self.redis is None:
            try:
                self.redis = redis.from_url(self.redis_url, encoding="utf-8", decode_responses=True)
            except Exception as e:
                logger.warning(f"Failed to connect to Redis: {e}")
                return None
        return self.redis

    async def hit(self, key: str, limit: int, window_seconds: int, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        window_key = f"rl:{key}:{int(now // window_seconds)}"
        try:
            client = await self._ensure_connected()
            if not client:
                return True

            count = await client.incr(window_key)
            if count == 1:
                await client.expire(window_key, window_seconds)
            return count <= limit

        except Exception as e:
            logger.warning(f"Rate limiter unavailable, allowing request: {e}")
            return True

    async def close(self) -> None:
        if self.redis:
            await self.redis.close()
            self.redis = None


# ==================== Factory Function ====================

_limiter_instance = None


def get_rate_limiter():
    """Get or create the limiter configured by RATE_LIMIT_BACKEND."""
    global _limiter_instance

    if _limiter_instance is None:
        settings = get_settings()
        if settings.rate_limit_backend == "redis":
            _limiter_instance = RedisRateLimiter(redis_url=settings.redis_url)
        else:
            _limiter_instance = InMemoryRateLimiter()

    return _limiter_instance


def client_identity(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def rate_limit(scope: str, limit: int, window_seconds: int = 60):
    """
    Build a FastAPI dependency limiting `scope` to `limit` requests per window.

    Usage:
        @router.post("/login", dependencies=[Depends(rate_limit("login", 10))])
    """

    async def dependency(request: Request) -> None:
        limiter = get_rate_limiter()
        key = f"{scope}:{client_identity(request)}"
        if not await limiter.hit(key, limit, window_seconds):
            raise RateLimited(
                "Too many requests, slow down",
                retryAfterSeconds=window_seconds,
            )

    return dependency
