"""Redis-backed rate limiting dependency with an in-process fallback."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, Optional, Tuple

from fastapi import HTTPException, Request
import redis.asyncio as redis

from config import settings

logger = logging.getLogger(__name__)


class RateLimiter:
    """Fixed-window request counter.

    Counts in Redis when it is reachable and falls back to counters held by this
    instance otherwise. One instance is created per application.
    """

    def __init__(self, redis_url: Optional[str] = None, key_prefix: str = "emc:rate"):
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self._local_counters: Dict[str, Tuple[int, float]] = {}
        self._local_lock = asyncio.Lock()

    def reset(self) -> None:
        self._local_counters.clear()

    async def _consume_local_quota(self, key: str, limit: int, window_seconds: int) -> bool:
        now = time.time()
        async with self._local_lock:
            count, reset_at = self._local_counters.get(key, (0, now + window_seconds))
            if now >= reset_at:
                count = 0
                reset_at = now + window_seconds
            count += 1
            self._local_counters[key] = (count, reset_at)
            return count <= limit

    async def _consume_redis_quota(self, key: str, limit: int, window_seconds: int) -> bool:
        redis_client = redis.from_url(self.redis_url, decode_responses=True)
        try:
            current = await redis_client.incr(key)
            if current == 1:
                await redis_client.expire(key, window_seconds)
        finally:
            await redis_client.aclose()
        return current <= limit

    async def consume(self, prefix: str, client_id: str, limit: int, window_seconds: int) -> bool:
        key = f"{self.key_prefix}:{prefix}:{client_id}"
        if self.redis_url:
            try:
                return await self._consume_redis_quota(key, limit, window_seconds)
            except Exception as exc:
                logger.debug("rate_limit redis unavailable, using local counters: %s", exc)
        return await self._consume_local_quota(key, limit, window_seconds)


def build_rate_limiter() -> RateLimiter:
    return RateLimiter(redis_url=settings.REDIS_URL or None)


def _client_identifier(request: Request) -> str:
    if request.client and request.client.host:
        return request.client.host
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return "unknown"


def rate_limit(prefix: str, limit: int, window_seconds: int) -> Callable[[], None]:
    """Return a FastAPI dependency that enforces per-client request quotas."""

    async def _dependency(request: Request):
        if getattr(request.app.state, "disable_rate_limits", False):
            return

        limiter: RateLimiter = request.app.state.rate_limiter
        allowed = await limiter.consume(prefix, _client_identifier(request), limit, window_seconds)
        if not allowed:
            raise HTTPException(
                status_code=429,
                detail=f"Rate limit exceeded for {prefix}. Try again later.",
            )

    return _dependency
