"""Fixed-window request rate limiter backed by Redis.

Constructed explicitly and started/stopped with the application, so tests
can run with their own instance or none at all.
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

from redis.asyncio import Redis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    window: int


class RateLimiter:
    """Per-client, per-path request counter.

    Limits are (max_requests, window_seconds). A limiter that is not
    running, or whose Redis call fails, allows every request.
    """

    # Funds-moving and capacity-checked endpoints are strict
    RATE_LIMITS: list[tuple[re.Pattern[str], tuple[int, int]]] = [
        (re.compile(r"^/api/v1/tournaments/[^/]+/join$"), (5, 60)),
        (re.compile(r"^/api/v1/wallet/withdrawals$"), (5, 3600)),
        (re.compile(r"^/api/v1/wallet/recharges$"), (10, 3600)),
        (re.compile(r"^/api/v1/uploads/"), (20, 3600)),
        (re.compile(r"^/api/v1/auth/session$"), (10, 60)),
        (re.compile(r"^/api/v1/tournaments"), (60, 60)),
        (re.compile(r"^/api/v1/wallet/"), (30, 60)),
    ]

    # Default rate limit for unspecified endpoints
    DEFAULT_LIMIT: tuple[int, int] = (100, 60)

    KEY_PREFIX = "ratelimit:"

    def __init__(
        self,
        redis_factory: Callable[[], Redis] | None = None,
        *,
        enabled: bool = True,
    ) -> None:
        self._redis_factory = redis_factory
        self._enabled = enabled
        self._redis: Redis | None = None

    @classmethod
    def from_url(cls, redis_url: str, *, enabled: bool = True) -> "RateLimiter":
        return cls(lambda: Redis.from_url(redis_url, decode_responses=True), enabled=enabled)

    @property
    def running(self) -> bool:
        return self._redis is not None

    async def start(self) -> None:
        """Connect to Redis. A failed connection leaves the limiter open."""
        if not self._enabled or self._redis_factory is None or self._redis is not None:
            return
        client = self._redis_factory()
        try:
            await client.ping()
        except Exception as e:
            logger.warning(f"Rate limiter disabled, Redis unavailable: {e}")
            await client.aclose()
            return
        self._redis = client
        logger.info("Rate limiter started")

    async def stop(self) -> None:
        if self._redis is None:
            return
        client, self._redis = self._redis, None
        await client.aclose()
        logger.info("Rate limiter stopped")

    def limit_for(self, path: str) -> tuple[int, int]:
        for pattern, limit in self.RATE_LIMITS:
            if pattern.match(path):
                return limit
        return self.DEFAULT_LIMIT

    async def hit(self, client_id: str, path: str) -> RateLimitDecision | None:
        """Count one request. Returns None when limiting is not in effect."""
        if self._redis is None:
            return None

        limit, window = self.limit_for(path)
        key = f"{self.KEY_PREFIX}{client_id}:{path}"

        try:
            current = await self._redis.incr(key)
            # Set expiry on first request
            if current == 1:
                await self._redis.expire(key, window)
        except Exception as e:
            logger.error(f"Rate limit check failed: {e}")
            return None

        if current > limit:
            logger.warning(
                f"Rate limit exceeded: {client_id} on {path} ({current}/{limit} in {window}s)"
            )
        return RateLimitDecision(
            allowed=current <= limit,
            limit=limit,
            remaining=max(0, limit - current),
            window=window,
        )
