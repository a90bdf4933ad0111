"""
Rate limiting middleware and utilities.
"""

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from fastapi import Request, status
from starlette.responses import Response

from lider_gateway.api.auth import get_client_ip
from lider_gateway.api.errors import error_response
from lider_gateway.config import get_settings
from lider_gateway.constants import UNTHROTTLED_PATHS


@dataclass
class TokenBucket:
    """
    Token bucket for rate limiting.

    Refills continuously at ``refill_rate`` tokens per second up to ``capacity``.
    """

    capacity: float
    tokens: float
    refill_rate: float  # tokens per second
    last_refill: float

    def consume(self, now: float, tokens: float = 1.0) -> bool:
        """
        Try to consume tokens from the bucket.

        Args:
            now: Current monotonic time in seconds.
            tokens: Number of tokens to consume.

        Returns:
            True if tokens were consumed, False if rate limited.
        """
        elapsed = max(0.0, now - self.last_refill)
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

        if self.tokens >= tokens:
            self.tokens -= tokens
            return True

        return False

    @property
    def wait_time(self) -> float:
        """Time in seconds until at least 1 token is available."""
        if self.tokens >= 1:
            return 0.0
        return (1 - self.tokens) / self.refill_rate


class RateLimiter:
    """
    In-memory rate limiter using one token bucket per client IP.

    A bucket left idle for a full refill period is back at capacity, so it is
    dropped and recreated on the next request from that client.
    """

    def __init__(
        self,
        requests_per_minute: int = 3000,
        burst_capacity: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the rate limiter.

        Args:
            requests_per_minute: Sustained requests per minute per client.
            burst_capacity: Maximum burst size. Defaults to one minute's worth.
            clock: Monotonic time source.
        """
        if requests_per_minute <= 0:
            raise ValueError("requests_per_minute must be positive")

        self._refill_rate = requests_per_minute / 60.0
        self._capacity = burst_capacity or requests_per_minute
        self._clock = clock
        self._buckets: dict[str, TokenBucket] = {}
        self._idle_ttl = self._capacity / self._refill_rate
        self._next_sweep = clock() + self._idle_ttl

    @property
    def tracked_clients(self) -> int:
        """Number of clients currently holding a bucket."""
        return len(self._buckets)

    def _create_bucket(self, now: float) -> TokenBucket:
        return TokenBucket(
            capacity=self._capacity,
            tokens=self._capacity,
            refill_rate=self._refill_rate,
            last_refill=now,
        )

    def _evict_idle(self, now: float) -> None:
        idle = [
            key
            for key, bucket in self._buckets.items()
            if now - bucket.last_refill >= self._idle_ttl
        ]
        for key in idle:
            del self._buckets[key]
        self._next_sweep = now + self._idle_ttl

    def check(self, key: str, tokens: float = 1.0) -> tuple[bool, float]:
        """
        Check if a request is allowed.

        Args:
            key: Rate limit key (the client IP).
            tokens: Number of tokens to consume.

        Returns:
            Tuple of (allowed, wait_time_seconds).
        """
        now = self._clock()
        if now >= self._next_sweep:
            self._evict_idle(now)

        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = self._buckets[key] = self._create_bucket(now)

        allowed = bucket.consume(now, tokens)
        return allowed, bucket.wait_time

    def reset(self, key: str) -> None:
        """Reset rate limit for a key."""
        self._buckets.pop(key, None)


def create_rate_limit_middleware(
    limiter: RateLimiter | None = None,
) -> Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]:
    """
    Create rate limiting middleware for FastAPI.

    Args:
        limiter: Limiter to use. Built from settings when omitted.

    Returns:
        The middleware function.
    """
    if limiter is None:
        limiter = RateLimiter(
            requests_per_minute=get_settings().rate_limit_requests_per_minute
        )

    async def rate_limit_middleware(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        if request.url.path in UNTHROTTLED_PATHS:
            return await call_next(request)

        allowed, wait_time = limiter.check(get_client_ip(request))
        if not allowed:
            return error_response(
                request,
                status.HTTP_429_TOO_MANY_REQUESTS,
                f"Rate limit exceeded. Retry after {wait_time:.1f} seconds",
                headers={"Retry-After": str(int(wait_time) + 1)},
            )

        return await call_next(request)

    return rate_limit_middleware
