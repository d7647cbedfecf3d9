"""
Async token-bucket rate limiter.

Every outbound call (speedrun.com lookups, Discord deliveries) acquires a
token first. Waiters are served in arrival order and sleep for the computed
refill time instead of polling.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from srcsender.config import RateLimitConfig

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

# Tolerance for float drift in refill arithmetic
_TOKEN_EPSILON = 1e-9


@dataclass
class LimiterMetrics:
    """Counters for limiter observability."""

    acquired: int = 0
    deferred: int = 0  # Acquisitions that had to wait
    total_wait_s: float = 0.0
    max_wait_s: float = 0.0


@dataclass
class TokenBucketLimiter:
    """
    Token bucket shared by concurrent tasks.

    Refills continuously at ``max_calls / period_s`` tokens per second up to
    ``max_calls``. ``acquire()`` suspends the calling task until a token is
    available; cancelling the task abandons the wait without consuming a token.

    Usage:
        limiter = TokenBucketLimiter(RateLimitConfig(max_calls=5, period_s=3.0))
        await limiter.acquire()
        # ... issue the request ...
    """

    config: RateLimitConfig = field(default_factory=RateLimitConfig)
    name: str = "limiter"

    # Token bucket state
    _tokens: float = field(default=0.0, init=False)
    _last_refill_s: float = field(default=0.0, init=False)
    _lock: asyncio.Lock | None = field(default=None, init=False)

    metrics: LimiterMetrics = field(default_factory=LimiterMetrics, init=False)

    # Clock and sleep injection for deterministic tests
    _time_fn: Callable[[], float] | None = field(default=None)
    _sleep_fn: Callable[[float], Awaitable[None]] | None = field(default=None)

    def __post_init__(self) -> None:
        """Start with a full bucket."""
        self._tokens = float(self.config.max_calls)
        self._last_refill_s = self._now()

    def _now(self) -> float:
        if self._time_fn is not None:
            return self._time_fn()
        return time.monotonic()

    async def _sleep(self, delay_s: float) -> None:
        if self._sleep_fn is not None:
            await self._sleep_fn(delay_s)
        else:
            await asyncio.sleep(delay_s)

    def _get_lock(self) -> asyncio.Lock:
        """Get or create the waiter lock (bound lazily to the running loop)."""
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def _refill(self, now_s: float) -> None:
        elapsed_s = now_s - self._last_refill_s
        if elapsed_s <= 0:
            return
        self._tokens = min(
            self._tokens + elapsed_s * self.config.rate_per_s,
            float(self.config.max_calls),
        )
        self._last_refill_s = now_s

    def get_wait_time_s(self) -> float:
        """Seconds until one token is available (0 if available now)."""
        self._refill(self._now())
        if self._tokens >= 1.0 - _TOKEN_EPSILON:
            return 0.0
        return (1.0 - self._tokens) / self.config.rate_per_s

    async def acquire(self) -> None:
        """Take one token, waiting for a refill if the bucket is empty."""
        waited_s = 0.0
        async with self._get_lock():
            while True:
                delay_s = self.get_wait_time_s()
                if delay_s <= 0:
                    self._tokens -= 1.0
                    break
                waited_s += delay_s
                await self._sleep(delay_s)

        self.metrics.acquired += 1
        if waited_s > 0:
            self.metrics.deferred += 1
            self.metrics.total_wait_s += waited_s
            self.metrics.max_wait_s = max(self.metrics.max_wait_s, waited_s)
            logger.debug(
                "Rate limiter deferred call",
                extra={"limiter": self.name, "waited_s": round(waited_s, 3)},
            )

    def get_status(self) -> dict[str, float | int | str]:
        """Current limiter status for observability."""
        self._refill(self._now())
        return {
            "name": self.name,
            "available_tokens": round(self._tokens, 2),
            "max_calls": self.config.max_calls,
            "period_s": self.config.period_s,
            "acquired": self.metrics.acquired,
            "deferred": self.metrics.deferred,
        }

    def reset(self) -> None:
        self._tokens = float(self.config.max_calls)
        self._last_refill_s = self._now()
        self.metrics = LimiterMetrics()
