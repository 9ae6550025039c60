"""Per-platform request pacing."""

import asyncio
import bisect
import logging
import time
from typing import Awaitable, Callable, Optional, Protocol

from .constants import RATE_KEY_ANILIST, RATE_KEY_JIKAN, RATE_KEY_MAL

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class RatePolicy(Protocol):
    def reserve(self, grants: list[float], now: float) -> float:
        """Record the next grant time in ``grants`` and return it."""


class MinIntervalPolicy:
    """At most one request every ``interval`` seconds."""

    def __init__(self, interval: float):
        if interval < 0:
            raise ValueError("interval must not be negative")
        self.interval = interval

    @classmethod
    def per_second(cls, requests_per_second: float) -> "MinIntervalPolicy":
        return cls(1.0 / requests_per_second if requests_per_second > 0 else 0.0)

    def reserve(self, grants: list[float], now: float) -> float:
        granted_at = now if not grants else max(now, grants[-1] + self.interval)
        grants[:] = [granted_at]
        return granted_at

    def __repr__(self) -> str:
        return f"MinIntervalPolicy(interval={self.interval})"


class SlidingWindowPolicy:
    """
    At most ``max_requests`` grants within any ``window`` seconds.

    Requests are granted immediately until the window is full; after that a
    caller waits until the oldest grant leaves the window, plus ``buffer``.
    """

    def __init__(self, max_requests: int, window: float = 60.0, buffer: float = 1.0):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.max_requests = max_requests
        self.window = window
        self.buffer = buffer

    def reserve(self, grants: list[float], now: float) -> float:
        cutoff = now - self.window
        while grants and grants[0] <= cutoff:
            grants.pop(0)

        if len(grants) < self.max_requests:
            granted_at = now
        else:
            oldest = grants[len(grants) - self.max_requests]
            granted_at = max(now, oldest + self.window + self.buffer)

        bisect.insort(grants, granted_at)
        return granted_at

    def __repr__(self) -> str:
        return f"SlidingWindowPolicy(max_requests={self.max_requests}, window={self.window}, buffer={self.buffer})"


class RateLimiter:
    """
    Suspends callers until a platform's policy allows another request.

    Each key has independent state. The slot is reserved before sleeping, so
    concurrent callers on the same key are spaced out instead of all waking
    at once. Keys without a policy are never delayed.
    """

    def __init__(
        self,
        policies: Optional[dict[str, RatePolicy]] = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        self.policies: dict[str, RatePolicy] = dict(policies or {})
        self._grants: dict[str, list[float]] = {}
        self._clock = clock
        self._sleep = sleep

    @classmethod
    def from_config(cls, config, clock: Clock = time.monotonic, sleep: Sleep = asyncio.sleep) -> "RateLimiter":
        """Build the MAL, AniList and Jikan policies from a RateLimitConfig."""
        return cls(
            {
                RATE_KEY_MAL: MinIntervalPolicy.per_second(config.mal_per_second),
                RATE_KEY_ANILIST: SlidingWindowPolicy(
                    config.anilist_per_minute, 60.0, config.window_buffer_seconds
                ),
                RATE_KEY_JIKAN: MinIntervalPolicy.per_second(config.jikan_per_second),
            },
            clock=clock,
            sleep=sleep,
        )

    async def acquire(self, key: str) -> float:
        """Wait for the next slot on ``key`` and return the time waited in seconds."""
        policy = self.policies.get(key)
        if policy is None:
            return 0.0

        now = self._clock()
        grants = self._grants.setdefault(key, [])
        delay = policy.reserve(grants, now) - now
        if delay > 0:
            logger.debug(f"Rate limit for {key}: waiting {delay:.2f}s")
            await self._sleep(delay)
        return max(delay, 0.0)

    def reset(self, key: Optional[str] = None) -> None:
        if key is None:
            self._grants.clear()
        else:
            self._grants.pop(key, None)
