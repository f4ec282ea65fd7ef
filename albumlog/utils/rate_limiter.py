"""Sliding-window rate limiter for outbound MusicBrainz requests.

MusicBrainz asks clients to stay polite; the limiter here allows short
bursts while capping the long-run average:

* at most ``burst_limit`` requests inside any ``window_seconds`` span,
* and, while the window is not full, at least ``min_interval_seconds``
  between two consecutive requests.

One limiter instance is shared by every caller in the process (see
:func:`get_musicbrainz_limiter`).  The event loop is cooperative, so the
prune -> check -> append sequence in :meth:`SlidingWindowRateLimiter.acquire`
runs without interruption as long as no ``await`` sits between the check
and the append.  After any sleep the whole check is re-run from scratch.

Usage::

    limiter = SlidingWindowRateLimiter(RateLimiterConfig(burst_limit=5, window_seconds=1.0))

    async with limiter:
        response = await client.get(url)
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from albumlog.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimiterConfig:
    """Limits applied by :class:`SlidingWindowRateLimiter`."""

    burst_limit: int = 5
    window_seconds: float = 1.0
    min_interval_seconds: float = 0.1


class SlidingWindowRateLimiter:
    """Sliding window of recent request timestamps with burst control.

    Parameters
    ----------
    config:
        Burst limit, window length and minimum spacing.
    clock:
        Monotonic time source in seconds.  Injected by tests to simulate time.
    sleep:
        Coroutine used to suspend the caller.  Injected by tests together
        with ``clock`` so that sleeping advances the simulated time.
    name:
        Label used in log events.
    """

    def __init__(
        self,
        config: RateLimiterConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        name: str = "default",
    ) -> None:
        self._config = config or RateLimiterConfig()
        if self._config.burst_limit < 1:
            raise ValueError("burst_limit must be at least 1")
        if self._config.window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self._clock = clock
        self._sleep = sleep
        self._name = name
        self._timestamps: deque[float] = deque()
        self._last_request: float | None = None

    @property
    def config(self) -> RateLimiterConfig:
        return self._config

    @property
    def name(self) -> str:
        return self._name

    @property
    def in_flight_window(self) -> int:
        """Number of requests recorded inside the current window."""
        self._prune(self._clock())
        return len(self._timestamps)

    def _prune(self, now: float) -> None:
        window = self._config.window_seconds
        while self._timestamps and now - self._timestamps[0] >= window:
            self._timestamps.popleft()

    def _wait_time(self, now: float) -> float:
        """Seconds the caller must wait before a slot is free (0 when free now)."""
        if len(self._timestamps) >= self._config.burst_limit:
            return self._timestamps[0] + self._config.window_seconds - now
        if self._last_request is not None:
            since_last = now - self._last_request
            if since_last < self._config.min_interval_seconds:
                return self._config.min_interval_seconds - since_last
        return 0.0

    async def acquire(self) -> None:
        """Suspend until a request slot is available, then claim it."""
        while True:
            now = self._clock()
            self._prune(now)
            wait = self._wait_time(now)
            if wait <= 0:
                # No await between the check above and this append.
                self._timestamps.append(now)
                self._last_request = now
                return
            logger.debug(
                "rate_limiter_wait",
                limiter=self._name,
                wait_seconds=round(wait, 4),
                window_count=len(self._timestamps),
            )
            await self._sleep(wait)

    async def __aenter__(self) -> SlidingWindowRateLimiter:
        await self.acquire()
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        return None


# One limiter per upstream service, shared across all requests in the process.
_musicbrainz_limiter: SlidingWindowRateLimiter | None = None


def get_musicbrainz_limiter(config: RateLimiterConfig | None = None) -> SlidingWindowRateLimiter:
    """Return the process-wide MusicBrainz limiter, creating it on first use.

    ``config`` is only honoured by the first call.
    """
    global _musicbrainz_limiter
    if _musicbrainz_limiter is None:
        _musicbrainz_limiter = SlidingWindowRateLimiter(config=config, name="musicbrainz")
    return _musicbrainz_limiter
