"""Adaptive token-bucket rate limiting per upstream provider."""

from __future__ import annotations

import threading
import time
from typing import Callable

from ..config import RateLimitConfig
from ..logging import logger


class AdaptiveRateLimiter:
    """Token bucket whose refill rate halves on 429s and recovers on success.

    ``acquire`` blocks the calling thread until a token is available or a
    back-off window imposed by ``on_rate_limited`` has passed. The clock and
    sleep functions are injectable so tests never wait on wall time.
    """

    def __init__(
        self,
        name: str,
        config: RateLimitConfig,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.name = name
        self.steady_rate = config.requests_per_second
        self.min_rate = min(config.min_requests_per_second, config.requests_per_second)
        self.burst = max(1, config.burst)
        self.recovery_step = config.recovery_step
        self.max_backoff = config.max_backoff_seconds
        self.rate = self.steady_rate
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(self.burst)
        self._updated = clock()
        self._blocked_until = 0.0
        self._lock = threading.Lock()

    def _refill(self, now: float) -> None:
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)
        self._updated = now

    def acquire(self) -> float:
        """Take one token, sleeping as needed. Returns the seconds waited."""
        waited = 0.0
        while True:
            with self._lock:
                now = self._clock()
                if now < self._blocked_until:
                    delay = self._blocked_until - now
                else:
                    self._refill(now)
                    if self._tokens >= 1.0:
                        self._tokens -= 1.0
                        return waited
                    delay = (1.0 - self._tokens) / self.rate
            self._sleep(delay)
            waited += delay

    def on_rate_limited(self, retry_after: float | None = None) -> float:
        """Halve the rate and block further calls for the back-off window."""
        delay = self.max_backoff if retry_after is None else min(max(retry_after, 0.0), self.max_backoff)
        with self._lock:
            previous = self.rate
            self.rate = max(self.min_rate, self.rate / 2)
            self._tokens = 0.0
            self._updated = self._clock()
            self._blocked_until = self._updated + delay
        logger.warning(
            "source_rate_limited",
            limiter=self.name,
            previous_rate=round(previous, 3),
            new_rate=round(self.rate, 3),
            backoff_seconds=round(delay, 1),
        )
        return delay

    def on_success(self) -> None:
        with self._lock:
            if self.rate < self.steady_rate:
                self.rate = min(self.steady_rate, self.rate + self.recovery_step)
