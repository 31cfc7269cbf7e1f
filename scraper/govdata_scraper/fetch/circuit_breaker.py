"""Per-host circuit breaker.

After ``max_consecutive_failures`` timeouts, network errors or 5xx
responses from one host, calls to that host are refused for the cool-down
period. The first call after the cool-down is let through; a further
failure re-opens the circuit immediately.
"""

from __future__ import annotations

import threading
import time
from typing import Callable

from ..config import CircuitBreakerConfig
from ..logging import logger


class CircuitBreaker:
    def __init__(
        self,
        config: CircuitBreakerConfig,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_failures = config.max_consecutive_failures
        self.cooldown = config.cooldown_seconds
        self._clock = clock
        self._failures: dict[str, int] = {}
        self._opened_at: dict[str, float] = {}
        self._lock = threading.Lock()

    def allow(self, host: str) -> bool:
        with self._lock:
            opened_at = self._opened_at.get(host)
            if opened_at is None:
                return True
            if self._clock() - opened_at >= self.cooldown:
                # Half-open: one trial call, one more failure re-opens
                del self._opened_at[host]
                self._failures[host] = self.max_failures - 1
                logger.info("circuit_half_open", host=host)
                return True
            return False

    def is_open(self, host: str) -> bool:
        return host in self._opened_at

    def record_success(self, host: str) -> None:
        with self._lock:
            self._failures.pop(host, None)
            self._opened_at.pop(host, None)

    def record_failure(self, host: str) -> None:
        with self._lock:
            failures = self._failures.get(host, 0) + 1
            self._failures[host] = failures
            if failures >= self.max_failures and host not in self._opened_at:
                self._opened_at[host] = self._clock()
                logger.warning(
                    "circuit_opened",
                    host=host,
                    consecutive_failures=failures,
                    cooldown_seconds=self.cooldown,
                )
