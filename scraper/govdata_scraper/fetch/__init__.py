"""Rate-limited HTTP fetching."""

from .circuit_breaker import CircuitBreaker
from .http import Fetcher, FetchResult
from .rate_limit import AdaptiveRateLimiter

__all__ = ["AdaptiveRateLimiter", "CircuitBreaker", "Fetcher", "FetchResult"]
