"""Rate-limited HTTP fetcher shared by every source adapter.

Network and HTTP failures come back as ``FetchResult(error=...)`` instead
of exceptions. The fetcher never retries; adapters decide what is worth a
second attempt.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from ..config import settings
from ..errors import FetchError, FetchErrorKind
from ..logging import logger
from .circuit_breaker import CircuitBreaker
from .rate_limit import AdaptiveRateLimiter


@dataclass
class FetchResult:
    url: str
    response: httpx.Response | None = None
    payload: Any = None
    error: FetchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def status_code(self) -> int | None:
        return self.response.status_code if self.response is not None else None

    def json(self) -> Any:
        return self.payload


def _truncate_body(body: str | None, limit: int = 300) -> str | None:
    if not body:
        return None
    if len(body) <= limit:
        return body
    return f"{body[:limit]}..."


def _parse_retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        # HTTP-date form; fall back to the limiter's max back-off
        return None


class Fetcher:
    """HTTP client with per-provider rate limiters and a per-host breaker."""

    def __init__(
        self,
        *,
        client: httpx.Client | None = None,
        limiters: dict[str, AdaptiveRateLimiter] | None = None,
        breaker: CircuitBreaker | None = None,
        default_timeout: float | None = None,
    ) -> None:
        self.default_timeout = default_timeout or settings.fetch_config.request_timeout_seconds
        self.client = client or httpx.Client(
            headers={
                "User-Agent": settings.fetch_config.user_agent,
                "Accept": "application/json",
            },
            timeout=self.default_timeout,
            follow_redirects=True,
        )
        self.limiters: dict[str, AdaptiveRateLimiter] = dict(limiters or {})
        self.breaker = breaker or CircuitBreaker(settings.circuit_breaker)

    def limiter_for(self, rate_key: str) -> AdaptiveRateLimiter:
        limiter = self.limiters.get(rate_key)
        if limiter is None:
            limiter = AdaptiveRateLimiter(rate_key, settings.rate_limit_for(rate_key))
            self.limiters[rate_key] = limiter
        return limiter

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> Fetcher:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        params: dict[str, Any] | None = None,
        json: Any = None,
        timeout: float | None = None,
        rate_key: str = "default",
    ) -> FetchResult:
        host = httpx.URL(url).host
        if not self.breaker.allow(host):
            return FetchResult(
                url=url,
                error=FetchError(FetchErrorKind.CIRCUIT_OPEN, f"circuit open for {host}", url=url),
            )

        limiter = self.limiter_for(rate_key)
        limiter.acquire()

        try:
            response = self.client.request(
                method,
                url,
                params=params,
                json=json,
                timeout=timeout or self.default_timeout,
            )
        except httpx.TimeoutException as exc:
            self.breaker.record_failure(host)
            logger.warning("fetch_timeout", url=url, error=str(exc))
            return FetchResult(url=url, error=FetchError(FetchErrorKind.TIMEOUT, "timeout", url=url))
        except httpx.HTTPError as exc:
            self.breaker.record_failure(host)
            logger.warning("fetch_network_error", url=url, error=str(exc))
            return FetchResult(url=url, error=FetchError(FetchErrorKind.NETWORK, str(exc) or "network error", url=url))

        status = response.status_code
        if status == 429:
            retry_after = _parse_retry_after(response)
            limiter.on_rate_limited(retry_after)
            return FetchResult(
                url=url,
                response=response,
                error=FetchError(
                    FetchErrorKind.RATE_LIMITED,
                    "rate limited",
                    url=url,
                    status_code=status,
                    retry_after=retry_after,
                ),
            )
        if status >= 400:
            if status >= 500:
                self.breaker.record_failure(host)
            else:
                self.breaker.record_success(host)
            logger.warning(
                "fetch_http_error",
                url=url,
                status=status,
                body=_truncate_body(response.text),
            )
            return FetchResult(
                url=url,
                response=response,
                error=FetchError(FetchErrorKind.HTTP_STATUS, f"HTTP {status}", url=url, status_code=status),
            )

        self.breaker.record_success(host)
        limiter.on_success()
        try:
            payload = response.json()
        except ValueError as exc:
            logger.warning("fetch_decode_error", url=url, body=_truncate_body(response.text))
            return FetchResult(
                url=url,
                response=response,
                error=FetchError(FetchErrorKind.DECODE, f"invalid JSON: {exc}", url=url, status_code=status),
            )

        logger.debug("fetch_ok", url=url, status=status)
        return FetchResult(url=url, response=response, payload=payload)
