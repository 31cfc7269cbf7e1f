"""Error taxonomy for ingestion runs.

Fetch failures travel as values (``FetchError`` inside a ``FetchResult``)
so a single bad page never unwinds a run. Storage and configuration
problems are raised and caught at the innermost loop that can recover.
"""

from __future__ import annotations

from enum import Enum


class IngestError(RuntimeError):
    """Base class for ingestion failures."""


class FetchErrorKind(str, Enum):
    TIMEOUT = "timeout"
    NETWORK = "network"
    HTTP_STATUS = "http_status"
    RATE_LIMITED = "rate_limited"
    CIRCUIT_OPEN = "circuit_open"
    DECODE = "decode"


class FetchError(IngestError):
    """A failed call to an upstream API."""

    def __init__(
        self,
        kind: FetchErrorKind,
        message: str,
        *,
        url: str | None = None,
        status_code: int | None = None,
        retry_after: float | None = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.url = url
        self.status_code = status_code
        self.retry_after = retry_after
        self.detail = detail

    @property
    def transient(self) -> bool:
        """Whether retrying the same request later can succeed."""
        if self.kind in (FetchErrorKind.TIMEOUT, FetchErrorKind.NETWORK, FetchErrorKind.RATE_LIMITED):
            return True
        if self.kind == FetchErrorKind.HTTP_STATUS and self.status_code is not None:
            return self.status_code >= 500
        return False

    @property
    def retryable(self) -> bool:
        """Transient failures an adapter may retry immediately (not 429s)."""
        return self.transient and self.kind != FetchErrorKind.RATE_LIMITED

    def describe(self) -> str:
        if self.detail:
            return self.detail
        if self.kind == FetchErrorKind.RATE_LIMITED:
            return "429 rate limited"
        if self.kind == FetchErrorKind.HTTP_STATUS:
            return str(self.status_code)
        if self.kind == FetchErrorKind.TIMEOUT:
            return "timeout"
        return self.message


class StorageError(IngestError):
    """A failed upsert of a single record."""

    def __init__(self, source: str, key: str, message: str) -> None:
        super().__init__(f"{source} upsert {key}: {message}")
        self.source = source
        self.key = key


class ConfigurationError(IngestError):
    """A required credential or setting is absent; the source is skipped."""


class FatalRunError(IngestError):
    """A run aborted outside any per-source guard."""


class ErrorCollector:
    """Error strings gathered by one source execution.

    Owned by whoever runs the source and merged into the run summary by
    the orchestrator.
    """

    def __init__(self) -> None:
        self.messages: list[str] = []

    def add(self, message: str) -> None:
        self.messages.append(message)

    def extend(self, other: ErrorCollector | list[str]) -> None:
        messages = other.messages if isinstance(other, ErrorCollector) else other
        self.messages.extend(messages)

    def __len__(self) -> int:
        return len(self.messages)

    def __iter__(self):
        return iter(self.messages)
