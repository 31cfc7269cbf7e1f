"""Base class for paginated government-data source adapters.

An adapter knows one upstream endpoint: how to split the work into
partitions (a state, an agency-year, a keyword), how to request page N of
a partition and how to turn the response into normalized records. Paging,
termination and transient retries live here so every adapter stops for
the same reasons.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Iterator

from pydantic import ValidationError
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from ..config import settings
from ..errors import ErrorCollector, FetchError, FetchErrorKind
from ..fetch import Fetcher
from ..logging import logger
from ..models import RawRecord


@dataclass(frozen=True)
class UpsertTarget:
    """Destination table plus the natural key the sink conflicts on."""

    model: type
    conflict_keys: tuple[str, ...]
    ignore_duplicates: bool = False

    @property
    def table_name(self) -> str:
        return self.model.__tablename__


@dataclass
class SourcePlan:
    """How much of a source one run should pull."""

    states: list[str] = field(default_factory=list)
    max_pages: int = 1
    agencies: list[str] = field(default_factory=list)
    years: list[int] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    departments: list[str] = field(default_factory=list)
    lookback_days: int | None = None
    timeout: float | None = None


@dataclass
class Partition:
    key: str
    max_pages: int
    params: dict[str, Any] = field(default_factory=dict)
    timeout: float | None = None


@dataclass
class PageRequest:
    url: str
    method: str = "GET"
    params: dict[str, Any] | None = None
    json: Any = None
    timeout: float | None = None


@dataclass
class Page:
    partition: Partition
    number: int
    records: list[RawRecord]
    raw_count: int


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, FetchError) and exc.retryable


class BaseSourceAdapter:
    """Shared paging loop for every upstream source."""

    name: ClassVar[str]
    label: ClassVar[str]
    target: ClassVar[UpsertTarget]
    rate_key: ClassVar[str]
    page_size: ClassVar[int] = 100
    requires_api_key: ClassVar[bool] = False

    def __init__(
        self,
        fetcher: Fetcher,
        *,
        api_key: str | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.fetcher = fetcher
        self.api_key = api_key
        self._sleep = sleep

    # -------------------------------------------------------------------------
    # Adapter hooks
    # -------------------------------------------------------------------------
    def partitions(self, plan: SourcePlan) -> list[Partition]:
        raise NotImplementedError

    def build_request(self, partition: Partition, page: int) -> PageRequest:
        """Request for 1-based page ``page`` of ``partition``."""
        raise NotImplementedError

    def extract_items(self, payload: Any) -> list[dict[str, Any]]:
        """Pull the list of raw result objects out of a response body."""
        raise NotImplementedError

    def normalize(self, item: dict[str, Any], partition: Partition) -> RawRecord | None:
        """Map one raw object to a record; None when its natural key is missing."""
        raise NotImplementedError

    # -------------------------------------------------------------------------
    # Fetching
    # -------------------------------------------------------------------------
    def _fetch_once(self, request: PageRequest) -> Any:
        result = self.fetcher.fetch(
            request.url,
            method=request.method,
            params=request.params,
            json=request.json,
            timeout=request.timeout,
            rate_key=self.rate_key,
        )
        if result.error is not None:
            raise result.error
        return result.payload

    def fetch_json(self, request: PageRequest) -> Any:
        """Fetch a request, retrying timeouts, network errors and 5xx only."""
        config = settings.fetch_config
        retrying = Retrying(
            wait=wait_exponential(
                multiplier=1,
                min=config.retry_wait_min_seconds,
                max=config.retry_wait_max_seconds,
            ),
            stop=stop_after_attempt(config.transient_retry_attempts),
            retry=retry_if_exception(_is_retryable),
            sleep=self._sleep,
            reraise=True,
        )
        return retrying(self._fetch_once, request)

    def fetch_with_fallback(
        self,
        primary: PageRequest,
        fallback: PageRequest,
        *,
        labels: tuple[str, str] = ("primary", "fallback"),
    ) -> Any:
        """Fetch ``primary``; on a non-throttling failure try ``fallback``."""
        try:
            return self.fetch_json(primary)
        except FetchError as exc:
            if exc.kind in (FetchErrorKind.RATE_LIMITED, FetchErrorKind.CIRCUIT_OPEN):
                raise
            first = exc
        logger.info("source_fallback_endpoint", source=self.name, error=first.describe())
        try:
            return self.fetch_json(fallback)
        except FetchError as exc:
            raise FetchError(
                exc.kind,
                exc.message,
                url=exc.url,
                status_code=exc.status_code,
                retry_after=exc.retry_after,
                detail=f"{labels[0]}={first.describe()} {labels[1]}={exc.describe()}",
            ) from exc

    def fetch_page(self, partition: Partition, page: int) -> Any:
        return self.fetch_json(self.build_request(partition, page))

    def parse_page(self, payload: Any, partition: Partition, number: int = 1) -> Page:
        """Turn one response body into a ``Page`` of records.

        ``raw_count`` is the number of upstream results, which drives the
        short-page stop rule even when some results are dropped.
        """
        items = self.extract_items(payload)
        records = self._normalize_items(items, partition)
        return Page(partition=partition, number=number, records=records, raw_count=len(items))

    def _normalize_items(self, items: list[dict[str, Any]], partition: Partition) -> list[RawRecord]:
        records: list[RawRecord] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            try:
                record = self.normalize(item, partition)
            except ValidationError as exc:
                logger.warning(
                    "source_record_invalid",
                    source=self.name,
                    partition=partition.key,
                    error=str(exc),
                )
                continue
            if record is None:
                logger.debug("source_record_missing_key", source=self.name, partition=partition.key)
                continue
            records.append(record)
        return records

    # -------------------------------------------------------------------------
    # Paging
    # -------------------------------------------------------------------------
    def iter_pages(self, partition: Partition, errors: ErrorCollector) -> Iterator[Page]:
        """Yield pages of one partition until a stop condition is met.

        Stops after a short page, on an empty page, at the partition's page
        ceiling, or on a failed fetch. A failure is recorded in ``errors``
        and the rest of the partition is skipped; it is never raised.
        """
        for number in range(1, partition.max_pages + 1):
            try:
                payload = self.fetch_page(partition, number)
            except FetchError as exc:
                errors.add(f"{self.label} {partition.key} p{number}: {exc.describe()}")
                logger.warning(
                    "source_page_failed",
                    source=self.name,
                    partition=partition.key,
                    page=number,
                    error_kind=exc.kind.value,
                    error=exc.describe(),
                )
                return

            page = self.parse_page(payload, partition, number)
            if not page.raw_count:
                logger.debug("source_partition_exhausted", source=self.name, partition=partition.key, page=number)
                return

            logger.info(
                "source_page_fetched",
                source=self.name,
                partition=partition.key,
                page=number,
                results=page.raw_count,
                records=len(page.records),
            )
            yield page

            if page.raw_count < self.page_size:
                return
