"""Run manager that orchestrates one vacuum run across its sources."""

from __future__ import annotations

import time
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError

from ..config import settings
from ..db import db_models
from ..errors import ConfigurationError, ErrorCollector, FatalRunError
from ..fetch import Fetcher
from ..logging import logger
from ..models import InvocationRequest, RunSummary, SourceResult
from ..persistence import UpsertSink
from ..sources import get_adapter_class
from ..utils.redis_lock import RunLock
from .entity_resolution import ResolutionStats, run_entity_resolution
from .modes import ENRICHMENT_SOURCE, ModePreset, SourceStep, resolve_mode, resolve_targeted
from .vacuum_runs import complete_vacuum_run, start_vacuum_run

RunStatus = db_models.RunStatus


class VacuumRunManager:
    """Executes a ``ModePreset``: lock, record, ingest, resolve, finalize.

    Sources run sequentially in preset order. A failure inside one source
    is recorded and the next source still runs; only a failure outside
    every per-source guard fails the run.
    """

    def __init__(
        self,
        *,
        fetcher: Fetcher | None = None,
        sink: UpsertSink | None = None,
        resolver: Callable[[], ResolutionStats] = run_entity_resolution,
        api_key: str | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetcher = fetcher
        self._owns_fetcher = fetcher is None
        self.sink = sink or UpsertSink()
        self.resolver = resolver
        self.api_key = api_key if api_key is not None else settings.sam_key
        self._sleep = sleep
        self._clock = clock

    @property
    def fetcher(self) -> Fetcher:
        if self._fetcher is None:
            self._fetcher = Fetcher()
        return self._fetcher

    def run(self, preset: ModePreset, *, trigger: str = "manual") -> RunSummary:
        lock = RunLock(preset.lock_key)
        if not lock.acquire():
            logger.warning("vacuum_run_skipped_locked", mode=preset.mode, source=preset.source, lock=lock.name)
            return RunSummary(status=RunStatus.skipped.value, mode=preset.mode, source=preset.source)

        try:
            return self._execute(preset, trigger, lock)
        finally:
            lock.release()
            if self._owns_fetcher and self._fetcher is not None:
                self._fetcher.close()
                self._fetcher = None

    def _execute(self, preset: ModePreset, trigger: str, lock: RunLock) -> RunSummary:
        started = self._clock()
        errors = ErrorCollector()
        sources: list[SourceResult] = []
        run_id: int | None = None

        logger.info(
            "vacuum_run_config",
            mode=preset.mode,
            source=preset.source,
            trigger=trigger,
            steps=[step.source for step in preset.steps],
            enrichment=preset.enrichment,
        )

        try:
            try:
                run_id = start_vacuum_run(preset.mode, trigger, preset.source)
            except SQLAlchemyError as exc:
                raise FatalRunError(f"could not create run record: {exc}") from exc

            for step in preset.steps:
                sources.append(self.run_source(step, errors))
                lock.extend()
            if preset.enrichment:
                sources.append(self.run_enrichment(errors))
            status = RunStatus.completed_with_errors if len(errors) else RunStatus.completed
        except Exception as exc:
            logger.exception("vacuum_run_failed", run_id=run_id, mode=preset.mode, error=str(exc))
            errors.add(f"Fatal: {exc}")
            status = RunStatus.failed

        summary = RunSummary(
            status=status.value,
            mode=preset.mode,
            source=preset.source,
            run_id=run_id,
            duration_seconds=self._clock() - started,
            sources=sources,
            errors=errors.messages,
        )
        if run_id is not None:
            try:
                complete_vacuum_run(run_id, summary)
            except SQLAlchemyError as exc:
                logger.exception("vacuum_run_finalize_failed", run_id=run_id, error=str(exc))
                summary.status = RunStatus.failed.value
                summary.errors.append(f"Fatal: could not finalize run record: {exc}")
        return summary

    def run_source(self, step: SourceStep, errors: ErrorCollector) -> SourceResult:
        """Ingest every partition of one source; never raises for source-level failures."""
        result = SourceResult(source=step.source)
        source_errors = ErrorCollector()
        try:
            adapter_cls = get_adapter_class(step.source)
            if adapter_cls.requires_api_key and not self.api_key:
                raise ConfigurationError("skipped, SAM_API_KEY not configured")
            adapter = adapter_cls(self.fetcher, api_key=self.api_key, sleep=self._sleep)
            for partition in adapter.partitions(step.plan):
                for page in adapter.iter_pages(partition, source_errors):
                    written = self.sink.write_page(
                        adapter.target,
                        page.records,
                        source_errors,
                        source=step.source,
                    )
                    result.pages += 1
                    result.loaded += written.written
                    result.skipped += written.skipped + (page.raw_count - len(page.records))
        except ConfigurationError as exc:
            logger.warning("source_skipped_configuration", source=step.source, error=str(exc))
            source_errors.add(f"{step.source}: {exc}")
        except FatalRunError:
            raise
        except Exception as exc:
            logger.exception("source_failed", source=step.source, error=str(exc))
            source_errors.add(f"{step.source}: {exc}")

        result.errors = len(source_errors)
        errors.extend(source_errors)
        logger.info(
            "source_completed",
            source=step.source,
            loaded=result.loaded,
            skipped=result.skipped,
            pages=result.pages,
            errors=result.errors,
        )
        return result

    def run_enrichment(self, errors: ErrorCollector) -> SourceResult:
        result = SourceResult(source=ENRICHMENT_SOURCE)
        try:
            stats = self.resolver()
        except Exception as exc:
            logger.exception("enrichment_failed", error=str(exc))
            errors.add(f"{ENRICHMENT_SOURCE}: {exc}")
            result.errors = 1
            return result

        result.loaded = stats.loaded
        result.errors = len(stats.errors)
        errors.extend(stats.errors)
        return result


def run_vacuum(request: InvocationRequest, manager: VacuumRunManager | None = None) -> RunSummary:
    """Run a preset mode (``full``, ``quick`` ...)."""
    preset = resolve_mode(request)
    return (manager or VacuumRunManager()).run(preset, trigger=request.trigger)


def run_fill_source(request: InvocationRequest, manager: VacuumRunManager | None = None) -> RunSummary:
    """Run a single targeted source."""
    preset = resolve_targeted(request)
    return (manager or VacuumRunManager()).run(preset, trigger=request.trigger)
