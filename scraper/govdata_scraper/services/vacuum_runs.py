"""Helpers for recording vacuum runs in ``vacuum_runs``."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

from sqlalchemy import desc, select

from ..config import settings
from ..db import db_models, get_session
from ..logging import logger
from ..models import RunSummary
from ..utils.datetime_utils import now_utc
from ..utils.redis_lock import lock_is_held
from .modes import run_lock_key


def start_vacuum_run(mode: str, trigger: str, source: str | None = None) -> int:
    """Create a running vacuum run record and return its ID."""
    with get_session() as session:
        run = db_models.VacuumRun(
            mode=mode,
            source=source,
            trigger=trigger,
            status=db_models.RunStatus.running.value,
            results={"mode": mode},
            started_at=now_utc(),
        )
        session.add(run)
        session.flush()
        run_id = int(run.id)
        logger.info("vacuum_run_started", run_id=run_id, mode=mode, source=source, trigger=trigger)
        return run_id


def complete_vacuum_run(run_id: int, summary: RunSummary) -> None:
    """Finalize a vacuum run with per-source counters, errors and duration."""
    with get_session() as session:
        run = session.get(db_models.VacuumRun, run_id)
        if not run:
            logger.error("vacuum_run_missing", run_id=run_id)
            return
        run.status = summary.status
        run.results = {
            "mode": summary.mode,
            "sources": summary.results_payload(),
            "total_loaded": summary.total_loaded,
            "total_errors": summary.total_errors,
        }
        run.errors = list(summary.errors)
        run.total_loaded = summary.total_loaded
        run.total_errors = summary.total_errors
        run.duration_seconds = round(summary.duration_seconds, 1)
        run.completed_at = now_utc()
        session.flush()
        logger.info(
            "vacuum_run_completed",
            run_id=run_id,
            mode=summary.mode,
            status=summary.status,
            total_loaded=summary.total_loaded,
            total_errors=summary.total_errors,
        )


def serialize_run(run: Any) -> dict[str, Any]:
    return {
        "id": run.id,
        "mode": run.mode,
        "source": run.source,
        "trigger": run.trigger,
        "status": run.status,
        "results": run.results or {},
        "errors": run.errors or [],
        "total_loaded": run.total_loaded,
        "total_errors": run.total_errors,
        "duration_seconds": run.duration_seconds,
        "started_at": run.started_at.isoformat() if run.started_at else None,
        "completed_at": run.completed_at.isoformat() if run.completed_at else None,
    }


def list_recent_runs(limit: int = 20) -> list[dict[str, Any]]:
    with get_session() as session:
        runs = session.execute(
            select(db_models.VacuumRun)
            .order_by(desc(db_models.VacuumRun.started_at))
            .limit(limit)
        ).scalars().all()
        return [serialize_run(run) for run in runs]


def get_run(run_id: int) -> dict[str, Any] | None:
    with get_session() as session:
        run = session.get(db_models.VacuumRun, run_id)
        return serialize_run(run) if run else None


def mark_stale_runs_failed(max_age_seconds: int | None = None) -> int:
    """Fail runs left in ``running`` by a killed worker.

    A run is stale once it is older than the task time limit and its mode's
    run lock is no longer held; a live run extends its lock after every
    source, so a held lock means some process is still working on it.
    """
    max_age = max_age_seconds or settings.vacuum_config.task_time_limit_seconds
    threshold = now_utc() - timedelta(seconds=max_age)
    with get_session() as session:
        candidates = session.execute(
            select(db_models.VacuumRun).where(
                db_models.VacuumRun.status == db_models.RunStatus.running.value,
                db_models.VacuumRun.started_at < threshold,
            )
        ).scalars().all()
        stale_runs = [run for run in candidates if not lock_is_held(run_lock_key(run.mode, run.source))]
        for run in stale_runs:
            run.status = db_models.RunStatus.failed.value
            run.completed_at = now_utc()
            run.errors = list(run.errors or []) + ["Run was interrupted (worker shutdown or timeout)"]
            run.total_errors = len(run.errors)
            logger.warning("marking_stale_run_failed", run_id=run.id, started_at=str(run.started_at))
        if stale_runs:
            logger.info("stale_runs_marked_failed", count=len(stale_runs))
        return len(stale_runs)
