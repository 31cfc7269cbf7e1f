"""Celery tasks that run vacuum and fill-source jobs."""

from __future__ import annotations

from typing import Any

from celery import shared_task

from ..logging import logger
from ..models import InvocationRequest
from ..services import run_fill_source, run_vacuum
from ..services.vacuum_runs import mark_stale_runs_failed


@shared_task(name="run_vacuum")
def run_vacuum_task(payload: dict[str, Any] | None = None) -> dict[str, Any]:
    """Run a preset vacuum mode. ``payload`` has the same shape as the HTTP body."""
    request = InvocationRequest.model_validate(payload or {})
    logger.info("vacuum_task_started", mode=request.mode, trigger=request.trigger)
    summary = run_vacuum(request)
    logger.info(
        "vacuum_task_completed",
        mode=request.mode,
        status=summary.status,
        total_loaded=summary.total_loaded,
        total_errors=summary.total_errors,
    )
    return summary.to_response()


@shared_task(name="run_fill_source")
def run_fill_source_task(payload: dict[str, Any]) -> dict[str, Any]:
    """Run one targeted source."""
    request = InvocationRequest.model_validate(payload)
    logger.info("fill_source_task_started", source=request.source, trigger=request.trigger)
    summary = run_fill_source(request)
    logger.info(
        "fill_source_task_completed",
        source=request.source,
        status=summary.status,
        total_loaded=summary.total_loaded,
    )
    return summary.to_response()


@shared_task(name="mark_stale_runs")
def mark_stale_runs_task() -> dict[str, int]:
    return {"marked_failed": mark_stale_runs_failed()}
