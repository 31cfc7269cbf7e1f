"""Celery app configuration for the vacuum worker."""

from __future__ import annotations

from celery import Celery, signals
from celery.schedules import crontab

from .config import settings
from .logging import logger

VACUUM_QUEUE = "govdata-vacuum"

celery_config = {
    "task_serializer": "json",
    "accept_content": ["json"],
    "result_serializer": "json",
    "timezone": "UTC",
    "enable_utc": True,
    "task_track_started": True,
    "worker_prefetch_multiplier": 1,
    "task_time_limit": settings.vacuum_config.task_time_limit_seconds,
    "task_soft_time_limit": settings.vacuum_config.task_time_limit_seconds - 300,
    "task_default_queue": VACUUM_QUEUE,
}

app = Celery(
    "govdata-scraper",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["govdata_scraper.jobs.tasks"],
)
app.conf.update(**celery_config)
app.conf.task_routes = {
    "run_vacuum": {"queue": VACUUM_QUEUE, "routing_key": VACUUM_QUEUE},
    "run_fill_source": {"queue": VACUUM_QUEUE, "routing_key": VACUUM_QUEUE},
    "mark_stale_runs": {"queue": VACUUM_QUEUE, "routing_key": VACUUM_QUEUE},
}
# Times are UTC
app.conf.beat_schedule = {
    "daily-quick-vacuum": {
        "task": "run_vacuum",
        "schedule": crontab(minute=0, hour=9),
        "kwargs": {"payload": {"mode": "quick", "trigger": "scheduled"}},
        "options": {"queue": VACUUM_QUEUE, "routing_key": VACUUM_QUEUE},
    },
    "weekly-full-vacuum": {
        "task": "run_vacuum",
        "schedule": crontab(minute=0, hour=4, day_of_week="sun"),
        "kwargs": {"payload": {"mode": "full", "trigger": "scheduled"}},
        "options": {"queue": VACUUM_QUEUE, "routing_key": VACUUM_QUEUE},
    },
}


@signals.worker_ready.connect
def on_worker_ready(sender=None, **kwargs):
    """Fail runs a previous worker left in ``running``."""
    worker_name = getattr(sender, "hostname", None) or "unknown"
    logger.info("celery_worker_ready", worker=worker_name)
    try:
        from .jobs.tasks import mark_stale_runs_task

        mark_stale_runs_task()
    except Exception as exc:
        logger.exception("failed_to_mark_stale_runs", error=str(exc))
