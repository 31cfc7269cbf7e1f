"""Tests for services/vacuum_runs.py."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

from govdata_scraper.config import settings
from govdata_scraper.models import RunSummary, SourceResult
from govdata_scraper.services.vacuum_runs import (
    complete_vacuum_run,
    get_run,
    mark_stale_runs_failed,
    serialize_run,
    start_vacuum_run,
)

MODULE = "govdata_scraper.services.vacuum_runs"


class TestStartVacuumRun:
    @patch(f"{MODULE}.get_session")
    def test_creates_running_record(self, mock_get_session):
        mock_session = MagicMock()
        mock_get_session.return_value.__enter__.return_value = mock_session

        def assign_id():
            mock_session.add.call_args[0][0].id = 11

        mock_session.flush.side_effect = assign_id

        run_id = start_vacuum_run("quick", "scheduled")

        run = mock_session.add.call_args[0][0]
        assert run_id == 11
        assert run.status == "running"
        assert run.mode == "quick"
        assert run.trigger == "scheduled"
        assert run.results == {"mode": "quick"}


class TestCompleteVacuumRun:
    @patch(f"{MODULE}.get_session")
    def test_persists_counters_and_totals(self, mock_get_session):
        mock_session = MagicMock()
        run = MagicMock()
        mock_session.get.return_value = run
        mock_get_session.return_value.__enter__.return_value = mock_session
        summary = RunSummary(
            status="completed_with_errors",
            mode="quick",
            duration_seconds=61.26,
            sources=[
                SourceResult(source="contracts", loaded=10, pages=2),
                SourceResult(source="enrichment", loaded=4, errors=1),
            ],
            errors=["Enrichment X: bad"],
        )

        complete_vacuum_run(11, summary)

        assert run.status == "completed_with_errors"
        assert run.total_loaded == 14
        assert run.total_errors == 1
        assert run.duration_seconds == 61.3
        assert run.errors == ["Enrichment X: bad"]
        assert run.results["sources"]["contracts"] == {"loaded": 10, "skipped": 0, "errors": 0, "pages": 2}
        assert run.results["total_loaded"] == sum(s["loaded"] for s in run.results["sources"].values())
        assert run.completed_at is not None

    @patch(f"{MODULE}.get_session")
    def test_missing_run_is_logged_not_raised(self, mock_get_session):
        mock_session = MagicMock()
        mock_session.get.return_value = None
        mock_get_session.return_value.__enter__.return_value = mock_session

        complete_vacuum_run(99, RunSummary(status="completed", mode="full"))

        mock_session.flush.assert_not_called()


class TestReadHelpers:
    def test_serialize_run(self):
        started = datetime(2025, 1, 5, 9, 0, tzinfo=UTC)
        run = MagicMock(
            id=3,
            mode="full",
            source=None,
            trigger="scheduled",
            status="completed",
            results={"mode": "full"},
            errors=[],
            total_loaded=100,
            total_errors=0,
            duration_seconds=12.5,
            started_at=started,
            completed_at=None,
        )

        data = serialize_run(run)

        assert data["started_at"] == "2025-01-05T09:00:00+00:00"
        assert data["completed_at"] is None
        assert data["total_loaded"] == 100

    @patch(f"{MODULE}.get_session")
    def test_get_run_missing(self, mock_get_session):
        mock_get_session.return_value.__enter__.return_value.get.return_value = None

        assert get_run(5) is None


class TestMarkStaleRuns:
    @patch(f"{MODULE}.lock_is_held", return_value=False)
    @patch(f"{MODULE}.get_session")
    def test_marks_running_rows_failed(self, mock_get_session, mock_lock_is_held):
        mock_session = MagicMock()
        stale = MagicMock(id=4, mode="full", source=None, errors=[], started_at=datetime(2025, 1, 1, tzinfo=UTC))
        mock_session.execute.return_value.scalars.return_value.all.return_value = [stale]
        mock_get_session.return_value.__enter__.return_value = mock_session

        count = mark_stale_runs_failed()

        assert count == 1
        assert stale.status == "failed"
        assert stale.total_errors == 1
        assert stale.completed_at is not None
        mock_lock_is_held.assert_called_once_with("lock:vacuum:full")

    @patch(f"{MODULE}.lock_is_held")
    @patch(f"{MODULE}.get_session")
    def test_run_whose_lock_is_held_stays_running(self, mock_get_session, mock_lock_is_held):
        mock_session = MagicMock()
        live = MagicMock(id=5, mode="full", source=None, status="running", errors=[])
        finished_worker = MagicMock(id=6, mode="targeted", source="sbir", status="running", errors=[])
        mock_session.execute.return_value.scalars.return_value.all.return_value = [live, finished_worker]
        mock_get_session.return_value.__enter__.return_value = mock_session
        mock_lock_is_held.side_effect = lambda key: key == "lock:vacuum:full"

        count = mark_stale_runs_failed()

        assert count == 1
        assert live.status == "running"
        assert finished_worker.status == "failed"

    @patch(f"{MODULE}.lock_is_held", return_value=False)
    @patch(f"{MODULE}.get_session")
    def test_age_threshold_defaults_to_task_time_limit(self, mock_get_session, _mock_lock_is_held):
        mock_session = MagicMock()
        mock_session.execute.return_value.scalars.return_value.all.return_value = []
        mock_get_session.return_value.__enter__.return_value = mock_session
        now = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)

        with patch(f"{MODULE}.now_utc", return_value=now):
            mark_stale_runs_failed()

        stmt = mock_session.execute.call_args[0][0]
        threshold = stmt.compile().params["started_at_1"]
        limit = settings.vacuum_config.task_time_limit_seconds
        assert (now - threshold).total_seconds() == limit
        assert settings.vacuum_config.run_lock_timeout_seconds > limit
