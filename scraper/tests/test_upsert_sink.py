"""Tests for persistence/upsert.py."""

from __future__ import annotations

from unittest.mock import MagicMock

from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError, OperationalError

from govdata_scraper.errors import ErrorCollector
from govdata_scraper.models import NormalizedContract, NormalizedSbirAward
from govdata_scraper.persistence import UpsertOutcome, UpsertSink, build_upsert_statement, dedupe_records
from govdata_scraper.sources import ContractsAdapter, SbirAwardsAdapter


def _sql(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect()))


def _contract(award_id: str = "CONT_AWD_1", amount: float = 100.0) -> NormalizedContract:
    return NormalizedContract(award_id=award_id, recipient_name="Acme", award_amount=amount)


def _sbir(contract: str = "FA8650-24-C-1", agency: str = "DOD") -> NormalizedSbirAward:
    return NormalizedSbirAward(firm="Rocket Co", contract=contract, agency=agency)


def _session(rowcount: int = 1) -> MagicMock:
    session = MagicMock()
    session.execute.return_value.rowcount = rowcount
    return session


def _factory(session: MagicMock) -> MagicMock:
    factory = MagicMock()
    factory.return_value.__enter__.return_value = session
    return factory


class TestBuildUpsertStatement:
    def test_refreshing_target_overwrites_non_key_columns(self):
        sql = _sql(build_upsert_statement(ContractsAdapter.target, _contract().to_row()))

        assert "ON CONFLICT (award_id) DO UPDATE SET" in sql
        assert "recipient_name = excluded.recipient_name" in sql
        assert "award_amount = excluded.award_amount" in sql
        assert "updated_at = now()" in sql
        assert "award_id = excluded.award_id" not in sql

    def test_append_only_target_does_nothing_on_conflict(self):
        sql = _sql(build_upsert_statement(SbirAwardsAdapter.target, _sbir().to_row()))

        assert "ON CONFLICT (contract, agency) DO NOTHING" in sql
        assert "DO UPDATE" not in sql


class TestDedupe:
    def test_last_occurrence_wins(self):
        records = [_contract("A", 1.0), _contract("B", 2.0), _contract("A", 3.0)]

        unique = dedupe_records(ContractsAdapter.target, records)

        assert [(r.award_id, r.award_amount) for r in unique] == [("A", 3.0), ("B", 2.0)]

    def test_composite_key(self):
        records = [_sbir("C1", "DOD"), _sbir("C1", "NASA"), _sbir("C1", "DOD")]

        assert len(dedupe_records(SbirAwardsAdapter.target, records)) == 2


class TestUpsertSink:
    def test_write_counts_written_rows(self):
        session = _session(rowcount=1)
        sink = UpsertSink(session_factory=_factory(session))

        result = sink.write_page(ContractsAdapter.target, [_contract("A"), _contract("B")], ErrorCollector())

        assert result.written == 2
        assert result.failed == 0
        assert session.begin_nested.call_count == 2

    def test_duplicate_on_append_only_table_is_skipped_not_errored(self):
        session = _session(rowcount=0)
        sink = UpsertSink(session_factory=_factory(session))
        errors = ErrorCollector()

        result = sink.write_page(SbirAwardsAdapter.target, [_sbir()], errors)

        assert result.written == 0
        assert result.skipped == 1
        assert len(errors) == 0

    def test_refresh_reingest_counts_as_written(self):
        # DO UPDATE reports rowcount 1 whether the row was inserted or updated
        session = _session(rowcount=1)
        sink = UpsertSink(session_factory=_factory(session))

        first = sink.write_page(ContractsAdapter.target, [_contract("A")], ErrorCollector())
        second = sink.write_page(ContractsAdapter.target, [_contract("A")], ErrorCollector())

        assert first.written == second.written == 1

    def test_failed_record_is_recorded_and_batch_continues(self):
        session = MagicMock()
        ok = MagicMock(rowcount=1)
        session.execute.side_effect = [
            IntegrityError("INSERT", {}, Exception("value too long for type character varying(50)")),
            ok,
        ]
        sink = UpsertSink(session_factory=_factory(session))
        errors = ErrorCollector()

        result = sink.write_page(ContractsAdapter.target, [_contract("A"), _contract("B")], errors, source="contracts")

        assert result.failed == 1
        assert result.written == 1
        assert errors.messages == ["contracts upsert A: value too long for type character varying(50)"]

    def test_upsert_returns_failed_outcome(self):
        session = MagicMock()
        session.execute.side_effect = OperationalError("INSERT", {}, Exception("server closed the connection"))

        outcome = UpsertSink(session_factory=_factory(session)).upsert(session, ContractsAdapter.target, _contract())

        assert outcome is UpsertOutcome.FAILED

    def test_empty_page_opens_no_session(self):
        factory = _factory(_session())

        result = UpsertSink(session_factory=factory).write_page(ContractsAdapter.target, [], ErrorCollector())

        assert result.written == 0
        factory.assert_not_called()
