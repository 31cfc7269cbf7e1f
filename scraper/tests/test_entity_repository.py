"""Tests for the SQL-backed entity repository (statement shape only)."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from govdata_scraper.persistence import SqlEntityRepository


def _sql(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect()))


class TestSqlEntityRepository:
    def test_upsert_edge_conflicts_on_edge_identity(self):
        session = MagicMock()
        session.execute.return_value.scalar.return_value = True
        repo = SqlEntityRepository(session)

        inserted = repo.upsert_edge(1, 2, "subcontracts_to", 95, {"agency": "DOD", "value": 10.0})

        stmt = session.execute.call_args[0][0]
        sql = _sql(stmt)
        assert inserted is True
        assert "INSERT INTO core_relationships" in sql
        assert "metadata" in sql
        assert "ON CONFLICT (source_entity_id, target_entity_id, relationship_type) DO UPDATE" in sql
        assert "RETURNING (xmax = 0)" in sql

    def test_existing_edge_is_not_reported_as_new(self):
        session = MagicMock()
        session.execute.return_value.scalar.return_value = False

        assert SqlEntityRepository(session).upsert_edge(1, 2, "subcontracts_to", 95, {}) is False

    def test_link_contracts_matches_normalized_name(self):
        session = MagicMock()
        session.execute.return_value.rowcount = 3

        linked = SqlEntityRepository(session).link_contracts("ACME FEDERAL LLC", 7)

        sql = _sql(session.execute.call_args[0][0])
        assert linked == 3
        assert "UPDATE contracts SET recipient_entity_id" in sql
        assert "upper(trim(regexp_replace(contracts.recipient_name" in sql
        assert "contracts.recipient_entity_id IS NULL" in sql

    def test_create_entity_rejects_blank_name(self):
        repo = SqlEntityRepository(MagicMock())

        with pytest.raises(ValueError):
            repo.create_entity("   ", uei=None, state=None, naics_code=None)

    def test_create_entity_normalizes_name(self):
        session = MagicMock()
        repo = SqlEntityRepository(session)

        repo.create_entity("  Acme   Federal llc ", uei="U1", state="MD", naics_code="541512")

        entity = session.add.call_args[0][0]
        assert entity.canonical_name == "Acme Federal llc"
        assert entity.normalized_name == "ACME FEDERAL LLC"
        assert entity.entity_type == "organization"
        assert entity.naics_codes == ["541512"]
        assert entity.match_name == "ACME FEDERAL"

    def test_find_similar_ranks_by_trigram_similarity(self):
        session = MagicMock()
        session.execute.return_value.all.return_value = [
            SimpleNamespace(id=4, uei=None, state="VA", similarity=0.93),
        ]

        [match] = SqlEntityRepository(session).find_similar("Leidos, Inc.", 0.7)

        stmt = session.execute.call_args[0][0]
        sql = _sql(stmt)
        params = stmt.compile(dialect=postgresql.dialect()).params
        assert "similarity(core_entities.match_name" in sql
        assert "ORDER BY" in sql and "DESC" in sql
        assert "LEIDOS" in params.values()
        assert 0.7 in params.values()
        assert match.entity_id == 4
        assert match.similarity == 0.93

    def test_find_similar_skips_names_without_a_match_key(self):
        session = MagicMock()

        assert SqlEntityRepository(session).find_similar(" , ", 0.7) == []
        session.execute.assert_not_called()

    def test_refresh_totals_skips_empty_set(self):
        session = MagicMock()

        SqlEntityRepository(session).refresh_totals([])

        session.execute.assert_not_called()
