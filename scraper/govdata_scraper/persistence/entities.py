"""Canonical entity and relationship persistence.

``SqlEntityRepository`` is the database-backed implementation of the
lookups and writes the entity resolution pass needs. The resolver only
talks to this interface, so tests can swap in an in-memory repository.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any, Iterable, Protocol

from sqlalchemy import func, inspect, literal_column, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from ..db import db_models
from ..utils.parsing import match_name, normalize_name


@dataclass(frozen=True)
class UnlinkedContract:
    recipient_name: str
    recipient_uei: str | None
    pop_state: str | None
    naics_code: str | None


@dataclass(frozen=True)
class SimilarEntity:
    entity_id: int
    uei: str | None
    state: str | None
    similarity: float


@dataclass(frozen=True)
class SubawardPair:
    prime_recipient_name: str
    prime_recipient_uei: str | None
    sub_awardee_name: str
    awarding_agency: str | None
    subaward_amount: float


class EntityRepository(Protocol):
    def savepoint(self) -> AbstractContextManager[Any]: ...

    def unlinked_contracts(self, limit: int) -> list[UnlinkedContract]: ...

    def find_by_uei(self, uei: str) -> int | None: ...

    def find_by_name(self, normalized_name: str) -> int | None: ...

    def find_similar(self, name: str, threshold: float, limit: int = 5) -> list[SimilarEntity]: ...

    def create_entity(
        self,
        name: str,
        *,
        uei: str | None,
        state: str | None,
        naics_code: str | None,
    ) -> int: ...

    def link_contracts(self, normalized_name: str, entity_id: int) -> int: ...

    def refresh_totals(self, entity_ids: Iterable[int]) -> None: ...

    def subaward_pairs(self, limit: int) -> list[SubawardPair]: ...

    def upsert_edge(
        self,
        source_id: int,
        target_id: int,
        relationship_type: str,
        confidence: int,
        metadata: dict[str, Any],
    ) -> bool: ...


def _normalized_sql(column: Any) -> Any:
    """SQL mirror of ``normalize_name``: collapse whitespace, trim, upper-case."""
    return func.upper(func.trim(func.regexp_replace(column, r"\s+", " ", "g")))


class SqlEntityRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def savepoint(self) -> AbstractContextManager[Any]:
        return self.session.begin_nested()

    def unlinked_contracts(self, limit: int) -> list[UnlinkedContract]:
        Contract = db_models.Contract
        rows = self.session.execute(
            select(
                Contract.recipient_name,
                Contract.recipient_uei,
                Contract.pop_state,
                Contract.naics_code,
            )
            .where(
                Contract.recipient_entity_id.is_(None),
                Contract.recipient_name.is_not(None),
            )
            .order_by(Contract.id)
            .limit(limit)
        ).all()
        return [
            UnlinkedContract(
                recipient_name=row.recipient_name,
                recipient_uei=row.recipient_uei,
                pop_state=row.pop_state,
                naics_code=row.naics_code,
            )
            for row in rows
        ]

    def find_by_uei(self, uei: str) -> int | None:
        CoreEntity = db_models.CoreEntity
        return self.session.execute(
            select(CoreEntity.id).where(CoreEntity.uei == uei).limit(1)
        ).scalar_one_or_none()

    def find_by_name(self, normalized_name: str) -> int | None:
        CoreEntity = db_models.CoreEntity
        return self.session.execute(
            select(CoreEntity.id)
            .where(CoreEntity.normalized_name == normalized_name)
            .order_by(CoreEntity.id)
            .limit(1)
        ).scalar_one_or_none()

    def find_similar(self, name: str, threshold: float, limit: int = 5) -> list[SimilarEntity]:
        """Entities whose match name has pg_trgm similarity >= ``threshold``, best first."""
        key = match_name(name)
        if not key:
            return []
        CoreEntity = db_models.CoreEntity
        score = func.similarity(CoreEntity.match_name, key)
        rows = self.session.execute(
            select(CoreEntity.id, CoreEntity.uei, CoreEntity.state, score.label("similarity"))
            .where(
                CoreEntity.match_name.op("%")(key),
                score >= threshold,
            )
            .order_by(score.desc(), CoreEntity.id)
            .limit(limit)
        ).all()
        return [
            SimilarEntity(entity_id=row.id, uei=row.uei, state=row.state, similarity=float(row.similarity))
            for row in rows
        ]

    def create_entity(
        self,
        name: str,
        *,
        uei: str | None,
        state: str | None,
        naics_code: str | None,
    ) -> int:
        normalized = normalize_name(name)
        if not normalized:
            raise ValueError("Refusing to create an entity with a blank name")
        entity = db_models.CoreEntity(
            canonical_name=" ".join(name.split()),
            normalized_name=normalized,
            match_name=match_name(name),
            entity_type="organization",
            uei=uei,
            state=state,
            naics_codes=[naics_code] if naics_code else [],
        )
        self.session.add(entity)
        self.session.flush()
        return entity.id

    def link_contracts(self, normalized_name: str, entity_id: int) -> int:
        Contract = db_models.Contract
        result = self.session.execute(
            update(Contract)
            .where(
                Contract.recipient_entity_id.is_(None),
                _normalized_sql(Contract.recipient_name) == normalized_name,
            )
            .values(recipient_entity_id=entity_id, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    def refresh_totals(self, entity_ids: Iterable[int]) -> None:
        ids = sorted(set(entity_ids))
        if not ids:
            return
        Contract = db_models.Contract
        CoreEntity = db_models.CoreEntity
        total_value = (
            select(func.coalesce(func.sum(Contract.award_amount), 0.0))
            .where(Contract.recipient_entity_id == CoreEntity.id)
            .scalar_subquery()
        )
        contract_count = (
            select(func.count(Contract.id))
            .where(Contract.recipient_entity_id == CoreEntity.id)
            .scalar_subquery()
        )
        self.session.execute(
            update(CoreEntity)
            .where(CoreEntity.id.in_(ids))
            .values(
                total_contract_value=total_value,
                contract_count=contract_count,
                updated_at=func.now(),
            )
            .execution_options(synchronize_session=False)
        )

    def subaward_pairs(self, limit: int) -> list[SubawardPair]:
        Subaward = db_models.Subaward
        rows = self.session.execute(
            select(
                Subaward.prime_recipient_name,
                Subaward.prime_recipient_uei,
                Subaward.sub_awardee_name,
                Subaward.awarding_agency,
                Subaward.subaward_amount,
            )
            .where(
                Subaward.prime_recipient_name.is_not(None),
                Subaward.sub_awardee_name.is_not(None),
            )
            .order_by(Subaward.id.desc())
            .limit(limit)
        ).all()
        return [
            SubawardPair(
                prime_recipient_name=row.prime_recipient_name,
                prime_recipient_uei=row.prime_recipient_uei,
                sub_awardee_name=row.sub_awardee_name,
                awarding_agency=row.awarding_agency,
                subaward_amount=row.subaward_amount or 0.0,
            )
            for row in rows
        ]

    def upsert_edge(
        self,
        source_id: int,
        target_id: int,
        relationship_type: str,
        confidence: int,
        metadata: dict[str, Any],
    ) -> bool:
        """Insert or refresh one edge. Returns True when the edge is new."""
        CoreRelationship = db_models.CoreRelationship
        table = CoreRelationship.__table__
        # Attribute ``edge_metadata`` maps to the "metadata" column
        metadata_column = inspect(CoreRelationship).columns["edge_metadata"]
        stmt = insert(table).values(
            {
                table.c.source_entity_id: source_id,
                table.c.target_entity_id: target_id,
                table.c.relationship_type: relationship_type,
                table.c.confidence: confidence,
                metadata_column: metadata,
            }
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["source_entity_id", "target_entity_id", "relationship_type"],
            set_={
                table.c.confidence: stmt.excluded.confidence,
                metadata_column: stmt.excluded[metadata_column.key],
                table.c.updated_at: func.now(),
            },
        ).returning(literal_column("(xmax = 0)").label("inserted"))
        return bool(self.session.execute(stmt).scalar())
