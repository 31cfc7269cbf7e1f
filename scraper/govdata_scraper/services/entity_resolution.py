"""Entity resolution pass: link contract recipients to canonical entities.

Runs after ingestion. Unlinked contract recipients are matched by UEI,
then by normalized name, then by pg_trgm similarity of their match names,
and otherwise become new ``core_entities`` rows.
Subaward prime/sub pairs whose parties both resolve become
``subcontracts_to`` edges; teaming never creates entities.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..config import settings
from ..logging import logger
from ..persistence.entities import EntityRepository, SimilarEntity, SubawardPair, UnlinkedContract
from ..utils.parsing import normalize_name

TEAMING_RELATIONSHIP = "subcontracts_to"
TEAMING_CONFIDENCE = 95
# A similar name in the same state is enough; elsewhere the name must be near-identical
SIMILARITY_AUTO_ACCEPT = 0.9


@dataclass
class ResolutionStats:
    linked: int = 0
    created: int = 0
    edges: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def loaded(self) -> int:
        return self.linked + self.created + self.edges


class EntityResolver:
    """One resolution pass over a bounded batch of contracts and subawards.

    The UEI and name caches live for the whole pass, so two records with
    the same UEI resolve to the same entity even before the first one's
    row is visible to a fresh query.
    """

    def __init__(
        self,
        repository: EntityRepository,
        *,
        batch_size: int | None = None,
        similarity_threshold: float | None = None,
    ) -> None:
        self.repository = repository
        self.batch_size = batch_size or settings.vacuum_config.resolution_batch_size
        self.similarity_threshold = similarity_threshold or settings.vacuum_config.similarity_threshold
        self._by_uei: dict[str, int] = {}
        self._by_name: dict[str, int] = {}

    def run(self) -> ResolutionStats:
        stats = ResolutionStats()
        self.resolve_recipients(stats)
        self.build_teaming_edges(stats)
        logger.info(
            "entity_resolution_completed",
            linked=stats.linked,
            created=stats.created,
            edges=stats.edges,
            errors=len(stats.errors),
        )
        return stats

    # -------------------------------------------------------------------------
    # Recipients
    # -------------------------------------------------------------------------
    def _lookup(self, name: str, uei: str | None, state: str | None = None) -> int | None:
        if uei:
            entity_id = self._by_uei.get(uei)
            if entity_id is None:
                entity_id = self.repository.find_by_uei(uei)
            if entity_id is not None:
                return entity_id
        entity_id = self._by_name.get(name)
        if entity_id is None:
            entity_id = self.repository.find_by_name(name)
        if entity_id is None:
            entity_id = self._similar(name, uei, state)
        return entity_id

    def _similar(self, name: str, uei: str | None, state: str | None) -> int | None:
        candidates: list[SimilarEntity] = [
            candidate
            for candidate in self.repository.find_similar(name, self.similarity_threshold)
            if not (uei and candidate.uei and candidate.uei != uei)
        ]
        if not candidates:
            return None
        if state:
            for candidate in candidates:
                if candidate.state == state:
                    return candidate.entity_id
        best = candidates[0]
        if best.similarity > SIMILARITY_AUTO_ACCEPT:
            logger.debug("entity_fuzzy_match", name=name, entity_id=best.entity_id, similarity=best.similarity)
            return best.entity_id
        return None

    def _remember(self, name: str, uei: str | None, entity_id: int) -> None:
        self._by_name.setdefault(name, entity_id)
        if uei:
            self._by_uei.setdefault(uei, entity_id)

    def _resolve_contract(self, contract: UnlinkedContract, name: str) -> tuple[int, bool]:
        entity_id = self._lookup(name, contract.recipient_uei, contract.pop_state)
        if entity_id is not None:
            return entity_id, False
        entity_id = self.repository.create_entity(
            contract.recipient_name,
            uei=contract.recipient_uei,
            state=contract.pop_state,
            naics_code=contract.naics_code,
        )
        return entity_id, True

    def resolve_recipients(self, stats: ResolutionStats) -> None:
        touched: set[int] = set()
        seen: set[str] = set()
        for contract in self.repository.unlinked_contracts(self.batch_size):
            name = normalize_name(contract.recipient_name)
            if not name or name in seen:
                continue
            seen.add(name)
            try:
                with self.repository.savepoint():
                    entity_id, created = self._resolve_contract(contract, name)
                    contracts_linked = self.repository.link_contracts(name, entity_id)
            except Exception as exc:
                logger.warning("entity_resolution_failed", recipient=contract.recipient_name, error=str(exc))
                stats.errors.append(f"Enrichment {contract.recipient_name}: {exc}")
                continue

            self._remember(name, contract.recipient_uei, entity_id)
            touched.add(entity_id)
            stats.linked += 1
            if created:
                stats.created += 1
            logger.debug(
                "entity_resolved",
                recipient=name,
                entity_id=entity_id,
                created=created,
                contracts_linked=contracts_linked,
            )

        if touched:
            self.repository.refresh_totals(touched)

    # -------------------------------------------------------------------------
    # Teaming
    # -------------------------------------------------------------------------
    def _teaming_edge(self, pair: SubawardPair) -> bool:
        prime_name = normalize_name(pair.prime_recipient_name)
        sub_name = normalize_name(pair.sub_awardee_name)
        if not prime_name or not sub_name:
            return False
        prime_id = self._lookup(prime_name, pair.prime_recipient_uei)
        sub_id = self._lookup(sub_name, None)
        if prime_id is None or sub_id is None or prime_id == sub_id:
            return False
        return self.repository.upsert_edge(
            prime_id,
            sub_id,
            TEAMING_RELATIONSHIP,
            TEAMING_CONFIDENCE,
            {"agency": pair.awarding_agency, "value": pair.subaward_amount},
        )

    def build_teaming_edges(self, stats: ResolutionStats) -> None:
        for pair in self.repository.subaward_pairs(self.batch_size):
            try:
                with self.repository.savepoint():
                    inserted = self._teaming_edge(pair)
            except Exception as exc:
                logger.warning(
                    "teaming_edge_failed",
                    prime=pair.prime_recipient_name,
                    sub=pair.sub_awardee_name,
                    error=str(exc),
                )
                stats.errors.append(
                    f"Enrichment teaming {pair.prime_recipient_name} -> {pair.sub_awardee_name}: {exc}"
                )
                continue
            if inserted:
                stats.edges += 1


def run_entity_resolution(batch_size: int | None = None) -> ResolutionStats:
    """Run one resolution pass in its own transaction."""
    from ..db import get_session
    from ..persistence.entities import SqlEntityRepository

    with get_session() as session:
        return EntityResolver(SqlEntityRepository(session), batch_size=batch_size).run()
