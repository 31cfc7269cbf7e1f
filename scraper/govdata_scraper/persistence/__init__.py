"""Persistence helpers for raw records and the canonical entity graph."""

from .entities import EntityRepository, SimilarEntity, SqlEntityRepository, SubawardPair, UnlinkedContract
from .upsert import PageWriteResult, UpsertOutcome, UpsertSink, build_upsert_statement, dedupe_records

__all__ = [
    "EntityRepository",
    "SimilarEntity",
    "SqlEntityRepository",
    "SubawardPair",
    "UnlinkedContract",
    "PageWriteResult",
    "UpsertOutcome",
    "UpsertSink",
    "build_upsert_statement",
    "dedupe_records",
]
