"""Canonical entity and relationship-edge models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import text

from .base import Base


class CoreEntity(Base):
    """Deduplicated organization or person across raw source records."""

    __tablename__ = "core_entities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    canonical_name: Mapped[str] = mapped_column(Text, nullable=False)
    # Upper-cased, whitespace-collapsed canonical_name used for exact matching
    normalized_name: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    # normalized_name without punctuation or legal suffixes, compared with pg_trgm
    match_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    entity_type: Mapped[str] = mapped_column(String(30), nullable=False, server_default="organization")
    uei: Mapped[str | None] = mapped_column(String(20), nullable=True, unique=True)
    duns: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    ein: Mapped[str | None] = mapped_column(String(20), nullable=True)
    state: Mapped[str | None] = mapped_column(String(10), nullable=True)
    naics_codes: Mapped[list[str]] = mapped_column(
        JSONB, server_default=text("'[]'::jsonb"), nullable=False
    )
    identifiers: Mapped[dict[str, Any]] = mapped_column(
        JSONB, server_default=text("'{}'::jsonb"), nullable=False
    )
    merged_data: Mapped[dict[str, Any]] = mapped_column(
        JSONB, server_default=text("'{}'::jsonb"), nullable=False
    )
    source_records: Mapped[dict[str, Any]] = mapped_column(
        JSONB, server_default=text("'{}'::jsonb"), nullable=False
    )
    total_contract_value: Mapped[float] = mapped_column(Float, nullable=False, server_default="0")
    contract_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint("length(trim(canonical_name)) > 0", name="ck_core_entities_name_not_blank"),
        Index(
            "idx_core_entities_match_name_trgm",
            "match_name",
            postgresql_using="gin",
            postgresql_ops={"match_name": "gin_trgm_ops"},
        ),
    )


class CoreRelationship(Base):
    """Directed edge between two canonical entities (e.g. subcontracts_to)."""

    __tablename__ = "core_relationships"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    source_entity_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("core_entities.id", ondelete="CASCADE"), nullable=False
    )
    target_entity_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("core_entities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    relationship_type: Mapped[str] = mapped_column(String(50), nullable=False)
    confidence: Mapped[int] = mapped_column(Integer, nullable=False, server_default="50")
    # "metadata" is reserved on declarative classes
    edge_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSONB, server_default=text("'{}'::jsonb"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "source_entity_id",
            "target_entity_id",
            "relationship_type",
            name="uq_core_relationship_edge",
        ),
        CheckConstraint("source_entity_id <> target_entity_id", name="ck_core_relationship_distinct"),
        Index("idx_core_relationships_type", "relationship_type"),
    )
