"""Idempotent writes of normalized records into their raw tables.

Every write is ``INSERT ... ON CONFLICT (<natural key>)``. Tables whose
rows are refreshed on re-ingest use ``DO UPDATE``; append-only tables use
``DO NOTHING`` and report the conflict as a skip. Each record runs inside
its own SAVEPOINT so one bad row does not abort the rest of the page.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Sequence

from sqlalchemy import func
from sqlalchemy.dialects.postgresql import Insert, insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import get_session
from ..errors import ErrorCollector, StorageError
from ..logging import logger
from ..models import RawRecord
from ..sources.base import UpsertTarget


class UpsertOutcome(Enum):
    """Result of a single record upsert."""

    WRITTEN = "written"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class PageWriteResult:
    written: int = 0
    skipped: int = 0
    failed: int = 0


def record_key(target: UpsertTarget, row: dict[str, Any]) -> str:
    return "/".join(str(row.get(column)) for column in target.conflict_keys)


def dedupe_records(target: UpsertTarget, records: Sequence[RawRecord]) -> list[RawRecord]:
    """Collapse records sharing a natural key; the last occurrence wins."""
    by_key: dict[tuple[Any, ...], RawRecord] = {}
    for record in records:
        row = record.to_row()
        by_key[tuple(row.get(column) for column in target.conflict_keys)] = record
    return list(by_key.values())


def build_upsert_statement(target: UpsertTarget, row: dict[str, Any]) -> Insert:
    stmt = insert(target.model).values(**row)
    index_elements = list(target.conflict_keys)
    if target.ignore_duplicates:
        return stmt.on_conflict_do_nothing(index_elements=index_elements)

    set_ = {
        column: stmt.excluded[column]
        for column in row
        if column not in target.conflict_keys
    }
    if "updated_at" in target.model.__table__.c:
        set_["updated_at"] = func.now()
    return stmt.on_conflict_do_update(index_elements=index_elements, set_=set_)


def _error_message(exc: SQLAlchemyError) -> str:
    detail = str(getattr(exc, "orig", None) or exc)
    return detail.strip().splitlines()[0][:200] if detail.strip() else exc.__class__.__name__


class UpsertSink:
    """Writes pages of records through a session factory."""

    def __init__(self, session_factory: Callable[[], AbstractContextManager[Session]] = get_session) -> None:
        self.session_factory = session_factory

    def upsert(
        self,
        session: Session,
        target: UpsertTarget,
        record: RawRecord,
        errors: ErrorCollector | None = None,
        *,
        source: str | None = None,
    ) -> UpsertOutcome:
        row = record.to_row()
        stmt = build_upsert_statement(target, row)
        try:
            with session.begin_nested():
                result = session.execute(stmt)
        except SQLAlchemyError as exc:
            error = StorageError(source or target.table_name, record_key(target, row), _error_message(exc))
            logger.warning(
                "upsert_failed",
                table=target.table_name,
                key=error.key,
                error=str(error),
            )
            if errors is not None:
                errors.add(str(error))
            return UpsertOutcome.FAILED

        if target.ignore_duplicates and result.rowcount == 0:
            return UpsertOutcome.SKIPPED
        return UpsertOutcome.WRITTEN

    def write_page(
        self,
        target: UpsertTarget,
        records: Sequence[RawRecord],
        errors: ErrorCollector,
        *,
        source: str | None = None,
    ) -> PageWriteResult:
        result = PageWriteResult()
        unique_records = dedupe_records(target, records)
        if not unique_records:
            return result

        with self.session_factory() as session:
            for record in unique_records:
                outcome = self.upsert(session, target, record, errors, source=source)
                if outcome is UpsertOutcome.WRITTEN:
                    result.written += 1
                elif outcome is UpsertOutcome.SKIPPED:
                    result.skipped += 1
                else:
                    result.failed += 1

        logger.debug(
            "page_written",
            table=target.table_name,
            written=result.written,
            skipped=result.skipped,
            failed=result.failed,
        )
        return result
