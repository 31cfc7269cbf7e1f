"""
Database helpers for the ingestion service.

Provides synchronous session management for Celery tasks and the
invocation endpoint, plus a single namespace exposing every ORM model.

Usage:
    from govdata_scraper.db import db_models, get_session
"""

from __future__ import annotations

from contextlib import contextmanager
from types import SimpleNamespace
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from ..config import settings
from ..logging import logger
from .base import Base
from .entities import CoreEntity, CoreRelationship
from .records import (
    Contract,
    FpdsAward,
    Grant,
    GsaLaborRate,
    NsfAward,
    Opportunity,
    SamEntity,
    SamExclusion,
    SbirAward,
    Subaward,
)
from .runs import RunStatus, VacuumRun

# Unified namespace exposing all ORM models
db_models = SimpleNamespace(
    Base=Base,
    RunStatus=RunStatus,
    # Raw records
    Contract=Contract,
    Grant=Grant,
    Subaward=Subaward,
    Opportunity=Opportunity,
    SbirAward=SbirAward,
    NsfAward=NsfAward,
    SamEntity=SamEntity,
    SamExclusion=SamExclusion,
    FpdsAward=FpdsAward,
    GsaLaborRate=GsaLaborRate,
    # Canonical graph
    CoreEntity=CoreEntity,
    CoreRelationship=CoreRelationship,
    # Run log
    VacuumRun=VacuumRun,
)


engine = create_engine(
    settings.database_url,
    echo=settings.sql_echo,
    future=True,
    pool_pre_ping=True,
)
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    class_=Session,
)


@contextmanager
def get_session() -> Iterator[Session]:
    """
    Provide a transactional database session context manager.

    Commits on clean exit, rolls back and re-raises on error.

    Usage:
        with get_session() as session:
            session.add(obj)
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception as exc:  # pragma: no cover
        session.rollback()
        logger.exception("db_session_rollback", error=str(exc))
        raise
    finally:
        session.close()


__all__ = ["Base", "db_models", "engine", "get_session", "SessionLocal"]
