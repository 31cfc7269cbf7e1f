"""Run orchestration, run records and the entity resolution pass."""

from .entity_resolution import EntityResolver, ResolutionStats, run_entity_resolution
from .modes import InvalidRunRequest, ModePreset, SourceStep, resolve_mode, resolve_targeted
from .run_manager import VacuumRunManager, run_fill_source, run_vacuum

__all__ = [
    "EntityResolver",
    "InvalidRunRequest",
    "ModePreset",
    "ResolutionStats",
    "SourceStep",
    "VacuumRunManager",
    "resolve_mode",
    "resolve_targeted",
    "run_entity_resolution",
    "run_fill_source",
    "run_vacuum",
]
