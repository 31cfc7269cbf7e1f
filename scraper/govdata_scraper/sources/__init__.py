"""Source adapters, keyed by the source name used in run results."""

from __future__ import annotations

from .base import (
    BaseSourceAdapter,
    Page,
    PageRequest,
    Partition,
    SourcePlan,
    UpsertTarget,
)
from .gsa_calc import LaborRatesAdapter
from .nsf import NsfAwardsAdapter
from .sam import ExclusionsAdapter, FpdsAwardsAdapter, OpportunitiesAdapter, SamEntitiesAdapter
from .sbir import SbirAwardsAdapter
from .usaspending import ContractsAdapter, GrantsAdapter, IdvsAdapter, SubawardsAdapter

ADAPTERS: dict[str, type[BaseSourceAdapter]] = {
    adapter.name: adapter
    for adapter in (
        ContractsAdapter,
        IdvsAdapter,
        GrantsAdapter,
        SubawardsAdapter,
        OpportunitiesAdapter,
        SbirAwardsAdapter,
        SamEntitiesAdapter,
        ExclusionsAdapter,
        NsfAwardsAdapter,
        FpdsAwardsAdapter,
        LaborRatesAdapter,
    )
}


def get_adapter_class(name: str) -> type[BaseSourceAdapter]:
    try:
        return ADAPTERS[name]
    except KeyError:
        raise ValueError(f"Unknown source: {name}") from None


__all__ = [
    "ADAPTERS",
    "BaseSourceAdapter",
    "ContractsAdapter",
    "ExclusionsAdapter",
    "FpdsAwardsAdapter",
    "GrantsAdapter",
    "IdvsAdapter",
    "LaborRatesAdapter",
    "NsfAwardsAdapter",
    "OpportunitiesAdapter",
    "Page",
    "PageRequest",
    "Partition",
    "SamEntitiesAdapter",
    "SbirAwardsAdapter",
    "SourcePlan",
    "SubawardsAdapter",
    "UpsertTarget",
    "get_adapter_class",
]
