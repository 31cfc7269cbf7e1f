"""Run presets: which sources a mode touches and how deep each goes.

Preset modes (``full``, ``quick`` ...) drive the scheduled vacuum. Targeted
runs (``fill-source``) pull one source with smaller defaults so they fit
inside a short request timeout.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Callable

from ..config import settings
from ..models import InvocationRequest
from ..sources import SourcePlan
from ..sources.nsf import NSF_KEYWORDS
from ..sources.sbir import SBIR_AGENCIES

ALL_STATES = [
    "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "DC", "FL", "GA", "HI", "ID",
    "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD", "MA", "MI", "MN", "MS", "MO",
    "MT", "NE", "NV", "NH", "NJ", "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA",
    "RI", "SC", "SD", "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY",
]
TOP5_STATES = ["MD", "VA", "DC", "CA", "TX"]

FULL_SBIR_YEARS = [2024, 2023, 2022]
QUICK_SBIR_YEARS = [2024]

ENRICHMENT_SOURCE = "enrichment"


def run_lock_key(mode: str, source: str | None = None) -> str:
    if source:
        return f"lock:vacuum:targeted:{source}"
    return f"lock:vacuum:{mode}"


class InvalidRunRequest(ValueError):
    """Unknown mode or targeted source."""


@dataclass
class SourceStep:
    source: str
    plan: SourcePlan


@dataclass
class ModePreset:
    mode: str
    steps: list[SourceStep] = field(default_factory=list)
    enrichment: bool = False
    source: str | None = None

    @property
    def lock_key(self) -> str:
        return run_lock_key(self.mode, self.source)


def _opportunities_plan(max_pages: int, lookback_days: int) -> SourcePlan:
    return SourcePlan(max_pages=max_pages, lookback_days=lookback_days)


def _full() -> ModePreset:
    lookback = settings.vacuum_config.opportunity_lookback_days
    return ModePreset(
        mode="full",
        steps=[
            SourceStep("contracts", SourcePlan(states=ALL_STATES, max_pages=5)),
            SourceStep("idvs", SourcePlan(states=ALL_STATES, max_pages=3)),
            SourceStep("grants", SourcePlan(states=ALL_STATES, max_pages=4)),
            SourceStep("subawards", SourcePlan(states=ALL_STATES, max_pages=2)),
            SourceStep("opportunities", _opportunities_plan(10, lookback)),
            SourceStep("sbir_awards", SourcePlan(agencies=SBIR_AGENCIES, years=FULL_SBIR_YEARS)),
            SourceStep("sam_entities", SourcePlan(states=ALL_STATES, max_pages=3)),
            SourceStep("exclusions", SourcePlan(max_pages=10)),
            SourceStep("nsf_awards", SourcePlan(max_pages=3)),
            SourceStep("fpds_awards", SourcePlan(max_pages=3)),
        ],
        enrichment=True,
    )


def _quick() -> ModePreset:
    lookback = settings.vacuum_config.opportunity_lookback_days
    return ModePreset(
        mode="quick",
        steps=[
            SourceStep("contracts", SourcePlan(states=TOP5_STATES, max_pages=2)),
            SourceStep("grants", SourcePlan(states=TOP5_STATES, max_pages=2)),
            SourceStep("opportunities", _opportunities_plan(10, lookback)),
            SourceStep("sbir_awards", SourcePlan(agencies=SBIR_AGENCIES, years=QUICK_SBIR_YEARS)),
        ],
        enrichment=True,
    )


def _contracts_only() -> ModePreset:
    return ModePreset(
        mode="contracts-only",
        steps=[
            SourceStep("contracts", SourcePlan(states=ALL_STATES, max_pages=5)),
            SourceStep("idvs", SourcePlan(states=ALL_STATES, max_pages=3)),
        ],
    )


def _grants_only() -> ModePreset:
    return ModePreset(
        mode="grants-only",
        steps=[SourceStep("grants", SourcePlan(states=ALL_STATES, max_pages=4))],
    )


def _sbir_only() -> ModePreset:
    return ModePreset(
        mode="sbir-only",
        steps=[SourceStep("sbir_awards", SourcePlan(agencies=SBIR_AGENCIES, years=FULL_SBIR_YEARS))],
    )


def _opportunities_only() -> ModePreset:
    lookback = settings.vacuum_config.opportunity_lookback_days
    return ModePreset(
        mode="opportunities-only",
        steps=[SourceStep("opportunities", _opportunities_plan(10, lookback))],
    )


MODE_PRESETS: dict[str, Callable[[], ModePreset]] = {
    "full": _full,
    "quick": _quick,
    "contracts-only": _contracts_only,
    "grants-only": _grants_only,
    "sbir-only": _sbir_only,
    "opportunities-only": _opportunities_only,
}


def _targeted_plan(source: str, request: InvocationRequest) -> tuple[str, SourcePlan]:
    timeout = settings.fetch_config.targeted_timeout_seconds
    states = request.states
    if source == "sbir":
        return "sbir_awards", SourcePlan(
            agencies=request.agencies or SBIR_AGENCIES,
            years=request.years or FULL_SBIR_YEARS,
            timeout=timeout,
        )
    if source == "nsf":
        return "nsf_awards", SourcePlan(
            keywords=request.keywords or NSF_KEYWORDS[:6],
            max_pages=2,
            timeout=timeout,
        )
    if source == "labor-rates":
        return "labor_rates", SourcePlan(keywords=request.keywords or [], timeout=timeout)
    if source == "idvs":
        return "idvs", SourcePlan(states=states or ALL_STATES[:10], max_pages=3, timeout=timeout)
    if source == "subawards":
        return "subawards", SourcePlan(states=states or ALL_STATES[:10], max_pages=2, timeout=timeout)
    if source == "sam-entities":
        return "sam_entities", SourcePlan(states=states or ALL_STATES[:8], max_pages=3, timeout=timeout)
    if source == "exclusions":
        return "exclusions", SourcePlan(max_pages=10, timeout=timeout)
    if source == "opportunities":
        return "opportunities", SourcePlan(
            max_pages=20,
            lookback_days=settings.vacuum_config.targeted_opportunity_lookback_days,
            timeout=timeout,
        )
    raise InvalidRunRequest(f"Unknown source: {source}")


TARGETED_SOURCES = (
    "sbir",
    "nsf",
    "labor-rates",
    "idvs",
    "subawards",
    "sam-entities",
    "exclusions",
    "opportunities",
)


def resolve_mode(request: InvocationRequest) -> ModePreset:
    """Build the preset for a vacuum run, applying agency/year overrides."""
    builder = MODE_PRESETS.get(request.mode)
    if builder is None:
        raise InvalidRunRequest(f"Unknown mode: {request.mode}")
    preset = builder()
    if request.agencies or request.years:
        for step in preset.steps:
            if step.source == "sbir_awards":
                step.plan = replace(
                    step.plan,
                    agencies=request.agencies or step.plan.agencies,
                    years=request.years or step.plan.years,
                )
    return preset


def resolve_targeted(request: InvocationRequest) -> ModePreset:
    """Build a single-source preset for a fill-source run."""
    if not request.source:
        raise InvalidRunRequest("source is required")
    source, plan = _targeted_plan(request.source, request)
    return ModePreset(mode="targeted", steps=[SourceStep(source, plan)], source=request.source)
