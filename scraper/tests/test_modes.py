"""Tests for services/modes.py."""

from __future__ import annotations

import pytest

from govdata_scraper.models import InvocationRequest
from govdata_scraper.services.modes import (
    ALL_STATES,
    MODE_PRESETS,
    TARGETED_SOURCES,
    TOP5_STATES,
    InvalidRunRequest,
    resolve_mode,
    resolve_targeted,
)
from govdata_scraper.sources import ADAPTERS
from govdata_scraper.sources.nsf import NSF_KEYWORDS
from govdata_scraper.sources.sbir import SBIR_AGENCIES


def _steps(preset):
    return {step.source: step.plan for step in preset.steps}


class TestPresets:
    def test_full_touches_every_bulk_source(self):
        preset = resolve_mode(InvocationRequest(mode="full"))

        assert [step.source for step in preset.steps] == [
            "contracts",
            "idvs",
            "grants",
            "subawards",
            "opportunities",
            "sbir_awards",
            "sam_entities",
            "exclusions",
            "nsf_awards",
            "fpds_awards",
        ]
        plans = _steps(preset)
        assert plans["contracts"].states == ALL_STATES
        assert plans["contracts"].max_pages == 5
        assert plans["sbir_awards"].years == [2024, 2023, 2022]
        assert plans["opportunities"].lookback_days == 90
        assert preset.enrichment

    def test_quick_uses_top_five_states(self):
        plans = _steps(resolve_mode(InvocationRequest(mode="quick")))

        assert set(plans) == {"contracts", "grants", "opportunities", "sbir_awards"}
        assert plans["contracts"].states == TOP5_STATES
        assert plans["contracts"].max_pages == 2
        assert plans["sbir_awards"].years == [2024]

    def test_single_source_modes_skip_enrichment(self):
        for mode in ("contracts-only", "grants-only", "sbir-only", "opportunities-only"):
            assert not resolve_mode(InvocationRequest(mode=mode)).enrichment

    def test_every_step_has_an_adapter(self):
        for builder in MODE_PRESETS.values():
            for step in builder().steps:
                assert step.source in ADAPTERS

    def test_agency_and_year_overrides_apply_to_sbir(self):
        preset = resolve_mode(InvocationRequest(mode="sbir-only", agencies=["nasa"], years=[2024]))

        plan = _steps(preset)["sbir_awards"]
        assert plan.agencies == ["NASA"]
        assert plan.years == [2024]

    def test_presets_are_not_shared_between_calls(self):
        resolve_mode(InvocationRequest(mode="sbir-only", agencies=["NASA"]))

        plan = _steps(resolve_mode(InvocationRequest(mode="sbir-only")))["sbir_awards"]
        assert plan.agencies == SBIR_AGENCIES

    def test_unknown_mode(self):
        with pytest.raises(InvalidRunRequest):
            resolve_mode(InvocationRequest(mode="everything"))

    def test_lock_key_per_mode(self):
        assert resolve_mode(InvocationRequest(mode="quick")).lock_key == "lock:vacuum:quick"


class TestTargeted:
    def test_every_targeted_source_resolves(self):
        for source in TARGETED_SOURCES:
            preset = resolve_targeted(InvocationRequest(source=source))
            assert preset.mode == "targeted"
            assert preset.lock_key == f"lock:vacuum:targeted:{source}"
            assert preset.steps[0].plan.timeout == 25

    def test_defaults(self):
        idvs = resolve_targeted(InvocationRequest(source="idvs")).steps[0].plan
        sam = resolve_targeted(InvocationRequest(source="sam-entities")).steps[0].plan
        nsf = resolve_targeted(InvocationRequest(source="nsf")).steps[0].plan
        opps = resolve_targeted(InvocationRequest(source="opportunities")).steps[0].plan

        assert idvs.states == ALL_STATES[:10]
        assert sam.states == ALL_STATES[:8]
        assert nsf.keywords == NSF_KEYWORDS[:6]
        assert nsf.max_pages == 2
        assert opps.max_pages == 20
        assert opps.lookback_days == 180

    def test_state_override(self):
        preset = resolve_targeted(InvocationRequest(source="subawards", states=["va", "md"]))

        assert preset.steps[0].source == "subawards"
        assert preset.steps[0].plan.states == ["VA", "MD"]

    def test_source_names_map_to_adapters(self):
        assert resolve_targeted(InvocationRequest(source="labor-rates")).steps[0].source == "labor_rates"
        assert resolve_targeted(InvocationRequest(source="sbir")).steps[0].source == "sbir_awards"

    def test_missing_or_unknown_source(self):
        with pytest.raises(InvalidRunRequest):
            resolve_targeted(InvocationRequest())
        with pytest.raises(InvalidRunRequest):
            resolve_targeted(InvocationRequest(source="weather"))
