"""Pydantic models used by source adapters, the upsert sink and runs."""

from __future__ import annotations

from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RawRecord(BaseModel):
    """Base for normalized upstream rows; field names equal column names."""

    model_config = ConfigDict(extra="forbid")

    def to_row(self) -> dict[str, Any]:
        return self.model_dump()


class NormalizedContract(RawRecord):
    award_id: str
    recipient_name: str | None = None
    recipient_uei: str | None = None
    awarding_agency: str | None = None
    awarding_sub_agency: str | None = None
    funding_agency: str | None = None
    award_amount: float = 0.0
    total_obligation: float = 0.0
    description: str | None = None
    naics_code: str | None = None
    psc_code: str | None = None
    award_date: date | None = None
    start_date: date | None = None
    end_date: date | None = None
    pop_state: str | None = None
    pop_city: str | None = None
    award_type: str | None = None
    set_aside_type: str | None = None
    contract_category: Literal["contract", "idv"] = "contract"
    source: str = "usaspending_bulk"


class NormalizedGrant(RawRecord):
    award_id: str
    recipient_name: str | None = None
    recipient_uei: str | None = None
    awarding_agency: str | None = None
    awarding_sub_agency: str | None = None
    funding_agency: str | None = None
    award_amount: float = 0.0
    description: str | None = None
    award_date: date | None = None
    start_date: date | None = None
    end_date: date | None = None
    recipient_state: str | None = None
    recipient_city: str | None = None
    pop_state: str | None = None
    pop_city: str | None = None
    grant_type: str | None = None
    cfda_number: str | None = None
    grant_category: str = "grant"
    source: str = "usaspending_bulk"


class NormalizedSubaward(RawRecord):
    prime_award_id: str
    subaward_number: str
    subaward_amount: float = 0.0
    subaward_action_date: date | None = None
    subaward_description: str | None = None
    sub_awardee_name: str | None = None
    sub_awardee_city: str | None = None
    sub_awardee_state: str | None = None
    sub_awardee_zip: str | None = None
    sub_awardee_country: str | None = None
    prime_recipient_name: str | None = None
    prime_recipient_uei: str | None = None
    awarding_agency: str | None = None
    awarding_sub_agency: str | None = None
    naics_code: str | None = None


class NormalizedOpportunity(RawRecord):
    notice_id: str
    title: str | None = None
    solicitation_number: str | None = None
    department: str | None = None
    sub_tier: str | None = None
    office: str | None = None
    posted_date: date | None = None
    type: str | None = None
    base_type: str | None = None
    set_aside_type: str | None = None
    set_aside_code: str | None = None
    response_deadline: str | None = None
    naics_code: str | None = None
    classification_code: str | None = None
    active: bool = False
    award_date: date | None = None
    award_amount: float | None = None
    awardee_name: str | None = None
    awardee_uei: str | None = None
    raw_data: dict[str, Any] = Field(default_factory=dict)


class NormalizedSbirAward(RawRecord):
    firm: str
    award_title: str | None = None
    agency: str
    branch: str | None = None
    phase: str | None = None
    program: str | None = None
    contract: str
    award_year: int | None = None
    award_amount: float = 0.0
    uei: str | None = None
    hubzone_owned: str | None = None
    socially_disadvantaged: str | None = None
    women_owned: str | None = None
    number_employees: int | None = None
    company_url: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    poc_name: str | None = None
    poc_email: str | None = None
    pi_name: str | None = None
    abstract: str | None = None
    award_link: str | None = None


class NormalizedNsfAward(RawRecord):
    award_number: str
    title: str | None = None
    abstract: str | None = None
    award_amount: float = 0.0
    start_date: date | None = None
    exp_date: date | None = None
    pi_first_name: str | None = None
    pi_last_name: str | None = None
    institution_name: str | None = None
    institution_city: str | None = None
    institution_state: str | None = None
    institution_zip: str | None = None
    program_element: str | None = None
    fund_agency: str | None = None


class NormalizedSamEntity(RawRecord):
    uei: str
    cage_code: str | None = None
    legal_business_name: str | None = None
    dba_name: str | None = None
    registration_status: str | None = None
    purpose_of_registration: str | None = None
    registration_date: date | None = None
    expiration_date: date | None = None
    physical_city: str | None = None
    physical_state: str | None = None
    physical_zip: str | None = None
    physical_country: str | None = None
    entity_structure: str | None = None
    entity_url: str | None = None
    business_types: list[Any] = Field(default_factory=list)
    congressional_district: str | None = None


class NormalizedExclusion(RawRecord):
    classification: str | None = None
    exclusion_name: str
    exclusion_type: str | None = None
    exclusion_program: str | None = None
    excluding_agency: str | None = None
    uei: str | None = None
    cage_code: str | None = None
    active_date: date | None = None
    termination_date: str | None = None
    record_status: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    description: str | None = None


class NormalizedFpdsAward(RawRecord):
    piid: str
    modification_number: str = "0"
    contracting_department: str | None = None
    contracting_subtier: str | None = None
    contracting_office: str | None = None
    vendor_name: str | None = None
    vendor_uei: str | None = None
    vendor_city: str | None = None
    vendor_state: str | None = None
    dollars_obligated: float = 0.0
    base_and_all_options: float = 0.0
    naics_code: str | None = None
    psc_code: str | None = None
    award_type: str | None = None
    set_aside: str | None = None
    extent_competed: str | None = None
    number_of_offers: int | None = None
    effective_date: date | None = None
    completion_date: date | None = None
    description_of_requirement: str | None = None
    pop_state: str | None = None
    pop_city: str | None = None


class NormalizedLaborRate(RawRecord):
    labor_category: str
    vendor_name: str
    idv_piid: str = "unknown"
    current_price: float | None = None
    second_year_price: float | None = None
    next_year_price: float | None = None
    min_years_experience: int | None = None
    education_level: str | None = None
    business_size: str | None = None
    security_clearance: str | None = None
    site: str | None = None
    schedule: str | None = None
    sin: str | None = None


class InvocationRequest(BaseModel):
    """Body accepted by the vacuum and fill-source endpoints and tasks."""

    model_config = ConfigDict(extra="ignore")

    mode: str = "full"
    trigger: str = "manual"
    source: str | None = None
    states: list[str] | None = None
    agencies: list[str] | None = None
    years: list[int] | None = None
    keywords: list[str] | None = None

    @field_validator("states", "agencies", mode="before")
    @classmethod
    def upper_codes(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(item).strip().upper() for item in value if str(item).strip()]
        return value


class SourceResult(BaseModel):
    source: str
    loaded: int = 0
    skipped: int = 0
    errors: int = 0
    pages: int = 0


class RunSummary(BaseModel):
    """Outcome of one vacuum run; ``total_loaded`` is derived from sources."""

    status: str
    mode: str
    source: str | None = None
    run_id: int | None = None
    duration_seconds: float = 0.0
    sources: list[SourceResult] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    @property
    def total_loaded(self) -> int:
        return sum(result.loaded for result in self.sources)

    @property
    def total_errors(self) -> int:
        return len(self.errors)

    @property
    def success(self) -> bool:
        return self.status in ("completed", "completed_with_errors")

    def results_payload(self) -> dict[str, dict[str, int]]:
        """Per-source counters keyed by source name, as stored on the run record."""
        return {
            result.source: {
                "loaded": result.loaded,
                "skipped": result.skipped,
                "errors": result.errors,
                "pages": result.pages,
            }
            for result in self.sources
        }

    def to_response(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": self.success,
            "status": self.status,
            "mode": self.mode,
            "total_loaded": self.total_loaded,
            "total_errors": self.total_errors,
            "duration_seconds": round(self.duration_seconds, 1),
            "sources": [result.model_dump() for result in self.sources],
            "run_id": self.run_id,
        }
        if self.source:
            body["source"] = self.source
        if self.errors:
            # Cap the payload; the run record keeps the full list
            body["errors"] = self.errors[:50]
        return body
