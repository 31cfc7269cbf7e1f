"""Raw record tables, one per upstream dataset.

Each table carries a unique constraint on the natural key its source
adapter upserts against. Rows are never deleted by ingestion.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    Date,
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


class Contract(Base):
    """USASpending prime contract and IDV awards."""

    __tablename__ = "contracts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    award_id: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    recipient_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    recipient_uei: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    recipient_entity_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("core_entities.id", ondelete="SET NULL"), nullable=True, index=True
    )
    awarding_agency: Mapped[str | None] = mapped_column(String(300), nullable=True)
    awarding_sub_agency: Mapped[str | None] = mapped_column(String(300), nullable=True)
    funding_agency: Mapped[str | None] = mapped_column(String(300), nullable=True)
    award_amount: Mapped[float] = mapped_column(Float, nullable=False, server_default="0")
    total_obligation: Mapped[float] = mapped_column(Float, nullable=False, server_default="0")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    naics_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    psc_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    award_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    pop_state: Mapped[str | None] = mapped_column(String(10), nullable=True, index=True)
    pop_city: Mapped[str | None] = mapped_column(String(200), nullable=True)
    award_type: Mapped[str | None] = mapped_column(String(200), nullable=True)
    set_aside_type: Mapped[str | None] = mapped_column(String(200), nullable=True)
    contract_category: Mapped[str] = mapped_column(String(20), nullable=False, server_default="contract")
    source: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class Grant(Base):
    """USASpending grant awards (types 02-05)."""

    __tablename__ = "grants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    award_id: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    recipient_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    recipient_uei: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    awarding_agency: Mapped[str | None] = mapped_column(String(300), nullable=True)
    awarding_sub_agency: Mapped[str | None] = mapped_column(String(300), nullable=True)
    funding_agency: Mapped[str | None] = mapped_column(String(300), nullable=True)
    award_amount: Mapped[float] = mapped_column(Float, nullable=False, server_default="0")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    award_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    recipient_state: Mapped[str | None] = mapped_column(String(10), nullable=True)
    recipient_city: Mapped[str | None] = mapped_column(String(200), nullable=True)
    pop_state: Mapped[str | None] = mapped_column(String(10), nullable=True, index=True)
    pop_city: Mapped[str | None] = mapped_column(String(200), nullable=True)
    grant_type: Mapped[str | None] = mapped_column(String(200), nullable=True)
    cfda_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    grant_category: Mapped[str] = mapped_column(String(20), nullable=False, server_default="grant")
    source: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class Subaward(Base):
    """USASpending subawards; the prime/sub pair feeds teaming edges."""

    __tablename__ = "subawards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    prime_award_id: Mapped[str] = mapped_column(String(200), nullable=False)
    subaward_number: Mapped[str] = mapped_column(String(200), nullable=False)
    subaward_amount: Mapped[float] = mapped_column(Float, nullable=False, server_default="0")
    subaward_action_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    subaward_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    sub_awardee_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    sub_awardee_city: Mapped[str | None] = mapped_column(String(200), nullable=True)
    sub_awardee_state: Mapped[str | None] = mapped_column(String(10), nullable=True)
    sub_awardee_zip: Mapped[str | None] = mapped_column(String(20), nullable=True)
    sub_awardee_country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    prime_recipient_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    prime_recipient_uei: Mapped[str | None] = mapped_column(String(20), nullable=True)
    awarding_agency: Mapped[str | None] = mapped_column(String(300), nullable=True)
    awarding_sub_agency: Mapped[str | None] = mapped_column(String(300), nullable=True)
    naics_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("prime_award_id", "subaward_number", name="uq_subaward_identity"),
    )


class Opportunity(Base):
    """SAM.gov contract opportunity notices."""

    __tablename__ = "opportunities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    notice_id: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    solicitation_number: Mapped[str | None] = mapped_column(String(200), nullable=True)
    department: Mapped[str | None] = mapped_column(String(300), nullable=True)
    sub_tier: Mapped[str | None] = mapped_column(String(300), nullable=True)
    office: Mapped[str | None] = mapped_column(String(300), nullable=True)
    posted_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    base_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    set_aside_type: Mapped[str | None] = mapped_column(String(200), nullable=True)
    set_aside_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    response_deadline: Mapped[str | None] = mapped_column(String(50), nullable=True)
    naics_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    classification_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    award_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    award_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    awardee_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    awardee_uei: Mapped[str | None] = mapped_column(String(20), nullable=True)
    raw_data: Mapped[dict[str, Any]] = mapped_column(
        JSONB, server_default=text("'{}'::jsonb"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (Index("idx_opportunities_posted", "posted_date"),)


class SbirAward(Base):
    """SBIR/STTR awards from SBIR.gov."""

    __tablename__ = "sbir_awards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    firm: Mapped[str] = mapped_column(Text, nullable=False)
    award_title: Mapped[str | None] = mapped_column(Text, nullable=True)
    agency: Mapped[str] = mapped_column(String(50), nullable=False)
    branch: Mapped[str | None] = mapped_column(String(200), nullable=True)
    phase: Mapped[str | None] = mapped_column(String(20), nullable=True)
    program: Mapped[str | None] = mapped_column(String(20), nullable=True)
    contract: Mapped[str] = mapped_column(String(200), nullable=False)
    award_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    award_amount: Mapped[float] = mapped_column(Float, nullable=False, server_default="0")
    uei: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    hubzone_owned: Mapped[str | None] = mapped_column(String(5), nullable=True)
    socially_disadvantaged: Mapped[str | None] = mapped_column(String(5), nullable=True)
    women_owned: Mapped[str | None] = mapped_column(String(5), nullable=True)
    number_employees: Mapped[int | None] = mapped_column(Integer, nullable=True)
    company_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    city: Mapped[str | None] = mapped_column(String(200), nullable=True)
    state: Mapped[str | None] = mapped_column(String(10), nullable=True)
    zip: Mapped[str | None] = mapped_column(String(20), nullable=True)
    poc_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    poc_email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    pi_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    abstract: Mapped[str | None] = mapped_column(Text, nullable=True)
    award_link: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (UniqueConstraint("contract", "agency", name="uq_sbir_contract_agency"),)


class NsfAward(Base):
    """NSF research awards."""

    __tablename__ = "nsf_awards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    award_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    abstract: Mapped[str | None] = mapped_column(Text, nullable=True)
    award_amount: Mapped[float] = mapped_column(Float, nullable=False, server_default="0")
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    exp_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    pi_first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    pi_last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    institution_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    institution_city: Mapped[str | None] = mapped_column(String(200), nullable=True)
    institution_state: Mapped[str | None] = mapped_column(String(10), nullable=True)
    institution_zip: Mapped[str | None] = mapped_column(String(20), nullable=True)
    program_element: Mapped[str | None] = mapped_column(Text, nullable=True)
    fund_agency: Mapped[str | None] = mapped_column(String(20), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class SamEntity(Base):
    """Active SAM.gov entity registrations."""

    __tablename__ = "sam_entities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    uei: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    cage_code: Mapped[str | None] = mapped_column(String(10), nullable=True)
    legal_business_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    dba_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    registration_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    purpose_of_registration: Mapped[str | None] = mapped_column(String(200), nullable=True)
    registration_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    expiration_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    physical_city: Mapped[str | None] = mapped_column(String(200), nullable=True)
    physical_state: Mapped[str | None] = mapped_column(String(10), nullable=True, index=True)
    physical_zip: Mapped[str | None] = mapped_column(String(20), nullable=True)
    physical_country: Mapped[str | None] = mapped_column(String(10), nullable=True)
    entity_structure: Mapped[str | None] = mapped_column(String(200), nullable=True)
    entity_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    business_types: Mapped[list[Any]] = mapped_column(
        JSONB, server_default=text("'[]'::jsonb"), nullable=False
    )
    congressional_district: Mapped[str | None] = mapped_column(String(10), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class SamExclusion(Base):
    """Active SAM.gov exclusion (debarment) records."""

    __tablename__ = "sam_exclusions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    classification: Mapped[str | None] = mapped_column(String(50), nullable=True)
    exclusion_name: Mapped[str] = mapped_column(Text, nullable=False)
    exclusion_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    exclusion_program: Mapped[str | None] = mapped_column(String(100), nullable=True)
    excluding_agency: Mapped[str | None] = mapped_column(String(50), nullable=True)
    uei: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    cage_code: Mapped[str | None] = mapped_column(String(10), nullable=True)
    active_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    termination_date: Mapped[str | None] = mapped_column(String(30), nullable=True)
    record_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    city: Mapped[str | None] = mapped_column(String(200), nullable=True)
    state: Mapped[str | None] = mapped_column(String(10), nullable=True)
    country: Mapped[str | None] = mapped_column(String(10), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "exclusion_name",
            "active_date",
            "excluding_agency",
            name="uq_sam_exclusion_identity",
            postgresql_nulls_not_distinct=True,
        ),
    )


class FpdsAward(Base):
    """FPDS contract award base records (modification 0) via SAM.gov."""

    __tablename__ = "fpds_awards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    piid: Mapped[str] = mapped_column(String(100), nullable=False)
    modification_number: Mapped[str] = mapped_column(String(50), nullable=False, server_default="0")
    contracting_department: Mapped[str | None] = mapped_column(String(300), nullable=True)
    contracting_subtier: Mapped[str | None] = mapped_column(String(300), nullable=True)
    contracting_office: Mapped[str | None] = mapped_column(String(300), nullable=True)
    vendor_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    vendor_uei: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    vendor_city: Mapped[str | None] = mapped_column(String(200), nullable=True)
    vendor_state: Mapped[str | None] = mapped_column(String(10), nullable=True)
    dollars_obligated: Mapped[float] = mapped_column(Float, nullable=False, server_default="0")
    base_and_all_options: Mapped[float] = mapped_column(Float, nullable=False, server_default="0")
    naics_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    psc_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    award_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    set_aside: Mapped[str | None] = mapped_column(String(200), nullable=True)
    extent_competed: Mapped[str | None] = mapped_column(String(200), nullable=True)
    number_of_offers: Mapped[int | None] = mapped_column(Integer, nullable=True)
    effective_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    completion_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    description_of_requirement: Mapped[str | None] = mapped_column(Text, nullable=True)
    pop_state: Mapped[str | None] = mapped_column(String(10), nullable=True)
    pop_city: Mapped[str | None] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("piid", "modification_number", name="uq_fpds_award_identity"),
    )


class GsaLaborRate(Base):
    """GSA CALC ceiling labor rates."""

    __tablename__ = "gsa_labor_rates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    labor_category: Mapped[str] = mapped_column(Text, nullable=False)
    vendor_name: Mapped[str] = mapped_column(Text, nullable=False)
    idv_piid: Mapped[str] = mapped_column(String(100), nullable=False, server_default="unknown")
    current_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    second_year_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    next_year_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    min_years_experience: Mapped[int | None] = mapped_column(Integer, nullable=True)
    education_level: Mapped[str | None] = mapped_column(String(100), nullable=True)
    business_size: Mapped[str | None] = mapped_column(String(20), nullable=True)
    security_clearance: Mapped[str | None] = mapped_column(String(50), nullable=True)
    site: Mapped[str | None] = mapped_column(String(50), nullable=True)
    schedule: Mapped[str | None] = mapped_column(String(200), nullable=True)
    sin: Mapped[str | None] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "vendor_name", "idv_piid", "labor_category", name="uq_gsa_labor_rate_identity"
        ),
    )
