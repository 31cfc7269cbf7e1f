"""SAM.gov adapters: opportunities, entity registrations, exclusions, FPDS.

Every SAM.gov endpoint needs an api.data.gov key passed as ``api_key``.
"""

from __future__ import annotations

from typing import Any

from ..config import settings
from ..db.records import FpdsAward, Opportunity, SamEntity, SamExclusion
from ..models import (
    NormalizedExclusion,
    NormalizedFpdsAward,
    NormalizedOpportunity,
    NormalizedSamEntity,
)
from ..utils.datetime_utils import days_ago, format_sam_date, parse_iso_date, today_utc
from ..utils.parsing import as_dict, clean_str, parse_amount, parse_float, parse_int, truncate
from .base import BaseSourceAdapter, PageRequest, Partition, SourcePlan, UpsertTarget

SAM_BASE_URL = "https://api.sam.gov"
OPPORTUNITIES_URL = f"{SAM_BASE_URL}/opportunities/v2/search"
ENTITIES_URL = f"{SAM_BASE_URL}/entity-information/v3/entities"
EXCLUSIONS_V3_URL = f"{SAM_BASE_URL}/entity-information/v3/exclusions"
EXCLUSIONS_V2_URL = f"{SAM_BASE_URL}/entity-information/v2/exclusions"
CONTRACT_AWARDS_URL = f"{SAM_BASE_URL}/contract-awards/v1/search"

# Contracting department codes with the most FPDS volume
FPDS_DEPARTMENT_CODES = ["9700", "7000", "3600", "4700", "8000", "1400", "1500", "6900", "8900", "2000"]
FPDS_LAST_MODIFIED = "[01/01/2024,]"


def _list_from(payload: Any, *keys: str) -> list[dict[str, Any]]:
    if not isinstance(payload, dict):
        return []
    for key in keys:
        value = payload.get(key)
        if isinstance(value, list) and value:
            return value
    return []


class _SamAdapter(BaseSourceAdapter):
    rate_key = "sam"
    requires_api_key = True

    def _params(self, **extra: Any) -> dict[str, Any]:
        return {"api_key": self.api_key, **extra}


class OpportunitiesAdapter(_SamAdapter):
    name = "opportunities"
    label = "Opps"
    target = UpsertTarget(Opportunity, ("notice_id",))

    def partitions(self, plan: SourcePlan) -> list[Partition]:
        lookback = plan.lookback_days or settings.vacuum_config.opportunity_lookback_days
        today = today_utc()
        return [
            Partition(
                key=f"last {lookback}d",
                max_pages=plan.max_pages,
                timeout=plan.timeout,
                params={
                    "postedFrom": format_sam_date(days_ago(lookback, today=today)),
                    "postedTo": format_sam_date(today),
                },
            )
        ]

    def build_request(self, partition: Partition, page: int) -> PageRequest:
        params = self._params(
            limit=self.page_size,
            offset=(page - 1) * self.page_size,
            **partition.params,
        )
        return PageRequest(url=OPPORTUNITIES_URL, params=params, timeout=partition.timeout)

    def extract_items(self, payload: Any) -> list[dict[str, Any]]:
        return _list_from(payload, "opportunitiesData")

    def normalize(self, item: dict[str, Any], partition: Partition) -> NormalizedOpportunity | None:
        notice_id = clean_str(item.get("noticeId"))
        if not notice_id:
            return None
        award = as_dict(item.get("award"))
        awardee = as_dict(award.get("awardee"))
        return NormalizedOpportunity(
            notice_id=notice_id,
            title=clean_str(item.get("title")),
            solicitation_number=clean_str(item.get("solicitationNumber")),
            department=clean_str(item.get("department")),
            sub_tier=clean_str(item.get("subTier")),
            office=clean_str(item.get("office")),
            posted_date=parse_iso_date(item.get("postedDate")),
            type=clean_str(item.get("type")),
            base_type=clean_str(item.get("baseType")),
            set_aside_type=clean_str(item.get("typeOfSetAsideDescription")),
            set_aside_code=clean_str(item.get("typeOfSetAside")),
            response_deadline=clean_str(item.get("responseDeadLine")),
            naics_code=clean_str(item.get("naicsCode")),
            classification_code=clean_str(item.get("classificationCode")),
            active=item.get("active") == "Yes",
            award_date=parse_iso_date(award.get("date")),
            award_amount=parse_float(award.get("amount")) or None,
            awardee_name=clean_str(awardee.get("name")),
            awardee_uei=clean_str(awardee.get("ueiSAM")),
            raw_data=item,
        )


class SamEntitiesAdapter(_SamAdapter):
    name = "sam_entities"
    label = "SAM"
    target = UpsertTarget(SamEntity, ("uei",))

    def partitions(self, plan: SourcePlan) -> list[Partition]:
        return [
            Partition(key=state, max_pages=plan.max_pages, timeout=plan.timeout, params={"state": state})
            for state in plan.states
        ]

    def build_request(self, partition: Partition, page: int) -> PageRequest:
        params = self._params(
            registrationStatus="A",
            samRegistered="Yes",
            physicalAddressProvinceOrStateCode=partition.params["state"],
            includeSections="entityRegistration,coreData",
            page=page - 1,
            size=self.page_size,
        )
        return PageRequest(url=ENTITIES_URL, params=params, timeout=partition.timeout)

    def extract_items(self, payload: Any) -> list[dict[str, Any]]:
        return _list_from(payload, "entityData")

    def normalize(self, item: dict[str, Any], partition: Partition) -> NormalizedSamEntity | None:
        registration = as_dict(item.get("entityRegistration"))
        core = as_dict(item.get("coreData"))
        address = as_dict(core.get("physicalAddress"))
        information = as_dict(core.get("entityInformation"))
        business_types = as_dict(core.get("businessTypes")).get("businessTypeList") or []
        uei = clean_str(registration.get("ueiSAM"))
        if not uei:
            return None
        return NormalizedSamEntity(
            uei=uei,
            cage_code=clean_str(registration.get("cageCode")),
            legal_business_name=clean_str(registration.get("legalBusinessName")),
            dba_name=clean_str(registration.get("dbaName")),
            registration_status=clean_str(registration.get("registrationStatus")),
            purpose_of_registration=clean_str(registration.get("purposeOfRegistrationDesc")),
            registration_date=parse_iso_date(registration.get("registrationDate")),
            expiration_date=parse_iso_date(registration.get("registrationExpirationDate")),
            physical_city=clean_str(address.get("city")),
            physical_state=clean_str(address.get("stateOrProvinceCode")),
            physical_zip=clean_str(address.get("zipCode")),
            physical_country=clean_str(address.get("countryCode")),
            entity_structure=clean_str(information.get("entityStructureDesc")),
            entity_url=clean_str(information.get("entityURL")),
            business_types=business_types if isinstance(business_types, list) else [],
            congressional_district=clean_str(core.get("congressionalDistrict")),
        )


class ExclusionsAdapter(_SamAdapter):
    """Active exclusions from the v3 API, retrying each page against v2."""

    name = "exclusions"
    label = "Excl"
    target = UpsertTarget(
        SamExclusion,
        ("exclusion_name", "active_date", "excluding_agency"),
        ignore_duplicates=True,
    )

    def partitions(self, plan: SourcePlan) -> list[Partition]:
        return [Partition(key="active", max_pages=plan.max_pages, timeout=plan.timeout)]

    def build_request(self, partition: Partition, page: int) -> PageRequest:
        params = self._params(isActive="Yes", page=page - 1, size=self.page_size)
        return PageRequest(url=EXCLUSIONS_V3_URL, params=params, timeout=partition.timeout)

    def build_fallback_request(self, partition: Partition, page: int) -> PageRequest:
        params = self._params(isActive="true", page=page - 1, size=self.page_size)
        return PageRequest(url=EXCLUSIONS_V2_URL, params=params, timeout=partition.timeout)

    def fetch_page(self, partition: Partition, page: int) -> Any:
        return self.fetch_with_fallback(
            self.build_request(partition, page),
            self.build_fallback_request(partition, page),
            labels=("v3", "v2"),
        )

    def extract_items(self, payload: Any) -> list[dict[str, Any]]:
        return _list_from(payload, "exclusionData", "results")

    def normalize(self, item: dict[str, Any], partition: Partition) -> NormalizedExclusion | None:
        name = clean_str(item.get("name"))
        if not name:
            return None
        return NormalizedExclusion(
            classification=clean_str(item.get("classificationType")),
            exclusion_name=name,
            exclusion_type=clean_str(item.get("exclusionType")),
            exclusion_program=clean_str(item.get("exclusionProgram")),
            excluding_agency=clean_str(item.get("excludingAgencyCode")),
            uei=clean_str(item.get("ueiSAM")),
            cage_code=clean_str(item.get("cageCode")),
            active_date=parse_iso_date(item.get("activateDate")),
            termination_date=clean_str(item.get("terminationDate")),
            record_status=clean_str(item.get("recordStatus")),
            city=clean_str(item.get("city")),
            state=clean_str(item.get("stateProvince")),
            country=clean_str(item.get("country")),
            description=clean_str(item.get("description")),
        )


class FpdsAwardsAdapter(_SamAdapter):
    """Base (modification 0) contract actions per contracting department."""

    name = "fpds_awards"
    label = "FPDS"
    target = UpsertTarget(FpdsAward, ("piid", "modification_number"))

    def partitions(self, plan: SourcePlan) -> list[Partition]:
        departments = plan.departments or FPDS_DEPARTMENT_CODES
        return [
            Partition(key=code, max_pages=plan.max_pages, timeout=plan.timeout, params={"department": code})
            for code in departments
        ]

    def build_request(self, partition: Partition, page: int) -> PageRequest:
        params = self._params(
            lastModifiedDate=FPDS_LAST_MODIFIED,
            contractingDepartmentCode=partition.params["department"],
            modificationNumber="0",
            limit=self.page_size,
            offset=(page - 1) * self.page_size,
        )
        return PageRequest(url=CONTRACT_AWARDS_URL, params=params, timeout=partition.timeout)

    def extract_items(self, payload: Any) -> list[dict[str, Any]]:
        return _list_from(payload, "results", "data")

    def normalize(self, item: dict[str, Any], partition: Partition) -> NormalizedFpdsAward | None:
        piid = clean_str(item.get("piid")) or clean_str(item.get("contractNumber"))
        if not piid:
            return None
        return NormalizedFpdsAward(
            piid=piid,
            modification_number=clean_str(item.get("modificationNumber")) or "0",
            contracting_department=clean_str(item.get("contractingDepartmentName")),
            contracting_subtier=clean_str(item.get("contractingSubTierAgencyName")),
            contracting_office=clean_str(item.get("contractingOfficeName")),
            vendor_name=clean_str(item.get("vendorName")),
            vendor_uei=clean_str(item.get("vendorUEI")),
            vendor_city=clean_str(item.get("vendorCity")),
            vendor_state=clean_str(item.get("vendorState")),
            dollars_obligated=parse_amount(item.get("dollarsObligated")),
            base_and_all_options=parse_amount(item.get("baseAndAllOptionsValue")),
            naics_code=clean_str(item.get("naicsCode")),
            psc_code=clean_str(item.get("pscCode")),
            award_type=clean_str(item.get("awardType")),
            set_aside=clean_str(item.get("typeOfSetAside")),
            extent_competed=clean_str(item.get("extentCompeted")),
            number_of_offers=parse_int(item.get("numberOfOffersReceived")) or None,
            effective_date=parse_iso_date(item.get("effectiveDate")),
            completion_date=parse_iso_date(item.get("completionDate")),
            description_of_requirement=truncate(
                clean_str(item.get("descriptionOfRequirement")),
                settings.vacuum_config.requirement_max_length,
            ),
            pop_state=clean_str(item.get("popStateCode")),
            pop_city=clean_str(item.get("popCity")),
        )
