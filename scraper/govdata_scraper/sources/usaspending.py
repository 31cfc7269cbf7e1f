"""USASpending.gov ``spending_by_award`` adapters.

Contracts, IDVs, grants and subawards all come from the same search
endpoint with different award type codes and field lists. Work is
partitioned by place-of-performance state.
"""

from __future__ import annotations

from typing import Any

from ..config import settings
from ..db.records import Contract, Grant, Subaward
from ..models import NormalizedContract, NormalizedGrant, NormalizedSubaward
from ..utils.datetime_utils import parse_iso_date
from ..utils.parsing import clean_str, parse_amount
from .base import BaseSourceAdapter, PageRequest, Partition, SourcePlan, UpsertTarget

SPENDING_BY_AWARD_URL = "https://api.usaspending.gov/api/v2/search/spending_by_award/"

CONTRACT_AWARD_TYPES = ["A", "B", "C", "D"]
IDV_AWARD_TYPES = ["IDV_A", "IDV_B", "IDV_B_A", "IDV_B_B", "IDV_B_C", "IDV_C", "IDV_D", "IDV_E"]
GRANT_AWARD_TYPES = ["02", "03", "04", "05"]

CONTRACT_FIELDS = [
    "Award ID",
    "Recipient Name",
    "Award Amount",
    "Total Obligation",
    "Description",
    "Start Date",
    "End Date",
    "Awarding Agency",
    "Awarding Sub Agency",
    "Funding Agency",
    "NAICS Code",
    "PSC Code",
    "Place of Performance State Code",
    "Place of Performance City Name",
    "Contract Award Type",
    "Type of Set Aside",
    "Recipient UEI",
    "generated_internal_id",
]

GRANT_FIELDS = [
    "Award ID",
    "Recipient Name",
    "Award Amount",
    "Description",
    "Start Date",
    "End Date",
    "Awarding Agency",
    "Awarding Sub Agency",
    "Funding Agency",
    "Place of Performance State Code",
    "Place of Performance City Name",
    "Award Type",
    "Recipient UEI",
    "generated_internal_id",
    "CFDA Number",
]

SUBAWARD_FIELDS = [
    "Sub-Award ID",
    "Sub-Awardee Name",
    "Sub-Award Amount",
    "Sub-Award Date",
    "Sub-Award Description",
    "Prime Award ID",
    "Prime Recipient Name",
    "Prime Recipient UEI",
    "Awarding Agency",
    "Awarding Sub Agency",
    "NAICS Code",
    "Sub-Awardee City Name",
    "Sub-Awardee State Code",
    "Sub-Awardee Zip Code",
    "Sub-Awardee Country Name",
]


class _SpendingByAwardAdapter(BaseSourceAdapter):
    """State-partitioned POST search shared by every USASpending adapter."""

    rate_key = "usaspending"
    award_type_codes: list[str]
    fields: list[str]
    sort_field = "Award Amount"
    subawards = False

    def partitions(self, plan: SourcePlan) -> list[Partition]:
        return [
            Partition(key=state, max_pages=plan.max_pages, timeout=plan.timeout, params={"state": state})
            for state in plan.states
        ]

    def build_request(self, partition: Partition, page: int) -> PageRequest:
        window = settings.vacuum_config
        body = {
            "filters": {
                "time_period": [
                    {
                        "start_date": window.fiscal_window_start.isoformat(),
                        "end_date": window.fiscal_window_end.isoformat(),
                    }
                ],
                "award_type_codes": self.award_type_codes,
                "place_of_performance_locations": [
                    {"country": "USA", "state": partition.params["state"]}
                ],
            },
            "fields": self.fields,
            "limit": self.page_size,
            "page": page,
            "sort": self.sort_field,
            "order": "desc",
            "subawards": self.subawards,
        }
        return PageRequest(url=SPENDING_BY_AWARD_URL, method="POST", json=body, timeout=partition.timeout)

    def extract_items(self, payload: Any) -> list[dict[str, Any]]:
        if not isinstance(payload, dict):
            return []
        results = payload.get("results")
        return results if isinstance(results, list) else []


class ContractsAdapter(_SpendingByAwardAdapter):
    name = "contracts"
    label = "Contracts"
    target = UpsertTarget(Contract, ("award_id",))
    award_type_codes = CONTRACT_AWARD_TYPES
    fields = CONTRACT_FIELDS
    contract_category = "contract"

    def normalize(self, item: dict[str, Any], partition: Partition) -> NormalizedContract | None:
        award_id = clean_str(item.get("generated_internal_id")) or clean_str(item.get("Award ID"))
        if not award_id:
            return None
        start = parse_iso_date(item.get("Start Date"))
        return NormalizedContract(
            award_id=award_id,
            recipient_name=clean_str(item.get("Recipient Name")),
            recipient_uei=clean_str(item.get("Recipient UEI")),
            awarding_agency=clean_str(item.get("Awarding Agency")),
            awarding_sub_agency=clean_str(item.get("Awarding Sub Agency")),
            funding_agency=clean_str(item.get("Funding Agency")),
            award_amount=parse_amount(item.get("Award Amount")),
            total_obligation=parse_amount(item.get("Total Obligation")),
            description=clean_str(item.get("Description")),
            naics_code=clean_str(item.get("NAICS Code")),
            psc_code=clean_str(item.get("PSC Code")),
            award_date=start,
            start_date=start,
            end_date=parse_iso_date(item.get("End Date")),
            pop_state=clean_str(item.get("Place of Performance State Code")) or partition.params["state"],
            pop_city=clean_str(item.get("Place of Performance City Name")),
            award_type=clean_str(item.get("Contract Award Type")),
            set_aside_type=clean_str(item.get("Type of Set Aside")),
            contract_category=self.contract_category,
            source="usaspending_bulk",
        )


class IdvsAdapter(ContractsAdapter):
    """Indefinite-delivery vehicles, stored alongside contracts."""

    name = "idvs"
    label = "IDVs"
    award_type_codes = IDV_AWARD_TYPES
    contract_category = "idv"


class GrantsAdapter(_SpendingByAwardAdapter):
    name = "grants"
    label = "Grants"
    target = UpsertTarget(Grant, ("award_id",))
    award_type_codes = GRANT_AWARD_TYPES
    fields = GRANT_FIELDS

    def normalize(self, item: dict[str, Any], partition: Partition) -> NormalizedGrant | None:
        award_id = clean_str(item.get("generated_internal_id")) or clean_str(item.get("Award ID"))
        if not award_id:
            return None
        start = parse_iso_date(item.get("Start Date"))
        state = clean_str(item.get("Place of Performance State Code")) or partition.params["state"]
        city = clean_str(item.get("Place of Performance City Name"))
        return NormalizedGrant(
            award_id=award_id,
            recipient_name=clean_str(item.get("Recipient Name")),
            recipient_uei=clean_str(item.get("Recipient UEI")),
            awarding_agency=clean_str(item.get("Awarding Agency")),
            awarding_sub_agency=clean_str(item.get("Awarding Sub Agency")),
            funding_agency=clean_str(item.get("Funding Agency")),
            award_amount=parse_amount(item.get("Award Amount")),
            description=clean_str(item.get("Description")),
            award_date=start,
            start_date=start,
            end_date=parse_iso_date(item.get("End Date")),
            recipient_state=state,
            recipient_city=city,
            pop_state=state,
            pop_city=city,
            grant_type=clean_str(item.get("Award Type")),
            cfda_number=clean_str(item.get("CFDA Number")),
            grant_category="grant",
            source="usaspending_bulk",
        )


class SubawardsAdapter(_SpendingByAwardAdapter):
    name = "subawards"
    label = "Subs"
    target = UpsertTarget(Subaward, ("prime_award_id", "subaward_number"), ignore_duplicates=True)
    award_type_codes = CONTRACT_AWARD_TYPES
    fields = SUBAWARD_FIELDS
    sort_field = "Sub-Award Amount"
    subawards = True

    def normalize(self, item: dict[str, Any], partition: Partition) -> NormalizedSubaward | None:
        prime_award_id = clean_str(item.get("Prime Award ID"))
        subaward_number = clean_str(item.get("Sub-Award ID"))
        if not prime_award_id or not subaward_number:
            return None
        return NormalizedSubaward(
            prime_award_id=prime_award_id,
            subaward_number=subaward_number,
            subaward_amount=parse_amount(item.get("Sub-Award Amount")),
            subaward_action_date=parse_iso_date(item.get("Sub-Award Date")),
            subaward_description=clean_str(item.get("Sub-Award Description")),
            sub_awardee_name=clean_str(item.get("Sub-Awardee Name")),
            sub_awardee_city=clean_str(item.get("Sub-Awardee City Name")),
            sub_awardee_state=clean_str(item.get("Sub-Awardee State Code")),
            sub_awardee_zip=clean_str(item.get("Sub-Awardee Zip Code")),
            sub_awardee_country=clean_str(item.get("Sub-Awardee Country Name")),
            prime_recipient_name=clean_str(item.get("Prime Recipient Name")),
            prime_recipient_uei=clean_str(item.get("Prime Recipient UEI")),
            awarding_agency=clean_str(item.get("Awarding Agency")),
            awarding_sub_agency=clean_str(item.get("Awarding Sub Agency")),
            naics_code=clean_str(item.get("NAICS Code")),
        )
