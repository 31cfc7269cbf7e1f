"""SBIR.gov awards adapter.

The public awards API returns one agency-year as a single JSON array, so
each partition is exactly one request. SBIR.gov throttles hard; the
``sbir`` rate limiter keeps calls about two seconds apart.
"""

from __future__ import annotations

from typing import Any

from ..config import settings
from ..db.records import SbirAward
from ..models import NormalizedSbirAward
from ..utils.parsing import clean_str, parse_amount, parse_int, truncate
from .base import BaseSourceAdapter, PageRequest, Partition, SourcePlan, UpsertTarget

SBIR_AWARDS_URL = "https://api.www.sbir.gov/public/api/awards"

SBIR_AGENCIES = ["DOD", "HHS", "NASA", "NSF", "DOE", "USDA", "EPA", "DOT", "DHS", "ED", "DOC"]


class SbirAwardsAdapter(BaseSourceAdapter):
    name = "sbir_awards"
    label = "SBIR"
    target = UpsertTarget(SbirAward, ("contract", "agency"), ignore_duplicates=True)
    rate_key = "sbir"

    def partitions(self, plan: SourcePlan) -> list[Partition]:
        agencies = plan.agencies or SBIR_AGENCIES
        timeout = plan.timeout or settings.fetch_config.sbir_timeout_seconds
        return [
            Partition(
                key=f"{agency} {year}",
                max_pages=1,
                timeout=timeout,
                params={"agency": agency, "year": year},
            )
            for agency in agencies
            for year in plan.years
        ]

    def build_request(self, partition: Partition, page: int) -> PageRequest:
        return PageRequest(
            url=SBIR_AWARDS_URL,
            params={"agency": partition.params["agency"], "year": partition.params["year"]},
            timeout=partition.timeout,
        )

    def extract_items(self, payload: Any) -> list[dict[str, Any]]:
        return payload if isinstance(payload, list) else []

    def normalize(self, item: dict[str, Any], partition: Partition) -> NormalizedSbirAward | None:
        firm = clean_str(item.get("firm"))
        contract = clean_str(item.get("contract"))
        if not firm or not contract:
            return None
        return NormalizedSbirAward(
            firm=firm,
            award_title=clean_str(item.get("award_title")),
            agency=clean_str(item.get("agency")) or partition.params["agency"],
            branch=clean_str(item.get("branch")),
            phase=clean_str(item.get("phase")),
            program=clean_str(item.get("program")),
            contract=contract,
            award_year=parse_int(item.get("award_year")) or partition.params["year"],
            award_amount=parse_amount(item.get("award_amount")),
            uei=clean_str(item.get("uei")),
            hubzone_owned=clean_str(item.get("hubzone_owned")),
            socially_disadvantaged=clean_str(item.get("socially_economically_disadvantaged")),
            women_owned=clean_str(item.get("women_owned")),
            number_employees=parse_int(item.get("number_employees")) or None,
            company_url=clean_str(item.get("company_url")),
            city=clean_str(item.get("city")),
            state=clean_str(item.get("state")),
            zip=clean_str(item.get("zip")),
            poc_name=clean_str(item.get("poc_name")),
            poc_email=clean_str(item.get("poc_email")),
            pi_name=clean_str(item.get("pi_name")),
            abstract=truncate(clean_str(item.get("abstract")), settings.vacuum_config.abstract_max_length),
            award_link=clean_str(item.get("award_link")),
        )
