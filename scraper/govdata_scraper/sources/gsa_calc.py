"""GSA CALC ceiling labor rates, one keyword search per partition.

The v2 prices endpoint is tried first; when it fails the v3 ceiling-rates
endpoint is used for the same keyword.
"""

from __future__ import annotations

from typing import Any

from ..db.records import GsaLaborRate
from ..models import NormalizedLaborRate
from ..utils.parsing import clean_str, parse_float, parse_int
from .base import BaseSourceAdapter, PageRequest, Partition, SourcePlan, UpsertTarget

CALC_V2_URL = "https://api.gsa.gov/acquisition/calc/v2/prices/"
CALC_V3_URL = "https://api.gsa.gov/acquisition/calc/v3/api/ceilingrates/"

CALC_KEYWORDS = [
    "software engineer",
    "project manager",
    "cybersecurity",
    "data scientist",
    "systems administrator",
    "business analyst",
    "cloud architect",
    "program manager",
    "help desk",
    "network engineer",
    "security analyst",
    "devops",
    "database administrator",
    "technical writer",
    "quality assurance",
]


def _unwrap_hits(value: Any) -> list[dict[str, Any]]:
    """Accept plain result lists and Elasticsearch ``hits.hits[]._source`` shapes."""
    if isinstance(value, list):
        return [hit.get("_source", hit) if isinstance(hit, dict) else hit for hit in value]
    if isinstance(value, dict):
        return _unwrap_hits(value.get("hits"))
    return []


class LaborRatesAdapter(BaseSourceAdapter):
    name = "labor_rates"
    label = "CALC"
    target = UpsertTarget(
        GsaLaborRate,
        ("vendor_name", "idv_piid", "labor_category"),
        ignore_duplicates=True,
    )
    rate_key = "gsa_calc"

    def partitions(self, plan: SourcePlan) -> list[Partition]:
        keywords = plan.keywords or CALC_KEYWORDS
        return [
            Partition(key=keyword, max_pages=1, timeout=plan.timeout, params={"keyword": keyword})
            for keyword in keywords
        ]

    def build_request(self, partition: Partition, page: int) -> PageRequest:
        return PageRequest(
            url=CALC_V2_URL,
            params={"search": partition.params["keyword"], "limit": self.page_size},
            timeout=partition.timeout,
        )

    def build_fallback_request(self, partition: Partition, page: int) -> PageRequest:
        return PageRequest(
            url=CALC_V3_URL,
            params={"keyword": partition.params["keyword"], "page": page, "page_size": self.page_size},
            timeout=partition.timeout,
        )

    def fetch_page(self, partition: Partition, page: int) -> Any:
        return self.fetch_with_fallback(
            self.build_request(partition, page),
            self.build_fallback_request(partition, page),
            labels=("v2", "v3"),
        )

    def extract_items(self, payload: Any) -> list[dict[str, Any]]:
        if isinstance(payload, list):
            return payload
        if not isinstance(payload, dict):
            return []
        if isinstance(payload.get("results"), list):
            return payload["results"]
        return _unwrap_hits(payload.get("hits"))

    def normalize(self, item: dict[str, Any], partition: Partition) -> NormalizedLaborRate | None:
        labor_category = clean_str(item.get("labor_category"))
        vendor_name = clean_str(item.get("vendor_name"))
        if not labor_category or not vendor_name:
            return None
        return NormalizedLaborRate(
            labor_category=labor_category,
            vendor_name=vendor_name,
            idv_piid=clean_str(item.get("idv_piid")) or clean_str(item.get("contract_number")) or "unknown",
            current_price=parse_float(item.get("current_price") or item.get("price")),
            second_year_price=parse_float(item.get("second_year_price")),
            next_year_price=parse_float(item.get("next_year_price")),
            min_years_experience=parse_int(item.get("min_years_experience")),
            education_level=clean_str(item.get("education_level")),
            business_size=clean_str(item.get("business_size")),
            security_clearance=clean_str(item.get("security_clearance")),
            site=clean_str(item.get("site")),
            schedule=clean_str(item.get("schedule")),
            sin=clean_str(item.get("sin")),
        )
