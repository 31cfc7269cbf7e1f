"""NSF research awards adapter (keyword search, 25 results per page)."""

from __future__ import annotations

from typing import Any

from ..config import settings
from ..db.records import NsfAward
from ..models import NormalizedNsfAward
from ..utils.datetime_utils import parse_iso_date
from ..utils.parsing import as_dict, clean_str, parse_amount, truncate
from .base import BaseSourceAdapter, PageRequest, Partition, SourcePlan, UpsertTarget

NSF_AWARDS_URL = "https://api.nsf.gov/services/v1/awards.json"

NSF_KEYWORDS = [
    "cybersecurity",
    "artificial intelligence",
    "machine learning",
    "data science",
    "cloud computing",
    "quantum computing",
    "autonomous systems",
    "robotics",
    "climate",
    "blockchain",
    "5G",
    "biotechnology",
]

NSF_PRINT_FIELDS = ",".join(
    [
        "id",
        "title",
        "abstractText",
        "amount",
        "startDate",
        "expDate",
        "piFirstName",
        "piLastName",
        "awardeeName",
        "awardeeCity",
        "awardeeStateCode",
        "awardeeZipCode",
        "fundProgramName",
        "fundAgencyCode",
    ]
)


class NsfAwardsAdapter(BaseSourceAdapter):
    name = "nsf_awards"
    label = "NSF"
    target = UpsertTarget(NsfAward, ("award_number",), ignore_duplicates=True)
    rate_key = "nsf"
    page_size = 25

    def partitions(self, plan: SourcePlan) -> list[Partition]:
        keywords = plan.keywords or NSF_KEYWORDS
        return [
            Partition(key=keyword, max_pages=plan.max_pages, timeout=plan.timeout, params={"keyword": keyword})
            for keyword in keywords
        ]

    def build_request(self, partition: Partition, page: int) -> PageRequest:
        # NSF offsets are 1-based record positions
        params = {
            "keyword": partition.params["keyword"],
            "offset": 1 + (page - 1) * self.page_size,
            "rpp": self.page_size,
            "printFields": NSF_PRINT_FIELDS,
        }
        return PageRequest(url=NSF_AWARDS_URL, params=params, timeout=partition.timeout)

    def extract_items(self, payload: Any) -> list[dict[str, Any]]:
        awards = as_dict(as_dict(payload).get("response")).get("award")
        return awards if isinstance(awards, list) else []

    def normalize(self, item: dict[str, Any], partition: Partition) -> NormalizedNsfAward | None:
        award_number = clean_str(item.get("id"))
        if not award_number:
            return None
        return NormalizedNsfAward(
            award_number=award_number,
            title=clean_str(item.get("title")),
            abstract=truncate(clean_str(item.get("abstractText")), settings.vacuum_config.abstract_max_length),
            award_amount=parse_amount(item.get("amount")),
            start_date=parse_iso_date(item.get("startDate")),
            exp_date=parse_iso_date(item.get("expDate")),
            pi_first_name=clean_str(item.get("piFirstName")),
            pi_last_name=clean_str(item.get("piLastName")),
            institution_name=clean_str(item.get("awardeeName")),
            institution_city=clean_str(item.get("awardeeCity")),
            institution_state=clean_str(item.get("awardeeStateCode")),
            institution_zip=clean_str(item.get("awardeeZipCode")),
            program_element=clean_str(item.get("fundProgramName")),
            fund_agency=clean_str(item.get("fundAgencyCode")),
        )
