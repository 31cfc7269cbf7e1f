"""Tests for source adapters: partitioning, paging and normalization."""

from __future__ import annotations

from datetime import date

import pytest

from conftest import StubFetcher

from govdata_scraper.errors import ErrorCollector, FetchError, FetchErrorKind
from govdata_scraper.models import NormalizedContract
from govdata_scraper.sources import (
    ContractsAdapter,
    ExclusionsAdapter,
    FpdsAwardsAdapter,
    GrantsAdapter,
    IdvsAdapter,
    LaborRatesAdapter,
    NsfAwardsAdapter,
    OpportunitiesAdapter,
    SamEntitiesAdapter,
    SbirAwardsAdapter,
    SourcePlan,
    SubawardsAdapter,
    get_adapter_class,
)
from govdata_scraper.sources.gsa_calc import CALC_V2_URL, CALC_V3_URL
from govdata_scraper.sources.nsf import NSF_AWARDS_URL
from govdata_scraper.sources.sam import EXCLUSIONS_V2_URL, EXCLUSIONS_V3_URL, OPPORTUNITIES_URL
from govdata_scraper.sources.sbir import SBIR_AGENCIES, SBIR_AWARDS_URL
from govdata_scraper.sources.usaspending import SPENDING_BY_AWARD_URL


def _contract(n: int, **overrides) -> dict:
    item = {
        "Award ID": f"W91-{n}",
        "generated_internal_id": f"CONT_AWD_{n}",
        "Recipient Name": "Acme Federal LLC",
        "Award Amount": 1000.0 + n,
        "Start Date": "2024-02-01",
        "Place of Performance State Code": None,
        "Recipient UEI": "ABC123DEF456",
    }
    item.update(overrides)
    return item


def _pages(*sizes: int) -> list[dict]:
    counter = iter(range(10_000))
    return [{"results": [_contract(next(counter)) for _ in range(size)]} for size in sizes]


def _drain(adapter, partition, errors=None):
    errors = errors if errors is not None else ErrorCollector()
    return list(adapter.iter_pages(partition, errors)), errors


class TestPaging:
    def test_stops_after_short_page(self, no_sleep):
        fetcher = StubFetcher({SPENDING_BY_AWARD_URL: _pages(100, 40, 100)})
        adapter = ContractsAdapter(fetcher, sleep=no_sleep)
        [partition] = adapter.partitions(SourcePlan(states=["MD"], max_pages=5))

        pages, errors = _drain(adapter, partition)

        assert [page.number for page in pages] == [1, 2]
        assert len(fetcher.calls) == 2
        assert len(errors) == 0

    def test_parse_page_counts_raw_results_and_drops_keyless_records(self):
        adapter = ContractsAdapter(StubFetcher())
        [partition] = adapter.partitions(SourcePlan(states=["VA"], max_pages=5))
        payload = {"results": [_contract(1), _contract(2, **{"Award ID": None, "generated_internal_id": " "})]}

        page = adapter.parse_page(payload, partition, 3)

        assert page.number == 3
        assert page.partition is partition
        assert page.raw_count == 2
        assert [record.award_id for record in page.records] == ["CONT_AWD_1"]

    def test_stops_on_empty_page(self, no_sleep):

        fetcher = StubFetcher({SPENDING_BY_AWARD_URL: _pages(100, 0)})
        adapter = ContractsAdapter(fetcher, sleep=no_sleep)
        [partition] = adapter.partitions(SourcePlan(states=["MD"], max_pages=5))

        pages, _ = _drain(adapter, partition)

        assert len(pages) == 1
        assert len(fetcher.calls) == 2

    def test_stops_at_page_ceiling(self, no_sleep):
        fetcher = StubFetcher({SPENDING_BY_AWARD_URL: _pages(100, 100, 100, 100)})
        adapter = ContractsAdapter(fetcher, sleep=no_sleep)
        [partition] = adapter.partitions(SourcePlan(states=["MD"], max_pages=2))

        pages, _ = _drain(adapter, partition)

        assert len(pages) == 2
        assert len(fetcher.calls) == 2

    def test_failed_page_records_error_and_ends_partition(self, no_sleep):
        pages = _pages(100, 100)
        fetcher = StubFetcher(
            {
                SPENDING_BY_AWARD_URL: [
                    pages[0],
                    pages[1],
                    FetchError(FetchErrorKind.HTTP_STATUS, "HTTP 500", status_code=500),
                    FetchError(FetchErrorKind.HTTP_STATUS, "HTTP 500", status_code=500),
                ]
            }
        )
        adapter = ContractsAdapter(fetcher, sleep=no_sleep)
        [partition] = adapter.partitions(SourcePlan(states=["MD"], max_pages=5))

        result, errors = _drain(adapter, partition)

        assert len(result) == 2
        assert errors.messages == ["Contracts MD p3: 500"]

    def test_retries_transient_error_once(self, no_sleep):
        fetcher = StubFetcher(
            {
                SPENDING_BY_AWARD_URL: [
                    FetchError(FetchErrorKind.TIMEOUT, "timeout"),
                    {"results": [_contract(1)]},
                ]
            }
        )
        adapter = ContractsAdapter(fetcher, sleep=no_sleep)
        [partition] = adapter.partitions(SourcePlan(states=["VA"], max_pages=1))

        pages, errors = _drain(adapter, partition)

        assert len(pages) == 1
        assert len(errors) == 0
        assert len(no_sleep.delays) == 1

    def test_does_not_retry_permanent_or_rate_limited_errors(self, no_sleep):
        for error in (
            FetchError(FetchErrorKind.HTTP_STATUS, "HTTP 400", status_code=400),
            FetchError(FetchErrorKind.RATE_LIMITED, "rate limited", status_code=429),
        ):
            fetcher = StubFetcher({SPENDING_BY_AWARD_URL: [error]})
            adapter = ContractsAdapter(fetcher, sleep=no_sleep)
            [partition] = adapter.partitions(SourcePlan(states=["VA"], max_pages=3))

            pages, errors = _drain(adapter, partition)

            assert pages == []
            assert len(fetcher.calls) == 1
            assert len(errors) == 1

    def test_records_without_natural_key_are_dropped(self, no_sleep):
        payload = {"results": [_contract(1), _contract(2, **{"Award ID": None, "generated_internal_id": ""})]}
        fetcher = StubFetcher({SPENDING_BY_AWARD_URL: [payload]})
        adapter = ContractsAdapter(fetcher, sleep=no_sleep)
        [partition] = adapter.partitions(SourcePlan(states=["VA"], max_pages=1))

        [page], _ = _drain(adapter, partition)

        assert page.raw_count == 2
        assert len(page.records) == 1


class TestUsaSpending:
    def test_request_body_filters_by_state_and_window(self):
        adapter = GrantsAdapter(StubFetcher())
        [partition] = adapter.partitions(SourcePlan(states=["TX"], max_pages=4))

        request = adapter.build_request(partition, 3)

        assert request.method == "POST"
        assert request.json["page"] == 3
        assert request.json["limit"] == 100
        filters = request.json["filters"]
        assert filters["place_of_performance_locations"] == [{"country": "USA", "state": "TX"}]
        assert filters["time_period"] == [{"start_date": "2023-10-01", "end_date": "2025-09-30"}]
        assert filters["award_type_codes"] == ["02", "03", "04", "05"]

    def test_contract_normalization(self):
        adapter = ContractsAdapter(StubFetcher())
        [partition] = adapter.partitions(SourcePlan(states=["MD"]))

        record = adapter.normalize(_contract(7, **{"Award Amount": "2,500.50"}), partition)

        assert isinstance(record, NormalizedContract)
        assert record.award_id == "CONT_AWD_7"
        assert record.award_amount == 2500.5
        assert record.award_date == date(2024, 2, 1)
        assert record.pop_state == "MD"
        assert record.contract_category == "contract"
        assert record.source == "usaspending_bulk"

    def test_idvs_use_idv_codes_and_category(self):
        adapter = IdvsAdapter(StubFetcher())
        [partition] = adapter.partitions(SourcePlan(states=["MD"]))

        request = adapter.build_request(partition, 1)
        record = adapter.normalize(_contract(1), partition)

        assert all(code.startswith("IDV_") for code in request.json["filters"]["award_type_codes"])
        assert record.contract_category == "idv"
        assert IdvsAdapter.target.model is ContractsAdapter.target.model

    def test_subawards_are_append_only_with_composite_key(self):
        adapter = SubawardsAdapter(StubFetcher())
        [partition] = adapter.partitions(SourcePlan(states=["VA"]))
        record = adapter.normalize(
            {
                "Prime Award ID": "CONT_AWD_1",
                "Sub-Award ID": "SUB-9",
                "Sub-Awardee Name": "Small Co",
                "Sub-Award Amount": "12000",
                "Prime Recipient Name": "Big Prime Inc",
            },
            partition,
        )

        assert SubawardsAdapter.target.ignore_duplicates
        assert SubawardsAdapter.target.conflict_keys == ("prime_award_id", "subaward_number")
        assert adapter.build_request(partition, 1).json["subawards"] is True
        assert record.subaward_amount == 12000.0
        assert adapter.normalize({"Prime Award ID": "X"}, partition) is None


class TestSbir:
    def test_partitions_are_agency_years_with_long_timeout(self):
        adapter = SbirAwardsAdapter(StubFetcher())

        partitions = adapter.partitions(SourcePlan(years=[2024, 2023]))

        assert len(partitions) == len(SBIR_AGENCIES) * 2
        assert partitions[0].key == "DOD 2024"
        assert all(partition.max_pages == 1 for partition in partitions)
        assert partitions[0].timeout == 60.0

    def test_targeted_timeout_overrides_default(self):
        adapter = SbirAwardsAdapter(StubFetcher())

        [partition] = adapter.partitions(SourcePlan(agencies=["NASA"], years=[2024], timeout=25))

        assert partition.timeout == 25

    def test_fetches_list_payload(self, no_sleep):
        payload = [
            {"firm": "Rocket Labs", "contract": "80NSSC24C0001", "agency": "NASA", "award_amount": "150000"},
            {"firm": "", "contract": "missing-firm"},
        ]
        fetcher = StubFetcher({SBIR_AWARDS_URL: [payload]})
        adapter = SbirAwardsAdapter(fetcher, sleep=no_sleep)
        [partition] = adapter.partitions(SourcePlan(agencies=["NASA"], years=[2024]))

        [page], _ = _drain(adapter, partition)

        assert fetcher.calls[0]["params"] == {"agency": "NASA", "year": 2024}
        assert fetcher.calls[0]["rate_key"] == "sbir"
        assert len(page.records) == 1
        assert page.records[0].award_year == 2024

    def test_rate_limited_error_names_agency_and_year(self, no_sleep):
        fetcher = StubFetcher({SBIR_AWARDS_URL: [FetchError(FetchErrorKind.RATE_LIMITED, "rate limited", status_code=429)]})
        adapter = SbirAwardsAdapter(fetcher, sleep=no_sleep)
        [partition] = adapter.partitions(SourcePlan(agencies=["NASA"], years=[2024]))

        pages, errors = _drain(adapter, partition)

        assert pages == []
        assert errors.messages == ["SBIR NASA 2024 p1: 429 rate limited"]


class TestSam:
    def test_requires_api_key_and_sends_it(self):
        adapter = OpportunitiesAdapter(StubFetcher(), api_key="k")
        [partition] = adapter.partitions(SourcePlan(max_pages=10, lookback_days=90))

        request = adapter.build_request(partition, 3)

        assert OpportunitiesAdapter.requires_api_key
        assert request.url == OPPORTUNITIES_URL
        assert request.params["api_key"] == "k"
        assert request.params["offset"] == 200
        assert partition.key == "last 90d"

    def test_opportunity_keeps_raw_payload(self):
        adapter = OpportunitiesAdapter(StubFetcher(), api_key="k")
        [partition] = adapter.partitions(SourcePlan())
        item = {"noticeId": "abc", "title": "Cloud", "active": "Yes", "award": {"amount": "10", "awardee": {"name": "Acme"}}}

        record = adapter.normalize(item, partition)

        assert record.active is True
        assert record.award_amount == 10.0
        assert record.awardee_name == "Acme"
        assert record.raw_data == item

    def test_sam_entities_use_zero_based_pages(self):
        adapter = SamEntitiesAdapter(StubFetcher(), api_key="k")
        [partition] = adapter.partitions(SourcePlan(states=["VA"], max_pages=3))

        assert adapter.build_request(partition, 1).params["page"] == 0
        assert adapter.build_request(partition, 1).params["physicalAddressProvinceOrStateCode"] == "VA"

    def test_exclusions_fall_back_to_v2(self, no_sleep):
        fetcher = StubFetcher(
            {
                EXCLUSIONS_V3_URL: [FetchError(FetchErrorKind.HTTP_STATUS, "HTTP 404", status_code=404)],
                EXCLUSIONS_V2_URL: [{"results": [{"name": "Bad Actor", "excludingAgencyCode": "DOD"}]}],
            }
        )
        adapter = ExclusionsAdapter(fetcher, api_key="k", sleep=no_sleep)
        [partition] = adapter.partitions(SourcePlan(max_pages=10))

        [page], errors = _drain(adapter, partition)

        assert [call["url"] for call in fetcher.calls] == [EXCLUSIONS_V3_URL, EXCLUSIONS_V2_URL]
        assert fetcher.calls[1]["params"]["isActive"] == "true"
        assert page.records[0].exclusion_name == "Bad Actor"
        assert len(errors) == 0

    def test_exclusions_both_versions_failing_reports_both(self, no_sleep):
        fetcher = StubFetcher(
            {
                EXCLUSIONS_V3_URL: [FetchError(FetchErrorKind.HTTP_STATUS, "HTTP 403", status_code=403)],
                EXCLUSIONS_V2_URL: [FetchError(FetchErrorKind.HTTP_STATUS, "HTTP 404", status_code=404)],
            }
        )
        adapter = ExclusionsAdapter(fetcher, api_key="k", sleep=no_sleep)
        [partition] = adapter.partitions(SourcePlan(max_pages=10))

        _, errors = _drain(adapter, partition)

        assert errors.messages == ["Excl active p1: v3=403 v2=404"]

    def test_fpds_defaults_to_department_list(self):
        adapter = FpdsAwardsAdapter(StubFetcher(), api_key="k")

        partitions = adapter.partitions(SourcePlan(max_pages=3))
        record = adapter.normalize(
            {"piid": "N0001", "descriptionOfRequirement": "x" * 3000, "dollarsObligated": "5"},
            partitions[0],
        )

        assert len(partitions) == 10
        assert record.modification_number == "0"
        assert len(record.description_of_requirement) == 2000


class TestNsf:
    def test_offsets_are_one_based(self):
        adapter = NsfAwardsAdapter(StubFetcher())
        [partition] = adapter.partitions(SourcePlan(keywords=["robotics"], max_pages=3))

        assert adapter.build_request(partition, 1).params["offset"] == 1
        assert adapter.build_request(partition, 3).params["offset"] == 51

    def test_extracts_nested_awards(self, no_sleep):
        fetcher = StubFetcher({NSF_AWARDS_URL: [{"response": {"award": [{"id": "2401234", "title": "Robots"}]}}]})
        adapter = NsfAwardsAdapter(fetcher, sleep=no_sleep)
        [partition] = adapter.partitions(SourcePlan(keywords=["robotics"], max_pages=3))

        pages, _ = _drain(adapter, partition)

        assert len(pages) == 1
        assert pages[0].records[0].award_number == "2401234"

    @pytest.mark.parametrize("body", [{"response": ["unexpected"]}, {"response": "maintenance"}, ["award"]])
    def test_malformed_body_reads_as_empty(self, body):
        assert NsfAwardsAdapter(StubFetcher()).extract_items(body) == []

    def test_malformed_body_only_ends_its_own_keyword(self, no_sleep):
        fetcher = StubFetcher(
            {
                NSF_AWARDS_URL: [
                    {"response": "maintenance"},
                    {"response": {"award": [{"id": "2409999", "title": "Quantum"}]}},
                ]
            }
        )
        adapter = NsfAwardsAdapter(fetcher, sleep=no_sleep)
        robotics, quantum = adapter.partitions(SourcePlan(keywords=["robotics", "quantum"], max_pages=3))

        robotics_pages, errors = _drain(adapter, robotics)
        quantum_pages, _ = _drain(adapter, quantum, errors)

        assert robotics_pages == []
        assert [page.records[0].award_number for page in quantum_pages] == ["2409999"]
        assert len(errors) == 0



class TestLaborRates:
    def test_falls_back_to_v3_and_unwraps_hits(self, no_sleep):
        fetcher = StubFetcher(
            {
                CALC_V2_URL: [FetchError(FetchErrorKind.HTTP_STATUS, "HTTP 410", status_code=410)],
                CALC_V3_URL: [
                    {"hits": {"hits": [{"_source": {"labor_category": "Engineer II", "vendor_name": "Acme", "current_price": "120.5"}}]}}
                ],
            }
        )
        adapter = LaborRatesAdapter(fetcher, sleep=no_sleep)
        [partition] = adapter.partitions(SourcePlan(keywords=["software engineer"]))

        [page], _ = _drain(adapter, partition)

        record = page.records[0]
        assert record.current_price == 120.5
        assert record.idv_piid == "unknown"

    def test_default_keywords(self):
        assert len(LaborRatesAdapter(StubFetcher()).partitions(SourcePlan())) == 15


class TestRegistry:
    def test_lookup_by_source_name(self):
        assert get_adapter_class("sbir_awards") is SbirAwardsAdapter

    def test_unknown_source_raises(self):
        with pytest.raises(ValueError):
            get_adapter_class("nope")
