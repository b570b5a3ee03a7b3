"""
tests/test_aggregation_service.py

Pytest unit tests for DailyAggregationService and weighted_metrics.
"""

from __future__ import annotations

import math

import pytest

from app.domain.search_analytics import DailyAggregate, DateAccumulator, RawRecord
from app.errors import AggregationError, SourceCorruptedError
from app.services.aggregation_service import DailyAggregationService, weighted_metrics


def _record(date: str, clicks: float, impressions: float, ctr: float, position: float) -> RawRecord:
    return RawRecord(
        analytics_date=date,
        clicks=clicks,
        impressions=impressions,
        ctr=ctr,
        position=position,
    )


@pytest.fixture()
def svc() -> DailyAggregationService:
    return DailyAggregationService()


class TestWeightedMetrics:
    def test_heavier_rows_dominate(self) -> None:
        ctr, position = weighted_metrics(
            [
                _record("2024-01-01", 100, 1000, 0.10, 2.0),
                _record("2024-01-01", 5, 100, 0.05, 8.0),
            ]
        )
        assert ctr == pytest.approx(105 / 1100)
        assert position == pytest.approx((2.0 * 1000 + 8.0 * 100) / 1100)

    def test_zero_impressions_yield_zero(self) -> None:
        assert weighted_metrics([_record("2024-01-01", 3, 0, 0.5, 4.0)]) == (0.0, 0.0)

    def test_empty_input(self) -> None:
        assert weighted_metrics([]) == (0.0, 0.0)


class TestDateAccumulator:
    def test_non_finite_fields_are_clamped(self) -> None:
        accumulator = DateAccumulator()
        accumulator.add(_record("2024-01-01", math.nan, 10, math.inf, 2.0))
        aggregate = accumulator.finalize("2024-01-01")
        assert aggregate.clicks == 0.0
        assert aggregate.ctr == 0.0
        assert aggregate.position == pytest.approx(2.0)


class TestBuildDailyAggregates:
    def test_groups_and_sorts_by_date(self, svc: DailyAggregationService) -> None:
        aggregates = svc.build_daily_aggregates(
            [
                _record("2024-01-03", 1, 10, 0.1, 1.0),
                _record("2024-01-01", 2, 20, 0.1, 1.0),
                _record("2024-01-03", 3, 30, 0.1, 1.0),
                _record("2024-01-02", 4, 40, 0.1, 1.0),
            ]
        )
        assert [aggregate.date for aggregate in aggregates] == ["2024-01-01", "2024-01-02", "2024-01-03"]
        assert aggregates[2].clicks == pytest.approx(4.0)
        assert aggregates[2].impressions == pytest.approx(40.0)

    def test_clicks_are_conserved(self, svc: DailyAggregationService) -> None:
        records = [
            _record(f"2024-02-{day:02d}", clicks, clicks * 3, 0.2, 4.0)
            for day, clicks in [(1, 5), (1, 7), (2, 11), (3, 0), (3, 13), (4, 2)]
        ]
        aggregates = svc.build_daily_aggregates(records)
        assert sum(aggregate.clicks for aggregate in aggregates) == pytest.approx(
            sum(record.clicks for record in records)
        )

    def test_weighted_ctr_matches_independent_computation(self, svc: DailyAggregationService) -> None:
        records = [
            _record("2024-01-01", 10, 200, 0.05, 3.0),
            _record("2024-01-01", 40, 400, 0.10, 1.5),
            _record("2024-01-01", 1, 50, 0.02, 9.0),
        ]
        (aggregate,) = svc.build_daily_aggregates(records)
        expected_ctr = sum(r.ctr * r.impressions for r in records) / sum(r.impressions for r in records)
        assert aggregate.ctr == pytest.approx(expected_ctr)

    def test_zero_impression_day_has_zero_ctr_and_position(self, svc: DailyAggregationService) -> None:
        (aggregate,) = svc.build_daily_aggregates([_record("2024-01-01", 2, 0, 0.9, 7.0)])
        assert aggregate == DailyAggregate(date="2024-01-01", clicks=2.0, impressions=0.0, ctr=0.0, position=0.0)

    def test_blank_date_records_are_ignored(self, svc: DailyAggregationService) -> None:
        aggregates = svc.build_daily_aggregates(
            [_record("", 99, 99, 0.1, 1.0), _record("2024-01-01", 1, 1, 0.1, 1.0)]
        )
        assert len(aggregates) == 1

    def test_no_groups_raises(self, svc: DailyAggregationService) -> None:
        with pytest.raises(AggregationError, match="No valid data"):
            svc.build_daily_aggregates([])

    def test_source_errors_propagate_unchanged(self, svc: DailyAggregationService) -> None:
        def broken_stream():
            yield _record("2024-01-01", 1, 1, 0.1, 1.0)
            raise SourceCorruptedError("Too many invalid rows (101). CSV file may be corrupted.")

        with pytest.raises(SourceCorruptedError):
            svc.build_daily_aggregates(broken_stream())
