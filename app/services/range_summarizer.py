"""
app/services/range_summarizer.py

Reduces a window of daily aggregates to a bounded statistical summary.

The summary carries totals, first-to-last trends, the peak and trough day,
the largest day-over-day moves, z-score anomalies on clicks and a
downsampled series. Everything here is a pure function of its inputs.
"""

from __future__ import annotations

import math
from functools import lru_cache
from typing import Sequence

from app.config import get_summary_settings
from app.domain.insights import (
    ClicksAnomaly,
    DateRange,
    DayChange,
    DayPoint,
    InsightsPayload,
    RangeTotals,
    RangeTrends,
)
from app.domain.search_analytics import DailyAggregate
from app.services.aggregation_service import weighted_metrics


def filter_by_range(
    series: Sequence[DailyAggregate],
    start: str,
    end: str,
) -> list[DailyAggregate]:
    """
    Keep aggregates with ``start <= date <= end``; input order is preserved.

    Dates are compared as strings, which is correct for ``YYYY-MM-DD``.
    """
    return [aggregate for aggregate in series if start <= aggregate.date <= end]


def compute_totals(series: Sequence[DailyAggregate]) -> RangeTotals:
    if not series:
        return RangeTotals()

    avg_ctr, avg_position = weighted_metrics(series)
    return RangeTotals(
        clicks=sum(aggregate.clicks for aggregate in series),
        impressions=sum(aggregate.impressions for aggregate in series),
        avg_ctr=avg_ctr,
        avg_position=avg_position,
    )


def _percent_change(first: float, last: float) -> float:
    if first <= 0:
        return 0.0
    return (last - first) / first * 100


def _extreme_indices(series: Sequence[DailyAggregate]) -> tuple[int, int]:
    """
    Return (peak, trough) indices; on ties the earliest index wins.
    """
    peak_index = 0
    trough_index = 0
    for index, aggregate in enumerate(series):
        if aggregate.clicks > series[peak_index].clicks:
            peak_index = index
        if aggregate.clicks < series[trough_index].clicks:
            trough_index = index
    return peak_index, trough_index


def compute_trends(series: Sequence[DailyAggregate]) -> RangeTrends:
    if not series:
        return RangeTrends()

    ordered = sorted(series, key=lambda aggregate: aggregate.date)

    if len(ordered) == 1:
        only = ordered[0]
        day = DayPoint(date=only.date, clicks=only.clicks)
        return RangeTrends(peak_day=day, trough_day=day)

    first, last = ordered[0], ordered[-1]
    peak_index, trough_index = _extreme_indices(ordered)
    peak, trough = ordered[peak_index], ordered[trough_index]

    biggest_spike = DayChange()
    biggest_drop = DayChange()
    for previous, current in zip(ordered, ordered[1:]):
        change = current.clicks - previous.clicks
        if change > biggest_spike.change:
            biggest_spike = DayChange(date=current.date, change=change)
        if change < biggest_drop.change:
            biggest_drop = DayChange(date=current.date, change=change)

    return RangeTrends(
        clicks_change_pct=_percent_change(first.clicks, last.clicks),
        impressions_change_pct=_percent_change(first.impressions, last.impressions),
        peak_day=DayPoint(date=peak.date, clicks=peak.clicks),
        trough_day=DayPoint(date=trough.date, clicks=trough.clicks),
        biggest_spike=biggest_spike,
        biggest_drop=biggest_drop,
    )


def detect_anomalies(
    series: Sequence[DailyAggregate],
    *,
    z_threshold: float = 2.0,
    min_points: int = 3,
) -> list[ClicksAnomaly]:
    """
    Flag days whose clicks lie more than ``z_threshold`` population standard
    deviations from the window mean.
    """
    if len(series) < min_points:
        return []

    clicks = [aggregate.clicks for aggregate in series]
    mean = sum(clicks) / len(clicks)
    variance = sum((value - mean) ** 2 for value in clicks) / len(clicks)
    std_dev = math.sqrt(variance)
    if std_dev == 0:
        return []

    anomalies: list[ClicksAnomaly] = []
    for aggregate in series:
        z_score = (aggregate.clicks - mean) / std_dev
        if abs(z_score) > z_threshold:
            anomalies.append(ClicksAnomaly(date=aggregate.date, clicks=aggregate.clicks, z_score=z_score))
    return anomalies


def downsample(series: Sequence[DailyAggregate], max_points: int) -> list[DailyAggregate]:
    """
    Reduce ``series`` to at most ``max_points`` while keeping its extremes.

    The first, last, peak and trough days are always kept. The remaining
    slots take every ``ceil(n / max_points)``-th day in date order until
    the bound is reached.
    """
    if len(series) <= max_points:
        return list(series)

    ordered = sorted(series, key=lambda aggregate: aggregate.date)
    count = len(ordered)
    peak_index, trough_index = _extreme_indices(ordered)

    required = {0, count - 1, peak_index, trough_index}
    step = math.ceil(count / max_points)
    room = max(max_points - len(required), 0)
    strided = [index for index in range(0, count, step) if index not in required][:room]

    indices = sorted(required.union(strided))[:max_points]
    return [ordered[index] for index in indices]


class RangeSummarizer:
    """
    Builds the InsightsPayload for one date window.
    """

    def __init__(
        self,
        *,
        max_points: int = 60,
        z_threshold: float = 2.0,
        min_anomaly_points: int = 3,
    ) -> None:
        self.max_points = max_points
        self.z_threshold = z_threshold
        self.min_anomaly_points = min_anomaly_points

    @staticmethod
    def filter_by_range(
        series: Sequence[DailyAggregate],
        start: str,
        end: str,
    ) -> list[DailyAggregate]:
        return filter_by_range(series, start, end)

    def summarize(
        self,
        series: Sequence[DailyAggregate],
        start: str,
        end: str,
    ) -> InsightsPayload:
        window = filter_by_range(series, start, end)
        return InsightsPayload(
            date_range=DateRange(start=start, end=end),
            totals=compute_totals(window),
            trends=compute_trends(window),
            anomalies=detect_anomalies(
                window,
                z_threshold=self.z_threshold,
                min_points=self.min_anomaly_points,
            ),
            series=downsample(window, self.max_points),
        )


@lru_cache(maxsize=1)
def get_range_summarizer() -> RangeSummarizer:
    settings = get_summary_settings()
    return RangeSummarizer(
        max_points=settings.max_points,
        z_threshold=settings.anomaly_z_threshold,
    )
