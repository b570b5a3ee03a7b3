"""
app/domain/search_analytics.py

Domain models for the search analytics ingestion and aggregation flow.
"""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class RawRecord:
    """
    One parsed CSV row from a search console keyword export.

    ``analytics_date`` is kept as the raw string so grouping matches the
    export exactly; the fixed ``YYYY-MM-DD`` format sorts lexicographically.
    """

    analytics_date: str
    clicks: float
    impressions: float
    ctr: float
    position: float
    keyword: str = ""
    page_url: str = ""
    analytics_type: str = ""
    device: str = ""


@dataclass(frozen=True)
class DailyAggregate:
    """
    Finalized per-date totals with impression-weighted ctr and position.
    """

    date: str
    clicks: float
    impressions: float
    ctr: float
    position: float

    def to_dict(self) -> dict[str, object]:
        return {
            "date": self.date,
            "clicks": self.clicks,
            "impressions": self.impressions,
            "ctr": self.ctr,
            "position": self.position,
        }


def finite_or_zero(value: float) -> float:
    """
    Return ``value`` when it is a finite number, otherwise ``0.0``.
    """

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value) if math.isfinite(value) else 0.0


@dataclass
class DateAccumulator:
    """
    Running totals for one date key during a single aggregation pass.
    """

    clicks_sum: float = 0.0
    impressions_sum: float = 0.0
    ctr_weighted_sum: float = 0.0
    position_weighted_sum: float = 0.0

    def add(self, record: RawRecord) -> None:
        clicks = finite_or_zero(record.clicks)
        impressions = finite_or_zero(record.impressions)
        ctr = finite_or_zero(record.ctr)
        position = finite_or_zero(record.position)

        self.clicks_sum += clicks
        self.impressions_sum += impressions
        self.ctr_weighted_sum += ctr * impressions
        self.position_weighted_sum += position * impressions

    def finalize(self, date: str) -> DailyAggregate:
        impressions = finite_or_zero(self.impressions_sum)
        if impressions > 0:
            ctr = self.ctr_weighted_sum / impressions
            position = self.position_weighted_sum / impressions
        else:
            ctr = 0.0
            position = 0.0

        return DailyAggregate(
            date=date,
            clicks=finite_or_zero(self.clicks_sum),
            impressions=impressions,
            ctr=finite_or_zero(ctr),
            position=finite_or_zero(position),
        )


@dataclass
class IngestionStats:
    """
    Counters reported once a CSV stream has been fully consumed.
    """

    rows_read: int = 0
    rows_yielded: int = 0
    rows_skipped: int = 0
    duplicate_headers: int = 0
    malformed_rows: int = 0
