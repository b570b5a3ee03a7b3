"""
app/domain/insights.py

Transient summary structures built per insights request.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from app.domain.search_analytics import DailyAggregate


@dataclass(frozen=True)
class DateRange:
    start: str
    end: str


@dataclass(frozen=True)
class RangeTotals:
    """
    Sums over a window plus impression-weighted averages.
    """

    clicks: float = 0.0
    impressions: float = 0.0
    avg_ctr: float = 0.0
    avg_position: float = 0.0


@dataclass(frozen=True)
class DayPoint:
    """
    A single day identified by its clicks value (peak or trough).
    """

    date: str = ""
    clicks: float = 0.0


@dataclass(frozen=True)
class DayChange:
    """
    A day-over-day clicks delta, dated by the later of the two days.
    """

    date: str = ""
    change: float = 0.0


@dataclass(frozen=True)
class RangeTrends:
    clicks_change_pct: float = 0.0
    impressions_change_pct: float = 0.0
    peak_day: DayPoint = field(default_factory=DayPoint)
    trough_day: DayPoint = field(default_factory=DayPoint)
    biggest_spike: DayChange = field(default_factory=DayChange)
    biggest_drop: DayChange = field(default_factory=DayChange)


@dataclass(frozen=True)
class ClicksAnomaly:
    date: str
    clicks: float
    z_score: float


@dataclass(frozen=True)
class InsightsPayload:
    """
    Bounded statistical summary of one date window.

    This is the only document forwarded to the external analysis service;
    it never carries keywords or URLs.
    """

    date_range: DateRange
    totals: RangeTotals
    trends: RangeTrends
    anomalies: list[ClicksAnomaly]
    series: list[DailyAggregate]

    def to_dict(self) -> dict[str, object]:
        return {
            "date_range": {"start": self.date_range.start, "end": self.date_range.end},
            "totals": {
                "clicks": self.totals.clicks,
                "impressions": self.totals.impressions,
                "avg_ctr": self.totals.avg_ctr,
                "avg_position": self.totals.avg_position,
            },
            "trends": {
                "clicks_change_pct": self.trends.clicks_change_pct,
                "impressions_change_pct": self.trends.impressions_change_pct,
                "peak_day": {
                    "date": self.trends.peak_day.date,
                    "clicks": self.trends.peak_day.clicks,
                },
                "trough_day": {
                    "date": self.trends.trough_day.date,
                    "clicks": self.trends.trough_day.clicks,
                },
                "biggest_spike": {
                    "date": self.trends.biggest_spike.date,
                    "change": self.trends.biggest_spike.change,
                },
                "biggest_drop": {
                    "date": self.trends.biggest_drop.date,
                    "change": self.trends.biggest_drop.change,
                },
            },
            "anomalies": [
                {"date": item.date, "clicks": item.clicks, "z_score": item.z_score}
                for item in self.anomalies
            ],
            "series": [item.to_dict() for item in self.series],
        }
