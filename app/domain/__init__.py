"""
app/domain package marker.
"""

from app.domain.insights import (
    ClicksAnomaly,
    DateRange,
    DayChange,
    DayPoint,
    InsightsPayload,
    RangeTotals,
    RangeTrends,
)
from app.domain.search_analytics import DailyAggregate, DateAccumulator, IngestionStats, RawRecord

__all__ = [
    "ClicksAnomaly",
    "DailyAggregate",
    "DateAccumulator",
    "DateRange",
    "DayChange",
    "DayPoint",
    "IngestionStats",
    "InsightsPayload",
    "RangeTotals",
    "RangeTrends",
    "RawRecord",
]
