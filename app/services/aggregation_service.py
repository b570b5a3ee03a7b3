"""
app/services/aggregation_service.py

Daily aggregation layer for search console records.

Folds the RawRecord stream into one DateAccumulator per date key and
finalizes each into a DailyAggregate.

Weighted metrics
----------------
ctr and position are averaged with impressions as the weight::

    weighted_metric = Σ(metric × impressions) / Σ impressions

A plain mean across rows would let a keyword with 10 impressions pull the
average as hard as one with 10 000. When Σ impressions is 0 both metrics
are reported as 0.

Example::

    keyword A: ctr=0.10, impressions=1000  ->  100
    keyword B: ctr=0.05, impressions=100   ->    5
    weighted ctr = 105 / 1100 = 0.0955     (plain mean would be 0.075)
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Iterable, Protocol

from app.domain.search_analytics import DailyAggregate, DateAccumulator, RawRecord, finite_or_zero
from app.errors import AggregationError

logger = logging.getLogger(__name__)


class _Weighted(Protocol):
    impressions: float
    ctr: float
    position: float


def weighted_metrics(items: Iterable[_Weighted]) -> tuple[float, float]:
    """
    Return the impression-weighted ``(ctr, position)`` of ``items``.

    Works for raw records and for daily aggregates alike.
    """
    total_impressions = 0.0
    ctr_weighted_sum = 0.0
    position_weighted_sum = 0.0

    for item in items:
        impressions = finite_or_zero(item.impressions)
        total_impressions += impressions
        ctr_weighted_sum += finite_or_zero(item.ctr) * impressions
        position_weighted_sum += finite_or_zero(item.position) * impressions

    if total_impressions <= 0:
        return 0.0, 0.0

    return (
        finite_or_zero(ctr_weighted_sum / total_impressions),
        finite_or_zero(position_weighted_sum / total_impressions),
    )


class DailyAggregationService:
    """
    Stateless fold of a record stream into sorted daily aggregates.
    """

    def build_daily_aggregates(self, records: Iterable[RawRecord]) -> list[DailyAggregate]:
        """
        Consume ``records`` to completion and return aggregates sorted by date.

        Classified source errors raised while iterating propagate unchanged.

        Raises
        ------
        AggregationError
            When the stream produced no date groups.
        """
        accumulators: dict[str, DateAccumulator] = {}
        processed_rows = 0

        for record in records:
            date = record.analytics_date
            if not date or not date.strip():
                continue

            accumulator = accumulators.get(date)
            if accumulator is None:
                accumulator = DateAccumulator()
                accumulators[date] = accumulator
            accumulator.add(record)
            processed_rows += 1

        if not accumulators:
            raise AggregationError(
                "No valid data found in CSV file. The file may be empty or contain only invalid rows."
            )

        aggregates = [accumulator.finalize(date) for date, accumulator in accumulators.items()]
        aggregates.sort(key=lambda aggregate: aggregate.date)

        logger.info(
            "Processed %d rows into %d daily aggregates",
            processed_rows,
            len(aggregates),
        )
        return aggregates


@lru_cache(maxsize=1)
def get_daily_aggregation_service() -> DailyAggregationService:
    return DailyAggregationService()
