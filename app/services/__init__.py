"""
app/services package marker.
"""

from app.services.aggregation_service import (
    DailyAggregationService,
    get_daily_aggregation_service,
)
from app.services.csv_ingestion_service import (
    CSVIngestionService,
    get_csv_ingestion_service,
)
from app.services.range_summarizer import RangeSummarizer, get_range_summarizer
from app.services.rate_limiter import TokenBucketRateLimiter, get_insights_rate_limiter
from app.services.rebuild_coordinator import RebuildCoordinator, get_rebuild_coordinator

__all__ = [
    "CSVIngestionService",
    "DailyAggregationService",
    "RangeSummarizer",
    "RebuildCoordinator",
    "TokenBucketRateLimiter",
    "get_csv_ingestion_service",
    "get_daily_aggregation_service",
    "get_insights_rate_limiter",
    "get_range_summarizer",
    "get_rebuild_coordinator",
]
