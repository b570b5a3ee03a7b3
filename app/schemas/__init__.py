"""
app/schemas package marker.
"""

from app.schemas.search_analytics import (
    DailyAggregateResponse,
    DataResponse,
    DataSummaryResponse,
    InsightsRequest,
    UploadResponse,
)

__all__ = [
    "DailyAggregateResponse",
    "DataResponse",
    "DataSummaryResponse",
    "InsightsRequest",
    "UploadResponse",
]
