"""
app/schemas/search_analytics.py

Request and response schemas for the data, insights and upload endpoints.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class DailyAggregateResponse(BaseModel):
    """
    API response model for one day of aggregated search metrics.
    """

    date: str
    clicks: float
    impressions: float
    ctr: float
    position: float


class DataSummaryResponse(BaseModel):
    """
    Totals and impression-weighted averages over the requested window.
    """

    total_clicks: float = Field(..., ge=0)
    total_impressions: float = Field(..., ge=0)
    avg_ctr: float
    avg_position: float
    start_date: str
    end_date: str


class DataResponse(BaseModel):
    series: list[DailyAggregateResponse] = Field(default_factory=list)
    summary: DataSummaryResponse
    warning: str | None = None


class InsightsRequest(BaseModel):
    """
    Date window for an insights request. Accepts camelCase or snake_case keys.
    """

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    start_date: str = Field(..., alias="startDate", min_length=1)
    end_date: str = Field(..., alias="endDate", min_length=1)


class UploadResponse(BaseModel):
    """
    API response model for a replaced CSV source.
    """

    success: bool = True
    message: str
    filename: str
    size_bytes: int = Field(..., ge=0)
    snapshot_invalidated: bool
