"""
app/api/routers/data.py

Daily series endpoint for charting a date window.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.error_mapping import to_http_exception
from app.config import SummarySettings, get_summary_settings
from app.errors import DateRangeValidationError, InsightsCoreError
from app.schemas.search_analytics import DailyAggregateResponse, DataResponse, DataSummaryResponse
from app.services.range_summarizer import compute_totals, filter_by_range
from app.services.rebuild_coordinator import RebuildCoordinator, get_rebuild_coordinator
from app.validators.date_range_validator import default_date_range, validate_date_range

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["data"])


@router.get("/data", response_model=DataResponse, response_model_exclude_none=True)
def get_data(
    start: str | None = Query(default=None, description="Window start, YYYY-MM-DD"),
    end: str | None = Query(default=None, description="Window end, YYYY-MM-DD"),
    coordinator: RebuildCoordinator = Depends(get_rebuild_coordinator),
    settings: SummarySettings = Depends(get_summary_settings),
) -> DataResponse:
    """
    Return the daily series and summary for ``[start, end]``.

    Defaults to the trailing window of ``DATA_DEFAULT_RANGE_DAYS`` days.
    """

    default_start, default_end = default_date_range(days=settings.data_default_range_days)
    start = (start or default_start).strip()
    end = (end or default_end).strip()

    try:
        span_days = validate_date_range(start, end, max_days=settings.data_max_range_days)
    except DateRangeValidationError as exc:
        raise HTTPException(status_code=400, detail={"error": str(exc)}) from exc

    warning = None
    if span_days > settings.data_warn_range_days:
        warning = (
            f"Date range spans {span_days} days (> {settings.data_warn_range_days} days). "
            "Large date ranges may impact performance and insights quality."
        )
        logger.warning(warning)

    try:
        aggregates = coordinator.get_or_build()
    except InsightsCoreError as exc:
        raise to_http_exception(exc, route="GET /api/data") from exc

    series = filter_by_range(aggregates, start, end)
    totals = compute_totals(series)

    return DataResponse(
        series=[DailyAggregateResponse(**aggregate.to_dict()) for aggregate in series],
        summary=DataSummaryResponse(
            total_clicks=totals.clicks,
            total_impressions=totals.impressions,
            avg_ctr=totals.avg_ctr,
            avg_position=totals.avg_position,
            start_date=start,
            end_date=end,
        ),
        warning=warning,
    )
