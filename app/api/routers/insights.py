"""
app/api/routers/insights.py

AI insights endpoint for a date window.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.dependencies import enforce_insights_rate_limit
from app.api.error_mapping import to_http_exception
from app.config import SummarySettings, get_summary_settings
from app.errors import DateRangeValidationError, InsightsCoreError
from app.schemas.search_analytics import InsightsRequest
from app.services.insights_service import InsightsService, get_insights_service
from app.validators.date_range_validator import validate_date_range
from llm_synthesis.errors import AnalysisError
from llm_synthesis.schema import InsightsResponse
from llm_synthesis.validator import LLMOutputValidationError

router = APIRouter(prefix="/api", tags=["insights"])


@router.post(
    "/insights",
    response_model=InsightsResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(enforce_insights_rate_limit)],
)
def create_insights(
    body: InsightsRequest,
    settings: SummarySettings = Depends(get_summary_settings),
    insights_service: InsightsService = Depends(get_insights_service),
) -> InsightsResponse:
    """
    Summarize the window and return the validated analysis.
    """

    try:
        validate_date_range(
            body.start_date,
            body.end_date,
            max_days=settings.insights_max_range_days,
        )
    except DateRangeValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": str(exc)},
        ) from exc

    try:
        return insights_service.generate_insights(body.start_date, body.end_date)
    except (InsightsCoreError, AnalysisError, LLMOutputValidationError) as exc:
        raise to_http_exception(exc, route="POST /api/insights") from exc
