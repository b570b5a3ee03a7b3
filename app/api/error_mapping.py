"""
app/api/error_mapping.py

Translation of classified failures into HTTP responses.

Each failure kind maps to exactly one status and one client-facing message.
Internal paths, raw SDK messages and secrets never reach the client; the
sanitized original is logged instead.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from app.api.dependencies import sanitize_error_message
from app.errors import (
    AggregationError,
    DateRangeValidationError,
    EmptyRangeError,
    RangeTooLargeError,
    SnapshotWriteError,
    SourceCorruptedError,
    SourceNotFoundError,
    SourcePermissionError,
    SourceReadError,
)
from llm_synthesis.errors import (
    AnalysisAuthError,
    AnalysisConfigurationError,
    AnalysisError,
    AnalysisQuotaError,
    AnalysisResponseError,
    AnalysisRetryExhaustedError,
    AnalysisTimeoutError,
    AnalysisUnavailableError,
)
from llm_synthesis.validator import LLMOutputValidationError

logger = logging.getLogger(__name__)

_INVALID_AI_RESPONSE = (
    status.HTTP_502_BAD_GATEWAY,
    "Received invalid response from AI service.",
    "The AI service returned data in an unexpected format. Please try again.",
)

# Checked in order; subclasses before their bases.
_CORE_ERRORS: tuple[tuple[type[Exception], int, str, str], ...] = (
    (
        DateRangeValidationError,
        status.HTTP_400_BAD_REQUEST,
        "Invalid date range.",
        "",
    ),
    (
        EmptyRangeError,
        status.HTTP_400_BAD_REQUEST,
        "No data available for the selected date range",
        "Choose a date range that overlaps the uploaded data.",
    ),
    (
        RangeTooLargeError,
        status.HTTP_400_BAD_REQUEST,
        "Date range too large",
        "The selected date range produces too much data. Please select a smaller range.",
    ),
    (
        SourceNotFoundError,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Data source not found.",
        "The data file could not be located. Upload a CSV file or contact your administrator.",
    ),
    (
        SourcePermissionError,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Data source could not be read.",
        "The application does not have permission to read the data file.",
    ),
    (
        SourceReadError,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Data source could not be read.",
        "An I/O error occurred while reading the data file.",
    ),
    (
        SourceCorruptedError,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Failed to process CSV data. The file may be corrupted or in an invalid format.",
        "",
    ),
    (
        AggregationError,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Failed to process CSV data. The file may be corrupted or in an invalid format.",
        "",
    ),
    (
        SnapshotWriteError,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Failed to cache data. The application may not have write permissions.",
        "",
    ),
)

_ANALYSIS_ERRORS: tuple[tuple[type[Exception], int, str, str], ...] = (
    (
        AnalysisConfigurationError,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "AI service is not configured properly.",
        "The AI service configuration is missing. Contact your administrator.",
    ),
    (
        AnalysisAuthError,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "AI service authentication failed.",
        "Please check the API key configuration.",
    ),
    (
        AnalysisQuotaError,
        status.HTTP_429_TOO_MANY_REQUESTS,
        "AI service rate limit exceeded.",
        "Too many requests to the AI service. Please wait a moment and try again.",
    ),
    (
        AnalysisTimeoutError,
        status.HTTP_504_GATEWAY_TIMEOUT,
        "AI service request timed out.",
        "The request took too long to complete. Please try again with a smaller date range.",
    ),
    (
        AnalysisUnavailableError,
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "AI service is currently unavailable.",
        "Please try again later.",
    ),
    (AnalysisResponseError, *_INVALID_AI_RESPONSE),
    (LLMOutputValidationError, *_INVALID_AI_RESPONSE),
)


def to_http_exception(exc: Exception, *, route: str) -> HTTPException:
    """
    Build the HTTPException for a classified failure and log the original.

    Unclassified exceptions become a generic 500.
    """

    source = exc
    attempts = 1
    if isinstance(exc, AnalysisRetryExhaustedError):
        source = exc.last_error
        attempts = exc.attempts

    message = sanitize_error_message(str(exc))

    for error_type, status_code, error, details in _CORE_ERRORS + _ANALYSIS_ERRORS:
        if isinstance(source, error_type):
            level = logging.WARNING if status_code < 500 else logging.ERROR
            logger.log(level, "Error in %s: %s", route, message)
            if not details:
                details = sanitize_error_message(str(source))
            if attempts > 1:
                details = f"{details} Failed after {attempts} attempts.".strip()
            return HTTPException(
                status_code=status_code,
                detail={"error": error, "details": details},
            )

    logger.error("Error in %s: %s", route, message)
    if isinstance(source, AnalysisError):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "AI service request failed.", "details": "Please try again later."},
        )

    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "An unexpected error occurred.",
            "details": "Please try again later.",
        },
    )
