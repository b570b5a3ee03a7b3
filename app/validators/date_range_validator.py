"""
app/validators/date_range_validator.py

Request-level validation for date window parameters.
"""

from __future__ import annotations

from datetime import date, timedelta

from app.errors import DateRangeValidationError


def parse_iso_date(value: str, *, field_name: str) -> date:
    """
    Parse a ``YYYY-MM-DD`` string, raising DateRangeValidationError otherwise.
    """

    raw = (value or "").strip()
    if len(raw) != 10:
        raise DateRangeValidationError(f"Invalid date format for {field_name}; expected YYYY-MM-DD.")
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise DateRangeValidationError(
            f"Invalid date format for {field_name}; expected YYYY-MM-DD."
        ) from exc


def validate_date_range(start: str, end: str, *, max_days: int) -> int:
    """
    Validate a window and return its span in days.

    Raises DateRangeValidationError for malformed dates, an end before the
    start, or a span above ``max_days``.
    """

    start_date = parse_iso_date(start, field_name="start date")
    end_date = parse_iso_date(end, field_name="end date")

    if end_date < start_date:
        raise DateRangeValidationError("End date must be greater than or equal to start date.")

    span_days = (end_date - start_date).days
    if span_days > max_days:
        raise DateRangeValidationError(f"Date range exceeds maximum of {max_days} days.")
    return span_days


def default_date_range(*, days: int, today: date | None = None) -> tuple[str, str]:
    """
    Return the trailing ``days`` window ending today as ISO strings.
    """

    end_date = today or date.today()
    start_date = end_date - timedelta(days=days)
    return start_date.isoformat(), end_date.isoformat()
