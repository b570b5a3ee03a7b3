"""
app/errors.py

Exception taxonomy for the ingestion, snapshot and summarization core.

Low-level I/O and parse failures are classified where they occur and
re-raised as one of these kinds with the original exception chained.
"""

from __future__ import annotations


class InsightsCoreError(Exception):
    """Base exception for all classified core failures."""


class SourceError(InsightsCoreError):
    """Base exception for failures reading the CSV source."""

    def __init__(self, message: str, *, source: str | None = None) -> None:
        super().__init__(message)
        self.source = source


class SourceNotFoundError(SourceError):
    """Raised when the CSV source does not exist."""


class SourcePermissionError(SourceError):
    """Raised when the CSV source exists but cannot be opened for reading."""


class SourceReadError(SourceError):
    """Raised when the CSV source fails with any other I/O error."""


class SourceCorruptedError(SourceError):
    """
    Raised when the source exceeds the row error budget, has no header,
    cannot be decoded, or yields no valid records at all.
    """

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        rows_skipped: int = 0,
    ) -> None:
        super().__init__(message, source=source)
        self.rows_skipped = rows_skipped


class AggregationError(InsightsCoreError):
    """Raised when the record stream cannot be folded into daily aggregates."""


class SnapshotWriteError(InsightsCoreError):
    """Raised when the snapshot file cannot be written."""


class RangeTooLargeError(InsightsCoreError):
    """Raised when a summary payload exceeds the configured size bound."""

    def __init__(self, *, payload_bytes: int, max_bytes: int) -> None:
        super().__init__(
            f"Insights payload is {payload_bytes} bytes, exceeding the {max_bytes} byte limit."
        )
        self.payload_bytes = payload_bytes
        self.max_bytes = max_bytes


class EmptyRangeError(InsightsCoreError):
    """Raised when a date window contains no daily aggregates."""


class DateRangeValidationError(ValueError):
    """Raised when request date parameters are malformed or out of bounds."""
