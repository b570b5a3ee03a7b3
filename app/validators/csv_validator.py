"""
app/validators/csv_validator.py

Row-level validation and type coercion for search console CSV exports.
"""

from __future__ import annotations

import math
from typing import Any, Mapping

from app.domain.search_analytics import RawRecord

NUMERIC_COLUMNS: tuple[str, ...] = ("clicks", "impressions", "ctr", "position")
TEXT_COLUMNS: tuple[str, ...] = ("keyword", "page_url", "analytics_type", "device")


class RowRejectedError(ValueError):
    """
    Raised for one row that cannot become a RawRecord.
    """

    def __init__(self, *, row_number: int, message: str) -> None:
        super().__init__(f"row {row_number}: {message}")
        self.row_number = row_number
        self.message = message


class CSVRowValidator:
    """
    Validates and parses raw CSV rows into typed records.

    Numeric fields are coerced rather than validated: anything empty,
    unparsable or non-finite becomes ``0.0``.
    """

    def __init__(self, *, date_column: str = "analytics_date") -> None:
        self._date_column = date_column

    @property
    def date_column(self) -> str:
        return self._date_column

    def is_duplicate_header(self, row: Mapping[str, Any]) -> bool:
        """
        Return True for a repeated header line from concatenated exports.
        """

        value = row.get(self._date_column)
        return isinstance(value, str) and value.strip() == self._date_column

    def parse_row(self, *, row: Mapping[str, Any], row_number: int) -> RawRecord:
        """
        Parse one DictReader row, raising RowRejectedError when the date key is missing.
        """

        analytics_date = row.get(self._date_column)
        if self._is_blank(analytics_date):
            raise RowRejectedError(
                row_number=row_number,
                message=f"Required value '{self._date_column}' is missing.",
            )

        return RawRecord(
            analytics_date=str(analytics_date).strip(),
            clicks=self.parse_numeric(row.get("clicks")),
            impressions=self.parse_numeric(row.get("impressions")),
            ctr=self.parse_numeric(row.get("ctr")),
            position=self.parse_numeric(row.get("position")),
            keyword=self._parse_text(row.get("keyword")),
            page_url=self._parse_text(row.get("page_url")),
            analytics_type=self._parse_text(row.get("analytics_type")),
            device=self._parse_text(row.get("device")),
        )

    @staticmethod
    def parse_numeric(value: Any) -> float:
        """
        Parse a numeric CSV field, treating empty or invalid values as zero.
        """

        if value is None or isinstance(value, (list, tuple)):
            return 0.0
        raw = str(value).strip()
        if not raw:
            return 0.0
        try:
            parsed = float(raw)
        except ValueError:
            return 0.0
        return parsed if math.isfinite(parsed) else 0.0

    @staticmethod
    def _parse_text(value: Any) -> str:
        if value is None or isinstance(value, (list, tuple)):
            return ""
        return str(value).strip()

    @staticmethod
    def _is_blank(value: Any) -> bool:
        if value is None:
            return True
        if isinstance(value, (list, tuple)):
            return all(str(item).strip() == "" for item in value)
        return str(value).strip() == ""
