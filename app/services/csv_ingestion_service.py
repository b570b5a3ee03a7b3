"""
app/services/csv_ingestion_service.py

Streaming reader for search console CSV exports.

The export can be hundreds of megabytes, so rows are parsed one at a time
from a text wrapper over the binary stream and handed to the caller as a
lazy generator; memory use does not grow with file size.

Row policy
----------
- Repeated header lines (from concatenated exports) are dropped silently.
- Rows without a date key, and rows the CSV tokenizer rejects, are counted
  as errors and skipped. Exceeding ``max_row_errors`` aborts the stream.
- Numeric fields never fail a row; invalid values are coerced to zero.
- A stream that yields no records at all is treated as corrupted.
"""

from __future__ import annotations

import contextlib
import csv
import io
import logging
import os
from functools import lru_cache
from typing import BinaryIO, Iterator, Union

from app.config import get_data_source_settings
from app.domain.search_analytics import IngestionStats, RawRecord
from app.errors import (
    SourceCorruptedError,
    SourceNotFoundError,
    SourcePermissionError,
    SourceReadError,
)
from app.logging_utils import log_event
from app.validators.csv_validator import CSVRowValidator, RowRejectedError

logger = logging.getLogger(__name__)

CSVSource = Union[str, os.PathLike, BinaryIO]


class CSVIngestionService:
    """
    Turns a CSV byte stream into a lazy sequence of RawRecord.
    """

    def __init__(
        self,
        *,
        max_row_errors: int = 100,
        log_row_errors: bool = True,
        max_logged_row_errors: int = 20,
        validator: CSVRowValidator | None = None,
    ) -> None:
        self._max_row_errors = max(0, max_row_errors)
        self._log_row_errors = log_row_errors
        self._max_logged_row_errors = max(0, max_logged_row_errors)
        self._validator = validator or CSVRowValidator()

    def iter_records(
        self,
        source: CSVSource,
        *,
        stats: IngestionStats | None = None,
    ) -> Iterator[RawRecord]:
        """
        Stream ``source`` and yield one RawRecord per valid data row.

        ``source`` is a filesystem path or an open binary file object; file
        objects are left open for the caller. Pass ``stats`` to observe the
        row counters after the generator is exhausted.

        Raises:
            SourceNotFoundError: the path does not exist.
            SourcePermissionError: the path cannot be opened for reading.
            SourceReadError: any other I/O failure.
            SourceCorruptedError: error budget exceeded, missing header,
                undecodable bytes, or no valid rows.
        """
        stats = stats if stats is not None else IngestionStats()
        label = _describe_source(source)

        with self._open_binary(source, label) as raw_file:
            text_stream = io.TextIOWrapper(raw_file, encoding="utf-8-sig", newline="")
            try:
                yield from self._iter_rows(text_stream, label=label, stats=stats)
            except UnicodeDecodeError as exc:
                raise SourceCorruptedError(
                    "CSV must be UTF-8 encoded.",
                    source=label,
                    rows_skipped=stats.rows_skipped,
                ) from exc
            except OSError as exc:
                raise SourceReadError(f"Failed to read CSV file: {exc}", source=label) from exc
            finally:
                # Leave caller-owned file objects open; detach fails only once closed.
                with contextlib.suppress(ValueError):
                    text_stream.detach()

        if stats.rows_skipped:
            logger.info(
                "CSV parsing completed with %d skipped/invalid rows out of %d total rows",
                stats.rows_skipped,
                stats.rows_read,
            )
        log_event(
            logger,
            logging.INFO,
            "csv_ingestion_complete",
            source=label,
            rows_read=stats.rows_read,
            rows_yielded=stats.rows_yielded,
            rows_skipped=stats.rows_skipped,
            duplicate_headers=stats.duplicate_headers,
            malformed_rows=stats.malformed_rows,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _iter_rows(
        self,
        text_stream: io.TextIOWrapper,
        *,
        label: str,
        stats: IngestionStats,
    ) -> Iterator[RawRecord]:
        reader = csv.DictReader(text_stream, restval="", skipinitialspace=True)
        try:
            headers = reader.fieldnames
        except csv.Error as exc:
            raise SourceCorruptedError(f"Invalid CSV header: {exc}", source=label) from exc

        if not headers:
            raise SourceCorruptedError(
                "CSV file is empty or contains no valid data rows.",
                source=label,
            )
        reader.fieldnames = [str(header).strip() for header in headers]
        if self._validator.date_column not in reader.fieldnames:
            raise SourceCorruptedError(
                f"CSV header is missing the '{self._validator.date_column}' column.",
                source=label,
            )

        while True:
            try:
                row = next(reader)
            except StopIteration:
                break
            except csv.Error as exc:
                stats.rows_read += 1
                stats.malformed_rows += 1
                self._reject(
                    stats,
                    label=label,
                    row_number=reader.line_num,
                    message=f"Malformed CSV row: {exc}",
                )
                continue

            stats.rows_read += 1
            if self._validator.is_duplicate_header(row):
                stats.duplicate_headers += 1
                continue

            try:
                record = self._validator.parse_row(row=row, row_number=reader.line_num)
            except RowRejectedError as exc:
                self._reject(stats, label=label, row_number=exc.row_number, message=exc.message)
                continue

            stats.rows_yielded += 1
            yield record

        if stats.rows_yielded == 0:
            raise SourceCorruptedError(
                "CSV file is empty or contains no valid data rows.",
                source=label,
                rows_skipped=stats.rows_skipped,
            )

    def _reject(
        self,
        stats: IngestionStats,
        *,
        label: str,
        row_number: int,
        message: str,
    ) -> None:
        stats.rows_skipped += 1
        if self._log_row_errors and stats.rows_skipped <= self._max_logged_row_errors:
            logger.warning("CSV row skipped row=%s message=%s", row_number, message)

        if stats.rows_skipped > self._max_row_errors:
            raise SourceCorruptedError(
                f"Too many invalid rows ({stats.rows_skipped}). CSV file may be corrupted.",
                source=label,
                rows_skipped=stats.rows_skipped,
            )

    @staticmethod
    def _open_binary(source: CSVSource, label: str) -> contextlib.AbstractContextManager[BinaryIO]:
        if not isinstance(source, (str, os.PathLike)):
            return contextlib.nullcontext(source)
        try:
            return open(source, "rb")
        except FileNotFoundError as exc:
            raise SourceNotFoundError(f"CSV file not found at path: {label}", source=label) from exc
        except PermissionError as exc:
            raise SourcePermissionError(
                f"Permission denied reading CSV file: {label}", source=label
            ) from exc
        except OSError as exc:
            raise SourceReadError(f"Failed to read CSV file: {exc}", source=label) from exc


def _describe_source(source: CSVSource) -> str:
    if isinstance(source, (str, os.PathLike)):
        return os.fspath(source)
    return str(getattr(source, "name", "<stream>"))


@lru_cache(maxsize=1)
def get_csv_ingestion_service() -> CSVIngestionService:
    """
    Build and cache the ingestion service with env-driven settings.
    """
    settings = get_data_source_settings()
    return CSVIngestionService(
        max_row_errors=settings.max_row_errors,
        log_row_errors=settings.log_row_errors,
        max_logged_row_errors=settings.max_logged_row_errors,
        validator=CSVRowValidator(date_column=settings.date_column),
    )
