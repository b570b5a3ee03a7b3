"""
tests/test_csv_ingestion_service.py

Pytest unit tests for CSVIngestionService and CSVRowValidator.

Coverage
--------
- Typed records from a well-formed export
- Duplicate header rows dropped without counting as errors
- Numeric coercion of empty, invalid and non-finite values
- Short rows padded, BOM tolerated, file objects accepted
- Error budget and empty-stream corruption
- Rows the CSV tokenizer rejects are skipped and counted as malformed
- I/O classification at open time
- Laziness of the record generator
"""

from __future__ import annotations

import csv
import io
from pathlib import Path

import pytest

from app.domain.search_analytics import IngestionStats
from app.errors import SourceCorruptedError, SourceNotFoundError, SourceReadError
from app.services.csv_ingestion_service import CSVIngestionService
from app.validators.csv_validator import CSVRowValidator, RowRejectedError


@pytest.fixture()
def svc() -> CSVIngestionService:
    return CSVIngestionService(max_row_errors=3, log_row_errors=False)


# ---------------------------------------------------------------------------
# Row validator
# ---------------------------------------------------------------------------


class TestCSVRowValidator:
    def test_parse_row_returns_typed_record(self) -> None:
        record = CSVRowValidator().parse_row(
            row={
                "analytics_date": "2024-01-01",
                "keyword": " shoes ",
                "clicks": "12",
                "impressions": "300",
                "ctr": "0.04",
                "position": "3.5",
            },
            row_number=2,
        )
        assert record.analytics_date == "2024-01-01"
        assert record.keyword == "shoes"
        assert record.clicks == pytest.approx(12.0)
        assert record.impressions == pytest.approx(300.0)
        assert record.ctr == pytest.approx(0.04)
        assert record.position == pytest.approx(3.5)
        assert record.device == ""

    @pytest.mark.parametrize("value", ["", "abc", "NaN", "inf", "-Infinity", None])
    def test_parse_numeric_coerces_to_zero(self, value: object) -> None:
        assert CSVRowValidator.parse_numeric(value) == 0.0

    def test_parse_numeric_accepts_padded_numbers(self) -> None:
        assert CSVRowValidator.parse_numeric(" 7.25 ") == pytest.approx(7.25)

    def test_missing_date_is_rejected(self) -> None:
        with pytest.raises(RowRejectedError) as excinfo:
            CSVRowValidator().parse_row(row={"analytics_date": "  ", "clicks": "1"}, row_number=5)
        assert excinfo.value.row_number == 5

    def test_duplicate_header_detection(self) -> None:
        validator = CSVRowValidator()
        assert validator.is_duplicate_header({"analytics_date": "analytics_date"})
        assert not validator.is_duplicate_header({"analytics_date": "2024-01-01"})


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------


class TestIterRecords:
    def test_yields_one_record_per_valid_row(self, svc: CSVIngestionService, write_csv) -> None:
        path = write_csv(
            [
                ("2024-01-01", "a", "/a", 10, 100, 0.1, 2.0, "web", "mobile"),
                ("2024-01-01", "b", "/b", 5, 50, 0.1, 4.0, "web", "desktop"),
                ("2024-01-02", "a", "/a", 7, 70, 0.1, 3.0, "web", "mobile"),
            ]
        )
        records = list(svc.iter_records(path))
        assert [record.analytics_date for record in records] == ["2024-01-01", "2024-01-01", "2024-01-02"]
        assert records[1].device == "desktop"

    def test_duplicate_headers_are_skipped_not_counted(self, svc: CSVIngestionService, write_csv) -> None:
        header_row = (
            "analytics_date",
            "keyword",
            "page_url",
            "clicks",
            "impressions",
            "ctr",
            "position",
            "analytics_type",
            "device",
        )
        path = write_csv(
            [("2024-01-01", "a", "/a", 1, 10, 0.1, 1, "", "")]
            + [header_row] * 5
            + [("2024-01-02", "a", "/a", 2, 20, 0.1, 1, "", "")]
        )
        stats = IngestionStats()
        records = list(svc.iter_records(path, stats=stats))

        assert len(records) == 2
        assert stats.duplicate_headers == 5
        assert stats.rows_skipped == 0

    def test_invalid_numerics_become_zero(self, svc: CSVIngestionService, write_csv) -> None:
        path = write_csv([("2024-01-01", "a", "/a", "n/a", "", "NaN", "inf", "", "")])
        (record,) = list(svc.iter_records(path))
        assert (record.clicks, record.impressions, record.ctr, record.position) == (0.0, 0.0, 0.0, 0.0)

    def test_short_rows_are_padded(self, tmp_path: Path, svc: CSVIngestionService) -> None:
        path = tmp_path / "short.csv"
        path.write_text("analytics_date,keyword,clicks,impressions\n2024-01-01,a,3\n", encoding="utf-8")
        (record,) = list(svc.iter_records(path))
        assert record.clicks == pytest.approx(3.0)
        assert record.impressions == 0.0

    def test_accepts_binary_stream_with_bom(self, svc: CSVIngestionService) -> None:
        raw = "\ufeffanalytics_date,clicks,impressions,ctr,position\r\n2024-01-01,4,40,0.1,2\r\n"
        stream = io.BytesIO(raw.encode("utf-8"))
        (record,) = list(svc.iter_records(stream))
        assert record.analytics_date == "2024-01-01"
        assert record.clicks == pytest.approx(4.0)
        assert not stream.closed

    def test_is_lazy(self, svc: CSVIngestionService, tmp_path: Path) -> None:
        records = svc.iter_records(tmp_path / "missing.csv")
        # Nothing is opened until the first record is requested.
        with pytest.raises(SourceNotFoundError):
            next(records)


# ---------------------------------------------------------------------------
# Failure classification
# ---------------------------------------------------------------------------


class TestIngestionErrors:
    def test_missing_file(self, svc: CSVIngestionService, tmp_path: Path) -> None:
        with pytest.raises(SourceNotFoundError, match="CSV file not found"):
            list(svc.iter_records(tmp_path / "nope.csv"))

    def test_directory_is_a_read_error(self, svc: CSVIngestionService, tmp_path: Path) -> None:
        with pytest.raises((SourceReadError, SourceNotFoundError)):
            list(svc.iter_records(tmp_path))

    def test_error_budget_exceeded(self, svc: CSVIngestionService, write_csv) -> None:
        rows = [("2024-01-01", "a", "/a", 1, 10, 0.1, 1, "", "")]
        rows += [("", "missing-date", "/x", 1, 1, 0, 0, "", "")] * 4
        path = write_csv(rows)

        with pytest.raises(SourceCorruptedError, match="Too many invalid rows") as excinfo:
            list(svc.iter_records(path))
        assert excinfo.value.rows_skipped == 4

    def test_errors_within_budget_are_skipped(self, svc: CSVIngestionService, write_csv) -> None:
        rows = [("2024-01-01", "a", "/a", 1, 10, 0.1, 1, "", "")]
        rows += [("", "missing-date", "/x", 1, 1, 0, 0, "", "")] * 3
        stats = IngestionStats()

        records = list(svc.iter_records(write_csv(rows), stats=stats))

        assert len(records) == 1
        assert stats.rows_skipped == 3

    def test_header_only_is_corrupted(self, svc: CSVIngestionService, write_csv) -> None:
        with pytest.raises(SourceCorruptedError, match="no valid data rows"):
            list(svc.iter_records(write_csv([])))

    def test_empty_file_is_corrupted(self, svc: CSVIngestionService, tmp_path: Path) -> None:
        path = tmp_path / "empty.csv"
        path.write_bytes(b"")
        with pytest.raises(SourceCorruptedError):
            list(svc.iter_records(path))

    def test_missing_date_column_is_corrupted(self, svc: CSVIngestionService, tmp_path: Path) -> None:
        path = tmp_path / "nodate.csv"
        path.write_text("day,clicks\n2024-01-01,1\n", encoding="utf-8")
        with pytest.raises(SourceCorruptedError, match="analytics_date"):
            list(svc.iter_records(path))

    def test_undecodable_bytes_are_corrupted(self, svc: CSVIngestionService, tmp_path: Path) -> None:
        path = tmp_path / "latin1.csv"
        path.write_bytes(b"analytics_date,keyword\n2024-01-01,caf\xe9\n")
        with pytest.raises(SourceCorruptedError, match="UTF-8"):
            list(svc.iter_records(path))

    def test_tokenizer_rejected_row_is_skipped(self, svc: CSVIngestionService, write_csv) -> None:
        oversized = "x" * (csv.field_size_limit() + 1)
        path = write_csv(
            [
                ("2024-01-01", oversized, "/a", 1, 10, 0.1, 1, "", ""),
                ("2024-01-02", "a", "/a", 2, 20, 0.1, 1, "", ""),
            ]
        )
        stats = IngestionStats()

        records = list(svc.iter_records(path, stats=stats))

        assert [record.analytics_date for record in records] == ["2024-01-02"]
        assert stats.malformed_rows == 1
        assert stats.rows_skipped == 1

    def test_tokenizer_rejected_rows_count_against_budget(self, svc: CSVIngestionService, write_csv) -> None:
        oversized = "x" * (csv.field_size_limit() + 1)
        rows = [("2024-01-01", "a", "/a", 1, 10, 0.1, 1, "", "")]
        rows += [("2024-01-02", oversized, "/x", 1, 1, 0, 0, "", "")] * 4
        path = write_csv(rows)

        with pytest.raises(SourceCorruptedError, match="Too many invalid rows"):
            list(svc.iter_records(path))
