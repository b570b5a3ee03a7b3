"""
tests/conftest.py

Shared fixtures. The mock LLM adapter is forced before any app module is
imported so that ``app.main`` passes startup validation without API keys.
"""

from __future__ import annotations

import os
from datetime import date, timedelta

os.environ["LLM_ADAPTER"] = "mock"

from pathlib import Path
from typing import Callable, Iterable, Sequence

import pytest

from app.domain.search_analytics import DailyAggregate

CSV_HEADER: tuple[str, ...] = (
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


def csv_text(rows: Iterable[Sequence[object]], header: Sequence[str] = CSV_HEADER) -> str:
    lines = [",".join(header)]
    lines.extend(",".join(str(value) for value in row) for row in rows)
    return "\n".join(lines) + "\n"


@pytest.fixture()
def write_csv(tmp_path: Path) -> Callable[..., Path]:
    """Write rows under the standard header and return the file path."""

    def _write(
        rows: Iterable[Sequence[object]],
        *,
        name: str = "export.csv",
        header: Sequence[str] = CSV_HEADER,
    ) -> Path:
        path = tmp_path / name
        path.write_text(csv_text(rows, header), encoding="utf-8")
        return path

    return _write


def make_series(clicks: Sequence[float], *, start: str = "2024-01-01") -> list[DailyAggregate]:
    """Daily aggregates with consecutive dates and the given clicks."""
    first_day = date.fromisoformat(start)
    return [
        DailyAggregate(
            date=(first_day + timedelta(days=offset)).isoformat(),
            clicks=float(value),
            impressions=float(value) * 10,
            ctr=0.1,
            position=5.0,
        )
        for offset, value in enumerate(clicks)
    ]


@pytest.fixture()
def series_factory() -> Callable[..., list[DailyAggregate]]:
    return make_series
