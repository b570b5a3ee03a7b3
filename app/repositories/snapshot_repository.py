"""
app/repositories/snapshot_repository.py

Flat-file persistence for the daily aggregate collection.

The snapshot is a single JSON array. Writes go to a sibling temp file that
is then moved over the target with ``os.replace``, so a reader only ever
sees the previous complete snapshot or the new complete one.
"""

from __future__ import annotations

import json
import logging
import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from pydantic import TypeAdapter, ValidationError

from app.domain.search_analytics import DailyAggregate
from app.errors import SnapshotWriteError

logger = logging.getLogger(__name__)

SNAPSHOT_PRESENT = "present"
SNAPSHOT_MISSING = "missing"
SNAPSHOT_INVALID = "invalid"

_AGGREGATES_ADAPTER = TypeAdapter(list[DailyAggregate])


@dataclass(frozen=True)
class SnapshotReadResult:
    """
    Outcome of reading the snapshot file.

    ``missing`` and ``invalid`` both mean the caller must rebuild; they are
    kept apart only for logging and diagnostics.
    """

    status: str
    aggregates: list[DailyAggregate] = field(default_factory=list)
    reason: str | None = None

    @property
    def is_present(self) -> bool:
        return self.status == SNAPSHOT_PRESENT


class SnapshotRepository:
    """
    Reads and atomically replaces the daily aggregate snapshot file.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> SnapshotReadResult:
        """
        Load the snapshot; never raises for absence or structural problems.
        """
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return SnapshotReadResult(status=SNAPSHOT_MISSING)
        except (OSError, UnicodeDecodeError) as exc:
            return self._invalid(f"unreadable: {exc}")

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            return self._invalid(f"invalid JSON: {exc}")

        if not isinstance(data, list):
            return self._invalid("top-level value is not an array")

        try:
            aggregates = _AGGREGATES_ADAPTER.validate_python(data)
        except ValidationError as exc:
            return self._invalid(f"{exc.error_count()} structural error(s)")

        for aggregate in aggregates:
            values = (aggregate.clicks, aggregate.impressions, aggregate.ctr, aggregate.position)
            if not all(math.isfinite(value) for value in values):
                return self._invalid(f"non-finite metric for date {aggregate.date!r}")

        return SnapshotReadResult(status=SNAPSHOT_PRESENT, aggregates=aggregates)

    def write(self, aggregates: Sequence[DailyAggregate]) -> None:
        """
        Replace the snapshot with ``aggregates``.

        Raises:
            SnapshotWriteError: the directory or file cannot be written.
        """
        payload = [aggregate.to_dict() for aggregate in aggregates]
        tmp_path = self._path.with_suffix(f"{self._path.suffix}.tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, allow_nan=False)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self._path)
        except (OSError, ValueError) as exc:
            raise SnapshotWriteError(f"Failed to write snapshot: {exc}") from exc
        finally:
            if tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError as exc:
                    logger.warning("Could not remove snapshot temp file %s: %s", tmp_path.name, exc)

        logger.info("Snapshot written: %d daily aggregates", len(payload))

    def delete(self) -> bool:
        """
        Remove the snapshot if present. Returns True when a file was removed.
        """
        try:
            self._path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise SnapshotWriteError(f"Failed to delete snapshot: {exc}") from exc
        return True

    def _invalid(self, reason: str) -> SnapshotReadResult:
        logger.warning("Snapshot treated as corrupted path=%s reason=%s", self._path.name, reason)
        return SnapshotReadResult(status=SNAPSHOT_INVALID, reason=reason)
