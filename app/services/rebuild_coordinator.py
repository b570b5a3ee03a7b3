"""
app/services/rebuild_coordinator.py

Cache-or-build access to the daily aggregate collection.

Readers that find a valid snapshot return without locking. On a miss the
first caller to take the lock becomes the leader of a rebuild episode and
runs ingestion, aggregation and persistence; every caller that misses while
that episode is in flight waits on the episode's Future instead of starting
its own pass. The lock is never held while the CSV is being read.
"""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import Future
from functools import lru_cache
from pathlib import Path

from app.config import get_data_source_settings
from app.domain.search_analytics import DailyAggregate, IngestionStats
from app.errors import AggregationError, SnapshotWriteError, SourceError
from app.logging_utils import timed_event
from app.repositories.snapshot_repository import SnapshotRepository
from app.services.aggregation_service import (
    DailyAggregationService,
    get_daily_aggregation_service,
)
from app.services.csv_ingestion_service import (
    CSVIngestionService,
    get_csv_ingestion_service,
)

logger = logging.getLogger(__name__)


class RebuildCoordinator:
    """
    Serves the aggregate collection, rebuilding it at most once per miss.
    """

    def __init__(
        self,
        *,
        snapshot_repository: SnapshotRepository,
        ingestion_service: CSVIngestionService,
        aggregation_service: DailyAggregationService,
        source_path: str | os.PathLike,
        lock: threading.Lock | None = None,
    ) -> None:
        self._snapshots = snapshot_repository
        self._ingestion = ingestion_service
        self._aggregation = aggregation_service
        self._source_path = Path(source_path)
        self._lock = lock or threading.Lock()
        self._episode: Future[list[DailyAggregate]] | None = None
        self._generation = 0

    @property
    def source_path(self) -> Path:
        return self._source_path

    @property
    def snapshot_repository(self) -> SnapshotRepository:
        return self._snapshots

    def get_or_build(self) -> list[DailyAggregate]:
        """
        Return the cached aggregates, rebuilding from the CSV on a miss.

        Raises:
            SourceError: the CSV could not be opened or parsed.
            AggregationError: the CSV produced no aggregates, or the build
                failed for an unclassified reason.
        """
        cached = self._snapshots.read()
        if cached.is_present:
            return cached.aggregates

        with self._lock:
            cached = self._snapshots.read()
            if cached.is_present:
                return cached.aggregates

            episode = self._episode
            is_leader = episode is None
            if is_leader:
                episode = Future()
                self._episode = episode
                generation = self._generation
                logger.info("Snapshot %s; starting rebuild", cached.status)

        if not is_leader:
            logger.info("Rebuild already in progress; waiting for it to finish")
            return episode.result()

        try:
            aggregates = self._rebuild(generation)
        except BaseException as exc:
            episode.set_exception(exc)
            raise
        else:
            episode.set_result(aggregates)
            return aggregates
        finally:
            with self._lock:
                # invalidate() may already have handed the slot to a newer episode.
                if self._episode is episode:
                    self._episode = None

    def invalidate(self) -> bool:
        """
        Drop the snapshot so the next read rebuilds from the current CSV.

        A rebuild already in flight still serves its result to its own
        waiters but no longer writes it to the snapshot. Callers that miss
        after this point start a fresh episode instead of joining it.
        """
        with self._lock:
            self._generation += 1
            self._episode = None
            removed = self._snapshots.delete()
        if removed:
            logger.info("Snapshot invalidated")
        return removed

    def _rebuild(self, generation: int) -> list[DailyAggregate]:
        stats = IngestionStats()
        with timed_event(logger, "rebuild", source=str(self._source_path)) as outcome:
            try:
                records = self._ingestion.iter_records(self._source_path, stats=stats)
                aggregates = self._aggregation.build_daily_aggregates(records)
            except (SourceError, AggregationError):
                raise
            except Exception as exc:
                raise AggregationError(f"Failed to process CSV data: {exc}") from exc

            with self._lock:
                cached = generation == self._generation
                if cached:
                    try:
                        self._snapshots.write(aggregates)
                    except SnapshotWriteError as exc:
                        cached = False
                        logger.error("Snapshot write failed; serving rebuilt data uncached: %s", exc)
                else:
                    logger.info("Source replaced during rebuild; result not cached")

            outcome.update(
                days=len(aggregates),
                rows_read=stats.rows_read,
                rows_skipped=stats.rows_skipped,
                cached=cached,
            )
        return aggregates


@lru_cache(maxsize=1)
def get_rebuild_coordinator() -> RebuildCoordinator:
    """
    Build and cache the process-wide coordinator from env settings.
    """
    settings = get_data_source_settings()
    return RebuildCoordinator(
        snapshot_repository=SnapshotRepository(settings.snapshot_path),
        ingestion_service=get_csv_ingestion_service(),
        aggregation_service=get_daily_aggregation_service(),
        source_path=settings.csv_path,
    )
