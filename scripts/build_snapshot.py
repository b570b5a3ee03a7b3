"""
Build the daily aggregate snapshot from CLI.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from app.config import get_data_source_settings
from app.errors import InsightsCoreError
from app.repositories.snapshot_repository import SnapshotRepository
from app.services.aggregation_service import get_daily_aggregation_service
from app.services.csv_ingestion_service import get_csv_ingestion_service
from app.services.range_summarizer import compute_totals
from app.services.rebuild_coordinator import RebuildCoordinator


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Pre-build the daily aggregate snapshot.")
    parser.add_argument(
        "--csv",
        dest="csv_path",
        default=None,
        help="CSV export to read. Defaults to CSV_FILE_PATH.",
    )
    parser.add_argument(
        "--snapshot",
        dest="snapshot_path",
        default=None,
        help="Snapshot file to write. Defaults to SNAPSHOT_PATH.",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Discard any existing snapshot and rebuild.",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    settings = get_data_source_settings()
    coordinator = RebuildCoordinator(
        snapshot_repository=SnapshotRepository(args.snapshot_path or settings.snapshot_path),
        ingestion_service=get_csv_ingestion_service(),
        aggregation_service=get_daily_aggregation_service(),
        source_path=args.csv_path or settings.csv_path,
    )

    try:
        if args.force:
            coordinator.invalidate()
        aggregates = coordinator.get_or_build()
    except InsightsCoreError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    totals = compute_totals(aggregates)
    payload = {
        "days": len(aggregates),
        "first_date": aggregates[0].date if aggregates else None,
        "last_date": aggregates[-1].date if aggregates else None,
        "total_clicks": totals.clicks,
        "total_impressions": totals.impressions,
        "avg_ctr": totals.avg_ctr,
        "avg_position": totals.avg_position,
        "snapshot": str(coordinator.snapshot_repository.path),
    }
    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
