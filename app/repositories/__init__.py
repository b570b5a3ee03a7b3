"""
app/repositories package marker.
"""

from app.repositories.snapshot_repository import SnapshotReadResult, SnapshotRepository

__all__ = [
    "SnapshotReadResult",
    "SnapshotRepository",
]
