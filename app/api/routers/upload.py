"""
app/api/routers/upload.py

CSV source replacement endpoint.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, UploadFile, status

from app.api.dependencies import get_csv_upload
from app.config import DataSourceSettings, get_data_source_settings
from app.errors import SnapshotWriteError
from app.schemas.search_analytics import UploadResponse
from app.services.rebuild_coordinator import RebuildCoordinator, get_rebuild_coordinator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["upload"])

_CHUNK_SIZE = 1024 * 1024


class UploadTooLargeError(Exception):
    """Raised while streaming an upload that exceeds the byte limit."""


def _stream_to_temp(file: UploadFile, *, directory: Path, max_bytes: int) -> tuple[Path, int]:
    """
    Copy the upload into a temp file beside the target, enforcing ``max_bytes``.
    """

    directory.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=".upload-", suffix=".csv.tmp", dir=directory)
    tmp_path = Path(tmp_name)
    size = 0
    try:
        with os.fdopen(fd, "wb") as handle:
            while True:
                chunk = file.file.read(_CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_bytes:
                    raise UploadTooLargeError()
                handle.write(chunk)
            handle.flush()
            os.fsync(handle.fileno())
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    return tmp_path, size


@router.post("/upload", response_model=UploadResponse)
def upload_csv(
    file: UploadFile = Depends(get_csv_upload),
    settings: DataSourceSettings = Depends(get_data_source_settings),
    coordinator: RebuildCoordinator = Depends(get_rebuild_coordinator),
) -> UploadResponse:
    """
    Replace the CSV source and invalidate the snapshot so the next read rebuilds.
    """

    target = settings.csv_path
    max_mb = settings.upload_max_bytes // (1024 * 1024)
    try:
        tmp_path, size = _stream_to_temp(
            file,
            directory=target.parent,
            max_bytes=settings.upload_max_bytes,
        )
        try:
            os.replace(tmp_path, target)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
    except UploadTooLargeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File too large. Maximum size is {max_mb} MB.",
        ) from exc
    except OSError as exc:
        logger.error("Failed to store uploaded CSV: %s", exc.strerror or exc.__class__.__name__)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to upload file. Please try again.",
        ) from exc
    finally:
        file.file.close()

    try:
        invalidated = coordinator.invalidate()
    except SnapshotWriteError as exc:
        logger.error("Uploaded CSV stored but snapshot could not be removed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="File uploaded but cached data could not be cleared.",
        ) from exc

    logger.info("CSV source replaced filename=%s size_bytes=%d", file.filename, size)
    return UploadResponse(
        message="File uploaded successfully",
        filename=file.filename or target.name,
        size_bytes=size,
        snapshot_invalidated=invalidated,
    )
