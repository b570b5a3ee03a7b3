"""
app/logging_utils.py

Structured JSON log lines for pipeline milestones.
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """
    Emit one structured log line as compact JSON.
    """

    if not logger.isEnabledFor(level):
        return
    payload = {"event": event, **fields}
    logger.log(level, json.dumps(payload, default=str, sort_keys=True))


@contextmanager
def timed_event(
    logger: logging.Logger,
    event: str,
    **fields: Any,
) -> Iterator[dict[str, Any]]:
    """
    Log ``<event>_started`` on entry and ``<event>_finished`` with
    ``duration_ms`` on a clean exit.

    The yielded dict is merged into the finished line, so callers can add
    counts that are only known at the end. When the block raises,
    ``<event>_failed`` is logged at WARNING with the exception type and the
    exception propagates.
    """

    log_event(logger, logging.INFO, f"{event}_started", **fields)
    extra: dict[str, Any] = {}
    started = time.perf_counter()
    try:
        yield extra
    except Exception as exc:
        log_event(
            logger,
            logging.WARNING,
            f"{event}_failed",
            error=type(exc).__name__,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
            **fields,
        )
        raise
    log_event(
        logger,
        logging.INFO,
        f"{event}_finished",
        duration_ms=round((time.perf_counter() - started) * 1000, 1),
        **fields,
        **extra,
    )
