"""
app/scheduler/jobs.py

APScheduler-based background jobs for the API process.

Schedule
--------
  rate_limit_sweep: every ``INSIGHTS_RATE_LIMIT_SWEEP_SECONDS`` (default 600)
                     evicts token buckets of callers idle past their TTL.

Lifecycle
----------
Call ``build_scheduler()`` once to get a configured ``BackgroundScheduler``.
Start it on app boot; shut it down gracefully on app shutdown.
The scheduler is wired into FastAPI via the ``lifespan`` context in main.py.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from app.config import get_rate_limit_settings
from app.services.rate_limiter import TokenBucketRateLimiter, get_insights_rate_limiter

logger = logging.getLogger(__name__)


def run_rate_limit_sweep(limiter: TokenBucketRateLimiter | None = None) -> int:
    """
    Evict idle rate limiter buckets. Returns the number removed.
    """
    limiter = limiter or get_insights_rate_limiter()
    removed = limiter.sweep_idle()
    if removed:
        logger.info("Rate limit sweep removed %d idle bucket(s)", removed)
    return removed


def build_scheduler() -> BackgroundScheduler:
    """
    Build and register all periodic jobs.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    The caller must call ``.start()`` and ``.shutdown(wait=True)`` at the
    appropriate lifecycle points.
    """
    settings = get_rate_limit_settings()
    scheduler = BackgroundScheduler(timezone="UTC")

    scheduler.add_job(
        run_rate_limit_sweep,
        trigger="interval",
        seconds=settings.sweep_interval_seconds,
        id="rate_limit_sweep",
        name="Insights rate limiter idle sweep",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )

    return scheduler
