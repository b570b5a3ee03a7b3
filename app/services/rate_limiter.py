"""
Per-caller token bucket admission control for the insights endpoint.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable

from app.config import get_rate_limit_settings


@dataclass
class _Bucket:
    tokens: float
    last_refill: float


class TokenBucketRateLimiter:
    """
    Allows bursts up to ``capacity`` calls per caller, refilled continuously
    at ``refill_per_minute``.

    Buckets are created full on first sight of a caller and evicted by
    ``sweep_idle`` once untouched for ``idle_ttl_seconds``.
    """

    def __init__(
        self,
        *,
        capacity: int = 10,
        refill_per_minute: float = 10.0,
        idle_ttl_seconds: float = 600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._capacity = float(max(1, capacity))
        self._refill_per_second = max(0.0, refill_per_minute) / 60.0
        self._idle_ttl_seconds = idle_ttl_seconds
        self._clock = clock
        self._buckets: dict[str, _Bucket] = {}
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return int(self._capacity)

    def check_limit(self, caller_id: str) -> bool:
        """
        Consume one token for ``caller_id``; False when the bucket is empty.
        """

        with self._lock:
            now = self._clock()
            bucket = self._buckets.get(caller_id)
            if bucket is None:
                bucket = _Bucket(tokens=self._capacity, last_refill=now)
                self._buckets[caller_id] = bucket

            self._refill(bucket, now)
            if bucket.tokens >= 1:
                bucket.tokens -= 1
                return True
            return False

    def get_token_count(self, caller_id: str) -> int:
        """
        Whole tokens currently held by ``caller_id`` (capacity when unknown).
        """

        with self._lock:
            bucket = self._buckets.get(caller_id)
            if bucket is None:
                return int(self._capacity)
            return math.floor(bucket.tokens)

    def sweep_idle(self) -> int:
        """
        Drop buckets idle longer than the TTL and return how many were removed.
        """

        with self._lock:
            now = self._clock()
            stale = [
                caller_id
                for caller_id, bucket in self._buckets.items()
                if now - bucket.last_refill > self._idle_ttl_seconds
            ]
            for caller_id in stale:
                del self._buckets[caller_id]
            return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)

    def _refill(self, bucket: _Bucket, now: float) -> None:
        elapsed = max(0.0, now - bucket.last_refill)
        bucket.tokens = min(self._capacity, bucket.tokens + elapsed * self._refill_per_second)
        bucket.last_refill = now


@lru_cache(maxsize=1)
def get_insights_rate_limiter() -> TokenBucketRateLimiter:
    settings = get_rate_limit_settings()
    return TokenBucketRateLimiter(
        capacity=settings.capacity,
        refill_per_minute=settings.refill_per_minute,
        idle_ttl_seconds=settings.idle_ttl_seconds,
    )
