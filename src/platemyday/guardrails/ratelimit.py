"""
Sliding-window rate limiting.

`QuotaStore` is the seam: the in-memory implementation below is best-effort
(bounded memory, resets on restart) and fine for abuse mitigation. A
multi-instance deployment should plug in a store backed by an atomic
counter service.
"""

import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

MAX_BUCKETS = 5000
STALE_BUCKET_SECONDS = 60 * 60
PRUNE_INTERVAL_SECONDS = 60


@dataclass
class RateLimitResult:
    allowed: bool
    reset_at: float
    remaining: int = 0
    retry_after_seconds: int = 0


@dataclass
class _Bucket:
    timestamps: list[float] = field(default_factory=list)
    last_seen_at: float = 0.0


class QuotaStore(ABC):
    """Storage for per-key request quotas."""

    @abstractmethod
    def check_and_consume(self, key: str, limit: int, window_seconds: float) -> RateLimitResult:
        """Record a request for `key` if fewer than `limit` fall within the window."""


class InMemoryQuotaStore(QuotaStore):
    """Process-local sliding-window store with opportunistic pruning."""

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        max_buckets: int = MAX_BUCKETS,
        stale_after_seconds: float = STALE_BUCKET_SECONDS,
        prune_interval_seconds: float = PRUNE_INTERVAL_SECONDS,
    ):
        self._clock = clock
        self._max_buckets = max_buckets
        self._stale_after = stale_after_seconds
        self._prune_interval = prune_interval_seconds
        self._buckets: dict[str, _Bucket] = {}
        self._last_prune_at: float | None = None
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._buckets)

    def __contains__(self, key: object) -> bool:
        return key in self._buckets

    def _prune(self, now: float) -> None:
        recently_pruned = (
            self._last_prune_at is not None and now - self._last_prune_at < self._prune_interval
        )
        if recently_pruned and len(self._buckets) <= self._max_buckets:
            return

        stale = [k for k, b in self._buckets.items() if now - b.last_seen_at > self._stale_after]
        for key in stale:
            del self._buckets[key]

        overflow = len(self._buckets) - self._max_buckets
        if overflow > 0:
            oldest = sorted(self._buckets.items(), key=lambda item: item[1].last_seen_at)[:overflow]
            for key, _ in oldest:
                del self._buckets[key]

        if stale or overflow > 0:
            logger.debug(f"Pruned rate-limit buckets: {len(stale)} stale, {max(overflow, 0)} evicted")
        self._last_prune_at = now

    def check_and_consume(self, key: str, limit: int, window_seconds: float) -> RateLimitResult:
        with self._lock:
            now = self._clock()
            self._prune(now)

            existing = self._buckets.get(key)
            timestamps = [ts for ts in (existing.timestamps if existing else []) if now - ts < window_seconds]

            if len(timestamps) >= limit:
                retry_after = window_seconds - (now - timestamps[0])
                self._buckets[key] = _Bucket(timestamps=timestamps, last_seen_at=now)
                return RateLimitResult(
                    allowed=False,
                    reset_at=now + retry_after,
                    retry_after_seconds=max(1, math.ceil(retry_after)),
                )

            timestamps.append(now)
            self._buckets[key] = _Bucket(timestamps=timestamps, last_seen_at=now)
            return RateLimitResult(
                allowed=True,
                reset_at=now + window_seconds,
                remaining=max(0, limit - len(timestamps)),
            )


# Process-wide store
_store: QuotaStore | None = None


def get_quota_store() -> QuotaStore:
    """Get the shared quota store (in-memory unless one was installed)."""
    global _store

    if _store is None:
        _store = InMemoryQuotaStore()

    return _store


def set_quota_store(store: QuotaStore | None) -> None:
    """Install a quota store (None resets to a fresh in-memory store on next use)."""
    global _store
    _store = store
