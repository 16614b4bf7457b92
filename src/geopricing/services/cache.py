"""Process-wide, time-bounded memoization of external lookups.

Values are immutable once inserted and expire lazily on read. Concurrent
requests may race to fill the same key; the later write simply replaces an
identical value, so the worst case is one redundant provider call. The lock
only guards dictionary access and is never held across a network call.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Optional

from ..models.domain import Coordinates

# Coordinates are rounded to this many decimal degrees (~11m at the equator)
# before being used in a cache key, so near-duplicate requests share entries.
DEFAULT_COORDINATE_PRECISION = 4
DEFAULT_TTL_SECONDS = 15 * 60
DEFAULT_MAX_ENTRIES = 10_000

logger = logging.getLogger(__name__)


class _Miss:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISS"

    def __bool__(self) -> bool:
        return False


MISS: Any = _Miss()


@dataclass(frozen=True, slots=True)
class CacheEntry:
    value: Any
    inserted_at: float
    ttl: float

    def is_fresh(self, now: float) -> bool:
        return now - self.inserted_at < self.ttl


class ResultCache:
    """Thread-safe TTL cache with an injectable clock."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        coordinate_precision: int = DEFAULT_COORDINATE_PRECISION,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive.")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.coordinate_precision = coordinate_precision
        self._clock = clock
        self._entries: dict[Hashable, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: Hashable) -> Any:
        """Return the cached value, or MISS when absent or expired."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or not entry.is_fresh(now):
                self._misses += 1
                return MISS
            self._hits += 1
            return entry.value

    def get_stale(self, key: Hashable) -> Any:
        """Return a value even if it has expired, as long as it is still held."""
        with self._lock:
            entry = self._entries.get(key)
            return MISS if entry is None else entry.value

    def put(self, key: Hashable, value: Any, ttl: Optional[float] = None) -> None:
        ttl = self.ttl_seconds if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be positive.")
        entry = CacheEntry(value=value, inserted_at=self._clock(), ttl=ttl)
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = entry
            if len(self._entries) > self.max_entries:
                self._evict_locked()

    def sweep(self) -> int:
        """Drop expired entries and return how many were removed."""
        with self._lock:
            return self._sweep_locked(self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> dict:
        with self._lock:
            return {
                "size": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "ttl_seconds": self.ttl_seconds,
                "max_entries": self.max_entries,
                "coordinate_precision": self.coordinate_precision,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _sweep_locked(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if not entry.is_fresh(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def _evict_locked(self) -> None:
        removed = self._sweep_locked(self._clock())
        overflow = len(self._entries) - self.max_entries
        if overflow > 0:
            # dicts keep insertion order and put() re-inserts, so the head is oldest
            for key in list(self._entries)[:overflow]:
                del self._entries[key]
            removed += overflow
        logger.debug(f"Evicted {removed} cache entries (size now {len(self._entries)})")

    # Key normalization

    def travel_time_key(
        self,
        origin: Coordinates,
        destination: Coordinates,
        traffic_model: Optional[str],
        provider: str,
    ) -> tuple:
        return (
            "travel",
            origin.rounded(self.coordinate_precision),
            destination.rounded(self.coordinate_precision),
            traffic_model or "default",
            provider,
        )

    @staticmethod
    def geocode_key(address: str) -> tuple:
        return ("geocode", " ".join(address.lower().split()))

    @staticmethod
    def postal_key(business_id: str, config_version: int, postal_code: str) -> tuple:
        return ("postal", business_id, config_version, postal_code)
