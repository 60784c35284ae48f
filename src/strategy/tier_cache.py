"""
Thread-safe TTL cache for volatility tier results.

The tier of a coin changes slowly (it is derived from up to two weeks of
hourly candles), so a scan reuses the last classification for a few hours.
The cache is an explicit object handed to the classifier, which keeps tests
isolated and lets them control expiry with freezegun.

Concurrency:
    A single lock guards the entry map. ``lock(key)`` hands out a per-key
    lock so two scans of the same symbol do not both recompute and race on
    the write; different symbols never block each other. Per-key locks live
    in an LRU map bounded like the entries and are dropped by ``clear()``;
    a lock evicted while held only costs a duplicate computation.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Optional

import structlog
from cachetools import LRUCache, TLRUCache

logger = structlog.get_logger(__name__)

DEFAULT_TIER_CACHE_TTL_SECONDS = 4 * 60 * 60
# Least recently used symbols are evicted beyond this
MAX_CACHED_SYMBOLS = 5000


@dataclass
class _CacheEntry:
    value: Any
    ttl_seconds: float


def _wall_clock() -> float:
    # Wall-clock seconds, frozen by freeze_time in tests
    return datetime.now(timezone.utc).timestamp()


def _expires_at(key: str, entry: _CacheEntry, now: float) -> float:
    return now + entry.ttl_seconds


class TierCache:
    """Symbol-keyed cache with per-entry expiry."""

    def __init__(
        self,
        default_ttl_seconds: float = DEFAULT_TIER_CACHE_TTL_SECONDS,
        maxsize: int = MAX_CACHED_SYMBOLS,
    ):
        """
        Initialize the cache.

        Args:
            default_ttl_seconds: TTL used when ``set`` is called without one
            maxsize: Entries kept before the least recently used is evicted
        """
        self.default_ttl_seconds = default_ttl_seconds
        self._entries: TLRUCache = TLRUCache(maxsize=maxsize, ttu=_expires_at, timer=_wall_clock)
        self._key_locks: LRUCache = LRUCache(maxsize=maxsize)
        self._lock = Lock()

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None when missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
        return entry.value if entry is not None else None

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """
        Store a value.

        Args:
            key: Cache key (symbol)
            value: Value to store
            ttl: Lifetime in seconds (default: cache default)
        """
        lifetime = self.default_ttl_seconds if ttl is None else ttl
        with self._lock:
            self._entries[key] = _CacheEntry(value=value, ttl_seconds=lifetime)

    def clear(self) -> None:
        """Drop every entry and every per-key lock."""
        with self._lock:
            self._entries.clear()
            self._key_locks.clear()
        logger.debug("tier_cache_cleared")

    def lock(self, key: str) -> Lock:
        """Per-key lock serializing compute-and-store for one symbol."""
        with self._lock:
            key_lock = self._key_locks.get(key)
            if key_lock is None:
                key_lock = Lock()
                self._key_locks[key] = key_lock
            return key_lock

    def __len__(self) -> int:
        with self._lock:
            self._entries.expire()
            return len(self._entries)
