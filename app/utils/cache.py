"""
In-memory TTL cache for property listing and detail reads.
Provides expiry-based entries with exact-key and prefix invalidation.
"""

from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional
import logging
import threading
import time

from app.config import settings

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Data class for a single cached value."""
    value: Any
    expires_at: float


class TTLCache:
    """
    Process-wide key/value cache with time-to-live expiry.

    Expired entries are never returned and are evicted lazily on access.
    Values are copied on the way in and out, so callers never share state
    with the cached entry.
    Every public operation swallows internal failures so that callers fall
    back to the store; the cache is an optimization only.
    """

    def __init__(self, enabled: bool = True, clock: Optional[Callable[[], float]] = None):
        """
        Initialize an empty cache.

        Args:
            enabled: When False every get is a miss and set is a no-op
            clock: Monotonic time source in seconds (injectable for tests)
        """
        self.enabled = enabled
        self._clock = clock or time.monotonic
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str, default: Any = None) -> Any:
        """
        Return the cached value for key, or default on a miss.

        A stale entry counts as a miss and is removed.
        """
        if not self.enabled:
            return default
        try:
            with self._lock:
                entry = self._entries.get(key)
                if entry is None:
                    self._misses += 1
                    return default
                if self._clock() > entry.expires_at:
                    del self._entries[key]
                    self._evictions += 1
                    self._misses += 1
                    logger.debug(f"Cache entry expired: {key}")
                    return default
                self._hits += 1
                return deepcopy(entry.value)
        except Exception as e:
            logger.warning(f"Cache get failed for {key}: {e}")
            return default

    def set(self, key: str, value: Any, ttl: float) -> None:
        """Store value under key for ttl seconds."""
        if not self.enabled:
            return
        try:
            with self._lock:
                self._entries[key] = CacheEntry(value=deepcopy(value), expires_at=self._clock() + ttl)
        except Exception as e:
            logger.warning(f"Cache set failed for {key}: {e}")

    def invalidate(self, target: str) -> int:
        """
        Remove every entry whose key equals target or starts with target.

        Args:
            target: Exact key (``property:<id>``) or namespace (``properties:``)

        Returns:
            Number of entries removed
        """
        try:
            with self._lock:
                doomed = [key for key in self._entries if key.startswith(target)]
                for key in doomed:
                    del self._entries[key]
            if doomed:
                logger.debug(f"Invalidated {len(doomed)} cache entries for '{target}'")
            return len(doomed)
        except Exception as e:
            logger.warning(f"Cache invalidation failed for {target}: {e}")
            return 0

    def clear(self) -> None:
        """Drop all entries and reset statistics."""
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics for monitoring."""
        with self._lock:
            return {
                "enabled": self.enabled,
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


_cache: Optional[TTLCache] = None
_cache_lock = threading.Lock()


def get_cache() -> TTLCache:
    """
    Get the shared process-wide cache instance.
    Created empty on first use; no teardown is required.
    """
    global _cache
    if _cache is None:
        with _cache_lock:
            if _cache is None:
                _cache = TTLCache(enabled=settings.cache_enabled)
    return _cache
