"""
Access cache.

Bounded, thread-safe record of origins already confirmed banned, so the
request hot path does not round-trip to the ban store for known offenders.

Only positive observations are stored. A miss always falls through to the
ban store, so a ban written elsewhere becomes visible on the next request
even if this cache never hears about it.

Memory is bounded two ways:
- Capacity: least-recently-used entries are evicted past max_entries
- Age: entries older than ttl_seconds are dropped on lookup
"""

import threading
import time
from collections import OrderedDict
from typing import Callable, Dict, Optional


class AccessCache:
    """
    LRU + TTL map of banned origins.

    The lock guards only the in-memory map; it is never held across I/O.
    """

    def __init__(
        self,
        max_entries: int = 5000,
        ttl_seconds: float = 3600,
        clock: Optional[Callable[[], float]] = None
    ):
        """
        Initialize the cache.

        Args:
            max_entries: Maximum number of origins retained
            ttl_seconds: Maximum age of an entry before it must be re-confirmed
            clock: Monotonic time source (injectable for tests)
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._max_entries = max_entries
        self._ttl = ttl_seconds
        self._clock = clock or time.monotonic
        self._entries: "OrderedDict[str, float]" = OrderedDict()  # origin -> inserted_at
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def is_known_banned(self, origin: Optional[str]) -> bool:
        """
        Check whether an origin is cached as banned. Never performs I/O.

        Args:
            origin: Normalized origin (None never matches)
        """
        if not origin:
            return False
        now = self._clock()
        with self._lock:
            inserted_at = self._entries.get(origin)
            if inserted_at is None:
                self._misses += 1
                return False
            if now - inserted_at > self._ttl:
                del self._entries[origin]
                self._evictions += 1
                self._misses += 1
                return False
            self._entries.move_to_end(origin)
            self._hits += 1
            return True

    def mark_banned(self, origin: Optional[str]) -> None:
        """
        Record a confirmed ban. Idempotent; a repeat refreshes the entry.
        """
        if not origin:
            return
        now = self._clock()
        with self._lock:
            self._entries[origin] = now
            self._entries.move_to_end(origin)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)
                self._evictions += 1

    def stats(self) -> Dict[str, float]:
        """Get cache statistics for monitoring."""
        with self._lock:
            return {
                "size": len(self._entries),
                "max_entries": self._max_entries,
                "ttl_seconds": self._ttl,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def clear(self) -> None:
        """Drop every entry (test isolation)."""
        with self._lock:
            self._entries.clear()
            self._hits = self._misses = self._evictions = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
