"""Search result cache keyed by (knowledge base, query vector, k).

Bounded, time-limited and FIFO: once ``max_size`` entries are held, the
entry inserted earliest is evicted on the next ``put``, regardless of how
recently it was read. Entries older than ``ttl`` milliseconds count as misses
and are dropped when looked up.

The cache is only touched from the event loop thread and never awaits, so
each operation is atomic with respect to other coroutines.
"""

import hashlib
import json
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from ragservice.entities import RAGResult
from ragservice.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CacheEntry:
    knowledge_base: str
    results: list[RAGResult]
    created_at: float = field(default_factory=time.monotonic)


@dataclass(frozen=True)
class CacheStats:
    hits: int
    misses: int
    size: int
    max_size: int

    @property
    def hit_rate(self) -> float:
        """Hit rate in percent (0 when nothing was looked up yet)."""
        total = self.hits + self.misses
        return self.hits / total * 100 if total else 0.0


class SearchCache:
    """FIFO cache of search results with a time-to-live."""

    def __init__(
        self,
        max_size: int = 100,
        ttl: int = 60_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            max_size: Maximum number of entries
            ttl: Entry lifetime in milliseconds
            clock: Monotonic clock in seconds, injectable for tests
        """
        if max_size <= 0:
            raise ValueError(f"Cache max_size must be positive, got {max_size}")
        self.max_size = max_size
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    @staticmethod
    def make_key(knowledge_base: str, query_vector: Sequence[float], k: int) -> str:
        """Fingerprint a lookup; vectors must be exactly equal to collide."""
        encoded = json.dumps(list(query_vector), separators=(",", ":"))
        vector_hash = hashlib.md5(encoded.encode("utf-8")).hexdigest()
        return f"{knowledge_base}-{vector_hash}-{k}"

    def get(
        self, knowledge_base: str, query_vector: Sequence[float], k: int
    ) -> Optional[list[RAGResult]]:
        """Return cached results, or None on a miss or an expired entry."""
        key = self.make_key(knowledge_base, query_vector, k)
        entry = self._entries.get(key)

        if entry is not None and (self._clock() - entry.created_at) * 1000 < self.ttl:
            self._hits += 1
            return list(entry.results)

        self._entries.pop(key, None)
        self._misses += 1
        return None

    def put(
        self,
        knowledge_base: str,
        query_vector: Sequence[float],
        k: int,
        results: Sequence[RAGResult],
    ) -> None:
        """Store results, evicting the earliest-inserted entry when full."""
        key = self.make_key(knowledge_base, query_vector, k)

        if len(self._entries) >= self.max_size:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            logger.debug("search_cache_evicted", key=oldest)

        self._entries[key] = CacheEntry(
            knowledge_base=knowledge_base,
            results=list(results),
            created_at=self._clock(),
        )

    def invalidate(self, knowledge_base: str) -> int:
        """Drop every entry for a knowledge base; return how many were dropped."""
        stale = [key for key, entry in self._entries.items() if entry.knowledge_base == knowledge_base]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def stats(self) -> CacheStats:
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            size=len(self._entries),
            max_size=self.max_size,
        )

    def clear(self) -> None:
        """Drop all entries and reset the hit/miss counters."""
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)
