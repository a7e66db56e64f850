"""Unit tests for SearchCache."""

import hashlib

import pytest

from ragservice.core.cache import SearchCache
from ragservice.entities import RAGResult


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _results(*ids: str) -> list[RAGResult]:
    return [RAGResult(id=i, content=f"content {i}", score=0.5) for i in ids]


class TestCacheKey:
    """Test cache key construction."""

    def test_key_format(self):
        """Test key is knowledge base, md5 of compact JSON vector and k."""
        digest = hashlib.md5(b"[0.1,0.2,0.3]").hexdigest()
        assert SearchCache.make_key("docs", [0.1, 0.2, 0.3], 5) == f"docs-{digest}-5"

    def test_key_depends_on_k_and_knowledge_base(self):
        """Test different k or knowledge base give different keys."""
        vector = [0.1, 0.2]
        assert SearchCache.make_key("a", vector, 1) != SearchCache.make_key("a", vector, 2)
        assert SearchCache.make_key("a", vector, 1) != SearchCache.make_key("b", vector, 1)

    def test_key_exact_vector_match(self):
        """Test a tiny vector difference changes the key."""
        assert SearchCache.make_key("a", [0.1], 1) != SearchCache.make_key("a", [0.1000001], 1)


class TestSearchCache:
    """Test lookup, eviction and expiry."""

    def test_miss_then_hit(self):
        """Test put makes a subsequent get hit."""
        cache = SearchCache(max_size=10)
        assert cache.get("docs", [1.0], 3) is None

        cache.put("docs", [1.0], 3, _results("a", "b"))
        cached = cache.get("docs", [1.0], 3)

        assert [r.id for r in cached] == ["a", "b"]
        stats = cache.stats()
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.hit_rate == 50.0

    def test_get_returns_copy(self):
        """Test mutating returned list does not change the cached entry."""
        cache = SearchCache()
        cache.put("docs", [1.0], 1, _results("a"))
        cache.get("docs", [1.0], 1).clear()
        assert len(cache.get("docs", [1.0], 1)) == 1

    def test_fifo_eviction_ignores_reads(self):
        """Test the earliest inserted entry is evicted even if it was just read."""
        cache = SearchCache(max_size=2)
        cache.put("docs", [1.0], 1, _results("first"))
        cache.put("docs", [2.0], 1, _results("second"))

        assert cache.get("docs", [1.0], 1) is not None
        cache.put("docs", [3.0], 1, _results("third"))

        assert len(cache) == 2
        assert cache.get("docs", [1.0], 1) is None
        assert cache.get("docs", [2.0], 1) is not None
        assert cache.get("docs", [3.0], 1) is not None

    def test_size_never_exceeds_max(self):
        """Test the cache stays bounded under many inserts."""
        cache = SearchCache(max_size=5)
        for i in range(50):
            cache.put("docs", [float(i)], 1, _results(str(i)))
            assert len(cache) <= 5
        assert cache.stats().size == 5

    def test_ttl_expiry(self):
        """Test entries older than the TTL are misses and are dropped."""
        clock = FakeClock()
        cache = SearchCache(max_size=10, ttl=1000, clock=clock)
        cache.put("docs", [1.0], 1, _results("a"))

        clock.advance(0.5)
        assert cache.get("docs", [1.0], 1) is not None

        clock.advance(0.6)
        assert cache.get("docs", [1.0], 1) is None
        assert len(cache) == 0

    def test_invalidate_knowledge_base(self):
        """Test invalidate drops only the named knowledge base's entries."""
        cache = SearchCache()
        cache.put("docs", [1.0], 1, _results("a"))
        cache.put("docs", [2.0], 1, _results("b"))
        cache.put("other", [1.0], 1, _results("c"))

        assert cache.invalidate("docs") == 2
        assert cache.get("docs", [1.0], 1) is None
        assert cache.get("other", [1.0], 1) is not None

    def test_clear_resets_stats(self):
        """Test clear empties the cache and resets counters."""
        cache = SearchCache()
        cache.put("docs", [1.0], 1, _results("a"))
        cache.get("docs", [1.0], 1)
        cache.clear()

        stats = cache.stats()
        assert stats.size == 0
        assert stats.hits == 0
        assert stats.hit_rate == 0.0

    def test_invalid_max_size(self):
        """Test a non-positive max_size is rejected."""
        with pytest.raises(ValueError):
            SearchCache(max_size=0)
