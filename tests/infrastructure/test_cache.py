"""Tests for EvaluationCache."""

from __future__ import annotations

import pytest

from thought_search.infrastructure.cache import EvaluationCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class TestEvaluationCache:

    def test_key_format(self) -> None:
        assert EvaluationCache.make_key("p", "t") == "p::t"

    def test_store_and_lookup(self) -> None:
        cache = EvaluationCache()
        assert cache.lookup("p", "t") is None
        cache.store("p", "t", 7.5)
        assert cache.lookup("p", "t") == 7.5
        assert "p::t" in cache
        assert len(cache) == 1

    def test_same_text_other_problem_misses(self) -> None:
        cache = EvaluationCache()
        cache.store("p1", "t", 7.5)
        assert cache.lookup("p2", "t") is None

    def test_last_write_wins(self) -> None:
        cache = EvaluationCache()
        cache.put("k", 1.0)
        cache.put("k", 2.0)
        assert cache.get("k") == 2.0

    def test_ttl_expiry(self) -> None:
        clock = FakeClock()
        cache = EvaluationCache(ttl_seconds=10.0, clock=clock)
        cache.store("p", "t", 6.0)
        clock.now += 10.0
        assert cache.lookup("p", "t") == 6.0
        clock.now += 0.5
        assert cache.lookup("p", "t") is None
        assert len(cache) == 0

    def test_no_ttl_never_expires(self) -> None:
        clock = FakeClock()
        cache = EvaluationCache(clock=clock)
        cache.store("p", "t", 6.0)
        clock.now += 1e9
        assert cache.lookup("p", "t") == 6.0

    def test_stats(self) -> None:
        cache = EvaluationCache()
        cache.store("p", "t", 5.0)
        cache.lookup("p", "t")
        cache.lookup("p", "u")
        stats = cache.stats()
        assert stats == {"size": 1, "hits": 1, "misses": 1, "hit_rate": 0.5}

    def test_clear(self) -> None:
        cache = EvaluationCache()
        cache.store("p", "t", 5.0)
        cache.lookup("p", "t")
        cache.clear()
        assert len(cache) == 0
        assert cache.stats()["hits"] == 0

    def test_invalid_ttl(self) -> None:
        with pytest.raises(ValueError):
            EvaluationCache(ttl_seconds=0)
