"""Tests for the embedding cache."""

import pytest

from vectorrag.errors import EmbeddingFailure
from vectorrag.rag.cache import EmbeddingCache


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


class TestEmbeddingCache:
    """Tests for EmbeddingCache class."""

    def test_put_then_get(self, clock):
        cache = EmbeddingCache(ttl=60, clock=clock)

        cache.put("hello world", [0.1, 0.2])

        assert cache.get("hello world") == [0.1, 0.2]
        assert len(cache) == 1

    def test_miss_returns_none(self, clock):
        cache = EmbeddingCache(ttl=60, clock=clock)

        assert cache.get("unknown") is None

    def test_entry_expires_after_ttl(self, clock):
        cache = EmbeddingCache(ttl=60, clock=clock)
        cache.put("hello", [1.0])

        clock.advance(59)
        assert cache.get("hello") == [1.0]

        clock.advance(1)
        assert cache.get("hello") is None

    def test_key_is_bounded_prefix(self, clock):
        """Texts sharing the key prefix share an entry."""
        cache = EmbeddingCache(ttl=60, key_length=5, clock=clock)
        cache.put("abcdefgh", [1.0])

        assert cache.key_for("abcdefgh") == "abcde"
        assert cache.get("abcdeXYZ") == [1.0]
        assert cache.get("abcdX") is None

    def test_evict_expired(self, clock):
        cache = EmbeddingCache(ttl=10, clock=clock)
        cache.put("old", [1.0])
        clock.advance(11)
        cache.put("new", [2.0])

        removed = cache.evict_expired()

        assert removed == 1
        assert len(cache) == 1
        assert cache.get("new") == [2.0]

    def test_sweep_runs_when_over_capacity(self, clock):
        """Expired entries are swept once the cache grows past max_entries."""
        cache = EmbeddingCache(ttl=10, max_entries=2, clock=clock)
        cache.put("a", [1.0])
        cache.put("b", [1.0])
        cache.put("c", [1.0])
        clock.advance(20)

        cache.put("d", [2.0])

        assert len(cache) == 1
        assert cache.get("d") == [2.0]

    def test_fresh_entries_survive_sweep(self, clock):
        """Only expired entries are evicted, so the cache may exceed max_entries."""
        cache = EmbeddingCache(ttl=100, max_entries=1, clock=clock)
        for text in ("a", "b", "c"):
            cache.put(text, [1.0])

        assert len(cache) == 3

    def test_clear(self, clock):
        cache = EmbeddingCache(clock=clock)
        cache.put("a", [1.0])

        cache.clear()

        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_get_or_compute_memoizes(self, clock):
        cache = EmbeddingCache(ttl=60, clock=clock)
        calls = []

        async def compute(text):
            calls.append(text)
            return [float(len(text))]

        first = await cache.get_or_compute("query", compute)
        second = await cache.get_or_compute("query", compute)

        assert first == second == [5.0]
        assert calls == ["query"]

    @pytest.mark.asyncio
    async def test_get_or_compute_recomputes_after_expiry(self, clock):
        cache = EmbeddingCache(ttl=60, clock=clock)
        calls = []

        async def compute(text):
            calls.append(text)
            return [1.0]

        await cache.get_or_compute("query", compute)
        clock.advance(61)
        await cache.get_or_compute("query", compute)

        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self, clock):
        cache = EmbeddingCache(ttl=60, clock=clock)

        async def failing(text):
            raise EmbeddingFailure("provider down")

        with pytest.raises(EmbeddingFailure):
            await cache.get_or_compute("query", failing)

        assert len(cache) == 0
