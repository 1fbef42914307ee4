"""Short-lived memoization of text -> embedding lookups."""

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from vectorrag.constants import (
    EMBEDDING_CACHE_KEY_LENGTH,
    EMBEDDING_CACHE_MAX_ENTRIES,
    EMBEDDING_CACHE_TTL_SECONDS,
)

logger = logging.getLogger(__name__)

ComputeFn = Callable[[str], Awaitable[list[float]]]


@dataclass
class CacheEntry:
    embedding: list[float]
    timestamp: float


class EmbeddingCache:
    """TTL cache for embeddings keyed by a bounded prefix of the text.

    Entries older than ``ttl`` are ignored on lookup and swept out lazily
    once the cache grows past ``max_entries``. All methods run on the event
    loop, so concurrent coroutines only ever race between an await and the
    following write; the last writer wins, which only affects the hit ratio.
    """

    def __init__(
        self,
        ttl: float = EMBEDDING_CACHE_TTL_SECONDS,
        max_entries: int = EMBEDDING_CACHE_MAX_ENTRIES,
        key_length: int = EMBEDDING_CACHE_KEY_LENGTH,
        clock: Callable[[], float] = time.monotonic,
        logger: logging.Logger | None = None,
    ) -> None:
        self.ttl = ttl
        self.max_entries = max_entries
        self.key_length = key_length
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._logger = logger or logging.getLogger(__name__)

    def __len__(self) -> int:
        return len(self._entries)

    def key_for(self, text: str) -> str:
        # Prefix keys can collide for long texts sharing their first characters.
        return text[: self.key_length]

    def get(self, text: str) -> list[float] | None:
        """Return the cached embedding for ``text`` if present and fresh."""
        entry = self._entries.get(self.key_for(text))
        if entry is None:
            return None
        if self._clock() - entry.timestamp >= self.ttl:
            return None
        return entry.embedding

    def put(self, text: str, embedding: list[float]) -> None:
        if len(self._entries) > self.max_entries:
            self.evict_expired()
        self._entries[self.key_for(text)] = CacheEntry(embedding=embedding, timestamp=self._clock())

    def evict_expired(self) -> int:
        """Drop every expired entry in a single pass.

        Returns:
            int: Number of entries removed
        """
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now - entry.timestamp >= self.ttl]
        for key in expired:
            del self._entries[key]
        if expired:
            self._logger.debug(f"Evicted {len(expired)} expired embeddings from cache")
        return len(expired)

    async def get_or_compute(self, text: str, compute_fn: ComputeFn) -> list[float]:
        """Return a cached embedding or compute, store and return a fresh one.

        Args:
            text: Text to embed
            compute_fn: Coroutine function producing the embedding for ``text``

        Returns:
            list[float]: The embedding vector

        Raises:
            Exception: Whatever ``compute_fn`` raises; failures are never cached.
        """
        cached = self.get(text)
        if cached is not None:
            return cached

        embedding = await compute_fn(text)
        self.put(text, embedding)
        return embedding

    def clear(self) -> None:
        self._entries.clear()
