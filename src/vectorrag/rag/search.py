"""Search orchestration: variants, vector search, merging and context expansion."""

import asyncio
import logging
import math
from typing import Any

from vectorrag.constants import (
    ADJACENT_SIMILARITY_DECAY,
    DEFAULT_MAX_RESULTS,
    DEFAULT_VECTOR_SIMILARITY_THRESHOLD,
    EXPANDED_RESULTS_FACTOR,
    MAX_EMBEDDING_INPUT_CHARS,
    MAX_EXPANDED_RESULTS,
    VARIANT_SIMILARITY_THRESHOLD,
)
from vectorrag.errors import DimensionMismatch, EmbeddingFailure, RAGError, StoreFailure
from vectorrag.llm.base import EmbeddingProvider
from vectorrag.rag.cache import EmbeddingCache
from vectorrag.rag.models import Chunk, Document, SearchHit
from vectorrag.rag.planner import QueryPlanner
from vectorrag.service.database.repository import ChunkRepository
from vectorrag.service.vector_store.base import VectorStore

logger = logging.getLogger(__name__)

# Errors that abort a search instead of being isolated to one variant
FATAL_SEARCH_ERRORS = (StoreFailure, DimensionMismatch)


async def embed_text(provider: EmbeddingProvider, text: str) -> list[float]:
    """Embed a text through the provider, truncated to the model input limit.

    Raises:
        EmbeddingFailure: If the provider fails or returns an empty vector
    """
    try:
        vector = await provider.generate_embedding(text[:MAX_EMBEDDING_INPUT_CHARS])
    except RAGError:
        raise
    except Exception as e:
        raise EmbeddingFailure(f"Embedding generation failed: {e}") from e

    if not vector:
        raise EmbeddingFailure("Embedding provider returned an empty vector")
    return list(vector)


def merge_hits(hit_lists: list[list[SearchHit]]) -> list[SearchHit]:
    """Deduplicate hits from several variants, keeping the higher similarity.

    Hits are keyed by (document_id, chunk_index) when both are known and by
    source_id otherwise.
    """
    merged: dict[tuple, SearchHit] = {}
    for hits in hit_lists:
        for hit in hits:
            existing = merged.get(hit.dedup_key)
            if existing is None or hit.similarity > existing.similarity:
                merged[hit.dedup_key] = hit
    return list(merged.values())


def sort_hits(hits: list[SearchHit]) -> list[SearchHit]:
    """Order by similarity descending; direct hits before neighbours on ties."""
    return sorted(hits, key=lambda hit: (-hit.similarity, hit.is_adjacent, hit.source_id))


class SearchOrchestrator:
    """Runs a query end to end against a vector store and chunk repository."""

    def __init__(
        self,
        embedder: EmbeddingProvider,
        vector_store: VectorStore,
        repository: ChunkRepository,
        cache: EmbeddingCache | None = None,
        planner: QueryPlanner | None = None,
        adjacent_decay: float = ADJACENT_SIMILARITY_DECAY,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            embedder: Embedding capability used for query vectors
            vector_store: Backend to search
            repository: Resolves vector ids to chunks and finds neighbours
            cache: Embedding cache shared with ingestion
            planner: Query planner; without one the query is searched as is
            adjacent_decay: Factor applied to a hit's similarity for its neighbours
            logger: Logger to use instead of the module logger
        """
        self.embedder = embedder
        self.vector_store = vector_store
        self.repository = repository
        self.cache = cache or EmbeddingCache()
        self.planner = planner
        self.adjacent_decay = adjacent_decay
        self.logger = logger or logging.getLogger(__name__)

    async def search(
        self,
        query: str,
        limit: int = DEFAULT_MAX_RESULTS,
        user_language: str | None = None,
        expand_context: bool = True,
        expansion_range: int = 1,
        threshold: float = VARIANT_SIMILARITY_THRESHOLD,
    ) -> list[SearchHit]:
        """Search with every query variant and merge the results.

        Args:
            query: The user query
            limit: Maximum number of direct hits
            user_language: Language of the query, used for translation
            expand_context: Whether to add neighbouring chunks
            expansion_range: Neighbours to add on each side of a hit
            threshold: Minimum similarity for direct hits

        Returns:
            list[SearchHit]: Ranked hits, possibly empty

        Raises:
            StoreFailure: If the vector store or repository fails
            DimensionMismatch: If the query vector does not match stored vectors
        """
        if self.planner is not None:
            variants = await self.planner.expand(query, user_language)
        else:
            variants = [query]

        budget = max(1, math.ceil(limit / len(variants)))
        self.logger.info(
            f"🔍 Searching {len(variants)} query variants (budget {budget} each, threshold {threshold})"
        )

        outcomes = await asyncio.gather(
            *(self._search_variant(variant, budget, threshold) for variant in variants),
            return_exceptions=True,
        )

        hit_lists: list[list[SearchHit]] = []
        for variant, outcome in zip(variants, outcomes):
            if isinstance(outcome, FATAL_SEARCH_ERRORS):
                raise outcome
            # Cancellation and interpreter exits are never isolated to a variant
            if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                raise outcome
            if isinstance(outcome, Exception):
                self.logger.warning(f"⚠️ Search failed for variant {variant!r}: {outcome}")
                continue
            hit_lists.append(outcome)

        hits = sort_hits(merge_hits(hit_lists))[:limit]
        return await self._finish(hits, limit, expand_context, expansion_range)

    async def search_by_vector(
        self,
        embedding: list[float],
        limit: int = DEFAULT_MAX_RESULTS,
        threshold: float = DEFAULT_VECTOR_SIMILARITY_THRESHOLD,
        expand_context: bool = True,
        expansion_range: int = 1,
    ) -> list[SearchHit]:
        """Search with a precomputed query vector.

        Args:
            embedding: Query vector
            limit: Maximum number of direct hits
            threshold: Minimum similarity for direct hits
            expand_context: Whether to add neighbouring chunks
            expansion_range: Neighbours to add on each side of a hit

        Returns:
            list[SearchHit]: Ranked hits, possibly empty
        """
        hits = sort_hits(await self._search_with_vector(embedding, limit, threshold))[:limit]
        return await self._finish(hits, limit, expand_context, expansion_range)

    async def _finish(
        self, hits: list[SearchHit], limit: int, expand_context: bool, expansion_range: int
    ) -> list[SearchHit]:
        if hits and expand_context and expansion_range > 0:
            hits = await self.expand_context(hits, expansion_range, limit)
        await self._enrich(hits)
        self.logger.info(f"✅ Search returned {len(hits)} results")
        return hits

    async def _search_variant(self, variant: str, budget: int, threshold: float) -> list[SearchHit]:
        vector = await self.cache.get_or_compute(
            variant, lambda text: embed_text(self.embedder, text)
        )
        return await self._search_with_vector(vector, budget, threshold, variant)

    async def _search_with_vector(
        self, vector: list[float], limit: int, threshold: float, variant: str | None = None
    ) -> list[SearchHit]:
        matches = await self.vector_store.search_vectors(vector, limit, threshold)
        if not matches:
            return []

        chunks = await self.repository.get_chunks_by_vector_ids([match.id for match in matches])

        hits = []
        for match in matches:
            chunk = chunks.get(match.id)
            if chunk is None:
                self.logger.warning(f"⚠️ Chunk for vector {match.id} not found, skipping result")
                continue
            hits.append(self._hit_from_chunk(chunk, match.similarity, query_variant=variant))
        return hits

    @staticmethod
    def _hit_from_chunk(chunk: Chunk, similarity: float, **kwargs: Any) -> SearchHit:
        return SearchHit(
            content=chunk.content,
            metadata=dict(chunk.metadata),
            similarity=similarity,
            source_id=chunk.id,
            document_id=chunk.document_id or None,
            chunk_index=chunk.chunk_index,
            **kwargs,
        )

    async def expand_context(
        self, hits: list[SearchHit], expansion_range: int, limit: int
    ) -> list[SearchHit]:
        """Add the neighbouring chunks of every hit.

        Direct hits are never replaced; the first hit to claim a neighbour wins.
        Neighbours get the parent's similarity times ``adjacent_decay``.

        Returns:
            list[SearchHit]: Sorted hits capped at min(limit * 3, 15)
        """
        expanded: dict[str, SearchHit] = {hit.source_id: hit for hit in hits}
        positions = {hit.dedup_key for hit in hits}

        for hit in hits:
            if hit.document_id is None or hit.chunk_index is None:
                continue
            try:
                neighbours = await self.repository.get_adjacent_chunks(
                    hit.document_id, hit.chunk_index, expansion_range
                )
            except Exception as e:
                self.logger.warning(f"⚠️ Could not load adjacent chunks for {hit.source_id}: {e}")
                continue

            for chunk in neighbours:
                neighbour = self._hit_from_chunk(
                    chunk,
                    hit.similarity * self.adjacent_decay,
                    is_original=False,
                    is_adjacent=True,
                    parent_original_chunk=hit.source_id,
                )
                if chunk.id in expanded or neighbour.dedup_key in positions:
                    continue
                expanded[chunk.id] = neighbour
                positions.add(neighbour.dedup_key)

        cap = min(limit * EXPANDED_RESULTS_FACTOR, MAX_EXPANDED_RESULTS)
        result = sort_hits(list(expanded.values()))[:cap]
        self.logger.debug(f"Context expansion: {len(hits)} original -> {len(result)} total chunks")
        return result

    async def _enrich(self, hits: list[SearchHit]) -> None:
        """Attach chunk and parent document details to every hit's metadata."""
        document_ids = sorted({hit.document_id for hit in hits if hit.document_id})
        try:
            documents = await self.repository.get_documents(document_ids)
        except Exception as e:
            self.logger.warning(f"⚠️ Could not load parent documents: {e}")
            documents = {}

        for hit in hits:
            document = documents.get(hit.document_id) if hit.document_id else None
            hit.metadata = {
                **hit.metadata,
                "chunkId": hit.source_id,
                "documentId": hit.document_id,
                "chunkType": "text_chunk",
                "searchMethod": self.vector_store.search_method,
                "similarity": hit.similarity,
                "chunkLength": len(hit.content),
                "isOriginal": hit.is_original,
                "isAdjacent": hit.is_adjacent,
                "parentOriginalChunk": hit.parent_original_chunk,
                "document": self._document_context(hit, document),
            }

    @staticmethod
    def _document_context(hit: SearchHit, document: Document | None) -> dict[str, Any]:
        if document is None:
            return {"documentId": hit.document_id, "documentLength": None}
        return {**document.metadata, "documentLength": len(document.content)}
