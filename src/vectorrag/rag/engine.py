"""VectorRAG: the facade tying ingestion and search together.

Usage:
    from vectorrag.rag.engine import build_rag

    rag = await build_rag()
    document_id = await rag.add_document("Some long text...", {"title": "Notes"})
    response = await rag.search("what do the notes say?", limit=5)
    await rag.close()
"""

import asyncio
import logging
import uuid
from typing import Any

from vectorrag.constants import (
    ADJACENT_SIMILARITY_DECAY,
    DEFAULT_MAX_RESULTS,
    DEFAULT_TOP_K,
    DEFAULT_VECTOR_SIMILARITY_THRESHOLD,
    INGESTION_BATCH_SIZE,
    NO_RESULTS_MESSAGE,
    VARIANT_SIMILARITY_THRESHOLD,
    get_chunk_settings,
)
from vectorrag.errors import EmbeddingFailure, InvalidConfig, RAGError
from vectorrag.llm.base import CompletionProvider, EmbeddingProvider
from vectorrag.llm.factory import get_llm_service
from vectorrag.rag.cache import EmbeddingCache
from vectorrag.rag.chunker import chunk_document, validate_chunk_settings
from vectorrag.rag.formatter import ResultFormatter
from vectorrag.rag.models import ChunkDraft, Document, SearchHit, SearchResponse, VectorRecord
from vectorrag.rag.planner import QueryPlanner
from vectorrag.rag.search import SearchOrchestrator, embed_text
from vectorrag.service.database.config import SAME_AS_MAIN, DatabaseConfig, VectorDatabaseConfig
from vectorrag.service.database.repository import (
    ChunkRepository,
    SQLChunkRepository,
    VectorMetadataRepository,
)
from vectorrag.service.database.tables import TableStore, build_rag_tables, create_engine
from vectorrag.service.vector_store import build_vector_store
from vectorrag.service.vector_store.base import VectorStore

logger = logging.getLogger(__name__)


class VectorRAG:
    """Retrieval-augmented generation core over a pluggable vector store."""

    def __init__(
        self,
        repository: ChunkRepository,
        vector_store: VectorStore,
        embedder: Any,
        completion: Any = None,
        cache: EmbeddingCache | None = None,
        chunk_size: int | None = None,
        chunk_overlap: int | None = None,
        adjacent_decay: float = ADJACENT_SIMILARITY_DECAY,
        tables: TableStore | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            repository: Document/chunk repository matching the vector store
            vector_store: Vector store backend
            embedder: Object implementing EmbeddingProvider
            completion: Object implementing CompletionProvider, or None to disable
                translation, query variations and LLM summaries
            cache: Embedding cache (a fresh one when None)
            chunk_size: Characters per chunk (default: RAG_CHUNK_SIZE env or 1000)
            chunk_overlap: Overlap between chunks (default: RAG_CHUNK_OVERLAP env or 200)
            adjacent_decay: Similarity factor for neighbouring chunks
            tables: TableStore owned by the engine, disposed on close()
            logger: Logger to use instead of the module logger

        Raises:
            InvalidConfig: If a capability is missing or the chunk settings are unusable
        """
        if not isinstance(embedder, EmbeddingProvider):
            raise InvalidConfig(f"{type(embedder).__name__} does not implement generate_embedding")
        if completion is not None and not isinstance(completion, CompletionProvider):
            raise InvalidConfig(f"{type(completion).__name__} does not implement complete")

        default_size, default_overlap = get_chunk_settings()
        self.chunk_size = chunk_size if chunk_size is not None else default_size
        self.chunk_overlap = chunk_overlap if chunk_overlap is not None else default_overlap
        validate_chunk_settings(self.chunk_size, self.chunk_overlap)

        self.logger = logger or logging.getLogger(__name__)
        self.repository = repository
        self.vector_store = vector_store
        self.embedder = embedder
        self.completion = completion
        self.cache = cache or EmbeddingCache(logger=self.logger)
        self.tables = tables

        self.planner = QueryPlanner(
            completion, metadata_source=repository.get_representative_metadata, logger=self.logger
        )
        self.orchestrator = SearchOrchestrator(
            embedder,
            vector_store,
            repository,
            cache=self.cache,
            planner=self.planner,
            adjacent_decay=adjacent_decay,
            logger=self.logger,
        )
        self.formatter = ResultFormatter(completion, logger=self.logger)

    async def initialize(self) -> None:
        """Create tables or indexes. Failures are fatal."""
        await self.repository.initialize()

    async def add_document(
        self, content: str, metadata: dict[str, Any] | None = None, document_id: str | None = None
    ) -> str:
        """Chunk, embed and store a document.

        Chunks whose embedding fails are still stored with an empty vector.

        Args:
            content: Full document text
            metadata: Document metadata, copied into every chunk
            document_id: Id to use (default: a new UUID)

        Returns:
            str: The document id

        Raises:
            StoreFailure: If the document or its chunks cannot be stored. The
                document row and any chunks already written are removed first.
        """
        document = Document(
            id=document_id or str(uuid.uuid4()), content=content, metadata=dict(metadata or {})
        )
        drafts = chunk_document(
            document.id, content, self.chunk_size, self.chunk_overlap, document.metadata
        )

        # A rejected document row leaves nothing of this call behind
        await self.repository.create_document(document)
        try:
            failed = await self._store_chunks(drafts)
        except RAGError:
            await self._discard_partial_document(document.id)
            raise

        if failed:
            self.logger.warning(f"⚠️ {failed}/{len(drafts)} chunks stored without embeddings")
        self.logger.info(f"📄 Added document {document.id} with {len(drafts)} chunks")
        return document.id

    async def _store_chunks(self, drafts: list[ChunkDraft]) -> int:
        """Embed and store drafts in sequential batches; returns the count stored without a vector."""
        failed = 0
        for start in range(0, len(drafts), INGESTION_BATCH_SIZE):
            batch = drafts[start : start + INGESTION_BATCH_SIZE]
            records = await asyncio.gather(*(self._prepare_record(draft) for draft in batch))
            failed += sum(1 for record in records if not record.vector)
            await self.vector_store.add_vectors(list(records))
        return failed

    async def _discard_partial_document(self, document_id: str) -> None:
        self.logger.error(f"❌ Ingestion of document {document_id} failed, removing stored parts")
        try:
            await self.repository.delete_document(document_id)
        except RAGError as e:
            self.logger.error(f"❌ Cleanup of document {document_id} failed: {e}", exc_info=True)

    async def _prepare_record(self, draft: ChunkDraft) -> VectorRecord:
        try:
            vector = await self.cache.get_or_compute(
                draft.content, lambda text: embed_text(self.embedder, text)
            )
        except EmbeddingFailure as e:
            self.logger.warning(f"⚠️ Failed to embed chunk {draft.chunk_index} of {draft.document_id}: {e}")
            vector = []

        return VectorRecord(
            id=str(uuid.uuid4()),
            vector=vector,
            metadata={**draft.metadata, "documentId": draft.document_id, "content": draft.content},
        )

    async def get_document(self, document_id: str) -> Document | None:
        return await self.repository.get_document(document_id)

    async def delete_document(self, document_id: str) -> int:
        """Delete a document with all of its chunks and vectors.

        Returns:
            int: Number of chunks removed
        """
        return await self.repository.delete_document(document_id)

    async def search_by_metadata(
        self, metadata_filter: dict[str, Any], limit: int = DEFAULT_TOP_K
    ) -> list[SearchHit]:
        """Find documents (or, with an external store, chunks) by exact metadata values.

        Raises:
            InvalidConfig: If the filter is empty or malformed
        """
        return await self.repository.search_by_metadata(metadata_filter, limit)

    async def search(
        self,
        query: str,
        limit: int = DEFAULT_MAX_RESULTS,
        user_language: str | None = None,
        expand_context: bool = True,
        expansion_range: int = 1,
        threshold: float = VARIANT_SIMILARITY_THRESHOLD,
        annotate: bool = True,
    ) -> SearchResponse:
        """Search the knowledge base.

        Args:
            query: The user query
            limit: Maximum number of direct hits
            user_language: Language of the query, used for translation
            expand_context: Whether to add neighbouring chunks
            expansion_range: Neighbours to add on each side of a hit
            threshold: Minimum similarity for direct hits
            annotate: Group hits by document and add document summaries

        Returns:
            SearchResponse: Hits, or an empty list with an explanatory message
        """
        hits = await self.orchestrator.search(
            query,
            limit=limit,
            user_language=user_language,
            expand_context=expand_context,
            expansion_range=expansion_range,
            threshold=threshold,
        )
        return await self._respond(query, hits, annotate)

    async def search_by_vector(
        self,
        embedding: list[float],
        limit: int = DEFAULT_MAX_RESULTS,
        threshold: float = DEFAULT_VECTOR_SIMILARITY_THRESHOLD,
        expand_context: bool = True,
        expansion_range: int = 1,
        annotate: bool = False,
    ) -> SearchResponse:
        """Search with a precomputed query vector."""
        hits = await self.orchestrator.search_by_vector(
            embedding,
            limit=limit,
            threshold=threshold,
            expand_context=expand_context,
            expansion_range=expansion_range,
        )
        return await self._respond("", hits, annotate)

    async def _respond(self, query: str, hits: list[SearchHit], annotate: bool) -> SearchResponse:
        if not hits:
            return SearchResponse(query=query, hits=[], message=NO_RESULTS_MESSAGE)
        if annotate:
            hits = await self.formatter.group_and_annotate(hits)
        return SearchResponse(query=query, hits=hits)

    async def close(self) -> None:
        await self.vector_store.close()
        if self.tables is not None:
            await self.tables.close()
        self.cache.clear()


async def build_rag(
    llm: Any = None,
    db_type: str | None = None,
    database_url: str | None = None,
    table_name: str | None = None,
    chunk_size: int | None = None,
    chunk_overlap: int | None = None,
    logger: logging.Logger | None = None,
    **vector_store_kwargs: Any,
) -> VectorRAG:
    """Create and initialize a VectorRAG from configuration.

    Args:
        llm: Service implementing EmbeddingProvider (and optionally CompletionProvider);
             defaults to get_llm_service()
        db_type: "same_as_main" or "ravendb" (default: VECTOR_DB_TYPE env)
        database_url: Main database URL (default: DATABASE_URL env)
        table_name: Base table name (default: RAG_TABLE_NAME env)
        chunk_size: Characters per chunk (default: RAG_CHUNK_SIZE env)
        chunk_overlap: Chunk overlap (default: RAG_CHUNK_OVERLAP env)
        logger: Logger handed to every component
        **vector_store_kwargs: Extra arguments for the external vector store

    Returns:
        VectorRAG: Initialized engine

    Raises:
        InvalidConfig: On unusable configuration or missing capabilities
        StoreFailure: If the store cannot be reached or the schema cannot be created
    """
    if llm is None:
        llm = get_llm_service()

    completion = llm if isinstance(llm, CompletionProvider) else None
    db_type = db_type or VectorDatabaseConfig.get_type()

    tables: TableStore | None = None
    if db_type == SAME_AS_MAIN:
        tables = TableStore(create_engine(database_url or DatabaseConfig.get_url()), logger=logger)
        documents_table, chunks_table = build_rag_tables(table_name or DatabaseConfig.get_table_name())
        vector_store = build_vector_store(db_type, tables=tables, chunks_table=chunks_table, logger=logger)
        repository: ChunkRepository = SQLChunkRepository(
            tables, documents_table, chunks_table, vector_store, logger=logger
        )
    else:
        vector_store = build_vector_store(db_type, logger=logger, **vector_store_kwargs)
        repository = VectorMetadataRepository(vector_store, logger=logger)

    rag = VectorRAG(
        repository,
        vector_store,
        embedder=llm,
        completion=completion,
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        tables=tables,
        logger=logger,
    )
    await rag.initialize()
    return rag
