"""External vector store backed by RavenDB.

Chunks are stored as documents of one collection; a static index declares a
vector field on ``embedding`` so that KNN queries can be served by the engine.
The RavenDB client is synchronous, so every driver call runs in a worker
thread via ``asyncio.to_thread``.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import requests
from ravendb import DocumentStore
from ravendb.documents.indexes.definitions import (
    FieldIndexing,
    FieldStorage,
    IndexDefinition,
    IndexFieldOptions,
)
from ravendb.documents.indexes.vector.options import VectorOptions
from ravendb.documents.operations.indexes import GetIndexNamesOperation, PutIndexesOperation

from vectorrag.errors import StoreFailure
from vectorrag.rag.models import VectorMatch, VectorRecord
from vectorrag.service.database.config import RavenDBConfig, VectorDatabaseConfig
from vectorrag.service.vector_store.base import VectorStore
from vectorrag.service.vector_store.utils import (
    cosine_similarity,
    parse_embedding,
    parse_metadata,
    rank_matches,
    split_record_metadata,
    vector_payload,
)

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class VectorChunk:
    """A chunk stored in RavenDB.

    Note: eq=False ensures each instance is unique and hashable by identity,
    which is required for RavenDB's session entity tracking.

    Attributes:
        Id: RavenDB document ID (the chunk id)
        document_id: Id of the parent document
        chunk_index: Index of this chunk in the document
        content: The text content of the chunk
        embedding: Vector embedding, None when generation failed (not indexed)
        metadata: Chunk metadata
    """

    Id: str | None = None
    document_id: str = ""
    chunk_index: int = 0
    content: str = ""
    embedding: list[float] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __hash__(self) -> int:
        """Hash by object identity for RavenDB session tracking."""
        return id(self)


def create_document_store(url: str | None = None, database: str | None = None) -> DocumentStore:
    """Create and initialize a DocumentStore instance.

    Args:
        url: RavenDB server URL (defaults to value from RavenDBConfig.get_url())
        database: Database name (defaults to value from RavenDBConfig.get_database_name())

    Returns:
        DocumentStore: Initialized DocumentStore instance
    """
    if url is None:
        url = RavenDBConfig.get_url()
    if database is None:
        database = RavenDBConfig.get_database_name()

    store = DocumentStore([url], database)
    store.initialize()
    return store


def index_name_for(collection: str) -> str:
    return f"{collection}/ByEmbedding"


def ensure_index_exists(
    store: DocumentStore, collection: str | None = None, dimensions: int | None = None
) -> str:
    """Ensure the vector search index exists in RavenDB.

    Creates a static index named '{collection}/ByEmbedding' with vector search
    capabilities for the embedding field. Chunks without an embedding are not
    part of the index.

    Args:
        store: Initialized DocumentStore instance
        collection: Collection holding the chunks (default: VECTOR_DB_COLLECTION)
        dimensions: Embedding dimensions (default: EMBEDDING_DIMENSIONS)

    Returns:
        str: The index name
    """
    collection = collection or VectorDatabaseConfig.get_collection()
    index_name = index_name_for(collection)

    # Check if index already exists
    existing_indexes = store.maintenance.send(GetIndexNamesOperation(0, 100))
    if index_name in existing_indexes:
        return index_name

    index_definition = IndexDefinition()
    index_definition.name = index_name

    index_definition.maps = {
        f"""from chunk in docs.{collection}
        where chunk.embedding != null
        select new {{
            document_id = chunk.document_id,
            chunk_index = chunk.chunk_index,
            content = chunk.content,
            embedding = CreateField("embedding", chunk.embedding, new CreateFieldOptions {{ Storage = FieldStorage.Yes, Indexing = FieldIndexing.No }})
        }}"""
    }

    if dimensions is None:
        dimensions = VectorDatabaseConfig.get_dimensions()
    vector_options = VectorOptions(dimensions=dimensions)

    index_definition.fields = {
        "embedding": IndexFieldOptions(
            storage=FieldStorage.YES, indexing=FieldIndexing.NO, vector=vector_options
        )
    }

    store.maintenance.send(PutIndexesOperation(index_definition))
    logger.info(f"📇 Created vector index {index_name} ({dimensions} dimensions)")
    return index_name


def database_exists(url: str | None = None, database: str | None = None) -> bool:
    """Check if a database exists in RavenDB.

    Args:
        url: RavenDB server URL (defaults to value from RavenDBConfig.get_url())
        database: Database name (defaults to value from RavenDBConfig.get_database_name())

    Returns:
        bool: True if database exists, False otherwise
    """
    if url is None:
        url = RavenDBConfig.get_url()
    if database is None:
        database = RavenDBConfig.get_database_name()

    try:
        store = DocumentStore([url], database)
        store.initialize()
        with store.open_session() as session:
            list(session.query().take(0))
        store.close()
        return True
    except Exception as e:
        logger.debug(f"Database {database} not reachable at {url}: {e}")
        return False


def create_database(url: str | None = None, database: str | None = None) -> None:
    """Create a new database in RavenDB.

    Args:
        url: RavenDB server URL (defaults to value from RavenDBConfig.get_url())
        database: Database name (defaults to value from RavenDBConfig.get_database_name())

    Raises:
        requests.HTTPError: If the server rejects the request
    """
    if url is None:
        url = RavenDBConfig.get_url()
    if database is None:
        database = RavenDBConfig.get_database_name()

    api_url = f"{url}/admin/databases"
    payload = {"DatabaseName": database, "Settings": {}, "Disabled": False}

    response = requests.put(api_url, json=payload, timeout=30)
    response.raise_for_status()


def _score(result: dict, query_vector: list[float]) -> float | None:
    """Similarity of a query result: engine score if present, else cosine on the stored vector."""
    index_score = result.get("@metadata", {}).get("@index-score")
    if index_score is not None:
        return float(index_score)
    stored = parse_embedding(result.get("embedding"))
    if stored is None:
        return None
    return cosine_similarity(query_vector, stored)


class RavenDBVectorStore(VectorStore):
    """Vector store backed by a RavenDB collection and vector index."""

    search_method = "vector_external"

    def __init__(
        self,
        document_store: DocumentStore | None = None,
        collection: str | None = None,
        url: str | None = None,
        database: str | None = None,
        dimensions: int | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            document_store: Initialized DocumentStore; created from url/database when None
            collection: Collection holding the chunks (default: VECTOR_DB_COLLECTION)
            url: RavenDB server URL (default: RAVENDB_URL)
            database: Database name (default: RAVENDB_DATABASE)
            dimensions: Embedding dimensions for the index (default: EMBEDDING_DIMENSIONS)
            logger: Logger to use instead of the module logger
        """
        self.collection = collection or VectorDatabaseConfig.get_collection()
        self.index_name = index_name_for(self.collection)
        self.url = url
        self.database = database
        self.dimensions = dimensions
        self.logger = logger or logging.getLogger(__name__)
        self._store = document_store
        self._index_ready = False

    def connect(self) -> DocumentStore:
        """Return the DocumentStore, creating it and the vector index on first use.

        Raises:
            StoreFailure: If the server is unreachable or the index cannot be created
        """
        try:
            if self._store is None:
                self._store = create_document_store(self.url, self.database)
            if not self._index_ready:
                ensure_index_exists(self._store, self.collection, self.dimensions)
                self._index_ready = True
        except Exception as e:
            raise StoreFailure(f"Failed to initialize RavenDB vector store: {e}") from e
        return self._store

    async def initialize(self) -> None:
        await asyncio.to_thread(self.connect)
        self.logger.info(f"🗄️  RavenDB vector store ready: {self.collection} ({self.index_name})")

    async def _run(self, action: str, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args)
        except StoreFailure:
            raise
        except Exception as e:
            self.logger.error(f"❌ RavenDB {action} failed: {e}", exc_info=True)
            raise StoreFailure(f"RavenDB {action} failed: {e}") from e

    def _store_chunks(self, records: list[VectorRecord]) -> None:
        store = self.connect()
        with store.open_session() as session:
            for record in records:
                document_id, content, metadata = split_record_metadata(record.metadata)
                chunk = VectorChunk(
                    Id=record.id,
                    document_id=document_id,
                    chunk_index=int(metadata.get("chunk_index", 0)),
                    content=content,
                    embedding=list(record.vector) or None,
                    metadata=metadata,
                )
                session.store(chunk, record.id)
                session.advanced.get_metadata_for(chunk)["@collection"] = self.collection
            session.save_changes()

    def _query_nearest(self, query_vector: list[float], limit: int) -> list[dict]:
        store = self.connect()
        with store.open_session() as session:
            query = session.query_index(self.index_name, object_type=dict)
            return list(query.vector_search("embedding", query_vector).order_by_score().take(limit))

    def _load(self, vector_id: str) -> dict | None:
        store = self.connect()
        with store.open_session() as session:
            return session.load(vector_id, dict)

    def _delete(self, ids: list[str]) -> None:
        store = self.connect()
        with store.open_session() as session:
            for vector_id in ids:
                session.delete(vector_id)
            session.save_changes()

    def _query_document(self, document_id: str) -> list[dict]:
        store = self.connect()
        with store.open_session() as session:
            rql_query = f"from {self.collection} where document_id = $document_id"
            query = session.advanced.raw_query(rql_query, object_type=dict)
            return list(query.add_parameter("document_id", document_id))

    async def add_vectors(self, records: list[VectorRecord]) -> None:
        if not records:
            return
        await self._run("add_vectors", self._store_chunks, records)
        skipped = sum(1 for record in records if not record.vector)
        if skipped:
            self.logger.warning(f"⚠️ {skipped} chunks stored without embeddings; they are not indexed")
        self.logger.debug(f"Added {len(records)} vectors to RavenDB collection {self.collection}")

    async def search_vectors(
        self, query_vector: list[float], limit: int, threshold: float
    ) -> list[VectorMatch]:
        if limit <= 0:
            return []
        results = await self._run("search", self._query_nearest, query_vector, limit)

        scored: list[tuple[str, float]] = []
        for result in results:
            result_id = result.get("@metadata", {}).get("@id") or result.get("Id")
            score = _score(result, query_vector)
            if result_id is None or score is None:
                continue
            scored.append((result_id, score))

        ranked = rank_matches(scored, limit, threshold)
        self.logger.debug(f"Found {len(ranked)} similar vectors in RavenDB")
        return [VectorMatch(id=item_id, similarity=score) for item_id, score in ranked]

    async def delete_vectors(self, ids: list[str]) -> None:
        if not ids:
            return
        await self._run("delete", self._delete, ids)
        self.logger.debug(f"Deleted {len(ids)} vectors from RavenDB")

    async def get_vector_metadata(self, vector_id: str) -> dict[str, Any] | None:
        result = await self._run("load", self._load, vector_id)
        if not result:
            return None
        return vector_payload(
            result.get("document_id", ""), result.get("content", ""), parse_metadata(result.get("metadata"))
        )

    @staticmethod
    def _entry(result: dict, document_id: str = "") -> dict[str, Any]:
        return {
            "id": result.get("@metadata", {}).get("@id") or result.get("Id"),
            **vector_payload(
                result.get("document_id", document_id),
                result.get("content", ""),
                parse_metadata(result.get("metadata")),
            ),
        }

    async def find_by_document(
        self, document_id: str, index_range: tuple[int, int] | None = None
    ) -> list[dict[str, Any]]:
        results = await self._run("document lookup", self._query_document, document_id)

        entries = []
        for result in results:
            chunk_index = result.get("chunk_index", 0)
            if index_range is not None and not index_range[0] <= chunk_index <= index_range[1]:
                continue
            entries.append(self._entry(result, document_id))
        entries.sort(key=lambda entry: entry.get("chunk_index", 0))
        return entries

    def _query_metadata(self, metadata_filter: dict[str, Any], limit: int) -> list[dict]:
        store = self.connect()
        with store.open_session() as session:
            conditions = " and ".join(
                f"metadata.{key} = $p{position}" for position, key in enumerate(metadata_filter)
            )
            rql_query = (
                f"from {self.collection} where {conditions} "
                "order by document_id, chunk_index as long"
            )
            query = session.advanced.raw_query(rql_query, object_type=dict)
            for position, value in enumerate(metadata_filter.values()):
                query = query.add_parameter(f"p{position}", value)
            return list(query.take(limit))

    def _first(self) -> list[dict]:
        store = self.connect()
        with store.open_session() as session:
            query = session.advanced.raw_query(f"from {self.collection}", object_type=dict)
            return list(query.take(1))

    async def find_by_metadata(
        self, metadata_filter: dict[str, Any], limit: int
    ) -> list[dict[str, Any]]:
        results = await self._run("metadata lookup", self._query_metadata, metadata_filter, limit)
        entries = [self._entry(result) for result in results]
        self.logger.debug(f"Found {len(entries)} chunks matching {metadata_filter} in RavenDB")
        return entries

    async def sample_metadata(self) -> dict[str, Any] | None:
        results = await self._run("sample", self._first)
        if not results:
            return None
        return parse_metadata(results[0].get("metadata"))

    async def close(self) -> None:
        if self._store is not None:
            self._store.close()
            self._store = None
            self._index_ready = False
