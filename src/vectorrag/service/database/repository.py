"""Document and chunk persistence.

``ChunkRepository`` hides where documents and chunks live:
- SQLChunkRepository: documents and chunks tables in the main relational store
  (the chunks table doubles as the co-located vector store)
- VectorMetadataRepository: external vector store; chunk content and metadata
  travel with the vectors and documents are not persisted in the main store
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Any

from sqlalchemy import Table, and_

from vectorrag.constants import DEFAULT_TOP_K
from vectorrag.errors import InvalidConfig
from vectorrag.rag.models import Chunk, Document, SearchHit
from vectorrag.service.database.tables import TableStore
from vectorrag.service.vector_store.base import VectorStore
from vectorrag.service.vector_store.colocated import chunk_index_between
from vectorrag.service.vector_store.utils import parse_embedding, parse_metadata

METADATA_KEY = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
METADATA_VALUE_TYPES = (str, int, float, bool)


def check_metadata_filter(metadata_filter: Any) -> None:
    """Reject metadata filters that cannot be turned into equality lookups.

    A filter is a non-empty dict of plain field names to scalar values.

    Raises:
        InvalidConfig: If the filter is empty or holds an unusable key or value
    """
    if not isinstance(metadata_filter, dict) or not metadata_filter:
        raise InvalidConfig("Filter parameter is required")
    for key, value in metadata_filter.items():
        if not isinstance(key, str) or not METADATA_KEY.fullmatch(key):
            raise InvalidConfig(f"Invalid metadata field name: {key!r}")
        if not isinstance(value, METADATA_VALUE_TYPES):
            raise InvalidConfig(
                f"Metadata filter value for {key} must be a string, number or boolean"
            )


def metadata_equals(table: Table, key: str, value: str | int | float | bool) -> Any:
    """SQL clause comparing one JSON metadata field to a value of the same type."""
    field = table.c["metadata"][key]
    # bool is an int subclass, so it is checked first
    if isinstance(value, bool):
        return field.as_boolean() == value
    if isinstance(value, int):
        return field.as_integer() == value
    if isinstance(value, float):
        return field.as_float() == value
    return field.as_string() == value


def chunk_from_payload(chunk_id: str, payload: dict[str, Any]) -> Chunk:
    """Build a Chunk from a get_vector_metadata-shaped dict."""
    metadata = payload.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {
            key: value for key, value in payload.items() if key not in ("content", "documentId", "id")
        }
    return Chunk(
        id=chunk_id,
        document_id=payload.get("documentId", ""),
        content=payload.get("content", ""),
        metadata=dict(metadata),
    )


class ChunkRepository(ABC):
    """Storage contract for documents and their chunks."""

    def __init__(self, vector_store: VectorStore, logger: logging.Logger | None = None) -> None:
        self.vector_store = vector_store
        self.logger = logger or logging.getLogger(__name__)

    async def initialize(self) -> None:
        """Create whatever schema the repository needs. Failures are fatal."""
        return None

    @abstractmethod
    async def create_document(self, document: Document) -> None:
        """Persist a document record (chunks are stored through the vector store)."""

    @abstractmethod
    async def get_document(self, document_id: str) -> Document | None:
        """Return a document by id, or None."""

    async def get_documents(self, document_ids: list[str]) -> dict[str, Document]:
        """Return the stored documents among ``document_ids``, keyed by id."""
        return {}

    @abstractmethod
    async def delete_document(self, document_id: str) -> int:
        """Delete a document and every chunk and vector belonging to it.

        Returns:
            int: Number of chunks removed
        """

    async def get_chunks_by_vector_ids(self, ids: list[str]) -> dict[str, Chunk]:
        """Resolve vector ids to chunks. Ids that no longer exist are left out.

        Returns:
            dict[str, Chunk]: Chunks keyed by vector id
        """
        chunks: dict[str, Chunk] = {}
        for vector_id in ids:
            payload = await self.vector_store.get_vector_metadata(vector_id)
            if payload is None:
                self.logger.warning(f"⚠️ No metadata found for vector {vector_id}")
                continue
            chunks[vector_id] = chunk_from_payload(vector_id, payload)
        return chunks

    async def get_adjacent_chunks(
        self, document_id: str, chunk_index: int, expansion_range: int
    ) -> list[Chunk]:
        """Return the chunks of a document with index in [index - range, index + range].

        The chunk at ``chunk_index`` itself is included when it exists.
        """
        low = max(0, chunk_index - expansion_range)
        high = chunk_index + expansion_range
        entries = await self.vector_store.find_by_document(document_id, (low, high))
        return [chunk_from_payload(entry["id"], entry) for entry in entries]

    async def search_by_metadata(
        self, metadata_filter: dict[str, Any], limit: int = DEFAULT_TOP_K
    ) -> list[SearchHit]:
        """Find stored entries whose metadata equals every value in the filter.

        Values are compared with their JSON type, so 2024 and "2024" are
        different values.

        Args:
            metadata_filter: Field name to expected value, e.g. {"language": "en"}
            limit: Maximum number of hits

        Returns:
            list[SearchHit]: Matching entries with similarity 1.0

        Raises:
            InvalidConfig: If the filter is empty or malformed
            StoreFailure: If the backend fails
        """
        check_metadata_filter(metadata_filter)
        if limit <= 0:
            return []
        hits = await self._match_metadata(metadata_filter, limit)
        self.logger.info(f"🏷️  Metadata filter {metadata_filter} matched {len(hits)} entries")
        return hits

    @abstractmethod
    async def _match_metadata(
        self, metadata_filter: dict[str, Any], limit: int
    ) -> list[SearchHit]:
        """Backend lookup behind search_by_metadata; the filter is already validated."""

    @abstractmethod
    async def get_representative_metadata(self) -> dict[str, Any] | None:
        """Metadata of one stored chunk, used to detect the corpus language."""


class SQLChunkRepository(ChunkRepository):
    """Documents and chunks in the main relational store."""

    def __init__(
        self,
        tables: TableStore,
        documents_table: Table,
        chunks_table: Table,
        vector_store: VectorStore,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(vector_store, logger)
        self.tables = tables
        self.documents_table = documents_table
        self.chunks_table = chunks_table

    async def initialize(self) -> None:
        await self.tables.ensure_table(self.documents_table)
        await self.tables.ensure_table(self.chunks_table)
        self.logger.info(
            f"🗄️  RAG tables ready: {self.documents_table.name}, {self.chunks_table.name}"
        )

    async def create_document(self, document: Document) -> None:
        await self.tables.insert(
            self.documents_table,
            [{"id": document.id, "content": document.content, "metadata": document.metadata}],
        )
        self.logger.debug(f"Stored document {document.id} in {self.documents_table.name}")

    async def get_document(self, document_id: str) -> Document | None:
        rows = await self.tables.select(
            self.documents_table, where=self.documents_table.c.id == document_id
        )
        if not rows:
            return None
        row = rows[0]
        return Document(id=row["id"], content=row["content"], metadata=parse_metadata(row["metadata"]))

    async def get_documents(self, document_ids: list[str]) -> dict[str, Document]:
        if not document_ids:
            return {}
        rows = await self.tables.select(
            self.documents_table, where=self.documents_table.c.id.in_(document_ids)
        )
        return {
            row["id"]: Document(
                id=row["id"], content=row["content"], metadata=parse_metadata(row["metadata"])
            )
            for row in rows
        }

    async def delete_document(self, document_id: str) -> int:
        async with self.tables.transaction() as conn:
            # Chunk rows are the co-located vectors, so they go first.
            removed = await self.tables.delete(
                self.chunks_table, self.chunks_table.c.document_id == document_id, conn=conn
            )
            await self.tables.delete(
                self.documents_table, self.documents_table.c.id == document_id, conn=conn
            )
        self.logger.info(f"🗑️  Deleted document {document_id} and {removed} chunks")
        return removed

    async def get_chunks_by_vector_ids(self, ids: list[str]) -> dict[str, Chunk]:
        if not ids:
            return {}
        rows = await self.tables.select(self.chunks_table, where=self.chunks_table.c.id.in_(ids))
        return {row["id"]: self._row_to_chunk(row) for row in rows}

    async def get_adjacent_chunks(
        self, document_id: str, chunk_index: int, expansion_range: int
    ) -> list[Chunk]:
        low = max(0, chunk_index - expansion_range)
        high = chunk_index + expansion_range
        rows = await self.tables.select(
            self.chunks_table,
            where=and_(
                self.chunks_table.c.document_id == document_id,
                chunk_index_between(self.chunks_table, low, high),
            ),
        )
        chunks = [self._row_to_chunk(row) for row in rows]
        chunks.sort(key=lambda chunk: chunk.chunk_index or 0)
        return chunks

    async def _match_metadata(
        self, metadata_filter: dict[str, Any], limit: int
    ) -> list[SearchHit]:
        rows = await self.tables.select(
            self.documents_table,
            where=and_(
                *(
                    metadata_equals(self.documents_table, key, value)
                    for key, value in metadata_filter.items()
                )
            ),
            order_by=self.documents_table.c.created_at,
            limit=limit,
        )
        return [
            SearchHit(
                content=row["content"],
                metadata=parse_metadata(row["metadata"]),
                similarity=1.0,
                source_id=row["id"],
                document_id=row["id"],
            )
            for row in rows
        ]

    async def get_representative_metadata(self) -> dict[str, Any] | None:
        rows = await self.tables.raw_query(
            f"SELECT metadata FROM {self.chunks_table.name} LIMIT 1"
        )
        if not rows:
            return None
        return parse_metadata(rows[0]["metadata"])

    @staticmethod
    def _row_to_chunk(row: dict[str, Any]) -> Chunk:
        return Chunk(
            id=row["id"],
            document_id=row["document_id"],
            content=row["content"],
            metadata=parse_metadata(row["metadata"]),
            embedding=parse_embedding(row.get("embedding")) or [],
        )


class VectorMetadataRepository(ChunkRepository):
    """Repository for an external vector store that carries all chunk data."""

    async def initialize(self) -> None:
        await self.vector_store.initialize()

    async def create_document(self, document: Document) -> None:
        self.logger.debug(
            f"Document {document.id} metadata is stored with its chunks in the external vector store"
        )

    async def get_document(self, document_id: str) -> Document | None:
        self.logger.warning(
            f"⚠️ get_document is not supported with an external vector store (document {document_id})"
        )
        return None

    async def delete_document(self, document_id: str) -> int:
        entries = await self.vector_store.find_by_document(document_id)
        ids = [entry["id"] for entry in entries if entry.get("id")]
        await self.vector_store.delete_vectors(ids)
        self.logger.info(f"🗑️  Deleted document {document_id} and {len(ids)} chunks")
        return len(ids)

    async def _match_metadata(
        self, metadata_filter: dict[str, Any], limit: int
    ) -> list[SearchHit]:
        # Document metadata is copied onto every chunk, so matches are chunks
        entries = await self.vector_store.find_by_metadata(metadata_filter, limit)
        hits = []
        for entry in entries:
            chunk = chunk_from_payload(entry["id"], entry)
            hits.append(
                SearchHit(
                    content=chunk.content,
                    metadata=chunk.metadata,
                    similarity=1.0,
                    source_id=chunk.id,
                    document_id=chunk.document_id or None,
                    chunk_index=chunk.chunk_index,
                )
            )
        return hits

    async def get_representative_metadata(self) -> dict[str, Any] | None:
        return await self.vector_store.sample_metadata()
