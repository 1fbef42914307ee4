"""Data models shared by the ingestion and query paths."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Document:
    """A source document as handed over by the ingestion collaborator.

    Attributes:
        id: Document identifier (UUID string)
        content: Full raw text of the document
        metadata: Caller supplied metadata (title, author, language, ...)
    """

    id: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ChunkDraft:
    """A chunk produced by the chunker, before it has an id or embedding.

    The metadata always carries chunk_index, start_char and end_char.
    """

    document_id: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def chunk_index(self) -> int:
        return self.metadata["chunk_index"]

    @property
    def start_char(self) -> int:
        return self.metadata["start_char"]

    @property
    def end_char(self) -> int:
        return self.metadata["end_char"]


@dataclass
class Chunk:
    """A persisted chunk of a document.

    Attributes:
        id: Chunk identifier, also the id of its vector-store entry
        document_id: Id of the parent document
        content: The text content of the chunk
        metadata: Chunk metadata (chunk_index, start_char, end_char, ...)
        embedding: Embedding vector, empty if generation failed
    """

    id: str
    document_id: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    embedding: list[float] = field(default_factory=list)

    @property
    def chunk_index(self) -> int | None:
        value = self.metadata.get("chunk_index")
        return int(value) if value is not None else None


@dataclass
class VectorRecord:
    """Input row for VectorStore.add_vectors."""

    id: str
    vector: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VectorMatch:
    """A single similarity search result from a vector store."""

    id: str
    similarity: float


@dataclass
class SearchHit:
    """An ephemeral search result handed back to callers.

    Attributes:
        content: Chunk text
        metadata: Enriched chunk metadata (chunkId, documentId, document, ...)
        similarity: Similarity score in [0, 1]
        source_id: Id of the chunk that produced the hit
        document_id: Id of the parent document, if known
        chunk_index: Position of the chunk in its document, if known
        is_original: True for direct matches
        is_adjacent: True for neighbours added by context expansion
        parent_original_chunk: For adjacent hits, the id of the hit they expand
        query_variant: The query phrasing that produced the hit
        document_summary: Readable metadata summary, set on the first hit of a group
        is_supplementary: True for hits after the first one of a document group
    """

    content: str
    metadata: dict[str, Any]
    similarity: float
    source_id: str
    document_id: str | None = None
    chunk_index: int | None = None
    is_original: bool = True
    is_adjacent: bool = False
    parent_original_chunk: str | None = None
    query_variant: str | None = None
    document_summary: str | None = None
    is_supplementary: bool = False

    @property
    def dedup_key(self) -> tuple:
        """Composite key used when merging hits from several query variants."""
        if self.document_id is not None and self.chunk_index is not None:
            return (self.document_id, self.chunk_index)
        return (self.source_id,)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the hit for tool and CLI output."""
        result: dict[str, Any] = {
            "content": self.content,
            "metadata": {
                **self.metadata,
                "isOriginal": self.is_original,
                "isAdjacent": self.is_adjacent,
                "parentOriginalChunk": self.parent_original_chunk,
            },
            "similarity": self.similarity,
            "sourceId": self.source_id,
        }
        if self.query_variant is not None:
            result["queryVariant"] = self.query_variant
        if self.document_summary is not None:
            result["documentSummary"] = self.document_summary
        if self.is_supplementary:
            result["isSupplementary"] = True
        return result


@dataclass
class SearchResponse:
    """Search outcome; an empty hit list carries an explanatory message."""

    query: str
    hits: list[SearchHit] = field(default_factory=list)
    message: str | None = None

    @property
    def original_count(self) -> int:
        return sum(1 for hit in self.hits if not hit.is_adjacent)

    @property
    def adjacent_count(self) -> int:
        return sum(1 for hit in self.hits if hit.is_adjacent)
