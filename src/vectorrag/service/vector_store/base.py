"""Abstract vector store interface.

Two backends implement it:
- SQLVectorStore: brute-force cosine search over the chunks table of the main store
- RavenDBVectorStore: RavenDB collection with a vector index

Both return identical shapes and rank identically, so callers never branch
on the backend.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from vectorrag.rag.models import VectorMatch, VectorRecord

logger = logging.getLogger(__name__)


class VectorStore(ABC):
    """Abstract interface for vector storage and similarity search."""

    #: Value of the ``searchMethod`` field attached to hits from this backend
    search_method = "vector"

    async def initialize(self) -> None:
        """Connect and create any index the backend needs. Failures are fatal."""
        return None

    @abstractmethod
    async def add_vectors(self, records: list[VectorRecord]) -> None:
        """Store vectors. ``documentId`` and ``content`` travel in the record metadata."""

    @abstractmethod
    async def search_vectors(
        self, query_vector: list[float], limit: int, threshold: float
    ) -> list[VectorMatch]:
        """Find the most similar vectors.

        Args:
            query_vector: Query embedding
            limit: Maximum number of matches
            threshold: Minimum similarity for a match to be returned

        Returns:
            list[VectorMatch]: At most ``limit`` matches with similarity >= threshold,
                sorted by similarity descending

        Raises:
            DimensionMismatch: If the query and a stored vector differ in length
            StoreFailure: If the backend fails
        """

    @abstractmethod
    async def delete_vectors(self, ids: list[str]) -> None:
        """Delete vectors by id. Unknown ids are ignored."""

    @abstractmethod
    async def get_vector_metadata(self, vector_id: str) -> dict[str, Any] | None:
        """Return the stored metadata for a vector, or None if it does not exist."""

    @abstractmethod
    async def find_by_document(
        self, document_id: str, index_range: tuple[int, int] | None = None
    ) -> list[dict[str, Any]]:
        """List the stored entries of one document.

        Args:
            document_id: Parent document id
            index_range: Optional inclusive (low, high) chunk_index bounds

        Returns:
            list[dict]: ``get_vector_metadata``-shaped dicts with an extra ``id`` key,
                ordered by chunk_index
        """

    async def find_by_metadata(
        self, metadata_filter: dict[str, Any], limit: int
    ) -> list[dict[str, Any]]:
        """List stored entries whose chunk metadata equals every value in the filter.

        Only stores that keep chunk metadata outside the main store need this;
        the co-located store is searched through its documents table instead.

        Returns:
            list[dict]: At most ``limit`` find_by_document-shaped dicts
        """
        raise NotImplementedError(f"{type(self).__name__} does not support metadata lookups")

    async def sample_metadata(self) -> dict[str, Any] | None:
        """Chunk metadata of any one stored entry, or None if the store is empty."""
        return None

    async def close(self) -> None:
        """Release resources. Override if needed."""
        return None
