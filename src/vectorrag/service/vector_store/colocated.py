"""Vector store co-located with the main relational store.

Vectors live as JSON text in the chunks table next to the chunk content and
metadata. Search is brute force: every embedding is loaded and compared to
the query in process, which is fine for small corpora and needs no extension.
"""

import json
import logging
from typing import Any

from sqlalchemy import Table, and_

from vectorrag.rag.models import VectorMatch, VectorRecord
from vectorrag.service.database.tables import TableStore
from vectorrag.service.vector_store.base import VectorStore
from vectorrag.service.vector_store.utils import (
    cosine_similarity,
    parse_embedding,
    parse_metadata,
    rank_matches,
    split_record_metadata,
    vector_payload,
)


def chunk_index_between(table: Table, low: int, high: int) -> Any:
    """SQL clause selecting chunks whose metadata chunk_index is in [low, high]."""
    return table.c["metadata"]["chunk_index"].as_integer().between(low, high)


class SQLVectorStore(VectorStore):
    """Brute-force cosine search over the chunks table."""

    search_method = "vector"

    def __init__(
        self, tables: TableStore, chunks_table: Table, logger: logging.Logger | None = None
    ) -> None:
        self.tables = tables
        self.chunks_table = chunks_table
        self.logger = logger or logging.getLogger(__name__)

    async def add_vectors(self, records: list[VectorRecord]) -> None:
        rows = []
        for record in records:
            document_id, content, metadata = split_record_metadata(record.metadata)
            rows.append(
                {
                    "id": record.id,
                    "document_id": document_id,
                    "content": content,
                    "metadata": metadata,
                    "embedding": json.dumps(list(record.vector)),
                }
            )

        await self.tables.insert(self.chunks_table, rows)
        self.logger.debug(f"Added {len(rows)} vectors to {self.chunks_table.name}")

    async def search_vectors(
        self, query_vector: list[float], limit: int, threshold: float
    ) -> list[VectorMatch]:
        rows = await self.tables.select(self.chunks_table, columns=["id", "embedding"])

        scored: list[tuple[str, float]] = []
        for row in rows:
            stored = parse_embedding(row["embedding"])
            if stored is None:
                self.logger.warning(f"⚠️ Empty or malformed embedding for vector {row['id']}, skipping")
                continue
            scored.append((row["id"], cosine_similarity(query_vector, stored)))

        ranked = rank_matches(scored, limit, threshold)
        self.logger.debug(f"Found {len(ranked)} similar vectors among {len(rows)} rows")
        return [VectorMatch(id=item_id, similarity=score) for item_id, score in ranked]

    async def delete_vectors(self, ids: list[str]) -> None:
        if not ids:
            return
        deleted = await self.tables.delete(self.chunks_table, self.chunks_table.c.id.in_(ids))
        self.logger.debug(f"Deleted {deleted} vectors from {self.chunks_table.name}")

    async def get_vector_metadata(self, vector_id: str) -> dict[str, Any] | None:
        rows = await self.tables.select(
            self.chunks_table,
            where=self.chunks_table.c.id == vector_id,
            columns=["document_id", "content", "metadata"],
        )
        if not rows:
            return None

        row = rows[0]
        return vector_payload(row["document_id"], row["content"], parse_metadata(row["metadata"]))

    async def find_by_document(
        self, document_id: str, index_range: tuple[int, int] | None = None
    ) -> list[dict[str, Any]]:
        where = self.chunks_table.c.document_id == document_id
        if index_range is not None:
            where = and_(where, chunk_index_between(self.chunks_table, *index_range))

        rows = await self.tables.select(
            self.chunks_table, where=where, columns=["id", "document_id", "content", "metadata"]
        )

        entries = [
            {
                "id": row["id"],
                **vector_payload(row["document_id"], row["content"], parse_metadata(row["metadata"])),
            }
            for row in rows
        ]
        entries.sort(key=lambda entry: entry.get("chunk_index", 0))
        return entries
