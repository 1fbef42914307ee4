"""Vector store backends and the factory that picks one.

Usage:
    from vectorrag.service.vector_store import build_vector_store

    store = build_vector_store("same_as_main", tables=tables, chunks_table=chunks)
    matches = await store.search_vectors(query_vector, limit=5, threshold=0.5)
"""

import logging
from typing import Any

from sqlalchemy import Table

from vectorrag.errors import InvalidConfig
from vectorrag.service.database.config import RAVENDB, SAME_AS_MAIN, VectorDatabaseConfig
from vectorrag.service.database.tables import TableStore
from vectorrag.service.vector_store.base import VectorStore
from vectorrag.service.vector_store.colocated import SQLVectorStore
from vectorrag.service.vector_store.ravendb import RavenDBVectorStore
from vectorrag.service.vector_store.utils import cosine_similarity


def build_vector_store(
    db_type: str | None = None,
    tables: TableStore | None = None,
    chunks_table: Table | None = None,
    logger: logging.Logger | None = None,
    **kwargs: Any,
) -> VectorStore:
    """Factory: create a VectorStore of the requested type.

    Args:
        db_type: "same_as_main" or "ravendb" (default: VECTOR_DB_TYPE env)
        tables: TableStore of the main database (required for "same_as_main")
        chunks_table: Chunks table definition (required for "same_as_main")
        logger: Logger handed to the store
        **kwargs: Backend-specific configuration (e.g. collection, url, database)

    Returns:
        VectorStore instance

    Raises:
        InvalidConfig: Unknown backend or missing co-located tables
    """
    db_type = db_type or VectorDatabaseConfig.get_type()

    if db_type == SAME_AS_MAIN:
        if tables is None or chunks_table is None:
            raise InvalidConfig("The co-located vector store needs the main TableStore and chunks table")
        return SQLVectorStore(tables, chunks_table, logger=logger)

    if db_type == RAVENDB:
        return RavenDBVectorStore(logger=logger, **kwargs)

    raise InvalidConfig(
        f"Unknown vector store backend: {db_type!r}. Supported: {SAME_AS_MAIN!r}, {RAVENDB!r}"
    )


__all__ = [
    "VectorStore",
    "SQLVectorStore",
    "RavenDBVectorStore",
    "build_vector_store",
    "cosine_similarity",
]
