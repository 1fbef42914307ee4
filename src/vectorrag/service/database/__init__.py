"""Relational storage for the RAG core.

This package provides:
- Configuration management (DatabaseConfig, VectorDatabaseConfig, RavenDBConfig)
- Async table access on SQLAlchemy (TableStore)
- Document/chunk repositories for both vector store backends

Usage:
    from vectorrag.service.database import (
        DatabaseConfig,
        TableStore,
        build_rag_tables,
        create_engine,
    )
"""

from vectorrag.service.database.config import DatabaseConfig, RavenDBConfig, VectorDatabaseConfig
from vectorrag.service.database.tables import TableStore, build_rag_tables, create_engine

__all__ = [
    # Config
    "DatabaseConfig",
    "RavenDBConfig",
    "VectorDatabaseConfig",
    # Tables
    "TableStore",
    "build_rag_tables",
    "create_engine",
]
