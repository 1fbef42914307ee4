"""Configuration for the relational store and the vector database."""

import os

from dotenv import load_dotenv

from vectorrag.constants import (
    DEFAULT_DATABASE_URL,
    DEFAULT_EMBEDDING_DIMENSIONS,
    DEFAULT_RAVENDB_DATABASE,
    DEFAULT_RAVENDB_URL,
    DEFAULT_TABLE_NAME,
    DEFAULT_VECTOR_COLLECTION,
)
from vectorrag.errors import InvalidConfig

# Load environment variables
load_dotenv()

SAME_AS_MAIN = "same_as_main"
RAVENDB = "ravendb"
VECTOR_DB_TYPES = (SAME_AS_MAIN, RAVENDB)


class DatabaseConfig:
    """Configuration class for the main relational store."""

    @staticmethod
    def get_url() -> str:
        """Get the SQLAlchemy async database URL from environment variables.

        Returns:
            str: Database URL (default: sqlite+aiosqlite:///vectorrag.db)
        """
        return os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)

    @staticmethod
    def get_table_name() -> str:
        """Get the base table name; tables are named {base}_documents and {base}_chunks.

        Returns:
            str: Base table name (default: rag)
        """
        return os.getenv("RAG_TABLE_NAME", DEFAULT_TABLE_NAME)


class VectorDatabaseConfig:
    """Configuration class for the vector store backend."""

    @staticmethod
    def get_type() -> str:
        """Get the vector store backend type.

        Returns:
            str: "same_as_main" (default) or "ravendb"

        Raises:
            InvalidConfig: If VECTOR_DB_TYPE holds an unknown backend
        """
        db_type = os.getenv("VECTOR_DB_TYPE", SAME_AS_MAIN).strip().lower()
        if db_type not in VECTOR_DB_TYPES:
            raise InvalidConfig(
                f"Unsupported VECTOR_DB_TYPE '{db_type}', expected one of {VECTOR_DB_TYPES}"
            )
        return db_type

    @staticmethod
    def get_collection() -> str:
        """Get the collection that holds chunk vectors in the external store.

        Returns:
            str: Collection name (default: DocumentChunks)
        """
        return os.getenv("VECTOR_DB_COLLECTION", DEFAULT_VECTOR_COLLECTION)

    @staticmethod
    def get_dimensions() -> int:
        """Get the embedding dimensionality used for the vector index.

        Returns:
            int: Number of dimensions (default: 768)
        """
        return int(os.getenv("EMBEDDING_DIMENSIONS", str(DEFAULT_EMBEDDING_DIMENSIONS)))


class RavenDBConfig:
    """Configuration class for RavenDB connection details."""

    @staticmethod
    def get_url() -> str:
        """Get the RavenDB server URL from environment variables.

        Returns:
            str: RavenDB server URL (default: http://localhost:8080)
        """
        return os.getenv("RAVENDB_URL", DEFAULT_RAVENDB_URL)

    @staticmethod
    def get_database_name() -> str:
        """Get the RavenDB database name from environment variables.

        Returns:
            str: Database name (default: vectorrag)
        """
        return os.getenv("RAVENDB_DATABASE", DEFAULT_RAVENDB_DATABASE)
