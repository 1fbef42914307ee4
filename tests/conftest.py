"""Pytest configuration and shared fixtures for the test suite."""

import re

import pytest
import pytest_asyncio
import requests
from sqlalchemy.pool import StaticPool

from vectorrag.errors import EmbeddingFailure
from vectorrag.llm.base import CompletionOptions
from vectorrag.rag.models import VectorRecord
from vectorrag.service.database.repository import SQLChunkRepository
from vectorrag.service.database.tables import TableStore, build_rag_tables, create_engine
from vectorrag.service.vector_store.colocated import SQLVectorStore

# Words that get their own dimension in FakeEmbedder vectors
VOCABULARY = ["neutron", "scattering", "python", "cooking", "recipe", "database", "vector", "search"]


# Service availability checks
def ollama_available() -> bool:
    """Check if Ollama server is running and accessible.

    Returns:
        True if Ollama is available, False otherwise
    """
    try:
        response = requests.get("http://localhost:11434/api/tags", timeout=2)
        return response.status_code == 200
    except (requests.RequestException, Exception):
        return False


def ravendb_available() -> bool:
    """Check if RavenDB server is running and accessible.

    Returns:
        True if RavenDB is available, False otherwise
    """
    try:
        response = requests.get("http://localhost:8080/databases", timeout=2)
        return response.status_code == 200 or response.status_code == 401  # Auth required is OK
    except (requests.RequestException, Exception):
        return False


class FakeEmbedder:
    """Deterministic embedding provider.

    Texts listed in ``vectors`` get that exact vector. Anything else becomes a
    bag-of-words count over VOCABULARY plus a constant bias dimension, so that
    texts sharing words are similar and no vector is all zeros.
    """

    def __init__(self, vectors: dict[str, list[float]] | None = None, fail_on: set[str] | None = None):
        self.vectors = vectors or {}
        self.fail_on = fail_on or set()
        self.calls: list[str] = []

    async def generate_embedding(self, text: str) -> list[float]:
        self.calls.append(text)
        if text in self.fail_on:
            raise EmbeddingFailure(f"cannot embed {text!r}")
        if text in self.vectors:
            return list(self.vectors[text])
        words = re.findall(r"\w+", text.lower())
        return [float(words.count(word)) for word in VOCABULARY] + [0.1]


class FakeCompletion:
    """Completion provider answering from a queue of canned responses."""

    def __init__(self, responses: list[str | Exception] | None = None):
        self.responses = list(responses or [])
        self.calls: list[tuple[list[dict], CompletionOptions]] = []

    async def complete(self, messages: list[dict], options: CompletionOptions) -> str:
        self.calls.append((messages, options))
        if not self.responses:
            return ""
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def embedder() -> FakeEmbedder:
    """Provide a deterministic embedding provider."""
    return FakeEmbedder()


@pytest.fixture
def mock_embedding():
    """Provide a simple mock embedding vector.

    Returns:
        List of floats representing an embedding vector
    """
    return [0.1, 0.2, 0.3, 0.15, -0.1, 0.05, 0.25, -0.05]


@pytest_asyncio.fixture
async def table_store():
    """Provide a TableStore over an in-memory SQLite database.

    Yields:
        TableStore sharing a single connection across the test
    """
    engine = create_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    tables = TableStore(engine)
    yield tables
    await tables.close()


@pytest.fixture
def rag_tables():
    """Provide (documents_table, chunks_table) definitions for the 'test' base name."""
    return build_rag_tables("test")


@pytest_asyncio.fixture
async def sql_vector_store(table_store, rag_tables):
    """Provide a co-located vector store with its chunks table created."""
    _, chunks_table = rag_tables
    await table_store.ensure_table(chunks_table)
    return SQLVectorStore(table_store, chunks_table)


@pytest_asyncio.fixture
async def sql_repository(table_store, rag_tables, sql_vector_store):
    """Provide an initialized SQL chunk repository."""
    documents_table, chunks_table = rag_tables
    repository = SQLChunkRepository(table_store, documents_table, chunks_table, sql_vector_store)
    await repository.initialize()
    return repository


@pytest.fixture
def create_test_record():
    """Factory fixture to create VectorRecord inputs for add_vectors.

    Returns:
        Function that creates a record with custom parameters
    """
    def _create_record(
        record_id: str = "chunk-0",
        vector: list[float] | None = None,
        document_id: str = "doc-1",
        chunk_index: int = 0,
        content: str = "Test chunk text",
        **metadata,
    ) -> VectorRecord:
        return VectorRecord(
            id=record_id,
            vector=[1.0, 0.0, 0.0] if vector is None else vector,
            metadata={
                "chunk_index": chunk_index,
                "start_char": chunk_index * 800,
                "end_char": chunk_index * 800 + len(content),
                **metadata,
                "documentId": document_id,
                "content": content,
            },
        )

    return _create_record


# Service fixtures with skip markers
@pytest.fixture
def ollama_service():
    """Provide OllamaService instance, skip if Ollama not available.

    Raises:
        pytest.skip: If Ollama server is not running
    """
    if not ollama_available():
        pytest.skip("Ollama server not running on localhost:11434")

    from vectorrag.llm import OllamaService

    return OllamaService(host="http://localhost:11434", model="llama3")


@pytest_asyncio.fixture
async def ravendb_vector_store():
    """Provide a RavenDBVectorStore on a test database, skip if RavenDB not available.

    Yields:
        Initialized store over the IntegrationChunks collection (3 dimensions)

    Raises:
        pytest.skip: If RavenDB server is not running
    """
    if not ravendb_available():
        pytest.skip("RavenDB server not running on localhost:8080")

    from vectorrag.service.vector_store.ravendb import (
        RavenDBVectorStore,
        create_database,
        database_exists,
    )

    url, database = "http://localhost:8080", "vectorrag_test"
    if not database_exists(url, database):
        create_database(url, database)

    store = RavenDBVectorStore(collection="IntegrationChunks", url=url, database=database, dimensions=3)
    await store.initialize()
    yield store
    await store.close()
