"""Tests for CLI helper functions and configuration."""

from unittest.mock import patch

import click
import pytest

from vectorrag.client.cli_helpers import ensure_database_exists, format_search_hit, get_ravendb_info
from vectorrag.errors import InvalidConfig
from vectorrag.rag.models import SearchHit
from vectorrag.service.database.config import DatabaseConfig, RavenDBConfig, VectorDatabaseConfig


class TestFormatSearchHit:
    """Tests for format_search_hit function."""

    def test_direct_hit(self):
        hit = SearchHit(
            content="Neutron\n  scattering   text",
            metadata={"source": "paper.pdf"},
            similarity=0.8765,
            source_id="c1",
            chunk_index=2,
        )

        output = format_search_hit(1, hit)

        assert output.splitlines()[0] == "1. [paper.pdf - chunk #2] (score: 0.8765)"
        assert "   Neutron scattering text" in output

    def test_truncates_long_content(self):
        hit = SearchHit(content="a" * 50, metadata={}, similarity=0.5, source_id="c1")

        output = format_search_hit(3, hit, max_length=10)

        assert "   aaaaaaaaaa..." in output
        assert "[c1 - chunk #?]" in output

    def test_adjacent_hit_falls_back_to_document_id(self):
        hit = SearchHit(
            content="ctx",
            metadata={},
            similarity=0.4,
            source_id="c2",
            document_id="doc-9",
            chunk_index=0,
            is_original=False,
            is_adjacent=True,
        )

        first_line = format_search_hit(2, hit).splitlines()[0]

        assert first_line == "2. [doc-9 - chunk #0] (score: 0.4000) [context]"


class TestEnsureDatabaseExists:
    """Tests for ensure_database_exists function."""

    @patch("vectorrag.client.cli_helpers.database_exists", return_value=True)
    def test_existing_database(self, mock_exists):
        assert ensure_database_exists() is True

    @patch("vectorrag.client.cli_helpers.database_exists", return_value=False)
    def test_missing_database_aborts(self, mock_exists):
        with pytest.raises(click.Abort):
            ensure_database_exists()

    @patch("vectorrag.client.cli_helpers.create_database")
    @patch("vectorrag.client.cli_helpers.database_exists", return_value=False)
    def test_creates_when_requested(self, mock_exists, mock_create):
        assert ensure_database_exists(create_if_missing=True) is True
        mock_create.assert_called_once_with()


class TestConfig:
    """Tests for the environment-driven configuration classes."""

    def test_defaults(self, monkeypatch):
        for name in ("DATABASE_URL", "RAG_TABLE_NAME", "VECTOR_DB_TYPE", "VECTOR_DB_COLLECTION",
                     "EMBEDDING_DIMENSIONS", "RAVENDB_URL", "RAVENDB_DATABASE"):
            monkeypatch.delenv(name, raising=False)

        assert DatabaseConfig.get_url() == "sqlite+aiosqlite:///vectorrag.db"
        assert DatabaseConfig.get_table_name() == "rag"
        assert VectorDatabaseConfig.get_type() == "same_as_main"
        assert VectorDatabaseConfig.get_collection() == "DocumentChunks"
        assert VectorDatabaseConfig.get_dimensions() == 768
        assert get_ravendb_info() == ("http://localhost:8080", "vectorrag")

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("VECTOR_DB_TYPE", " RavenDB ")
        monkeypatch.setenv("EMBEDDING_DIMENSIONS", "1024")
        monkeypatch.setenv("RAVENDB_DATABASE", "kb")

        assert VectorDatabaseConfig.get_type() == "ravendb"
        assert VectorDatabaseConfig.get_dimensions() == 1024
        assert RavenDBConfig.get_database_name() == "kb"

    def test_unknown_vector_backend(self, monkeypatch):
        monkeypatch.setenv("VECTOR_DB_TYPE", "faiss")

        with pytest.raises(InvalidConfig):
            VectorDatabaseConfig.get_type()
