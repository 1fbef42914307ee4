"""Tests for the MCP server module."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from vectorrag.constants import NO_RESULTS_MESSAGE
from vectorrag.errors import InvalidConfig
from vectorrag.rag.models import Document, SearchHit, SearchResponse
from vectorrag.service import mcp_server
from vectorrag.service.mcp_server import (
    clamp_expansion_range,
    engine_unavailable,
    get_rag,
    rag_add_document_impl,
    rag_delete_document_impl,
    rag_get_document_impl,
    rag_search_by_metadata_impl,
    rag_search_impl,
)


@pytest.fixture
def rag():
    """Mock VectorRAG with async methods."""
    engine = MagicMock()
    engine.search = AsyncMock()
    engine.add_document = AsyncMock(return_value="doc-1")
    engine.get_document = AsyncMock()
    engine.delete_document = AsyncMock(return_value=3)
    engine.search_by_metadata = AsyncMock(return_value=[])
    return engine


def make_hit(source_id, similarity, is_adjacent=False):
    return SearchHit(
        content=f"content {source_id}",
        metadata={"chunkId": source_id},
        similarity=similarity,
        source_id=source_id,
        document_id="doc-1",
        is_original=not is_adjacent,
        is_adjacent=is_adjacent,
        parent_original_chunk="c1" if is_adjacent else None,
    )


class TestRagSearch:
    """Tests for the rag_search tool."""

    @pytest.mark.asyncio
    async def test_search_success(self, rag):
        rag.search.return_value = SearchResponse(
            query="neutrons", hits=[make_hit("c1", 0.9), make_hit("c2", 0.63, is_adjacent=True)]
        )

        result = await rag_search_impl(rag, "neutrons", limit=3, user_language="en")

        assert result["success"] is True
        assert result["query"] == "neutrons"
        assert result["resultCount"] == 2
        assert result["originalResultCount"] == 1
        assert result["adjacentChunkCount"] == 1
        assert result["contextExpanded"] is True
        assert result["searchType"] == "vector_with_context"
        assert result["results"][0]["sourceId"] == "c1"
        assert result["results"][1]["metadata"]["isAdjacent"] is True
        assert result["results"][1]["metadata"]["parentOriginalChunk"] == "c1"
        rag.search.assert_awaited_once_with(
            "neutrons",
            limit=3,
            user_language="en",
            expand_context=True,
            expansion_range=1,
            threshold=0.5,
        )

    @pytest.mark.asyncio
    async def test_search_no_results(self, rag):
        rag.search.return_value = SearchResponse(query="q", hits=[], message=NO_RESULTS_MESSAGE)

        result = await rag_search_impl(rag, "q")

        assert result["success"] is True
        assert result["results"] == []
        assert result["resultCount"] == 0
        assert result["contextExpanded"] is False
        assert result["message"] == NO_RESULTS_MESSAGE

    @pytest.mark.asyncio
    async def test_search_clamps_expansion_range(self, rag):
        rag.search.return_value = SearchResponse(query="q", hits=[make_hit("c1", 0.9)])

        result = await rag_search_impl(rag, "q", expansion_range=10)

        assert rag.search.await_args.kwargs["expansion_range"] == 3
        assert result["contextExpanded"] is True

    @pytest.mark.asyncio
    async def test_search_range_zero_is_not_expanded(self, rag):
        rag.search.return_value = SearchResponse(query="q", hits=[make_hit("c1", 0.9)])

        result = await rag_search_impl(rag, "q", expansion_range=0)

        assert result["contextExpanded"] is False

    @pytest.mark.asyncio
    async def test_empty_query_rejected(self, rag):
        result = await rag_search_impl(rag, "   ")

        assert result["success"] is False
        assert "Query parameter is required" in result["error"]
        rag.search.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_search_error(self, rag):
        rag.search.side_effect = RuntimeError("store offline")

        result = await rag_search_impl(rag, "q")

        assert result == {"success": False, "error": "store offline", "query": "q"}


class TestRagSearchByMetadata:
    """Tests for the rag_search_by_metadata tool."""

    @pytest.mark.asyncio
    async def test_returns_matches(self, rag):
        rag.search_by_metadata.return_value = [
            SearchHit(content="text", metadata={"language": "en"}, similarity=1.0,
                      source_id="doc-1", document_id="doc-1")
        ]

        result = await rag_search_by_metadata_impl(rag, {"language": "en"}, limit=3)

        assert result["success"] is True
        assert result["filter"] == {"language": "en"}
        assert result["resultCount"] == 1
        assert result["results"][0]["sourceId"] == "doc-1"
        assert result["results"][0]["content"] == "text"
        assert result["results"][0]["metadata"]["language"] == "en"
        rag.search_by_metadata.assert_awaited_once_with({"language": "en"}, 3)

    @pytest.mark.asyncio
    async def test_no_matches(self, rag):
        result = await rag_search_by_metadata_impl(rag, {"language": "de"})

        assert result == {"success": True, "results": [], "filter": {"language": "de"}, "resultCount": 0}
        rag.search_by_metadata.assert_awaited_once_with({"language": "de"}, 5)

    @pytest.mark.asyncio
    async def test_filter_required(self, rag):
        result = await rag_search_by_metadata_impl(rag, {})

        assert result == {"success": False, "error": "Filter parameter is required", "filter": {}}
        rag.search_by_metadata.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_filter_error(self, rag):
        rag.search_by_metadata.side_effect = InvalidConfig("Invalid metadata field name: 'a.b'")

        result = await rag_search_by_metadata_impl(rag, {"a.b": 1})

        assert result["success"] is False
        assert "Invalid metadata field name" in result["error"]
        assert result["filter"] == {"a.b": 1}


class TestDocumentTools:
    """Tests for the add/get/delete document tools."""

    @pytest.mark.asyncio
    async def test_add_document(self, rag):
        result = await rag_add_document_impl(rag, "text", {"title": "T"})

        assert result == {
            "success": True,
            "documentId": "doc-1",
            "message": "Document added successfully",
        }
        rag.add_document.assert_awaited_once_with("text", {"title": "T"})

    @pytest.mark.asyncio
    async def test_add_document_requires_content(self, rag):
        result = await rag_add_document_impl(rag, "")

        assert result["success"] is False
        rag.add_document.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_add_document_error(self, rag):
        rag.add_document.side_effect = RuntimeError("disk full")

        result = await rag_add_document_impl(rag, "text")

        assert result == {"success": False, "error": "disk full"}

    @pytest.mark.asyncio
    async def test_get_document(self, rag):
        rag.get_document.return_value = Document(id="doc-1", content="text", metadata={"a": 1})

        result = await rag_get_document_impl(rag, "doc-1")

        assert result == {
            "success": True,
            "document": {"id": "doc-1", "content": "text", "metadata": {"a": 1}},
        }

    @pytest.mark.asyncio
    async def test_get_document_not_found(self, rag):
        rag.get_document.return_value = None

        result = await rag_get_document_impl(rag, "missing")

        assert result == {"success": False, "error": "Document not found", "documentId": "missing"}

    @pytest.mark.asyncio
    async def test_delete_document(self, rag):
        result = await rag_delete_document_impl(rag, "doc-1")

        assert result == {
            "success": True,
            "message": "Document deleted successfully",
            "documentId": "doc-1",
            "chunksDeleted": 3,
        }

    @pytest.mark.asyncio
    async def test_delete_document_error(self, rag):
        rag.delete_document.side_effect = RuntimeError("locked")

        result = await rag_delete_document_impl(rag, "doc-1")

        assert result["success"] is False
        assert result["error"] == "locked"


class TestEngineLifecycle:
    """Tests for the shared engine and helpers."""

    @pytest.mark.parametrize("value,expected", [(None, 1), (-2, 0), (0, 0), (2, 2), (7, 3)])
    def test_clamp_expansion_range(self, value, expected):
        assert clamp_expansion_range(value) == expected

    def test_engine_unavailable(self):
        result = engine_unavailable(ConnectionError("no database"))

        assert result == {"success": False, "error": "RAG engine unavailable: no database"}

    @pytest.mark.asyncio
    @patch("vectorrag.service.mcp_server.build_rag")
    async def test_get_rag_builds_once(self, mock_build_rag, monkeypatch):
        engine = MagicMock()
        mock_build_rag.return_value = engine
        monkeypatch.setattr(mcp_server, "_rag", None)

        first = await get_rag()
        second = await get_rag()

        assert first is second is engine
        mock_build_rag.assert_awaited_once()
