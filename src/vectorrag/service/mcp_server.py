"""FastMCP server exposing the RAG core as tools."""

import asyncio
import logging
import os
from typing import Any

from dotenv import load_dotenv
from fastmcp import FastMCP

from vectorrag.constants import (
    DEFAULT_TOP_K,
    MAX_EXPANSION_RANGE,
    NO_RESULTS_MESSAGE,
    VARIANT_SIMILARITY_THRESHOLD,
)
from vectorrag.rag.engine import VectorRAG, build_rag

# Load environment variables
load_dotenv()

# Configure logging
log_level = os.getenv("LOG_LEVEL", "INFO")
logging.basicConfig(
    level=getattr(logging, log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

SEARCH_TYPE = "vector_with_context"

# Create FastMCP instance
mcp = FastMCP("VectorRAG Knowledge Base")

_rag: VectorRAG | None = None
_rag_lock = asyncio.Lock()


async def get_rag() -> VectorRAG:
    """Return the shared VectorRAG instance, building it on first use."""
    global _rag
    async with _rag_lock:
        if _rag is None:
            logger.info("🔧 Building RAG engine from environment configuration")
            _rag = await build_rag()
    return _rag


def engine_unavailable(error: Exception) -> dict[str, Any]:
    """Tool response used when the RAG engine cannot be built."""
    logger.error(f"❌ RAG engine unavailable: {type(error).__name__}: {error}", exc_info=True)
    return {"success": False, "error": f"RAG engine unavailable: {error}"}


def clamp_expansion_range(value: int | None) -> int:
    """Clamp the expansion range to 0..3; a missing value means 1."""
    if value is None:
        return 1
    return min(max(int(value), 0), MAX_EXPANSION_RANGE)


async def rag_search_impl(
    rag: VectorRAG,
    query: str,
    limit: int = DEFAULT_TOP_K,
    user_language: str | None = None,
    expand_context: bool = True,
    expansion_range: int | None = 1,
    threshold: float = VARIANT_SIMILARITY_THRESHOLD,
) -> dict[str, Any]:
    """Run a search and shape the tool response."""
    logger.debug(
        f"MCP Tool rag_search: query='{query[:100]}', limit={limit}, "
        f"user_language={user_language}, expand_context={expand_context}, "
        f"expansion_range={expansion_range}"
    )
    try:
        if not query or not query.strip():
            raise ValueError("Query parameter is required")

        expansion = clamp_expansion_range(expansion_range)
        response = await rag.search(
            query,
            limit=limit or DEFAULT_TOP_K,
            user_language=user_language,
            expand_context=expand_context,
            expansion_range=expansion,
            threshold=threshold,
        )
    except Exception as e:
        logger.error(f"❌ MCP Tool rag_search: {type(e).__name__}: {e}", exc_info=True)
        return {"success": False, "error": str(e), "query": query}

    if not response.hits:
        return {
            "success": True,
            "results": [],
            "query": query,
            "resultCount": 0,
            "originalResultCount": 0,
            "adjacentChunkCount": 0,
            "contextExpanded": False,
            "searchType": SEARCH_TYPE,
            "message": response.message or NO_RESULTS_MESSAGE,
        }

    logger.info(f"✅ MCP Tool rag_search: Returning {len(response.hits)} results")
    return {
        "success": True,
        "results": [hit.to_dict() for hit in response.hits],
        "query": query,
        "resultCount": len(response.hits),
        "originalResultCount": response.original_count,
        "adjacentChunkCount": response.adjacent_count,
        "contextExpanded": expand_context and expansion > 0,
        "searchType": SEARCH_TYPE,
    }


async def rag_search_by_metadata_impl(
    rag: VectorRAG, metadata_filter: dict[str, Any] | None, limit: int = DEFAULT_TOP_K
) -> dict[str, Any]:
    """Run a metadata lookup and shape the tool response."""
    logger.debug(f"MCP Tool rag_search_by_metadata: filter={metadata_filter}, limit={limit}")
    try:
        if not metadata_filter:
            raise ValueError("Filter parameter is required")
        hits = await rag.search_by_metadata(metadata_filter, limit or DEFAULT_TOP_K)
    except Exception as e:
        logger.error(f"❌ MCP Tool rag_search_by_metadata: {type(e).__name__}: {e}", exc_info=True)
        return {"success": False, "error": str(e), "filter": metadata_filter}

    logger.info(f"✅ MCP Tool rag_search_by_metadata: Returning {len(hits)} results")
    return {
        "success": True,
        "results": [hit.to_dict() for hit in hits],
        "filter": metadata_filter,
        "resultCount": len(hits),
    }


async def rag_add_document_impl(
    rag: VectorRAG, content: str, metadata: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Add a document and shape the tool response."""
    try:
        if not content:
            raise ValueError("Content parameter is required")
        document_id = await rag.add_document(content, metadata or {})
    except Exception as e:
        logger.error(f"❌ MCP Tool rag_add_document: {type(e).__name__}: {e}", exc_info=True)
        return {"success": False, "error": str(e)}

    logger.info(f"📥 MCP Tool rag_add_document: Stored document {document_id}")
    return {"success": True, "documentId": document_id, "message": "Document added successfully"}


async def rag_get_document_impl(rag: VectorRAG, document_id: str) -> dict[str, Any]:
    """Fetch a document and shape the tool response."""
    try:
        if not document_id:
            raise ValueError("DocumentId parameter is required")
        document = await rag.get_document(document_id)
    except Exception as e:
        logger.error(f"❌ MCP Tool rag_get_document: {type(e).__name__}: {e}", exc_info=True)
        return {"success": False, "error": str(e), "documentId": document_id}

    if document is None:
        return {"success": False, "error": "Document not found", "documentId": document_id}

    return {
        "success": True,
        "document": {"id": document.id, "content": document.content, "metadata": document.metadata},
    }


async def rag_delete_document_impl(rag: VectorRAG, document_id: str) -> dict[str, Any]:
    """Delete a document and shape the tool response."""
    try:
        if not document_id:
            raise ValueError("DocumentId parameter is required")
        removed = await rag.delete_document(document_id)
    except Exception as e:
        logger.error(f"❌ MCP Tool rag_delete_document: {type(e).__name__}: {e}", exc_info=True)
        return {"success": False, "error": str(e), "documentId": document_id}

    return {
        "success": True,
        "message": "Document deleted successfully",
        "documentId": document_id,
        "chunksDeleted": removed,
    }


@mcp.tool()
async def rag_search(
    query: str,
    limit: int = DEFAULT_TOP_K,
    user_language: str | None = None,
    expand_context: bool = True,
    expansion_range: int = 1,
) -> dict[str, Any]:
    """
    Searches the knowledge base for text chunks that are semantically similar
    to the query. Use this tool to find information to answer a user's question.

    Args:
        query: The search query to find relevant documents or content
        limit: Maximum number of initial results (default: 5). The final count may be
            higher due to context expansion.
        user_language: The language of the user's query (e.g., 'tr', 'en', 'de')
        expand_context: Whether to include adjacent chunks for better context (default: true)
        expansion_range: Number of chunks to include before and after each result (0-3)
    """
    try:
        rag = await get_rag()
    except Exception as e:
        return engine_unavailable(e)
    return await rag_search_impl(
        rag, query, limit, user_language, expand_context, expansion_range
    )


@mcp.tool()
async def rag_search_by_metadata(
    filter: dict[str, Any], limit: int = DEFAULT_TOP_K
) -> dict[str, Any]:
    """
    Searches documents by their metadata properties. Every key-value pair of
    the filter must match exactly (e.g. {"language": "en", "year": 2024}).

    Args:
        filter: Metadata filter criteria as key-value pairs
        limit: Maximum number of results to return (default: 5)
    """
    try:
        rag = await get_rag()
    except Exception as e:
        return engine_unavailable(e)
    return await rag_search_by_metadata_impl(rag, filter, limit)


@mcp.tool()
async def rag_add_document(content: str, metadata: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    Adds a new document to the knowledge base for future searches. The document
    is chunked, embedded and stored.

    Args:
        content: The document content to add
        metadata: Additional metadata for the document (title, author, language, ...)
    """
    try:
        rag = await get_rag()
    except Exception as e:
        return engine_unavailable(e)
    return await rag_add_document_impl(rag, content, metadata)


@mcp.tool()
async def rag_get_document(document_id: str) -> dict[str, Any]:
    """
    Retrieves a specific document by its ID.

    Args:
        document_id: The ID of the document to retrieve
    """
    try:
        rag = await get_rag()
    except Exception as e:
        return engine_unavailable(e)
    return await rag_get_document_impl(rag, document_id)


@mcp.tool()
async def rag_delete_document(document_id: str) -> dict[str, Any]:
    """
    Deletes a document and all of its chunks from the knowledge base.

    Args:
        document_id: The ID of the document to delete
    """
    try:
        rag = await get_rag()
    except Exception as e:
        return engine_unavailable(e)
    return await rag_delete_document_impl(rag, document_id)


def main() -> None:
    """Entry point for the MCP server command-line interface."""
    logger.info("🚀 Starting VectorRAG MCP Server...")
    mcp.run(transport="sse", host="0.0.0.0", port=8001)


if __name__ == "__main__":
    main()
