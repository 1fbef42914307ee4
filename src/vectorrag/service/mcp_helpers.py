"""Client-side helpers for talking to a running VectorRAG MCP server.

The CLI uses these to check that a server is reachable and exposes the RAG
tools, and to upload documents through ``rag_add_document``.
"""

import asyncio
import json
import logging
from typing import Any

from fastmcp import Client as MCPClient

from vectorrag.errors import StoreFailure

logger = logging.getLogger(__name__)

# Tools a VectorRAG server exposes
RAG_TOOLS = (
    "rag_search",
    "rag_search_by_metadata",
    "rag_add_document",
    "rag_get_document",
    "rag_delete_document",
)


def extract_mcp_result(result: Any) -> Any:
    """Unwrap the payload of an MCP CallToolResult.

    RAG tools answer with a single TextContent holding JSON. That JSON is
    decoded; text that is not JSON is returned unchanged. Anything without a
    ``content`` list is handed back as it came.

    Args:
        result: The raw result from an MCP tool call

    Returns:
        The decoded payload
    """
    content = getattr(result, "content", None)
    if not content:
        return result
    if not isinstance(content, list):
        return content

    text = content[0].text
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return text


async def call_mcp_tool(
    server_url: str, tool_name: str, params: dict[str, Any] | None = None
) -> Any:
    """Open a client session, call one tool and return its decoded payload.

    Args:
        server_url: The MCP server URL (e.g., "http://localhost:8001/sse")
        tool_name: Name of the tool to call
        params: Tool arguments (default: none)

    Returns:
        The payload as returned by extract_mcp_result

    Raises:
        Exception: If the connection or the tool call fails
    """
    logger.debug(f"🔧 Calling {tool_name} on {server_url}")
    async with MCPClient(server_url) as client:
        result = await client.call_tool(tool_name, params or {})
    return extract_mcp_result(result)


async def add_remote_document(
    server_url: str, content: str, metadata: dict[str, Any] | None = None
) -> str:
    """Store a document on a running VectorRAG MCP server.

    Args:
        server_url: The MCP server URL
        content: Full document text
        metadata: Document metadata (source, title, language, ...)

    Returns:
        str: The id the server assigned to the document

    Raises:
        StoreFailure: If the server reports that the document was not stored
    """
    payload = await call_mcp_tool(
        server_url, "rag_add_document", {"content": content, "metadata": metadata or {}}
    )
    if isinstance(payload, dict) and payload.get("success"):
        return payload["documentId"]

    reason = payload.get("error", "Unknown error") if isinstance(payload, dict) else payload
    raise StoreFailure(f"Server rejected document: {reason}")


def _unreachable(url: str, error: str) -> dict[str, Any]:
    return {"url": url, "status": "failed", "error": error}


async def check_mcp_server(url: str, timeout: float = 5.0) -> dict[str, Any]:
    """Connect to an MCP server and report which RAG tools it offers.

    Args:
        url: The MCP server URL to check
        timeout: Seconds to wait for the handshake and tool listing

    Returns:
        On success: url, status="connected", tools, server_name (None when
        the server does not announce one) and missing_tools, the entries of
        RAG_TOOLS the server lacks. On failure: url, status="failed", error.
    """
    try:
        async with asyncio.timeout(timeout):
            async with MCPClient(url) as client:
                tools = await client.list_tools() or []
                init = client.initialize_result
    except asyncio.TimeoutError:
        logger.warning(f"⚠️ Timeout connecting to MCP server {url}")
        return _unreachable(url, f"Connection timeout ({timeout}s)")
    except Exception as e:
        logger.warning(f"⚠️ Failed to connect to MCP server {url}: {e}")
        return _unreachable(url, str(e))

    tool_names = [tool.name for tool in tools]
    server_name = init.serverInfo.name if init and init.serverInfo else None
    return {
        "url": url,
        "status": "connected",
        "tools": tool_names,
        "server_name": server_name,
        "missing_tools": [name for name in RAG_TOOLS if name not in tool_names],
    }
