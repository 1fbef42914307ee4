"""Command-line interface for VectorRAG using Click."""

import asyncio
import logging
import os
from pathlib import Path

import click
from dotenv import load_dotenv

from vectorrag.client.cli_helpers import ensure_database_exists, format_search_hit, get_ravendb_info
from vectorrag.client.ingest import extract_document_from_pdf
from vectorrag.constants import DEFAULT_LOCAL_MCP_URL, DEFAULT_TOP_K, MAX_EXPANSION_RANGE, VARIANT_SIMILARITY_THRESHOLD
from vectorrag.errors import RAGError
from vectorrag.rag.engine import build_rag
from vectorrag.rag.models import SearchResponse
from vectorrag.service.mcp_helpers import add_remote_document, check_mcp_server
from vectorrag.service.vector_store.ravendb import database_exists

# Load environment variables
load_dotenv()

log_level = os.getenv("LOG_LEVEL", "WARNING")
logging.basicConfig(
    level=getattr(logging, log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


@click.command()
@click.argument(
    "directory",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
)
@click.option(
    "--language",
    type=str,
    default=None,
    help="Language of the documents (e.g. 'en', 'tr'), stored in their metadata",
)
@click.option(
    "--server-url",
    type=str,
    default=None,
    help="MCP server URL (default: from LOCAL_MCP_SERVER_URL env or 'http://localhost:8001/sse')",
)
def ingest(directory: Path, language: str | None, server_url: str | None) -> None:
    """Ingest PDF files from DIRECTORY into the VectorRAG knowledge base.

    Documents are sent to the running MCP server, which chunks, embeds and
    stores them.

    Example:
        vectorrag-ingest documents/
        vectorrag-ingest documents/ --language en
    """
    pdf_files = sorted(directory.glob("*.pdf"))

    if not pdf_files:
        click.echo(f"No PDF files found in '{directory}'")
        return

    url = server_url or os.getenv("LOCAL_MCP_SERVER_URL", DEFAULT_LOCAL_MCP_URL)
    status = asyncio.run(check_mcp_server(url))
    if status["status"] != "connected":
        click.echo(f"✗ MCP server not reachable at {url}: {status.get('error')}", err=True)
        click.echo("  Start it with: vectorrag-server", err=True)
        raise click.Abort()
    if "rag_add_document" in status.get("missing_tools", []):
        click.echo(f"✗ Server at {url} does not expose rag_add_document", err=True)
        raise click.Abort()

    click.echo(f"Found {len(pdf_files)} PDF file(s)")
    click.echo(f"Sending documents to {url}\n")

    stored = 0
    for pdf_path in pdf_files:
        try:
            document = extract_document_from_pdf(pdf_path, language=language)
        except Exception as e:
            click.echo(f"  ✗ Error reading {pdf_path.name}: {e}", err=True)
            continue

        if not document["content"].strip():
            click.echo(f"  ✗ No text found in {pdf_path.name}, skipping", err=True)
            continue

        try:
            document_id = asyncio.run(
                add_remote_document(url, document["content"], document["metadata"])
            )
        except Exception as e:
            click.echo(f"  ✗ Error storing {pdf_path.name}: {e}", err=True)
            continue

        stored += 1
        click.echo(f"  ✓ {pdf_path.name} -> {document_id}")

    if stored == 0:
        click.echo("\n✗ No documents were stored.", err=True)
        raise click.Abort()

    click.echo(f"\n✓ Ingestion complete! Stored {stored}/{len(pdf_files)} document(s).")


async def _search(
    query: str,
    top_k: int,
    language: str | None,
    expand: bool,
    expansion_range: int,
    threshold: float,
) -> SearchResponse:
    rag = await build_rag()
    try:
        return await rag.search(
            query,
            limit=top_k,
            user_language=language,
            expand_context=expand,
            expansion_range=expansion_range,
            threshold=threshold,
        )
    finally:
        await rag.close()


@click.command()
@click.argument("query", type=str)
@click.option("--top-k", type=int, default=DEFAULT_TOP_K, help="Number of results to return (default: 5)")
@click.option("--language", type=str, default=None, help="Language of the query (e.g. 'en', 'tr')")
@click.option("--expand/--no-expand", default=True, help="Include adjacent chunks (default: on)")
@click.option(
    "--expansion-range",
    type=click.IntRange(0, MAX_EXPANSION_RANGE),
    default=1,
    help="Adjacent chunks on each side of a hit (0-3, default: 1)",
)
@click.option(
    "--threshold",
    type=float,
    default=VARIANT_SIMILARITY_THRESHOLD,
    help="Minimum similarity for direct hits (default: 0.5)",
)
def search(
    query: str, top_k: int, language: str | None, expand: bool, expansion_range: int, threshold: float
) -> None:
    """Search the knowledge base.

    QUERY is the text to search for.

    Example:
        vectorrag-search "quantum mechanics"
        vectorrag-search "machine learning" --top-k 3 --no-expand
    """
    click.echo(f"🔍 Searching for: '{query}'")
    click.echo(f"   Returning top {top_k} results...\n")

    try:
        response = asyncio.run(_search(query, top_k, language, expand, expansion_range, threshold))
    except RAGError as e:
        click.echo(f"✗ Error: {e}", err=True)
        click.echo("\nPlease ensure the LLM service and database are running.", err=True)
        raise click.Abort()
    except Exception as e:
        click.echo(f"✗ Unexpected error: {e}", err=True)
        raise click.Abort()

    if not response.hits:
        click.echo(response.message or "No results found.")
        return

    click.echo(
        f"✅ Found {response.original_count} result(s) "
        f"and {response.adjacent_count} context chunk(s):\n"
    )
    for i, hit in enumerate(response.hits, 1):
        click.echo(format_search_hit(i, hit))


async def _delete(document_id: str) -> int:
    rag = await build_rag()
    try:
        return await rag.delete_document(document_id)
    finally:
        await rag.close()


@click.command()
@click.argument("document_id", type=str)
@click.option("--yes", "-y", is_flag=True, default=False, help="Skip confirmation prompt")
def delete(document_id: str, yes: bool) -> None:
    """Delete a document and all of its chunks.

    Example:
        vectorrag-delete 3f1c...          # Will prompt for confirmation
        vectorrag-delete 3f1c... --yes    # Skip confirmation
    """
    if not yes and not click.confirm(f"Delete document '{document_id}'?", default=False):
        click.echo("Deletion cancelled.")
        return

    click.echo(f"🗑️  Deleting document '{document_id}'...")
    try:
        removed = asyncio.run(_delete(document_id))
    except Exception as e:
        click.echo(f"✗ Error deleting document: {e}", err=True)
        raise click.Abort()

    click.echo(f"✓ Deleted document '{document_id}' ({removed} chunk(s) removed)")


@click.command()
def create_db() -> None:
    """Create the RavenDB database used by the external vector store.

    Example:
        vectorrag-create-db
    """
    url, db_name = get_ravendb_info()

    if database_exists():
        click.echo(f"✓ Database '{db_name}' already exists at {url}")
        return

    ensure_database_exists(create_if_missing=True)
    click.echo(f"   Location: {url}")


if __name__ == "__main__":
    search()
