"""Helper functions for CLI commands."""

import click

from vectorrag.constants import CONTENT_PREVIEW_LENGTH
from vectorrag.rag.models import SearchHit
from vectorrag.service.database.config import RavenDBConfig
from vectorrag.service.vector_store.ravendb import create_database, database_exists


def ensure_database_exists(create_if_missing: bool = False) -> bool:
    """Check if the RavenDB database exists, optionally create it.

    Args:
        create_if_missing: If True, attempt to create the database

    Returns:
        True if database exists (or was created)

    Raises:
        click.Abort: If database doesn't exist and can't be created
    """
    if database_exists():
        return True

    if create_if_missing:
        click.echo("Database does not exist. Creating database...")
        try:
            create_database()
            click.echo("✓ Database created successfully!")
            return True
        except Exception as e:
            click.echo(f"✗ Failed to create database: {e}", err=True)
            click.echo("\nPlease ensure RavenDB is running and accessible.", err=True)
            raise click.Abort()

    click.echo("✗ Error: Database does not exist!", err=True)
    click.echo("\nPlease create the database first using:", err=True)
    click.echo("  vectorrag-create-db", err=True)
    raise click.Abort()


def format_search_hit(index: int, hit: SearchHit, max_length: int = CONTENT_PREVIEW_LENGTH) -> str:
    """Format a search hit for display.

    Args:
        index: Result number (1-based)
        hit: The search hit
        max_length: Maximum content length before truncation

    Returns:
        Formatted string for display
    """
    source = hit.metadata.get("source") or hit.document_id or hit.source_id
    chunk_idx = hit.chunk_index if hit.chunk_index is not None else "?"
    content = " ".join(hit.content.split())

    display_content = content[:max_length] + "..." if len(content) > max_length else content

    tag = " [context]" if hit.is_adjacent else ""
    lines = [f"{index}. [{source} - chunk #{chunk_idx}] (score: {hit.similarity:.4f}){tag}"]
    if hit.document_summary:
        lines.append(f"   📄 {hit.document_summary}")
    lines.extend([f"   {display_content}", ""])
    return "\n".join(lines)


def get_ravendb_info() -> tuple[str, str]:
    """Get RavenDB connection info.

    Returns:
        Tuple of (url, database_name)
    """
    return RavenDBConfig.get_url(), RavenDBConfig.get_database_name()
