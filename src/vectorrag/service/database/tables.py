"""Table access on top of SQLAlchemy's async engine.

The RAG core only needs a handful of relational operations: create a table if
it is missing, insert rows, select rows by a filter, delete rows, run a raw
query and group several of those in one transaction. ``TableStore`` offers
exactly that and converts driver errors into ``StoreFailure``.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Column, DateTime, MetaData, String, Table, Text, delete, insert, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from vectorrag.errors import StoreFailure

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_engine(url: str, **kwargs: Any) -> AsyncEngine:
    """Create the async SQLAlchemy engine for the main store.

    Args:
        url: Async database URL (e.g. "sqlite+aiosqlite:///vectorrag.db")
        **kwargs: Extra keyword arguments for create_async_engine

    Returns:
        AsyncEngine: Configured async engine

    Raises:
        StoreFailure: If the URL is invalid or the driver is missing
    """
    try:
        return create_async_engine(url, **kwargs)
    except (SQLAlchemyError, ImportError, ValueError) as e:
        raise StoreFailure(f"Failed to create database engine for {url}: {e}") from e


def build_rag_tables(base_name: str, metadata: MetaData | None = None) -> tuple[Table, Table]:
    """Define the documents and chunks tables for a base table name.

    Args:
        base_name: Base table name; tables become {base}_documents and {base}_chunks
        metadata: MetaData collection to register the tables in

    Returns:
        tuple[Table, Table]: (documents_table, chunks_table)
    """
    metadata = metadata or MetaData()

    documents = Table(
        f"{base_name}_documents",
        metadata,
        Column("id", String(64), primary_key=True),
        Column("content", Text, nullable=False),
        Column("metadata", JSON, nullable=False, default=dict),
        Column("created_at", DateTime(timezone=True), default=_utcnow),
    )

    chunks = Table(
        f"{base_name}_chunks",
        metadata,
        Column("id", String(64), primary_key=True),
        Column("document_id", String(64), nullable=False, index=True),
        Column("content", Text, nullable=False),
        Column("metadata", JSON, nullable=False, default=dict),
        # JSON-encoded list; kept as text so malformed rows can be skipped on read
        Column("embedding", Text, nullable=False),
        Column("created_at", DateTime(timezone=True), default=_utcnow),
    )

    return documents, chunks


class TableStore:
    """Minimal async table-access capability over an AsyncEngine.

    Every operation accepts an optional ``conn``; when given, the statement
    runs on that connection (typically one opened with ``transaction()``),
    otherwise it runs in its own short transaction.
    """

    def __init__(self, engine: AsyncEngine, logger: logging.Logger | None = None) -> None:
        self.engine = engine
        self.logger = logger or logging.getLogger(__name__)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncConnection]:
        """Open a connection with a transaction that commits on success.

        Yields:
            AsyncConnection: Connection to pass as ``conn`` to the other operations

        Raises:
            StoreFailure: If the database rejects any statement or the commit
        """
        try:
            async with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as e:
            raise StoreFailure(f"Transaction failed: {e}") from e

    @asynccontextmanager
    async def _connection(self, conn: AsyncConnection | None) -> AsyncIterator[AsyncConnection]:
        if conn is not None:
            yield conn
            return
        async with self.transaction() as new_conn:
            yield new_conn

    async def ensure_table(self, table: Table) -> None:
        """Create the table (and its indexes) if it does not exist yet."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(table.create, checkfirst=True)
        except SQLAlchemyError as e:
            raise StoreFailure(f"Failed to create table {table.name}: {e}") from e
        self.logger.debug(f"Ensured table {table.name}")

    async def insert(
        self, table: Table, rows: list[dict[str, Any]], conn: AsyncConnection | None = None
    ) -> None:
        """Insert rows into a table."""
        if not rows:
            return
        try:
            async with self._connection(conn) as c:
                await c.execute(insert(table), rows)
        except SQLAlchemyError as e:
            raise StoreFailure(f"Failed to insert into {table.name}: {e}") from e

    async def select(
        self,
        table: Table,
        where: Any = None,
        columns: list[str] | None = None,
        order_by: Any = None,
        limit: int | None = None,
        conn: AsyncConnection | None = None,
    ) -> list[dict[str, Any]]:
        """Select rows matching a filter.

        Args:
            table: Table to read from
            where: Optional SQLAlchemy boolean clause
            columns: Column names to return (default: all)
            order_by: Optional ordering clause
            limit: Optional maximum number of rows
            conn: Optional connection from transaction()

        Returns:
            list[dict]: One dict per row, keyed by column name
        """
        selected = [table.c[name] for name in columns] if columns else [table]
        stmt = select(*selected)
        if where is not None:
            stmt = stmt.where(where)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        if limit is not None:
            stmt = stmt.limit(limit)

        try:
            async with self._connection(conn) as c:
                result = await c.execute(stmt)
                return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as e:
            raise StoreFailure(f"Failed to select from {table.name}: {e}") from e

    async def delete(self, table: Table, where: Any, conn: AsyncConnection | None = None) -> int:
        """Delete rows matching a filter.

        Returns:
            int: Number of rows deleted
        """
        try:
            async with self._connection(conn) as c:
                result = await c.execute(delete(table).where(where))
                return result.rowcount or 0
        except SQLAlchemyError as e:
            raise StoreFailure(f"Failed to delete from {table.name}: {e}") from e

    async def raw_query(
        self, sql: str, params: dict[str, Any] | None = None, conn: AsyncConnection | None = None
    ) -> list[dict[str, Any]]:
        """Run a raw SQL statement and return its rows (empty for statements without rows)."""
        try:
            async with self._connection(conn) as c:
                result = await c.execute(text(sql), params or {})
                if not result.returns_rows:
                    return []
                return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as e:
            raise StoreFailure(f"Raw query failed: {e}") from e

    async def close(self) -> None:
        await self.engine.dispose()
