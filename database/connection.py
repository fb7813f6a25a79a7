"""
Connection pool for the PostgreSQL store.

ConnectionPool wraps a SQLAlchemy AsyncEngine (asyncpg driver, QueuePool)
and exposes the three primitives the data-access layer is built on:

- execute(statement, params): one statement in its own short transaction
- acquire(): check out a dedicated connection
- release(connection): return it to the pool

The pool is constructed explicitly and passed to the components that
need it; nothing in this package reaches it through module globals.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.sql.base import Executable

from shared.config import Settings, get_settings

logger = logging.getLogger(__name__)

Statement = str | Executable


@dataclass
class QueryResult:
    """Materialized result of one statement."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    row_count: int = 0

    @classmethod
    def from_result(cls, result: CursorResult) -> "QueryResult":
        if result.returns_rows:
            rows = [dict(row) for row in result.mappings().all()]
            return cls(rows=rows, row_count=len(rows))
        return cls(rows=[], row_count=result.rowcount)

    def first(self) -> dict[str, Any] | None:
        return self.rows[0] if self.rows else None


def _as_executable(statement: Statement) -> Executable:
    if isinstance(statement, str):
        return text(statement)
    return statement


async def run_statement(
    connection: AsyncConnection, statement: Statement, params: dict[str, Any] | None = None
) -> QueryResult:
    """Execute a statement on an already checked-out connection."""
    executable = _as_executable(statement)
    if params is None:
        result = await connection.execute(executable)
    else:
        result = await connection.execute(executable, params)
    return QueryResult.from_result(result)


class BoundConnection:
    """
    Handle to the single connection owning a transaction.

    Handed to transaction work as its only way to reach the store.
    """

    def __init__(self, connection: AsyncConnection):
        self._connection = connection

    async def execute(
        self, statement: Statement, params: dict[str, Any] | None = None
    ) -> QueryResult:
        return await run_statement(self._connection, statement, params)


class ConnectionPool:
    """Bounded set of reusable connections to the store."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def execute(
        self, statement: Statement, params: dict[str, Any] | None = None
    ) -> QueryResult:
        """
        Execute a single statement outside any caller transaction.

        The statement runs in its own BEGIN/COMMIT on a pooled connection,
        which is released before returning.

        Args:
            statement: SQL text with :name bind parameters, or a SQLAlchemy executable
            params: Bind parameter values

        Returns:
            QueryResult with rows (for statements returning rows) and row count
        """
        async with self.engine.begin() as connection:
            return await run_statement(connection, statement, params)

    async def acquire(self) -> AsyncConnection:
        """Check out a connection, waiting if the pool is exhausted."""
        return await self.engine.connect()

    async def release(self, connection: AsyncConnection) -> None:
        """Return a connection to the pool."""
        await connection.close()

    def checked_out(self) -> int:
        """Number of connections currently checked out of the pool."""
        return self.engine.pool.checkedout()

    async def dispose(self) -> None:
        """Close every pooled connection."""
        await self.engine.dispose()
        logger.info("Connection pool disposed")


def create_pool(settings: Settings | None = None) -> ConnectionPool:
    """
    Build a ConnectionPool from settings.

    Args:
        settings: Settings to use (defaults to get_settings())

    Returns:
        ConnectionPool backed by a new AsyncEngine
    """
    settings = settings or get_settings()

    engine = create_async_engine(
        settings.DATABASE_URL,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
    )

    logger.info(
        f"Connection pool created (pool_size={settings.DB_POOL_SIZE}, "
        f"max_overflow={settings.DB_MAX_OVERFLOW}, timeout={settings.DB_POOL_TIMEOUT}s)"
    )
    return ConnectionPool(engine)
