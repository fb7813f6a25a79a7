"""
Transaction coordinator.

Runs a caller-supplied unit of work against one dedicated connection
inside a BEGIN / COMMIT / ROLLBACK envelope:

    async def work(conn: BoundConnection) -> int:
        result = await conn.execute("INSERT ... RETURNING id", {...})
        await conn.execute("INSERT ...", {...})
        return result.rows[0]["id"]

    booking_id = await coordinator.with_transaction(work)

The connection is always released, and is never returned to the pool
while a transaction is still open on it.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncConnection

from database.connection import BoundConnection, ConnectionPool

logger = logging.getLogger(__name__)

T = TypeVar("T")

TransactionWork = Callable[[BoundConnection], Awaitable[T]]


class TransactionCoordinator:
    """Atomic multi-statement writes on a single pooled connection."""

    def __init__(self, pool: ConnectionPool):
        self._pool = pool

    async def with_transaction(self, work: TransactionWork[T]) -> T:
        """
        Execute work atomically.

        Commits and returns work's result on success. On any failure from
        begin, work or commit (including cancellation of the awaiting
        task) rolls back and re-raises the original exception.

        Args:
            work: Coroutine function receiving the BoundConnection for
                this transaction. It must not use any other connection.

        Returns:
            Whatever work returned
        """
        connection = await self._pool.acquire()
        try:
            try:
                await connection.begin()
                result = await work(BoundConnection(connection))
                await connection.commit()
            except BaseException as e:
                await self._rollback(connection, e)
                raise
            return result
        finally:
            await self._pool.release(connection)

    async def _rollback(self, connection: AsyncConnection, cause: BaseException) -> None:
        logger.warning(
            f"Rolling back transaction: {type(cause).__name__}: {cause}"
        )
        try:
            await connection.rollback()
        except Exception as rollback_error:
            # Connection state unknown; discard it instead of pooling it
            logger.error(
                f"Rollback failed, invalidating connection: {rollback_error}",
                exc_info=True,
            )
            try:
                await connection.invalidate()
            except Exception:
                logger.error("Failed to invalidate connection", exc_info=True)
