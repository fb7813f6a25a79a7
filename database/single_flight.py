"""
Single-flight cell.

Holds the in-flight (or completed) attempt of one async operation so that
concurrent callers share a single execution and its outcome:

- the first caller starts the attempt as an asyncio.Task;
- every later caller awaits that same task;
- a successful attempt is cached for the life of the cell;
- a failed attempt is raised to everyone waiting on it, then dropped so
  the next call starts a fresh one.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class SingleFlight:
    """One shared attempt of an idempotent async operation."""

    def __init__(self, name: str, operation: Callable[[], Awaitable[None]]):
        self.name = name
        self._operation = operation
        self._task: asyncio.Task | None = None
        self.attempts = 0

    @property
    def done(self) -> bool:
        """True once an attempt has completed successfully."""
        return (
            self._task is not None
            and self._task.done()
            and not self._task.cancelled()
            and self._task.exception() is None
        )

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self) -> None:
        """
        Join the current attempt, starting one if none is cached.

        Waiters are shielded from each other: cancelling one caller does not
        cancel the shared attempt.

        Raises:
            Whatever the attempt raised
        """
        # A failed task stays cached until its done-callback runs on the
        # next loop turn; a caller arriving in between must not join it.
        if self._task is not None and self._failed(self._task):
            self._task = None

        # No await between the check and the assignment, so on a single
        # event loop only the first caller can start the task.
        if self._task is None:
            self.attempts += 1
            self._task = asyncio.create_task(self._operation(), name=f"single-flight:{self.name}")
            self._task.add_done_callback(self._forget_failed)
        await asyncio.shield(self._task)

    @staticmethod
    def _failed(task: asyncio.Future) -> bool:
        return task.done() and (task.cancelled() or task.exception() is not None)

    def _forget_failed(self, task: asyncio.Task) -> None:
        if self._failed(task):
            if self._task is task:
                self._task = None
            logger.debug(f"Single-flight '{self.name}' attempt failed; next call retries")
