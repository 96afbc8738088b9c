"""Task helpers for tracking and cancelling background tasks."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Coroutine

logger = logging.getLogger(__name__)


class BackgroundTaskGroup:
    """Tracks fire-and-forget tasks so they can be observed and cancelled.

    Exceptions escaping a tracked task are logged when the task finishes,
    so nothing is silently lost.
    """

    def __init__(self, name: str = "background") -> None:
        """Initialize empty task group."""
        self.name = name
        self._tasks: set[asyncio.Task[Any]] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def create(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Create and track an asyncio task from a coroutine."""
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Unhandled error in %s task %s",
                self.name,
                task.get_name(),
                exc_info=exc,
            )

    async def wait(self, timeout: float | None = None) -> None:
        """Wait for all tracked tasks to finish."""
        if not self._tasks:
            return
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(
                asyncio.gather(*self._tasks, return_exceptions=True),
                timeout=timeout,
            )

    async def cancel_and_wait(self, timeout: float | None = None) -> None:
        """Cancel all tracked tasks and wait for completion (with optional timeout)."""
        if not self._tasks:
            return
        for t in list(self._tasks):
            if not t.done():
                t.cancel()
        await self.wait(timeout)
        self._tasks.clear()
