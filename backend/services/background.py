"""
Background task submission for fire-and-forget work

Cache repopulation must not add latency to the caller that produced fresh
data, so it is submitted here instead of awaited. Every task:
- is referenced until done (the event loop only keeps weak references)
- has its failure logged by a done-callback
- is awaited by drain() at shutdown
"""
import asyncio
import logging
from typing import Awaitable, Optional, Set

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Tracks fire-and-forget tasks with their own error-logging boundary"""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()
        self.submitted = 0
        self.failed = 0

    def submit(self, coro: Awaitable, name: Optional[str] = None) -> asyncio.Task:
        """
        Schedule a coroutine without waiting for it.

        Must be called from a running event loop.
        """
        task = asyncio.ensure_future(coro)
        if name:
            task.set_name(name)
        self._tasks.add(task)
        self.submitted += 1
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            logger.debug(f"Background task {task.get_name()} cancelled")
            return
        exc = task.exception()
        if exc is not None:
            self.failed += 1
            logger.error(
                f"Background task {task.get_name()} failed: {exc}",
                exc_info=(type(exc), exc, exc.__traceback__)
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: Optional[float] = None):
        """
        Wait for outstanding tasks (shutdown).

        Tasks still running after timeout are cancelled.
        """
        if not self._tasks:
            return

        tasks = list(self._tasks)
        logger.info(f"Draining {len(tasks)} background task(s)")
        done, still_pending = await asyncio.wait(tasks, timeout=timeout)

        for task in still_pending:
            logger.warning(f"Cancelling background task {task.get_name()} after {timeout}s")
            task.cancel()
        if still_pending:
            await asyncio.gather(*still_pending, return_exceptions=True)
