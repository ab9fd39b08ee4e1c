"""Tracked background work — the ``waitUntil`` of the interceptor.

Store writes and cache refreshes run after the response has been handed
back. They are never fire-and-forget: each task is kept until it finishes,
its failure is logged, and ``drain()`` waits for all outstanding work.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BackgroundTasks:
    """A set of in-flight asyncio tasks with logged failures."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(
        self, coro: Coroutine[Any, Any, T], *, description: str = ""
    ) -> asyncio.Task[T]:
        """Schedule *coro* and track it until done."""
        task = asyncio.ensure_future(coro)
        task.set_name(description or task.get_name())
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Background task %s failed: %s", task.get_name(), exc)

    async def drain(self) -> None:
        """Wait until every outstanding task, including ones spawned meanwhile, is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.drain()
