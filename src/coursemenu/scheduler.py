"""
Debounced scheduling of suggestion computations on the running asyncio loop.

Each scheduled task is tagged with a monotonically increasing generation.
By default a newer schedule does not cancel older tasks; they all fire once
their delay has elapsed. With discard_stale=True only the newest generation
is allowed to run its callback.
"""
from __future__ import annotations

import asyncio
from typing import Callable

from .observability import get_logger

logger = get_logger(__name__)

SuggestionCallback = Callable[[int], None]


class SuggestionScheduler:
    def __init__(self, delay_s: float, *, discard_stale: bool = False):
        self.delay_s = max(0.0, float(delay_s))
        self.discard_stale = bool(discard_stale)
        self._generation = 0
        self._tasks: set[asyncio.Task] = set()

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, callback: SuggestionCallback) -> asyncio.Task:
        """Runs callback(generation) after the quiet interval. Needs a running loop."""
        loop = asyncio.get_running_loop()
        self._generation += 1
        task = loop.create_task(self._fire(self._generation, callback))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def invalidate(self):
        """Marks every outstanding task as stale without cancelling it."""
        self._generation += 1

    async def _fire(self, generation: int, callback: SuggestionCallback):
        await asyncio.sleep(self.delay_s)
        if self.discard_stale and generation != self._generation:
            logger.debug("suggestion_discarded", reason="superseded", generation=generation)
            return
        callback(generation)

    async def drain(self):
        """Waits until every scheduled computation has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
