"""
Scheduling primitives for the restart loop.

The manager never calls ``asyncio.sleep`` or ``asyncio.create_task``
directly; it goes through a Scheduler so tests can replace real delays.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Coroutine, Set


class Scheduler(ABC):
    """Sleep and background-task capability."""

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        pass

    @abstractmethod
    def spawn(self, coro: Coroutine) -> asyncio.Task:
        """Run a coroutine in the background and return its task."""
        pass


class AsyncioScheduler(Scheduler):
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self):
        # The loop only keeps weak references to tasks.
        self._tasks: Set[asyncio.Task] = set()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    def spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
