import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Hashable

logger = logging.getLogger(__name__)


class SingleFlightCache:
    """
    In-process map from key to an in-flight or completed asyncio task.

    The first caller for a key starts the computation; every later or
    concurrent caller gets the same task back. Entries are never replaced,
    so a failed task stays the result for its key.
    """

    def __init__(self, name: str = "cache"):
        self.name = name
        self._tasks: Dict[Hashable, asyncio.Task] = {}

    def get_or_compute(self, key: Hashable, factory: Callable[[], Awaitable[Any]]) -> asyncio.Task:
        """Return the task for key, starting factory() if this is the first request"""
        task = self._tasks.get(key)
        if task is not None:
            logger.debug(f"{self.name} HIT for {key}")
            return task

        logger.debug(f"{self.name} MISS for {key}")
        task = asyncio.ensure_future(factory())
        self._tasks[key] = task
        return task

    def __contains__(self, key: Hashable) -> bool:
        return key in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)
