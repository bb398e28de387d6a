"""
Worker Pool
Bounded fan-out with a join barrier for per-page and per-task work
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Iterable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class WorkerPool:
    """
    Caps how many collaborator calls run at once.

    Every unit submitted through `map` acquires a slot, is bounded by the
    per-call timeout, and the call returns only when all units resolved.
    """

    def __init__(self, size: int, timeout: Optional[float] = None):
        if size < 1:
            raise ValueError(f"Worker pool size must be at least 1, got {size}")
        self.size = size
        self.timeout = timeout
        self.semaphore = asyncio.Semaphore(size)

    @asynccontextmanager
    async def slot(self):
        """Hold one worker slot for the duration of the block"""
        await self.semaphore.acquire()
        try:
            yield
        finally:
            self.semaphore.release()

    async def run(self, func: Callable[..., Awaitable[R]], *args: Any) -> R:
        """
        Run one coroutine function inside a slot with the pool timeout.

        Raises:
            asyncio.TimeoutError: If the call exceeds the pool timeout
        """
        async with self.slot():
            if self.timeout:
                return await asyncio.wait_for(func(*args), timeout=self.timeout)
            return await func(*args)

    async def map(
        self,
        func: Callable[[T], Awaitable[R]],
        items: Iterable[T],
        return_exceptions: bool = False,
    ) -> List[Any]:
        """
        Apply `func` to every item concurrently and wait for all of them.

        Args:
            func: Coroutine function taking one item
            items: Units of work
            return_exceptions: Return failures in place instead of raising
                the first one

        Returns:
            Results in the order of `items`
        """
        items = list(items)
        if not items:
            return []
        return await asyncio.gather(
            *(self.run(func, item) for item in items),
            return_exceptions=return_exceptions,
        )
