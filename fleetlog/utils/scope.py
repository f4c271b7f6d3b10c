"""
Operation scope — ties in-flight async work to the lifetime of the screen
(or request) that started it. Once closed, pending tasks are cancelled and
their results are never delivered.
"""

import asyncio
from typing import Awaitable, TypeVar

from fleetlog.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class OperationScope:
    def __init__(self, name: str = "scope"):
        self.name = name
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def run(self, coro: Awaitable[T]) -> T:
        """Run `coro` as a task owned by this scope. Raises CancelledError if the scope closes first."""
        if self._closed:
            if asyncio.iscoroutine(coro):
                coro.close()
            raise asyncio.CancelledError(f"{self.name} is closed")
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        try:
            result = await task
        finally:
            self._tasks.discard(task)
        if self._closed:
            raise asyncio.CancelledError(f"{self.name} closed while running")
        return result

    async def close(self):
        if self._closed:
            return
        self._closed = True
        pending = [t for t in self._tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            logger.debug(f"{self.name}: cancelled {len(pending)} in-flight operation(s)")
            await asyncio.gather(*pending, return_exceptions=True)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


async def gather_settled(*aws: Awaitable) -> list:
    """
    Await everything concurrently; each slot holds either the result or the
    exception it raised, so one failure never discards the others' results.
    """
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, asyncio.CancelledError):
            raise result
    return results
