"""Per-key request tracking with cancellation for staff operations"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestInFlight(Exception):
    """A request for this key is already pending"""

    def __init__(self, key: str):
        super().__init__(f"A request for {key} is already in progress")
        self.key = key


class RequestSuperseded(Exception):
    """The request was cancelled because a newer one for the same key replaced it"""

    def __init__(self, key: str):
        super().__init__(f"Request for {key} was superseded")
        self.key = key


class InFlightRegistry:
    """
    Tracks one pending request task per key.

    A second request for a pending key is refused with RequestInFlight, or,
    with supersede=True, the pending task is cancelled and replaced. Keys are
    released as soon as their task finishes, fails or is cancelled.
    """

    def __init__(self):
        self._tasks: dict[str, asyncio.Task] = {}
        self._superseded: set[asyncio.Task] = set()

    def is_in_flight(self, key: str) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    @property
    def keys(self) -> set[str]:
        return {key for key, task in self._tasks.items() if not task.done()}

    async def run(
        self, key: str, request: Callable[[], Awaitable[T]], supersede: bool = False
    ) -> T:
        pending = self._tasks.get(key)
        if pending is not None and not pending.done():
            if not supersede:
                raise RequestInFlight(key)
            logger.info(f"🔁 Superseding pending request for {key}")
            self._superseded.add(pending)
            pending.cancel()

        task = asyncio.ensure_future(request())
        self._tasks[key] = task
        try:
            return await task
        except asyncio.CancelledError:
            if task in self._superseded:
                raise RequestSuperseded(key) from None
            raise
        finally:
            self._superseded.discard(task)
            if self._tasks.get(key) is task:
                del self._tasks[key]

    async def cancel_all(self) -> None:
        """Cancel every pending request, e.g. on shutdown"""
        tasks = [task for task in self._tasks.values() if not task.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
