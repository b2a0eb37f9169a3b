"""Collapse concurrent fetches for the same key into one in-flight call."""
import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class SingleFlight(Generic[K, V]):
    """
    Tracks one in-flight fetch per key.

    The first caller for a key starts the fetch as a task; callers arriving
    while it runs await the same task and receive the same value or the same
    exception. The task is shielded, so a cancelled waiter does not cancel
    the fetch for the others.
    """

    def __init__(self) -> None:
        self._in_flight: dict[K, asyncio.Task[V]] = {}

    async def do(self, key: K, fn: Callable[[], Awaitable[V]]) -> V:
        """Run ``fn`` for ``key`` unless a fetch for ``key`` is already running."""
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._in_flight[key] = task
            task.add_done_callback(lambda t, k=key: self._finished(k, t))
        else:
            logger.debug("single_flight_join key=%s", key)
        return await asyncio.shield(task)

    def forget(self, key: K | None = None) -> None:
        """
        Stop tracking the in-flight fetch for ``key`` (or all keys).

        Callers already waiting still receive its result; the next caller
        starts a new fetch.
        """
        if key is None:
            self._in_flight.clear()
        else:
            self._in_flight.pop(key, None)

    def in_flight(self, key: K) -> bool:
        return key in self._in_flight

    def _finished(self, key: K, task: "asyncio.Task[V]") -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        # Mark the exception retrieved when every waiter has gone away
        if not task.cancelled():
            task.exception()
