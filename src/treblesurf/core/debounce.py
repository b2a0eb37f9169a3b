"""Delay-then-run helper where only the most recent request wins."""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Debouncer(Generic[T]):
    """
    Run only the latest of a burst of requests.

    Each ``schedule`` call bumps a generation counter and waits ``delay``
    seconds. If another request arrived in the meantime, the older one is
    dropped without running. A request that starts its work and is then
    superseded still runs to completion, but its result is discarded.
    """

    def __init__(self, delay: float) -> None:
        self.delay = delay
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    async def schedule(self, factory: Callable[[], Awaitable[T]]) -> T | None:
        """
        Wait, then run ``factory`` if no newer request was scheduled.

        Returns:
            The result, or None if this request was superseded.
        """
        self._generation += 1
        generation = self._generation
        await asyncio.sleep(self.delay)
        if generation != self._generation:
            logger.debug("debounce_superseded generation=%s", generation)
            return None
        result = await factory()
        if generation != self._generation:
            logger.debug("debounce_result_discarded generation=%s", generation)
            return None
        return result

    def cancel(self) -> None:
        """Supersede any pending request."""
        self._generation += 1
