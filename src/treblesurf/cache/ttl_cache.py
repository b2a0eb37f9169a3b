"""Keyed read-through cache with a fixed time-to-live."""
import logging
import time
from collections.abc import Awaitable, Callable, Hashable, Iterator
from dataclasses import dataclass
from typing import Generic, TypeVar

from treblesurf.cache.single_flight import SingleFlight

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry(Generic[K, V]):
    """A cached value and the time it was fetched."""

    key: K
    value: V
    fetched_at: float

    def is_fresh(self, now: float, ttl: float) -> bool:
        return now - self.fetched_at < ttl

    def age(self, now: float) -> float:
        return now - self.fetched_at


class TTLCache(Generic[K, V]):
    """
    A named table of entries that expire ``ttl`` seconds after they were fetched.

    Reads never extend an entry's lifetime. Stale entries stay in the table
    until they are overwritten, swept, or invalidated, but are never returned
    by ``get``.

    ``get_or_fetch`` is the read-through path: a fresh hit never calls the
    fetcher; on a miss, concurrent callers for the same key share one fetch.
    A failed fetch leaves the table unchanged. A fetch that completes after
    the key (or the whole table) was invalidated returns its value to its
    callers but does not store it.
    """

    def __init__(self, name: str, ttl: float, clock: Clock = time.time) -> None:
        self.name = name
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[K, CacheEntry[K, V]] = {}
        self._flights: SingleFlight[K, V] = SingleFlight()
        # One token per in-flight fetch; invalidate() drops it so the late result is discarded
        self._pending: dict[K, object] = {}

    def get(self, key: K, ttl: float | None = None) -> V | None:
        """Return the cached value if it is fresh, otherwise None."""
        entry = self._fresh_entry(key, ttl)
        return None if entry is None else entry.value

    def entry(self, key: K) -> CacheEntry[K, V] | None:
        """Return the raw entry for ``key``, fresh or not."""
        return self._entries.get(key)

    def put(self, key: K, value: V) -> None:
        self._entries[key] = CacheEntry(key=key, value=value, fetched_at=self._clock())
        logger.debug("cache_set table=%s key=%s", self.name, key)

    def replace_value(self, key: K, value: V) -> bool:
        """
        Swap the value stored for ``key`` without touching its fetch time.

        Returns False, storing nothing, when ``key`` has no entry.
        """
        entry = self._entries.get(key)
        if entry is None:
            return False
        self._entries[key] = CacheEntry(key=key, value=value, fetched_at=entry.fetched_at)
        logger.debug("cache_replace table=%s key=%s", self.name, key)
        return True

    async def get_or_fetch(
        self,
        key: K,
        fetcher: Callable[[], Awaitable[V]],
        ttl: float | None = None,
    ) -> V:
        """
        Return the fresh cached value for ``key`` or fetch, store, and return it.

        A fresh entry holding None is a hit like any other value.

        Raises:
            Whatever ``fetcher`` raises. The table is left untouched.
        """
        entry = self._fresh_entry(key, ttl)
        if entry is not None:
            return entry.value

        token = object()
        if not self._flights.in_flight(key):
            self._pending[key] = token

        async def fetch_and_store() -> V:
            try:
                value = await fetcher()
            finally:
                current = self._pending.get(key) is token
                if current:
                    del self._pending[key]
            if current:
                self.put(key, value)
            else:
                logger.debug("cache_discard_invalidated table=%s key=%s", self.name, key)
            return value

        return await self._flights.do(key, fetch_and_store)

    def invalidate(self, key: K | None = None) -> None:
        """Remove one entry, or every entry when ``key`` is None."""
        if key is None:
            self._entries.clear()
            self._pending.clear()
            self._flights.forget()
            logger.debug("cache_invalidate_all table=%s", self.name)
            return
        self._entries.pop(key, None)
        self._pending.pop(key, None)
        self._flights.forget(key)
        logger.debug("cache_invalidate table=%s key=%s", self.name, key)

    def sweep_expired(self) -> int:
        """Drop every stale entry and return how many were removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if not e.is_fresh(now, self.ttl)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("cache_sweep table=%s removed=%s", self.name, len(expired))
        return len(expired)

    def keys(self) -> list[K]:
        return list(self._entries)

    def fresh_items(self) -> Iterator[tuple[K, V]]:
        now = self._clock()
        for key, entry in list(self._entries.items()):
            if entry.is_fresh(now, self.ttl):
                yield key, entry.value

    def pending_count(self) -> int:
        """Number of fetches whose result will still be stored."""
        return len(self._pending)

    def _fresh_entry(self, key: K, ttl: float | None) -> CacheEntry[K, V] | None:
        entry = self._entries.get(key)
        if entry is None:
            logger.debug("cache_miss table=%s key=%s", self.name, key)
            return None
        if not entry.is_fresh(self._clock(), self.ttl if ttl is None else ttl):
            logger.debug("cache_stale table=%s key=%s", self.name, key)
            return None
        logger.debug("cache_hit table=%s key=%s", self.name, key)
        return entry

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and entry.is_fresh(self._clock(), self.ttl)
