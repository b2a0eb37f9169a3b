"""Tests for the TTL cache and single-flight fetch coalescing."""
import asyncio

import pytest

from treblesurf.cache.single_flight import SingleFlight
from treblesurf.cache.ttl_cache import CacheEntry, TTLCache
from treblesurf.network.errors import NetworkUnavailableError


class TestCacheEntry:
    """Tests for cache entry freshness."""

    def test__is_fresh__before_ttl(self) -> None:
        """An entry younger than its TTL is fresh."""
        entry = CacheEntry(key="a", value=1, fetched_at=100.0)
        assert entry.is_fresh(now=129.9, ttl=30)

    def test__is_fresh__at_ttl_boundary_is_stale(self) -> None:
        """An entry exactly TTL seconds old is stale."""
        entry = CacheEntry(key="a", value=1, fetched_at=100.0)
        assert not entry.is_fresh(now=130.0, ttl=30)

    def test__age(self) -> None:
        """Age is the time since the fetch."""
        entry = CacheEntry(key="a", value=1, fetched_at=100.0)
        assert entry.age(now=145.0) == 45.0


class TestTTLCacheGet:
    """Tests for synchronous reads and writes."""

    def test__get__miss_returns_none(self, clock) -> None:
        """A missing key returns None."""
        cache: TTLCache[str, int] = TTLCache("t", ttl=60, clock=clock)
        assert cache.get("missing") is None

    def test__get__fresh_hit(self, clock) -> None:
        """A stored value is returned while it is fresh."""
        cache: TTLCache[str, int] = TTLCache("t", ttl=60, clock=clock)
        cache.put("a", 1)
        clock.advance(59)
        assert cache.get("a") == 1
        assert "a" in cache

    def test__get__stale_returns_none_but_keeps_entry(self, clock) -> None:
        """A stale value is not returned but stays in the table until swept."""
        cache: TTLCache[str, int] = TTLCache("t", ttl=60, clock=clock)
        cache.put("a", 1)
        clock.advance(61)
        assert cache.get("a") is None
        assert "a" not in cache
        assert cache.entry("a") is not None
        assert len(cache) == 1

    def test__get__reads_do_not_extend_lifetime(self, clock) -> None:
        """Reading an entry does not refresh its fetch time."""
        cache: TTLCache[str, int] = TTLCache("t", ttl=60, clock=clock)
        cache.put("a", 1)
        clock.advance(40)
        assert cache.get("a") == 1
        clock.advance(40)
        assert cache.get("a") is None

    def test__get__ttl_override(self, clock) -> None:
        """A per-call TTL overrides the table TTL."""
        cache: TTLCache[str, int] = TTLCache("t", ttl=60, clock=clock)
        cache.put("a", 1)
        clock.advance(30)
        assert cache.get("a", ttl=10) is None
        assert cache.get("a") == 1

    def test__sweep_expired(self, clock) -> None:
        """Sweeping removes only stale entries."""
        cache: TTLCache[str, int] = TTLCache("t", ttl=60, clock=clock)
        cache.put("old", 1)
        clock.advance(50)
        cache.put("new", 2)
        clock.advance(20)
        assert cache.sweep_expired() == 1
        assert cache.keys() == ["new"]

    def test__fresh_items(self, clock) -> None:
        """Only fresh entries are yielded."""
        cache: TTLCache[str, int] = TTLCache("t", ttl=60, clock=clock)
        cache.put("old", 1)
        clock.advance(50)
        cache.put("new", 2)
        clock.advance(20)
        assert list(cache.fresh_items()) == [("new", 2)]

    def test__invalidate__single_key(self, clock) -> None:
        """Invalidating one key leaves the others."""
        cache: TTLCache[str, int] = TTLCache("t", ttl=60, clock=clock)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.invalidate("a")
        assert cache.get("a") is None
        assert cache.get("b") == 2

    def test__invalidate__all(self, clock) -> None:
        """Invalidating without a key empties the table."""
        cache: TTLCache[str, int] = TTLCache("t", ttl=60, clock=clock)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.invalidate()
        assert len(cache) == 0

    def test__replace_value__keeps_fetch_time(self, clock) -> None:
        """Replacing a value does not extend its lifetime."""
        cache: TTLCache[str, int] = TTLCache("t", ttl=60, clock=clock)
        cache.put("a", 1)
        clock.advance(50)
        assert cache.replace_value("a", 2)
        assert cache.get("a") == 2
        clock.advance(11)
        assert cache.get("a") is None

    def test__replace_value__missing_key(self, clock) -> None:
        """Replacing an absent key stores nothing."""
        cache: TTLCache[str, int] = TTLCache("t", ttl=60, clock=clock)
        assert not cache.replace_value("a", 2)
        assert cache.entry("a") is None


class TestTTLCacheGetOrFetch:
    """Tests for the read-through path."""

    async def test__get_or_fetch__fresh_hit_skips_fetcher(self, clock) -> None:
        """A fresh hit never calls the fetcher."""
        cache: TTLCache[str, int] = TTLCache("t", ttl=60, clock=clock)
        cache.put("a", 1)
        calls = 0

        async def fetcher() -> int:
            nonlocal calls
            calls += 1
            return 2

        assert await cache.get_or_fetch("a", fetcher) == 1
        assert calls == 0

    async def test__get_or_fetch__miss_stores_value(self, clock) -> None:
        """A miss fetches and stores the value with the current time."""
        cache: TTLCache[str, int] = TTLCache("t", ttl=60, clock=clock)

        async def fetcher() -> int:
            return 7

        assert await cache.get_or_fetch("a", fetcher) == 7
        entry = cache.entry("a")
        assert entry is not None
        assert entry.value == 7
        assert entry.fetched_at == clock.now

    async def test__get_or_fetch__stale_refetches(self, clock) -> None:
        """A stale entry is replaced by a new fetch."""
        cache: TTLCache[str, int] = TTLCache("t", ttl=60, clock=clock)
        cache.put("a", 1)
        clock.advance(61)

        async def fetcher() -> int:
            return 2

        assert await cache.get_or_fetch("a", fetcher) == 2
        assert cache.get("a") == 2

    async def test__get_or_fetch__failure_leaves_table_unchanged(self, clock) -> None:
        """A failed fetch propagates and keeps the previous entry."""
        cache: TTLCache[str, int] = TTLCache("t", ttl=60, clock=clock)
        cache.put("a", 1)
        clock.advance(61)

        async def fetcher() -> int:
            raise NetworkUnavailableError("offline")

        with pytest.raises(NetworkUnavailableError):
            await cache.get_or_fetch("a", fetcher)
        entry = cache.entry("a")
        assert entry is not None
        assert entry.value == 1

    async def test__get_or_fetch__concurrent_callers_share_one_fetch(self, clock) -> None:
        """Concurrent misses for the same key run the fetcher once."""
        cache: TTLCache[str, int] = TTLCache("t", ttl=60, clock=clock)
        release = asyncio.Event()
        calls = 0

        async def fetcher() -> int:
            nonlocal calls
            calls += 1
            await release.wait()
            return 42

        tasks = [asyncio.create_task(cache.get_or_fetch("a", fetcher)) for _ in range(5)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*tasks)
        assert results == [42] * 5
        assert calls == 1

    async def test__get_or_fetch__different_keys_fetch_independently(self, clock) -> None:
        """Fetches for different keys are not coalesced."""
        cache: TTLCache[str, str] = TTLCache("t", ttl=60, clock=clock)
        calls: list[str] = []

        def fetcher_for(key: str):
            async def fetcher() -> str:
                calls.append(key)
                return key.upper()
            return fetcher

        results = await asyncio.gather(
            cache.get_or_fetch("a", fetcher_for("a")),
            cache.get_or_fetch("b", fetcher_for("b")),
        )
        assert results == ["A", "B"]
        assert sorted(calls) == ["a", "b"]

    async def test__get_or_fetch__invalidated_during_fetch_is_not_stored(self, clock) -> None:
        """A fetch that completes after invalidation returns its value but is not cached."""
        cache: TTLCache[str, int] = TTLCache("t", ttl=60, clock=clock)
        started = asyncio.Event()
        release = asyncio.Event()

        async def fetcher() -> int:
            started.set()
            await release.wait()
            return 5

        task = asyncio.create_task(cache.get_or_fetch("a", fetcher))
        await started.wait()
        cache.invalidate()
        release.set()
        assert await task == 5
        assert cache.entry("a") is None

    async def test__get_or_fetch__key_invalidated_during_fetch_is_not_stored(self, clock) -> None:
        """Invalidating the key mid-fetch also discards the late value."""
        cache: TTLCache[str, int] = TTLCache("t", ttl=60, clock=clock)
        started = asyncio.Event()
        release = asyncio.Event()

        async def fetcher() -> int:
            started.set()
            await release.wait()
            return 5

        task = asyncio.create_task(cache.get_or_fetch("a", fetcher))
        await started.wait()
        cache.invalidate("a")
        release.set()
        assert await task == 5
        assert cache.entry("a") is None

    async def test__get_or_fetch__cached_none_is_a_hit(self, clock) -> None:
        """A fetcher that returns None is not called again while the entry is fresh."""
        cache: TTLCache[str, int | None] = TTLCache("t", ttl=60, clock=clock)
        calls = 0

        async def fetcher() -> None:
            nonlocal calls
            calls += 1

        assert await cache.get_or_fetch("a", fetcher) is None
        clock.advance(30)
        assert await cache.get_or_fetch("a", fetcher) is None
        assert calls == 1

    async def test__get_or_fetch__invalidations_do_not_accumulate(self, clock) -> None:
        """Invalidating many keys leaves no bookkeeping behind once fetches finish."""
        cache: TTLCache[str, int] = TTLCache("t", ttl=60, clock=clock)

        async def fetcher() -> int:
            return 1

        for i in range(50):
            key = f"k{i}"
            await cache.get_or_fetch(key, fetcher)
            cache.invalidate(key)
        assert cache.pending_count() == 0
        assert len(cache) == 0

    async def test__get_or_fetch__refetch_after_key_invalidation_is_stored(self, clock) -> None:
        """A fetch started after an invalidation is stored even if the older fetch is still running."""
        cache: TTLCache[str, int] = TTLCache("t", ttl=60, clock=clock)
        release_old = asyncio.Event()
        started = asyncio.Event()

        async def old_fetcher() -> int:
            started.set()
            await release_old.wait()
            return 1

        async def new_fetcher() -> int:
            return 2

        old = asyncio.create_task(cache.get_or_fetch("a", old_fetcher))
        await started.wait()
        cache.invalidate("a")
        assert await cache.get_or_fetch("a", new_fetcher) == 2
        release_old.set()
        assert await old == 1
        assert cache.get("a") == 2
        assert cache.pending_count() == 0


class TestSingleFlight:
    """Tests for the single-flight helper."""

    async def test__do__shares_failure(self) -> None:
        """Every waiter sees the same exception."""
        flights: SingleFlight[str, int] = SingleFlight()
        release = asyncio.Event()

        async def fn() -> int:
            await release.wait()
            raise ValueError("boom")

        tasks = [asyncio.create_task(flights.do("k", fn)) for _ in range(3)]
        await asyncio.sleep(0)
        assert flights.in_flight("k")
        release.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        assert all(isinstance(r, ValueError) for r in results)
        assert not flights.in_flight("k")

    async def test__do__cancelled_waiter_does_not_cancel_fetch(self) -> None:
        """Cancelling one caller leaves the shared fetch running for the others."""
        flights: SingleFlight[str, int] = SingleFlight()
        release = asyncio.Event()

        async def fn() -> int:
            await release.wait()
            return 1

        first = asyncio.create_task(flights.do("k", fn))
        second = asyncio.create_task(flights.do("k", fn))
        await asyncio.sleep(0)
        first.cancel()
        release.set()
        assert await second == 1
        with pytest.raises(asyncio.CancelledError):
            await first

    async def test__forget__next_call_starts_new_fetch(self) -> None:
        """After forget, a new caller does not join the old fetch."""
        flights: SingleFlight[str, int] = SingleFlight()
        release = asyncio.Event()
        calls = 0

        async def fn() -> int:
            nonlocal calls
            calls += 1
            await release.wait()
            return calls

        first = asyncio.create_task(flights.do("k", fn))
        await asyncio.sleep(0)
        flights.forget("k")
        second = asyncio.create_task(flights.do("k", fn))
        await asyncio.sleep(0)
        release.set()
        await asyncio.gather(first, second)
        assert calls == 2
