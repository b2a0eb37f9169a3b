"""Weather buoy readings with a short all-or-nothing cache."""
import logging
import time

from treblesurf.cache.ttl_cache import Clock, TTLCache
from treblesurf.network import endpoints
from treblesurf.network.client import ApiClient
from treblesurf.schemas.buoy import BuoyLocation, BuoyResponse

logger = logging.getLogger(__name__)

DEFAULT_BUOY_TTL = 5 * 60


class BuoyCache:
    """
    Latest buoy readings keyed by buoy name.

    A multi-buoy lookup is a hit only if every requested buoy has a fresh
    reading; a partial hit is treated as a miss so the caller refetches the
    whole set in one request.
    """

    def __init__(self, ttl: float = DEFAULT_BUOY_TTL, clock: Clock = time.time) -> None:
        self._table: TTLCache[str, BuoyResponse] = TTLCache("buoys", ttl, clock=clock)

    def get_many(self, names: list[str]) -> list[BuoyResponse] | None:
        readings = [self._table.get(name) for name in names]
        if any(r is None for r in readings):
            return None
        return [r for r in readings if r is not None]

    def get(self, name: str) -> BuoyResponse | None:
        return self._table.get(name)

    def put_many(self, readings: list[BuoyResponse]) -> None:
        for reading in readings:
            self._table.put(reading.name, reading)

    def clear(self) -> None:
        self._table.invalidate()

    def __contains__(self, name: str) -> bool:
        return name in self._table


class WeatherBuoyService:
    """Buoy data from the backend, served from ``BuoyCache`` when possible."""

    def __init__(self, api_client: ApiClient, cache: BuoyCache) -> None:
        self._api = api_client
        self.cache = cache

    async def fetch_buoy_data(self, names: list[str]) -> list[BuoyResponse]:
        """Latest readings for ``names``, in the order the backend returns them."""
        if not names:
            return []
        cached = self.cache.get_many(names)
        if cached is not None:
            logger.debug("buoy_cache_hit count=%s", len(cached))
            return cached
        readings = await self._api.get_as(
            list[BuoyResponse],
            endpoints.MULTIPLE_BUOY_DATA,
            params={"buoys": ",".join(names)},
        )
        self.cache.put_many(readings)
        logger.info("buoy_data_fetched requested=%s received=%s", len(names), len(readings))
        return readings

    async def fetch_buoy_locations(self, region: str) -> list[BuoyLocation]:
        return await self._api.get_as(
            list[BuoyLocation],
            endpoints.REGION_BUOYS,
            params={"region": region},
        )

    async def fetch_historical_data(self, name: str) -> list[BuoyResponse]:
        """Readings for the last 24 hours. Not cached."""
        return await self._api.get_as(
            list[BuoyResponse],
            endpoints.LAST_24_BUOY_DATA,
            params={"buoyName": name},
        )

    def reset(self) -> None:
        self.cache.clear()
