"""
Cached conditions, forecasts, region spot lists and spot images.

The data store holds three TTL tables plus the tracked "current" values a
presentation layer renders: the selected spot, its live conditions and its
forecast entries.
"""
import base64
import binascii
import logging
import time

from treblesurf.cache.image_cache import ImageCache, looks_like_image, spot_image_key
from treblesurf.cache.ttl_cache import Clock, TTLCache
from treblesurf.core.config import Settings
from treblesurf.network import endpoints
from treblesurf.network.client import ApiClient
from treblesurf.network.errors import CacheMissError, ResponseDecodeError
from treblesurf.schemas.conditions import ConditionData, CurrentConditionsResponse
from treblesurf.schemas.forecast import ForecastEntry, ForecastResponse, to_forecast_entries
from treblesurf.schemas.spot import SpotData, split_spot_id
from treblesurf.services.spot_service import DEFAULT_COUNTRY, SpotService

logger = logging.getLogger(__name__)


def decode_image_string(image_string: str | None) -> bytes | None:
    """Decode an embedded base64 image, or None if it is absent or not an image."""
    if not image_string:
        return None
    try:
        data = base64.b64decode(image_string, validate=True)
    except (binascii.Error, ValueError):
        return None
    return data if looks_like_image(data) else None


class DataStore:
    """Read-through access to spot data, shared by every view of the same spot."""

    def __init__(
        self,
        settings: Settings,
        api_client: ApiClient,
        spot_service: SpotService,
        image_cache: ImageCache,
        clock: Clock = time.time,
    ) -> None:
        self._api = api_client
        self._spots = spot_service
        self.image_cache = image_cache
        self.conditions: TTLCache[str, CurrentConditionsResponse] = TTLCache(
            "conditions", settings.conditions_ttl_seconds, clock=clock,
        )
        self.forecasts: TTLCache[str, list[ForecastEntry]] = TTLCache(
            "forecast", settings.forecast_ttl_seconds, clock=clock,
        )
        self.region_spots_cache: TTLCache[str, list[SpotData]] = TTLCache(
            "region_spots", settings.region_spots_ttl_seconds, clock=clock,
        )
        self.current_spot_id = ""
        self.current_conditions = ConditionData()
        self.current_conditions_timestamp = ""
        self.current_forecast_entries: list[ForecastEntry] = []
        self.region_spots: list[SpotData] = []
        # Bumped on reset; a fetch finishing after it leaves the current values alone
        self._reset_generation = 0

    async def fetch_conditions(self, spot_id: str) -> ConditionData:
        """
        Live conditions for ``spot_id`` (``country#region#spot``).

        Also makes ``spot_id`` the current spot.

        Raises:
            InvalidSpotIdError: Malformed spot id.
            TrebleSurfError: The fetch failed; the cache is unchanged.
        """
        country, region, spot = split_spot_id(spot_id)

        async def fetch() -> CurrentConditionsResponse:
            responses = await self._api.get_as(
                list[CurrentConditionsResponse],
                endpoints.CURRENT_CONDITIONS,
                params={"country": country, "region": region, "spot": spot},
            )
            if not responses:
                raise ResponseDecodeError(f"No current conditions returned for {spot_id}")
            return responses[0]

        generation = self._reset_generation
        response = await self.conditions.get_or_fetch(spot_id, fetch)
        if generation == self._reset_generation:
            self.current_spot_id = spot_id
            self.current_conditions = response.data
            self.current_conditions_timestamp = response.generated_at
        return response.data

    async def fetch_forecast(self, spot_id: str) -> list[ForecastEntry]:
        """Forecast entries for ``spot_id``, flattened once when fetched."""
        country, region, spot = split_spot_id(spot_id)

        async def fetch() -> list[ForecastEntry]:
            responses = await self._api.get_as(
                list[ForecastResponse],
                endpoints.FORECAST,
                params={"country": country, "region": region, "spot": spot},
            )
            return to_forecast_entries(responses)

        generation = self._reset_generation
        entries = await self.forecasts.get_or_fetch(spot_id, fetch)
        if generation == self._reset_generation:
            self.current_forecast_entries = entries
        return entries

    async def fetch_region_spots(self, region: str, country: str = DEFAULT_COUNTRY) -> list[SpotData]:
        generation = self._reset_generation
        spots = await self.region_spots_cache.get_or_fetch(
            region,
            lambda: self._spots.fetch_spots(country, region),
        )
        if generation == self._reset_generation:
            self.region_spots = spots
        return spots

    async def fetch_spot_image(self, spot_id: str) -> bytes | None:
        """
        Image bytes for a spot, or None if the spot has no image.

        Looks in the image cache, then in images embedded in cached region
        spot lists, then asks ``/api/locationInfo``. Whatever is found is
        stored in the image cache.
        """
        country, region, spot = split_spot_id(spot_id)

        async def fetch() -> bytes:
            embedded = self._embedded_image(spot_id)
            if embedded is not None:
                logger.debug("spot_image_from_region_cache spot_id=%s", spot_id)
                return embedded
            info = await self._spots.fetch_location_info(country, region, spot)
            image_string = info.image_string or info.image
            self._update_embedded_image(spot_id, image_string)
            data = decode_image_string(image_string)
            if data is None:
                raise CacheMissError(f"No image available for {spot_id}")
            return data

        try:
            return await self.image_cache.get_or_fetch(
                spot_image_key(spot_id), fetch, validator=looks_like_image,
            )
        except CacheMissError:
            logger.info("spot_image_unavailable spot_id=%s", spot_id)
            return None

    async def refresh_spot_image(self, spot_id: str) -> bytes | None:
        self.clear_image_cache(spot_id)
        return await self.fetch_spot_image(spot_id)

    def clean_cache(self) -> int:
        """Sweep expired conditions and forecasts."""
        return self.conditions.sweep_expired() + self.forecasts.sweep_expired()

    def clear_spot_cache(self, spot_id: str | None = None) -> None:
        self.conditions.invalidate(spot_id)
        self.forecasts.invalidate(spot_id)

    def clear_region_spots_cache(self, region: str | None = None) -> None:
        self.region_spots_cache.invalidate(region)

    def clear_image_cache(self, spot_id: str | None = None) -> None:
        if spot_id is None:
            self.image_cache.clear()
        else:
            self.image_cache.remove(spot_image_key(spot_id))

    def refresh_spot_data(self, spot_id: str) -> None:
        """Drop cached data and image for one spot."""
        self.clear_spot_cache(spot_id)
        self.clear_image_cache(spot_id)
        if self.current_spot_id == spot_id:
            self.current_conditions = ConditionData()
            self.current_conditions_timestamp = ""

    def refresh_region_data(self, region: str) -> None:
        """Drop the region's spot list and the images of its spots."""
        entry = self.region_spots_cache.entry(region)
        if entry is not None:
            for spot in entry.value:
                self.image_cache.remove(spot_image_key(spot.id))
        self.clear_region_spots_cache(region)

    def refresh_all_data(self) -> None:
        self.clear_spot_cache()
        self.clear_region_spots_cache()
        self.clear_image_cache()
        self.current_conditions = ConditionData()
        self.current_conditions_timestamp = ""
        self.current_forecast_entries = []

    def reset_to_initial_state(self) -> None:
        self._reset_generation += 1
        self.refresh_all_data()
        self.current_spot_id = ""
        self.region_spots = []

    def _embedded_image(self, spot_id: str) -> bytes | None:
        for _, spots in self.region_spots_cache.fresh_items():
            for spot in spots:
                if spot.id == spot_id:
                    data = decode_image_string(spot.image_string)
                    if data is not None:
                        return data
        return None

    def _update_embedded_image(self, spot_id: str, image_string: str | None) -> None:
        """Write a fetched image back into every cached region list holding the spot."""
        if not image_string:
            return
        for region in self.region_spots_cache.keys():
            entry = self.region_spots_cache.entry(region)
            if entry is None or not any(s.id == spot_id for s in entry.value):
                continue
            updated = [
                s.model_copy(update={"image_string": image_string}) if s.id == spot_id else s
                for s in entry.value
            ]
            # The list keeps the age it was fetched with
            self.region_spots_cache.replace_value(region, updated)
