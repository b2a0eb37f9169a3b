"""Surf spot lookups."""
import logging

from treblesurf.network import endpoints
from treblesurf.network.client import ApiClient
from treblesurf.schemas.spot import SpotData

logger = logging.getLogger(__name__)

DEFAULT_COUNTRY = "Ireland"
DEFAULT_REGION = "Donegal"


class SpotService:
    """Fetches spot lists and per-spot location info. Uncached; callers cache."""

    def __init__(self, api_client: ApiClient) -> None:
        self._api = api_client

    async def fetch_spots(self, country: str, region: str) -> list[SpotData]:
        spots = await self._api.get_as(
            list[SpotData],
            endpoints.SPOTS,
            params={"country": country, "region": region},
        )
        logger.debug("spots_fetched country=%s region=%s count=%s", country, region, len(spots))
        return spots

    async def fetch_location_info(self, country: str, region: str, spot: str) -> SpotData:
        """Fetch one spot, including its base64 ``ImageString``."""
        return await self._api.get_as(
            SpotData,
            endpoints.LOCATION_INFO,
            params={"country": country, "region": region, "spot": spot},
        )
