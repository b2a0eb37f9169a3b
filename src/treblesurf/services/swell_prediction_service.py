"""Swell predictions per spot, region, and time range."""
import logging
import time
from datetime import datetime
from typing import Any

from treblesurf.cache.ttl_cache import Clock, TTLCache
from treblesurf.core.config import Settings
from treblesurf.network import endpoints
from treblesurf.network.client import ApiClient, decode_as
from treblesurf.network.errors import TrebleSurfError
from treblesurf.schemas.ai_forecast import AIPredictedForecastResponse
from treblesurf.schemas.spot import split_spot_id
from treblesurf.schemas.swell_prediction import (
    SwellPredictionEntry,
    SwellPredictionResponse,
    to_swell_prediction_entries,
)

logger = logging.getLogger(__name__)


class SwellPredictionService:
    """
    Fetches swell predictions and remembers the latest one per spot.

    Per-spot prediction lists are cached for the configured TTL. When the
    regular endpoint fails, the DynamoDB-formatted endpoint is tried once.
    """

    def __init__(
        self,
        settings: Settings,
        api_client: ApiClient,
        clock: Clock = time.time,
    ) -> None:
        self._api = api_client
        self.cache: TTLCache[str, list[SwellPredictionEntry]] = TTLCache(
            "swell_predictions", settings.swell_prediction_ttl_seconds, clock=clock,
        )
        # Primary (earliest arriving) prediction per spot id
        self.predictions: dict[str, SwellPredictionEntry] = {}

    async def fetch_swell_prediction(self, spot_id: str) -> list[SwellPredictionEntry]:
        """
        Predictions for one spot, ordered by arrival time.

        Raises:
            InvalidSpotIdError: Malformed spot id.
            TrebleSurfError: Both the regular and the fallback endpoint failed.
        """
        country, region, spot = split_spot_id(spot_id)
        params = {"country": country, "region": region, "spot": spot}

        async def fetch() -> list[SwellPredictionEntry]:
            try:
                responses = await self._api.get_as(
                    list[SwellPredictionResponse], endpoints.SWELL_PREDICTION, params=params,
                )
                return to_swell_prediction_entries(responses)
            except TrebleSurfError as e:
                logger.warning(
                    "swell_prediction_fallback spot_id=%s error=%s", spot_id, e.message,
                )
                item = await self._api.get(endpoints.SWELL_PREDICTION_DYNAMODB, params=params)
                return [self._entry_from_dynamodb(item)]

        entries = await self.cache.get_or_fetch(spot_id, fetch)
        if entries:
            self.predictions[spot_id] = entries[0]
        return entries

    async def fetch_region_swell_prediction(
        self, country: str, region: str,
    ) -> list[SwellPredictionEntry]:
        responses = await self._api.get_as(
            list[SwellPredictionResponse],
            endpoints.REGION_SWELL_PREDICTION,
            params={"country": country, "region": region},
        )
        return self._remember(to_swell_prediction_entries(responses))

    async def fetch_swell_prediction_range(
        self, spot_id: str, start: datetime, end: datetime,
    ) -> list[SwellPredictionEntry]:
        country, region, spot = split_spot_id(spot_id)
        responses = await self._api.get_as(
            list[SwellPredictionResponse],
            endpoints.SWELL_PREDICTION_RANGE,
            params={
                "country": country,
                "region": region,
                "spot": spot,
                "start_time": start.isoformat(),
                "end_time": end.isoformat(),
            },
        )
        return to_swell_prediction_entries(responses)

    async def fetch_recent_swell_predictions(self, hours: int = 24) -> list[SwellPredictionEntry]:
        responses = await self._api.get_as(
            list[SwellPredictionResponse],
            endpoints.RECENT_SWELL_PREDICTIONS,
            params={"hours": hours},
        )
        return self._remember(to_swell_prediction_entries(responses))

    def get_cached_prediction(self, spot_id: str) -> SwellPredictionEntry | None:
        return self.predictions.get(spot_id)

    def get_cached_predictions(self, spot_id: str) -> list[SwellPredictionEntry] | None:
        return self.cache.get(spot_id)

    def predictions_by_confidence(self) -> list[SwellPredictionEntry]:
        return sorted(self.predictions.values(), key=lambda e: e.confidence, reverse=True)

    def good_conditions(self) -> list[SwellPredictionEntry]:
        """Remembered predictions above 2m surf with confidence over 0.7, biggest first."""
        good = [e for e in self.predictions.values() if e.surf_size > 2.0 and e.confidence > 0.7]
        return sorted(good, key=lambda e: e.surf_size, reverse=True)

    def clear_cache(self, spot_id: str | None = None) -> None:
        self.cache.invalidate(spot_id)
        if spot_id is None:
            self.predictions.clear()
        else:
            self.predictions.pop(spot_id, None)

    def _remember(self, entries: list[SwellPredictionEntry]) -> list[SwellPredictionEntry]:
        for entry in entries:
            self.predictions.setdefault(entry.spot_id, entry)
        return entries

    @staticmethod
    def _entry_from_dynamodb(item: Any) -> SwellPredictionEntry:
        ai_response = decode_as(
            AIPredictedForecastResponse,
            {"attributes": item},
            endpoints.SWELL_PREDICTION_DYNAMODB,
        )
        return SwellPredictionEntry.from_response(ai_response.to_swell_prediction_response())
