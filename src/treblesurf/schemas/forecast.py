"""Schemas for spot forecasts and their flattened cache representation."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from treblesurf.schemas.conditions import ConditionData
from treblesurf.shared.timestamps import parse_timestamp_or_now

ForecastData = ConditionData


class ForecastResponse(BaseModel):
    """One element of ``GET /api/forecast`` as returned by the backend."""

    model_config = ConfigDict(frozen=True)

    data: ForecastData
    forecast_timestamp: str
    generated_at: str
    spot_id: str

    @property
    def id(self) -> str:
        return f"{self.spot_id}-{self.forecast_timestamp}"


class ForecastEntry(BaseModel):
    """
    Flattened forecast row held inside cache entries.

    Built once from a ForecastResponse and never mutated; a refetch derives
    new entries.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    spot_id: str
    forecast_timestamp: datetime
    generated_at: datetime
    date_forecasted_for: datetime

    direction_quality: float
    humidity: float
    precipitation: float
    pressure: float
    relative_wind_direction: str
    surf_messiness: str
    surf_size: float
    swell_direction: float
    swell_height: float
    swell_period: float
    temperature: float
    water_temperature: float
    wave_energy: float
    wind_direction: float
    wind_speed: float

    @classmethod
    def from_response(cls, response: ForecastResponse) -> "ForecastEntry":
        """Flatten a backend forecast row."""
        forecast_timestamp = parse_timestamp_or_now(response.forecast_timestamp)
        data = response.data
        return cls(
            id=f"{response.spot_id}-{forecast_timestamp.timestamp()}",
            spot_id=response.spot_id,
            forecast_timestamp=forecast_timestamp,
            generated_at=parse_timestamp_or_now(response.generated_at),
            # dateForecastedFor is "yyyy-MM-dd HH:mm:ss" in UTC
            date_forecasted_for=parse_timestamp_or_now(data.date_forecasted_for),
            direction_quality=data.direction_quality,
            humidity=data.humidity,
            precipitation=data.precipitation,
            pressure=data.pressure,
            relative_wind_direction=data.relative_wind_direction,
            surf_messiness=data.surf_messiness,
            surf_size=data.surf_size,
            swell_direction=data.swell_direction,
            swell_height=data.swell_height,
            swell_period=data.swell_period,
            temperature=data.temperature,
            water_temperature=data.water_temperature,
            wave_energy=data.wave_energy,
            wind_direction=data.wind_direction,
            wind_speed=data.wind_speed,
        )


def to_forecast_entries(responses: list[ForecastResponse]) -> list[ForecastEntry]:
    """Flatten a list of forecast responses."""
    return [ForecastEntry.from_response(response) for response in responses]
