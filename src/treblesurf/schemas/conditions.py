"""Schemas for live surf conditions."""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

_SHORT_RELATIVE_WIND = {
    "Cross-Onshore": "Cross-On",
    "Cross-Offshore": "Cross-Off",
}


class ConditionData(BaseModel):
    """
    Modelled conditions for one spot at one point in time.

    Shared by the live conditions and forecast endpoints. Missing numeric
    fields default to 0.0 and missing strings to "", matching how the
    backend omits fields it could not compute.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    date_forecasted_for: str = ""
    direction_quality: float = 0.0
    humidity: float = 0.0
    precipitation: float = 0.0
    pressure: float = 0.0
    relative_wind_direction: str = ""
    surf_messiness: str = ""
    surf_size: float = 0.0
    swell_direction: float = 0.0
    swell_height: float = 0.0
    swell_period: float = 0.0
    temperature: float = 0.0
    water_temperature: float = 0.0
    wave_energy: float = 0.0
    wind_direction: float = 0.0
    wind_speed: float = 0.0

    @property
    def formatted_relative_wind_direction(self) -> str:
        """Relative wind direction with 'shore' dropped from the cross variants."""
        return _SHORT_RELATIVE_WIND.get(self.relative_wind_direction, self.relative_wind_direction)


class CurrentConditionsResponse(BaseModel):
    """One element of ``GET /api/currentConditions``."""

    model_config = ConfigDict(frozen=True)

    data: ConditionData
    forecast_timestamp: str = ""
    generated_at: str = ""
    spot_id: str = ""
