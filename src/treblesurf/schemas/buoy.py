"""Schemas for weather buoy endpoints."""
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

_MISSING_MARKERS = {"n/a", "na", "null", "", "-"}


def _flexible_number(v: Any) -> Any:
    """
    Coerce the placeholders buoys report for missing readings to None.

    Buoys send numbers, numeric strings, or markers like "n/a" and "-".
    Unparseable strings are treated as missing rather than failing the
    whole response.
    """
    if isinstance(v, str):
        text = v.strip()
        if text.lower() in _MISSING_MARKERS:
            return None
        try:
            return float(text)
        except ValueError:
            return None
    return v


def _flexible_int(v: Any) -> Any:
    v = _flexible_number(v)
    if isinstance(v, float):
        return int(v)
    return v


FlexibleFloat = Annotated[float | None, BeforeValidator(_flexible_number)]
FlexibleInt = Annotated[int | None, BeforeValidator(_flexible_int)]


class BuoyResponse(BaseModel):
    """Latest reading from one buoy."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    region_buoy: str
    air_temperature: FlexibleFloat = Field(default=None, alias="AirTemperature")
    atmospheric_pressure: FlexibleFloat = Field(default=None, alias="AtmosphericPressure")
    dew_point: FlexibleFloat = Field(default=None, alias="DewPoint")
    gust: FlexibleFloat = Field(default=None, alias="Gust")
    max_height: FlexibleFloat = Field(default=None, alias="MaxHeight")
    max_period: FlexibleFloat = Field(default=None, alias="MaxPeriod")
    mean_wave_direction: FlexibleInt = Field(default=None, alias="MeanWaveDirection")
    relative_humidity: FlexibleFloat = Field(default=None, alias="RelativeHumidity")
    salinity: FlexibleFloat = Field(default=None, alias="Salinity")
    sea_temperature: FlexibleFloat = Field(default=None, alias="SeaTemperature")
    spr_tp: FlexibleFloat = Field(default=None, alias="SprTp")
    th_tp: FlexibleFloat = Field(default=None, alias="ThTp")
    wave_height: FlexibleFloat = Field(default=None, alias="WaveHeight")
    wave_period: FlexibleFloat = Field(default=None, alias="WavePeriod")
    wind_direction: FlexibleInt = Field(default=None, alias="WindDirection")
    wind_speed: FlexibleFloat = Field(default=None, alias="WindSpeed")
    data_date_time: str | None = Field(default=None, alias="dataDateTime")

    @property
    def organization(self) -> str:
        """Operator prefix of ``region_buoy``, e.g. "IWBN" for "IWBN_M4"."""
        return self.region_buoy.split("_")[0] if self.region_buoy else "Unknown"


class BuoyLocation(BaseModel):
    """Position of a buoy within a region."""

    model_config = ConfigDict(frozen=True)

    region_buoy: str
    latitude: float
    longitude: float
    name: str
