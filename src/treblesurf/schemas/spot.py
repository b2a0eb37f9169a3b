"""Schemas for surf spot endpoints."""
from pydantic import BaseModel, ConfigDict, Field

from treblesurf.network.errors import InvalidSpotIdError


class SpotData(BaseModel):
    """
    A surf spot as returned by ``/api/spots`` and ``/api/locationInfo``.

    ``ImageString`` holds a base64 encoded image when the backend embeds one;
    the region list usually omits it and ``/api/locationInfo`` fills it in.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    beach_direction: int = Field(alias="BeachDirection")
    elevation: int = Field(alias="Elevation")
    ideal_swell_direction: str = Field(alias="IdealSwellDirection")
    latitude: float = Field(alias="Latitude")
    longitude: float = Field(alias="Longitude")
    type: str = Field(alias="Type")
    country_region_spot: str
    image: str = Field(default="", alias="Image")
    image_string: str | None = Field(default=None, alias="ImageString")

    @property
    def id(self) -> str:
        """Spot id in ``country#region#spot`` form."""
        return self.country_region_spot.replace("/", "#")

    @property
    def name(self) -> str:
        return self.country_region_spot.split("/")[-1]


def split_spot_id(spot_id: str) -> tuple[str, str, str]:
    """
    Split a ``country#region#spot`` id into its parts.

    Raises:
        InvalidSpotIdError: If the id does not have exactly three non-empty parts.
    """
    parts = spot_id.split("#")
    if len(parts) != 3 or not all(parts):
        raise InvalidSpotIdError(spot_id)
    country, region, spot = parts
    return country, region, spot
