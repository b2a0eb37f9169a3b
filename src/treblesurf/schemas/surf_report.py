"""Schemas for surf report endpoints."""
from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_serializer


def _string_or_number(v: Any) -> Any:
    if isinstance(v, str):
        try:
            return float(v)
        except ValueError:
            return None
    return v


StringOrFloat = Annotated[float | None, BeforeValidator(_string_or_number)]


class SurfReportResponse(BaseModel):
    """A user submitted surf report."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    country_region_spot: str
    date_reported: str = Field(alias="dateReported")
    time: str = Field(alias="Time")
    consistency: str | None = Field(default=None, alias="Consistency")
    image_key: str | None = Field(default=None, alias="ImageKey")
    video_key: str | None = Field(default=None, alias="VideoKey")
    messiness: str | None = Field(default=None, alias="Messiness")
    quality: str | None = Field(default=None, alias="Quality")
    reporter: str | None = Field(default=None, alias="Reporter")
    surf_size: str | None = Field(default=None, alias="SurfSize")
    user_email: str | None = Field(default=None, alias="UserEmail")
    wind_amount: str | None = Field(default=None, alias="WindAmount")
    wind_direction: str | None = Field(default=None, alias="WindDirection")
    media_type: str | None = Field(default=None, alias="MediaType")
    ios_validated: bool | None = Field(default=None, alias="IOSValidated")

    # Present only on reports matched by similar conditions
    buoy_similarity: float | None = None
    wind_similarity: float | None = None
    combined_similarity: float | None = None
    matched_buoy: str | None = None
    historical_buoy_wave_height: StringOrFloat = None
    historical_buoy_wave_direction: StringOrFloat = None
    historical_buoy_period: StringOrFloat = None
    historical_wind_speed: float | None = None
    historical_wind_direction: float | None = None
    travel_time_hours: float | None = None

    @property
    def has_image(self) -> bool:
        return bool(self.image_key)


class SurfReportImageResponse(BaseModel):
    """Base64 image payload from ``/api/getReportImage``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    image_data: str | None = Field(default=None, alias="imageData")
    content_type: str | None = Field(default=None, alias="contentType")


REPORT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class SurfReportSubmission(BaseModel):
    """
    A user's surf report as posted to the submit endpoints.

    Media is referenced by the keys returned from the presigned upload
    endpoints; an empty key means no media of that kind. ``date`` is sent
    as UTC wall time, and naive datetimes are taken to be UTC already.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    country: str
    region: str
    spot: str
    surf_size: str = Field(alias="surfSize")
    messiness: str
    wind_direction: str = Field(alias="windDirection")
    wind_amount: str = Field(alias="windAmount")
    consistency: str
    quality: str
    image_key: str = Field(default="", alias="imageKey")
    video_key: str = Field(default="", alias="videoKey")
    date: datetime

    @field_serializer("date")
    def _serialize_date(self, value: datetime) -> str:
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value.strftime(REPORT_DATE_FORMAT)


class SurfReportSubmissionResponse(BaseModel):
    """Only ``message`` is guaranteed; older backends omit the rest."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    message: str
    success: bool | None = None
    report_id: str | None = None
