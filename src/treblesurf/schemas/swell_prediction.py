"""Schemas for swell prediction endpoints."""
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from treblesurf.shared.timestamps import parse_timestamp_or_now


class SwellPredictionQuality(StrEnum):
    """Overall quality of a prediction, from confidence and direction quality."""

    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"


class SurfCondition(StrEnum):
    """Surf size bucket."""

    FLAT = "Flat"
    SMALL = "Small"
    FAIR = "Fair"
    GOOD = "Good"
    VERY_GOOD = "Very Good"
    EPIC = "Epic"


class CalibrationFactor(BaseModel):
    """Correction applied to a raw prediction from similar surf reports."""

    model_config = ConfigDict(frozen=True)

    height_factor: float
    surf_size_factor: float
    confidence_boost: float
    method: str
    similar_reports_count: int
    avg_reported_surf_size: float


class SwellPredictionResponse(BaseModel):
    """
    One prediction as returned by ``GET /api/swellPrediction``.

    The backend is inconsistent about two fields:
    - ``arrival_time`` arrives as an ISO string or as epoch seconds
    - ``calibration_applied`` arrives as a bool or as 0/1
    Both are normalized on decode.
    """

    model_config = ConfigDict(frozen=True)

    spot_id: str
    forecast_timestamp: str
    generated_at: str
    predicted_height: float
    predicted_period: float
    predicted_direction: float
    surf_size: float
    travel_time_hours: float
    arrival_time: str = ""
    direction_quality: float
    calibration_applied: bool = False
    calibration_confidence: float
    calibration_factor: CalibrationFactor | None = None
    confidence: float
    distance_km: float
    reports_analyzed: int | None = None
    hours_ahead: float | None = None

    @field_validator("arrival_time", mode="before")
    @classmethod
    def normalize_arrival_time(cls, v: Any) -> str:
        """Convert epoch seconds to an ISO 8601 string."""
        if isinstance(v, bool):
            raise ValueError("arrival_time must be a string or a number")
        if isinstance(v, int | float):
            return datetime.fromtimestamp(v, tz=UTC).isoformat().replace("+00:00", "Z")
        if v is None:
            return datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return v

    @field_validator("calibration_applied", mode="before")
    @classmethod
    def normalize_calibration_applied(cls, v: Any) -> bool:
        """Accept 0/1 as well as booleans; anything else is False."""
        if isinstance(v, bool):
            return v
        if isinstance(v, int | float):
            return v != 0
        return False

    @property
    def id(self) -> str:
        return f"{self.spot_id}-{self.forecast_timestamp}"


class SwellPredictionEntry(BaseModel):
    """Flattened prediction with parsed timestamps, built once from a response."""

    model_config = ConfigDict(frozen=True)

    id: str
    spot_id: str
    forecast_timestamp: datetime
    generated_at: datetime
    arrival_time: datetime
    predicted_height: float
    predicted_period: float
    predicted_direction: float
    surf_size: float
    travel_time_hours: float
    direction_quality: float
    calibration_applied: bool
    calibration_confidence: float
    calibration_factor: CalibrationFactor | None = None
    confidence: float
    distance_km: float
    reports_analyzed: int = 0
    hours_ahead: float = 0.0

    @classmethod
    def from_response(cls, response: SwellPredictionResponse) -> "SwellPredictionEntry":
        forecast_timestamp = parse_timestamp_or_now(response.forecast_timestamp)
        return cls(
            id=f"{response.spot_id}-{forecast_timestamp.timestamp()}",
            spot_id=response.spot_id,
            forecast_timestamp=forecast_timestamp,
            generated_at=parse_timestamp_or_now(response.generated_at),
            arrival_time=parse_timestamp_or_now(response.arrival_time),
            predicted_height=response.predicted_height,
            predicted_period=response.predicted_period,
            predicted_direction=response.predicted_direction,
            surf_size=response.surf_size,
            travel_time_hours=response.travel_time_hours,
            direction_quality=response.direction_quality,
            calibration_applied=response.calibration_applied,
            calibration_confidence=response.calibration_confidence,
            calibration_factor=response.calibration_factor,
            confidence=response.confidence,
            distance_km=response.distance_km,
            reports_analyzed=response.reports_analyzed or 0,
            hours_ahead=response.hours_ahead or 0.0,
        )

    @property
    def quality_assessment(self) -> SwellPredictionQuality:
        overall = (self.confidence + self.direction_quality) / 2
        if overall >= 0.8:
            return SwellPredictionQuality.EXCELLENT
        if overall >= 0.6:
            return SwellPredictionQuality.GOOD
        if overall >= 0.4:
            return SwellPredictionQuality.FAIR
        return SwellPredictionQuality.POOR

    @property
    def surf_condition(self) -> SurfCondition:
        if self.surf_size < 1.0:
            return SurfCondition.FLAT
        if self.surf_size < 2.0:
            return SurfCondition.SMALL
        if self.surf_size < 3.0:
            return SurfCondition.FAIR
        if self.surf_size < 4.0:
            return SurfCondition.GOOD
        if self.surf_size < 6.0:
            return SurfCondition.VERY_GOOD
        return SurfCondition.EPIC

    @property
    def confidence_percentage(self) -> str:
        return f"{int(self.confidence * 100)}%"

    @property
    def direction_quality_percentage(self) -> str:
        return f"{int(self.direction_quality * 100)}%"

    @property
    def formatted_travel_time(self) -> str:
        return _format_hours(self.travel_time_hours)

    @property
    def formatted_hours_ahead(self) -> str:
        return _format_hours(self.hours_ahead)


def _format_hours(hours: float) -> str:
    """Render sub-hour durations in minutes, otherwise hours to one decimal."""
    if hours < 1.0:
        return f"{int(hours * 60)} min"
    return f"{hours:.1f} hrs"


def to_swell_prediction_entries(
    responses: list[SwellPredictionResponse],
) -> list[SwellPredictionEntry]:
    """Flatten responses, ordered by arrival time."""
    entries = [SwellPredictionEntry.from_response(r) for r in responses]
    return sorted(entries, key=lambda e: e.arrival_time)
