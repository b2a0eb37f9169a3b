"""
Schemas for the DynamoDB-formatted swell prediction endpoint.

``GET /api/swellPredictionDynamoDB`` returns the raw DynamoDB item, where
every attribute is wrapped in a type descriptor (``{"N": "1.25"}``,
``{"S": "Ireland#Donegal#Ballymastocker"}``). It is only used as a fallback
when the regular prediction endpoint fails.
"""
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from treblesurf.schemas.swell_prediction import SwellPredictionResponse


class DynamoDBAttributeValue(BaseModel):
    """A single DynamoDB attribute value with its type descriptor."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    string_value: str | None = Field(default=None, alias="S")
    number_value: str | None = Field(default=None, alias="N")
    boolean_value: bool | None = Field(default=None, alias="BOOL")
    binary_value: str | None = Field(default=None, alias="B")
    string_set_value: list[str] | None = Field(default=None, alias="SS")
    number_set_value: list[str] | None = Field(default=None, alias="NS")
    list_value: list["DynamoDBAttributeValue"] | None = Field(default=None, alias="L")
    map_value: dict[str, "DynamoDBAttributeValue"] | None = Field(default=None, alias="M")
    null_value: bool | None = Field(default=None, alias="NULL")

    @property
    def string(self) -> str | None:
        return self.string_value

    @property
    def number(self) -> float | None:
        if self.number_value is None:
            return None
        try:
            return float(self.number_value)
        except ValueError:
            return None

    @property
    def integer(self) -> int | None:
        if self.number_value is None:
            return None
        try:
            return int(self.number_value)
        except ValueError:
            return None


def _number(attrs: dict[str, DynamoDBAttributeValue], name: str) -> float:
    attr = attrs.get(name)
    if attr is None:
        return 0.0
    return attr.number or 0.0


class AIPredictedForecastResponse(BaseModel):
    """A DynamoDB prediction item keyed by attribute name."""

    model_config = ConfigDict(frozen=True)

    attributes: dict[str, DynamoDBAttributeValue]

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> "AIPredictedForecastResponse":
        """Build from the raw item, e.g. ``{"spot_id": {"S": "..."}, ...}``."""
        return cls.model_validate({"attributes": item})

    @property
    def spot_id(self) -> str:
        attr = self.attributes.get("spot_id")
        return (attr.string if attr else None) or ""

    @property
    def arrival_time(self) -> str:
        attr = self.attributes.get("arrival_time")
        if attr is None:
            return ""
        if attr.string is not None:
            return attr.string
        if attr.number is not None:
            return datetime.fromtimestamp(attr.number, tz=UTC).isoformat().replace("+00:00", "Z")
        return ""

    @property
    def calibration_applied(self) -> bool:
        attr = self.attributes.get("calibration_applied")
        if attr is None:
            return False
        if attr.boolean_value is not None:
            return attr.boolean_value
        return attr.number == 1.0

    def to_swell_prediction_response(self) -> SwellPredictionResponse:
        """
        Convert to the regular prediction shape.

        The DynamoDB item has no forecast/generated timestamps, so both are
        taken from the arrival time. Missing numbers become 0.0.
        """
        arrival_time = self.arrival_time
        return SwellPredictionResponse(
            spot_id=self.spot_id,
            forecast_timestamp=arrival_time,
            generated_at=arrival_time,
            predicted_height=_number(self.attributes, "predicted_height"),
            predicted_period=_number(self.attributes, "predicted_period"),
            predicted_direction=_number(self.attributes, "predicted_direction"),
            surf_size=_number(self.attributes, "surf_size"),
            travel_time_hours=_number(self.attributes, "travel_time_hours"),
            arrival_time=arrival_time,
            direction_quality=_number(self.attributes, "direction_quality"),
            calibration_applied=self.calibration_applied,
            calibration_confidence=_number(self.attributes, "calibration_confidence"),
            confidence=_number(self.attributes, "confidence"),
            distance_km=_number(self.attributes, "distance_km"),
            hours_ahead=_number(self.attributes, "hours_ahead"),
        )
