"""Schemas for reporting inappropriate surf reports."""
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class ReportReason(StrEnum):
    """Why a surf report is being flagged. Values are the backend's wire strings."""

    INAPPROPRIATE = "Inappropriate Content"
    SPAM = "Spam"
    OFFENSIVE = "Offensive Language"
    NOT_SURF_RELATED = "Not Surf Related"
    OTHER = "Other"


class ContentReportRequest(BaseModel):
    """Body of ``POST /api/reports/submit``."""

    model_config = ConfigDict(populate_by_name=True)

    surf_report_id: str = Field(alias="surfReportId", min_length=1)
    reason: ReportReason
    description: str = ""


class ReportSubmissionResponse(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    success: bool
    message: str | None = None
    report_id: str | None = Field(default=None, alias="reportId")
