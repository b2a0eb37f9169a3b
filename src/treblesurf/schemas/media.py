"""Schemas for presigned media upload and playback endpoints."""
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class MediaType(StrEnum):
    """The ``type`` parameter of ``/api/deleteUploadedMedia``."""

    IMAGE = "image"
    VIDEO = "video"


class PresignedUploadResponse(BaseModel):
    """Upload URL and object key for one report image."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    upload_url: str = Field(alias="uploadUrl")
    image_key: str = Field(alias="imageKey")
    expires_at: str = Field(alias="expiresAt")


class PresignedVideoUploadResponse(BaseModel):
    """Upload URL and object key for one report video."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    upload_url: str = Field(alias="uploadUrl")
    video_key: str = Field(alias="videoKey")
    expires_at: str = Field(alias="expiresAt")


class PresignedVideoViewResponse(BaseModel):
    """Short-lived playback URL for a report video. Both fields may be missing."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    view_url: str | None = Field(default=None, alias="viewURL")
    expires_at: str | None = Field(default=None, alias="expiresAt")


class SurfReportVideoResponse(BaseModel):
    """Base64 video payload from ``/api/getReportVideo``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    video_data: str = Field(alias="videoData")
    content_type: str = Field(alias="contentType")
