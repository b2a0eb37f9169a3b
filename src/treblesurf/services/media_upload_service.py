"""
Photo and video uploads for user surf reports.

The backend hands out a short-lived presigned URL plus the object key the
report will reference. The bytes are PUT straight to storage on a separate
HTTP client that never carries the session cookie or CSRF token. Keys of
uploads that end up unused (the user abandoned the report, or submission
failed) are deleted again through the backend.
"""
import asyncio
import logging

import httpx

from treblesurf.network import endpoints
from treblesurf.network.client import ApiClient
from treblesurf.network.errors import (
    HttpStatusError,
    NetworkUnavailableError,
    ResponseDecodeError,
    TrebleSurfError,
)
from treblesurf.schemas.media import (
    MediaType,
    PresignedUploadResponse,
    PresignedVideoUploadResponse,
)
from treblesurf.schemas.spot import split_spot_id

logger = logging.getLogger(__name__)

IMAGE_UPLOAD_TIMEOUT = 30.0
VIDEO_UPLOAD_TIMEOUT = 60.0
IMAGE_CONTENT_TYPE = "image/jpeg"
VIDEO_CONTENT_TYPE = "video/mp4"


def redact_upload_url(upload_url: str) -> str:
    """Drop the query string, which holds the upload signature."""
    try:
        return str(httpx.URL(upload_url).copy_with(query=None))
    except httpx.InvalidURL:
        return "<invalid url>"


class MediaUploadService:
    """Presigned upload URLs, uploads to storage, and cleanup of unused uploads."""

    def __init__(self, api_client: ApiClient, upload_client: httpx.AsyncClient | None = None) -> None:
        self._api = api_client
        self._upload_client = upload_client or httpx.AsyncClient()

    async def generate_image_upload_url(self, spot_id: str) -> PresignedUploadResponse:
        """
        Presigned URL for one report image at ``spot_id``.

        Raises:
            InvalidSpotIdError: Malformed spot id; no request is made.
            TrebleSurfError: The backend call failed.
        """
        country, region, spot = split_spot_id(spot_id)
        presigned = await self._api.get_as(
            PresignedUploadResponse,
            endpoints.GENERATE_IMAGE_UPLOAD_URL,
            params={"country": country, "region": region, "spot": spot},
        )
        logger.info(
            "image_upload_url_issued spot_id=%s key=%s expires_at=%s",
            spot_id,
            presigned.image_key,
            presigned.expires_at,
        )
        return presigned

    async def generate_video_upload_url(self, spot_id: str) -> PresignedVideoUploadResponse:
        country, region, spot = split_spot_id(spot_id)
        presigned = await self._api.get_as(
            PresignedVideoUploadResponse,
            endpoints.GENERATE_VIDEO_UPLOAD_URL,
            params={"country": country, "region": region, "spot": spot},
        )
        logger.info(
            "video_upload_url_issued spot_id=%s key=%s expires_at=%s",
            spot_id,
            presigned.video_key,
            presigned.expires_at,
        )
        return presigned

    async def upload_image(self, upload_url: str, data: bytes) -> None:
        """PUT already-compressed JPEG bytes to a presigned URL."""
        await self._put(upload_url, data, IMAGE_CONTENT_TYPE, IMAGE_UPLOAD_TIMEOUT)

    async def upload_video(self, upload_url: str, data: bytes) -> None:
        await self._put(upload_url, data, VIDEO_CONTENT_TYPE, VIDEO_UPLOAD_TIMEOUT)

    async def upload_video_thumbnail(self, spot_id: str, thumbnail: bytes) -> str | None:
        """
        Upload a video's thumbnail as a report image.

        Returns:
            The image key of the thumbnail, or None if any step failed.
        """
        try:
            presigned = await self.generate_image_upload_url(spot_id)
            await self.upload_image(presigned.upload_url, thumbnail)
        except TrebleSurfError as e:
            logger.warning("thumbnail_upload_failed spot_id=%s error=%s", spot_id, e.message)
            return None
        return presigned.image_key

    async def delete_uploaded_media(self, key: str, media_type: MediaType) -> bool:
        """Delete one uploaded object. Failures are logged, not raised."""
        try:
            await self._api.delete(
                endpoints.DELETE_UPLOADED_MEDIA,
                params={"key": key, "type": media_type.value},
            )
        except TrebleSurfError as e:
            logger.warning("media_delete_failed key=%s type=%s error=%s", key, media_type, e.message)
            return False
        logger.info("media_deleted key=%s type=%s", key, media_type)
        return True

    async def cleanup_unused_media(
        self,
        image_key: str | None = None,
        video_key: str | None = None,
        video_thumbnail_key: str | None = None,
    ) -> int:
        """
        Delete the given upload keys concurrently, skipping ``None`` and empty keys.

        Returns:
            How many deletions the backend confirmed.
        """
        targets = [
            (key, media_type)
            for key, media_type in (
                (image_key, MediaType.IMAGE),
                (video_key, MediaType.VIDEO),
                (video_thumbnail_key, MediaType.IMAGE),
            )
            if key
        ]
        results = await asyncio.gather(
            *(self.delete_uploaded_media(key, media_type) for key, media_type in targets),
        )
        deleted = sum(results)
        logger.info("media_cleanup_completed requested=%s deleted=%s", len(targets), deleted)
        return deleted

    async def aclose(self) -> None:
        await self._upload_client.aclose()

    async def _put(self, upload_url: str, data: bytes, content_type: str, timeout: float) -> None:
        """
        Raises:
            ResponseDecodeError: The presigned URL is not a valid URL.
            NetworkUnavailableError: Transport failure or timeout.
            HttpStatusError: Storage answered with anything but 200.
        """
        target = redact_upload_url(upload_url)
        logger.debug("media_upload_started target=%s bytes=%s", target, len(data))
        try:
            response = await self._upload_client.put(
                upload_url,
                content=data,
                headers={"Content-Type": content_type},
                timeout=timeout,
            )
        except httpx.InvalidURL as e:
            raise ResponseDecodeError("Invalid upload URL") from e
        except httpx.TimeoutException as e:
            logger.warning("media_upload_timeout target=%s", target)
            raise NetworkUnavailableError(f"Upload to {target} timed out") from e
        except httpx.RequestError as e:
            logger.warning("media_upload_request_failed target=%s error=%s", target, e)
            raise NetworkUnavailableError(f"Upload to {target} failed: {e}") from e

        if response.status_code != 200:
            logger.error("media_upload_failed target=%s status=%s", target, response.status_code)
            raise HttpStatusError(
                response.status_code,
                f"Upload failed with status {response.status_code}",
            )
        logger.info("media_uploaded content_type=%s bytes=%s", content_type, len(data))
