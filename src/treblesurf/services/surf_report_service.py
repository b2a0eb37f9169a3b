"""Surf reports per region and spot, their media, and new report submission."""
import asyncio
import base64
import binascii
import logging
import time

from treblesurf.cache.image_cache import ImageCache, looks_like_image, report_image_key
from treblesurf.cache.ttl_cache import Clock, TTLCache
from treblesurf.core.config import Settings
from treblesurf.network import endpoints
from treblesurf.network.client import ApiClient
from treblesurf.network.errors import CacheMissError, HttpStatusError, ImageDecodeFailedError
from treblesurf.schemas.media import PresignedVideoViewResponse, SurfReportVideoResponse
from treblesurf.schemas.surf_report import (
    SurfReportImageResponse,
    SurfReportResponse,
    SurfReportSubmission,
    SurfReportSubmissionResponse,
)
from treblesurf.services.spot_service import SpotService

logger = logging.getLogger(__name__)


def region_cache_key(country: str, region: str) -> str:
    return f"{country}_{region}"


class SurfReportService:
    """Today's reports for a whole region are cached; per-spot queries are not."""

    def __init__(
        self,
        settings: Settings,
        api_client: ApiClient,
        spot_service: SpotService,
        image_cache: ImageCache,
        clock: Clock = time.time,
    ) -> None:
        self._api = api_client
        self._spots = spot_service
        self._images = image_cache
        self.cache: TTLCache[str, list[SurfReportResponse]] = TTLCache(
            "surf_reports", settings.surf_reports_ttl_seconds, clock=clock,
        )

    async def fetch_surf_reports(self, country: str, region: str) -> list[SurfReportResponse]:
        """Today's reports for every spot in a region, fetched concurrently per spot."""

        async def fetch() -> list[SurfReportResponse]:
            spots = await self._spots.fetch_spots(country, region)
            per_spot = await asyncio.gather(
                *(self.fetch_reports_for_spot(country, region, s.name) for s in spots),
            )
            reports = [report for batch in per_spot for report in batch]
            logger.info(
                "surf_reports_fetched country=%s region=%s spots=%s reports=%s",
                country,
                region,
                len(spots),
                len(reports),
            )
            return reports

        return await self.cache.get_or_fetch(region_cache_key(country, region), fetch)

    async def fetch_reports_for_spot(
        self, country: str, region: str, spot: str,
    ) -> list[SurfReportResponse]:
        return await self._api.get_as(
            list[SurfReportResponse],
            endpoints.TODAY_SPOT_REPORTS,
            params={"country": country, "region": region, "spot": spot},
        )

    async def fetch_all_spot_reports(
        self, country: str, region: str, spot: str, limit: int = 50,
    ) -> list[SurfReportResponse]:
        return await self._api.get_as(
            list[SurfReportResponse],
            endpoints.ALL_SPOT_REPORTS,
            params={"country": country, "region": region, "spot": spot, "limit": limit},
        )

    async def get_report_image(self, key: str) -> bytes | None:
        """
        Image bytes for a report's ``ImageKey``, or None if the backend has none.

        Raises:
            ImageDecodeFailedError: The backend returned data that is not an image.
        """

        async def fetch() -> bytes:
            response = await self._api.get_as(
                SurfReportImageResponse,
                endpoints.REPORT_IMAGE,
                params={"key": key},
            )
            if not response.image_data:
                raise CacheMissError(f"No image data for report image {key}")
            try:
                return base64.b64decode(response.image_data, validate=True)
            except (binascii.Error, ValueError) as e:
                raise ImageDecodeFailedError(report_image_key(key)) from e

        try:
            return await self._images.get_or_fetch(
                report_image_key(key), fetch, validator=looks_like_image,
            )
        except CacheMissError:
            logger.warning("report_image_missing key=%s", key)
            return None

    async def get_report_video(self, key: str) -> SurfReportVideoResponse:
        """Base64 video payload for a report's ``VideoKey``. Not cached."""
        return await self._api.get_as(
            SurfReportVideoResponse,
            endpoints.REPORT_VIDEO,
            params={"key": key},
        )

    async def get_video_view_url(self, key: str) -> PresignedVideoViewResponse:
        logger.info("video_view_url_requested key=%s", key)
        return await self._api.get_as(
            PresignedVideoViewResponse,
            endpoints.GENERATE_VIDEO_VIEW_URL,
            params={"key": key},
        )

    async def submit_surf_report(
        self,
        submission: SurfReportSubmission,
        client_validated: bool = True,
    ) -> SurfReportSubmissionResponse:
        """
        Post a new surf report and drop the cached reports of its region.

        ``client_validated`` reports go to the validated endpoint flagged
        ``iosValidated``; otherwise the S3 image endpoint is used when the
        submission carries an image key. A missing CSRF token is fetched
        first, and a 403 refreshes the token and retries once.

        Raises:
            HttpStatusError: The backend rejected the report.
            TrebleSurfError: Any other request failure.
        """
        if client_validated:
            path = endpoints.SUBMIT_SURF_REPORT_VALIDATED
        elif submission.image_key:
            path = endpoints.SUBMIT_SURF_REPORT_WITH_S3_IMAGE
        else:
            path = endpoints.SUBMIT_SURF_REPORT
        body = submission.model_dump(mode="json", by_alias=True)
        if client_validated:
            body["iosValidated"] = True

        if not self._api.has_csrf_token():
            await self._api.refresh_csrf_token()
        try:
            response = await self._api.post_as(SurfReportSubmissionResponse, path, json=body)
        except HttpStatusError as e:
            if e.status_code != 403 or not await self._api.refresh_csrf_token():
                raise
            logger.info("surf_report_retry reason=csrf_refreshed path=%s", path)
            response = await self._api.post_as(SurfReportSubmissionResponse, path, json=body)

        self.cache.invalidate(region_cache_key(submission.country, submission.region))
        logger.info(
            "surf_report_submitted spot=%s region=%s report_id=%s",
            submission.spot,
            submission.region,
            response.report_id,
        )
        return response

    def clear_cache(self, country: str | None = None, region: str | None = None) -> None:
        """Clear one region's reports, or all of them when no region is given."""
        if country is not None and region is not None:
            self.cache.invalidate(region_cache_key(country, region))
        else:
            self.cache.invalidate()
