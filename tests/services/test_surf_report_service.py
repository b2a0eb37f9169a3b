"""Tests for the surf report service."""
import base64
import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import respx

from conftest import JPEG_BYTES
from treblesurf.auth.credential_store import CSRF_TOKEN_KEY, InMemoryCredentialStore
from treblesurf.cache.image_cache import ImageCache, report_image_key
from treblesurf.core.config import Settings
from treblesurf.network import endpoints
from treblesurf.network.client import CSRF_HEADER, ApiClient
from treblesurf.network.errors import HttpStatusError, ImageDecodeFailedError
from treblesurf.schemas.surf_report import SurfReportSubmission
from treblesurf.services.spot_service import SpotService
from treblesurf.services.surf_report_service import SurfReportService, region_cache_key


def spot(name: str) -> dict:
    return {
        "BeachDirection": 290,
        "Elevation": 5,
        "IdealSwellDirection": "W",
        "Latitude": 54.48,
        "Longitude": -8.28,
        "Type": "Reef",
        "country_region_spot": f"Ireland/Donegal/{name}",
    }


def report(name: str, image_key: str | None = None) -> dict:
    return {
        "country_region_spot": f"Ireland/Donegal/{name}",
        "dateReported": "2025-07-12",
        "Time": "08:00",
        "Quality": "Good",
        "ImageKey": image_key,
    }


@pytest.fixture
def service(settings: Settings, api_client: ApiClient, tmp_path, clock) -> SurfReportService:
    return SurfReportService(
        settings,
        api_client,
        SpotService(api_client),
        ImageCache(tmp_path / "images", clock=clock),
        clock=clock,
    )


class TestSurfReports:
    """Tests for report fetching."""

    async def test__region_reports_gathered_per_spot(
        self, service: SurfReportService, mock_api: respx.MockRouter,
    ) -> None:
        """Region reports combine every spot's reports and are cached."""
        spots = mock_api.get(endpoints.SPOTS).mock(
            return_value=httpx.Response(200, json=[spot("Bundoran"), spot("Tullan")]),
        )
        mock_api.get(endpoints.TODAY_SPOT_REPORTS, params={"spot": "Bundoran"}).mock(
            return_value=httpx.Response(200, json=[report("Bundoran"), report("Bundoran")]),
        )
        mock_api.get(endpoints.TODAY_SPOT_REPORTS, params={"spot": "Tullan"}).mock(
            return_value=httpx.Response(200, json=[report("Tullan", "reports/t.jpg")]),
        )
        reports = await service.fetch_surf_reports("Ireland", "Donegal")
        await service.fetch_surf_reports("Ireland", "Donegal")
        assert len(reports) == 3
        assert [r.has_image for r in reports].count(True) == 1
        assert spots.call_count == 1
        assert service.cache.get(region_cache_key("Ireland", "Donegal")) == reports

    async def test__clear_cache_for_region(self, service: SurfReportService, mock_api: respx.MockRouter) -> None:
        """Clearing a region forces a refetch."""
        spots = mock_api.get(endpoints.SPOTS).mock(return_value=httpx.Response(200, json=[]))
        await service.fetch_surf_reports("Ireland", "Donegal")
        service.clear_cache("Ireland", "Donegal")
        await service.fetch_surf_reports("Ireland", "Donegal")
        assert spots.call_count == 2

    async def test__all_spot_reports_limit(self, service: SurfReportService, mock_api: respx.MockRouter) -> None:
        """Historical reports pass the limit."""
        route = mock_api.get(endpoints.ALL_SPOT_REPORTS, params={"limit": "10"}).mock(
            return_value=httpx.Response(200, json=[report("Bundoran")]),
        )
        reports = await service.fetch_all_spot_reports("Ireland", "Donegal", "Bundoran", limit=10)
        assert len(reports) == 1
        assert route.called


class TestReportImage:
    """Tests for report images."""

    async def test__decoded_and_cached(self, service: SurfReportService, mock_api: respx.MockRouter) -> None:
        """Report images are decoded from base64 and cached under the report prefix."""
        route = mock_api.get(endpoints.REPORT_IMAGE, params={"key": "reports/t.jpg"}).mock(
            return_value=httpx.Response(
                200,
                json={"imageData": base64.b64encode(JPEG_BYTES).decode(), "contentType": "image/jpeg"},
            ),
        )
        assert await service.get_report_image("reports/t.jpg") == JPEG_BYTES
        assert await service.get_report_image("reports/t.jpg") == JPEG_BYTES
        assert route.call_count == 1
        assert service._images.contains(report_image_key("reports/t.jpg"))

    async def test__missing_image_returns_none(self, service: SurfReportService, mock_api: respx.MockRouter) -> None:
        """An empty image payload yields None."""
        mock_api.get(endpoints.REPORT_IMAGE).mock(return_value=httpx.Response(200, json={"imageData": None}))
        assert await service.get_report_image("reports/none.jpg") is None

    @pytest.mark.parametrize("image_data", ["%%%not-base64%%%", base64.b64encode(b"<html>").decode()])
    async def test__corrupt_image_raises(
        self, service: SurfReportService, mock_api: respx.MockRouter, image_data: str,
    ) -> None:
        """Undecodable or non-image payloads raise and are not cached."""
        mock_api.get(endpoints.REPORT_IMAGE).mock(
            return_value=httpx.Response(200, json={"imageData": image_data}),
        )
        with pytest.raises(ImageDecodeFailedError):
            await service.get_report_image("reports/bad.jpg")
        assert not service._images.contains(report_image_key("reports/bad.jpg"))


class TestReportVideo:
    """Tests for report video access."""

    async def test__get_report_video(self, service: SurfReportService, mock_api: respx.MockRouter) -> None:
        """The base64 video payload is returned as is."""
        mock_api.get(endpoints.REPORT_VIDEO, params={"key": "videos/v.mp4"}).mock(
            return_value=httpx.Response(200, json={"videoData": "AAAA", "contentType": "video/mp4"}),
        )
        video = await service.get_report_video("videos/v.mp4")
        assert video.video_data == "AAAA"
        assert video.content_type == "video/mp4"

    async def test__get_video_view_url_tolerates_missing_fields(
        self, service: SurfReportService, mock_api: respx.MockRouter,
    ) -> None:
        """A view URL response without fields decodes to None values."""
        mock_api.get(endpoints.GENERATE_VIDEO_VIEW_URL, params={"key": "videos/v.mp4"}).mock(
            return_value=httpx.Response(200, json={}),
        )
        view = await service.get_video_view_url("videos/v.mp4")
        assert view.view_url is None
        assert view.expires_at is None


def submission(image_key: str = "") -> SurfReportSubmission:
    return SurfReportSubmission(
        country="Ireland",
        region="Donegal",
        spot="Bundoran",
        surf_size="head-high",
        messiness="clean",
        wind_direction="offshore",
        wind_amount="light",
        consistency="consistent",
        quality="good",
        image_key=image_key,
        date=datetime(2025, 7, 12, 9, 30, tzinfo=timezone(timedelta(hours=1))),
    )


class TestSubmitSurfReport:
    """Tests for posting new surf reports."""

    async def test__validated_submission_body(
        self,
        service: SurfReportService,
        credentials: InMemoryCredentialStore,
        mock_api: respx.MockRouter,
    ) -> None:
        """The validated endpoint receives camelCase fields, a UTC date and the CSRF token."""
        credentials.save(CSRF_TOKEN_KEY, "csrf")
        route = mock_api.post(endpoints.SUBMIT_SURF_REPORT_VALIDATED).mock(
            return_value=httpx.Response(200, json={"message": "created", "report_id": "rep-1"}),
        )
        response = await service.submit_surf_report(submission(image_key="img-1"))
        assert response.report_id == "rep-1"
        request = route.calls.last.request
        assert request.headers[CSRF_HEADER] == "csrf"
        body = json.loads(request.content)
        assert body["surfSize"] == "head-high"
        assert body["imageKey"] == "img-1"
        assert body["videoKey"] == ""
        assert body["date"] == "2025-07-12 08:30:00"
        assert body["iosValidated"] is True

    @pytest.mark.parametrize(
        ("image_key", "path"),
        [("img-1", endpoints.SUBMIT_SURF_REPORT_WITH_S3_IMAGE), ("", endpoints.SUBMIT_SURF_REPORT)],
    )
    async def test__unvalidated_endpoint_choice(
        self,
        service: SurfReportService,
        credentials: InMemoryCredentialStore,
        mock_api: respx.MockRouter,
        image_key: str,
        path: str,
    ) -> None:
        """Without client validation the endpoint depends on whether an image key is present."""
        credentials.save(CSRF_TOKEN_KEY, "csrf")
        route = mock_api.post(path).mock(return_value=httpx.Response(200, json={"message": "created"}))
        await service.submit_surf_report(submission(image_key=image_key), client_validated=False)
        assert route.called
        assert "iosValidated" not in json.loads(route.calls.last.request.content)

    async def test__missing_csrf_is_fetched_first(
        self,
        service: SurfReportService,
        credentials: InMemoryCredentialStore,
        mock_api: respx.MockRouter,
    ) -> None:
        """Without a stored CSRF token one is fetched before posting."""
        mock_api.get(endpoints.VALIDATE_SESSION).mock(
            return_value=httpx.Response(200, json={"valid": True}, headers={CSRF_HEADER: "issued"}),
        )
        route = mock_api.post(endpoints.SUBMIT_SURF_REPORT_VALIDATED).mock(
            return_value=httpx.Response(200, json={"message": "created"}),
        )
        await service.submit_surf_report(submission())
        assert route.calls.last.request.headers[CSRF_HEADER] == "issued"
        assert credentials.retrieve(CSRF_TOKEN_KEY) == "issued"

    async def test__403_refreshes_csrf_and_retries_once(
        self,
        service: SurfReportService,
        credentials: InMemoryCredentialStore,
        mock_api: respx.MockRouter,
    ) -> None:
        """A CSRF rejection refreshes the token and the retry uses the new one."""
        credentials.save(CSRF_TOKEN_KEY, "stale")
        mock_api.get(endpoints.VALIDATE_SESSION).mock(
            return_value=httpx.Response(200, json={"valid": True}, headers={CSRF_HEADER: "fresh"}),
        )
        route = mock_api.post(endpoints.SUBMIT_SURF_REPORT_VALIDATED).mock(
            side_effect=[
                httpx.Response(403, json={"error": "csrf", "message": "bad token", "help": ""}),
                httpx.Response(200, json={"message": "created"}),
            ],
        )
        response = await service.submit_surf_report(submission())
        assert response.message == "created"
        assert route.call_count == 2
        assert route.calls[0].request.headers[CSRF_HEADER] == "stale"
        assert route.calls[1].request.headers[CSRF_HEADER] == "fresh"

    async def test__second_403_raises(
        self,
        service: SurfReportService,
        credentials: InMemoryCredentialStore,
        mock_api: respx.MockRouter,
    ) -> None:
        """Only one retry is made."""
        credentials.save(CSRF_TOKEN_KEY, "stale")
        mock_api.get(endpoints.VALIDATE_SESSION).mock(
            return_value=httpx.Response(200, json={"valid": True}, headers={CSRF_HEADER: "fresh"}),
        )
        route = mock_api.post(endpoints.SUBMIT_SURF_REPORT_VALIDATED).mock(return_value=httpx.Response(403))
        with pytest.raises(HttpStatusError):
            await service.submit_surf_report(submission())
        assert route.call_count == 2

    async def test__submission_drops_cached_region_reports(
        self,
        service: SurfReportService,
        credentials: InMemoryCredentialStore,
        mock_api: respx.MockRouter,
    ) -> None:
        """The region's cached reports are refetched after a new report is posted."""
        credentials.save(CSRF_TOKEN_KEY, "csrf")
        service.cache.put(region_cache_key("Ireland", "Donegal"), [])
        mock_api.post(endpoints.SUBMIT_SURF_REPORT_VALIDATED).mock(
            return_value=httpx.Response(200, json={"message": "created"}),
        )
        await service.submit_surf_report(submission())
        assert service.cache.entry(region_cache_key("Ireland", "Donegal")) is None
