"""Flagging surf reports for moderation."""
import logging

from treblesurf.network import endpoints
from treblesurf.network.client import ApiClient
from treblesurf.schemas.moderation import (
    ContentReportRequest,
    ReportReason,
    ReportSubmissionResponse,
)

logger = logging.getLogger(__name__)


class ContentModerationService:
    def __init__(self, api_client: ApiClient) -> None:
        self._api = api_client

    async def submit_report(
        self,
        surf_report_id: str,
        reason: ReportReason,
        description: str | None = None,
    ) -> bool:
        """
        Flag a surf report.

        Returns:
            True if the backend accepted the report, False if it answered
            with ``success: false``.

        Raises:
            pydantic.ValidationError: Empty ``surf_report_id``; no request is made.
            TrebleSurfError: The request failed.
        """
        body = ContentReportRequest(
            surf_report_id=surf_report_id,
            reason=reason,
            description=description or "",
        )
        response = await self._api.post_as(
            ReportSubmissionResponse,
            endpoints.SUBMIT_CONTENT_REPORT,
            json=body.model_dump(mode="json", by_alias=True),
        )
        if response.success:
            logger.info(
                "content_report_submitted surf_report_id=%s report_id=%s",
                surf_report_id,
                response.report_id,
            )
            return True
        logger.error(
            "content_report_rejected surf_report_id=%s message=%s",
            surf_report_id,
            response.message,
        )
        return False
