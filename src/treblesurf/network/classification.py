"""
Classification of backend responses.

The backend sits behind a router that serves an HTML page for unknown
routes, so an HTML body means the client is pointed at the wrong place,
not that the session is bad. HTML is detected before any JSON decoding.
"""
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from treblesurf.network.errors import (
    HttpStatusError,
    MisconfiguredEndpointError,
    ResponseDecodeError,
)
from treblesurf.schemas.api_error import APIErrorResponse

logger = logging.getLogger(__name__)

_HTML_DOCTYPE = b"<!doctype html"


def is_html_response(response: httpx.Response) -> bool:
    """True if the Content-Type is HTML or the body starts with an HTML doctype."""
    content_type = response.headers.get("content-type", "").lower()
    if "text/html" in content_type:
        return True
    return response.content.lstrip()[: len(_HTML_DOCTYPE)].lower() == _HTML_DOCTYPE


def parse_api_error(response: httpx.Response) -> APIErrorResponse | None:
    """Parse a ``{error, message, help}`` body, or None if the body has another shape."""
    try:
        return APIErrorResponse.model_validate_json(response.content)
    except ValidationError:
        return None


def _request_path(response: httpx.Response) -> str:
    try:
        return response.request.url.path
    except RuntimeError:
        # Response built without a request
        return ""


def classify_response(response: httpx.Response) -> Any:
    """
    Decode a backend response or raise the matching client error.

    Returns:
        The decoded JSON body of a 2xx response, or None for an empty body.

    Raises:
        MisconfiguredEndpointError: The body is HTML.
        HttpStatusError: Non-2xx status.
        ResponseDecodeError: 2xx status but the body is not JSON.
    """
    path = _request_path(response)
    if is_html_response(response):
        logger.error(
            "html_response path=%s status=%s content_type=%s",
            path,
            response.status_code,
            response.headers.get("content-type", ""),
        )
        raise MisconfiguredEndpointError(path, response.headers.get("content-type", ""))

    if not response.is_success:
        api_error = parse_api_error(response)
        message = api_error.message if api_error else response.reason_phrase
        logger.warning("http_error path=%s status=%s", path, response.status_code)
        raise HttpStatusError(response.status_code, message or "Request failed", api_error)

    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as e:
        logger.error("response_decode_failed path=%s", path)
        raise ResponseDecodeError(f"Invalid JSON from {path}") from e
