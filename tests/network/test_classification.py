"""Tests for response classification."""
import httpx
import pytest

from treblesurf.network.classification import classify_response, is_html_response, parse_api_error
from treblesurf.network.errors import (
    HttpStatusError,
    MisconfiguredEndpointError,
    ResponseDecodeError,
    UserMessage,
)

REQUEST = httpx.Request("GET", "https://treblesurf.com/api/spots")


def make_response(status: int = 200, **kwargs) -> httpx.Response:
    return httpx.Response(status, request=REQUEST, **kwargs)


class TestIsHtmlResponse:
    """Tests for HTML detection."""

    def test__html_content_type(self) -> None:
        """A text/html content type is HTML regardless of body."""
        response = make_response(headers={"content-type": "text/html; charset=utf-8"}, content=b"{}")
        assert is_html_response(response)

    def test__doctype_body_without_content_type(self) -> None:
        """A body starting with a doctype is HTML even when labelled otherwise."""
        response = make_response(
            headers={"content-type": "application/json"},
            content=b"  \n<!DOCTYPE html><html></html>",
        )
        assert is_html_response(response)

    def test__json_is_not_html(self) -> None:
        """JSON bodies are not HTML."""
        assert not is_html_response(make_response(json={"ok": True}))


class TestClassifyResponse:
    """Tests for classify_response."""

    def test__success_returns_json(self) -> None:
        """A 2xx JSON body is decoded."""
        assert classify_response(make_response(json=[{"a": 1}])) == [{"a": 1}]

    def test__empty_body_returns_none(self) -> None:
        """A 2xx empty body decodes to None."""
        assert classify_response(make_response(204)) is None

    def test__html_is_misconfigured_even_on_401(self) -> None:
        """HTML wins over the status code."""
        response = make_response(401, headers={"content-type": "text/html"}, content=b"<html>")
        with pytest.raises(MisconfiguredEndpointError) as exc_info:
            classify_response(response)
        assert exc_info.value.path == "/api/spots"
        assert exc_info.value.user_message == UserMessage.MISCONFIGURED

    def test__html_on_200_is_misconfigured(self) -> None:
        """An HTML page served with 200 is still a misconfiguration."""
        response = make_response(content=b"<!doctype html><html></html>")
        with pytest.raises(MisconfiguredEndpointError):
            classify_response(response)

    def test__api_error_body_message(self) -> None:
        """Non-2xx responses carry the backend's error message."""
        response = make_response(
            404,
            json={"error": "not_found", "message": "Spot not found", "help": "Check the id"},
        )
        with pytest.raises(HttpStatusError) as exc_info:
            classify_response(response)
        error = exc_info.value
        assert error.status_code == 404
        assert error.message == "Spot not found"
        assert error.api_error is not None
        assert error.api_error.help == "Check the id"
        assert not error.retryable

    def test__status_without_error_body_uses_reason(self) -> None:
        """A plain non-2xx uses the HTTP reason phrase."""
        with pytest.raises(HttpStatusError) as exc_info:
            classify_response(make_response(503, content=b"busy"))
        assert exc_info.value.message == "Service Unavailable"
        assert exc_info.value.retryable

    def test__unauthorized_maps_to_signed_out(self) -> None:
        """401 errors use the signed-out user message."""
        with pytest.raises(HttpStatusError) as exc_info:
            classify_response(make_response(401, json={"error": "unauthorized", "message": "no"}))
        assert exc_info.value.user_message == UserMessage.SIGNED_OUT

    def test__invalid_json_raises_decode_error(self) -> None:
        """A 2xx body that is not JSON raises a decode error chained to the cause."""
        with pytest.raises(ResponseDecodeError) as exc_info:
            classify_response(make_response(content=b"{not json"))
        assert exc_info.value.__cause__ is not None


class TestParseApiError:
    """Tests for parse_api_error."""

    def test__other_shape_returns_none(self) -> None:
        """Bodies without error and message are not API errors."""
        assert parse_api_error(make_response(400, json={"detail": "x"})) is None
