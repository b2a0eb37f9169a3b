"""
Error taxonomy for the TrebleSurf client.

Every error carries a user-facing message in one of three categories
(signed out, unreachable server, misconfiguration) and whether retrying
can help. Callers above the network layer never see raw httpx or JSON
decoding errors; those are attached as ``__cause__``.
"""
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from treblesurf.schemas.api_error import APIErrorResponse


class UserMessage(StrEnum):
    """User-visible failure messages."""

    SIGNED_OUT = "You're signed out. Please sign in again."
    UNREACHABLE = "We couldn't reach the server. Please try again."
    MISCONFIGURED = "Something is misconfigured. Please contact support."


class TrebleSurfError(Exception):
    """Base class for all client errors."""

    user_message: UserMessage = UserMessage.UNREACHABLE
    retryable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthenticationFailedError(TrebleSurfError):
    """The backend rejected the identity token, or the login call failed."""

    user_message = UserMessage.SIGNED_OUT


class SessionInvalidError(TrebleSurfError):
    """Session validation returned a non-200 status or ``valid: false``."""

    user_message = UserMessage.SIGNED_OUT


class MisconfiguredEndpointError(TrebleSurfError):
    """
    An HTML page was received where JSON was expected.

    Indicates wrong endpoint routing rather than an invalid session, so
    local session state must be preserved.
    """

    user_message = UserMessage.MISCONFIGURED

    def __init__(self, path: str, content_type: str = "") -> None:
        self.path = path
        self.content_type = content_type
        super().__init__(f"Received HTML instead of JSON from {path}")


class NetworkUnavailableError(TrebleSurfError):
    """Connection refused, timed out, or otherwise failed before a response."""

    user_message = UserMessage.UNREACHABLE
    retryable = True


class HttpStatusError(TrebleSurfError):
    """Non-2xx response with a non-HTML body."""

    def __init__(
        self,
        status_code: int,
        message: str,
        api_error: "APIErrorResponse | None" = None,
    ) -> None:
        self.status_code = status_code
        self.api_error = api_error
        super().__init__(message)
        self.retryable = status_code >= 500 or status_code == 429
        if status_code in (401, 403):
            self.user_message = UserMessage.SIGNED_OUT


class ResponseDecodeError(TrebleSurfError):
    """A 2xx response body could not be decoded into the expected shape."""

    user_message = UserMessage.MISCONFIGURED


class CacheMissError(TrebleSurfError):
    """Internal signal that a cache lookup found nothing usable. Never surfaced."""


class ImageDecodeFailedError(TrebleSurfError):
    """Cached or downloaded image bytes are corrupt."""

    retryable = True

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Image data for '{key}' could not be decoded")


class InvalidSpotIdError(TrebleSurfError):
    """Spot identifier is not in ``country#region#spot`` form."""

    user_message = UserMessage.MISCONFIGURED

    def __init__(self, spot_id: str) -> None:
        self.spot_id = spot_id
        super().__init__(f"Invalid spot id '{spot_id}', expected 'country#region#spot'")
