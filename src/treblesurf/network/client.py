"""Single entry point for HTTP calls to the TrebleSurf backend."""
import logging
from collections.abc import Awaitable, Callable
from functools import lru_cache
from typing import Any, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError

from treblesurf.auth.cookies import SESSION_COOKIE_NAME, mask_secret
from treblesurf.auth.credential_store import CSRF_TOKEN_KEY, SESSION_ID_KEY, CredentialStore
from treblesurf.core.config import Settings
from treblesurf.network import endpoints
from treblesurf.network.classification import classify_response
from treblesurf.network.errors import HttpStatusError, NetworkUnavailableError, ResponseDecodeError

logger = logging.getLogger(__name__)

T = TypeVar("T")

CSRF_HEADER = "X-CSRF-Token"

UnauthorizedHook = Callable[[], Awaitable[None]]


@lru_cache(maxsize=64)
def _adapter(type_: Any) -> TypeAdapter[Any]:
    return TypeAdapter(type_)


def decode_as(type_: type[T] | Any, data: Any, path: str = "") -> T:
    """
    Validate decoded JSON against ``type_`` (a model or e.g. ``list[Model]``).

    Raises:
        ResponseDecodeError: If the data does not match the expected shape.
    """
    try:
        return _adapter(type_).validate_python(data)
    except ValidationError as e:
        logger.error("response_schema_mismatch path=%s errors=%s", path, e.error_count())
        raise ResponseDecodeError(f"Unexpected response shape from {path}") from e


class ApiClient:
    """
    Thin wrapper over ``httpx.AsyncClient`` bound to the configured base URL.

    Authenticated requests carry the stored session cookie and CSRF token.
    A rotated CSRF token in any response is written back to the credential
    store. Transport failures surface as ``NetworkUnavailableError``.
    """

    def __init__(
        self,
        settings: Settings,
        credentials: CredentialStore,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self._credentials = credentials
        self._client = http_client or httpx.AsyncClient(
            base_url=settings.api_base_url,
            timeout=settings.request_timeout,
        )
        self._on_unauthorized: UnauthorizedHook | None = None

    @property
    def base_url(self) -> str:
        return str(self._client.base_url)

    def set_unauthorized_handler(self, hook: UnauthorizedHook | None) -> None:
        """Register the callback run when an authenticated data request gets a 401."""
        self._on_unauthorized = hook

    def auth_headers(self) -> dict[str, str]:
        """Cookie and CSRF headers from the stored credentials, when present."""
        headers: dict[str, str] = {}
        session_id = self._credentials.retrieve(SESSION_ID_KEY)
        if session_id:
            headers["Cookie"] = f"{SESSION_COOKIE_NAME}={session_id}"
        csrf_token = self._credentials.retrieve(CSRF_TOKEN_KEY)
        if csrf_token:
            headers[CSRF_HEADER] = csrf_token
        return headers

    async def send(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        authenticated: bool = True,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """
        Send a request and return the raw response, whatever its status.

        Raises:
            NetworkUnavailableError: Connection refused, timeout, or other transport failure.
        """
        request_headers = {"Accept": "application/json"}
        if authenticated:
            request_headers.update(self.auth_headers())
        if headers:
            request_headers.update(headers)

        logger.debug("api_request method=%s path=%s authenticated=%s", method, path, authenticated)
        try:
            response = await self._client.request(
                method,
                path,
                json=json,
                params=params,
                headers=request_headers,
            )
        except httpx.TimeoutException as e:
            logger.warning("api_timeout method=%s path=%s", method, path)
            raise NetworkUnavailableError(f"Request to {path} timed out") from e
        except httpx.ConnectError as e:
            logger.warning("api_connect_failed method=%s path=%s", method, path)
            raise NetworkUnavailableError(f"Could not connect to {self.base_url}") from e
        except httpx.RequestError as e:
            logger.warning("api_request_failed method=%s path=%s error=%s", method, path, e)
            raise NetworkUnavailableError(f"Request to {path} failed: {e}") from e

        logger.debug("api_response path=%s status=%s", path, response.status_code)
        self._store_rotated_csrf(response)
        return response

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        authenticated: bool = True,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """
        Send a request and return its decoded JSON body.

        A 401 on an authenticated request runs the unauthorized handler
        before the error is raised.

        Raises:
            NetworkUnavailableError, MisconfiguredEndpointError, HttpStatusError,
            ResponseDecodeError
        """
        response = await self.send(
            method,
            path,
            json=json,
            params=params,
            authenticated=authenticated,
            headers=headers,
        )
        try:
            return classify_response(response)
        except HttpStatusError as e:
            if e.status_code == 401 and authenticated and self._on_unauthorized is not None:
                logger.info("api_unauthorized path=%s", path)
                await self._on_unauthorized()
            raise

    async def get(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        authenticated: bool = True,
    ) -> Any:
        return await self.request("GET", path, params=params, authenticated=authenticated)

    async def post(
        self,
        path: str,
        *,
        json: Any = None,
        authenticated: bool = True,
    ) -> Any:
        return await self.request("POST", path, json=json, authenticated=authenticated)

    async def delete(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
    ) -> Any:
        return await self.request("DELETE", path, params=params)

    async def get_as(
        self,
        type_: type[T] | Any,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        authenticated: bool = True,
    ) -> T:
        """GET ``path`` and validate the body against ``type_``."""
        data = await self.get(path, params=params, authenticated=authenticated)
        return decode_as(type_, data, path)

    async def post_as(self, type_: type[T] | Any, path: str, *, json: Any = None) -> T:
        """POST ``json`` to ``path`` and validate the body against ``type_``."""
        data = await self.post(path, json=json)
        return decode_as(type_, data, path)

    def has_csrf_token(self) -> bool:
        return bool(self._credentials.retrieve(CSRF_TOKEN_KEY))

    async def refresh_csrf_token(self) -> bool:
        """
        Ask the backend for a current CSRF token through session validation.

        The token arrives in the ``X-CSRF-Token`` response header and is
        stored like any rotation. Returns True if a token is stored afterwards.
        """
        try:
            response = await self.send("GET", endpoints.VALIDATE_SESSION)
        except NetworkUnavailableError:
            return False
        logger.debug("csrf_refresh status=%s", response.status_code)
        return self.has_csrf_token()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _store_rotated_csrf(self, response: httpx.Response) -> None:
        token = response.headers.get(CSRF_HEADER)
        if token and token != self._credentials.retrieve(CSRF_TOKEN_KEY):
            self._credentials.save(CSRF_TOKEN_KEY, token)
            logger.debug("csrf_token_rotated token=%s", mask_secret(token))
