"""
Session lifecycle against the TrebleSurf backend.

The backend issues an opaque ``session_id`` cookie and a CSRF token on
login. Both are kept in the credential store; the current user and session
state live in memory here.

State transitions:
    signed_out -> pending_validation   restore_session() with stored credentials
    pending_validation -> authenticated / signed_out (credentials kept when the
                                       backend could not answer)
    signed_out -> authenticated        authenticate() or create_dev_session()
    any -> signed_out                  logout(), failed validation, 401 on a data request

Every state-changing operation runs under one asyncio lock, so a logout
issued while a login or validation is in flight clears state after that
operation completes.
"""
import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

import httpx
from pydantic import ValidationError

from treblesurf.auth.cookies import SESSION_COOKIE_NAME, extract_session_id, mask_secret
from treblesurf.auth.credential_store import CSRF_TOKEN_KEY, SESSION_ID_KEY, CredentialStore
from treblesurf.core.config import Settings
from treblesurf.network import endpoints
from treblesurf.network.classification import is_html_response
from treblesurf.network.client import CSRF_HEADER, ApiClient
from treblesurf.network.errors import (
    AuthenticationFailedError,
    MisconfiguredEndpointError,
    NetworkUnavailableError,
    SessionInvalidError,
    TrebleSurfError,
)
from treblesurf.schemas.user import (
    AuthResponse,
    LogoutResponse,
    SessionsResponse,
    User,
    ValidateResponse,
)

logger = logging.getLogger(__name__)

DEV_USER_NAME = "Development User"
DEV_USER_PICTURE = "https://via.placeholder.com/150"


class SessionState(StrEnum):
    """Where the client is in the session lifecycle."""

    SIGNED_OUT = "signed_out"
    PENDING_VALIDATION = "pending_validation"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a session operation. Errors are returned, never raised."""

    ok: bool
    user: User | None = None
    error: TrebleSurfError | None = None


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view of the session passed to subscribers."""

    state: SessionState
    user: User | None

    @property
    def is_authenticated(self) -> bool:
        return self.state == SessionState.AUTHENTICATED


SessionListener = Callable[[SessionSnapshot], None]
ResetHook = Callable[[], None]


class SessionManager:
    """Owns the session state and the stored session credentials."""

    def __init__(
        self,
        settings: Settings,
        credentials: CredentialStore,
        api_client: ApiClient,
        identity_sign_out: Callable[[], None] | None = None,
    ) -> None:
        self._settings = settings
        self._credentials = credentials
        self._api = api_client
        self._identity_sign_out = identity_sign_out
        self._lock = asyncio.Lock()
        self._state = SessionState.SIGNED_OUT
        self._user: User | None = None
        self._listeners: list[SessionListener] = []
        self._reset_hooks: list[tuple[str, ResetHook]] = []

    # --- State -----------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def current_user(self) -> User | None:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._state == SessionState.AUTHENTICATED

    @property
    def session_id(self) -> str | None:
        return self._credentials.retrieve(SESSION_ID_KEY) or None

    @property
    def csrf_token(self) -> str | None:
        return self._credentials.retrieve(CSRF_TOKEN_KEY) or None

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(state=self._state, user=self._user)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """
        Register a callback invoked with a snapshot after every state change.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def add_reset_hook(self, name: str, hook: ResetHook) -> None:
        """Register a store or cache reset to run whenever local data is cleared."""
        self._reset_hooks.append((name, hook))

    # --- Credentials -----------------------------------------------------

    def has_stored_auth_data(self) -> bool:
        return bool(self.session_id or self.csrf_token)

    def session_cookie_header(self) -> dict[str, str] | None:
        session_id = self.session_id
        if not session_id:
            return None
        return {"Cookie": f"{SESSION_COOKIE_NAME}={session_id}"}

    def csrf_header(self) -> dict[str, str] | None:
        token = self.csrf_token
        if not token:
            return None
        return {CSRF_HEADER: token}

    def update_csrf_token(self, token: str) -> None:
        self._credentials.save(CSRF_TOKEN_KEY, token)

    # --- Operations ------------------------------------------------------

    async def authenticate(self, identity_token: str) -> AuthResult:
        """Exchange an identity provider token for a backend session."""
        async with self._lock:
            try:
                response = await self._api.send(
                    "POST",
                    endpoints.GOOGLE_AUTH,
                    json={"id_token": identity_token},
                    authenticated=False,
                )
            except NetworkUnavailableError as e:
                logger.warning("login_network_error error=%s", e.message)
                return AuthResult(ok=False, error=_login_failed("Could not reach the login service", e))

            if is_html_response(response):
                logger.error("login_html_response status=%s", response.status_code)
                return AuthResult(ok=False, error=_misconfigured(response))
            if not response.is_success:
                logger.warning("login_rejected status=%s", response.status_code)
                return AuthResult(
                    ok=False,
                    error=AuthenticationFailedError(
                        f"Login rejected with status {response.status_code}",
                    ),
                )

            try:
                auth = AuthResponse.model_validate_json(response.content)
            except ValidationError as e:
                logger.error("login_response_invalid")
                return AuthResult(ok=False, error=_login_failed("Unexpected login response", e))

            self._store_session_credentials(response)
            self._set_state(SessionState.AUTHENTICATED, auth.user)
            logger.info("login_succeeded email=%s", auth.user.email)
            return AuthResult(ok=True, user=auth.user)

    async def validate_session(self) -> AuthResult:
        """
        Check the stored session with the backend.

        Invalid sessions and unreadable responses clear all local data. HTML
        responses and network failures keep the stored credentials.
        """
        async with self._lock:
            return await self._validate_locked()

    async def restore_session(self) -> AuthResult:
        """
        Resume a stored session at startup, validating it with the backend.

        Always ends signed out or authenticated. When the backend is
        unreachable or answers with HTML the client is signed out but the
        stored credentials are kept, so a later call can restore the session.
        """
        async with self._lock:
            if not self.has_stored_auth_data():
                self._set_state(SessionState.SIGNED_OUT, None)
                logger.info("session_restore_skipped reason=no_stored_credentials")
                return AuthResult(ok=False)
            self._set_state(SessionState.PENDING_VALIDATION, self._user)
            result = await self._validate_locked()
            if self._state == SessionState.PENDING_VALIDATION:
                logger.info("session_restore_deferred credentials=kept")
                self._set_state(SessionState.SIGNED_OUT, None)
            return result

    async def create_dev_session(self, email: str) -> AuthResult:
        """Create a session against a local backend without an identity provider."""
        if not self._settings.is_local:
            return AuthResult(
                ok=False,
                error=AuthenticationFailedError(
                    "Development sessions are only available with TREBLESURF_ENV=local",
                ),
            )
        async with self._lock:
            try:
                response = await self._api.send(
                    "POST",
                    endpoints.DEV_SESSION,
                    json={"email": email},
                    authenticated=False,
                )
            except NetworkUnavailableError as e:
                logger.warning("dev_session_network_error error=%s", e.message)
                return AuthResult(ok=False, error=_login_failed("Could not reach the local backend", e))

            if is_html_response(response):
                return AuthResult(ok=False, error=_misconfigured(response))
            if response.status_code != 200:
                logger.warning("dev_session_rejected status=%s", response.status_code)
                return AuthResult(
                    ok=False,
                    error=AuthenticationFailedError(
                        f"Development session rejected with status {response.status_code}",
                    ),
                )

            self._store_session_credentials(response)
            user = User(
                email=email,
                name=DEV_USER_NAME,
                picture=DEV_USER_PICTURE,
                family_name="User",
                given_name="Development",
                theme="dark",
            )
            self._set_state(SessionState.AUTHENTICATED, user)
            logger.info("dev_session_created email=%s", email)
            return AuthResult(ok=True, user=user)

    async def logout(self) -> bool:
        """
        End the session on the backend (best effort) and clear all local data.

        Always returns True: local cleanup happens whatever the backend says.
        """
        async with self._lock:
            try:
                response = await self._api.send("POST", endpoints.LOGOUT)
            except TrebleSurfError as e:
                logger.warning("logout_request_failed error=%s", e.message)
            else:
                if is_html_response(response):
                    logger.error("logout_html_response status=%s", response.status_code)
                elif not response.is_success:
                    logger.warning("logout_rejected status=%s", response.status_code)
                elif response.content:
                    try:
                        ack = LogoutResponse.model_validate_json(response.content)
                    except ValidationError:
                        logger.warning("logout_response_invalid")
                    else:
                        logger.debug("logout_acknowledged message=%s", ack.message)
            self.clear_all_app_data()
        logger.info("logout_completed")
        return True

    async def handle_unauthorized(self) -> None:
        """Clear local data after the backend rejected the session on a data request."""
        async with self._lock:
            if self._state == SessionState.SIGNED_OUT and not self.has_stored_auth_data():
                return
            logger.warning("session_rejected_by_backend")
            self.clear_all_app_data()

    async def list_sessions(self) -> SessionsResponse:
        """
        Active server-side sessions for the signed-in user.

        Raises:
            TrebleSurfError: The request failed. A 401 also signs the client out.
        """
        return await self._api.get_as(SessionsResponse, endpoints.USER_SESSIONS)

    def clear_all_app_data(self) -> None:
        """
        Remove credentials, the current user, and every registered store's data.

        Safe to call repeatedly. A failing reset hook is logged and does not
        stop the remaining hooks.
        """
        self._credentials.delete(SESSION_ID_KEY)
        self._credentials.delete(CSRF_TOKEN_KEY)
        for name, hook in self._reset_hooks:
            try:
                hook()
            except Exception:
                logger.exception("reset_hook_failed hook=%s", name)
        if self._identity_sign_out is not None:
            try:
                self._identity_sign_out()
            except Exception:
                logger.exception("identity_sign_out_failed")
        self._set_state(SessionState.SIGNED_OUT, None)
        logger.info("app_data_cleared")

    # --- Internals -------------------------------------------------------

    async def _validate_locked(self) -> AuthResult:
        session_id = self.session_id
        try:
            response = await self._api.send("GET", endpoints.VALIDATE_SESSION)
        except NetworkUnavailableError as e:
            if self._settings.offline_dev_mode and session_id:
                # Development only: trust the stored session while the local backend is down
                logger.warning(
                    "session_offline_fallback session=%s",
                    mask_secret(session_id),
                )
                self._set_state(SessionState.AUTHENTICATED, self._user)
                return AuthResult(ok=True, user=self._user)
            logger.warning("session_validation_unreachable error=%s", e.message)
            return AuthResult(ok=False, error=e)

        if is_html_response(response):
            logger.error(
                "session_validation_misconfigured status=%s content_type=%s",
                response.status_code,
                response.headers.get("content-type", ""),
            )
            return AuthResult(ok=False, error=_misconfigured(response))

        if not session_id:
            new_session_id = extract_session_id(_set_cookie_header(response))
            if new_session_id:
                self._credentials.save(SESSION_ID_KEY, new_session_id)

        if response.status_code != 200:
            logger.info("session_validation_failed status=%s", response.status_code)
            self.clear_all_app_data()
            return AuthResult(
                ok=False,
                error=SessionInvalidError(
                    f"Session validation failed with status {response.status_code}",
                ),
            )

        try:
            result = ValidateResponse.model_validate_json(response.content)
        except ValidationError as e:
            logger.error("session_validation_response_invalid")
            self.clear_all_app_data()
            error = SessionInvalidError("Unreadable session validation response")
            error.__cause__ = e
            return AuthResult(ok=False, error=error)

        if not result.valid:
            logger.info("session_validation_failed valid=false")
            self.clear_all_app_data()
            return AuthResult(ok=False, error=SessionInvalidError("Session is no longer valid"))

        user = result.user or self._user
        self._set_state(SessionState.AUTHENTICATED, user)
        logger.info("session_validated auth_type=%s", result.auth_type)
        return AuthResult(ok=True, user=user)

    def _store_session_credentials(self, response: httpx.Response) -> None:
        csrf_token = response.headers.get(CSRF_HEADER)
        if csrf_token:
            self._credentials.save(CSRF_TOKEN_KEY, csrf_token)
        session_id = extract_session_id(_set_cookie_header(response))
        if session_id:
            self._credentials.save(SESSION_ID_KEY, session_id)
            logger.debug("session_stored session=%s", mask_secret(session_id))

    def _set_state(self, state: SessionState, user: User | None) -> None:
        before = self.snapshot()
        self._state = state
        self._user = user
        after = self.snapshot()
        if after == before:
            return
        logger.debug("session_state_changed from=%s to=%s", before.state, after.state)
        for listener in list(self._listeners):
            try:
                listener(after)
            except Exception:
                logger.exception("session_listener_failed")


def _set_cookie_header(response: httpx.Response) -> str:
    return ", ".join(response.headers.get_list("set-cookie"))


def _misconfigured(response: httpx.Response) -> MisconfiguredEndpointError:
    return MisconfiguredEndpointError(
        response.request.url.path,
        response.headers.get("content-type", ""),
    )


def _login_failed(message: str, cause: Exception) -> AuthenticationFailedError:
    error = AuthenticationFailedError(message)
    error.__cause__ = cause
    return error
