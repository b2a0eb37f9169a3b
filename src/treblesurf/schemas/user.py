"""Pydantic schemas for authentication endpoints."""
from pydantic import BaseModel, ConfigDict


class User(BaseModel):
    """
    Immutable snapshot of the signed-in user.

    Replaced wholesale on every successful login or validation, never
    partially mutated.
    """

    model_config = ConfigDict(frozen=True)

    email: str
    name: str
    picture: str = ""
    family_name: str = ""
    given_name: str = ""
    created_at: str | None = None
    last_login: str | None = None
    theme: str = "system"


class AuthResponse(BaseModel):
    """Body of ``POST /api/auth/google``."""

    user: User


class ValidateResponse(BaseModel):
    """Body of ``GET /api/auth/validate``."""

    valid: bool
    auth_type: str = ""
    user: User | None = None


class LogoutResponse(BaseModel):
    """Body of ``POST /api/auth/logout``."""

    message: str


class SessionInfo(BaseModel):
    """One active server-side session."""

    session_id: str
    expires_at: str
    current: bool
    last_active: str | None = None
    user_agent: str | None = None
    ip_address: str | None = None


class SessionsResponse(BaseModel):
    """Body of ``GET /api/sessions``."""

    sessions: list[SessionInfo]
    count: int
