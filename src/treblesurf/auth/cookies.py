"""Helpers for session cookies and secret-safe logging."""
import logging

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "session_id"
_SESSION_PREFIX = f"{SESSION_COOKIE_NAME}="


def mask_secret(value: str | None, visible: int = 6) -> str:
    """Return a short prefix of a secret for log lines."""
    if not value:
        return "<none>"
    return f"{value[:visible]}..."


def _session_value(part: str) -> str | None:
    part = part.strip()
    if not part.startswith(_SESSION_PREFIX):
        return None
    # Drop attributes like "; Path=/; HttpOnly"
    return part[len(_SESSION_PREFIX):].split(";", 1)[0].strip()


def extract_session_id(set_cookie: str | None) -> str | None:
    """
    Extract the ``session_id`` value from a ``Set-Cookie`` header string.

    The header may hold several cookies joined by commas, each followed by
    attributes separated by semicolons. Cookies are scanned first by comma,
    then by semicolon for formats where the session cookie is not the first
    item after a comma.

    Returns:
        The session id, or None if no non-empty ``session_id`` cookie is present.
    """
    if not set_cookie:
        return None

    for cookie in set_cookie.split(","):
        value = _session_value(cookie)
        if value:
            return value

    if _SESSION_PREFIX in set_cookie:
        for component in set_cookie.split(";"):
            value = _session_value(component)
            if value:
                return value

    logger.warning("session_cookie_missing")
    return None
