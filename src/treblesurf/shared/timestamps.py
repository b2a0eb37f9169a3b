"""Parsing for the timestamp formats the backend emits."""
import logging
import re
from datetime import UTC, datetime

logger = logging.getLogger(__name__)

# "2025-07-12 19:57:27 +0000 UTC", optionally with fractional seconds
_GO_TIME_PATTERN = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2}) (?P<time>\d{2}:\d{2}:\d{2})(?:\.(?P<frac>\d+))?"
    r" (?P<offset>[+-]\d{4}) UTC$",
)


def parse_timestamp(value: str | float | int | None) -> datetime | None:
    """
    Parse a backend timestamp into an aware datetime.

    Handles:
    - Go time strings: "2025-07-12 19:57:27 +0000 UTC"
    - Go time strings with monotonic clock suffix:
      "2025-08-18 22:32:30.819091968 +0000 UTC m=+293.995127367"
    - ISO 8601, with or without offset (naive values are treated as UTC)
    - Epoch seconds, as numbers or numeric strings

    Returns None if the value cannot be parsed.
    """
    if value is None:
        return None
    if isinstance(value, int | float):
        return datetime.fromtimestamp(value, tz=UTC)

    text = value.strip()
    if not text:
        return None

    # Strip the Go runtime monotonic clock reading
    if " m=" in text:
        text = text.split(" m=", 1)[0]

    match = _GO_TIME_PATTERN.match(text)
    if match:
        # Python only keeps microseconds; Go emits up to nanoseconds
        frac = (match.group("frac") or "0")[:6].ljust(6, "0")
        return datetime.strptime(
            f"{match.group('date')} {match.group('time')}.{frac} {match.group('offset')}",
            "%Y-%m-%d %H:%M:%S.%f %z",
        )

    try:
        return datetime.fromtimestamp(float(text), tz=UTC)
    except (ValueError, OverflowError, OSError):
        pass

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("timestamp_parse_failed value=%s", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_timestamp_or_now(value: str | float | int | None) -> datetime:
    """Parse a timestamp, falling back to the current time like the backend clients do."""
    return parse_timestamp(value) or datetime.now(UTC)
