"""User preference flags persisted as plain JSON."""
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, ValidationError

logger = logging.getLogger(__name__)

ThemeMode = Literal["light", "dark", "system"]


class Preferences(BaseModel):
    """Non-secret user preferences."""

    model_config = ConfigDict(frozen=True)

    selected_theme: ThemeMode = "system"
    show_swell_predictions: bool = True
    saved_locations: list[str] = []


class PreferencesStore:
    """
    Loads and saves ``Preferences`` to a JSON file.

    The file holds nothing secret, so it is not encrypted. Writes replace
    the file atomically; an unreadable file falls back to defaults.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._preferences = self._load()

    @property
    def preferences(self) -> Preferences:
        return self._preferences

    def update(self, **changes: Any) -> Preferences:
        """
        Apply ``changes`` and persist the result.

        Raises:
            ValidationError: If a change has an invalid value.
        """
        updated = Preferences.model_validate({**self._preferences.model_dump(), **changes})
        self._write(updated)
        self._preferences = updated
        logger.debug("preferences_updated fields=%s", ",".join(sorted(changes)))
        return updated

    def reset(self) -> None:
        """Delete the file and restore defaults."""
        self.path.unlink(missing_ok=True)
        self._preferences = Preferences()
        logger.info("preferences_reset")

    def _load(self) -> Preferences:
        if not self.path.exists():
            return Preferences()
        try:
            return Preferences.model_validate_json(self.path.read_bytes())
        except (OSError, ValidationError):
            logger.warning("preferences_unreadable path=%s", self.path)
            return Preferences()

    def _write(self, preferences: Preferences) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(preferences.model_dump_json())
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
