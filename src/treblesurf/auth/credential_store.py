"""
Persistence for session secrets.

The credential store is the only place the session id and CSRF token are
written to disk. The file store encrypts every value with Fernet and
rewrites the whole file atomically with owner-only permissions.
"""
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Protocol

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)

SESSION_ID_KEY = "com.treblesurf.sessionId"
CSRF_TOKEN_KEY = "com.treblesurf.csrfToken"

_FILE_MODE = 0o600


class CredentialStore(Protocol):
    """Key/value store for secrets. All operations are idempotent."""

    def save(self, key: str, value: str) -> None: ...

    def retrieve(self, key: str) -> str | None: ...

    def delete(self, key: str) -> None: ...


class InMemoryCredentialStore:
    """Process-local credential store, for tests and ephemeral sessions."""

    def __init__(self) -> None:
        self._values: dict[str, str] = {}
        self._lock = threading.Lock()

    def save(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def retrieve(self, key: str) -> str | None:
        with self._lock:
            return self._values.get(key)

    def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)


def load_or_create_key(path: Path) -> bytes:
    """
    Read the Fernet key at ``path``, generating it on first use.

    The key file is created with owner-only permissions.
    """
    if path.exists():
        return path.read_bytes().strip()
    path.parent.mkdir(parents=True, exist_ok=True)
    key = Fernet.generate_key()
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, _FILE_MODE)
    with os.fdopen(fd, "wb") as f:
        f.write(key)
    logger.info("credential_key_created path=%s", path)
    return key


class EncryptedFileCredentialStore:
    """
    Credential store backed by a single Fernet-encrypted JSON file.

    The file maps key names to Fernet tokens. A file that cannot be read or
    decrypted (for example after the key was rotated) is treated as empty:
    the user is signed out rather than the process crashing.
    """

    def __init__(self, path: Path, key: bytes | str) -> None:
        self.path = path
        self._fernet = Fernet(key)
        self._lock = threading.Lock()

    def save(self, key: str, value: str) -> None:
        with self._lock:
            tokens = self._read()
            tokens[key] = self._fernet.encrypt(value.encode()).decode()
            self._write(tokens)
        logger.debug("credential_saved key=%s", key)

    def retrieve(self, key: str) -> str | None:
        with self._lock:
            token = self._read().get(key)
        if token is None:
            return None
        try:
            return self._fernet.decrypt(token.encode()).decode()
        except InvalidToken:
            logger.warning("credential_decrypt_failed key=%s", key)
            return None

    def delete(self, key: str) -> None:
        with self._lock:
            tokens = self._read()
            if key not in tokens:
                return
            del tokens[key]
            self._write(tokens)
        logger.debug("credential_deleted key=%s", key)

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (OSError, ValueError):
            logger.warning("credential_file_unreadable path=%s", self.path)
            return {}
        if not isinstance(data, dict):
            logger.warning("credential_file_unreadable path=%s", self.path)
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write(self, tokens: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            os.fchmod(fd, _FILE_MODE)
            with os.fdopen(fd, "w") as f:
                json.dump(tokens, f)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
