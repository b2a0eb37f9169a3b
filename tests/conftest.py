"""Shared fixtures for client tests."""
from collections.abc import AsyncGenerator, Generator
from pathlib import Path

import pytest
import respx

from treblesurf.auth.credential_store import InMemoryCredentialStore
from treblesurf.core.config import LOCAL_API_URL, PRODUCTION_API_URL, Settings
from treblesurf.network.client import ApiClient


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1_750_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Production settings with all local state under a temp directory."""
    return Settings(_env_file=None, TREBLESURF_DATA_DIR=str(tmp_path))


@pytest.fixture
def local_settings(tmp_path: Path) -> Settings:
    """Local development settings with the offline fallback enabled."""
    return Settings(
        _env_file=None,
        TREBLESURF_ENV="local",
        TREBLESURF_OFFLINE_DEV="true",
        TREBLESURF_DATA_DIR=str(tmp_path),
    )


@pytest.fixture
def credentials() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def mock_api() -> Generator[respx.MockRouter]:
    """Mock the production backend."""
    with respx.mock(base_url=PRODUCTION_API_URL, assert_all_called=False) as respx_mock:
        yield respx_mock


@pytest.fixture
def mock_local_api() -> Generator[respx.MockRouter]:
    """Mock the local development backend."""
    with respx.mock(base_url=LOCAL_API_URL, assert_all_called=False) as respx_mock:
        yield respx_mock


@pytest.fixture
async def api_client(
    settings: Settings,
    credentials: InMemoryCredentialStore,
    mock_api: respx.MockRouter,  # noqa: ARG001
) -> AsyncGenerator[ApiClient]:
    client = ApiClient(settings, credentials)
    yield client
    await client.aclose()


@pytest.fixture
async def local_api_client(
    local_settings: Settings,
    credentials: InMemoryCredentialStore,
    mock_local_api: respx.MockRouter,  # noqa: ARG001
) -> AsyncGenerator[ApiClient]:
    client = ApiClient(local_settings, credentials)
    yield client
    await client.aclose()


def user_payload(email: str = "surfer@example.com") -> dict:
    return {
        "email": email,
        "name": "Test Surfer",
        "picture": "https://example.com/p.png",
        "family_name": "Surfer",
        "given_name": "Test",
        "theme": "system",
    }


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 32
