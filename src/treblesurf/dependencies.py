"""
Construction and wiring of every client component.

``AppDependencies.build`` is called once at process start. Components get
their collaborators through ``__init__``, so tests build them directly with
fakes instead of going through this container.
"""
import logging
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from treblesurf.auth.credential_store import (
    CredentialStore,
    EncryptedFileCredentialStore,
    load_or_create_key,
)
from treblesurf.auth.session_manager import SessionManager
from treblesurf.cache.image_cache import ImageCache
from treblesurf.core.config import Settings
from treblesurf.core.debounce import Debouncer
from treblesurf.network.client import ApiClient
from treblesurf.services.buoy_service import BuoyCache, WeatherBuoyService
from treblesurf.services.content_moderation_service import ContentModerationService
from treblesurf.services.data_store import DataStore
from treblesurf.services.media_upload_service import MediaUploadService
from treblesurf.services.preferences import PreferencesStore
from treblesurf.services.spot_service import SpotService
from treblesurf.services.surf_report_service import SurfReportService
from treblesurf.services.swell_prediction_service import SwellPredictionService

logger = logging.getLogger(__name__)


def build_credential_store(settings: Settings) -> EncryptedFileCredentialStore:
    """Encrypted file store keyed by TREBLESURF_CREDENTIAL_KEY or a generated key file."""
    key = settings.credential_key or load_or_create_key(settings.credential_key_path)
    return EncryptedFileCredentialStore(settings.credentials_path, key)


@dataclass
class AppDependencies:
    """Every long-lived component, wired together."""

    settings: Settings
    credentials: CredentialStore
    api_client: ApiClient
    session: SessionManager
    image_cache: ImageCache
    spot_service: SpotService
    data_store: DataStore
    buoy_service: WeatherBuoyService
    swell_predictions: SwellPredictionService
    surf_reports: SurfReportService
    media_uploads: MediaUploadService
    moderation: ContentModerationService
    preferences: PreferencesStore
    debouncer: Debouncer

    @classmethod
    def build(
        cls,
        settings: Settings,
        credentials: CredentialStore | None = None,
        http_client: httpx.AsyncClient | None = None,
        identity_sign_out: Callable[[], None] | None = None,
    ) -> "AppDependencies":
        credentials = credentials if credentials is not None else build_credential_store(settings)
        api_client = ApiClient(settings, credentials, http_client=http_client)
        session = SessionManager(
            settings, credentials, api_client, identity_sign_out=identity_sign_out,
        )
        api_client.set_unauthorized_handler(session.handle_unauthorized)

        image_cache = ImageCache(
            settings.image_cache_dir,
            ttl=settings.image_ttl_seconds,
            memory_limit=settings.image_memory_limit,
        )
        image_cache.load_from_disk()

        spot_service = SpotService(api_client)
        deps = cls(
            settings=settings,
            credentials=credentials,
            api_client=api_client,
            session=session,
            image_cache=image_cache,
            spot_service=spot_service,
            data_store=DataStore(settings, api_client, spot_service, image_cache),
            buoy_service=WeatherBuoyService(api_client, BuoyCache(settings.buoy_ttl_seconds)),
            swell_predictions=SwellPredictionService(settings, api_client),
            surf_reports=SurfReportService(settings, api_client, spot_service, image_cache),
            media_uploads=MediaUploadService(api_client),
            moderation=ContentModerationService(api_client),
            preferences=PreferencesStore(settings.preferences_path),
            debouncer=Debouncer(settings.debounce_seconds),
        )
        deps._register_reset_hooks()
        logger.info(
            "dependencies_built environment=%s base_url=%s",
            settings.environment,
            settings.api_base_url,
        )
        return deps

    def _register_reset_hooks(self) -> None:
        self.session.add_reset_hook("data_store", self.data_store.reset_to_initial_state)
        self.session.add_reset_hook("image_cache", self.image_cache.clear)
        self.session.add_reset_hook("buoys", self.buoy_service.reset)
        self.session.add_reset_hook("swell_predictions", self.swell_predictions.clear_cache)
        self.session.add_reset_hook("surf_reports", self.surf_reports.clear_cache)
        self.session.add_reset_hook("preferences", self.preferences.reset)
        self.session.add_reset_hook("debouncer", self.debouncer.cancel)

    def reset(self) -> None:
        """Clear every store and cache without touching credentials."""
        self.data_store.reset_to_initial_state()
        self.image_cache.clear()
        self.buoy_service.reset()
        self.swell_predictions.clear_cache()
        self.surf_reports.clear_cache()
        self.preferences.reset()
        self.debouncer.cancel()

    async def aclose(self) -> None:
        await self.media_uploads.aclose()
        await self.api_client.aclose()
