"""Service container shared by the routes, built once per application."""

import logging

from fastapi import Request

from app.core.config import Settings
from app.core.database import create_db_engine
from app.models.strm import StrmSettings
from app.services.library import LibraryStore
from app.services.metadata_cache import MetadataCache
from app.services.orchestrator import ResolutionOrchestrator
from app.services.search import SearchService
from app.services.stremio import StremioAddonClient
from app.services.strm import StrmMaterializer

logger = logging.getLogger(__name__)


class Services:
    """Everything a request needs, wired from one ``Settings``."""

    def __init__(
        self,
        settings: Settings,
        cache: MetadataCache,
        library: LibraryStore,
        materializer: StrmMaterializer,
        addon: StremioAddonClient,
    ) -> None:
        self.settings = settings
        self.cache = cache
        self.library = library
        self.materializer = materializer
        self.addon = addon
        self.search = SearchService(cache)
        self.orchestrator = ResolutionOrchestrator(
            cache, library, materializer, settings
        )

    async def aclose(self) -> None:
        await self.addon.aclose()
        self.library.engine.dispose()


def build_services(settings: Settings) -> Services:
    """Build the service graph from settings."""
    cache = MetadataCache(
        timeout=settings.cache_timeout_seconds, maxsize=settings.cache_max_entries
    )
    library = LibraryStore(create_db_engine(settings.database_url, echo=settings.debug))
    materializer = StrmMaterializer(
        StrmSettings(
            overwrite_existing=settings.overwrite_existing,
            create_metadata_sidecars=settings.create_metadata_sidecars,
            create_episode_nfo=settings.create_episode_nfo,
            metadata_extension=settings.metadata_extension,
            include_specials=settings.include_specials,
        )
    )
    addon = StremioAddonClient(
        settings.addon_manifest_url,
        timeout=settings.addon_timeout,
        proxy=settings.proxy,
    )
    logger.debug(f"Services built (database: {settings.database_url})")
    return Services(settings, cache, library, materializer, addon)


def get_services(request: Request) -> Services:
    """Dependency that provides the application's services."""
    return request.app.state.services
