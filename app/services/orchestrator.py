"""Per-request resolution of cached search results into library entries."""

import asyncio
import logging
import os
import uuid
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Union

from pydantic import BaseModel, ConfigDict

from app.core.config import Settings
from app.core.errors import (
    ConfigurationMissing,
    DuplicateDetectionFailure,
    MaterializationFailed,
    ResolvarrError,
)
from app.models.library import LibraryItem
from app.models.media import ExternalMetadata, MediaKind, SeriesDetails
from app.models.strm import (
    EpisodeStrmRequest,
    MovieStrmRequest,
    SeasonStrmRequest,
    SeriesStrmRequest,
)
from app.services import tmdb
from app.services.identity import canonical_uri
from app.services.library import LibraryStore
from app.services.metadata_cache import MetadataCache
from app.services.stremio import StreamType
from app.services.strm import StrmMaterializer
from app.services.urls import (
    build_movie_resolver_url,
    build_series_resolver_url,
    resolver_path,
)

logger = logging.getLogger(__name__)


class PassThrough(BaseModel):
    """Not a cached search result; serve the request normally."""

    model_config = ConfigDict(frozen=True)


class Redirected(BaseModel):
    """Served by a real library item."""

    model_config = ConfigDict(frozen=True)

    library_id: str
    created: bool = False


class Ephemeral(BaseModel):
    """Materialization was not possible; serve the virtual item as-is."""

    model_config = ConfigDict(frozen=True)

    metadata: ExternalMetadata


Resolution = Union[PassThrough, Redirected, Ephemeral]


class SingleFlight:
    """Coalesces concurrent calls for the same key onto one execution."""

    def __init__(self) -> None:
        self._inflight: Dict[Hashable, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._inflight)

    async def do(self, key: Hashable, fn: Callable[[], Awaitable[Any]]) -> Any:
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._inflight[key] = task

            def _forget(done: asyncio.Task) -> None:
                if self._inflight.get(key) is done:
                    del self._inflight[key]

            task.add_done_callback(_forget)
        # A cancelled caller must not cancel the shared execution
        return await asyncio.shield(task)


class ResolutionOrchestrator:
    """Decides, per identifier, between pass-through, redirect and materialization.

    The lookup, file generation, library promotion and cache eviction for one
    identifier run at most once at a time; concurrent callers share the outcome.
    """

    def __init__(
        self,
        cache: MetadataCache,
        library: LibraryStore,
        materializer: StrmMaterializer,
        settings: Settings,
    ) -> None:
        self.cache = cache
        self.library = library
        self.materializer = materializer
        self.settings = settings
        self._flights = SingleFlight()

    async def resolve(self, item_id: uuid.UUID) -> Resolution:
        if self.cache.get(item_id) is None:
            return PassThrough()
        return await self._flights.do(item_id, lambda: self._resolve(item_id))

    def playback_target(
        self,
        item_id: uuid.UUID,
        season: Optional[int] = None,
        episode: Optional[int] = None,
    ) -> Optional[str]:
        """Resolver path for a still-cached item, without materializing it."""
        meta = self.cache.get(item_id)
        if meta is None or not meta.stream_id:
            return None
        match meta.kind:
            case MediaKind.MOVIE:
                return resolver_path(StreamType.MOVIE, meta.stream_id)
            case MediaKind.SERIES:
                return resolver_path(StreamType.SERIES, meta.stream_id, season, episode)

    async def _resolve(self, item_id: uuid.UUID) -> Resolution:
        meta = self.cache.get(item_id)
        if meta is None:
            # Evicted by a flight that finished just before this one started
            return PassThrough()

        try:
            existing = await asyncio.to_thread(
                self.library.find_by_provider_ids, meta.kind, meta.provider_ids
            )
        except DuplicateDetectionFailure as e:
            logger.error(f"Duplicate detection failed for {meta.title}: {e}")
            if not self.settings.assume_missing_on_lookup_failure:
                return Ephemeral(metadata=meta)
            existing = None

        if existing is not None:
            if meta.kind is MediaKind.SERIES:
                await self._update_series(existing, meta)
            self.cache.remove(item_id)
            logger.info(f"{meta.title} already in library as {existing.id}")
            return Redirected(library_id=existing.id)

        try:
            item = await self._materialize(item_id, meta)
        except (ResolvarrError, ValueError) as e:
            logger.error(
                f"Could not materialize {meta.title}, serving virtual item: {e}"
            )
            return Ephemeral(metadata=meta)

        self.cache.remove(item_id)
        return Redirected(library_id=item.id, created=True)

    # --- materialization ---

    def _library_path(self, meta: ExternalMetadata) -> str:
        if meta.is_anime and self.settings.anime_library_path:
            return self.settings.anime_library_path
        match meta.kind:
            case MediaKind.MOVIE:
                path = self.settings.movies_library_path
            case MediaKind.SERIES:
                path = self.settings.shows_library_path
        if not path:
            raise ConfigurationMissing(
                f"No library path configured for {meta.kind.value}"
            )
        return path

    async def _imdb_id(self, meta: ExternalMetadata) -> str:
        imdb_id = meta.stream_id
        if not imdb_id:
            imdb_id = await tmdb.get_external_ids(meta.kind, meta.tmdb_id)
        if not imdb_id:
            raise MaterializationFailed(f"No IMDb id known for {meta.title}")
        return imdb_id

    async def _materialize(
        self, item_id: uuid.UUID, meta: ExternalMetadata
    ) -> LibraryItem:
        destination = self._library_path(meta)
        imdb_id = await self._imdb_id(meta)
        provider_ids = {**meta.provider_ids, "Imdb": imdb_id}

        match meta.kind:
            case MediaKind.MOVIE:
                path = await self._materialize_movie(
                    item_id, meta, imdb_id, destination
                )
            case MediaKind.SERIES:
                path = await self._materialize_series(
                    item_id, meta, imdb_id, destination
                )

        return await asyncio.to_thread(
            self.library.create_item,
            str(item_id),
            meta.kind,
            meta.title,
            path,
            year=meta.year,
            overview=meta.overview,
            provider_ids=provider_ids,
        )

    async def _materialize_movie(
        self, item_id: uuid.UUID, meta: ExternalMetadata, imdb_id: str, destination: str
    ) -> str:
        request = MovieStrmRequest(
            title=meta.title,
            year=meta.year,
            stream_url=build_movie_resolver_url(self.settings.public_base_url, imdb_id),
            destination_dir=destination,
            provider_ids={**meta.provider_ids, "Imdb": imdb_id},
            library_id=str(item_id),
            uri=str(canonical_uri(meta.kind, meta.tmdb_id)),
            metadata=_sidecar_metadata(meta),
        )
        result = await asyncio.to_thread(self.materializer.create_movie, request)
        if not result.succeeded:
            raise MaterializationFailed(
                f"No pointer file written for {meta.title}: {result.failed}"
            )
        return result.pointer_files[0]

    async def _materialize_series(
        self, item_id: uuid.UUID, meta: ExternalMetadata, imdb_id: str, destination: str
    ) -> str:
        details = await tmdb.get_series_details(meta.tmdb_id)
        request = self._series_request(
            str(item_id), meta, imdb_id, details, destination
        )
        result = await asyncio.to_thread(self.materializer.create_series, request)
        if not result.succeeded:
            raise MaterializationFailed(
                f"No episode pointer files written for {meta.title}: {result.failed}"
            )
        return result.root_dir

    def _series_request(
        self,
        library_id: str,
        meta: ExternalMetadata,
        imdb_id: str,
        details: SeriesDetails,
        destination: str,
        series_dir: Optional[str] = None,
    ) -> SeriesStrmRequest:
        base_url = self.settings.public_base_url
        seasons = []
        for season in details.seasons:
            # Titles stay out of file names so update runs find the same files
            episodes = [
                EpisodeStrmRequest(
                    episode_number=ep.episode_number,
                    stream_url=build_series_resolver_url(
                        base_url, imdb_id, season.season_number, ep.episode_number
                    ),
                    metadata={
                        "name": ep.name,
                        "overview": ep.overview,
                        "airDate": ep.air_date,
                    },
                )
                for ep in season.episodes
            ]
            if episodes:
                seasons.append(
                    SeasonStrmRequest(
                        season_number=season.season_number, episodes=episodes
                    )
                )

        return SeriesStrmRequest(
            title=meta.title,
            year=meta.year,
            destination_dir=destination,
            series_dir=series_dir,
            seasons=seasons,
            provider_ids={**meta.provider_ids, "Imdb": imdb_id},
            library_id=library_id,
            uri=str(canonical_uri(meta.kind, meta.tmdb_id)),
        )

    async def _update_series(
        self, existing: LibraryItem, meta: ExternalMetadata
    ) -> None:
        """Top up an existing series folder with newly aired episodes."""
        if not existing.path or not os.path.isdir(existing.path):
            logger.debug(f"Series folder for {existing.id} not found, skipping update")
            return

        series_dir = existing.path.rstrip(os.sep)
        try:
            imdb_id = await self._imdb_id(meta)
            details = await tmdb.get_series_details(meta.tmdb_id)
            request = self._series_request(
                existing.id,
                meta,
                imdb_id,
                details,
                os.path.dirname(series_dir),
                series_dir=series_dir,
            )
            result = await asyncio.to_thread(self.materializer.create_series, request)
        except (ResolvarrError, ValueError) as e:
            logger.warning(f"Update of series {meta.title} failed: {e}")
            return

        if result.new_episode_count > 0:
            await asyncio.to_thread(
                self.library.request_rescan,
                result.root_dir,
                f"{result.new_episode_count} new episodes of {meta.title}",
            )


def _sidecar_metadata(meta: ExternalMetadata) -> Dict[str, Any]:
    return {
        "tmdbId": meta.tmdb_id,
        "overview": meta.overview,
        "releaseDate": meta.release_date,
        "posterUrl": meta.poster_url,
        "backdropUrl": meta.backdrop_url,
    }
