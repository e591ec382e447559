"""TMDB service for searching titles and fetching series details."""

import asyncio
from datetime import date, timedelta
from cachetools import cached
from cachetools import TTLCache
from typing import List, Optional
from enum import Enum

import tmdbsimple as tmdb

from app.core.config import get_settings, Settings
from app.core.errors import ConfigurationMissing, TMDBError
from app.models.media import (
    ANIME_GENRE_ID,
    Episode,
    ExternalMetadata,
    MediaKind,
    Season,
    SeriesDetails,
)
import logging
import requests

logger = logging.getLogger(__name__)

series_cache = TTLCache(maxsize=100, ttl=1800)

POSTER_BASE = "https://image.tmdb.org/t/p/w500"
BACKDROP_BASE = "https://image.tmdb.org/t/p/w780"


class MediaType(str, Enum):
    """Media type for search."""

    MOVIE = "movie"
    SERIES = "tv"
    ALL = "all"


def _tmdb_path(kind: MediaKind) -> str:
    return MediaType.MOVIE.value if kind is MediaKind.MOVIE else MediaType.SERIES.value


def _configure() -> Settings:
    """Apply the API key, failing before any network I/O when it is absent."""
    settings = get_settings()
    if not settings.tmdb_api_key:
        raise ConfigurationMissing("TMDB API key not configured")
    tmdb.API_KEY = settings.tmdb_api_key
    return settings


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def _parse_search_result(
    item: dict, kind: MediaKind, settings: Settings
) -> Optional[ExternalMetadata]:
    """Parse a TMDB search result; None when it is filtered out."""
    if "id" not in item:
        return None

    if kind is MediaKind.MOVIE:
        title = item.get("title")
        release_date = item.get("release_date") or None
    else:
        title = item.get("name")
        release_date = item.get("first_air_date") or None
    if not title or not title.strip():
        return None

    released = _parse_date(release_date)
    if not settings.include_unreleased and released is not None:
        cutoff = date.today() + timedelta(days=settings.unreleased_buffer_days)
        if released > cutoff:
            logger.debug(f"Filtering unreleased item: {title} ({release_date})")
            return None

    poster_path = item.get("poster_path")
    backdrop_path = item.get("backdrop_path")
    genre_ids = item.get("genre_ids") or []

    return ExternalMetadata(
        tmdb_id=item["id"],
        kind=kind,
        title=title,
        year=released.year if released else None,
        overview=item.get("overview") or "",
        poster_url=f"{POSTER_BASE}{poster_path}" if poster_path else None,
        backdrop_url=f"{BACKDROP_BASE}{backdrop_path}" if backdrop_path else None,
        release_date=release_date,
        popularity=item.get("popularity") or 0.0,
        genre_ids=genre_ids,
        is_anime=ANIME_GENRE_ID in genre_ids,
        provider_ids={"Tmdb": str(item["id"])},
    )


def _search_kind_sync(query: str, kind: MediaKind) -> List[ExternalMetadata]:
    """Search TMDB for one media kind (synchronous)."""
    settings = _configure()
    search = tmdb.Search()
    try:
        if kind is MediaKind.MOVIE:
            response = search.movie(query=query, include_adult=settings.include_adult)
        else:
            response = search.tv(query=query, include_adult=settings.include_adult)
    except requests.exceptions.RequestException as exc:
        raise TMDBError(f"Error searching {kind.value} for '{query}'", exc) from exc

    results = []
    for item in response.get("results", []):
        if len(results) >= settings.search_number:
            break
        meta = _parse_search_result(item, kind, settings)
        if meta is not None:
            results.append(meta)
    return results


async def search_kind(query: str, kind: MediaKind) -> List[ExternalMetadata]:
    """Search TMDB for one media kind (async)."""
    return await asyncio.to_thread(_search_kind_sync, query, kind)


async def search_tmdb(
    query: str, media_type: MediaType = MediaType.ALL
) -> List[ExternalMetadata]:
    """Search TMDB based on media type.

    Movie and series sub-queries are independent: a failing one is logged and
    skipped while the other still returns results.
    """
    if not query or not query.strip():
        return []
    _configure()

    if media_type == MediaType.MOVIE:
        kinds = [MediaKind.MOVIE]
    elif media_type == MediaType.SERIES:
        kinds = [MediaKind.SERIES]
    else:
        kinds = [MediaKind.MOVIE, MediaKind.SERIES]

    outcomes = await asyncio.gather(
        *[search_kind(query, kind) for kind in kinds], return_exceptions=True
    )

    results: List[ExternalMetadata] = []
    for kind, outcome in zip(kinds, outcomes):
        if isinstance(outcome, TMDBError):
            logger.error(
                f"TMDB {kind.value} search failed for '{query}': {outcome}"
            )
            continue
        if isinstance(outcome, BaseException):
            raise outcome
        results.extend(outcome)
    return results


def _get_external_ids_sync(kind: MediaKind, tmdb_id: int) -> Optional[str]:
    """Look up the IMDb cross-reference for a TMDB item (synchronous)."""
    _configure()
    api = tmdb.Movies(tmdb_id) if kind is MediaKind.MOVIE else tmdb.TV(tmdb_id)
    try:
        ids = api.external_ids()
    except requests.exceptions.RequestException as exc:
        raise TMDBError(
            f"Failed to fetch external ids for {_tmdb_path(kind)} {tmdb_id}", exc
        ) from exc
    return ids.get("imdb_id") or None


async def get_external_ids(kind: MediaKind, tmdb_id: int) -> Optional[str]:
    """Look up the IMDb cross-reference for a TMDB item (async)."""
    return await asyncio.to_thread(_get_external_ids_sync, kind, tmdb_id)


def _get_season_episodes_sync(tmdb_id: int, season_number: int) -> List[Episode]:
    """Fetch episodes for a specific season (synchronous)."""
    season_api = tmdb.TV_Seasons(tmdb_id, season_number)
    try:
        info = season_api.info()
    except requests.exceptions.RequestException as exc:
        raise TMDBError(
            f"Failed to fetch season episodes for ID {tmdb_id} S{season_number}", exc
        ) from exc

    episodes = []
    for ep in info.get("episodes", []):
        episodes.append(
            Episode(
                episode_number=ep["episode_number"],
                name=ep.get("name") or f"Episode {ep['episode_number']}",
                overview=ep.get("overview") or "",
                air_date=ep.get("air_date"),
                runtime=ep.get("runtime"),
            )
        )

    return episodes


@cached(series_cache)
def _get_series_details_sync(tmdb_id: int) -> SeriesDetails:
    """Fetch series details with seasons and episodes (blocking, cached)."""
    _configure()
    tv_api = tmdb.TV(tmdb_id)
    try:
        info = tv_api.info()
    except requests.exceptions.RequestException as exc:
        raise TMDBError(
            f"Failed to fetch series details for ID {tmdb_id}", exc
        ) from exc

    seasons = []
    for s in sorted(info.get("seasons", []), key=lambda s: s.get("season_number", 0)):
        if "season_number" not in s:
            continue
        number = s["season_number"]
        episode_count = s.get("episode_count") or 0
        # One failing season must not drop the others
        try:
            episodes = _get_season_episodes_sync(tmdb_id, number)
        except TMDBError as exc:
            logger.warning(
                f"Falling back to episode count for {tmdb_id} S{number}: {exc}"
            )
            episodes = [
                Episode(episode_number=n, name=f"Episode {n}")
                for n in range(1, episode_count + 1)
            ]
        seasons.append(
            Season(
                season_number=number,
                name=s.get("name") or f"Season {number}",
                episode_count=episode_count,
                air_date=s.get("air_date"),
                overview=s.get("overview") or "",
                episodes=episodes,
            )
        )

    return SeriesDetails(
        id=info["id"],
        title=info.get("name", "Unknown"),
        first_air_date=info.get("first_air_date"),
        number_of_seasons=info.get("number_of_seasons", 0),
        number_of_episodes=info.get("number_of_episodes", 0),
        seasons=seasons,
        status=info.get("status", ""),
    )


async def get_series_details(tmdb_id: int) -> SeriesDetails:
    """Fetch full TV series details including seasons and episodes (async)."""
    return await asyncio.to_thread(_get_series_details_sync, tmdb_id)
