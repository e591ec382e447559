"""STRM generator: pointer files, JSON sidecars and episode NFOs on disk.

Writes are best effort. Each file is written independently, existing files
are skipped unless overwrite is enabled, and any ``OSError`` is recorded on
the returned ``StrmArtifactSet`` instead of aborting the batch.
"""

import json
import logging
import os
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from xml.sax.saxutils import escape

from app.models.strm import (
    EpisodeStrmRequest,
    FileFailure,
    MovieStrmRequest,
    SeasonStrmRequest,
    SeriesStrmRequest,
    StrmArtifactSet,
    StrmSettings,
)
from app.services.identity import deterministic_id

logger = logging.getLogger(__name__)

SIDECAR_VERSION = "1.0"
DEFAULT_METADATA_EXTENSION = ".jfresolve.json"
INVALID_CHARS = re.compile(r'[\\/:*?"<>|]+')
XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}


def sanitize_name(name: str | None) -> str:
    """Make a title safe for use as a file or folder name."""
    if not name or not name.strip():
        return "Unknown"
    return " ".join(INVALID_CHARS.sub(" ", name).split()) or "Unknown"


def folder_name(title: str, year: int | None) -> str:
    """``Title (Year)`` with ``Unknown`` standing in for a missing year."""
    return sanitize_name(f"{title} ({year if year is not None else 'Unknown'})")


def season_folder_name(season_number: int) -> str:
    return f"Season {season_number:02d}"


def episode_base_name(
    series_title: str, season: int, episode: int, episode_title: str | None = None
) -> str:
    base = f"{sanitize_name(series_title)} S{season:02d}E{episode:02d}"
    if episode_title and episode_title.strip():
        base += " " + sanitize_name(episode_title)
    return base


def build_episode_nfo(
    series_title: str, season: int, episode: int, episode_title: str | None = None
) -> str:
    title = (
        episode_title
        if episode_title and episode_title.strip()
        else f"{series_title} S{season:02d}E{episode:02d}"
    )
    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
        "<episodedetails>\n"
        f"  <title>{escape(title, XML_ENTITIES)}</title>\n"
        f"  <showtitle>{escape(series_title, XML_ENTITIES)}</showtitle>\n"
        f"  <season>{season}</season>\n"
        f"  <episode>{episode}</episode>\n"
        "</episodedetails>\n"
    )


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class StrmMaterializer:
    """Creates STRM trees recognizable by a file-based library scanner."""

    def __init__(self, defaults: StrmSettings | None = None) -> None:
        self._defaults = self._resolve(defaults or StrmSettings())

    @staticmethod
    def _resolve(source: StrmSettings) -> StrmSettings:
        ext = source.metadata_extension
        if not ext or not ext.strip():
            ext = DEFAULT_METADATA_EXTENSION
        elif not ext.startswith("."):
            ext = "." + ext
        return StrmSettings(
            overwrite_existing=bool(source.overwrite_existing),
            create_metadata_sidecars=(
                True
                if source.create_metadata_sidecars is None
                else source.create_metadata_sidecars
            ),
            create_episode_nfo=(
                True if source.create_episode_nfo is None else source.create_episode_nfo
            ),
            metadata_extension=ext,
            include_specials=bool(source.include_specials),
        )

    def _merge(self, overrides: StrmSettings | None) -> StrmSettings:
        if overrides is None:
            return self._defaults
        merged = self._defaults.model_copy(
            update=overrides.model_dump(exclude_none=True)
        )
        return self._resolve(merged)

    # --- file primitives ---

    def _ensure_dir(self, path: str, result: StrmArtifactSet) -> bool:
        try:
            os.makedirs(path, exist_ok=True)
            return True
        except OSError as exc:
            logger.error(f"Failed to create directory {path}: {exc}")
            result.failed.append(FileFailure(path=path, error=str(exc)))
            return False

    def _write(
        self,
        path: str,
        content: str,
        settings: StrmSettings,
        result: StrmArtifactSet,
    ) -> bool:
        """Write one file. Returns True only if the file was (re)written."""
        if os.path.exists(path) and not settings.overwrite_existing:
            result.skipped.append(path)
            return False
        try:
            with open(path, "w", encoding="utf-8") as fh:
                fh.write(content)
        except OSError as exc:
            logger.error(f"Failed to write {path}: {exc}")
            result.failed.append(FileFailure(path=path, error=str(exc)))
            return False
        result.created.append(path)
        return True

    @staticmethod
    def _sidecar_path(strm_path: str, extension: str) -> str:
        return os.path.splitext(strm_path)[0] + extension

    @staticmethod
    def _payload(
        item_type: str,
        title: str,
        year: Optional[int],
        library_id: str,
        stream_url: Optional[str] = None,
        uri: Optional[str] = None,
        provider_ids: Optional[Dict[str, str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        **extra: Any,
    ) -> str:
        payload: Dict[str, Any] = {
            "version": SIDECAR_VERSION,
            "type": item_type,
            "title": title,
            "year": year,
            **extra,
            "createdAt": _utcnow(),
            "libraryId": library_id,
        }
        if uri:
            payload["uri"] = uri
        if stream_url:
            payload["streamUrl"] = stream_url
        payload["providerIds"] = dict(provider_ids or {})
        if metadata:
            payload["metadata"] = metadata
        return json.dumps(payload, indent=2, ensure_ascii=False)

    # --- public API ---

    def create_movie(
        self, request: MovieStrmRequest, overrides: StrmSettings | None = None
    ) -> StrmArtifactSet:
        if not request.title.strip():
            raise ValueError("Movie title is required")
        if not request.stream_url.strip():
            raise ValueError("Movie stream URL is required")
        if not request.destination_dir.strip():
            raise ValueError("Destination directory is required")

        settings = self._merge(overrides)
        name = folder_name(request.title, request.year)
        movie_dir = os.path.join(request.destination_dir, name)
        strm_path = os.path.join(movie_dir, name + ".strm")
        result = StrmArtifactSet(root_dir=movie_dir)

        if not self._ensure_dir(movie_dir, result):
            return result

        self._write(strm_path, request.stream_url + "\n", settings, result)

        if settings.create_metadata_sidecars:
            library_id = request.library_id or deterministic_id(
                "Movie", request.title, request.stream_url
            )
            self._write(
                self._sidecar_path(strm_path, settings.metadata_extension),
                self._payload(
                    "Movie",
                    request.title,
                    request.year,
                    str(library_id),
                    stream_url=request.stream_url,
                    uri=request.uri,
                    provider_ids=request.provider_ids,
                    metadata=request.metadata,
                ),
                settings,
                result,
            )

        logger.info(
            f"Movie STRM for {request.title} at {movie_dir} "
            f"({len(result.created)} created, {len(result.skipped)} skipped, "
            f"{len(result.failed)} failed)"
        )
        return result

    def create_series(
        self, request: SeriesStrmRequest, overrides: StrmSettings | None = None
    ) -> StrmArtifactSet:
        """Create (or top up) a series tree.

        Calling this again against an existing folder only writes episodes
        that are missing; ``new_episode_count`` tells the caller whether a
        rescan is worthwhile.
        """
        if not request.title.strip():
            raise ValueError("Series title is required")
        if not request.destination_dir.strip() and not request.series_dir:
            raise ValueError("Destination directory is required")
        if not request.seasons:
            raise ValueError("At least one season is required")

        settings = self._merge(overrides)
        series_dir = request.series_dir or os.path.join(
            request.destination_dir, folder_name(request.title, request.year)
        )
        result = StrmArtifactSet(root_dir=series_dir)

        if not self._ensure_dir(series_dir, result):
            return result

        for season in sorted(request.seasons, key=lambda s: s.season_number):
            if season.season_number == 0 and not settings.include_specials:
                logger.debug(f"Skipping specials for {request.title}")
                continue
            self._write_season(request, season, series_dir, settings, result)

        if settings.create_metadata_sidecars:
            library_id = request.library_id or deterministic_id(
                "Series", request.title, None
            )
            self._write(
                os.path.join(series_dir, "series" + settings.metadata_extension),
                self._payload(
                    "Series",
                    request.title,
                    request.year,
                    str(library_id),
                    uri=request.uri,
                    provider_ids=request.provider_ids,
                ),
                settings,
                result,
            )

        logger.info(
            f"Series STRM for {request.title} at {series_dir} "
            f"({result.new_episode_count} new episodes, "
            f"{len(result.failed)} failed writes)"
        )
        return result

    def _write_season(
        self,
        series: SeriesStrmRequest,
        season: SeasonStrmRequest,
        series_dir: str,
        settings: StrmSettings,
        result: StrmArtifactSet,
    ) -> None:
        season_dir = os.path.join(
            series_dir, season_folder_name(season.season_number)
        )
        if not self._ensure_dir(season_dir, result):
            return

        for episode in sorted(season.episodes, key=lambda e: e.episode_number):
            self._write_episode(
                series, season.season_number, episode, season_dir, settings, result
            )

    def _write_episode(
        self,
        series: SeriesStrmRequest,
        season_number: int,
        episode: EpisodeStrmRequest,
        season_dir: str,
        settings: StrmSettings,
        result: StrmArtifactSet,
    ) -> None:
        base = episode_base_name(
            series.title, season_number, episode.episode_number, episode.title
        )
        strm_path = os.path.join(season_dir, base + ".strm")

        if self._write(strm_path, episode.stream_url + "\n", settings, result):
            result.new_episode_count += 1

        if settings.create_metadata_sidecars:
            providers = {f"series:{k}": v for k, v in series.provider_ids.items()}
            providers.update(episode.provider_ids)
            library_id = episode.library_id or deterministic_id(
                "Episode", strm_path, episode.stream_url
            )
            self._write(
                self._sidecar_path(strm_path, settings.metadata_extension),
                self._payload(
                    "Episode",
                    series.title,
                    series.year,
                    str(library_id),
                    stream_url=episode.stream_url,
                    provider_ids=providers,
                    metadata=episode.metadata,
                    season=season_number,
                    episode=episode.episode_number,
                ),
                settings,
                result,
            )

        if settings.create_episode_nfo:
            self._write(
                os.path.splitext(strm_path)[0] + ".nfo",
                build_episode_nfo(
                    series.title, season_number, episode.episode_number, episode.title
                ),
                settings,
                result,
            )
