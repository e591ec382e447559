"""Client for Stremio-protocol add-ons and stream URL resolution."""

import logging
from enum import Enum
from typing import Any, List

import niquests

from app.core.errors import (
    ConfigurationMissing,
    MissingStreamUrl,
    NoStreamsFound,
    UpstreamUnavailable,
)
from app.models.stremio import StremioCatalogItem, StremioManifest, StremioStream

logger = logging.getLogger(__name__)


class StreamType(str, Enum):
    """Add-on content types with a dedicated stream path."""

    MOVIE = "movie"
    SERIES = "series"

    @classmethod
    def parse(cls, value: str) -> "StreamType | str":
        """Known types become members; anything else is passed through as-is."""
        try:
            return cls(value.lower())
        except ValueError:
            return value


def normalize_manifest_url(manifest_url: str | None) -> str:
    """Reduce an advertised add-on location to ``https://host/path``."""
    if not manifest_url or not manifest_url.strip():
        raise ConfigurationMissing("Addon manifest URL is not configured")

    sanitized = manifest_url.strip()
    if sanitized.lower().endswith("manifest.json"):
        sanitized = sanitized[: -len("manifest.json")]
    for prefix in ("stremio://", "https://", "http://"):
        if sanitized.lower().startswith(prefix):
            sanitized = sanitized[len(prefix) :]
            break
    return "https://" + sanitized.strip("/")


def build_stream_path(
    base: str,
    kind: str,
    external_id: str,
    season: int | None = None,
    episode: int | None = None,
) -> str:
    base = base.rstrip("/")
    stream_type = StreamType.parse(kind)
    if stream_type is StreamType.SERIES:
        if season is None or episode is None:
            raise ValueError("Season and episode are required for series streams.")
        return f"{base}/stream/series/{external_id}:{season}:{episode}.json"
    if stream_type is StreamType.MOVIE:
        return f"{base}/stream/movie/{external_id}.json"
    return f"{base}/stream/{kind}/{external_id}.json"


def build_catalog_path(base: str, catalog_type: str, catalog_id: str) -> str:
    return f"{base.rstrip('/')}/catalog/{catalog_type}/{catalog_id}.json"


class StremioAddonClient:
    """Lightweight client for the add-on's manifest, catalog and stream routes.

    The client never retries; the first failure is surfaced to the caller.
    """

    def __init__(
        self,
        manifest_url: str | None,
        timeout: float = 15,
        proxy: str | None = None,
        session: niquests.AsyncSession | None = None,
    ) -> None:
        self._manifest_url = manifest_url
        self.timeout = timeout
        if session is None:
            session = niquests.AsyncSession(retries=0)
            if proxy:
                session.proxies = {"http": proxy, "https": proxy}
        self.session = session

    @property
    def base_url(self) -> str:
        return normalize_manifest_url(self._manifest_url)

    async def aclose(self) -> None:
        """Properly close the internal HTTP session."""
        if self.session:
            await self.session.close()

    async def _get_json(self, url: str) -> Any:
        logger.debug(f"Fetching {url}")
        try:
            response = await self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except niquests.exceptions.RequestException as exc:
            raise UpstreamUnavailable(f"Add-on request failed for {url}", exc) from exc
        except ValueError as exc:
            raise UpstreamUnavailable(f"Invalid JSON from {url}", exc) from exc

    async def get_manifest(self) -> StremioManifest:
        data = await self._get_json(f"{self.base_url}/manifest.json")
        return StremioManifest.model_validate(data or {})

    async def get_catalog(
        self, catalog_type: str, catalog_id: str
    ) -> List[StremioCatalogItem]:
        if not catalog_type or not catalog_id:
            raise ValueError("Catalog type and identifier are required")
        data = await self._get_json(
            build_catalog_path(self.base_url, catalog_type, catalog_id)
        )
        items = []
        for meta in (data or {}).get("metas") or []:
            if not isinstance(meta, dict):
                continue
            if not all(meta.get(k) for k in ("id", "type", "name")):
                continue
            items.append(StremioCatalogItem.model_validate(meta))
        return items

    async def get_streams(
        self,
        kind: str,
        external_id: str,
        season: int | None = None,
        episode: int | None = None,
    ) -> List[StremioStream]:
        url = build_stream_path(self.base_url, kind, external_id, season, episode)
        logger.info(f"Requesting stream from: {url}")
        data = await self._get_json(url)
        streams = data.get("streams") if isinstance(data, dict) else None
        return [
            StremioStream.model_validate(s)
            for s in streams or []
            if isinstance(s, dict)
        ]

    async def resolve_stream_url(
        self,
        kind: str,
        external_id: str,
        season: int | None = None,
        episode: int | None = None,
    ) -> str:
        """Return the first playable URL the add-on offers."""
        streams = await self.get_streams(kind, external_id, season, episode)
        if not streams:
            raise NoStreamsFound(f"No streams found for {external_id}")
        url = streams[0].url
        if not url or not url.strip():
            raise MissingStreamUrl(f"No stream URL available for {external_id}")
        logger.info(f"Resolved {kind}/{external_id} to {url}")
        return url
