"""API routes returning JSON for the media server and external tools."""

import asyncio
import logging
import os
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse

from app.core.dependencies import Services, get_services
from app.core.errors import (
    ConfigurationMissing,
    ResolvarrError,
    StreamResolutionError,
    UpstreamUnavailable,
)
from app.models.library import ItemView, PlaybackInfo, ScanRequest, VirtualItem
from app.models.stremio import StremioCatalogItem, StremioManifest
from app.services.orchestrator import Ephemeral, PassThrough, Redirected
from app.services.tmdb import MediaType

logger = logging.getLogger(__name__)

router = APIRouter()

POSTER_TYPES = {"primary", "poster", "thumb"}
BACKDROP_TYPES = {"backdrop", "banner", "art"}


def _http_error(exc: ResolvarrError) -> HTTPException:
    """Map a pipeline failure onto an HTTP status."""
    if isinstance(exc, ConfigurationMissing):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, StreamResolutionError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, UpstreamUnavailable):
        return HTTPException(status_code=502, detail=str(exc))
    logger.exception("Unexpected pipeline error", exc_info=exc)
    return HTTPException(status_code=500, detail=str(exc))


def _parse_item_id(item_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(item_id)
    except ValueError:
        raise HTTPException(status_code=404, detail="Item not found")


def _read_pointer(path: str) -> Optional[str]:
    if not path.endswith(".strm") or not os.path.isfile(path):
        return None
    with open(path, encoding="utf-8") as fh:
        return fh.readline().strip() or None


@router.get("/search", response_model=List[VirtualItem])
async def api_search(
    q: str = Query(..., description="Search query"),
    media_type: str = Query("all", description="Media type: movie, tv, or all"),
    services: Services = Depends(get_services),
):
    """Search TMDB; every result is cached so it can be opened later."""
    if media_type == "movie":
        mt = MediaType.MOVIE
    elif media_type == "tv":
        mt = MediaType.SERIES
    else:
        mt = MediaType.ALL

    try:
        return await services.search.search(q, mt)
    except ResolvarrError as e:
        raise _http_error(e) from e


@router.get("/items/{item_id}", response_model=ItemView)
async def get_item(item_id: str, services: Services = Depends(get_services)):
    """Open an item, materializing it first if it is a cached search result."""
    item_uuid = _parse_item_id(item_id)
    outcome = await services.orchestrator.resolve(item_uuid)

    match outcome:
        case Ephemeral(metadata=meta):
            return VirtualItem.from_metadata(item_uuid, meta)
        case Redirected(library_id=library_id):
            lookup_id = library_id
        case PassThrough():
            lookup_id = str(item_uuid)

    item = await asyncio.to_thread(services.library.get, lookup_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Item not found")
    return ItemView.from_item(item)


@router.get("/items/{item_id}/playback", response_model=PlaybackInfo)
async def get_playback(
    item_id: str,
    season: Optional[int] = Query(None, ge=0),
    episode: Optional[int] = Query(None, ge=0),
    services: Services = Depends(get_services),
):
    """Play a cached item straight from the resolver, or describe a library item."""
    item_uuid = _parse_item_id(item_id)
    target = services.orchestrator.playback_target(item_uuid, season, episode)
    if target:
        return RedirectResponse(target, status_code=302)

    item = await asyncio.to_thread(services.library.get, str(item_uuid))
    if item is None:
        raise HTTPException(status_code=404, detail="Item not found")
    stream_url = await asyncio.to_thread(_read_pointer, item.path)
    return PlaybackInfo(item_id=item.id, path=item.path, stream_url=stream_url)


@router.get("/items/{item_id}/images/{image_type}")
async def get_item_image(
    item_id: str, image_type: str, services: Services = Depends(get_services)
):
    """Redirect to the remote artwork of a cached search result."""
    meta = services.cache.get(_parse_item_id(item_id))
    if meta is None:
        raise HTTPException(status_code=404, detail="Item not found")

    image_type = image_type.lower()
    url = None
    if image_type in POSTER_TYPES:
        url = meta.poster_url
    elif image_type in BACKDROP_TYPES:
        url = meta.backdrop_url
    if not url:
        raise HTTPException(status_code=404, detail="Image not found")
    return RedirectResponse(url, status_code=302)


@router.get("/resolve/{kind}/{external_id}")
async def resolve_stream(
    kind: str,
    external_id: str,
    season: Optional[int] = Query(None, ge=0),
    episode: Optional[int] = Query(None, ge=0),
    services: Services = Depends(get_services),
):
    """Redirect a .strm reader to the first stream the add-on offers."""
    try:
        url = await services.addon.resolve_stream_url(
            kind, external_id, season, episode
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except ResolvarrError as e:
        logger.error(f"Stream resolution failed for {kind}/{external_id}: {e}")
        raise _http_error(e) from e
    return RedirectResponse(url, status_code=302)


@router.get("/addon/manifest", response_model=StremioManifest)
async def addon_manifest(services: Services = Depends(get_services)):
    try:
        return await services.addon.get_manifest()
    except ResolvarrError as e:
        raise _http_error(e) from e


@router.get(
    "/addon/catalog/{catalog_type}/{catalog_id}",
    response_model=List[StremioCatalogItem],
)
async def addon_catalog(
    catalog_type: str, catalog_id: str, services: Services = Depends(get_services)
):
    try:
        return await services.addon.get_catalog(catalog_type, catalog_id)
    except ResolvarrError as e:
        raise _http_error(e) from e


@router.delete("/cache")
async def clear_cache(services: Services = Depends(get_services)):
    """Drop all cached search results."""
    return {"cleared": services.cache.clear()}


@router.get("/library/scans", response_model=List[ScanRequest])
async def list_scans(services: Services = Depends(get_services)):
    """Rescans queued for the library scanner."""
    return await asyncio.to_thread(services.library.pending_scans)


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "service": "resolvarr"}
