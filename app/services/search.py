"""Search service turning TMDB results into cached virtual items."""

import asyncio
import logging

from app.core.errors import UpstreamUnavailable
from app.models.library import VirtualItem
from app.models.media import ExternalMetadata, MediaKind
from app.services import tmdb
from app.services.identity import identify
from app.services.metadata_cache import MetadataCache
from app.services.tmdb import MediaType

logger = logging.getLogger(__name__)


class SearchService:
    """Runs catalog searches and remembers the results for later resolution."""

    def __init__(self, cache: MetadataCache) -> None:
        self.cache = cache

    async def _with_imdb_id(self, meta: ExternalMetadata) -> ExternalMetadata:
        try:
            imdb_id = await tmdb.get_external_ids(meta.kind, meta.tmdb_id)
        except UpstreamUnavailable as e:
            logger.error(
                f"Error fetching IMDb id for {meta.title} ({meta.tmdb_id}): {e}"
            )
            return meta
        if not imdb_id:
            logger.debug(f"No IMDb id for {meta.title} ({meta.tmdb_id})")
            return meta
        return meta.with_imdb_id(imdb_id)

    async def search(
        self, query: str, media_type: MediaType = MediaType.ALL
    ) -> list[VirtualItem]:
        """Search TMDB, enrich every result and cache it under its identifier.

        Returns:
            Virtual items, movies first.
        """
        results = await tmdb.search_tmdb(query, media_type)
        enriched = await asyncio.gather(*[self._with_imdb_id(m) for m in results])

        items: list[VirtualItem] = []
        for meta in sorted(enriched, key=lambda m: m.kind is not MediaKind.MOVIE):
            item_id = identify(meta.kind, meta.tmdb_id)
            self.cache.put(item_id, meta)
            items.append(VirtualItem.from_metadata(item_id, meta))

        logger.info(f"Search '{query}' returned {len(items)} virtual items")
        return items
