"""Short-lived cache bridging virtual search results to library lookups."""

import logging
import threading
import time
import uuid
from typing import Callable, NamedTuple

from cachetools import TTLCache

from app.models.media import ExternalMetadata

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300.0


class CacheEntry(NamedTuple):
    metadata: ExternalMetadata
    cached_at: float


class MetadataCache:
    """Identifier -> ExternalMetadata store with expiration on read.

    Entries older than ``timeout`` seconds are treated as absent. There is no
    background sweep; ``maxsize`` bounds memory and ``clear`` resets it.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        maxsize: int = 1024,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.timeout = timeout
        self._timer = timer
        # TTLCache bounds size and purges stale entries; get() enforces the timeout
        self._entries: TTLCache[uuid.UUID, CacheEntry] = TTLCache(
            maxsize=maxsize, ttl=timeout + 1, timer=timer
        )
        self._lock = threading.RLock()

    def put(self, item_id: uuid.UUID, metadata: ExternalMetadata) -> None:
        with self._lock:
            self._entries[item_id] = CacheEntry(metadata, self._timer())

    def get(self, item_id: uuid.UUID) -> ExternalMetadata | None:
        with self._lock:
            entry = self._entries.get(item_id)
            if entry is None:
                return None
            if self._timer() - entry.cached_at > self.timeout:
                del self._entries[item_id]
                return None
        return entry.metadata

    def remove(self, item_id: uuid.UUID) -> None:
        with self._lock:
            self._entries.pop(item_id, None)

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info(f"Cleared metadata cache ({count} entries)")
        return count

    def __contains__(self, item_id: uuid.UUID) -> bool:
        return self.get(item_id) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
