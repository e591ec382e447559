"""Library store: real items written by the pipeline and queued rescans.

All methods block; async callers go through ``asyncio.to_thread``.
"""

import logging
import threading
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from app.core.database import create_db_and_tables
from app.core.errors import DuplicateDetectionFailure, ResolvarrError
from app.models.library import LibraryItem, LibraryProviderId, ScanRequest
from app.models.media import MediaKind

logger = logging.getLogger(__name__)


class LibraryStore:
    """SQLModel-backed view of the media library."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._write_lock = threading.Lock()
        create_db_and_tables(engine)

    def find_by_provider_ids(
        self, kind: MediaKind, provider_ids: Dict[str, str]
    ) -> Optional[LibraryItem]:
        """First real item of ``kind`` sharing any provider id.

        Provider names compare case-insensitively; values compare exactly.
        """
        pairs = [(k.lower(), v) for k, v in provider_ids.items() if k and v]
        if not pairs:
            return None

        try:
            with Session(self.engine) as session:
                for provider, value in pairs:
                    query = (
                        select(LibraryItem)
                        .join(LibraryProviderId)
                        .where(LibraryItem.kind == kind)
                        .where(col(LibraryItem.is_virtual).is_(False))
                        .where(func.lower(LibraryProviderId.provider) == provider)
                        .where(LibraryProviderId.value == value)
                    )
                    item = session.exec(query).first()
                    if item is not None:
                        return item
        except SQLAlchemyError as exc:
            raise DuplicateDetectionFailure(
                f"Library lookup failed for {kind.value} {provider_ids}", exc
            ) from exc
        return None

    def get(self, item_id: str) -> Optional[LibraryItem]:
        with Session(self.engine) as session:
            return session.get(LibraryItem, str(item_id))

    def create_item(
        self,
        item_id: str,
        kind: MediaKind,
        name: str,
        path: str,
        year: Optional[int] = None,
        overview: str = "",
        provider_ids: Optional[Dict[str, str]] = None,
    ) -> LibraryItem:
        """Insert a real item; an existing row with the same id is returned as-is."""
        item_id = str(item_id)
        with self._write_lock:
            try:
                with Session(self.engine, expire_on_commit=False) as session:
                    existing = session.get(LibraryItem, item_id)
                    if existing is not None:
                        logger.debug(f"Library item {item_id} already exists")
                        return existing

                    item = LibraryItem(
                        id=item_id,
                        kind=kind,
                        name=name,
                        year=year,
                        overview=overview or "",
                        path=path,
                        is_virtual=False,
                    )
                    item.provider_ids = [
                        LibraryProviderId(provider=k, value=v)
                        for k, v in (provider_ids or {}).items()
                        if k and v
                    ]
                    session.add(item)
                    session.commit()
                    logger.info(f"Created library item {name} ({item_id}) at {path}")
                    return item
            except SQLAlchemyError as exc:
                raise ResolvarrError(
                    f"Failed to create library item {item_id}", exc
                ) from exc

    def request_rescan(self, path: str, reason: str = "") -> ScanRequest:
        with Session(self.engine, expire_on_commit=False) as session:
            scan = ScanRequest(path=path, reason=reason)
            session.add(scan)
            session.commit()
        logger.info(f"Queued library rescan of {path} ({reason})")
        return scan

    def pending_scans(self) -> List[ScanRequest]:
        with Session(self.engine) as session:
            query = (
                select(ScanRequest)
                .where(col(ScanRequest.processed).is_(False))
                .order_by(col(ScanRequest.requested_at))
            )
            return list(session.exec(query).all())
