"""Persisted library entries and queued rescans."""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel
from sqlmodel import Field, Relationship, SQLModel

from app.models.media import ExternalMetadata, MediaKind


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LibraryItem(SQLModel, table=True):
    """A real (non-virtual) library entry backed by files on disk."""

    __tablename__ = "library_item"

    id: str = Field(primary_key=True)
    kind: MediaKind = Field(index=True)
    name: str
    year: Optional[int] = None
    overview: str = ""
    path: str
    is_virtual: bool = False
    created_at: datetime = Field(default_factory=_utcnow)

    provider_ids: List["LibraryProviderId"] = Relationship(
        back_populates="item",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "lazy": "selectin"},
    )

    def provider_map(self) -> Dict[str, str]:
        return {p.provider: p.value for p in self.provider_ids}


class LibraryProviderId(SQLModel, table=True):
    """External id attached to a library item (Tmdb, Imdb, ...)."""

    __tablename__ = "library_provider_id"

    id: Optional[int] = Field(default=None, primary_key=True)
    item_id: str = Field(foreign_key="library_item.id", index=True)
    provider: str = Field(index=True)
    value: str = Field(index=True)

    item: Optional[LibraryItem] = Relationship(back_populates="provider_ids")


class ScanRequest(SQLModel, table=True):
    """A folder the host scanner should pick up again."""

    __tablename__ = "scan_request"

    id: Optional[int] = Field(default=None, primary_key=True)
    path: str
    reason: str = ""
    requested_at: datetime = Field(default_factory=_utcnow)
    processed: bool = False


class ItemView(BaseModel):
    """Library or virtual item as returned by the API."""

    id: str
    kind: MediaKind
    name: str
    year: Optional[int] = None
    overview: str = ""
    path: Optional[str] = None
    poster_url: Optional[str] = None
    backdrop_url: Optional[str] = None
    provider_ids: Dict[str, str] = {}
    is_virtual: bool = False

    @classmethod
    def from_item(cls, item: LibraryItem) -> "ItemView":
        return cls(
            id=item.id,
            kind=item.kind,
            name=item.name,
            year=item.year,
            overview=item.overview,
            path=item.path,
            provider_ids=item.provider_map(),
            is_virtual=item.is_virtual,
        )


class VirtualItem(ItemView):
    """A search result not yet backed by library files."""

    is_virtual: bool = True

    @classmethod
    def from_metadata(cls, item_id, meta: ExternalMetadata) -> "VirtualItem":
        return cls(
            id=str(item_id),
            kind=meta.kind,
            name=meta.title,
            year=meta.year,
            overview=meta.overview,
            poster_url=meta.poster_url,
            backdrop_url=meta.backdrop_url,
            provider_ids=dict(meta.provider_ids),
        )


class PlaybackInfo(BaseModel):
    """Where a real library item's media lives."""

    item_id: str
    path: str
    stream_url: Optional[str] = None
