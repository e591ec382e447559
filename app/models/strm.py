"""Request/result models for STRM generation."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class StrmSettings(BaseModel):
    """Controls how STRM files and sidecar metadata are produced.

    ``None`` on an override falls back to the generator defaults.
    """

    overwrite_existing: Optional[bool] = None
    create_metadata_sidecars: Optional[bool] = None
    create_episode_nfo: Optional[bool] = None
    metadata_extension: Optional[str] = None
    include_specials: Optional[bool] = None


class MovieStrmRequest(BaseModel):
    title: str
    stream_url: str
    destination_dir: str
    year: Optional[int] = None
    provider_ids: Dict[str, str] = {}
    library_id: Optional[str] = None
    uri: Optional[str] = None  # Canonical identity string
    metadata: Dict[str, Any] = {}


class EpisodeStrmRequest(BaseModel):
    episode_number: int
    stream_url: str
    title: Optional[str] = None
    provider_ids: Dict[str, str] = {}
    library_id: Optional[str] = None
    metadata: Dict[str, Any] = {}


class SeasonStrmRequest(BaseModel):
    season_number: int
    episodes: List[EpisodeStrmRequest]


class SeriesStrmRequest(BaseModel):
    title: str
    destination_dir: str
    seasons: List[SeasonStrmRequest]
    # Existing show folder to write into; derived from title and year when unset
    series_dir: Optional[str] = None
    year: Optional[int] = None
    provider_ids: Dict[str, str] = {}
    library_id: Optional[str] = None
    uri: Optional[str] = None


class FileFailure(BaseModel):
    """A single write that failed inside a batch."""

    path: str
    error: str


class StrmArtifactSet(BaseModel):
    """Result returned after generating STRM artifacts."""

    root_dir: str
    created: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    failed: List[FileFailure] = Field(default_factory=list)
    new_episode_count: int = 0

    @property
    def pointer_files(self) -> List[str]:
        """All .strm files present after the call (created or pre-existing)."""
        return [p for p in self.created + self.skipped if p.endswith(".strm")]

    @property
    def succeeded(self) -> bool:
        return bool(self.pointer_files)
