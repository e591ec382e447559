"""Media models for TMDB data and cached search results."""

from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict

ANIME_GENRE_ID = 16


class MediaKind(str, Enum):
    """Kind of a discoverable title."""

    MOVIE = "Movie"
    SERIES = "Series"


class ExternalMetadata(BaseModel):
    """A TMDB search result, cached until it is materialized or expires."""

    model_config = ConfigDict(frozen=True)

    tmdb_id: int
    kind: MediaKind
    title: str
    year: Optional[int] = None
    overview: str = ""
    poster_url: Optional[str] = None
    backdrop_url: Optional[str] = None
    release_date: Optional[str] = None
    popularity: float = 0.0
    genre_ids: List[int] = []
    is_anime: bool = False
    provider_ids: Dict[str, str] = {}

    @property
    def imdb_id(self) -> Optional[str]:
        """Cross-reference id used against the stream add-on."""
        return self.provider_ids.get("Imdb")

    @property
    def stream_id(self) -> Optional[str]:
        return self.imdb_id

    def with_imdb_id(self, imdb_id: str) -> "ExternalMetadata":
        return self.model_copy(
            update={"provider_ids": {**self.provider_ids, "Imdb": imdb_id}}
        )


class Episode(BaseModel):
    """An episode in a TV series."""

    episode_number: int
    name: str
    overview: str = ""
    air_date: Optional[str] = None
    runtime: Optional[int] = None


class Season(BaseModel):
    """A season of a TV series."""

    season_number: int
    name: str
    episode_count: int
    episodes: List[Episode] = []
    air_date: Optional[str] = None
    overview: str = ""


class SeriesDetails(BaseModel):
    """A TV series with full TMDB data including seasons."""

    id: int
    title: str
    first_air_date: Optional[str] = None
    number_of_seasons: int = 0
    number_of_episodes: int = 0
    seasons: List[Season] = []
    status: str = ""  # e.g., "Returning Series", "Ended"
