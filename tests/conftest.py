import pytest

from app.core.config import Settings
from app.core.database import create_db_engine
from app.models.media import ExternalMetadata, MediaKind
from app.services.library import LibraryStore
from app.services.metadata_cache import MetadataCache
from app.services.strm import StrmMaterializer


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the environment, with libraries under tmp_path."""
    return Settings(
        _env_file=None,
        tmdb_api_key="test-key",
        addon_manifest_url="stremio://addon.example/manifest.json",
        public_base_url="http://resolvarr:8000",
        movies_library_path=str(tmp_path / "movies"),
        shows_library_path=str(tmp_path / "shows"),
        anime_library_path=None,
        database_url="sqlite://",
        auth_username=None,
        auth_password=None,
    )


@pytest.fixture
def cache():
    return MetadataCache(timeout=300)


@pytest.fixture
def library():
    store = LibraryStore(create_db_engine("sqlite://"))
    yield store
    store.engine.dispose()


@pytest.fixture
def materializer():
    return StrmMaterializer()


@pytest.fixture
def movie_meta():
    return ExternalMetadata(
        tmdb_id=100,
        kind=MediaKind.MOVIE,
        title="Foo",
        year=2020,
        overview="A film about foo.",
        poster_url="https://image.tmdb.org/t/p/w500/foo.jpg",
        backdrop_url="https://image.tmdb.org/t/p/w780/foo-bg.jpg",
        provider_ids={"Tmdb": "100", "Imdb": "tt0000100"},
    )


@pytest.fixture
def series_meta():
    return ExternalMetadata(
        tmdb_id=200,
        kind=MediaKind.SERIES,
        title="Bar",
        year=2019,
        provider_ids={"Tmdb": "200", "Imdb": "tt0000200"},
    )
