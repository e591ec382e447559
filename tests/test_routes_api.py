from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from app.core.dependencies import Services
from app.core.errors import (
    ConfigurationMissing,
    MissingStreamUrl,
    NoStreamsFound,
    UpstreamUnavailable,
)
from app.main import create_app
from app.models.media import ExternalMetadata, MediaKind
from app.models.stremio import StremioManifest
from app.services.identity import identify


@pytest.fixture
def addon():
    client = MagicMock()
    client.resolve_stream_url = AsyncMock(return_value="https://cdn.example/foo.mkv")
    client.get_manifest = AsyncMock(
        return_value=StremioManifest(
            id="org.example", name="Example", resources=["stream"]
        )
    )
    client.get_catalog = AsyncMock(return_value=[])
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def services(settings, cache, library, materializer, addon):
    return Services(settings, cache, library, materializer, addon)


@pytest.fixture
def client(services, settings):
    with patch("app.core.auth.get_settings", return_value=settings):
        with TestClient(create_app(services)) as test_client:
            yield test_client


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "resolvarr"}


def test_search_returns_virtual_items(client, cache):
    results = [
        ExternalMetadata(
            tmdb_id=100,
            kind=MediaKind.MOVIE,
            title="Foo",
            year=2020,
            provider_ids={"Tmdb": "100"},
        )
    ]
    with patch(
        "app.services.search.tmdb.search_tmdb", AsyncMock(return_value=results)
    ) as search_mock, patch(
        "app.services.search.tmdb.get_external_ids", AsyncMock(return_value="tt0000100")
    ):
        response = client.get("/api/search?q=foo&media_type=movie")

    assert response.status_code == 200, response.text
    data = response.json()
    assert len(data) == 1
    assert data[0]["name"] == "Foo"
    assert data[0]["is_virtual"] is True
    assert data[0]["id"] == str(identify(MediaKind.MOVIE, 100))
    assert search_mock.await_args.args[1].value == "movie"
    assert identify(MediaKind.MOVIE, 100) in cache


def test_search_upstream_failure(client):
    with patch(
        "app.services.search.tmdb.search_tmdb",
        AsyncMock(side_effect=ConfigurationMissing("TMDB API key not configured")),
    ):
        response = client.get("/api/search?q=foo")
    assert response.status_code == 400


def test_open_cached_item_materializes_it(client, cache, movie_meta, tmp_path):
    item_id = identify(MediaKind.MOVIE, "100")
    cache.put(item_id, movie_meta)

    response = client.get(f"/api/items/{item_id}")

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["id"] == str(item_id)
    assert data["is_virtual"] is False
    assert data["path"] == str(tmp_path / "movies" / "Foo (2020)" / "Foo (2020).strm")
    assert item_id not in cache

    # Served from the library from now on
    assert client.get(f"/api/items/{item_id}").json()["id"] == str(item_id)


def test_open_item_ephemeral_when_library_unconfigured(
    client, cache, settings, movie_meta
):
    settings.movies_library_path = None
    item_id = identify(MediaKind.MOVIE, "100")
    cache.put(item_id, movie_meta)

    response = client.get(f"/api/items/{item_id}")

    assert response.status_code == 200
    assert response.json()["is_virtual"] is True
    assert response.json()["poster_url"] == movie_meta.poster_url


@pytest.mark.parametrize(
    "item_id", ["not-a-uuid", str(identify(MediaKind.MOVIE, "404"))]
)
def test_unknown_item(client, item_id):
    assert client.get(f"/api/items/{item_id}").status_code == 404


def test_playback_of_cached_item_redirects_to_resolver(
    client, cache, movie_meta, series_meta
):
    movie_id = identify(MediaKind.MOVIE, "100")
    series_id = identify(MediaKind.SERIES, "200")
    cache.put(movie_id, movie_meta)
    cache.put(series_id, series_meta)

    response = client.get(f"/api/items/{movie_id}/playback", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "/api/resolve/movie/tt0000100"

    response = client.get(
        f"/api/items/{series_id}/playback?season=1&episode=3", follow_redirects=False
    )
    assert (
        response.headers["location"]
        == "/api/resolve/series/tt0000200?season=1&episode=3"
    )


def test_playback_of_library_item(client, cache, movie_meta):
    item_id = identify(MediaKind.MOVIE, "100")
    cache.put(item_id, movie_meta)
    client.get(f"/api/items/{item_id}")

    response = client.get(f"/api/items/{item_id}/playback")

    assert response.status_code == 200
    data = response.json()
    assert data["item_id"] == str(item_id)
    assert data["stream_url"] == "http://resolvarr:8000/api/resolve/movie/tt0000100"


def test_item_images(client, cache, movie_meta):
    item_id = identify(MediaKind.MOVIE, "100")
    cache.put(item_id, movie_meta)

    images = f"/api/items/{item_id}/images"
    response = client.get(f"{images}/Primary", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == movie_meta.poster_url

    response = client.get(f"{images}/backdrop", follow_redirects=False)
    assert response.headers["location"] == movie_meta.backdrop_url

    assert client.get(f"/api/items/{item_id}/images/logo").status_code == 404
    other = identify(MediaKind.MOVIE, "1")
    assert client.get(f"/api/items/{other}/images/primary").status_code == 404


def test_resolve_redirects_to_stream(client, addon):
    response = client.get(
        "/api/resolve/series/tt0944947?season=1&episode=2", follow_redirects=False
    )

    assert response.status_code == 302
    assert response.headers["location"] == "https://cdn.example/foo.mkv"
    addon.resolve_stream_url.assert_awaited_once_with("series", "tt0944947", 1, 2)


@pytest.mark.parametrize(
    "error, status",
    [
        (ConfigurationMissing("Addon manifest URL is not configured"), 400),
        (ValueError("Season and episode are required for series streams."), 400),
        (NoStreamsFound("No streams found for tt1"), 404),
        (MissingStreamUrl("No stream URL available for tt1"), 404),
        (UpstreamUnavailable("Add-on request failed"), 502),
    ],
)
def test_resolve_errors(client, addon, error, status):
    addon.resolve_stream_url.side_effect = error
    response = client.get("/api/resolve/movie/tt1", follow_redirects=False)
    assert response.status_code == status
    assert response.json()["detail"] == str(error)


def test_addon_passthrough(client, addon):
    assert client.get("/api/addon/manifest").json()["id"] == "org.example"
    assert client.get("/api/addon/catalog/movie/top").json() == []
    addon.get_catalog.assert_awaited_once_with("movie", "top")

    addon.get_manifest.side_effect = UpstreamUnavailable("down")
    assert client.get("/api/addon/manifest").status_code == 502


def test_clear_cache(client, cache, movie_meta):
    cache.put(identify(MediaKind.MOVIE, "100"), movie_meta)

    response = client.delete("/api/cache")

    assert response.json() == {"cleared": 1}
    assert len(cache) == 0


def test_library_scans(client, library):
    library.request_rescan("/shows/Bar (2019)", "new episodes")

    data = client.get("/api/library/scans").json()

    assert [s["path"] for s in data] == ["/shows/Bar (2019)"]
    assert data[0]["reason"] == "new episodes"
