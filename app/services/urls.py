"""URLs written into .strm files, pointing back at the resolver endpoint."""

from urllib.parse import quote, urlencode

from app.services.stremio import StreamType

RESOLVE_PREFIX = "/api/resolve"


def resolver_path(
    kind: StreamType | str,
    external_id: str,
    season: int | None = None,
    episode: int | None = None,
) -> str:
    kind = getattr(kind, "value", kind)
    path = f"{RESOLVE_PREFIX}/{kind}/{quote(external_id, safe='')}"
    pairs = (("season", season), ("episode", episode))
    params = {k: v for k, v in pairs if v is not None}
    if params:
        path += "?" + urlencode(params)
    return path


def build_movie_resolver_url(base_url: str, imdb_id: str) -> str:
    return base_url.rstrip("/") + resolver_path(StreamType.MOVIE, imdb_id)


def build_series_resolver_url(
    base_url: str, imdb_id: str, season: int, episode: int
) -> str:
    return base_url.rstrip("/") + resolver_path(
        StreamType.SERIES, imdb_id, season, episode
    )
