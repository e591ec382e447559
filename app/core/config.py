"""Configuration management for Resolvarr."""

from pydantic import PositiveInt, SecretStr, field_validator
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from urllib.parse import urlparse


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # TMDB
    tmdb_api_key: str | None = None
    search_number: PositiveInt = 3  # Results per media type
    include_adult: bool = False
    include_unreleased: bool = True
    unreleased_buffer_days: int = 0

    # Stremio add-on used for stream resolution
    addon_manifest_url: str | None = None
    addon_timeout: PositiveInt = 15  # Seconds

    # Base URL of this service as seen by the media server, used in .strm files
    public_base_url: str = "http://localhost:8000"

    # Library paths
    movies_library_path: str | None = None
    shows_library_path: str | None = None
    anime_library_path: str | None = None

    # STRM generation
    include_specials: bool = False
    overwrite_existing: bool = False
    create_metadata_sidecars: bool = True
    create_episode_nfo: bool = True
    metadata_extension: str = ".jfresolve.json"

    # Search result cache
    cache_timeout_seconds: PositiveInt = 300
    cache_max_entries: PositiveInt = 1024

    # When the library lookup by provider ids fails, create anyway (may duplicate)
    assume_missing_on_lookup_failure: bool = True

    # Database
    database_url: str = "sqlite:///./resolvarr.db"

    # Network settings
    # Proxy configuration in the format http://host:port or socks5://host:port
    proxy: str | None = None

    @field_validator("proxy")
    @classmethod
    def validate_proxy(cls, v: str | None) -> str | None:
        if v is None:
            return v

        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https", "socks4", "socks5", "socks5h"):
            raise ValueError(
                "Proxy must be a valid URL with scheme http/https/socks4/socks5/socks5h"
            )
        if not parsed.netloc:
            raise ValueError("Proxy must have a host and port")
        return v

    @field_validator("public_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # Basic auth (disabled unless both are set)
    auth_username: str | None = None
    auth_password: SecretStr | None = None
    # Served without credentials even when auth is on
    auth_open_paths: list[str] = ["/api/health"]
    auth_open_prefixes: list[str] = ["/api/resolve/"]

    # App settings
    debug: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
