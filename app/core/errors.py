"""Domain exceptions shared across the resolution pipeline."""


class ResolvarrError(Exception):
    """Base class for pipeline failures."""

    def __init__(self, message: str, original_exception: Exception | None = None):
        super().__init__(message)
        self.original_exception = original_exception


class ConfigurationMissing(ResolvarrError):
    """A required endpoint, credential or library path is not configured."""


class UpstreamUnavailable(ResolvarrError):
    """Network failure or non-success status from TMDB or the add-on."""


class TMDBError(UpstreamUnavailable):
    """Domain exception for TMDB failures."""


class StreamResolutionError(ResolvarrError):
    """The add-on answered but offered nothing playable."""


class NoStreamsFound(StreamResolutionError):
    pass


class MissingStreamUrl(StreamResolutionError):
    pass


class DuplicateDetectionFailure(ResolvarrError):
    """The library query by provider ids failed."""


class MaterializationFailed(ResolvarrError):
    """No playable pointer file could be produced for an item."""
