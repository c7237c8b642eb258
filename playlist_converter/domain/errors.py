from typing import Optional


class ConversionError(Exception):
    """Base class for every failure a conversion can report to its caller."""

    code = "conversion_error"
    http_status = 500


class UnauthenticatedError(ConversionError):
    """No identity or access token was presented."""

    code = "unauthenticated"
    http_status = 401


class AuthError(ConversionError):
    """OAuth code exchange or token refresh was rejected."""

    code = "auth_failed"
    http_status = 401


class InvalidInputError(ConversionError):
    """A required request field is empty or whitespace."""

    code = "invalid_input"
    http_status = 400


class UnsupportedUrlError(ConversionError):
    """URL belongs to none of the known platforms."""

    code = "unsupported_url"
    http_status = 400


class UnsupportedDirectionError(ConversionError):
    """URL belongs to a known platform whose conversion direction is not implemented."""

    code = "unsupported_direction"
    http_status = 400


class InvalidPlaylistUrlError(ConversionError):
    """Playlist id could not be parsed from the source URL."""

    code = "invalid_playlist_url"
    http_status = 400


class SourceFetchError(ConversionError):
    """Source platform rejected the playlist read (bad id, revoked auth, quota)."""

    code = "source_fetch_failed"
    http_status = 502

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class SearchTransportError(ConversionError):
    """Destination search call failed at the transport level. Recoverable per track."""

    code = "search_failed"
    http_status = 502


class RateLimited(SearchTransportError):
    """Destination platform rate limited the call. Includes suggested wait time in milliseconds."""

    code = "rate_limited"
    http_status = 429

    def __init__(self, retry_after_ms: int, message: str = "Rate limited") -> None:
        super().__init__(message)
        self.retry_after_ms = retry_after_ms


class PlaylistCreateError(ConversionError):
    """Destination playlist could not be created. Fatal for the run."""

    code = "playlist_create_failed"
    http_status = 502


class BatchAddError(ConversionError):
    """One add-tracks batch was rejected. The playlist keeps what was already added."""

    code = "batch_add_failed"
    http_status = 502

    def __init__(self, message: str, retry_after_ms: Optional[int] = None) -> None:
        super().__init__(message)
        self.retry_after_ms = retry_after_ms
