from __future__ import annotations

import re
from enum import Enum

from playlist_converter.domain.errors import InvalidPlaylistUrlError


class Platform(str, Enum):
    YOUTUBE = "youtube"
    SPOTIFY = "spotify"
    UNKNOWN = "unknown"


_YOUTUBE_TOKENS = ("youtube.com", "youtu.be")
_SPOTIFY_TOKENS = ("spotify.com",)
_LIST_PARAM_PATTERN = re.compile(r"[?&]list=([^&#]+)")


def classify_url(url: str) -> Platform:
    """Classify a playlist URL by the platform tokens it contains."""
    value = (url or "").lower()
    if any(token in value for token in _YOUTUBE_TOKENS):
        return Platform.YOUTUBE
    if any(token in value for token in _SPOTIFY_TOKENS):
        return Platform.SPOTIFY
    return Platform.UNKNOWN


def extract_playlist_id(url: str) -> str:
    """Return the value of the `list` query parameter.

    Raises:
        InvalidPlaylistUrlError: If the URL carries no `list` parameter
    """
    match = _LIST_PARAM_PATTERN.search(url or "")
    if not match:
        raise InvalidPlaylistUrlError(
            "Invalid YouTube playlist URL: expected a 'list' parameter, e.g. "
            "https://www.youtube.com/playlist?list=<id>"
        )
    return match.group(1)
