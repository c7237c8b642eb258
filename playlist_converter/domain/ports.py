from __future__ import annotations

from typing import List, Optional, Protocol

from .entities import AuthTokens, CreatedPlaylist, SearchCandidate, SourcePage, UserProfile


class AuthClient(Protocol):
    """Port for the destination platform's OAuth flow."""

    def login(self) -> str:
        """Return the URL the user must visit to authorize the application."""

    def exchange(self, code: str) -> AuthTokens:
        """Trade an authorization code for tokens and the user's profile."""

    def refresh(self, refresh_token: str) -> str:
        """Return a fresh access token."""


class SourcePlatformClient(Protocol):
    """Port for reading playlists from the source platform."""

    def list_playlist_items(self, playlist_id: str, page_token: Optional[str] = None) -> SourcePage:
        """Return one page of playlist items and the cursor of the next page, if any."""


class DestinationPlatformClient(Protocol):
    """Port for searching and writing on the destination platform.

    Implementations are bound to a single caller's credentials.
    """

    def search_tracks(self, query: str, limit: int, market: str) -> List[SearchCandidate]:
        """Return up to `limit` candidates in the platform's relevance order."""

    def get_current_user(self) -> UserProfile:
        """Return the profile owning the bound credentials."""

    def create_playlist(self, user_id: str, name: str, description: str, public: bool = False) -> CreatedPlaylist:
        """Create an empty playlist owned by `user_id`."""

    def add_tracks(self, playlist_id: str, track_ids: List[str]) -> str:
        """Append tracks to a playlist and return the new snapshot id."""
