import logging
from typing import Any, Dict, List, Optional

import requests
import spotipy
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.exceptions import SpotifyException
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from playlist_converter.crosscutting.config import get_spotify_scope_string
from playlist_converter.domain.entities import AuthTokens, CreatedPlaylist, SearchCandidate, UserProfile
from playlist_converter.domain.errors import (
    AuthError, BatchAddError, PlaylistCreateError, RateLimited, SearchTransportError,
)
from playlist_converter.domain.ports import AuthClient, DestinationPlatformClient

logger = logging.getLogger(__name__)

TOKEN_URL = 'https://accounts.spotify.com/api/token'
REQUESTS_TIMEOUT = 15


def _retry_after_ms(error: SpotifyException) -> int:
    headers = getattr(error, 'headers', None) or {}
    try:
        return int(headers.get('Retry-After', 1)) * 1000
    except (TypeError, ValueError):
        return 1000


class SpotifyDestinationClient(DestinationPlatformClient):
    """Spotify Web API adapter bound to one caller's access token."""

    def __init__(self, access_token: str, client: Optional[spotipy.Spotify] = None):
        """Initialize the client.

        Args:
            access_token: Caller's Spotify access token
            client: Prebuilt spotipy client; built from `access_token` when omitted
        """
        self._client = client or spotipy.Spotify(auth=access_token, requests_timeout=REQUESTS_TIMEOUT)

    def _track_to_candidate(self, spotify_track: Dict[str, Any]) -> Optional[SearchCandidate]:
        """Convert a Spotify track object to a SearchCandidate.

        Returns:
            SearchCandidate, or None when the object has no usable URI
        """
        track_id = spotify_track.get('id')
        uri = spotify_track.get('uri') or (f"spotify:track:{track_id}" if track_id else None)
        if not uri:
            return None
        artists = [a.get('name', '') for a in spotify_track.get('artists') or [] if a and a.get('name')]
        return SearchCandidate(
            uri=uri,
            id=track_id,
            title=spotify_track.get('name', ''),
            artists=tuple(artists),
            duration_ms=int(spotify_track.get('duration_ms') or 0),
            preview_url=spotify_track.get('preview_url'),
        )

    def search_tracks(self, query: str, limit: int, market: str) -> List[SearchCandidate]:
        """Search tracks and return candidates in Spotify's relevance order.

        Raises:
            RateLimited: On HTTP 429
            SearchTransportError: On any other API or network failure
        """
        logger.debug(f"Searching: {query} (market={market}, limit={limit})")
        try:
            results = self._client.search(q=query, type='track', limit=limit, market=market)
        except SpotifyException as e:
            if e.http_status == 429:
                raise RateLimited(retry_after_ms=_retry_after_ms(e), message=f"Spotify search rate limited: {e.msg}")
            raise SearchTransportError(f"Spotify search failed (HTTP {e.http_status}): {e.msg}") from e
        except requests.exceptions.RequestException as e:
            raise SearchTransportError(f"Spotify search failed: {e}") from e

        items = ((results or {}).get('tracks') or {}).get('items') or []
        candidates = []
        for item in items:
            if not item:
                continue
            candidate = self._track_to_candidate(item)
            if candidate is not None:
                candidates.append(candidate)
        return candidates

    def get_current_user(self) -> UserProfile:
        """Return the profile of the token owner.

        Raises:
            PlaylistCreateError: If the profile cannot be read
        """
        try:
            me = self._client.current_user()
        except (SpotifyException, requests.exceptions.RequestException) as e:
            raise PlaylistCreateError(f"Failed to read Spotify profile: {e}") from e
        return UserProfile(id=me['id'], display_name=me.get('display_name'))

    def create_playlist(self, user_id: str, name: str, description: str, public: bool = False) -> CreatedPlaylist:
        """Create an empty, non-collaborative playlist.

        Raises:
            PlaylistCreateError: If Spotify rejects the request
        """
        try:
            result = self._client.user_playlist_create(
                user_id,
                name,
                public=public,
                collaborative=False,
                description=description,
            )
        except (SpotifyException, requests.exceptions.RequestException) as e:
            raise PlaylistCreateError(f"Failed to create Spotify playlist: {e}") from e

        url = (result.get('external_urls') or {}).get('spotify') or f"https://open.spotify.com/playlist/{result['id']}"
        return CreatedPlaylist(id=result['id'], url=url, name=result.get('name', name))

    def add_tracks(self, playlist_id: str, track_ids: List[str]) -> str:
        """Append a batch of tracks.

        Raises:
            BatchAddError: If Spotify rejects the batch
        """
        try:
            result = self._client.playlist_add_items(playlist_id, list(track_ids))
        except SpotifyException as e:
            retry_after = _retry_after_ms(e) if e.http_status == 429 else None
            raise BatchAddError(f"Failed to add tracks (HTTP {e.http_status}): {e.msg}", retry_after_ms=retry_after) from e
        except requests.exceptions.RequestException as e:
            raise BatchAddError(f"Failed to add tracks: {e}") from e

        if not result or 'snapshot_id' not in result:
            raise BatchAddError("Spotify did not acknowledge the added tracks")
        return result['snapshot_id']


class SpotifyAuthClient(AuthClient):
    """Spotify authorization-code flow."""

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str,
                 oauth: Optional[SpotifyOAuth] = None):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self._oauth = oauth or SpotifyOAuth(
            client_id=client_id,
            client_secret=client_secret,
            redirect_uri=redirect_uri,
            scope=get_spotify_scope_string(),
            open_browser=False,
            cache_handler=MemoryCacheHandler(),
        )

    def login(self) -> str:
        url = self._oauth.get_authorize_url()
        logger.info("Generated Spotify authorization URL")
        return url

    def exchange(self, code: str) -> AuthTokens:
        """Exchange an authorization code for tokens and the user's profile.

        Raises:
            AuthError: If the code is rejected or the profile cannot be read
        """
        data = {
            'grant_type': 'authorization_code',
            'code': code,
            'redirect_uri': self.redirect_uri,
            'client_id': self.client_id,
            'client_secret': self.client_secret,
        }
        try:
            response = requests.post(TOKEN_URL, data=data, timeout=REQUESTS_TIMEOUT)
        except requests.exceptions.RequestException as e:
            raise AuthError(f"Failed to authenticate with Spotify: {e}") from e

        if response.status_code != 200:
            logger.error(f"Token exchange failed: HTTP {response.status_code}")
            raise AuthError("Failed to authenticate with Spotify")

        tokens = response.json()
        access_token = tokens.get('access_token')
        if not access_token:
            raise AuthError("Failed to authenticate with Spotify: no access token returned")

        try:
            me = spotipy.Spotify(auth=access_token, requests_timeout=REQUESTS_TIMEOUT).current_user()
        except (SpotifyException, requests.exceptions.RequestException) as e:
            raise AuthError(f"Failed to read Spotify profile: {e}") from e

        logger.info(f"Authenticated Spotify user {me.get('id')}")
        return AuthTokens(
            access_token=access_token,
            refresh_token=tokens.get('refresh_token', ''),
            user_id=me['id'],
            display_name=me.get('display_name'),
            email=me.get('email'),
        )

    def refresh(self, refresh_token: str) -> str:
        """Return a new access token for `refresh_token`.

        Raises:
            AuthError: If Spotify rejects the refresh token
        """
        try:
            token_info = self._oauth.refresh_access_token(refresh_token)
        except (SpotifyOauthError, requests.exceptions.RequestException) as e:
            raise AuthError(f"Failed to refresh access token: {e}") from e

        if not token_info or 'access_token' not in token_info:
            raise AuthError("Failed to refresh access token: invalid response")
        logger.info("Spotify access token refreshed")
        return token_info['access_token']
