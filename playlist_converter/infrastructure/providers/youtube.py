import logging
from typing import Any, Dict, Optional

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from playlist_converter.domain.entities import SourcePage, TrackDescriptor, UNKNOWN_ARTIST
from playlist_converter.domain.errors import SourceFetchError
from playlist_converter.domain.ports import SourcePlatformClient

logger = logging.getLogger(__name__)

# YouTube Data API maximum for playlistItems.list
PAGE_SIZE = 50


def _http_status(error: HttpError) -> Optional[int]:
    status = getattr(getattr(error, 'resp', None), 'status', None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def _is_quota_exceeded(error: HttpError) -> bool:
    text = str(error).lower()
    return _http_status(error) == 403 and "quota" in text and "exceeded" in text


class YouTubeSourceClient(SourcePlatformClient):
    """YouTube Data API v3 adapter reading public playlist items with an API key."""

    def __init__(self, api_key: str, service: Any = None):
        """Initialize the client.

        Args:
            api_key: YouTube Data API key
            service: Prebuilt discovery service; built from `api_key` on first use when omitted
        """
        self._api_key = api_key
        self._service = service

    @property
    def service(self) -> Any:
        if self._service is None:
            if not self._api_key:
                raise SourceFetchError("YouTube API key is not configured (set YOUTUBE_API_KEY)")
            self._service = build("youtube", "v3", developerKey=self._api_key, cache_discovery=False)
        return self._service

    def list_playlist_items(self, playlist_id: str, page_token: Optional[str] = None) -> SourcePage:
        """Return one page of playlist items.

        Args:
            playlist_id: YouTube playlist id
            page_token: Cursor returned by the previous page

        Returns:
            SourcePage with mapped track descriptors and the next cursor

        Raises:
            SourceFetchError: If the API rejects the request
        """
        params: Dict[str, Any] = {
            'part': 'snippet',
            'playlistId': playlist_id,
            'maxResults': PAGE_SIZE,
        }
        if page_token:
            params['pageToken'] = page_token

        try:
            response = self.service.playlistItems().list(**params).execute()
        except HttpError as e:
            status = _http_status(e)
            logger.error(f"YouTube playlistItems.list failed for {playlist_id} (HTTP {status}): {e}")
            if status == 404:
                raise SourceFetchError(
                    f"YouTube playlist {playlist_id} was not found or is private", status=status
                ) from e
            if _is_quota_exceeded(e):
                raise SourceFetchError(
                    "YouTube API daily quota exceeded; try again later", status=status
                ) from e
            raise SourceFetchError(f"Failed to fetch YouTube playlist: {e}", status=status) from e

        items = tuple(
            self._item_to_track(item) for item in response.get('items', []) or []
        )
        return SourcePage(items=items, next_page_token=response.get('nextPageToken') or None)

    def _item_to_track(self, item: Dict[str, Any]) -> TrackDescriptor:
        """Map a playlistItem resource to a TrackDescriptor.

        The owning channel of the video stands in for the artist.
        """
        snippet = item.get('snippet') or {}
        resource = snippet.get('resourceId') or {}
        title = snippet.get('title', '')
        artist = snippet.get('videoOwnerChannelTitle') or UNKNOWN_ARTIST
        video_id = resource.get('videoId') or item.get('id', '')
        logger.debug(f"Item: title={title!r} channel={artist!r} video={video_id}")
        return TrackDescriptor(title=title, artist=artist, source_id=video_id)
