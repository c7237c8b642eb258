import logging
from typing import List, Optional, Tuple

from playlist_converter.domain.entities import TrackDescriptor
from playlist_converter.domain.errors import SourceFetchError
from playlist_converter.domain.ports import SourcePlatformClient
from playlist_converter.domain.urls import extract_playlist_id


logger = logging.getLogger(__name__)


class SourceReader:
    """Reads a whole source playlist, following pagination cursors until exhausted."""

    def __init__(self, client: SourcePlatformClient, max_pages: int = 10000):
        """Initialize the reader.

        Args:
            client: Source platform client
            max_pages: Upper bound on pages followed, guards against a cursor that never ends
        """
        self.client = client
        self.max_pages = max_pages

    def fetch_from_url(self, url: str) -> Tuple[TrackDescriptor, ...]:
        """Extract the playlist id from `url` and fetch every item.

        Raises:
            InvalidPlaylistUrlError: If the URL has no `list` parameter
            SourceFetchError: If the source platform rejects a request
        """
        playlist_id = extract_playlist_id(url)
        logger.info(f"Extracted source playlist id: {playlist_id}")
        return self.fetch_all(playlist_id)

    def fetch_all(self, playlist_id: str) -> Tuple[TrackDescriptor, ...]:
        """Fetch every item of a playlist in source order.

        Args:
            playlist_id: Source playlist id

        Returns:
            All track descriptors, pages concatenated in order

        Raises:
            SourceFetchError: If any page request fails
        """
        tracks: List[TrackDescriptor] = []
        page_token: Optional[str] = None
        pages = 0

        while True:
            logger.debug(f"Fetching source page {pages + 1}" + (f" with token {page_token}" if page_token else ""))
            try:
                page = self.client.list_playlist_items(playlist_id, page_token)
            except SourceFetchError:
                raise
            except Exception as e:
                logger.error(f"Failed to fetch source playlist {playlist_id}: {e}")
                raise SourceFetchError(f"Failed to fetch source playlist: {e}") from e

            pages += 1
            tracks.extend(page.items)
            logger.debug(f"Retrieved {len(page.items)} items from page {pages}")

            page_token = page.next_page_token
            if not page_token:
                break
            if pages >= self.max_pages:
                raise SourceFetchError(
                    f"Source playlist {playlist_id} did not finish after {self.max_pages} pages"
                )

        logger.info(f"Fetched {len(tracks)} items from source playlist {playlist_id} in {pages} page(s)")
        return tuple(tracks)
