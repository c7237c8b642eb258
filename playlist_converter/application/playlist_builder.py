import time
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Sequence

from playlist_converter.domain.entities import BatchFailure, CreatedPlaylist, UserProfile
from playlist_converter.domain.errors import BatchAddError, PlaylistCreateError
from playlist_converter.domain.ports import DestinationPlatformClient


logger = logging.getLogger(__name__)

# Spotify accepts at most this many items per add call
BATCH_SIZE = 50
PLAYLIST_DESCRIPTION = "Created by Playlist Converter"


@dataclass
class BuildResult:
    """Outcome of creating and filling the destination playlist."""

    playlist: CreatedPlaylist
    tracks_added: int = 0
    failures: List[BatchFailure] = field(default_factory=list)


def split_into_batches(track_ids: Sequence[str], batch_size: int = BATCH_SIZE) -> List[List[str]]:
    """Split ids into consecutive batches of at most `batch_size`, preserving order."""
    return [list(track_ids[i:i + batch_size]) for i in range(0, len(track_ids), batch_size)]


class PlaylistBuilder:
    """Creates a private destination playlist and fills it batch by batch.

    Batches are additive: a rejected batch is recorded and the remaining
    batches are still attempted. Nothing already added is rolled back.
    """

    def __init__(self,
                 client: DestinationPlatformClient,
                 max_retries: int = 0,
                 sleep: Callable[[float], None] = time.sleep):
        """Initialize the builder.

        Args:
            client: Destination platform client bound to the caller's credentials
            max_retries: Extra attempts for a rejected batch before it is recorded as failed
            sleep: Function used for backoff waits
        """
        self.client = client
        self.max_retries = max_retries
        self._sleep = sleep

    def build(self, owner: UserProfile, name: str, track_ids: Sequence[str]) -> BuildResult:
        """Create the playlist and add `track_ids` to it.

        Args:
            owner: Profile that will own the playlist
            name: Playlist name
            track_ids: Destination track ids/URIs in the order they should appear

        Returns:
            BuildResult with the created playlist, the number of tracks added and any batch failures

        Raises:
            PlaylistCreateError: If the playlist itself cannot be created
        """
        logger.info(f"Creating destination playlist '{name}' for user {owner.id}")
        try:
            playlist = self.client.create_playlist(owner.id, name, PLAYLIST_DESCRIPTION, public=False)
        except PlaylistCreateError:
            raise
        except Exception as e:
            logger.error(f"Failed to create playlist '{name}': {e}")
            raise PlaylistCreateError(f"Failed to create destination playlist: {e}") from e

        logger.info(f"Created playlist {playlist.id}: {playlist.url}")
        result = BuildResult(playlist=playlist)

        if not track_ids:
            logger.info("No matched tracks to add; leaving playlist empty")
            return result

        batches = split_into_batches(track_ids)
        for batch_index, batch in enumerate(batches):
            logger.info(f"Adding batch {batch_index + 1}/{len(batches)} ({len(batch)} tracks)")
            try:
                self._add_batch(playlist.id, batch, batch_index)
                result.tracks_added += len(batch)
            except BatchAddError as e:
                logger.error(f"Batch {batch_index + 1}/{len(batches)} was not added: {e}")
                result.failures.append(BatchFailure(
                    batch_index=batch_index,
                    track_ids=tuple(batch),
                    message=str(e),
                ))

        if result.failures:
            logger.warning(
                f"Playlist {playlist.id} is partial: {result.tracks_added}/{len(track_ids)} tracks added, "
                f"{len(result.failures)} batch(es) failed"
            )
        else:
            logger.info(f"Added all {result.tracks_added} tracks to playlist {playlist.id}")
        return result

    def _add_batch(self, playlist_id: str, batch: List[str], batch_index: int) -> None:
        """Add one batch, retrying up to `max_retries` times.

        Raises:
            BatchAddError: When every attempt was rejected
        """
        attempt = 0
        while True:
            try:
                self.client.add_tracks(playlist_id, batch)
                return
            except BatchAddError as e:
                error = e
            except Exception as e:
                error = BatchAddError(f"Failed to add tracks: {e}")

            attempt += 1
            if attempt > self.max_retries:
                raise error

            if error.retry_after_ms:
                backoff = error.retry_after_ms / 1000.0
            else:
                # Exponential backoff: 1s, 2s, 4s, ...
                backoff = 2 ** (attempt - 1)
            logger.warning(f"Batch {batch_index + 1} failed (attempt {attempt}), retrying in {backoff}s: {error}")
            self._sleep(backoff)
