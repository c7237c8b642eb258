from unittest.mock import Mock

import pytest

from playlist_converter.application.playlist_builder import (
    BATCH_SIZE, PLAYLIST_DESCRIPTION, PlaylistBuilder, split_into_batches,
)
from playlist_converter.domain.entities import CreatedPlaylist, UserProfile
from playlist_converter.domain.errors import BatchAddError, PlaylistCreateError


def _ids(n):
    return [f"spotify:track:{i}" for i in range(n)]


class TestSplitIntoBatches:

    def test_batches_are_at_most_fifty_and_ordered(self):
        batches = split_into_batches(_ids(120))

        assert [len(b) for b in batches] == [50, 50, 20]
        assert [i for b in batches for i in b] == _ids(120)

    def test_empty_input(self):
        assert split_into_batches([]) == []


class TestPlaylistBuilder:
    """Tests for playlist creation and batched adds."""

    def setup_method(self):
        self.client = Mock()
        self.client.create_playlist.return_value = CreatedPlaylist(
            id="pl1", url="https://open.spotify.com/playlist/pl1", name="Mix"
        )
        self.client.add_tracks.return_value = "snapshot"
        self.sleep = Mock()
        self.owner = UserProfile(id="user1")

    def test_creates_private_playlist_with_description(self):
        PlaylistBuilder(self.client).build(self.owner, "Mix", _ids(1))

        self.client.create_playlist.assert_called_once_with("user1", "Mix", PLAYLIST_DESCRIPTION, public=False)

    def test_adds_tracks_in_batches(self):
        result = PlaylistBuilder(self.client).build(self.owner, "Mix", _ids(120))

        assert self.client.add_tracks.call_count == 3
        sent = [c[0][1] for c in self.client.add_tracks.call_args_list]
        assert all(len(batch) <= BATCH_SIZE for batch in sent)
        assert result.tracks_added == 120
        assert result.failures == []

    def test_no_matches_creates_empty_playlist(self):
        result = PlaylistBuilder(self.client).build(self.owner, "Mix", [])

        self.client.create_playlist.assert_called_once()
        self.client.add_tracks.assert_not_called()
        assert result.tracks_added == 0

    def test_failed_batch_is_recorded_and_later_batches_still_run(self):
        self.client.add_tracks.side_effect = ["s1", BatchAddError("rejected"), "s3"]

        result = PlaylistBuilder(self.client).build(self.owner, "Mix", _ids(120))

        assert self.client.add_tracks.call_count == 3
        assert result.tracks_added == 70
        assert len(result.failures) == 1
        failure = result.failures[0]
        assert failure.batch_index == 1
        assert failure.track_ids == tuple(_ids(120)[50:100])
        assert "rejected" in failure.message

    def test_unexpected_add_error_is_recorded_as_batch_failure(self):
        self.client.add_tracks.side_effect = RuntimeError("socket closed")

        result = PlaylistBuilder(self.client).build(self.owner, "Mix", _ids(3))

        assert result.tracks_added == 0
        assert len(result.failures) == 1

    def test_retry_uses_retry_after(self):
        self.client.add_tracks.side_effect = [BatchAddError("slow down", retry_after_ms=1500), "s1"]

        result = PlaylistBuilder(self.client, max_retries=2, sleep=self.sleep).build(self.owner, "Mix", _ids(3))

        assert result.tracks_added == 3
        assert result.failures == []
        self.sleep.assert_called_once_with(1.5)

    def test_retry_backs_off_exponentially_then_gives_up(self):
        self.client.add_tracks.side_effect = BatchAddError("rejected")

        result = PlaylistBuilder(self.client, max_retries=2, sleep=self.sleep).build(self.owner, "Mix", _ids(3))

        assert self.client.add_tracks.call_count == 3
        assert [c[0][0] for c in self.sleep.call_args_list] == [1, 2]
        assert len(result.failures) == 1

    def test_no_retry_by_default(self):
        self.client.add_tracks.side_effect = BatchAddError("rejected")

        PlaylistBuilder(self.client, sleep=self.sleep).build(self.owner, "Mix", _ids(3))

        assert self.client.add_tracks.call_count == 1
        self.sleep.assert_not_called()

    def test_create_failure_is_fatal(self):
        self.client.create_playlist.side_effect = RuntimeError("forbidden")

        with pytest.raises(PlaylistCreateError):
            PlaylistBuilder(self.client).build(self.owner, "Mix", _ids(3))
        self.client.add_tracks.assert_not_called()
