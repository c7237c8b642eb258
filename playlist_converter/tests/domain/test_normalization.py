import pytest

from playlist_converter.domain.errors import InvalidPlaylistUrlError
from playlist_converter.domain.normalization import clean_title, is_remix, normalize_string
from playlist_converter.domain.urls import Platform, classify_url, extract_playlist_id


class TestCleanTitle:

    def test_official_music_video_is_removed(self):
        assert clean_title("Song (Official Music Video)") == "Song"

    def test_bare_video_token_is_removed(self):
        assert clean_title("Artist - Song Video") == "Artist - Song"

    def test_parenthesised_and_bracketed_notes_are_removed(self):
        assert clean_title("Song (Live at Wembley) [HD]") == "Song"

    def test_remix_annotation_is_removed(self):
        assert clean_title("Song (Club Remix)") == "Song"

    def test_featuring_markers_are_removed(self):
        assert clean_title("Song ft. Other") == "Song Other"
        assert clean_title("Song FEAT. Other") == "Song Other"

    def test_whitespace_is_collapsed_and_trimmed(self):
        assert clean_title("  Song   (Audio)  ") == "Song"

    def test_title_of_only_noise_becomes_empty(self):
        assert clean_title("(Official Video)") == ""

    def test_none_is_treated_as_empty(self):
        assert clean_title(None) == ""


class TestNormalizeString:

    def test_lowercases_and_strips_punctuation(self):
        assert normalize_string("Don't Stop Me Now!") == "dont stop me now"

    def test_collapses_whitespace(self):
        assert normalize_string("  A   B\tC ") == "a b c"

    def test_keeps_unicode_letters(self):
        assert normalize_string("Группа крови") == "группа крови"


class TestIsRemix:

    @pytest.mark.parametrize("title", ["Song Remix", "Song (REMIX)", "remixed song"])
    def test_remix_titles(self, title):
        assert is_remix(title)

    def test_plain_title_is_not_remix(self):
        assert not is_remix("Song - Remastered 2011")


class TestUrls:

    @pytest.mark.parametrize("url", [
        "https://www.youtube.com/playlist?list=PL123",
        "https://music.youtube.com/playlist?list=PL123",
        "https://youtu.be/abc?list=PL123",
    ])
    def test_youtube_urls(self, url):
        assert classify_url(url) is Platform.YOUTUBE

    def test_spotify_url(self):
        assert classify_url("https://open.spotify.com/playlist/37i9dQZF1DX") is Platform.SPOTIFY

    def test_unknown_url(self):
        assert classify_url("https://soundcloud.com/user/sets/mix") is Platform.UNKNOWN

    def test_extract_playlist_id_from_list_parameter(self):
        assert extract_playlist_id("https://www.youtube.com/watch?v=xyz&list=PLabc-123&index=2") == "PLabc-123"

    def test_extract_playlist_id_without_list_parameter_raises(self):
        with pytest.raises(InvalidPlaylistUrlError):
            extract_playlist_id("https://www.youtube.com/watch?v=xyz")
