# tests/test_playlist.py
"""Test playlist resolution"""

import pytest

from pawtag.core.exceptions import ResolutionError
from pawtag.youtube.models import PlaylistEntry
from pawtag.youtube.playlist import PlaylistResolver, entries_from_document


URL = "https://www.youtube.com/playlist?list=PL1"


def tiers_tried(retriever):
    return [label for _, _, label in retriever.calls]


class TestEntriesFromDocument:
    """Test extraction from a full playlist document"""

    def test_invalid_entries_dropped(self):
        """Test non-numeric, non-positive and id-less entries"""
        document = {
            "entries": [
                {"id": "a", "title": "A", "playlist_index": 1},
                {"id": "b", "playlist_index": 0},
                {"id": "c", "playlist_index": "NA"},
                {"title": "no id", "playlist_index": 4},
                {"id": "e", "title": "E", "playlist_index": "5"},
                None,
            ]
        }
        entries = entries_from_document(document)
        assert sorted(entries) == [1, 5]
        assert entries[5] == PlaylistEntry(ordinal=5, remote_id="e", fallback_title="E")

    def test_position_used_without_index(self):
        """Test the list position fallback"""
        entries = entries_from_document({"entries": [{"id": "a"}, {"id": "b", "title": "B"}]})
        assert entries[2].remote_id == "b"


class TestPlaylistResolver:
    """Test PlaylistResolver"""

    def test_first_tier_success(self, fake_retriever):
        """Test album naming from the playlist title"""
        playlist = PlaylistResolver(fake_retriever).resolve(URL)

        assert playlist.album == "YouTube: My Mix"
        assert playlist.get(2).remote_id == "bbb"
        assert playlist.tier == "default"
        assert tiers_tried(fake_retriever) == ["default"]

    def test_fallback_to_next_tier(self, fake_retriever):
        """Test that a failing tier moves on to the next"""
        fake_retriever.failing_tiers = {"default"}
        playlist = PlaylistResolver(fake_retriever).resolve(URL)

        assert playlist.tier == "web"
        assert tiers_tried(fake_retriever) == ["default", "web"]

    def test_listing_tier_uses_fallback_album(self, fake_retriever):
        """Test that the listing tier has no title"""
        fake_retriever.failing_tiers = {"default", "web"}
        playlist = PlaylistResolver(fake_retriever).resolve(URL)

        assert playlist.tier == "listing"
        assert playlist.album == "YouTube Playlist"
        assert len(playlist.entries) == 2

    def test_all_tiers_fail(self, fake_retriever):
        """Test that exhaustion raises ResolutionError"""
        fake_retriever.failing_tiers = {"default", "web", "listing"}
        with pytest.raises(ResolutionError) as exc_info:
            PlaylistResolver(fake_retriever).resolve(URL)
        assert set(exc_info.value.details["tiers"]) == {"default", "web", "listing"}

    def test_empty_playlist_is_failure(self, retriever_factory):
        """Test that a tier with zero entries does not count as success"""
        retriever = retriever_factory(entries=[])
        with pytest.raises(ResolutionError):
            PlaylistResolver(retriever).resolve(URL)
        assert tiers_tried(retriever) == ["default", "web", "listing"]

    def test_album_override_tries_listing_first(self, fake_retriever):
        """Test that an explicit album wins and skips the title lookup"""
        playlist = PlaylistResolver(fake_retriever).resolve(URL, album_override="Road Trip")

        assert playlist.album == "Road Trip"
        assert tiers_tried(fake_retriever) == ["listing"]

    def test_credentialed_tier_order(self, retriever_factory):
        """Test all four tiers with a cookie source"""
        retriever = retriever_factory(entries=[], has_credentials=True)
        with pytest.raises(ResolutionError):
            PlaylistResolver(retriever).resolve(URL)
        assert tiers_tried(retriever) == ["default+cookies", "web+cookies", "default", "listing+cookies"]

    def test_custom_album_format(self, fake_retriever):
        """Test a configured album template"""
        resolver = PlaylistResolver(fake_retriever, album_format="{title} (YT)")
        assert resolver.resolve(URL).album == "My Mix (YT)"

    def test_unusable_album_format(self, fake_retriever):
        """Test that a template needing more than the title is rejected up front"""
        with pytest.raises(ValueError, match="year"):
            PlaylistResolver(fake_retriever, album_format="{title} ({year})")
        assert fake_retriever.calls == []

    def test_remote_ids_for_positions(self, retriever_factory):
        """Test the unique ids behind a set of file positions"""
        retriever = retriever_factory(entries=[
            PlaylistEntry(ordinal=1, remote_id="aaa"),
            PlaylistEntry(ordinal=2, remote_id="bbb"),
            PlaylistEntry(ordinal=3, remote_id="aaa"),
            PlaylistEntry(ordinal=4, remote_id="ccc"),
        ])
        playlist = PlaylistResolver(retriever).resolve(URL)

        assert playlist.remote_ids_for([3, 1, 2, 7]) == ["aaa", "bbb"]
        assert playlist.remote_ids_for([]) == []
