# tests/test_downloader.py
"""Test playlist downloading through the access tiers"""

import pytest

from pawtag.core.exceptions import DownloadError
from pawtag.download.downloader import (
    BULK_TEMPLATE,
    PlaylistDownloader,
    download_options,
)


URL = "https://www.youtube.com/playlist?list=PL1"


def downloads(retriever):
    return [(url, label) for method, url, label in retriever.calls if method == "download"]


@pytest.fixture
def out_dir(temp_dir):
    return temp_dir / "yt_playlist_downloads"


class TestDownloadOptions:
    """Test the yt-dlp option list"""

    def test_bulk_options(self, out_dir):
        """Test playlist mode, archive and output template"""
        options = download_options(out_dir, BULK_TEMPLATE, "m4a", playlist=True)

        assert options[0] == "--yes-playlist"
        assert options[options.index("--download-archive") + 1] == str(out_dir / "archive.txt")
        assert options[options.index("--audio-format") + 1] == "m4a"
        assert options[options.index("-o") + 1] == str(out_dir / "%(playlist_index)03d - %(title)s.%(ext)s")
        assert "is_live!=1 & was_live!=1" in options

    def test_single_item_options(self, out_dir):
        """Test single-item mode"""
        assert download_options(out_dir, "x", "mp3", playlist=False)[0] == "--no-playlist"


class TestPlaylistDownloader:
    """Test PlaylistDownloader"""

    def test_bulk_first_tier(self, fake_retriever, out_dir):
        """Test that a clean bulk run ends the download"""
        stats = PlaylistDownloader(fake_retriever, out_dir, show_progress=False).download(URL)

        assert stats.bulk_tier == "android"
        assert stats.success_rate == 100.0
        assert downloads(fake_retriever) == [(URL, "android")]
        assert out_dir.is_dir()

    def test_bulk_falls_through_tiers(self, fake_retriever, out_dir):
        """Test that bulk moves on to the next tier"""
        fake_retriever.failing_tiers = {"android"}

        stats = PlaylistDownloader(fake_retriever, out_dir, show_progress=False).download(URL)

        assert stats.bulk_tier == "tvhtml5"
        assert downloads(fake_retriever) == [(URL, "android"), (URL, "tvhtml5")]

    def test_per_item_fallback(self, fake_retriever, out_dir, caplog):
        """Test item-by-item downloads after every bulk attempt failed"""
        bbb_url = fake_retriever.watch_url("bbb")
        fake_retriever.failing_downloads = {URL, bbb_url}

        caplog.set_level("INFO")
        stats = PlaylistDownloader(fake_retriever, out_dir, show_progress=False).download(URL)

        assert stats.bulk_tier is None
        assert stats.total == 2
        assert stats.downloaded == 1
        assert stats.failed == 1
        assert stats.success_rate == 50.0
        assert "1/2 downloaded (50%)" in caplog.text
        item_calls = [call for call in downloads(fake_retriever) if call[0] != URL]
        assert item_calls == [
            (fake_retriever.watch_url("aaa"), "android"),
            (bbb_url, "android"),
            (bbb_url, "tvhtml5"),
            (bbb_url, "web"),
        ]
        assert ("list_playlist", URL, "listing") in fake_retriever.calls

    def test_listing_failure(self, fake_retriever, out_dir):
        """Test that a failed listing after failed bulk raises DownloadError"""
        fake_retriever.failing_downloads = {URL}
        fake_retriever.failing_tiers = {"listing"}

        with pytest.raises(DownloadError) as exc_info:
            PlaylistDownloader(fake_retriever, out_dir, show_progress=False).download(URL)
        assert "listing" in exc_info.value.details["tiers"]

    def test_unknown_format(self, fake_retriever, out_dir):
        """Test that only mp3 and m4a are accepted"""
        with pytest.raises(ValueError):
            PlaylistDownloader(fake_retriever, out_dir, audio_format="flac")
