"""Test configuration and fixtures"""

import pytest
import tempfile
from pathlib import Path

from pawtag.core.exceptions import RetrievalError
from pawtag.youtube.models import PlaylistEntry


class FakeRetriever:
    """
    In-memory Retriever that records every call.

    Attributes:
        playlist_title: Title in the full playlist document.
        entries: Playlist entries returned by every playlist tier.
        infos: remote id -> yt-dlp info dict.
        failing_tiers: Tier labels that always raise RetrievalError.
        failing_ids: Ids that fail on every tier.
        calls: (method, argument, tier label) tuples in call order.
    """

    def __init__(self, entries=None, infos=None, playlist_title="My Mix", has_credentials=False):
        self.playlist_title = playlist_title
        self.entries = list(entries or [])
        self.infos = dict(infos or {})
        self.failing_tiers = set()
        self.failing_ids = set()
        self.failing_downloads = set()
        self.calls = []
        self._has_credentials = has_credentials

    @property
    def has_credentials(self):
        return self._has_credentials

    def watch_url(self, remote_id):
        return f"https://www.youtube.com/watch?v={remote_id}"

    def _check_tier(self, tier):
        if tier.label in self.failing_tiers:
            raise RetrievalError(f"tier {tier.label} blocked", tier=tier.label)

    def list_playlist(self, url, tier):
        self.calls.append(("list_playlist", url, tier.label))
        self._check_tier(tier)
        return list(self.entries)

    def fetch_playlist(self, url, tier):
        self.calls.append(("fetch_playlist", url, tier.label))
        self._check_tier(tier)
        return {
            "title": self.playlist_title,
            "entries": [
                {"id": e.remote_id, "title": e.fallback_title, "playlist_index": e.ordinal}
                for e in self.entries
            ],
        }

    def fetch_one(self, remote_id, tier):
        self.calls.append(("fetch_one", remote_id, tier.label))
        self._check_tier(tier)
        if remote_id in self.failing_ids or remote_id not in self.infos:
            raise RetrievalError(f"{remote_id} unavailable", tier=tier.label)
        return self.infos[remote_id]

    def fetch_batch(self, remote_ids, tier):
        self.calls.append(("fetch_batch", tuple(remote_ids), tier.label))
        self._check_tier(tier)
        return [
            self.infos[remote_id] for remote_id in remote_ids
            if remote_id in self.infos and remote_id not in self.failing_ids
        ]

    def download(self, url, tier, options):
        self.calls.append(("download", url, tier.label))
        self._check_tier(tier)
        if url in self.failing_downloads:
            raise RetrievalError(f"{url} not downloadable", tier=tier.label)

    def fetch_calls(self):
        return [call for call in self.calls if call[0] in ("fetch_one", "fetch_batch")]


def make_info(remote_id, title="Song", uploader="Uploader", upload_date="20230115", thumbnails=None):
    """Minimal yt-dlp info dict."""
    return {
        "id": remote_id,
        "title": title,
        "uploader": uploader,
        "upload_date": upload_date,
        "thumbnails": thumbnails or [],
    }


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def sample_info():
    """Sample yt-dlp info dict for testing"""
    return {
        "id": "dQw4w9WgXcQ",
        "title": "Never Gonna Give You Up",
        "uploader": "Rick Astley",
        "channel": "RickAstleyVEVO",
        "upload_date": "20091025",
        "thumbnails": [
            {"url": "https://i.ytimg.com/vi/x/default.jpg", "height": 120},
            {"url": "https://i.ytimg.com/vi/x/hq.jpg", "height": 480},
            {"url": "https://i.ytimg.com/vi/x/mq.jpg", "height": 240},
        ],
    }


@pytest.fixture
def fake_retriever():
    """Retriever with a two-item playlist and metadata for both items"""
    return FakeRetriever(
        entries=[
            PlaylistEntry(ordinal=1, remote_id="aaa", fallback_title="Listing X"),
            PlaylistEntry(ordinal=2, remote_id="bbb", fallback_title="Listing Y"),
        ],
        infos={
            "aaa": make_info("aaa", title="Remote X", uploader="Artist X"),
            "bbb": make_info("bbb", title="Remote Y", uploader="Artist Y", upload_date="20200101"),
        },
    )


@pytest.fixture
def music_dir(temp_dir):
    """Folder with one MP3 and one M4A file plus noise"""
    folder = temp_dir / "music"
    folder.mkdir()
    (folder / "001 - X.mp3").write_bytes(b"\x00" * 128)
    (folder / "002 - Y.m4a").write_bytes(b"\x00" * 128)
    (folder / "cover.jpg").write_bytes(b"\xff\xd8")
    (folder / "notes.txt").write_text("not audio")
    return folder


@pytest.fixture
def retriever_factory():
    """FakeRetriever class, for tests that need a custom playlist"""
    return FakeRetriever


@pytest.fixture
def info_factory():
    """make_info helper"""
    return make_info
