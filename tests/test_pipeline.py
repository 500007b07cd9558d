# tests/test_pipeline.py
"""Test the tagging pipeline end to end"""

import json
from unittest.mock import Mock

import pytest
from mutagen.id3 import ID3

from pawtag.core.cache import MetadataCache
from pawtag.core.exceptions import NotFoundError, ResolutionError, TagWriteError
from pawtag.core.indexer import AudioFormat, FileEntry
from pawtag.pipeline import TagOptions, build_tag_meta, run_pipeline, split_name_body
from pawtag.tagging.writer import TagWriter
from pawtag.youtube.models import MetadataRecord, PlaylistEntry


URL = "https://www.youtube.com/playlist?list=PL1"
OPTIONS = TagOptions(artwork=False, show_progress=False)


def written(writer):
    """(file name, TagMeta) for every write() call"""
    return [(call.args[0].name, call.args[1]) for call in writer.write.call_args_list]


class TestBuildTagMeta:
    """Test merging metadata sources"""

    entry = FileEntry(
        path=__import__("pathlib").Path("/music/003 - File Artist - File Title.mp3"),
        ordinal=3,
        extension=AudioFormat.MP3,
        raw_name_body="File Artist - File Title",
    )
    playlist_entry = PlaylistEntry(ordinal=3, remote_id="abc", fallback_title="Listing Title")
    record = MetadataRecord(title="Remote Title", uploader="Remote Artist", upload_date="20230115")

    def build(self, record, **kwargs):
        return build_tag_meta(
            self.entry, self.playlist_entry, record, "YouTube: Mix",
            source_url="https://www.youtube.com/watch?v=abc", **kwargs
        )

    def test_fetched_precedence(self):
        """Test that remote metadata wins by default"""
        meta = self.build(self.record)
        assert meta.title == "Remote Title"
        assert meta.artist == "Remote Artist"
        assert meta.album == "YouTube: Mix"
        assert meta.track == 3
        assert meta.year == 2023
        assert meta.remote_id == "abc"

    def test_filename_precedence(self):
        """Test that the filename wins when preferred"""
        meta = self.build(self.record, prefer="filename")
        assert meta.title == "File Title"
        assert meta.artist == "File Artist"

    def test_without_record(self):
        """Test the listing title and filename fallbacks"""
        meta = self.build(None)
        assert meta.title == "Listing Title"
        assert meta.artist == "File Artist"
        assert meta.year is None

    def test_skip_year(self):
        """Test that the year can be left out"""
        assert self.build(self.record, include_year=False).year is None

    def test_default_artist(self):
        """Test the artist of last resort"""
        entry = FileEntry(self.entry.path, 3, AudioFormat.MP3, "Plain")
        meta = build_tag_meta(entry, self.playlist_entry, MetadataRecord(), "A", "u")
        assert meta.artist == "YouTube"
        assert meta.title == "Listing Title"

    def test_split_name_body(self):
        """Test the filename split"""
        assert split_name_body("Artist - Title") == ("Artist", "Title")
        assert split_name_body("A - B - C") == ("A", "B - C")
        assert split_name_body("Just A Title") == (None, "Just A Title")
        assert split_name_body("Dash-Without-Spaces") == (None, "Dash-Without-Spaces")


class TestRunPipeline:
    """Test run_pipeline"""

    def test_scenario_one_cached_one_fetched(self, music_dir, fake_retriever, temp_dir):
        """Test two files, one cached id: exactly one fetch, both tagged"""
        cache_path = temp_dir / ".pawtag_cache.json"
        cache_path.write_text(json.dumps({"aaa": {"title": "Cached X", "uploader": "Cached Artist"}}))
        cache = MetadataCache(cache_path)
        writer = Mock(spec=TagWriter)

        report = run_pipeline(music_dir, URL, fake_retriever, cache, OPTIONS, writer)

        assert [call[1] for call in fake_retriever.fetch_calls()] == ["bbb"]
        assert report.tagged == 2
        assert report.failed == 0
        assert report.album == "YouTube: My Mix"
        assert len(cache) == 2
        assert set(json.loads(cache_path.read_text())) == {"aaa", "bbb"}

        calls = written(writer)
        assert [name for name, _ in calls] == ["001 - X.mp3", "002 - Y.m4a"]
        assert calls[0][1].title == "Cached X"
        assert calls[1][1].title == "Remote Y"
        assert calls[1][1].year == 2020
        formats = [call.kwargs["audio_format"] for call in writer.write.call_args_list]
        assert formats == [AudioFormat.MP3, AudioFormat.M4A]

    def test_dry_run_changes_nothing(self, music_dir, fake_retriever, caplog):
        """Test that a dry run writes no file and logs every value"""
        before = {p.name: p.read_bytes() for p in music_dir.iterdir()}
        writer = Mock(spec=TagWriter)
        options = TagOptions(dry_run=True, artwork=False, show_progress=False)

        caplog.set_level("INFO")
        report = run_pipeline(music_dir, URL, fake_retriever, MetadataCache(None), options, writer)

        assert writer.write.call_count == 0
        assert {p.name: p.read_bytes() for p in music_dir.iterdir()} == before
        assert report.dry_run and report.tagged == 2
        assert "title='Remote X'" in caplog.text
        assert "title='Remote Y'" in caplog.text

    def test_files_without_entries_are_skipped(self, music_dir, fake_retriever):
        """Test that extra files and extra playlist entries are harmless"""
        (music_dir / "005 - Extra.mp3").write_bytes(b"")
        fake_retriever.entries.append(PlaylistEntry(ordinal=9, remote_id="zzz"))
        writer = Mock(spec=TagWriter)

        report = run_pipeline(music_dir, URL, fake_retriever, MetadataCache(None), OPTIONS, writer)

        assert report.files == 3
        assert report.tagged == 2
        assert report.skipped == 1
        assert "zzz" not in [call[1] for call in fake_retriever.fetch_calls()]

    def test_failed_fetch_still_tagged(self, music_dir, fake_retriever):
        """Test that an unfetchable id is tagged from the listing and filename"""
        fake_retriever.failing_ids = {"bbb"}
        writer = Mock(spec=TagWriter)

        report = run_pipeline(music_dir, URL, fake_retriever, MetadataCache(None), OPTIONS, writer)

        assert report.unresolved_ids == ["bbb"]
        assert report.tagged == 2
        meta = written(writer)[1][1]
        assert meta.title == "Listing Y"
        assert meta.artist == "YouTube"
        assert meta.year is None

    def test_source_url_prefers_page_url(self, music_dir, fake_retriever):
        """Test that a reported page URL wins over the built watch URL"""
        fake_retriever.infos["aaa"]["webpage_url"] = "https://music.youtube.com/watch?v=aaa"
        writer = Mock(spec=TagWriter)

        run_pipeline(music_dir, URL, fake_retriever, MetadataCache(None), OPTIONS, writer)

        calls = written(writer)
        assert calls[0][1].source_url == "https://music.youtube.com/watch?v=aaa"
        assert calls[1][1].source_url == "https://www.youtube.com/watch?v=bbb"

    def test_tag_failure_continues(self, music_dir, fake_retriever):
        """Test that one failed write does not stop the batch"""
        writer = Mock(spec=TagWriter)
        writer.write.side_effect = [TagWriteError("disk full"), None]

        report = run_pipeline(music_dir, URL, fake_retriever, MetadataCache(None), OPTIONS, writer)

        assert report.failed == 1
        assert report.tagged == 1
        assert writer.write.call_count == 2

    def test_empty_folder_does_nothing(self, temp_dir, fake_retriever):
        """Test that no matching files means no retrieval at all"""
        report = run_pipeline(temp_dir, URL, fake_retriever, MetadataCache(None), OPTIONS, Mock(spec=TagWriter))

        assert report.files == 0
        assert fake_retriever.calls == []

    def test_missing_folder(self, temp_dir, fake_retriever):
        """Test that a missing folder raises NotFoundError"""
        with pytest.raises(NotFoundError):
            run_pipeline(temp_dir / "nope", URL, fake_retriever, MetadataCache(None), OPTIONS)

    def test_resolution_failure(self, music_dir, fake_retriever):
        """Test that an unreadable playlist aborts the run"""
        fake_retriever.failing_tiers = {"default", "web", "listing"}
        with pytest.raises(ResolutionError):
            run_pipeline(music_dir, URL, fake_retriever, MetadataCache(None), OPTIONS, Mock(spec=TagWriter))

    def test_second_run_is_idempotent(self, temp_dir, fake_retriever):
        """Test that a rerun fetches nothing and writes identical tags"""
        folder = temp_dir / "mp3s"
        folder.mkdir()
        (folder / "001 - X.mp3").write_bytes(b"\x00" * 128)
        (folder / "002 - Y.mp3").write_bytes(b"\x00" * 128)
        cache_path = temp_dir / "cache.json"

        run_pipeline(folder, URL, fake_retriever, MetadataCache(cache_path), OPTIONS)
        first = {p.name: ID3(p).pprint() for p in folder.iterdir()}
        fetches_after_first = len(fake_retriever.fetch_calls())

        run_pipeline(folder, URL, fake_retriever, MetadataCache(cache_path), OPTIONS)
        second = {p.name: ID3(p).pprint() for p in folder.iterdir()}

        assert fetches_after_first == 2
        assert len(fake_retriever.fetch_calls()) == 2
        assert first == second
        assert "TIT2=Remote X" in first["001 - X.mp3"]
