# tests/test_retriever.py
"""Test the yt-dlp process adapter"""

import json
import os
import subprocess
import sys
from unittest.mock import patch

import pytest

from pawtag.core.cache import MetadataCache
from pawtag.core.exceptions import RetrievalError
from pawtag.youtube.fetcher import MetadataFetcher
from pawtag.youtube.models import AccessTier
from pawtag.youtube.retriever import YtDlpRetriever, cookies_source, parse_listing


ANDROID_COOKIES = AccessTier("android+cookies", client="android", use_credentials=True)
DEFAULT = AccessTier("default", client=None, use_credentials=False)

# Stand-in for yt-dlp: one document every 0.4s for every id except "c",
# then it hangs until killed
SLOW_YTDLP = """
import json, sys, time
args = sys.argv[1:]
with open(args[args.index("--batch-file") + 1], encoding="utf-8") as f:
    urls = f.read().split()
for url in urls:
    remote_id = url.rsplit("=", 1)[1]
    if remote_id == "c":
        continue
    time.sleep(0.4)
    print(json.dumps({"id": remote_id, "title": remote_id.upper()}), flush=True)
time.sleep(60)
"""


def completed(stdout="", stderr="", returncode=0):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestCommandLine:
    """Test how yt-dlp is invoked"""

    def test_cookies_and_client(self):
        """Test credential and client flags for a credentialed tier"""
        retriever = YtDlpRetriever(["yt-dlp"], cookies_from_browser="firefox:/p", timeout=5)

        with patch("pawtag.youtube.retriever.subprocess.run", return_value=completed("{}")) as run:
            retriever.fetch_one("abc", ANDROID_COOKIES)

        command = run.call_args.args[0]
        assert command[0] == "yt-dlp"
        assert command[command.index("--cookies-from-browser") + 1] == "firefox:/p"
        assert command[command.index("--extractor-args") + 1] == "youtube:player_client=android"
        assert command[-1] == "https://www.youtube.com/watch?v=abc"
        assert "-j" in command
        assert run.call_args.kwargs["timeout"] == 5

    def test_anonymous_tier_has_no_cookies(self):
        """Test that anonymous tiers never pass cookies"""
        retriever = YtDlpRetriever(["yt-dlp"], cookies_from_browser="firefox:/p")

        with patch("pawtag.youtube.retriever.subprocess.run", return_value=completed("{}")) as run:
            retriever.fetch_playlist("https://www.youtube.com/playlist?list=PL1", DEFAULT)

        command = run.call_args.args[0]
        assert "--cookies-from-browser" not in command
        assert "--extractor-args" not in command
        assert "-J" in command and "--flat-playlist" in command

    def test_default_executable_is_module(self):
        """Test that the installed package is used by default"""
        retriever = YtDlpRetriever()
        assert retriever.executable[1:] == ["-m", "yt_dlp"]
        assert retriever.has_credentials is False

    def test_cookies_source(self):
        """Test the --cookies-from-browser value"""
        assert cookies_source("firefox", None) is None
        assert cookies_source("firefox", "/profiles/abc") == "firefox:/profiles/abc"


class TestFailures:
    """Test error mapping"""

    def test_timeout(self):
        """Test that a timeout is a RetrievalError flagged as timed out"""
        retriever = YtDlpRetriever(["yt-dlp"], timeout=1)
        error = subprocess.TimeoutExpired(cmd="yt-dlp", timeout=1)

        with patch("pawtag.youtube.retriever.subprocess.run", side_effect=error):
            with pytest.raises(RetrievalError) as exc_info:
                retriever.fetch_one("abc", DEFAULT)

        assert exc_info.value.timed_out is True
        assert exc_info.value.tier == "default"

    def test_nonzero_exit_uses_last_stderr_line(self):
        """Test that the yt-dlp error line becomes the message"""
        retriever = YtDlpRetriever(["yt-dlp"])
        result = completed(stderr="WARNING: x\nERROR: [youtube] abc: Video unavailable\n", returncode=1)

        with patch("pawtag.youtube.retriever.subprocess.run", return_value=result):
            with pytest.raises(RetrievalError, match="Video unavailable"):
                retriever.fetch_one("abc", DEFAULT)

    def test_missing_executable(self):
        """Test that a missing binary is a RetrievalError"""
        retriever = YtDlpRetriever(["/nonexistent/yt-dlp"])

        with patch("pawtag.youtube.retriever.subprocess.run", side_effect=FileNotFoundError("no such file")):
            with pytest.raises(RetrievalError, match="Could not start yt-dlp"):
                retriever.fetch_one("abc", DEFAULT)

    def test_invalid_json(self):
        """Test that garbage output is a RetrievalError"""
        retriever = YtDlpRetriever(["yt-dlp"])

        with patch("pawtag.youtube.retriever.subprocess.run", return_value=completed("not json")):
            with pytest.raises(RetrievalError):
                retriever.fetch_one("abc", DEFAULT)


class TestListing:
    """Test flat listing parsing"""

    def test_parse_listing(self):
        """Test that only numeric positive positions survive"""
        output = "1\tabc\tFirst\nNA\txyz\tLive\n0\tzero\tZero\n3\tdef\tNA\nbroken line\n"
        entries = parse_listing(output)

        assert [(e.ordinal, e.remote_id, e.fallback_title) for e in entries] == [
            (1, "abc", "First"),
            (3, "def", None),
        ]

    def test_list_playlist_uses_print_template(self):
        """Test the listing invocation"""
        retriever = YtDlpRetriever(["yt-dlp"])

        with patch("pawtag.youtube.retriever.subprocess.run", return_value=completed("2\tb\tB\n")) as run:
            entries = retriever.list_playlist("https://www.youtube.com/playlist?list=PL1", DEFAULT)

        command = run.call_args.args[0]
        assert command[command.index("--print") + 1] == "%(playlist_index)s\t%(id)s\t%(title)s"
        assert entries[0].ordinal == 2


class TestBatch:
    """Test batch metadata retrieval"""

    def test_partial_batch(self):
        """Test that documents are returned even when yt-dlp reports errors"""
        retriever = YtDlpRetriever(["yt-dlp"])
        stdout = json.dumps({"id": "a"}) + "\n" + "garbage\n" + json.dumps({"id": "b"}) + "\n"
        seen = {}

        def fake_run(command, **kwargs):
            batch_path = command[command.index("--batch-file") + 1]
            with open(batch_path, encoding="utf-8") as f:
                seen["lines"] = f.read().splitlines()
            seen["path"] = batch_path
            return completed(stdout, stderr="ERROR: c unavailable", returncode=1)

        with patch("pawtag.youtube.retriever.subprocess.run", side_effect=fake_run):
            documents = retriever.fetch_batch(["a", "b", "c"], DEFAULT)

        assert [d["id"] for d in documents] == ["a", "b"]
        assert seen["lines"] == [
            "https://www.youtube.com/watch?v=a",
            "https://www.youtube.com/watch?v=b",
            "https://www.youtube.com/watch?v=c",
        ]
        assert not os.path.exists(seen["path"])

    def test_batch_timeout_scales_with_ids(self):
        """Test that the batch timeout is the per-item timeout times the id count"""
        retriever = YtDlpRetriever(["yt-dlp"], timeout=10)

        with patch("pawtag.youtube.retriever.subprocess.run", return_value=completed("{}")) as run:
            retriever.fetch_batch(["a", "b", "c"], DEFAULT)

        assert run.call_args.kwargs["timeout"] == 30

    def test_timeout_keeps_printed_documents(self):
        """Test that documents printed before a timeout are returned"""
        retriever = YtDlpRetriever(["yt-dlp"], timeout=1)
        printed = (json.dumps({"id": "a"}) + "\n" + '{"id": "b", "tit').encode("utf-8")
        error = subprocess.TimeoutExpired(cmd="yt-dlp", timeout=3, output=printed)

        with patch("pawtag.youtube.retriever.subprocess.run", side_effect=error):
            documents = retriever.fetch_batch(["a", "b", "c"], DEFAULT)

        assert documents == [{"id": "a"}]

    def test_timeout_without_documents_raises(self):
        """Test that a batch timing out before any output is a tier failure"""
        retriever = YtDlpRetriever(["yt-dlp"], timeout=1)
        error = subprocess.TimeoutExpired(cmd="yt-dlp", timeout=1, output=None)

        with patch("pawtag.youtube.retriever.subprocess.run", side_effect=error):
            with pytest.raises(RetrievalError) as exc_info:
                retriever.fetch_batch(["a"], DEFAULT)

        assert exc_info.value.timed_out is True

    def test_slow_executable(self, temp_dir):
        """Test a real process that prints slowly and then hangs"""
        script = temp_dir / "slow_ytdlp.py"
        script.write_text(SLOW_YTDLP, encoding="utf-8")
        retriever = YtDlpRetriever([sys.executable, str(script)], timeout=1.0)
        fetcher = MetadataFetcher(retriever, MetadataCache(None), mode="batch", show_progress=False)

        results = fetcher.fetch_many(["a", "b", "c"])

        assert set(results) == {"a", "b"}
        assert fetcher.last_stats.failed_ids == ["c"]

    def test_empty_failed_batch_raises(self):
        """Test that a batch with no output and an error is a tier failure"""
        retriever = YtDlpRetriever(["yt-dlp"])

        with patch("pawtag.youtube.retriever.subprocess.run", return_value=completed("", "ERROR: blocked", 1)):
            with pytest.raises(RetrievalError, match="blocked"):
                retriever.fetch_batch(["a"], DEFAULT)


class TestDownload:
    """Test download invocation"""

    def test_download_failure(self):
        """Test that a non-zero download exit is a RetrievalError"""
        retriever = YtDlpRetriever(["yt-dlp"])

        with patch("pawtag.youtube.retriever.subprocess.call", return_value=1) as call:
            with pytest.raises(RetrievalError):
                retriever.download("https://x", DEFAULT, ["-o", "out/%(title)s.%(ext)s"])

        command = call.call_args.args[0]
        assert command[-3:] == ["-o", "out/%(title)s.%(ext)s", "https://x"]
