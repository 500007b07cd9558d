"""
Playlist audio downloader for pawtag.

Downloads a playlist as "NNN - Title.ext" files, the naming the tagger
expects, using the same access tiers as metadata fetching.

Workflow:
    1. Bulk: for each tier, download the whole playlist in one yt-dlp run
       (-o "<out>/%(playlist_index)03d - %(title)s.%(ext)s"). The first
       tier that exits cleanly ends the run.
    2. Fallback, when every bulk attempt failed: list the playlist once,
       then download each item separately through the tiers, naming the
       file with its playlist position. Items that fail on every tier are
       logged and skipped.

    The download archive (<out>/archive.txt) records finished items, so
    repeated runs and the per-item fallback only fetch what is missing.
    Live streams and past live streams are skipped.

Dependencies:
    - yt-dlp: download and extraction
    - FFmpeg: audio conversion (used by yt-dlp, must be installed)

Usage:
    stats = download_playlist(url, Path("yt_playlist_downloads"), YtDlpRetriever())
    print(f"Downloaded: {stats.downloaded}/{stats.total}")
"""

from dataclasses import dataclass
from pathlib import Path

from pawtag.core.exceptions import DownloadError, RetrievalError
from pawtag.core.logger import get_logger
from pawtag.core.progress import DownloadProgressBar
from pawtag.utils import ensure_directory
from pawtag.youtube.models import FETCH_TIERS, PLAYLIST_TIERS, PlaylistEntry, effective_tiers
from pawtag.youtube.retriever import Retriever

logger = get_logger(__name__)


ARCHIVE_FILENAME = "archive.txt"
BULK_TEMPLATE = "%(playlist_index)03d - %(title)s.%(ext)s"
AUDIO_FORMATS = ("mp3", "m4a")


@dataclass
class DownloadStats:
    """
    Statistics from a playlist download.

    Attributes:
        bulk_tier: Tier whose bulk download succeeded, or None.
        total: Items attempted one by one (fallback only).
        downloaded: Items downloaded one by one.
        failed: Items that failed on every tier.
    """

    bulk_tier: str | None = None
    total: int = 0
    downloaded: int = 0
    failed: int = 0

    @property
    def success_rate(self) -> float:
        """Calculate success rate as percentage."""
        if self.bulk_tier is not None:
            return 100.0
        if self.total == 0:
            return 0.0
        return (self.downloaded / self.total) * 100


def download_options(out_dir: Path, output_template: str, audio_format: str, playlist: bool) -> list[str]:
    """
    yt-dlp options shared by bulk and per-item downloads.

    Args:
        out_dir: Output folder (holds the archive).
        output_template: File name template relative to out_dir.
        audio_format: "mp3" or "m4a".
        playlist: Download the whole playlist (bulk) or one item.
    """
    return [
        "--yes-playlist" if playlist else "--no-playlist",
        "--ignore-errors",
        "--no-abort-on-error",
        "--ignore-no-formats-error",
        "--skip-unavailable-fragments",
        "--socket-timeout", "60",
        "--retries", "10",
        "--fragment-retries", "10",
        "--download-archive", str(out_dir / ARCHIVE_FILENAME),
        "--match-filter", "is_live!=1 & was_live!=1",
        "--format", "bestaudio[ext=m4a]/bestaudio/best",
        "--extract-audio",
        "--audio-format", audio_format,
        "--audio-quality", "0",
        "-o", str(out_dir / output_template),
    ]


def _item_template(entry: PlaylistEntry) -> str:
    # The position is fixed here; the title is filled in by yt-dlp
    return f"{entry.ordinal:03d} - %(title)s.%(ext)s"


class PlaylistDownloader:
    """
    Downloads a playlist through the access tiers.

    Attributes:
        retriever: Retriever that runs yt-dlp.
        out_dir: Output folder.
        audio_format: "mp3" or "m4a".
        show_progress: Draw a progress bar during the per-item fallback.
    """

    def __init__(
        self,
        retriever: Retriever,
        out_dir: Path,
        audio_format: str = "mp3",
        show_progress: bool = True
    ) -> None:
        if audio_format not in AUDIO_FORMATS:
            raise ValueError(f"Unsupported audio format: {audio_format}")
        self.retriever = retriever
        self.out_dir = out_dir
        self.audio_format = audio_format
        self.show_progress = show_progress
        self._tiers = effective_tiers(FETCH_TIERS, retriever.has_credentials)

    def download(self, url: str) -> DownloadStats:
        """
        Download a playlist, bulk first, item by item as a fallback.

        Raises:
            DownloadError: If every bulk attempt failed and the playlist
                           listing needed for the fallback failed too.
        """
        ensure_directory(self.out_dir)
        stats = DownloadStats()

        bulk_options = download_options(self.out_dir, BULK_TEMPLATE, self.audio_format, playlist=True)
        for tier in self._tiers:
            logger.info(f"Bulk download with {tier.label}")
            try:
                self.retriever.download(url, tier, bulk_options)
            except RetrievalError as e:
                logger.warning(f"Bulk download with {tier.label} failed: {e.message}")
                continue
            stats.bulk_tier = tier.label
            logger.info(f"Download complete, files saved in {self.out_dir}")
            return stats

        logger.warning("Bulk download failed on every tier, downloading item by item")
        entries = self._list_entries(url)
        stats.total = len(entries)

        with DownloadProgressBar(total=len(entries), enabled=self.show_progress) as progress:
            for entry in entries:
                if self.download_entry(entry):
                    stats.downloaded += 1
                    progress.update(success=True)
                else:
                    stats.failed += 1
                    progress.update(success=False)

        logger.info(
            f"Fallback complete: {stats.downloaded}/{stats.total} downloaded "
            f"({stats.success_rate:.0f}%), {stats.failed} skipped. Files saved in {self.out_dir}"
        )
        return stats

    def download_entry(self, entry: PlaylistEntry) -> bool:
        """Download one item through the tiers. Returns False if all failed."""
        item_url = self.retriever.watch_url(entry.remote_id)
        options = download_options(self.out_dir, _item_template(entry), self.audio_format, playlist=False)

        for tier in self._tiers:
            try:
                self.retriever.download(item_url, tier, options)
                return True
            except RetrievalError as e:
                logger.debug(f"[{entry.ordinal:03d}] {entry.remote_id}: {tier.label} failed: {e.message}")

        logger.error(f"[{entry.ordinal:03d}] Skipped {item_url}: no tier could download it")
        return False

    def _list_entries(self, url: str) -> list[PlaylistEntry]:
        listing_tiers = [tier for tier in effective_tiers(PLAYLIST_TIERS, self.retriever.has_credentials)
                         if tier.flat]
        failures: dict[str, str] = {}
        for tier in listing_tiers:
            try:
                entries = self.retriever.list_playlist(url, tier)
            except RetrievalError as e:
                failures[tier.label] = e.message
                continue
            if entries:
                return sorted(entries, key=lambda entry: entry.ordinal)
            failures[tier.label] = "no entries"

        raise DownloadError(
            "Could not list playlist items; check that the browser profile is signed in",
            details={"url": url, "tiers": failures}
        )


def download_playlist(
    url: str,
    out_dir: Path,
    retriever: Retriever,
    audio_format: str = "mp3",
    show_progress: bool = True
) -> DownloadStats:
    """
    Download a playlist as "NNN - Title.ext" audio files.

    Convenience wrapper around PlaylistDownloader.download().
    """
    downloader = PlaylistDownloader(retriever, out_dir, audio_format, show_progress)
    return downloader.download(url)
