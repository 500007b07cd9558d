"""
yt-dlp process adapter for pawtag.

Everything that talks to the remote platform goes through a Retriever.
The resolver, fetcher, pipeline and downloader only see its methods, so
tests can swap in a fake and the process details stay in one place.

Invocation:
    <yt-dlp> --ignore-config --no-warnings
             [--cookies-from-browser <browser[:profile]>]
             [--extractor-args youtube:player_client=<client>]
             <mode flags> <url | --batch-file FILE>

    By default the installed yt-dlp package is run with the current
    interpreter (python -m yt_dlp); a standalone binary can be configured
    instead.

Modes:
    list_playlist   --flat-playlist --print "%(playlist_index)s\\t%(id)s\\t%(title)s"
    fetch_playlist  --flat-playlist -J          (one JSON document)
    fetch_one       --no-playlist -j            (one JSON document)
    fetch_batch     --no-playlist -j -i --batch-file   (one JSON per line)
    download        audio extraction, output template, download archive

Every call except download has a timeout; a timeout or a non-zero exit
status raises RetrievalError, which callers treat as a tier failure.
"""

import json
import os
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Any, Protocol, Sequence

from pawtag.core.exceptions import RetrievalError
from pawtag.core.logger import get_logger
from pawtag.youtube.models import AccessTier, PlaylistEntry, parse_ordinal

logger = get_logger(__name__)


DEFAULT_TIMEOUT = 120.0
LISTING_TEMPLATE = "%(playlist_index)s\t%(id)s\t%(title)s"

# Maximum stderr characters kept in error messages
_MAX_ERROR_LENGTH = 500


class Retriever(Protocol):
    """
    Capability to read playlists and item metadata from the remote platform.
    """

    @property
    def has_credentials(self) -> bool:
        ...

    def list_playlist(self, url: str, tier: AccessTier) -> list[PlaylistEntry]:
        ...

    def fetch_playlist(self, url: str, tier: AccessTier) -> dict[str, Any]:
        ...

    def fetch_one(self, remote_id: str, tier: AccessTier) -> dict[str, Any]:
        ...

    def fetch_batch(self, remote_ids: Sequence[str], tier: AccessTier) -> list[dict[str, Any]]:
        ...

    def download(self, url: str, tier: AccessTier, options: Sequence[str]) -> None:
        ...

    def watch_url(self, remote_id: str) -> str:
        ...


def default_executable() -> list[str]:
    """Run the installed yt-dlp package with the current interpreter."""
    return [sys.executable, "-m", "yt_dlp"]


def cookies_source(browser: str | None, profile: Path | str | None) -> str | None:
    """
    Build the --cookies-from-browser value.

    Args:
        browser: Browser name, e.g. "firefox".
        profile: Optional profile directory.

    Returns:
        "browser:profile", "browser", or None when no profile is configured.
        Cookies are only used when a profile was given explicitly.

    Example:
        cookies_source("firefox", "~/.mozilla/firefox/abcd.default")
        # "firefox:/home/me/.mozilla/firefox/abcd.default"
    """
    if not browser or profile is None:
        return None
    return f"{browser}:{Path(profile).expanduser()}"


class YtDlpRetriever:
    """
    Retriever backed by the yt-dlp command-line program.

    Attributes:
        executable: Command prefix used to start yt-dlp.
        cookies_from_browser: Value for --cookies-from-browser, or None.
        timeout: Seconds allowed per metadata call.
        watch_url_template: Page URL template with an {id} placeholder.

    Thread Safety:
        Instances hold no mutable state; every call starts its own
        process, so one instance can serve the whole fetch pool.
    """

    def __init__(
        self,
        executable: Sequence[str] | None = None,
        cookies_from_browser: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        watch_url_template: str = "https://www.youtube.com/watch?v={id}"
    ) -> None:
        self.executable = list(executable) if executable else default_executable()
        self.cookies_from_browser = cookies_from_browser
        self.timeout = timeout
        self.watch_url_template = watch_url_template

    @property
    def has_credentials(self) -> bool:
        return self.cookies_from_browser is not None

    def watch_url(self, remote_id: str) -> str:
        return self.watch_url_template.format(id=remote_id)

    # =========================================================================
    # Command construction
    # =========================================================================

    def _base_command(self, tier: AccessTier) -> list[str]:
        command = [*self.executable, "--ignore-config", "--no-warnings"]
        if tier.use_credentials and self.cookies_from_browser:
            command += ["--cookies-from-browser", self.cookies_from_browser]
        if tier.client:
            command += ["--extractor-args", f"youtube:player_client={tier.client}"]
        return command

    def _run(
        self,
        command: list[str],
        tier: AccessTier,
        check: bool = True,
        timeout: float | None = None
    ) -> subprocess.CompletedProcess:
        """
        Run yt-dlp and capture its output.

        Args:
            command: Full command line.
            tier: Tier being tried (for error context).
            check: Raise on a non-zero exit status.
            timeout: Seconds for this call; the retriever's timeout when None.

        Raises:
            RetrievalError: On timeout, missing executable, or (with check)
                            a non-zero exit status. On timeout, whatever
                            yt-dlp printed so far is in details["partial_output"].
        """
        timeout = self.timeout if timeout is None else timeout
        logger.debug(f"[{tier.label}] {' '.join(command)}")
        try:
            completed = subprocess.run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise RetrievalError(
                f"yt-dlp timed out after {timeout:.0f}s",
                details={"command": command, "partial_output": _decode_output(e.stdout)},
                tier=tier.label,
                timed_out=True,
            ) from e
        except OSError as e:
            raise RetrievalError(
                f"Could not start yt-dlp: {e}",
                details={"command": command},
                tier=tier.label,
            ) from e

        if check and completed.returncode != 0:
            raise RetrievalError(
                _error_text(completed.stderr, completed.returncode),
                details={"command": command, "returncode": completed.returncode},
                tier=tier.label,
            )
        return completed

    # =========================================================================
    # Retriever operations
    # =========================================================================

    def list_playlist(self, url: str, tier: AccessTier) -> list[PlaylistEntry]:
        """
        List playlist items with the fast flat listing.

        Returns:
            Entries with a positive numeric ordinal; other lines are dropped.
        """
        command = self._base_command(tier) + ["--flat-playlist", "--print", LISTING_TEMPLATE, url]
        completed = self._run(command, tier)
        return parse_listing(completed.stdout)

    def fetch_playlist(self, url: str, tier: AccessTier) -> dict[str, Any]:
        """Fetch the playlist as one JSON document (title plus entries)."""
        command = self._base_command(tier) + ["--flat-playlist", "-J", url]
        completed = self._run(command, tier)
        return _parse_document(completed.stdout, tier)

    def fetch_one(self, remote_id: str, tier: AccessTier) -> dict[str, Any]:
        """Fetch the full info document of one item."""
        command = self._base_command(tier) + ["--no-playlist", "-j", self.watch_url(remote_id)]
        completed = self._run(command, tier)
        return _parse_document(completed.stdout, tier)

    def fetch_batch(self, remote_ids: Sequence[str], tier: AccessTier) -> list[dict[str, Any]]:
        """
        Fetch many items in one invocation.

        Items that fail are skipped by yt-dlp (-i); whatever it printed is
        returned. The timeout is the per-item timeout times the number of
        ids. A run that times out still returns the documents printed
        before it was stopped. Only a run that produced no documents at all
        and exited non-zero (or timed out) counts as a tier failure.
        """
        batch_timeout = self.timeout * max(1, len(remote_ids))
        fd, batch_path = tempfile.mkstemp(prefix="pawtag_batch_", suffix=".txt")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                for remote_id in remote_ids:
                    f.write(f"{self.watch_url(remote_id)}\n")

            command = self._base_command(tier) + [
                "--no-playlist", "-j", "--ignore-errors", "--batch-file", batch_path
            ]
            try:
                completed = self._run(command, tier, check=False, timeout=batch_timeout)
            except RetrievalError as e:
                if not e.timed_out:
                    raise
                documents = _parse_json_lines(e.details.get("partial_output", ""))
                if not documents:
                    raise
                logger.warning(
                    f"[{tier.label}] Batch timed out after {batch_timeout:.0f}s, "
                    f"keeping {len(documents)}/{len(remote_ids)} documents"
                )
                return documents
        finally:
            try:
                os.remove(batch_path)
            except OSError as e:
                logger.debug(f"Failed to remove batch file {batch_path}: {e}")

        documents = _parse_json_lines(completed.stdout)
        if not documents and completed.returncode != 0:
            raise RetrievalError(
                _error_text(completed.stderr, completed.returncode),
                details={"returncode": completed.returncode, "ids": list(remote_ids)},
                tier=tier.label,
            )
        return documents

    def download(self, url: str, tier: AccessTier, options: Sequence[str]) -> None:
        """
        Download with yt-dlp, streaming its progress to the terminal.

        No timeout: a playlist download can legitimately take hours.

        Raises:
            RetrievalError: If yt-dlp exits non-zero or cannot be started.
        """
        command = self._base_command(tier) + list(options) + [url]
        logger.debug(f"[{tier.label}] {' '.join(command)}")
        try:
            returncode = subprocess.call(command)
        except OSError as e:
            raise RetrievalError(f"Could not start yt-dlp: {e}", tier=tier.label) from e
        if returncode != 0:
            raise RetrievalError(
                f"yt-dlp exited with status {returncode}",
                details={"returncode": returncode, "url": url},
                tier=tier.label,
            )


def parse_listing(output: str) -> list[PlaylistEntry]:
    """
    Parse flat listing output (index, id, title separated by tabs).

    Lines whose index is missing, non-numeric, or not positive are dropped,
    as are lines without an id.

    Example:
        parse_listing("1\\tabc\\tFirst\\nNA\\txyz\\tLive")
        # [PlaylistEntry(ordinal=1, remote_id="abc", fallback_title="First")]
    """
    entries = []
    for line in output.splitlines():
        parts = line.strip().split("\t", 2)
        if len(parts) < 2:
            continue
        ordinal = parse_ordinal(parts[0])
        remote_id = parts[1].strip()
        if ordinal is None or not remote_id:
            continue
        title = parts[2].strip() if len(parts) > 2 and parts[2].strip() not in ("", "NA") else None
        entries.append(PlaylistEntry(ordinal=ordinal, remote_id=remote_id, fallback_title=title))
    return entries


def _parse_json_lines(output: str) -> list[dict[str, Any]]:
    # A cut-off last line (timeout) fails to parse and is dropped
    documents = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            document = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(document, dict):
            documents.append(document)
    return documents


def _decode_output(output: bytes | str | None) -> str:
    # TimeoutExpired carries raw bytes even for text-mode runs
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


def _parse_document(output: str, tier: AccessTier) -> dict[str, Any]:
    try:
        document = json.loads(output)
    except json.JSONDecodeError as e:
        raise RetrievalError(
            f"yt-dlp printed invalid JSON: {e}",
            tier=tier.label,
        ) from e
    if not isinstance(document, dict):
        raise RetrievalError("yt-dlp printed JSON that is not an object", tier=tier.label)
    return document


def _error_text(stderr: str, returncode: int) -> str:
    # yt-dlp puts the useful "ERROR: ..." line last
    lines = [line.strip() for line in (stderr or "").splitlines() if line.strip()]
    if not lines:
        return f"yt-dlp exited with status {returncode}"
    return lines[-1][:_MAX_ERROR_LENGTH]
