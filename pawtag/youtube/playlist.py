"""
Playlist resolution for pawtag.

Turns a playlist URL into the album name and the position -> entry map
that local files are matched against.

Tiers (first success wins, each call with its own timeout):
    1. default+cookies   full playlist document (-J --flat-playlist)
    2. web+cookies       full playlist document, web client
    3. default           full playlist document, no cookies
    4. listing+cookies   flat listing (--print), no playlist title

    A tier that runs but yields no usable entries counts as a failure.

Album name:
    - An explicit album always wins. The listing tier is then tried first,
      since the playlist title is not needed.
    - Otherwise the playlist title is formatted with the album template
      ("YouTube: {title}"), and the fallback album ("YouTube Playlist")
      is used when the title is unknown (listing tier, or empty title).

Usage:
    resolver = PlaylistResolver(retriever)
    playlist = resolver.resolve("https://www.youtube.com/playlist?list=PL...")
    print(playlist.album, len(playlist.entries))
"""

from dataclasses import dataclass, field
from typing import Any, Iterable

from pawtag.core.config import album_format_error
from pawtag.core.exceptions import ResolutionError, RetrievalError
from pawtag.core.logger import get_logger
from pawtag.youtube.models import (
    PLAYLIST_TIERS,
    AccessTier,
    PlaylistEntry,
    effective_tiers,
    parse_ordinal,
)
from pawtag.youtube.retriever import Retriever

logger = get_logger(__name__)


DEFAULT_ALBUM_FORMAT = "YouTube: {title}"
DEFAULT_FALLBACK_ALBUM = "YouTube Playlist"


@dataclass(frozen=True)
class ResolvedPlaylist:
    """
    Result of resolving a playlist URL.

    Attributes:
        album: Album name for every tagged file.
        entries: Playlist position -> entry.
        tier: Label of the tier that succeeded.
    """
    album: str
    entries: dict[int, PlaylistEntry] = field(default_factory=dict)
    tier: str | None = None

    def get(self, ordinal: int) -> PlaylistEntry | None:
        return self.entries.get(ordinal)

    def remote_ids_for(self, ordinals: Iterable[int]) -> list[str]:
        """
        Unique remote ids at the given positions, in the given order.

        Positions without an entry are skipped; an item listed twice in
        the playlist appears once.
        """
        seen: dict[str, None] = {}
        for ordinal in ordinals:
            entry = self.entries.get(ordinal)
            if entry is not None:
                seen.setdefault(entry.remote_id, None)
        return list(seen)


def entries_from_document(document: dict[str, Any]) -> dict[int, PlaylistEntry]:
    """
    Extract entries from a full playlist document.

    Entries without an id or with a non-numeric or non-positive
    playlist_index are dropped. yt-dlp omits playlist_index on flat
    entries of some extractors; the 1-based list position is used then.
    """
    raw_entries = document.get("entries") or []
    entries: dict[int, PlaylistEntry] = {}
    for position, raw in enumerate(raw_entries, start=1):
        if not isinstance(raw, dict):
            continue
        remote_id = raw.get("id")
        if not remote_id:
            continue
        index = raw.get("playlist_index")
        ordinal = parse_ordinal(position if index is None else index)
        if ordinal is None:
            continue
        title = raw.get("title")
        if title is not None:
            title = str(title).strip() or None
        entries[ordinal] = PlaylistEntry(
            ordinal=ordinal,
            remote_id=str(remote_id),
            fallback_title=title,
        )
    return entries


class PlaylistResolver:
    """
    Resolve playlists through the tier list.

    Attributes:
        retriever: Retriever used for every call.
        album_format: Album template with a {title} placeholder.
        fallback_album: Album when the playlist title is unknown.
        tiers: Tiers in preference order, before credential collapsing.
    """

    def __init__(
        self,
        retriever: Retriever,
        album_format: str = DEFAULT_ALBUM_FORMAT,
        fallback_album: str = DEFAULT_FALLBACK_ALBUM,
        tiers: tuple[AccessTier, ...] = PLAYLIST_TIERS
    ) -> None:
        problem = album_format_error(album_format)
        if problem:
            raise ValueError(f"Album format {album_format!r} {problem}")
        self.retriever = retriever
        self.album_format = album_format
        self.fallback_album = fallback_album
        self.tiers = tiers

    def _ordered_tiers(self, album_override: str | None) -> list[AccessTier]:
        tiers = effective_tiers(self.tiers, self.retriever.has_credentials)
        if album_override:
            # The title is not needed: try the cheap listing first
            tiers.sort(key=lambda tier: not tier.flat)
        return tiers

    def _album_for(self, title: Any) -> str:
        if isinstance(title, str) and title.strip():
            return self.album_format.format(title=title.strip())
        return self.fallback_album

    def _try_tier(self, url: str, tier: AccessTier) -> tuple[str | None, dict[int, PlaylistEntry]]:
        """Run one tier. Returns (playlist title or None, entries)."""
        if tier.flat:
            listed = self.retriever.list_playlist(url, tier)
            return None, {entry.ordinal: entry for entry in listed}

        document = self.retriever.fetch_playlist(url, tier)
        return document.get("title"), entries_from_document(document)

    def resolve(self, url: str, album_override: str | None = None) -> ResolvedPlaylist:
        """
        Resolve a playlist URL.

        Args:
            url: Playlist URL.
            album_override: Album name to use instead of the playlist title.

        Returns:
            ResolvedPlaylist with at least one entry.

        Raises:
            ResolutionError: If every tier failed or returned no entries.
        """
        failures: dict[str, str] = {}

        for tier in self._ordered_tiers(album_override):
            try:
                title, entries = self._try_tier(url, tier)
            except RetrievalError as e:
                logger.warning(f"Playlist tier {tier.label} failed: {e.message}")
                failures[tier.label] = e.message
                continue

            if not entries:
                logger.warning(f"Playlist tier {tier.label} returned no entries")
                failures[tier.label] = "no entries"
                continue

            album = album_override or self._album_for(title)
            logger.info(f"Playlist resolved via {tier.label}: {len(entries)} entries, album \"{album}\"")
            return ResolvedPlaylist(album=album, entries=entries, tier=tier.label)

        raise ResolutionError(
            f"Could not read playlist after {len(failures)} attempts: {url}",
            details={"url": url, "tiers": failures}
        )
