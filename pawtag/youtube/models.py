"""
Data models for playlist and metadata retrieval.

This module defines the access tiers used to talk to the remote platform
through yt-dlp, the playlist entries produced by the resolver, and the
metadata records stored in the cache.

Tiers:
    A tier is one (player client, credential mode) combination. Tiers are
    tried in order until one succeeds; the order goes from most reliable
    and fastest to most permissive and slowest.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable


@dataclass(frozen=True)
class AccessTier:
    """
    One (access method, credential mode) combination.

    Attributes:
        label: Short name used in log lines, e.g. "android+cookies".
        client: yt-dlp YouTube player client ("android", "tvhtml5", "web"),
                or None to let yt-dlp choose its default.
        use_credentials: Pass browser cookies to yt-dlp.
        flat: Playlist listing only (ids and titles, no playlist title).
    """
    label: str
    client: str | None = None
    use_credentials: bool = True
    flat: bool = False

    def effective(self, has_credentials: bool) -> "AccessTier":
        """
        Return the tier as it will actually run.

        Without a credential source, a credentialed tier runs anonymously
        and becomes identical to its anonymous twin.
        """
        if self.use_credentials and not has_credentials:
            label = self.label.replace("+cookies", "")
            return AccessTier(label=label, client=self.client, use_credentials=False, flat=self.flat)
        return self


# Playlist resolution: full playlist document first, flat listing last
PLAYLIST_TIERS: tuple[AccessTier, ...] = (
    AccessTier("default+cookies", client=None, use_credentials=True),
    AccessTier("web+cookies", client="web", use_credentials=True),
    AccessTier("default", client=None, use_credentials=False),
    AccessTier("listing+cookies", client=None, use_credentials=True, flat=True),
)

# Per-item metadata: ordered by how often each client worked in practice
FETCH_TIERS: tuple[AccessTier, ...] = (
    AccessTier("android+cookies", client="android", use_credentials=True),
    AccessTier("tvhtml5+cookies", client="tvhtml5", use_credentials=True),
    AccessTier("web+cookies", client="web", use_credentials=True),
    AccessTier("android", client="android", use_credentials=False),
    AccessTier("web", client="web", use_credentials=False),
)


def effective_tiers(tiers: Iterable[AccessTier], has_credentials: bool) -> list[AccessTier]:
    """
    Resolve tiers for the available credentials and drop duplicates.

    Args:
        tiers: Tiers in preference order.
        has_credentials: Whether a browser cookie source is configured.

    Returns:
        Tiers in the same order, each (client, credentials, flat)
        combination appearing once.
    """
    seen: set[tuple[str | None, bool, bool]] = set()
    result: list[AccessTier] = []
    for tier in tiers:
        tier = tier.effective(has_credentials)
        key = (tier.client, tier.use_credentials, tier.flat)
        if key in seen:
            continue
        seen.add(key)
        result.append(tier)
    return result


@dataclass(frozen=True)
class PlaylistEntry:
    """
    One item of the remote playlist.

    Attributes:
        ordinal: Position reported by the remote listing (1-based).
        remote_id: Platform id of the item, e.g. "dQw4w9WgXcQ".
        fallback_title: Title from the listing, used when metadata is missing.
    """
    ordinal: int
    remote_id: str
    fallback_title: str | None = None


def parse_ordinal(value: Any) -> int | None:
    """
    Parse a playlist position.

    Returns:
        The position as a positive int, or None for missing, non-numeric,
        zero, or negative values.

    Examples:
        "3" -> 3
        7 -> 7
        "NA" -> None
        0 -> None
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        ordinal = value
    elif isinstance(value, str) and value.strip().isdigit():
        ordinal = int(value.strip())
    else:
        return None
    return ordinal if ordinal > 0 else None


def parse_upload_year(upload_date: Any) -> int | None:
    """
    Extract the year from a yt-dlp upload_date.

    Args:
        upload_date: Value of the "upload_date" field (YYYYMMDD string).

    Returns:
        The year, or None if the value is absent, not 8 characters,
        or not a valid date.

    Examples:
        "20230115" -> 2023
        "2023" -> None
        "abcdef12" -> None
    """
    if not isinstance(upload_date, str) or len(upload_date) != 8:
        return None
    try:
        return datetime.strptime(upload_date, "%Y%m%d").year
    except ValueError:
        return None


def best_thumbnail(thumbnails: Any) -> str | None:
    """
    Pick the tallest thumbnail.

    Args:
        thumbnails: The "thumbnails" list from a yt-dlp info dict; each
                    candidate is a dict with "url" and optional "height".

    Returns:
        URL of the candidate with the greatest height (missing or
        non-numeric height counts as 0), or None if there are no usable
        candidates.
    """
    if not thumbnails or not isinstance(thumbnails, list):
        return None

    candidates = [t for t in thumbnails if isinstance(t, dict) and t.get("url")]
    if not candidates:
        return None

    best = max(candidates, key=lambda t: _height(t.get("height")))
    return best["url"]


def _height(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return 0


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class MetadataRecord:
    """
    Descriptive metadata for one remote item.

    Produced by the fetcher from a yt-dlp info dict and stored in the
    cache. Every field is optional.

    Attributes:
        title: Item title.
        uploader: Uploader or channel name.
        upload_date: 8-digit YYYYMMDD string, or None.
        thumbnail_url: URL of the largest thumbnail.
        webpage_url: Page URL reported by yt-dlp.
    """
    title: str | None = None
    uploader: str | None = None
    upload_date: str | None = None
    thumbnail_url: str | None = None
    webpage_url: str | None = None

    @classmethod
    def from_info(cls, info: dict[str, Any]) -> "MetadataRecord":
        """
        Build a record from a yt-dlp info dict.

        Behavior:
            - uploader falls back to channel
            - upload_date is kept only when it is an 8-character string
            - thumbnail is the tallest of "thumbnails", falling back to
              the single "thumbnail" field
        """
        upload_date = info.get("upload_date")
        if not (isinstance(upload_date, str) and len(upload_date) == 8):
            upload_date = None

        thumbnail_url = best_thumbnail(info.get("thumbnails")) or _optional_str(info.get("thumbnail"))

        return cls(
            title=_optional_str(info.get("title")),
            uploader=_optional_str(info.get("uploader")) or _optional_str(info.get("channel")),
            upload_date=upload_date,
            thumbnail_url=thumbnail_url,
            webpage_url=_optional_str(info.get("webpage_url")),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MetadataRecord":
        """Build a record from its cached form, tolerating missing keys."""
        return cls(
            title=_optional_str(data.get("title")),
            uploader=_optional_str(data.get("uploader")),
            upload_date=_optional_str(data.get("upload_date")),
            thumbnail_url=_optional_str(data.get("thumbnail_url")),
            webpage_url=_optional_str(data.get("webpage_url")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "uploader": self.uploader,
            "upload_date": self.upload_date,
            "thumbnail_url": self.thumbnail_url,
            "webpage_url": self.webpage_url,
        }

    @property
    def year(self) -> int | None:
        return parse_upload_year(self.upload_date)
