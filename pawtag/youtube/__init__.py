"""
YouTube access for pawtag.

This module provides:
    - models: Access tiers, playlist entries, metadata records
    - retriever: The yt-dlp process adapter
    - playlist: Playlist URL -> album name and position map
    - fetcher: Cached, tiered metadata fetching (import from
      pawtag.youtube.fetcher; it depends on pawtag.core.cache)
"""

from pawtag.youtube.models import (
    FETCH_TIERS,
    PLAYLIST_TIERS,
    AccessTier,
    MetadataRecord,
    PlaylistEntry,
    best_thumbnail,
    effective_tiers,
    parse_upload_year,
)
from pawtag.youtube.retriever import Retriever, YtDlpRetriever, cookies_source
from pawtag.youtube.playlist import PlaylistResolver, ResolvedPlaylist

__all__ = [
    "AccessTier",
    "PLAYLIST_TIERS",
    "FETCH_TIERS",
    "effective_tiers",
    "PlaylistEntry",
    "MetadataRecord",
    "best_thumbnail",
    "parse_upload_year",
    "Retriever",
    "YtDlpRetriever",
    "cookies_source",
    "PlaylistResolver",
    "ResolvedPlaylist",
]
