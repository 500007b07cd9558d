"""
Playlist audio download for pawtag.
"""

from pawtag.download.downloader import DownloadStats, PlaylistDownloader, download_playlist

__all__ = [
    "DownloadStats",
    "PlaylistDownloader",
    "download_playlist",
]
