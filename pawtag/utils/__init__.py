"""
Utility functions for pawtag.

This module provides small helpers used across the application:
    - Playlist URL sanitization (URLs pasted from shells and chat apps)
    - Path helpers

Usage:
    from pawtag.utils import sanitize_playlist_url, ensure_directory
"""

from pathlib import Path
from urllib.parse import unquote


# Percent-encoded backslash, "?", "=" and "&"
_ENCODED_SEPARATORS = ("%5C", "%3F", "%3D", "%26")


def sanitize_playlist_url(url: str) -> str:
    """
    Undo the escaping that shells and chat apps add to pasted URLs.

    Behavior:
        1. Strip surrounding whitespace and quotes
        2. Replace escaped separators: \\? \\= \\& -> ? = &
        3. If percent-encoded separators remain (%3F, %3D, %26, %5C),
           percent-decode the whole URL
        4. Drop any remaining backslashes

    Examples:
        sanitize_playlist_url("https://www.youtube.com/playlist\\?list\\=PL1")
        # "https://www.youtube.com/playlist?list=PL1"

        sanitize_playlist_url("https://www.youtube.com/playlist%3Flist%3DPL1")
        # "https://www.youtube.com/playlist?list=PL1"
    """
    cleaned = url.strip().strip("\"'")
    for escaped, plain in (("\\?", "?"), ("\\=", "="), ("\\&", "&")):
        cleaned = cleaned.replace(escaped, plain)

    upper = cleaned.upper()
    if any(token in upper for token in _ENCODED_SEPARATORS):
        cleaned = unquote(cleaned)

    return cleaned.replace("\\", "")


def ensure_directory(path: Path) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Returns:
        The same path (for chaining).

    Raises:
        OSError: If the directory cannot be created.
    """
    path.mkdir(parents=True, exist_ok=True)
    return path
