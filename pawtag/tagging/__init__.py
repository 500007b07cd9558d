"""
Tag writing for pawtag.

    - writer: ID3 (MP3) and MP4 (M4A) tag writing with mutagen
    - artwork: Thumbnail download and JPEG conversion
"""

from pawtag.tagging.artwork import Artwork, download_artwork
from pawtag.tagging.writer import TagMeta, TagWriter

__all__ = [
    "Artwork",
    "download_artwork",
    "TagMeta",
    "TagWriter",
]
