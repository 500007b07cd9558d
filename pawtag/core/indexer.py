"""
Local file indexing for pawtag.

Downloaded playlists are saved as "NNN - Title.ext", where NNN is the
three-digit playlist position. This module scans a folder for such files
and turns each into a FileEntry keyed by that position.

Recognized names:
    "007 - Song.mp3"          -> ordinal 7, MP3
    "012-Artist - Title.M4A"  -> ordinal 12, M4A
    "000 - Intro.mp3"         -> skipped (ordinal must be positive)
    "cover.jpg", "7 - x.mp3"  -> skipped silently

Usage:
    from pawtag.core.indexer import scan_directory

    for entry in scan_directory(Path("~/Music/Mix").expanduser()):
        print(entry.ordinal, entry.path.name)
"""

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from pawtag.core.exceptions import NotFoundError
from pawtag.core.logger import get_logger

logger = get_logger(__name__)


FILENAME_PATTERN = re.compile(r"^(\d{3})\s*-\s*(.+)\.(mp3|m4a)$", re.IGNORECASE)


class AudioFormat(Enum):
    """Supported audio containers, by file extension."""
    MP3 = "mp3"
    M4A = "m4a"

    @classmethod
    def from_extension(cls, extension: str) -> "AudioFormat":
        return cls(extension.lower().lstrip("."))


@dataclass(frozen=True)
class FileEntry:
    """
    One local audio file matched by position.

    Attributes:
        path: Full path of the file.
        ordinal: Playlist position parsed from the name prefix (1-based).
        extension: Audio container.
        raw_name_body: Name between the prefix and the extension,
                       e.g. "Artist - Title" for "003 - Artist - Title.mp3".
    """
    path: Path
    ordinal: int
    extension: AudioFormat
    raw_name_body: str


def parse_filename(name: str) -> tuple[int, AudioFormat, str] | None:
    """
    Parse an ordinal-prefixed file name.

    Returns:
        (ordinal, format, name body), or None if the name does not match
        or the ordinal is 0.
    """
    match = FILENAME_PATTERN.match(name)
    if not match:
        return None
    ordinal = int(match.group(1))
    if ordinal <= 0:
        return None
    return ordinal, AudioFormat.from_extension(match.group(3)), match.group(2).strip()


def scan_directory(path: Path) -> list[FileEntry]:
    """
    Find all ordinal-prefixed audio files in a directory (non-recursive).

    Args:
        path: Directory to scan.

    Returns:
        FileEntry list ordered by ordinal. Empty if nothing matches.

    Raises:
        NotFoundError: If the path does not exist or is not a directory.

    Duplicates:
        Two files with the same ordinal ("003 - a.mp3", "003 - b.m4a")
        produce a warning; the later one in sorted name order is kept.
    """
    if not path.exists():
        raise NotFoundError(f"Folder not found: {path}", details={"path": str(path)})
    if not path.is_dir():
        raise NotFoundError(f"Not a folder: {path}", details={"path": str(path)})

    by_ordinal: dict[int, FileEntry] = {}
    for file_path in sorted(path.iterdir(), key=lambda p: p.name):
        if not file_path.is_file():
            continue
        parsed = parse_filename(file_path.name)
        if parsed is None:
            continue
        ordinal, audio_format, body = parsed

        previous = by_ordinal.get(ordinal)
        if previous is not None:
            logger.warning(
                f"Duplicate position {ordinal:03d}: {previous.path.name} replaced by {file_path.name}"
            )

        by_ordinal[ordinal] = FileEntry(
            path=file_path,
            ordinal=ordinal,
            extension=audio_format,
            raw_name_body=body,
        )

    entries = [by_ordinal[ordinal] for ordinal in sorted(by_ordinal)]
    logger.debug(f"Indexed {len(entries)} files in {path}")
    return entries
