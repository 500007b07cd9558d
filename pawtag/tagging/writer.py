"""
Tag writing for pawtag (mutagen).

Writes the merged metadata of one file into its tag container. Fields
that are None are left untouched; fields that are set replace the
previous value, so tagging the same file twice gives the same result.

ID3 (MP3):
    TIT2  title
    TPE1  artist
    TALB  album
    TRCK  track number
    TDRC  year
    COMM  desc "comment": "<url> (id=<remote id>)"
    APIC  front cover (type 3), MIME type of the image

    A file without an ID3 header gets a fresh tag.

MP4 (M4A):
    \\xa9nam  title
    \\xa9ART  artist
    \\xa9alb  album
    trkn     [(track, 0)]
    \\xa9day  year
    ----:com.apple.iTunes:url         source URL
    ----:com.apple.iTunes:youtube_id  remote id
    covr     MP4Cover (JPEG or PNG; other formats converted to JPEG)
"""

from dataclasses import dataclass
from pathlib import Path

from mutagen import MutagenError
from mutagen.id3 import APIC, COMM, ID3, ID3NoHeaderError, TALB, TDRC, TIT2, TPE1, TRCK
from mutagen.mp4 import MP4, MP4Cover

from pawtag.core.exceptions import TagWriteError
from pawtag.core.indexer import AudioFormat
from pawtag.core.logger import get_logger
from pawtag.tagging.artwork import MIME_PNG, Artwork, convert_to_jpeg

logger = get_logger(__name__)


MP4_URL_KEY = "----:com.apple.iTunes:url"
MP4_ID_KEY = "----:com.apple.iTunes:youtube_id"


@dataclass(frozen=True)
class TagMeta:
    """
    Final tag values for one file.

    Attributes:
        title: Track title.
        artist: Track artist.
        album: Album (derived from the playlist).
        track: Track number (the file's playlist position).
        year: Upload year.
        source_url: Page URL of the remote item.
        remote_id: Platform id of the remote item.
    """
    title: str | None = None
    artist: str | None = None
    album: str | None = None
    track: int | None = None
    year: int | None = None
    source_url: str | None = None
    remote_id: str | None = None

    @property
    def comment(self) -> str:
        """ID3 comment text: "<url> (id=<remote id>)", or the parts present."""
        parts = []
        if self.source_url:
            parts.append(self.source_url)
        if self.remote_id:
            parts.append(f"(id={self.remote_id})")
        return " ".join(parts)

    def describe(self) -> str:
        """One-line summary for logs and dry runs."""
        return (
            f"title={self.title!r} artist={self.artist!r} album={self.album!r} "
            f"track={self.track} year={self.year} id={self.remote_id}"
        )


class TagWriter:
    """
    Format-specific tag writer.

    Example:
        writer = TagWriter()
        writer.write(Path("003 - Song.mp3"), TagMeta(title="Song", track=3))
    """

    def write(
        self,
        path: Path,
        meta: TagMeta,
        artwork: Artwork | bytes | None = None,
        audio_format: AudioFormat | None = None
    ) -> None:
        """
        Write tags to a file.

        Args:
            path: Audio file.
            meta: Values to write.
            artwork: Cover image, or None to leave the cover untouched.
            audio_format: Container; detected from the extension when None.

        Raises:
            TagWriteError: If the file cannot be read or saved, or the
                           format is not supported.
        """
        if isinstance(artwork, bytes):
            artwork = Artwork.from_bytes(artwork) if artwork else None

        if audio_format is None:
            try:
                audio_format = AudioFormat.from_extension(path.suffix)
            except ValueError:
                raise TagWriteError(
                    f"Unsupported file type: {path.name}",
                    details={"path": str(path)}
                ) from None

        try:
            if audio_format is AudioFormat.MP3:
                self._write_id3(path, meta, artwork)
            else:
                self._write_mp4(path, meta, artwork)
        except (MutagenError, OSError) as e:
            raise TagWriteError(
                f"Failed to write tags to {path.name}: {e}",
                details={"path": str(path), "original_error": str(e)}
            ) from e

        logger.debug(f"Tags written: {path.name}")

    def _write_id3(self, path: Path, meta: TagMeta, artwork: Artwork | None) -> None:
        try:
            tags = ID3(path)
        except ID3NoHeaderError:
            tags = ID3()

        if meta.title:
            tags.add(TIT2(encoding=3, text=meta.title))
        if meta.artist:
            tags.add(TPE1(encoding=3, text=meta.artist))
        if meta.album:
            tags.add(TALB(encoding=3, text=meta.album))
        if meta.track:
            tags.add(TRCK(encoding=3, text=str(meta.track)))
        if meta.year:
            tags.add(TDRC(encoding=3, text=str(meta.year)))

        comment = meta.comment
        if comment:
            tags.add(COMM(encoding=3, lang="eng", desc="comment", text=comment))

        if artwork is not None:
            tags.add(APIC(
                encoding=3,
                mime=artwork.mime,
                type=3,  # Cover (front)
                desc="Cover",
                data=artwork.data
            ))

        tags.save(path)

    def _write_mp4(self, path: Path, meta: TagMeta, artwork: Artwork | None) -> None:
        audio = MP4(path)
        if audio.tags is None:
            audio.add_tags()

        if meta.title:
            audio["\xa9nam"] = [meta.title]
        if meta.artist:
            audio["\xa9ART"] = [meta.artist]
        if meta.album:
            audio["\xa9alb"] = [meta.album]
        if meta.track:
            audio["trkn"] = [(int(meta.track), 0)]
        if meta.year:
            audio["\xa9day"] = [str(meta.year)]
        if meta.source_url:
            audio[MP4_URL_KEY] = [meta.source_url.encode("utf-8")]
        if meta.remote_id:
            audio[MP4_ID_KEY] = [meta.remote_id.encode("utf-8")]

        if artwork is not None:
            cover = _mp4_cover(artwork)
            if cover is not None:
                audio["covr"] = [cover]

        audio.save()


def _mp4_cover(artwork: Artwork) -> MP4Cover | None:
    if not artwork.is_mp4_compatible:
        try:
            artwork = convert_to_jpeg(artwork)
        except OSError as e:
            logger.warning(f"Could not convert {artwork.mime} artwork to JPEG, skipping cover: {e}")
            return None

    image_format = MP4Cover.FORMAT_PNG if artwork.mime == MIME_PNG else MP4Cover.FORMAT_JPEG
    return MP4Cover(artwork.data, imageformat=image_format)
