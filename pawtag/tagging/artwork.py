"""
Cover art download and preparation for pawtag.

Thumbnails are streamed to a uniquely named temporary file (pawtag_*.jpg)
that exists only for the duration of one tag write, then removed
whatever the outcome.

Image Processing:
    - The real format is detected from the data, not from the URL:
      YouTube serves JPEG, PNG and WebP thumbnails under similar URLs
    - ID3 (APIC) accepts any image with its MIME type
    - MP4 (covr) only knows JPEG and PNG; anything else is converted to
      JPEG with Pillow

Usage:
    with download_artwork(record.thumbnail_url) as artwork:
        writer.write(path, meta, artwork)
"""

import os
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from io import BytesIO
from typing import Iterator

import requests
from PIL import Image

from pawtag.core.logger import get_logger

logger = get_logger(__name__)


DOWNLOAD_TIMEOUT = 30
CHUNK_SIZE = 64 * 1024
JPEG_QUALITY = 90

MIME_JPEG = "image/jpeg"
MIME_PNG = "image/png"
MIME_WEBP = "image/webp"
MIME_GIF = "image/gif"


@dataclass(frozen=True)
class Artwork:
    """
    Image bytes ready for embedding.

    Attributes:
        data: Raw image bytes.
        mime: MIME type detected from the data.
    """
    data: bytes
    mime: str

    @classmethod
    def from_bytes(cls, data: bytes) -> "Artwork":
        return cls(data=data, mime=detect_mime(data))

    @property
    def is_mp4_compatible(self) -> bool:
        return self.mime in (MIME_JPEG, MIME_PNG)


def detect_mime(data: bytes) -> str:
    """
    Detect an image MIME type from its magic bytes.

    Unknown data is reported as JPEG, which is what thumbnail URLs
    almost always serve.
    """
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return MIME_PNG
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return MIME_WEBP
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return MIME_GIF
    return MIME_JPEG


def convert_to_jpeg(artwork: Artwork) -> Artwork:
    """
    Re-encode an image as JPEG.

    Transparent and palette images are flattened to RGB first.

    Raises:
        OSError: If Pillow cannot decode the image.
    """
    with Image.open(BytesIO(artwork.data)) as img:
        if img.mode != "RGB":
            img = img.convert("RGB")
        output = BytesIO()
        img.save(output, format="JPEG", quality=JPEG_QUALITY, optimize=True)
    return Artwork(data=output.getvalue(), mime=MIME_JPEG)


def _fetch_to_file(url: str, path: str, timeout: float, session: requests.Session | None) -> None:
    getter = session.get if session is not None else requests.get
    with getter(url, timeout=timeout, stream=True) as response:
        response.raise_for_status()
        with open(path, "wb") as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    f.write(chunk)


@contextmanager
def download_artwork(
    url: str | None,
    timeout: float = DOWNLOAD_TIMEOUT,
    session: requests.Session | None = None
) -> Iterator[Artwork | None]:
    """
    Download a thumbnail for the duration of a with-block.

    Args:
        url: Thumbnail URL, or None.
        timeout: HTTP timeout in seconds.
        session: Optional requests session to reuse connections.

    Yields:
        Artwork, or None when there is no URL or the download failed
        (logged as a warning; the file is then tagged without a cover).

    Cleanup:
        The temporary file is removed on exit, also when the body raises.
    """
    if not url:
        yield None
        return

    fd, temp_path = tempfile.mkstemp(prefix="pawtag_", suffix=".jpg")
    os.close(fd)
    try:
        try:
            _fetch_to_file(url, temp_path, timeout, session)
            with open(temp_path, "rb") as f:
                data = f.read()
        except (requests.RequestException, OSError) as e:
            logger.warning(f"Artwork download failed ({url}): {e}")
            data = b""

        yield Artwork.from_bytes(data) if data else None
    finally:
        try:
            os.remove(temp_path)
        except OSError as e:
            logger.debug(f"Failed to remove temporary artwork {temp_path}: {e}")
