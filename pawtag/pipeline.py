"""
Tagging pipeline for pawtag.

Wires the indexer, resolver, cache, fetcher and writer into one run:

    scan folder -> (no files? done)
    -> resolve playlist (fails? abort)
    -> load cache -> fetch missing ids (parallel) -> save cache
    -> for each file, in position order:
           build tag values -> (dry run? log only : write tags)

Per-file problems never stop the run:
    - no playlist entry at the file's position: skipped, logged
    - metadata fetch failed: tagged from the filename and listing title
    - tag write failed: logged and added to the failure report

Title/artist precedence:
    "fetched"   remote metadata first, then the listing title / filename
    "filename"  the "Artist - Title" filename first, then remote metadata

Usage:
    report = run_pipeline(
        folder=Path("yt_playlist_downloads"),
        playlist_url="https://www.youtube.com/playlist?list=PL...",
        retriever=YtDlpRetriever(),
        cache=MetadataCache(Path(".pawtag_cache.json")),
    )
    print(f"{report.tagged} tagged, {report.failed} failed")
"""

from dataclasses import dataclass, field
from pathlib import Path

from pawtag.core.cache import MetadataCache
from pawtag.core.config import Config
from pawtag.core.exceptions import TagWriteError
from pawtag.core.indexer import FileEntry, scan_directory
from pawtag.core.logger import get_logger, log_tag_failure
from pawtag.tagging.artwork import download_artwork
from pawtag.tagging.writer import TagMeta, TagWriter
from pawtag.youtube.fetcher import MetadataFetcher
from pawtag.youtube.models import MetadataRecord, PlaylistEntry
from pawtag.youtube.playlist import PlaylistResolver
from pawtag.youtube.retriever import Retriever

logger = get_logger(__name__)


@dataclass(frozen=True)
class TagOptions:
    """
    Per-run tagging options.

    Attributes:
        album: Album name overriding the playlist title.
        dry_run: Log intended tags without touching any file.
        artwork: Embed the thumbnail as cover art.
        year: Write the upload year.
        workers: Fetch thread pool size.
        fetch_mode: "per-id" or "batch".
        prefer: "fetched" or "filename" (title/artist precedence).
        album_format: Album template with a {title} placeholder.
        fallback_album: Album when the playlist title is unknown.
        default_artist: Artist when no source supplies one.
        show_progress: Draw the fetch progress bar.
    """
    album: str | None = None
    dry_run: bool = False
    artwork: bool = True
    year: bool = True
    workers: int = 8
    fetch_mode: str = "per-id"
    prefer: str = "fetched"
    album_format: str = "YouTube: {title}"
    fallback_album: str = "YouTube Playlist"
    default_artist: str = "YouTube"
    show_progress: bool = True

    @classmethod
    def from_config(cls, config: Config, album: str | None = None, dry_run: bool = False) -> "TagOptions":
        return cls(
            album=album,
            dry_run=dry_run,
            artwork=config.tagging.artwork,
            year=config.tagging.year,
            workers=config.fetch.workers,
            fetch_mode=config.fetch.mode,
            prefer=config.tagging.prefer,
            album_format=config.tagging.album_format,
            fallback_album=config.tagging.fallback_album,
            default_artist=config.tagging.default_artist,
        )


@dataclass
class TagRunReport:
    """
    Outcome of one pipeline run.

    Attributes:
        files: Matching files found in the folder.
        tagged: Files tagged (or, in a dry run, that would be tagged).
        skipped: Files without a playlist entry at their position.
        failed: Files whose tags could not be written.
        unresolved_ids: Remote ids whose metadata could not be fetched.
        album: Album name used, None if the run stopped before resolving.
        dry_run: Whether the run was a dry run.
    """

    files: int = 0
    tagged: int = 0
    skipped: int = 0
    failed: int = 0
    unresolved_ids: list[str] = field(default_factory=list)
    album: str | None = None
    dry_run: bool = False


def split_name_body(body: str) -> tuple[str | None, str | None]:
    """
    Split a filename body into (artist, title).

    Examples:
        "Artist - Title"        -> ("Artist", "Title")
        "A - B - C"             -> ("A", "B - C")
        "Just A Title"          -> (None, "Just A Title")
    """
    body = body.strip()
    if " - " in body:
        artist, title = body.split(" - ", 1)
        artist, title = artist.strip(), title.strip()
        if artist and title:
            return artist, title
    return None, body or None


def build_tag_meta(
    file_entry: FileEntry,
    playlist_entry: PlaylistEntry,
    record: MetadataRecord | None,
    album: str,
    source_url: str,
    prefer: str = "fetched",
    include_year: bool = True,
    default_artist: str = "YouTube"
) -> TagMeta:
    """
    Merge remote metadata, listing data and the filename into tag values.

    Args:
        file_entry: Local file.
        playlist_entry: Playlist entry at the file's position.
        record: Fetched metadata, or None if fetching failed.
        album: Album name for the run.
        source_url: Page URL of the remote item.
        prefer: "fetched" or "filename".
        include_year: Write the upload year when known.
        default_artist: Artist when no source supplies one.

    Returns:
        TagMeta. Title is never empty; the filename body is the last resort.
    """
    file_artist, file_title = split_name_body(file_entry.raw_name_body)
    fetched_title = record.title if record else None
    fetched_artist = record.uploader if record else None

    if prefer == "filename":
        titles = (file_title, fetched_title, playlist_entry.fallback_title)
        artists = (file_artist, fetched_artist)
    else:
        titles = (fetched_title, playlist_entry.fallback_title, file_title)
        artists = (fetched_artist, file_artist)

    title = next((t for t in titles if t), None) or file_entry.path.stem
    artist = next((a for a in artists if a), None) or default_artist
    year = record.year if (record and include_year) else None

    return TagMeta(
        title=title,
        artist=artist,
        album=album,
        track=file_entry.ordinal,
        year=year,
        source_url=source_url,
        remote_id=playlist_entry.remote_id,
    )


def run_pipeline(
    folder: Path,
    playlist_url: str,
    retriever: Retriever,
    cache: MetadataCache,
    options: TagOptions | None = None,
    writer: TagWriter | None = None
) -> TagRunReport:
    """
    Tag every ordinal-prefixed file in a folder from a remote playlist.

    Args:
        folder: Folder with "NNN - Title.ext" files.
        playlist_url: Playlist the files were downloaded from.
        retriever: Retriever for playlist and metadata calls.
        cache: Metadata cache (loaded and saved here).
        options: Run options; defaults when None.
        writer: Tag writer; a new TagWriter when None.

    Returns:
        TagRunReport.

    Raises:
        NotFoundError: If the folder does not exist.
        ResolutionError: If the playlist cannot be read by any tier.
    """
    options = options or TagOptions()
    writer = writer or TagWriter()
    report = TagRunReport(dry_run=options.dry_run)

    logger.info(f"Scanning {folder}")
    files = scan_directory(folder)
    report.files = len(files)
    if not files:
        logger.info("No 'NNN - *.mp3/m4a' files found, nothing to do")
        return report

    resolver = PlaylistResolver(
        retriever,
        album_format=options.album_format,
        fallback_album=options.fallback_album,
    )
    playlist = resolver.resolve(playlist_url, album_override=options.album)
    report.album = playlist.album

    cache.load()

    needed_ids = playlist.remote_ids_for(f.ordinal for f in files)
    fetcher = MetadataFetcher(
        retriever,
        cache,
        workers=options.workers,
        mode=options.fetch_mode,
        show_progress=options.show_progress,
    )
    try:
        records = fetcher.fetch_many(needed_ids)
    finally:
        # Keep whatever was fetched, also on interrupt
        cache.persist()
    report.unresolved_ids = list(fetcher.last_stats.failed_ids)

    for file_entry in files:
        _tag_file(file_entry, playlist.get(file_entry.ordinal), records, playlist.album,
                  retriever, writer, options, report)

    logger.info(
        f"{'Dry run' if options.dry_run else 'Tagging'} complete: {report.tagged} tagged, "
        f"{report.skipped} skipped, {report.failed} failed, "
        f"{len(report.unresolved_ids)} without metadata"
    )
    return report


def _tag_file(
    file_entry: FileEntry,
    playlist_entry: PlaylistEntry | None,
    records: dict[str, MetadataRecord],
    album: str,
    retriever: Retriever,
    writer: TagWriter,
    options: TagOptions,
    report: TagRunReport
) -> None:
    prefix = f"[{file_entry.ordinal:03d}]"
    name = file_entry.path.name

    if playlist_entry is None:
        logger.info(f"{prefix} No playlist entry, skipping {name}")
        report.skipped += 1
        return

    remote_id = playlist_entry.remote_id
    record = records.get(remote_id)
    if record is None:
        logger.warning(f"{prefix} No metadata for {remote_id}, using filename and listing title")

    meta = build_tag_meta(
        file_entry,
        playlist_entry,
        record,
        album,
        source_url=(record.webpage_url if record else None) or retriever.watch_url(remote_id),
        prefer=options.prefer,
        include_year=options.year,
        default_artist=options.default_artist,
    )
    thumbnail_url = record.thumbnail_url if (record and options.artwork) else None

    if options.dry_run:
        logger.info(f"{prefix} (dry run) {name}: {meta.describe()} cover={'yes' if thumbnail_url else 'no'}")
        report.tagged += 1
        return

    logger.info(f"{prefix} Tagging {name} <- {remote_id}")
    try:
        with download_artwork(thumbnail_url) as artwork:
            writer.write(file_entry.path, meta, artwork, audio_format=file_entry.extension)
    except TagWriteError as e:
        log_tag_failure(logger, name, remote_id, e.message, ordinal=file_entry.ordinal)
        report.failed += 1
        return

    report.tagged += 1
