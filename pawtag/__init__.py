"""
pawtag: tag downloaded playlist audio with its YouTube metadata.

Files downloaded from a playlist are named by position ("003 - Title.mp3").
pawtag maps each file back to the playlist entry at that position, fetches
the entry's metadata through yt-dlp, caches it, and writes it into the
file's tags.

Architecture:
    core/       - Configuration, logging, exceptions, file index, cache
    youtube/    - yt-dlp adapter, playlist resolution, metadata fetching
    tagging/    - ID3 / MP4 tag writing and cover art
    download/   - Playlist audio download ("NNN - Title.ext" files)
    pipeline.py - One tagging run from folder + playlist URL
    cli.py      - Command-line interface

Usage:
    Command Line:
        pawtag tag --folder yt_playlist_downloads --playlist "https://www.youtube.com/playlist?list=..."
        pawtag tag --folder music --playlist "https://..." --dry-run
        pawtag download "https://www.youtube.com/playlist?list=..." --out yt_playlist_downloads

    Python API:
        from pawtag.core import MetadataCache, load_config, setup_logging
        from pawtag.pipeline import TagOptions, run_pipeline
        from pawtag.youtube import YtDlpRetriever

        config = load_config()
        setup_logging(None)
        report = run_pipeline(
            Path("yt_playlist_downloads"),
            "https://www.youtube.com/playlist?list=...",
            YtDlpRetriever(),
            MetadataCache(config.cache.path),
            TagOptions.from_config(config),
        )

Dependencies:
    - yt-dlp: playlist and metadata retrieval, downloads
    - mutagen: ID3 and MP4 tag writing
    - Pillow: cover art conversion
    - requests: cover art download
    - click / rich-click: CLI
    - rich: progress bars
    - tqdm: progress-safe console logging
    - pyyaml: configuration file parsing
"""

__version__ = "0.1.0"
__author__ = "pawtag"
__license__ = "MIT"

# Convenience imports for common usage
from pawtag.core import (
    Config,
    ConfigError,
    MetadataCache,
    NotFoundError,
    PawtagError,
    ResolutionError,
    TagWriteError,
    get_logger,
    load_config,
    setup_logging,
)

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "MetadataCache",
    "setup_logging",
    "get_logger",
    # Exceptions
    "PawtagError",
    "ConfigError",
    "NotFoundError",
    "ResolutionError",
    "TagWriteError",
]
