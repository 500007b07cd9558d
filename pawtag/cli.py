"""
Command-line interface for pawtag.

This module implements the CLI using Click, providing the commands for
tagging a folder of downloaded playlist files and for downloading a
playlist in the expected naming scheme.
rich-click is used for the output colors.

Commands:
    pawtag tag --folder <dir> --playlist <url>    Tag files from a playlist
    pawtag tag ... --dry-run                      Show tags, write nothing
    pawtag download <url> [--out <dir>]           Download a playlist as audio

Environment:
    FF_PROFILE    Firefox profile path for cookies (same as --ff-profile)
    YTDLP         yt-dlp binary (same as --ytdlp)

Exit Codes:
    0    Success, including nothing to do and per-file failures
    1    Missing argument, missing folder, bad configuration, or the
         playlist could not be read
    130  Interrupted

Configuration:
    An optional pawtag.yaml in the current directory (or --config FILE)
    provides defaults; command-line options override it.
"""

import sys
from pathlib import Path
from typing import Optional

import rich_click as click

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100
click.rich_click.OPTION_GROUPS = {
    "pawtag tag": [
        {
            "name": "Input",
            "options": ["--folder", "--playlist", "--album"],
        },
        {
            "name": "Tagging",
            "options": ["--no-artwork", "--no-year", "--prefer", "--dry-run"],
        },
        {
            "name": "Retrieval",
            "options": ["--ff-profile", "--browser", "--ytdlp", "--timeout", "--workers", "--fetch-mode"],
        },
        {
            "name": "Advanced Options",
            "options": ["--cache-file", "--config", "--verbose"],
        },
    ],
}

from pawtag import __version__
from pawtag.core import (
    ArgumentError,
    Config,
    ConfigError,
    MetadataCache,
    NotFoundError,
    PawtagError,
    ResolutionError,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
)
from pawtag.core.config import FETCH_MODES, PRECEDENCE_MODES
from pawtag.download import download_playlist
from pawtag.download.downloader import AUDIO_FORMATS
from pawtag.pipeline import TagOptions, run_pipeline
from pawtag.utils import sanitize_playlist_url
from pawtag.youtube import YtDlpRetriever, cookies_source

logger = get_logger(__name__)


# Exit code for Ctrl+C (128 + SIGINT)
EXIT_INTERRUPTED = 130


@click.group(invoke_without_command=True)
@click.option(
    "--version",
    is_flag=True,
    help="Show version and exit."
)
@click.pass_context
def cli(ctx: click.Context, version: bool) -> None:
    """
    pawtag: Tag downloaded playlist audio with its YouTube metadata.

    Files named "NNN - Title.mp3" / "NNN - Title.m4a" are matched to the
    playlist entry at position NNN; title, uploader, year, album and cover
    art are written into their tags.

    \b
    BASIC USAGE:
        pawtag tag --folder yt_playlist_downloads --playlist "https://www.youtube.com/playlist?list=..."
        pawtag tag --folder music --playlist "https://..." --dry-run
        pawtag download "https://www.youtube.com/playlist?list=..."
    """
    if version:
        click.echo(f"pawtag {__version__}")
        ctx.exit(0)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit(0)


@cli.command()
@click.option(
    "--folder",
    type=click.Path(path_type=Path),
    default=None,
    metavar="<dir>",
    help="Folder with 'NNN - Title.mp3/m4a' files"
)
@click.option(
    "--playlist",
    type=str,
    default=None,
    metavar="<url>",
    help="Playlist the files were downloaded from"
)
@click.option(
    "--album",
    type=str,
    default=None,
    metavar="<name>",
    help="Album name instead of 'YouTube: <playlist title>'"
)
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    default=None,
    metavar="<n>",
    help="Parallel metadata fetches (default 8)"
)
@click.option(
    "--no-artwork",
    is_flag=True,
    help="Do not embed cover art"
)
@click.option(
    "--no-year",
    is_flag=True,
    help="Do not write the upload year"
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show the tags that would be written, change nothing"
)
@click.option(
    "--ff-profile",
    type=click.Path(path_type=Path),
    default=None,
    envvar="FF_PROFILE",
    metavar="<path>",
    help="Browser profile with YouTube cookies [env: FF_PROFILE]"
)
@click.option(
    "--browser",
    type=str,
    default=None,
    metavar="<name>",
    help="Browser for --cookies-from-browser (default firefox)"
)
@click.option(
    "--ytdlp",
    type=click.Path(path_type=Path),
    default=None,
    envvar="YTDLP",
    metavar="<path>",
    help="yt-dlp binary instead of the installed package [env: YTDLP]"
)
@click.option(
    "--cache-file",
    type=click.Path(path_type=Path),
    default=None,
    metavar="<file>",
    help="Metadata cache file (default .pawtag_cache.json)"
)
@click.option(
    "--fetch-mode",
    type=click.Choice(FETCH_MODES),
    default=None,
    help="One yt-dlp call per item, or one per tier for all items"
)
@click.option(
    "--prefer",
    type=click.Choice(PRECEDENCE_MODES),
    default=None,
    help="Source that wins for title and artist"
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    metavar="<seconds>",
    help="Timeout for each yt-dlp call (default 120)"
)
@click.option(
    "--config", "config_path",
    type=click.Path(path_type=Path),
    default=None,
    metavar="<file>",
    help="Configuration file (default ./pawtag.yaml if present)"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Show debug messages"
)
def tag(
    folder: Optional[Path],
    playlist: Optional[str],
    album: Optional[str],
    workers: Optional[int],
    no_artwork: bool,
    no_year: bool,
    dry_run: bool,
    ff_profile: Optional[Path],
    browser: Optional[str],
    ytdlp: Optional[Path],
    cache_file: Optional[Path],
    fetch_mode: Optional[str],
    prefer: Optional[str],
    timeout: Optional[float],
    config_path: Optional[Path],
    verbose: bool
) -> None:
    """
    Tag playlist files in a folder with their remote metadata.

    \b
    EXAMPLES:
        pawtag tag --folder yt_playlist_downloads --playlist "https://www.youtube.com/playlist?list=..."
        pawtag tag --folder music --playlist "https://..." --album "Road Trip" --no-artwork
        FF_PROFILE=~/.mozilla/firefox/abcd.default pawtag tag --folder music --playlist "https://..."
    """
    _run_tag({
        "folder": folder,
        "playlist": playlist,
        "album": album,
        "dry_run": dry_run,
        "config_path": config_path,
        "verbose": verbose,
        "overrides": {
            "retrieval": {"ytdlp": ytdlp, "browser": browser, "profile": ff_profile, "timeout": timeout},
            "fetch": {"workers": workers, "mode": fetch_mode},
            "cache": {"path": cache_file},
            "tagging": {
                "prefer": prefer,
                "artwork": False if no_artwork else None,
                "year": False if no_year else None,
            },
        },
    })


@cli.command()
@click.argument("url", metavar="<url>")
@click.option(
    "--out",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("yt_playlist_downloads"),
    show_default=True,
    metavar="<dir>",
    help="Output folder"
)
@click.option(
    "--format", "audio_format",
    type=click.Choice(AUDIO_FORMATS),
    default="mp3",
    show_default=True,
    help="Audio format"
)
@click.option(
    "--ff-profile",
    type=click.Path(path_type=Path),
    default=None,
    envvar="FF_PROFILE",
    metavar="<path>",
    help="Browser profile with YouTube cookies [env: FF_PROFILE]"
)
@click.option(
    "--browser",
    type=str,
    default=None,
    metavar="<name>",
    help="Browser for --cookies-from-browser (default firefox)"
)
@click.option(
    "--ytdlp",
    type=click.Path(path_type=Path),
    default=None,
    envvar="YTDLP",
    metavar="<path>",
    help="yt-dlp binary instead of the installed package [env: YTDLP]"
)
@click.option(
    "--config", "config_path",
    type=click.Path(path_type=Path),
    default=None,
    metavar="<file>",
    help="Configuration file (default ./pawtag.yaml if present)"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Show debug messages"
)
def download(
    url: str,
    out: Path,
    audio_format: str,
    ff_profile: Optional[Path],
    browser: Optional[str],
    ytdlp: Optional[Path],
    config_path: Optional[Path],
    verbose: bool
) -> None:
    """
    Download a playlist as 'NNN - Title' audio files, ready for tagging.

    Requires ffmpeg. Already downloaded items are recorded in
    <out>/archive.txt and skipped on the next run.
    """
    _run_download({
        "url": url,
        "out": out,
        "audio_format": audio_format,
        "config_path": config_path,
        "verbose": verbose,
        "overrides": {
            "retrieval": {"ytdlp": ytdlp, "browser": browser, "profile": ff_profile},
        },
    })


def _prepare(options: dict) -> Config:
    """Load configuration, apply command-line overrides, start logging."""
    config = load_config(options["config_path"]).with_overrides(**options["overrides"])
    log_dir = config.logging.directory if config.logging.files else None
    setup_logging(log_dir, verbose=options["verbose"])
    return config


def _build_retriever(config: Config) -> YtDlpRetriever:
    executable = [str(config.retrieval.ytdlp.expanduser())] if config.retrieval.ytdlp else None
    return YtDlpRetriever(
        executable=executable,
        cookies_from_browser=cookies_source(config.retrieval.browser, config.retrieval.profile),
        timeout=config.retrieval.timeout,
        watch_url_template=config.retrieval.watch_url,
    )


def _run_tag(options: dict) -> None:
    """
    Execute a tagging run based on CLI options.

    Behavior:
        1. Validate required arguments
        2. Load configuration and set up logging
        3. Run the pipeline and report results

    Raises:
        SystemExit: On fatal errors (with appropriate exit code).
    """
    try:
        if not options["folder"] or not options["playlist"]:
            raise ArgumentError("Both --folder and --playlist are required")

        config = _prepare(options)
        playlist_url = sanitize_playlist_url(options["playlist"])
        logger.info(f"pawtag {__version__} starting")

        report = run_pipeline(
            folder=options["folder"].expanduser(),
            playlist_url=playlist_url,
            retriever=_build_retriever(config),
            cache=MetadataCache(
                config.cache.path.expanduser(),
                ttl_days=config.cache.ttl_days,
                autosave_every=config.cache.autosave_every,
            ),
            options=TagOptions.from_config(config, album=options["album"], dry_run=options["dry_run"]),
        )

        if report.unresolved_ids:
            logger.warning(f"No metadata for: {', '.join(report.unresolved_ids)}")
        logger.info("pawtag finished")

    except (ArgumentError, ConfigError, NotFoundError) as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    except ResolutionError as e:
        click.echo(f"Playlist error: {e.message}", err=True)
        click.echo("Check the URL, or pass --ff-profile with a signed-in browser profile", err=True)
        logger.error(f"Playlist error: {e.message} {e.details}")
        sys.exit(1)

    except PawtagError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(1)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(EXIT_INTERRUPTED)

    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        logger.exception("Unexpected error")
        sys.exit(1)

    finally:
        shutdown_logging()


def _run_download(options: dict) -> None:
    """
    Execute a playlist download based on CLI options.

    Raises:
        SystemExit: On fatal errors (with appropriate exit code).
    """
    try:
        config = _prepare(options)
        url = sanitize_playlist_url(options["url"])
        logger.info(f"pawtag {__version__} downloading {url}")

        stats = download_playlist(
            url,
            options["out"].expanduser(),
            _build_retriever(config),
            audio_format=options["audio_format"],
        )
        if stats.failed:
            logger.warning(f"{stats.failed} items could not be downloaded")

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except PawtagError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(1)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(EXIT_INTERRUPTED)

    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        logger.exception("Unexpected error")
        sys.exit(1)

    finally:
        shutdown_logging()


if __name__ == "__main__":
    cli()
