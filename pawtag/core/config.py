"""
Configuration management for pawtag.

This module handles loading, validating, and providing access to the
optional application configuration stored in pawtag.yaml.

Unlike the command-line options, the configuration file is optional:
when no pawtag.yaml exists in the working directory, built-in defaults
are used. An explicit --config path, however, must exist.

The configuration file contains:
    - How to invoke yt-dlp (binary path, browser cookies, timeout)
    - Fetch concurrency and mode
    - Metadata cache location and lifetime
    - Tagging preferences (album naming, precedence, artwork, year)
    - Log file location

Example pawtag.yaml:
    retrieval:
      ytdlp: null
      browser: firefox
      profile: "~/snap/firefox/common/.mozilla/firefox/abcd1234.default"
      timeout: 120

    fetch:
      workers: 8
      mode: per-id

    cache:
      path: .pawtag_cache.json
      ttl_days: null
      autosave_every: 0

    tagging:
      album_format: "YouTube: {title}"
      fallback_album: "YouTube Playlist"
      prefer: fetched

    logging:
      directory: logs
      files: true
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from pawtag.core.exceptions import ConfigError


# Default configuration file name (looked up in current working directory)
CONFIG_FILENAME = "pawtag.yaml"

DEFAULT_CACHE_FILENAME = ".pawtag_cache.json"
DEFAULT_WATCH_URL = "https://www.youtube.com/watch?v={id}"

FETCH_MODES = ("per-id", "batch")
PRECEDENCE_MODES = ("fetched", "filename")


@dataclass(frozen=True)
class RetrievalConfig:
    """
    How the retrieval tool (yt-dlp) is invoked.

    Attributes:
        ytdlp: Path to a standalone yt-dlp binary. None runs the installed
               yt-dlp package with the current Python interpreter.
        browser: Browser name passed to --cookies-from-browser.
        profile: Optional browser profile directory. Credentialed tiers
                 are only distinct from anonymous ones when this is set.
        timeout: Seconds allowed for each yt-dlp invocation.
        watch_url: Template for an item's page URL, with {id} placeholder.
    """
    ytdlp: Path | None = None
    browser: str = "firefox"
    profile: Path | None = None
    timeout: float = 120.0
    watch_url: str = DEFAULT_WATCH_URL


@dataclass(frozen=True)
class FetchConfig:
    """
    Metadata fetch behavior.

    Attributes:
        workers: Number of parallel fetch workers (per-id mode).
        mode: "per-id" (one invocation per id, thread pool) or
              "batch" (one invocation per tier for all ids).
    """
    workers: int = 8
    mode: str = "per-id"


@dataclass(frozen=True)
class CacheConfig:
    """
    Metadata cache settings.

    Attributes:
        path: Cache file; relative paths resolve against the working directory.
        ttl_days: Entries older than this are refetched. None keeps them forever.
        autosave_every: Persist after this many new entries (0 = only after fetching).
    """
    path: Path = Path(DEFAULT_CACHE_FILENAME)
    ttl_days: float | None = None
    autosave_every: int = 0


@dataclass(frozen=True)
class TaggingConfig:
    """
    Tag construction preferences.

    Attributes:
        album_format: Album tag built from the playlist title ({title} placeholder).
        fallback_album: Album tag when the playlist title is unknown.
        default_artist: Artist tag when neither metadata nor filename supplies one.
        prefer: "fetched" or "filename": which source wins for title and artist.
        artwork: Embed the thumbnail as cover art.
        year: Write the upload year.
    """
    album_format: str = "YouTube: {title}"
    fallback_album: str = "YouTube Playlist"
    default_artist: str = "YouTube"
    prefer: str = "fetched"
    artwork: bool = True
    year: bool = True


@dataclass(frozen=True)
class LoggingConfig:
    """
    Log file settings.

    Attributes:
        directory: Directory for log files (relative to the working directory).
        files: Write log files at all; False logs to the console only.
    """
    directory: Path = Path("logs")
    files: bool = True


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    This is the main configuration object that aggregates all configuration
    sections. It is created by load_config() and is immutable; the CLI
    derives per-run variants with with_overrides().

    Example:
        config = load_config()
        print(f"Using {config.fetch.workers} workers in {config.fetch.mode} mode")
    """
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    tagging: TaggingConfig = field(default_factory=TaggingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def with_overrides(self, **sections: dict[str, Any]) -> "Config":
        """
        Return a copy with some section fields replaced.

        Args:
            **sections: Section name -> {field: value}. None values are ignored
                        so unset CLI options keep the configured value.

        Returns:
            A new Config.

        Example:
            config.with_overrides(fetch={"workers": 4}, tagging={"artwork": None})
        """
        updated = self
        for section_name, values in sections.items():
            changes = {key: value for key, value in values.items() if value is not None}
            if not changes:
                continue
            section = replace(getattr(updated, section_name), **changes)
            updated = replace(updated, **{section_name: section})
        return updated


def load_config(config_path: Path | None = None) -> Config:
    """
    Load and validate configuration from pawtag.yaml.

    Args:
        config_path: Optional explicit path to config file.
                     If None, looks for pawtag.yaml in current working directory
                     and falls back to defaults when it is absent.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If an explicit config file is not found, the file has
                     invalid YAML syntax, or contains invalid values.

    Thread Safety:
        This function is NOT thread-safe. It should be called once at
        application startup, before any threads are created.
    """
    explicit = config_path is not None
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    if not config_path.exists():
        if explicit:
            raise ConfigError(
                f"Configuration file not found: {config_path}",
                details={"file_path": str(config_path)}
            )
        return Config()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    # An empty file is a valid "all defaults" configuration
    if raw_config is None:
        return Config()

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    return Config(
        retrieval=_parse_retrieval_config(_section(raw_config, "retrieval")),
        fetch=_parse_fetch_config(_section(raw_config, "fetch")),
        cache=_parse_cache_config(_section(raw_config, "cache")),
        tagging=_parse_tagging_config(_section(raw_config, "tagging")),
        logging=_parse_logging_config(_section(raw_config, "logging")),
    )


def _section(raw_config: dict[str, Any], name: str) -> dict[str, Any]:
    """Return a config section, or an empty dict when it is absent."""
    section = raw_config.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(
            f"Section '{name}' must be a dictionary",
            details={"section": name}
        )
    return section


def _optional_path(section: dict[str, Any], key: str, field_name: str) -> Path | None:
    raw = section.get(key)
    if raw is None:
        return None
    if not isinstance(raw, str) or not raw.strip():
        raise ConfigError(
            f"'{field_name}' must be a non-empty string path or null",
            details={"field": field_name}
        )
    return Path(raw.strip()).expanduser()


def _positive_number(value: Any, field_name: str, integer: bool = False) -> Any:
    # bool is an int subclass; reject it explicitly
    valid_types = (int,) if integer else (int, float)
    if isinstance(value, bool) or not isinstance(value, valid_types) or value <= 0:
        kind = "integer" if integer else "number"
        raise ConfigError(
            f"'{field_name}' must be a positive {kind}",
            details={"field": field_name, "value": value}
        )
    return value


def _string(section: dict[str, Any], key: str, default: str, field_name: str) -> str:
    raw = section.get(key, default)
    if not isinstance(raw, str) or not raw.strip():
        raise ConfigError(
            f"'{field_name}' must be a non-empty string",
            details={"field": field_name}
        )
    return raw


def _choice(section: dict[str, Any], key: str, default: str, choices: tuple[str, ...], field_name: str) -> str:
    raw = section.get(key, default)
    if raw not in choices:
        raise ConfigError(
            f"'{field_name}' must be one of: {', '.join(choices)}",
            details={"field": field_name, "value": raw}
        )
    return raw


def _flag(section: dict[str, Any], key: str, default: bool, field_name: str) -> bool:
    raw = section.get(key, default)
    if not isinstance(raw, bool):
        raise ConfigError(
            f"'{field_name}' must be true or false",
            details={"field": field_name, "value": raw}
        )
    return raw


def _parse_retrieval_config(section: dict[str, Any]) -> RetrievalConfig:
    defaults = RetrievalConfig()
    timeout = section.get("timeout", defaults.timeout)
    watch_url = _string(section, "watch_url", defaults.watch_url, "retrieval.watch_url")
    if "{id}" not in watch_url:
        raise ConfigError(
            "'retrieval.watch_url' must contain an {id} placeholder",
            details={"field": "retrieval.watch_url", "value": watch_url}
        )
    return RetrievalConfig(
        ytdlp=_optional_path(section, "ytdlp", "retrieval.ytdlp"),
        browser=_string(section, "browser", defaults.browser, "retrieval.browser"),
        profile=_optional_path(section, "profile", "retrieval.profile"),
        timeout=float(_positive_number(timeout, "retrieval.timeout")),
        watch_url=watch_url,
    )


def _parse_fetch_config(section: dict[str, Any]) -> FetchConfig:
    defaults = FetchConfig()
    workers = section.get("workers", defaults.workers)
    return FetchConfig(
        workers=_positive_number(workers, "fetch.workers", integer=True),
        mode=_choice(section, "mode", defaults.mode, FETCH_MODES, "fetch.mode"),
    )


def _parse_cache_config(section: dict[str, Any]) -> CacheConfig:
    defaults = CacheConfig()
    path = _optional_path(section, "path", "cache.path") or defaults.path

    ttl_days = section.get("ttl_days")
    if ttl_days is not None:
        ttl_days = float(_positive_number(ttl_days, "cache.ttl_days"))

    autosave_every = section.get("autosave_every", defaults.autosave_every)
    if isinstance(autosave_every, bool) or not isinstance(autosave_every, int) or autosave_every < 0:
        raise ConfigError(
            "'cache.autosave_every' must be a non-negative integer",
            details={"field": "cache.autosave_every", "value": autosave_every}
        )

    return CacheConfig(path=path, ttl_days=ttl_days, autosave_every=autosave_every)


def album_format_error(album_format: str) -> str | None:
    """
    Check an album template by formatting it with a sample title.

    Returns:
        None if the template works, otherwise the reason it does not.

    Example:
        album_format_error("{title} ({year})")
        # "has an unknown placeholder 'year' (only {title} is available)"
    """
    if "{title}" not in album_format:
        return "must contain a {title} placeholder"
    try:
        album_format.format(title="Playlist")
    except KeyError as e:
        return f"has an unknown placeholder {e} (only {{title}} is available)"
    except (IndexError, ValueError, AttributeError) as e:
        return f"is not a valid template: {e}"
    return None


def _parse_tagging_config(section: dict[str, Any]) -> TaggingConfig:
    defaults = TaggingConfig()
    album_format = _string(section, "album_format", defaults.album_format, "tagging.album_format")
    problem = album_format_error(album_format)
    if problem:
        raise ConfigError(
            f"'tagging.album_format' {problem}",
            details={"field": "tagging.album_format", "value": album_format}
        )
    return TaggingConfig(
        album_format=album_format,
        fallback_album=_string(section, "fallback_album", defaults.fallback_album, "tagging.fallback_album"),
        default_artist=_string(section, "default_artist", defaults.default_artist, "tagging.default_artist"),
        prefer=_choice(section, "prefer", defaults.prefer, PRECEDENCE_MODES, "tagging.prefer"),
        artwork=_flag(section, "artwork", defaults.artwork, "tagging.artwork"),
        year=_flag(section, "year", defaults.year, "tagging.year"),
    )


def _parse_logging_config(section: dict[str, Any]) -> LoggingConfig:
    defaults = LoggingConfig()
    directory = _optional_path(section, "directory", "logging.directory") or defaults.directory
    return LoggingConfig(
        directory=directory,
        files=_flag(section, "files", defaults.files, "logging.files"),
    )
