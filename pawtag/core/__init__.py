"""
Core module for pawtag.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation (pawtag.yaml)
    - logger: Logging setup with console and file outputs
    - progress: Rich progress bars for fetch and download
    - indexer: Scanning folders for "NNN - Title.ext" files
    - cache: Persistent JSON metadata cache
"""

from pawtag.core.exceptions import (
    ArgumentError,
    CachePersistError,
    ConfigError,
    DownloadError,
    FetchError,
    NotFoundError,
    PawtagError,
    ResolutionError,
    RetrievalError,
    TagWriteError,
)
from pawtag.core.config import (
    CacheConfig,
    Config,
    FetchConfig,
    LoggingConfig,
    RetrievalConfig,
    TaggingConfig,
    load_config,
)
from pawtag.core.logger import (
    get_logger,
    log_tag_failure,
    setup_logging,
    shutdown_logging,
)
from pawtag.core.indexer import AudioFormat, FileEntry, scan_directory
from pawtag.core.cache import MetadataCache

__all__ = [
    # Exceptions
    "PawtagError",
    "ArgumentError",
    "ConfigError",
    "NotFoundError",
    "RetrievalError",
    "ResolutionError",
    "FetchError",
    "TagWriteError",
    "CachePersistError",
    "DownloadError",
    # Config
    "Config",
    "RetrievalConfig",
    "FetchConfig",
    "CacheConfig",
    "TaggingConfig",
    "LoggingConfig",
    "load_config",
    # Logger
    "setup_logging",
    "get_logger",
    "log_tag_failure",
    "shutdown_logging",
    # Index and cache
    "AudioFormat",
    "FileEntry",
    "scan_directory",
    "MetadataCache",
]
