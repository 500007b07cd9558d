"""
Exception classes for pawtag.

This module defines all custom exceptions used throughout the application.
Each exception carries a human-readable message plus an optional details
dictionary, and the class itself tells the caller whether the failure
aborts the run or only the current item.

Exception Hierarchy:
    PawtagError (base)
        ArgumentError - Missing or invalid command-line input (fatal)
        ConfigError - Configuration file issues (fatal)
        NotFoundError - Input directory missing (fatal)
        RetrievalError - One yt-dlp invocation failed (drives tier fallback)
        ResolutionError - Every playlist resolution tier failed (fatal)
        FetchError - Metadata for one remote id could not be fetched
        TagWriteError - Tags for one file could not be written
        CachePersistError - Metadata cache could not be saved
        DownloadError - Playlist download failed
"""


class PawtagError(Exception):
    """
    Base exception for all pawtag errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch every pawtag error with a single
    except clause if desired.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (ids, paths, tiers).

    Example:
        try:
            resolver.resolve(url)
        except PawtagError as e:
            logger.error(f"Operation failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description that will be shown to the user.
            details: Optional dictionary containing additional context about the error.
                     Common keys include:
                     - 'remote_id': Remote item id involved in the error
                     - 'url': URL that caused the error
                     - 'path': Local file or directory involved
                     - 'tiers': Labels of the access tiers that were tried
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ArgumentError(PawtagError):
    """
    Raised when a required command-line argument is missing or invalid.

    This is a CRITICAL error: the CLI exits with status 1.

    Example:
        raise ArgumentError("Missing --folder", details={"option": "--folder"})
    """
    pass


class ConfigError(PawtagError):
    """
    Raised when there's an issue with the configuration file.

    This is a CRITICAL error that should stop program execution.

    Common causes:
        - --config points to a file that does not exist
        - pawtag.yaml has invalid YAML syntax
        - Invalid field values (e.g., zero worker count, unknown fetch mode)

    Example:
        raise ConfigError(
            "'fetch.workers' must be a positive integer",
            details={'field': 'fetch.workers', 'value': 0}
        )
    """
    pass


class NotFoundError(PawtagError):
    """
    Raised when the folder to scan does not exist or is not a directory.

    This is a CRITICAL error: nothing can be tagged.
    """
    pass


class RetrievalError(PawtagError):
    """
    Raised when a single yt-dlp invocation fails.

    Covers a non-zero exit status, a timeout, unparsable output, and a
    missing executable. Callers treat it as the failure of one access tier
    and move on to the next tier; it never reaches the user directly.

    Attributes:
        tier: Label of the access tier that was being tried, if any.
        timed_out: True if the process exceeded its timeout.
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        tier: str | None = None,
        timed_out: bool = False
    ) -> None:
        """
        Initialize retrieval error with tier context.

        Args:
            message: Human-readable error description (usually yt-dlp's stderr).
            details: Optional dictionary with additional context.
            tier: Label of the access tier used for the failed invocation.
            timed_out: Set to True if the process was killed after its timeout.
        """
        super().__init__(message, details)
        self.tier = tier
        self.timed_out = timed_out


class ResolutionError(PawtagError):
    """
    Raised when every playlist resolution tier has failed.

    This is a CRITICAL error: without the ordinal -> id map no file can
    be matched to its playlist entry.

    Example:
        raise ResolutionError(
            "Could not resolve playlist with any access tier",
            details={'url': url, 'tiers': ['android+cookies', 'web+cookies']}
        )
    """
    pass


class FetchError(PawtagError):
    """
    Raised when metadata for one remote id could not be fetched.

    This is a NON-CRITICAL error: the id is reported as unresolved and
    the file is tagged from its filename and the playlist listing instead.
    """
    pass


class TagWriteError(PawtagError):
    """
    Raised when tags could not be written into an audio file.

    This is a NON-CRITICAL error: the failure is logged and the batch
    continues with the next file.

    Common causes:
        - File is not a valid MP3/M4A container
        - Permission denied on write
        - Disk full during save
    """
    pass


class CachePersistError(PawtagError):
    """
    Raised internally when the metadata cache could not be written.

    Never propagated out of MetadataCache.persist(): the run must not
    abort just because the cache could not be saved.
    """
    pass


class DownloadError(PawtagError):
    """
    Raised when a playlist download could not even be started.

    Individual items that fail every tier are logged and skipped; this
    error is reserved for the case where the playlist listing itself
    cannot be retrieved.
    """
    pass
