"""
Logging configuration for pawtag.

This module sets up the logging system with multiple outputs:
    - Console: Real-time messages with tqdm-compatible formatting
    - log_full_<timestamp>.log: Complete log of all events (DEBUG and above)
    - log_errors_<timestamp>.log: Only ERROR and CRITICAL level messages
    - tag_failures_<timestamp>.log: Files whose tags could not be written

The logging system follows the principle: everything to screen is also saved
to file, then filtered into specialized files.

Usage:
    from pawtag.core.logger import setup_logging, get_logger

    setup_logging(Path("logs"))  # Call once at startup
    logger = get_logger(__name__)  # Get logger for each module

    logger.info("Tagging 12 files")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tqdm import tqdm


# Log file name prefixes (a timestamp is appended per run)
LOG_FULL_PREFIX = "log_full"
LOG_ERRORS_PREFIX = "log_errors"
TAG_FAILURES_PREFIX = "tag_failures"

# Log format for file output (detailed with timestamp)
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    BOLD = "\033[1m"


class ColoredConsoleFormatter(logging.Formatter):
    """
    Formatter that adds colors to console output.

    Colors:
        - DEBUG: Blue
        - INFO: Green
        - WARNING: Yellow
        - ERROR: Red
        - CRITICAL: Bold Red
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.BLUE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        colored_levelname = f"{color}{record.levelname}{Colors.RESET}"
        return f"{colored_levelname}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes to console without breaking progress bars.

    Progress bars redraw themselves in place with carriage returns; plain
    writes to stderr would tear them. tqdm.write() prints above any
    active bar instead.

    Attributes:
        stream: The output stream (defaults to sys.stderr).
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        """
        Initialize the tqdm-compatible handler.

        Args:
            stream: Output stream for log messages. Defaults to the
                    current sys.stderr, resolved at emit time.
        """
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream or sys.stderr)
        except Exception:
            self.handleError(record)


class TagFailureHandler(logging.Handler):
    """
    Handler that captures tag failures for the failure report file.

    Listens for log records carrying tag failure information and writes
    them to tag_failures_<timestamp>.log in a simple, human-readable format:

        007 - Some Song.mp3
        dQw4w9WgXcQ: [Errno 13] Permission denied

    The handler looks for these extra fields in log records:
        - 'tag_failed_file': File name that could not be tagged
        - 'tag_failed_remote_id': Remote id of the matching playlist entry
        - 'tag_failed_reason': Short failure description

    Only records containing 'tag_failed_file' are written to the report.

    Attributes:
        report_path: Path to the report file.
        report_file: Open file handle (opened by open()).
    """

    def __init__(self, report_path: Path) -> None:
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        """
        Open the report file for writing.

        Called by setup_logging() after handler is created.
        File is opened in write mode (overwrites existing content).
        """
        self.report_file = open(self.report_path, "w", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        """
        Write failed file info to the report if present in the log record.

        Thread Safety:
            Tagging runs sequentially, so no extra locking is needed.
        """
        if not hasattr(record, "tag_failed_file"):
            return

        if self.report_file is None:
            return

        try:
            file_name = getattr(record, "tag_failed_file", "Unknown")
            remote_id = getattr(record, "tag_failed_remote_id", None) or "?"
            reason = getattr(record, "tag_failed_reason", "")

            self.report_file.write(f"{file_name}\n")
            self.report_file.write(f"{remote_id}: {reason}\n\n")
            self.report_file.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        """
        Close the report file handle.

        Safe to call multiple times.
        """
        if self.report_file is not None:
            try:
                self.report_file.close()
            except OSError:
                pass
            self.report_file = None
        super().close()


class ErrorOnlyFilter(logging.Filter):
    """
    Filter that only allows ERROR and CRITICAL level records.

    Used by the error log file handler to exclude DEBUG, INFO, and WARNING.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def setup_logging(log_dir: Path | None = None, verbose: bool = False) -> None:
    """
    Configure the logging system for the application.

    This function should be called ONCE at application startup, after
    the configuration is loaded but before any other operations.

    Args:
        log_dir: Directory where log files will be created, or None to
                 log to the console only.
        verbose: Show DEBUG messages on the console.

    Behavior:
        1. Configure root logger level to DEBUG
        2. Console handler (TqdmLoggingHandler), INFO or DEBUG, colored
        3. If log_dir is given, create it and add:
           - log_full_{timestamp}.log (DEBUG, full format)
           - log_errors_{timestamp}.log (ERROR+ via ErrorOnlyFilter)
           - tag_failures_{timestamp}.log (TagFailureHandler)

    Thread Safety:
        This function is NOT thread-safe. Call it once from the main
        thread before starting any worker threads.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(ColoredConsoleFormatter())
    root_logger.addHandler(console_handler)

    if log_dir is None:
        return

    log_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    full_handler = logging.FileHandler(
        log_dir / f"{LOG_FULL_PREFIX}_{timestamp}.log", mode="w", encoding="utf-8"
    )
    full_handler.setLevel(logging.DEBUG)
    full_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    root_logger.addHandler(full_handler)

    error_handler = logging.FileHandler(
        log_dir / f"{LOG_ERRORS_PREFIX}_{timestamp}.log", mode="w", encoding="utf-8"
    )
    error_handler.setLevel(logging.DEBUG)  # Filter handles the level restriction
    error_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    error_handler.addFilter(ErrorOnlyFilter())
    root_logger.addHandler(error_handler)

    failures_handler = TagFailureHandler(log_dir / f"{TAG_FAILURES_PREFIX}_{timestamp}.log")
    failures_handler.open()
    root_logger.addHandler(failures_handler)

    # yt-dlp and urllib3 are chatty at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.

    Returns:
        logging.Logger: A logger instance configured by setup_logging().

    Note:
        Loggers obtained before setup_logging() is called have no
        handlers of their own; records propagate to the root logger.
    """
    return logging.getLogger(name)


def log_tag_failure(
    logger: logging.Logger,
    file_name: str,
    remote_id: str | None,
    reason: str,
    ordinal: int | None = None
) -> None:
    """
    Log a file whose tags could not be written.

    Logs an ERROR with the correct extra fields for TagFailureHandler to
    pick up and append to the failure report.

    Args:
        logger: The logger to use for the message.
        file_name: Name of the file that failed.
        remote_id: Remote id of the playlist entry, if known.
        reason: Description of why tagging failed.
        ordinal: Playlist position for the console line.

    Example:
        log_tag_failure(logger, "007 - Song.mp3", "abc123", "Permission denied", 7)
    """
    prefix = f"[{ordinal:03d}] " if ordinal is not None else ""
    logger.error(
        f"{prefix}Tagging failed: {file_name} - {reason}",
        extra={
            "tag_failed_file": file_name,
            "tag_failed_remote_id": remote_id,
            "tag_failed_reason": reason,
        }
    )


def shutdown_logging() -> None:
    """
    Properly shut down the logging system.

    Flushes and closes every handler on the root logger, then removes
    them. Typically called in a finally block at application exit.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except (OSError, ValueError):
            pass
        root_logger.removeHandler(handler)
