"""
Progress bar handling for pawtag using the Rich library.

Only the concurrent phases get a progress bar; tagging is sequential and
logs one line per file instead.

Bars:
    - FetchProgressBar: metadata fetch (fetched / failed)
    - DownloadProgressBar: per-item download fallback (downloaded / failed)

Usage:
    from pawtag.core.progress import FetchProgressBar

    with FetchProgressBar(total=len(ids)) as progress:
        for future in as_completed(futures):
            progress.update(success=future.result() is not None)
"""

from abc import ABC, abstractmethod
from typing import Optional

from rich import get_console
from rich.console import JustifyMethod, OverflowMethod
from rich.progress import (
    BarColumn,
    Progress,
    ProgressColumn,
    Task,
    TaskID,
)
from rich.style import StyleType
from rich.text import Text
from rich.theme import Theme


PROGRESS_THEME = Theme({
    "bar.back": "grey23",
    "bar.complete": "rgb(165,66,129)",
    "bar.finished": "rgb(114,156,31)",
    "bar.pulse": "rgb(165,66,129)",
    "progress.percentage": "white",
})


class SizedTextColumn(ProgressColumn):
    """
    Text column truncated with an ellipsis beyond a fixed width.
    """

    def __init__(
        self,
        text_format: str,
        style: StyleType = "none",
        justify: JustifyMethod = "left",
        markup: bool = True,
        overflow: Optional[OverflowMethod] = None,
        width: int = 20,
    ) -> None:
        self.text_format = text_format
        self.justify: JustifyMethod = justify
        self.style = style
        self.markup = markup
        self.overflow: Optional[OverflowMethod] = overflow
        self.width = width
        super().__init__()

    def render(self, task: Task) -> Text:
        """Render the column."""
        _text = self.text_format.format(task=task)
        if self.markup:
            text = Text.from_markup(_text, style=self.style, justify=self.justify)
        else:
            text = Text(_text, style=self.style, justify=self.justify)

        text.truncate(max_width=self.width, overflow=self.overflow, pad=True)
        return text


class BaseProgressBar(ABC):
    """
    Abstract base class for all progress bars.

    Provides common functionality:
    - Rich Progress instance with a shared theme
    - Context manager support (__enter__/__exit__)
    - Manual start/stop control
    - A disabled mode that keeps the same interface but draws nothing

    Subclasses must implement:
    - _get_status_text(): Return formatted status string
    - update(): Update progress with phase-specific logic
    """

    def __init__(
        self,
        total: int,
        description: str,
        status_width: int = 30,
        enabled: bool = True
    ):
        """
        Initialize the progress bar.

        Args:
            total: Total number of items to process.
            description: Description to show on the left (e.g., "Fetching").
            status_width: Width of the status column.
            enabled: When False, start()/update() only keep counters.
        """
        self.total = total
        self.description = description
        self.completed = 0
        self.enabled = enabled

        self.progress: Progress | None = None
        if enabled:
            self.progress = Progress(
                SizedTextColumn(
                    "[white]{task.description}",
                    overflow="ellipsis",
                    width=12,
                ),
                SizedTextColumn(
                    "{task.fields[status]}",
                    width=status_width,
                    style="white",
                ),
                BarColumn(bar_width=40, finished_style="green"),
                "[progress.percentage]{task.percentage:>3.0f}%",
                console=get_console(),
                transient=False,
                refresh_per_second=10,
            )

        self.task_id: Optional[TaskID] = None
        self._started = False

    def __enter__(self) -> "BaseProgressBar":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def start(self) -> None:
        """Start the progress bar (can be called manually)."""
        if self._started or self.progress is None:
            return
        self.progress.console.push_theme(PROGRESS_THEME)
        self.progress.start()
        self.task_id = self.progress.add_task(
            description=self.description,
            total=self.total,
            status=self._get_status_text(),
        )
        self._started = True

    def stop(self) -> None:
        """Stop the progress bar."""
        if self._started and self.progress is not None:
            self.progress.stop()
            self.progress.console.pop_theme()
            self._started = False

    def _update_progress(self) -> None:
        if self.progress is not None and self.task_id is not None:
            self.progress.update(
                self.task_id,
                completed=self.completed,
                status=self._get_status_text(),
            )

    @abstractmethod
    def _get_status_text(self) -> str:
        """
        Get the status text for the progress bar.

        Returns:
            Formatted status string with Rich markup.
        """
        pass

    @abstractmethod
    def update(self, *args, **kwargs) -> None:
        """
        Update the progress bar with a completed item.

        Signature varies by phase.
        """
        pass


class FetchProgressBar(BaseProgressBar):
    """
    Progress bar for the metadata fetch phase.

    Example:
        Fetching    ✓ 45  ✗ 2                ━━━━━━━━━━━━━━━━━  47%
    """

    def __init__(self, total: int, description: str = "Fetching", enabled: bool = True):
        super().__init__(total=total, description=description, enabled=enabled)
        self.fetched = 0
        self.failed = 0

    def _get_status_text(self) -> str:
        return f"[green]✓ {self.fetched}[/green]  [red]✗ {self.failed}[/red]"

    def update(self, success: bool, count: int = 1) -> None:
        """
        Record finished ids.

        Args:
            success: Whether the ids were fetched.
            count: Number of ids finished at once (batch mode).
        """
        self.completed += count
        if success:
            self.fetched += count
        else:
            self.failed += count

        self._update_progress()


class DownloadProgressBar(BaseProgressBar):
    """
    Progress bar for per-item downloads.

    Example:
        Downloading ✓ 120  ✗ 3               ━━━━━━━━━━━━━━━━━  64%
    """

    def __init__(self, total: int, description: str = "Downloading", enabled: bool = True):
        super().__init__(total=total, description=description, enabled=enabled)
        self.downloaded = 0
        self.failed = 0

    def _get_status_text(self) -> str:
        return f"[green]✓ {self.downloaded}[/green]  [red]✗ {self.failed}[/red]"

    def update(self, success: bool) -> None:
        self.completed += 1
        if success:
            self.downloaded += 1
        else:
            self.failed += 1

        self._update_progress()


__all__ = [
    "PROGRESS_THEME",
    "SizedTextColumn",
    "BaseProgressBar",
    "FetchProgressBar",
    "DownloadProgressBar",
]
