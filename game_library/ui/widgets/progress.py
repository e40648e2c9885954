"""Progress widget for metadata updates."""

from typing import ClassVar, override

from textual.app import ComposeResult
from textual.containers import Vertical
from textual.reactive import reactive
from textual.widget import Widget
from textual.widgets import ProgressBar, Static

import structlog

from game_library.models.progress import Completed, Failed, MetadataStatus, Progress, Started, Success

log = structlog.stdlib.get_logger()


class MetadataProgressWidget(Widget):
    """Shows the progress of a library metadata update.

    Fed directly with status events: the current game, a progress bar, the
    success/failure counters and the most recent failure reasons.
    """

    DEFAULT_CSS: ClassVar[str] = """
    MetadataProgressWidget {
        height: auto;
        padding: 1;
        border: solid $primary-darken-2;
        background: $surface;
    }

    MetadataProgressWidget .progress-title {
        text-style: bold;
        color: $primary;
        margin-bottom: 1;
    }

    MetadataProgressWidget .progress-bar-container {
        height: 3;
    }

    MetadataProgressWidget .progress-details {
        color: $text-muted;
    }

    MetadataProgressWidget .failure-list {
        color: $error;
        margin-top: 1;
    }
    """

    status: reactive[str] = reactive("Ready", init=False)
    completed: reactive[int] = reactive(0, init=False)
    total: reactive[int] = reactive(0, init=False)

    def __init__(
        self,
        title: str = "Metadata Update",
        max_failures_shown: int = 5,
        name: str | None = None,
        id: str | None = None,
        classes: str | None = None,
    ) -> None:
        super().__init__(name=name, id=id, classes=classes)
        self._title = title
        self._max_failures_shown = max_failures_shown
        self.current_game = ""
        self.successful = 0
        self.failures: list[str] = []

    @override
    def compose(self) -> ComposeResult:
        yield Static(self._title, classes="progress-title")
        yield Static("Ready", id="progress-status")
        with Vertical(classes="progress-bar-container"):
            yield ProgressBar(id="progress-bar", total=100, show_eta=False)
        yield Static("", id="progress-details", classes="progress-details")
        yield Static("", id="failure-list", classes="failure-list")

    def apply_status(self, event: MetadataStatus) -> None:
        """Update the widget from one status event."""
        match event:
            case Started(game_name=name):
                self.current_game = name
                self.status = f"Fetching {name}..."
            case Success():
                self.successful += 1
            case Failed(game_name=name, reason=reason):
                self.failures.append(f"{name}: {reason}")
            case Progress(completed=done, total=total):
                self.completed = done
                self.total = total
            case Completed(successful=ok, failed=failed, total=total):
                self.completed = self.total = total
                self.status = f"Finished: {ok} updated, {failed} failed of {total}"
        self._refresh_display()

    def reset(self) -> None:
        self.status = "Ready"
        self.completed = 0
        self.total = 0
        self.current_game = ""
        self.successful = 0
        self.failures = []
        self._refresh_display()

    @property
    def percentage(self) -> float:
        return Progress(self.completed, self.total).percentage if self.total else 0.0

    def _refresh_display(self) -> None:
        if not self.is_mounted:
            return

        self.query_one("#progress-status", Static).update(self.status)
        self.query_one("#progress-bar", ProgressBar).update(progress=self.percentage)
        details = f"Processed: {self.completed}/{self.total} games" if self.total else ""
        self.query_one("#progress-details", Static).update(details)

        recent = self.failures[-self._max_failures_shown:]
        text = "\n".join(f"• {f}" for f in recent)
        if len(self.failures) > self._max_failures_shown:
            text += f"\n... and {len(self.failures) - self._max_failures_shown} more"
        self.query_one("#failure-list", Static).update(text)
