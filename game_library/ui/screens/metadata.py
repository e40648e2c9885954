"""Metadata update screen running the library refresh in a worker."""

import asyncio
from typing import ClassVar, override

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.message import Message
from textual.widgets import Button
from textual.worker import Worker, WorkerState

import structlog

from game_library.models.progress import Completed, MetadataStatus
from game_library.services.metadata_refresh import CallbackStatusChannel

from ..widgets import MetadataProgressWidget
from .base import BaseScreen

log = structlog.stdlib.get_logger()


class MetadataUpdateScreen(BaseScreen):
    """Refresh metadata for every scanned game and show live progress."""

    class StatusReceived(Message):
        """A status event forwarded from the refresh service."""

        def __init__(self, event: MetadataStatus) -> None:
            super().__init__()
            self.event = event

    class UpdateFailed(Message):
        def __init__(self, error: Exception) -> None:
            super().__init__()
            self.error = error

    SCREEN_TITLE: ClassVar[str] = "Update Metadata"
    SCREEN_NAME: ClassVar[str] = "metadata_update"

    CSS: ClassVar[str] = """
    MetadataUpdateScreen {
        align: center middle;
    }

    #metadata-container {
        width: 90;
        height: auto;
        padding: 1 2;
        border: solid $primary;
    }

    #button-row {
        height: auto;
        margin-top: 1;
    }
    """

    BINDINGS: ClassVar[list[Binding]] = [
        Binding("s", "start_update", "Start", show=True),
        Binding("c", "cancel_update", "Cancel", show=True),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._channel: CallbackStatusChannel | None = None
        self._worker: Worker[None] | None = None

    @override
    def compose(self) -> ComposeResult:
        with Container(id="metadata-container"):
            yield self.create_title_widget()
            yield MetadataProgressWidget(id="metadata-progress")
            with Horizontal(id="button-row"):
                yield Button("Start", id="btn-start", variant="primary")
                yield Button("Cancel", id="btn-cancel", variant="error", disabled=True)
                yield Button("Back", id="btn-back")

    async def on_unmount(self) -> None:
        self._detach_channel()

    def _detach_channel(self) -> None:
        context = self.context
        if context is not None and context.has_refresh_service:
            context.refresh_service.detach_status_channel()
        if self._channel is not None:
            self._channel.close()
            self._channel = None

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        button_id = event.button.id
        if button_id == "btn-start":
            self.action_start_update()
        elif button_id == "btn-cancel":
            self.action_cancel_update()
        elif button_id == "btn-back":
            await self.action_go_back()

    def action_start_update(self) -> None:
        if self.game_app.app_state.metadata_update_active:
            self.notify_warning("A metadata update is already running")
            return
        if self.context is None:
            self.notify_warning("No application context available")
            return

        self.query_one("#metadata-progress", MetadataProgressWidget).reset()
        self._set_running(True)
        self._worker = self.run_worker(self._run_update(), name="metadata_worker", exclusive=True)

    async def _run_update(self) -> None:
        context = self.context
        if context is None:
            return

        try:
            service = context.refresh_service
            games = context.games or await asyncio.to_thread(context.scan_library)
        except Exception as e:
            self.post_message(self.UpdateFailed(e))
            return

        self._channel = CallbackStatusChannel(lambda event: self.post_message(self.StatusReceived(event)))
        service.attach_status_channel(self._channel)
        try:
            await service.update_library([(g.id, g.title) for g in games])
        finally:
            self._detach_channel()

    def on_metadata_update_screen_status_received(self, message: StatusReceived) -> None:
        self.query_one("#metadata-progress", MetadataProgressWidget).apply_status(message.event)
        if isinstance(message.event, Completed):
            self._set_running(False)
            if message.event.failed:
                self.notify_warning(f"{message.event.failed} games could not be updated")
            else:
                self.notify_success(f"Updated metadata for {message.event.successful} games")

    def on_metadata_update_screen_update_failed(self, message: UpdateFailed) -> None:
        self._set_running(False)
        self.handle_exception(message.error, "update_library", include_suggestions=True)

    def action_cancel_update(self) -> None:
        context = self.context
        if context is None or not self.game_app.app_state.metadata_update_active:
            return
        context.refresh_service.cancel_update()
        self.notify_warning("Stopping after the current game")

    def _set_running(self, running: bool) -> None:
        self.query_one("#btn-start", Button).disabled = running
        self.query_one("#btn-cancel", Button).disabled = not running
        self.game_app.set_metadata_update_active(running)

    def on_worker_state_changed(self, event: Worker.StateChanged) -> None:
        if event.worker.name == "metadata_worker" and event.state in (WorkerState.CANCELLED, WorkerState.ERROR):
            log.debug("Metadata worker stopped", state=event.state)
            self._set_running(False)
