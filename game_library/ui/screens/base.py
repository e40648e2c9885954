"""Base screen class with common functionality for all screens."""

from typing import TYPE_CHECKING, ClassVar

from textual.binding import Binding
from textual.screen import Screen
from textual.widgets import Static

import structlog

from game_library.services.errors import (
    ErrorSeverity,
    UserFriendlyError,
    get_error_service,
    handle_error,
)

if TYPE_CHECKING:
    from game_library.main import ApplicationContext
    from game_library.ui.app import GameLibraryApp

log = structlog.stdlib.get_logger()


class BaseScreen(Screen[None]):
    """Base class for application screens.

    Provides back navigation, access to the application and its service
    context, and error reporting through the error handling service.
    """

    BINDINGS: ClassVar[list[Binding]] = [
        Binding("escape", "go_back", "Back", show=True),
    ]

    SCREEN_TITLE: ClassVar[str] = "Screen"
    SCREEN_NAME: ClassVar[str] = "base"

    def __init__(self, name: str | None = None) -> None:
        super().__init__(name=name or self.SCREEN_NAME)

    @property
    def game_app(self) -> "GameLibraryApp":
        """Get the parent GameLibraryApp instance.

        Raises:
            RuntimeError: If the screen is not attached to a GameLibraryApp
        """
        from game_library.ui.app import GameLibraryApp

        if isinstance(self.app, GameLibraryApp):
            return self.app
        raise RuntimeError("Screen is not attached to a GameLibraryApp")

    @property
    def context(self) -> "ApplicationContext | None":
        """The service context, None when the app runs without one."""
        return self.game_app.app_context

    async def on_mount(self) -> None:
        log.debug("Screen mounted", screen=self.SCREEN_NAME)

    async def action_go_back(self) -> None:
        await self.game_app.action_go_back()

    def create_title_widget(self, title: str | None = None) -> Static:
        return Static(title or self.SCREEN_TITLE, classes="title")

    def notify_error(self, message: str) -> None:
        self.notify(message, severity="error")
        log.error("User notification", message=message, screen=self.SCREEN_NAME)

    def notify_success(self, message: str) -> None:
        self.notify(message, severity="information")
        log.info("User notification", message=message, screen=self.SCREEN_NAME)

    def notify_warning(self, message: str) -> None:
        self.notify(message, severity="warning")
        log.warning("User notification", message=message, screen=self.SCREEN_NAME)

    def handle_exception(
        self,
        error: Exception,
        operation: str,
        context: dict[str, str | int | float | bool] | None = None,
        include_suggestions: bool = False,
    ) -> UserFriendlyError:
        """Report an exception to the user and log its technical details.

        Args:
            error: The exception that occurred
            operation: Description of the operation that failed
            context: Additional context information
            include_suggestions: Append suggested actions to the notification

        Returns:
            UserFriendlyError with message and suggested actions
        """
        user_error = handle_error(
            error=error,
            operation=operation,
            component=self.SCREEN_NAME,
            context=context,
        )

        message = get_error_service().create_user_message(user_error, include_suggestions=include_suggestions)
        if user_error.severity == ErrorSeverity.WARNING:
            self.notify_warning(message)
        else:
            self.notify_error(message)

        return user_error
