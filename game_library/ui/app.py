"""Main Textual application with screen management and reactive state."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, override

from textual.app import App, ComposeResult
from textual.binding import Binding, BindingType
from textual.reactive import reactive
from textual.widgets import Footer, Header

import structlog

from game_library.models.config import AppConfig
from game_library.models.game import GameRecord
from game_library.services.config import ConfigurationService

if TYPE_CHECKING:
    from game_library.main import ApplicationContext

log = structlog.stdlib.get_logger()


@dataclass
class AppState:
    """Application state container for reactive state management."""

    games: list[GameRecord] = field(default_factory=list)
    metadata_update_active: bool = False
    current_config: AppConfig | None = None


class GameLibraryApp(App[None]):
    """Main TUI application for browsing the game library.

    Manages screens, global state and access to the application context
    holding the services.
    """

    CSS: ClassVar[str] = """
    Screen {
        background: $surface;
    }

    .title {
        text-align: center;
        text-style: bold;
        color: $primary;
        margin-bottom: 1;
    }
    """

    BINDINGS: ClassVar[list[BindingType]] = [
        Binding("q", "quit", "Quit", show=True, priority=True),
        Binding("escape", "go_back", "Back", show=True),
        Binding("?", "show_help", "Help", show=True),
    ]

    app_state: reactive[AppState] = reactive(AppState, init=False)

    _config_service: ConfigurationService | None
    _navigation_stack: list[str]
    _app_context: "ApplicationContext | None"

    def __init__(self, config_service: ConfigurationService | None = None) -> None:
        """Initialize the application.

        Args:
            config_service: Configuration service for loading settings
        """
        super().__init__()
        self.title = "Game Library"  # type: ignore[assignment]
        self.sub_title = "Installers, versions and metadata"  # type: ignore[assignment]
        self._config_service = config_service
        self._navigation_stack = []
        self._app_context = None
        self.app_state = AppState()

        log.info("GameLibraryApp initialized")

    @property
    def app_context(self) -> "ApplicationContext | None":
        return self._app_context

    def set_app_context(self, context: "ApplicationContext") -> None:
        self._app_context = context

    @property
    def config_service(self) -> ConfigurationService | None:
        return self._config_service

    @property
    def navigation_stack(self) -> list[str]:
        """Get a copy of the navigation stack."""
        return self._navigation_stack.copy()

    @override
    def compose(self) -> ComposeResult:
        yield Header()
        yield Footer()

    async def on_mount(self) -> None:
        """Load configuration and show the main menu."""
        if self._config_service:
            try:
                config = self._config_service.load_config()
                self.app_state = AppState(current_config=config)
            except Exception as e:
                log.error("Failed to load configuration", error=str(e))

        await self.push_screen_with_tracking("main_menu")

    async def push_screen_with_tracking(self, screen_name: str) -> None:
        """Push a screen and track it in the navigation stack."""
        # Imported here, the screens import this module
        from game_library.ui.screens import get_screen_by_name

        screen = get_screen_by_name(screen_name)
        if screen:
            self._navigation_stack.append(screen_name)
            await self.push_screen(screen)
            log.info("Screen pushed", screen=screen_name, stack_depth=len(self._navigation_stack))
        else:
            log.warning("Unknown screen requested", screen=screen_name)

    async def action_go_back(self) -> None:
        """Navigate back to the previous screen."""
        if len(self._navigation_stack) > 1:
            current = self._navigation_stack.pop()
            log.info("Navigating back", from_screen=current, stack_depth=len(self._navigation_stack))
            _ = self.pop_screen()
        else:
            log.debug("Already at root screen, cannot go back")

    async def action_show_help(self) -> None:
        self.notify("Press 'q' to quit, 'escape' to go back, 'r' to rescan the library")

    def update_games(self, games: list[GameRecord]) -> None:
        """Replace the scanned games in application state."""
        self.app_state = AppState(
            games=games,
            metadata_update_active=self.app_state.metadata_update_active,
            current_config=self.app_state.current_config,
        )
        log.info("Games updated", game_count=len(games))

    def set_metadata_update_active(self, active: bool) -> None:
        self.app_state = AppState(
            games=self.app_state.games,
            metadata_update_active=active,
            current_config=self.app_state.current_config,
        )
        log.info("Metadata update state changed", active=active)
