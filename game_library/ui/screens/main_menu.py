"""Main menu screen for the TUI application."""

from typing import ClassVar, override

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, Vertical
from textual.widgets import Button, Static

import structlog

from .base import BaseScreen

log = structlog.stdlib.get_logger()


class MainMenuScreen(BaseScreen):
    """Entry screen linking to the library browser and the metadata update."""

    SCREEN_TITLE: ClassVar[str] = "Main Menu"
    SCREEN_NAME: ClassVar[str] = "main_menu"

    CSS: ClassVar[str] = """
    MainMenuScreen {
        align: center middle;
    }

    #menu-container {
        width: 60;
        height: auto;
        padding: 2 4;
        border: solid $primary;
        background: $surface;
    }

    #menu-title {
        text-align: center;
        text-style: bold;
        color: $primary;
        margin-bottom: 2;
    }

    .menu-button {
        width: 100%;
        margin-bottom: 1;
    }
    """

    BINDINGS: ClassVar[list[Binding]] = [
        Binding("1", "navigate_library", "Library", show=False),
        Binding("2", "navigate_metadata", "Metadata", show=False),
    ]

    # (option id, label, target screen)
    MENU_OPTIONS: ClassVar[list[tuple[str, str, str]]] = [
        ("library", "1. Browse Library", "library"),
        ("metadata", "2. Update Metadata", "metadata_update"),
    ]

    @override
    def compose(self) -> ComposeResult:
        with Container(id="menu-container"):
            yield Static("Game Library", id="menu-title")
            with Vertical(id="menu-buttons"):
                for option_id, label, _ in self.MENU_OPTIONS:
                    yield Button(label, id=f"btn-{option_id}", classes="menu-button")

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        button_id = event.button.id
        if not button_id:
            return

        option = button_id.removeprefix("btn-")
        for opt_id, _, target in self.MENU_OPTIONS:
            if opt_id == option:
                log.info("Menu option selected", option=option, target=target)
                await self._navigate_to(target)
                return

        log.warning("Unknown menu option", button_id=button_id)

    async def _navigate_to(self, screen_name: str) -> None:
        await self.game_app.push_screen_with_tracking(screen_name)

    async def action_navigate_library(self) -> None:
        await self._navigate_to("library")

    async def action_navigate_metadata(self) -> None:
        await self._navigate_to("metadata_update")

    @override
    async def action_go_back(self) -> None:
        """Back from the main menu quits the application."""
        log.info("Quit requested from main menu")
        self.game_app.exit()
