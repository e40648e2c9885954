"""User interface components using Textual framework."""

from .app import AppState, GameLibraryApp
from .screens import (
    BaseScreen,
    LibraryScreen,
    MainMenuScreen,
    MetadataUpdateScreen,
    get_registered_screens,
    get_screen_by_name,
    register_screen,
)

__all__ = [
    "AppState",
    "BaseScreen",
    "GameLibraryApp",
    "LibraryScreen",
    "MainMenuScreen",
    "MetadataUpdateScreen",
    "get_registered_screens",
    "get_screen_by_name",
    "register_screen",
]
