"""Screen components for the TUI application."""

from .base import BaseScreen
from .library import LibraryScreen
from .main_menu import MainMenuScreen
from .metadata import MetadataUpdateScreen

# Screen registry for navigation
_SCREEN_REGISTRY: dict[str, type[BaseScreen]] = {
    MainMenuScreen.SCREEN_NAME: MainMenuScreen,
    LibraryScreen.SCREEN_NAME: LibraryScreen,
    MetadataUpdateScreen.SCREEN_NAME: MetadataUpdateScreen,
}


def get_screen_by_name(name: str) -> BaseScreen | None:
    """Get a screen instance by its registered name.

    Args:
        name: The registered name of the screen

    Returns:
        A new instance of the screen, or None if not found
    """
    screen_class = _SCREEN_REGISTRY.get(name)
    if screen_class:
        return screen_class()
    return None


def register_screen(name: str, screen_class: type[BaseScreen]) -> None:
    _SCREEN_REGISTRY[name] = screen_class


def get_registered_screens() -> list[str]:
    return list(_SCREEN_REGISTRY.keys())


__all__ = [
    "BaseScreen",
    "LibraryScreen",
    "MainMenuScreen",
    "MetadataUpdateScreen",
    "get_screen_by_name",
    "register_screen",
    "get_registered_screens",
]
