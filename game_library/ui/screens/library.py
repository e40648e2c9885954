"""Library screen listing scanned games, their versions and metadata state."""

import asyncio
from typing import ClassVar, override

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical
from textual.message import Message
from textual.widgets import Button, DataTable, Input, Static

import structlog

from game_library.models.game import GameRecord
from game_library.services.errors import ErrorHandlingService, get_error_service
from game_library.services.metadata_refresh import MetadataRefreshService
from game_library.services.metadata_store import MetadataStore

from .base import BaseScreen

log = structlog.stdlib.get_logger()

REFRESH_DEBOUNCE_SECONDS = 60


def filter_games(games: list[GameRecord], search_query: str) -> list[GameRecord]:
    """Games whose title or id contains the query, case-insensitively."""
    query = search_query.strip().lower()
    if not query:
        return list(games)
    return [g for g in games if query in g.title.lower() or query in g.id.lower()]


def format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024:
            return f"{value:.1f} {unit}" if unit != "B" else f"{int(value)} B"
        value /= 1024
    return f"{value:.1f} TB"


def metadata_state(store: MetadataStore | None, game_id: str, max_age_days: int) -> str:
    """Short label describing the cached metadata of a game."""
    if store is None:
        return "-"
    try:
        if not store.has_external_data(game_id):
            return "Missing"
        return "Stale" if store.is_stale(game_id, max_age_days) else "Cached"
    except Exception as e:
        log.warning("Cannot read cached metadata", game_id=game_id, error=str(e))
        return "Error"


def get_game_display_info(game: GameRecord) -> dict[str, str]:
    """Display fields for the games table and detail panel."""
    latest = game.latest_version()
    return {
        "title": game.title,
        "latest_version": latest.display_name if latest else "-",
        "versions": str(len(game.versions)),
        "patches": str(len(game.patches())),
        "size": format_size(sum(f.size_bytes for f in game.files)),
        "developer": game.developer or "Unknown",
        "publisher": game.publisher or "Unknown",
        "release_date": game.release_date or "Unknown",
    }


def describe_versions(game: GameRecord) -> str:
    lines = []
    for version in game.versions:
        lines.append(f"{version.display_name} (build {version.build_number})")
        lines.extend(f"  installer: {f.name}" for f in version.files)
        lines.extend(f"  patch: {p.name}" for p in version.required_patches)
    return "\n".join(lines) or "No installable versions"


def error_summary(service: ErrorHandlingService) -> str:
    """One line with error counts per category and the latest message."""
    counts = service.get_error_count_by_category()
    if not counts:
        return ""
    ordered = sorted(counts.items(), key=lambda item: item[0].value)
    parts = ", ".join(f"{category.value} {count}" for category, count in ordered)
    latest = service.get_recent_errors(count=1)[0]
    return f"Errors: {parts}. Last: {latest.message}"


async def refresh_game_metadata(service: MetadataRefreshService, game: GameRecord) -> bool | None:
    """Force a metadata refresh for one game.

    Returns:
        None if the game was refreshed within ``REFRESH_DEBOUNCE_SECONDS``,
        otherwise whether a match was found
    """
    if service.was_recently_refreshed(game.id, REFRESH_DEBOUNCE_SECONDS):
        return None
    return await service.refresh(game.id, game.title)


class LibraryScreen(BaseScreen):
    """Browse the scanned library, rescan it and install games."""

    class ScanComplete(Message):
        def __init__(self, games: list[GameRecord]) -> None:
            super().__init__()
            self.games = games

    class ScanFailed(Message):
        def __init__(self, error: Exception) -> None:
            super().__init__()
            self.error = error

    SCREEN_TITLE: ClassVar[str] = "Library"
    SCREEN_NAME: ClassVar[str] = "library"

    CSS: ClassVar[str] = """
    #library-container {
        height: 100%;
        padding: 1 2;
    }

    #games-table {
        height: 1fr;
    }

    #game-details {
        height: auto;
        max-height: 14;
        padding: 1;
        border: solid $primary-darken-2;
    }

    #library-stats {
        color: $text-muted;
    }

    #button-row {
        height: auto;
    }
    """

    BINDINGS: ClassVar[list[Binding]] = [
        Binding("r", "rescan", "Rescan", show=True),
        Binding("i", "install_selected", "Install", show=True),
        Binding("/", "focus_search", "Search", show=True),
        Binding("m", "open_metadata", "Metadata", show=True),
        Binding("f", "refresh_selected", "Refresh Metadata", show=True),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._games: list[GameRecord] = []
        self._visible: list[GameRecord] = []
        self._selected: GameRecord | None = None

    @override
    def compose(self) -> ComposeResult:
        with Vertical(id="library-container"):
            yield self.create_title_widget()
            yield Input(placeholder="Search by title", id="search-input")
            yield DataTable(id="games-table")
            yield Static("", id="library-stats")
            with Container(id="game-details"):
                yield Static("Select a game to see its versions", id="details-text")
            with Horizontal(id="button-row"):
                yield Button("Rescan", id="btn-rescan", variant="primary")
                yield Button("Install Latest", id="btn-install", variant="success")
                yield Button("Back", id="btn-back")

    @override
    async def on_mount(self) -> None:
        await super().on_mount()
        table = self.query_one("#games-table", DataTable)
        table.add_columns("Title", "Latest Version", "Versions", "Patches", "Size", "Metadata")
        table.cursor_type = "row"

        if self.game_app.app_state.games:
            self._set_games(self.game_app.app_state.games)
        else:
            self.action_rescan()

    def _set_games(self, games: list[GameRecord]) -> None:
        self._games = games
        self._apply_filter()

    def _apply_filter(self) -> None:
        query = self.query_one("#search-input", Input).value
        self._visible = filter_games(self._games, query)
        self._refresh_table()

    def _refresh_table(self) -> None:
        table = self.query_one("#games-table", DataTable)
        table.clear()

        context = self.context
        store: MetadataStore | None = None
        max_age = 30
        if context is not None:
            max_age = context.config.metadata_max_age_days
            try:
                store = context.metadata_store
            except Exception as e:
                log.warning("Metadata store unavailable", error=str(e))

        for game in self._visible:
            info = get_game_display_info(game)
            table.add_row(
                info["title"],
                info["latest_version"],
                info["versions"],
                info["patches"],
                info["size"],
                metadata_state(store, game.id, max_age),
                key=game.id,
            )

        stats = f"Showing {len(self._visible)} of {len(self._games)} games"
        errors = error_summary(get_error_service())
        if errors:
            stats = f"{stats}  |  {errors}"
        self.query_one("#library-stats", Static).update(stats)

    def _show_details(self, game: GameRecord) -> None:
        info = get_game_display_info(game)
        text = (
            f"{info['title']}\n"
            f"Developer: {info['developer']}  Publisher: {info['publisher']}  Released: {info['release_date']}\n\n"
            f"{describe_versions(game)}"
        )
        self.query_one("#details-text", Static).update(text)

    def on_data_table_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        game_id = event.row_key.value if event.row_key else None
        self._selected = next((g for g in self._visible if g.id == game_id), None)
        if self._selected:
            self._show_details(self._selected)

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "search-input":
            self._apply_filter()

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        button_id = event.button.id
        if button_id == "btn-rescan":
            self.action_rescan()
        elif button_id == "btn-install":
            self.action_install_selected()
        elif button_id == "btn-back":
            await self.action_go_back()

    def action_focus_search(self) -> None:
        self.query_one("#search-input", Input).focus()

    async def action_open_metadata(self) -> None:
        await self.game_app.push_screen_with_tracking("metadata_update")

    def action_rescan(self) -> None:
        if self.context is None:
            self.notify_warning("No repository configured")
            return
        self.query_one("#library-stats", Static).update("Scanning repository...")
        self.run_worker(self._run_scan(), name="scan_worker", exclusive=True)

    async def _run_scan(self) -> None:
        context = self.context
        if context is None:
            return
        try:
            games = await asyncio.to_thread(context.scan_library)
        except Exception as e:
            self.post_message(self.ScanFailed(e))
            return
        self.post_message(self.ScanComplete(games))

    def on_library_screen_scan_complete(self, event: ScanComplete) -> None:
        self.game_app.update_games(event.games)
        self._set_games(event.games)
        self.notify_success(f"Found {len(event.games)} games")

    def on_library_screen_scan_failed(self, event: ScanFailed) -> None:
        self.handle_exception(event.error, "scan_library", include_suggestions=True)
        self._refresh_table()

    def action_install_selected(self) -> None:
        game = self._selected
        if game is None:
            self.notify_warning("Select a game first")
            return
        version = game.latest_version()
        if version is None:
            self.notify_warning(f"{game.title} has no installable version")
            return
        self.run_worker(self._run_install(game), name="install_worker", exclusive=True)

    async def _run_install(self, game: GameRecord) -> None:
        context = self.context
        version = game.latest_version()
        if context is None or version is None:
            return
        try:
            install_dir = await context.installer.install_version(game, version)
        except Exception as e:
            self.handle_exception(e, "install_version", {"game_id": game.id})
            self._refresh_table()
            return
        self.notify_success(f"Installed {game.title} {version.display_name} to {install_dir}")

    def action_refresh_selected(self) -> None:
        game = self._selected
        if game is None:
            self.notify_warning("Select a game first")
            return
        if self.context is None:
            self.notify_warning("No metadata service configured")
            return
        self.run_worker(self._run_refresh(game), name="refresh_worker", exclusive=True)

    async def _run_refresh(self, game: GameRecord) -> None:
        context = self.context
        if context is None:
            return
        try:
            found = await refresh_game_metadata(context.refresh_service, game)
        except Exception as e:
            self.handle_exception(e, "refresh_metadata", {"game_id": game.id})
            self._refresh_table()
            return

        if found is None:
            self.notify_warning(f"{game.title} was refreshed moments ago")
        elif found:
            self.notify_success(f"Metadata refreshed for {game.title}")
        else:
            self.notify_warning(f"No game database match for {game.title}")
        self._refresh_table()
