"""Main entry point for the game library application.

This module provides the application entry point with:
- Command-line argument parsing
- Application initialization and dependency injection
- Graceful shutdown handling
"""

import argparse
import asyncio
import signal
import sys
from pathlib import Path

import structlog

from game_library import __version__
from game_library.models import AppConfig, GameRecord, MetadataStatus
from game_library.models.progress import Completed, Failed, Progress, Started, Success
from game_library.services.config import ConfigurationService
from game_library.services.filesystem import FileSystemService
from game_library.services.http_client import HttpClientService
from game_library.services.igdb_client import IgdbClient
from game_library.services.installer import InstallerService
from game_library.services.logging import setup_logging
from game_library.services.metadata_refresh import MetadataRefreshService, QueueStatusChannel
from game_library.services.metadata_store import MetadataStore
from game_library.services.repository import RepositoryScanner, RepositorySource

log = structlog.stdlib.get_logger()


class ApplicationContext:
    """Container for application services and state.

    This class manages the lifecycle of all application services
    and provides dependency injection for the UI components.
    """

    def __init__(
        self,
        config_path: Path | None = None,
        log_level: str = "INFO",
        log_dir: Path | None = None,
        repository_root: Path | None = None,
    ) -> None:
        """Initialize the application context.

        Args:
            config_path: Path to configuration file
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (None for console only)
            repository_root: Local repository directory overriding the configured server
        """
        self._config_path: Path | None = config_path
        self._log_level: str = log_level
        self._log_dir: Path | None = log_dir
        self._repository_root: Path | None = repository_root

        # Services (initialized lazily)
        self._config_service: ConfigurationService | None = None
        self._filesystem: FileSystemService | None = None
        self._http_client: HttpClientService | None = None
        self._repository_source: RepositorySource | None = None
        self._scanner: RepositoryScanner | None = None
        self._metadata_store: MetadataStore | None = None
        self._igdb_client: IgdbClient | None = None
        self._refresh_service: MetadataRefreshService | None = None
        self._installer: InstallerService | None = None

        self._config: AppConfig | None = None
        self.games: list[GameRecord] = []

        self._shutdown_requested: bool = False

    @property
    def config_service(self) -> ConfigurationService:
        if self._config_service is None:
            self._config_service = ConfigurationService(config_path=self._config_path)
        return self._config_service

    @property
    def config(self) -> AppConfig:
        """Get the current application configuration."""
        if self._config is None:
            self._config = self.config_service.load_config()
        return self._config

    @property
    def filesystem(self) -> FileSystemService:
        if self._filesystem is None:
            self._filesystem = FileSystemService()
        return self._filesystem

    @property
    def http_client(self) -> HttpClientService:
        if self._http_client is None:
            self._http_client = HttpClientService(rate_limit_delay=self.config.request_delay)
        return self._http_client

    @property
    def repository_source(self) -> RepositorySource:
        """Repository source, local when a root directory was given."""
        if self._repository_source is None:
            if self._repository_root is not None:
                self._repository_source = RepositorySource.local(self._repository_root, self.filesystem)
            else:
                self._repository_source = RepositorySource(self.config.repository, self.filesystem)
        return self._repository_source

    @property
    def scanner(self) -> RepositoryScanner:
        if self._scanner is None:
            self._scanner = RepositoryScanner(self.repository_source, max_depth=self.config.scan_depth)
        return self._scanner

    @property
    def metadata_store(self) -> MetadataStore:
        """Metadata store with every cached record loaded."""
        if self._metadata_store is None:
            self._metadata_store = MetadataStore(self.config.cache_directory, filesystem=self.filesystem)
            _ = self._metadata_store.load_all()
        return self._metadata_store

    @property
    def igdb_client(self) -> IgdbClient:
        """IGDB client.

        Raises:
            ConfigurationError: If no IGDB credentials are configured
        """
        if self._igdb_client is None:
            self._igdb_client = IgdbClient(
                client_id=self.config.igdb_client_id,
                client_secret=self.config.igdb_client_secret,
                http_client=self.http_client,
            )
        return self._igdb_client

    @property
    def refresh_service(self) -> MetadataRefreshService:
        if self._refresh_service is None:
            self._refresh_service = MetadataRefreshService(
                store=self.metadata_store,
                source=self.igdb_client,
                max_age_days=self.config.metadata_max_age_days,
                request_delay=self.config.request_delay,
                filesystem=self.filesystem,
            )
        return self._refresh_service

    @property
    def has_refresh_service(self) -> bool:
        return self._refresh_service is not None

    @property
    def installer(self) -> InstallerService:
        if self._installer is None:
            self._installer = InstallerService(
                source=self.repository_source,
                install_directory=self.config.install_directory,
                temp_directory=self.config.temp_directory,
                filesystem=self.filesystem,
            )
        return self._installer

    def scan_library(self) -> list[GameRecord]:
        """Scan the repository and remember the result."""
        self.games = self.scanner.scan()
        return self.games

    def request_shutdown(self) -> None:
        """Request graceful shutdown of the application."""
        self._shutdown_requested = True
        if self._refresh_service is not None:
            self._refresh_service.cancel_update()
        log.info("Shutdown requested")

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown_requested

    async def cleanup(self) -> None:
        """Clean up resources and close connections."""
        log.info("Cleaning up application resources")

        if self._refresh_service is not None:
            self._refresh_service.cancel_update()
            self._refresh_service.detach_status_channel()

        if self._http_client is not None:
            await self._http_client.close()

        log.info("Application cleanup complete")


class ParsedArgs:
    """Type-safe container for parsed command-line arguments."""

    def __init__(
        self,
        config: Path | None,
        log_level: str,
        log_dir: Path | None,
        no_tui: bool,
        root: Path | None,
        update_metadata: bool,
    ) -> None:
        self.config: Path | None = config
        self.log_level: str = log_level
        self.log_dir: Path | None = log_dir
        self.no_tui: bool = no_tui
        self.root: Path | None = root
        self.update_metadata: bool = update_metadata


def parse_arguments(argv: list[str] | None = None) -> ParsedArgs:
    """Parse command-line arguments.

    Args:
        argv: Arguments to parse, ``sys.argv`` when None

    Returns:
        Parsed arguments container
    """
    parser = argparse.ArgumentParser(
        prog="game-library",
        description="Index a repository of game installers, resolve their versions and cache game metadata",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  game-library                                  Start the TUI application
  game-library --no-tui --root /srv/games       Print a summary of a local repository
  game-library --no-tui --update-metadata       Refresh metadata for the whole library
        """,
    )

    _ = parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    _ = parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: ~/.config/game-library/config.json)",
    )

    _ = parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Set the logging level (default: INFO)",
    )

    _ = parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for log files (default: ./logs with the TUI, console only otherwise)",
    )

    _ = parser.add_argument(
        "--no-tui",
        action="store_true",
        help="Print a library summary instead of starting the TUI",
    )

    _ = parser.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Scan this local directory instead of the configured repository",
    )

    _ = parser.add_argument(
        "--update-metadata",
        action="store_true",
        help="With --no-tui, refresh metadata for every scanned game",
    )

    ns = parser.parse_args(argv)

    return ParsedArgs(
        config=ns.config,
        log_level=ns.log_level or "INFO",
        log_dir=ns.log_dir,
        no_tui=bool(ns.no_tui),
        root=ns.root,
        update_metadata=bool(ns.update_metadata),
    )


def setup_signal_handlers(context: ApplicationContext) -> None:
    """Set up signal handlers for graceful shutdown."""

    def signal_handler(signum: int, frame: object) -> None:
        _ = frame
        log.info("Received signal", signal=signal.Signals(signum).name)
        context.request_shutdown()

    _ = signal.signal(signal.SIGINT, signal_handler)
    _ = signal.signal(signal.SIGTERM, signal_handler)

    log.debug("Signal handlers registered")


def format_status(event: MetadataStatus) -> str:
    """One console line for a status event."""
    match event:
        case Started(game_id=game_id, game_name=name):
            return f"[{game_id}] fetching {name}"
        case Success(game_id=game_id, game_name=name):
            return f"[{game_id}] updated {name}"
        case Failed(game_id=game_id, game_name=name, reason=reason):
            return f"[{game_id}] failed {name}: {reason}"
        case Progress(completed=done, total=total):
            return f"progress {done}/{total} ({event.percentage:.0f}%)"
        case Completed(successful=ok, failed=failed, total=total):
            return f"done: {ok} updated, {failed} failed, {total} total"


def print_summary(games: list[GameRecord]) -> None:
    print(f"{len(games)} games")
    for game in games:
        latest = game.latest_version()
        print(
            f"  {game.title} ({game.id}): "
            f"{len(game.versions)} versions, {len(game.patches())} patches, "
            f"latest {latest.display_name if latest else '-'}"
        )


async def update_metadata(context: ApplicationContext, games: list[GameRecord]) -> Completed:
    """Refresh metadata for ``games`` printing status events as they arrive."""
    service = context.refresh_service
    channel = QueueStatusChannel()
    service.attach_status_channel(channel)

    async def printer() -> None:
        while True:
            event = await channel.get()
            print(format_status(event))
            if isinstance(event, Completed):
                return

    printer_task = asyncio.create_task(printer())
    try:
        result = await service.update_library([(g.id, g.title) for g in games])
        await printer_task
        return result
    finally:
        service.detach_status_channel()
        channel.close()
        if not printer_task.done():
            _ = printer_task.cancel()
        await context.cleanup()


def run_cli(context: ApplicationContext, args: ParsedArgs) -> int:
    """Scan the library, print it and optionally refresh its metadata."""
    log.info("Running in non-TUI mode")
    games = context.scan_library()
    print_summary(games)

    if not args.update_metadata:
        return 0

    result = asyncio.run(update_metadata(context, games))
    return 0 if result.failed == 0 else 2


async def run_tui(context: ApplicationContext) -> int:
    """Run the TUI application.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    from game_library.ui.app import GameLibraryApp

    log.info("Starting TUI application")

    try:
        app = GameLibraryApp(config_service=context.config_service)
        app.set_app_context(context)
        await app.run_async()

        log.info("TUI application exited normally")
        return 0

    except Exception as e:
        log.error("TUI application error", error=str(e), exc_info=True)
        return 1
    finally:
        await context.cleanup()


def main() -> None:
    """Main entry point for the application."""
    args = parse_arguments()

    log_dir = args.log_dir
    if log_dir is None and not args.no_tui:
        log_dir = Path("logs")

    _ = setup_logging(log_level=args.log_level, log_dir=log_dir, tui_mode=not args.no_tui)

    log.info(
        "Starting game library",
        version=__version__,
        log_level=args.log_level,
        config_path=str(args.config) if args.config else "default",
    )

    context = ApplicationContext(
        config_path=args.config,
        log_level=args.log_level,
        log_dir=log_dir,
        repository_root=args.root,
    )

    setup_signal_handlers(context)

    try:
        if args.no_tui:
            exit_code = run_cli(context, args)
        else:
            exit_code = asyncio.run(run_tui(context))

    except KeyboardInterrupt:
        log.info("Application interrupted by user")
        exit_code = 130

    except Exception as e:
        log.error("Unhandled exception", error=str(e), exc_info=True)
        print(f"Fatal error: {e}", file=sys.stderr)
        exit_code = 1

    log.info("Application exiting", exit_code=exit_code)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
