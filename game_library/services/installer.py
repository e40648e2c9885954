"""Download and install drivers for resolved game versions.

Installation is simulated: the files a version needs are copied out of the
repository and an ``installed.txt`` marker is written to the game's install
directory. Running the installer executables is out of scope.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime
from pathlib import Path, PurePosixPath

import structlog

from ..models import DownloadProgress, FileRecord, GameRecord, VersionRecord
from .errors import InstallError
from .filesystem import FileSystemService
from .repository import RepositorySource
from .version_resolver import ordered_patches

log = structlog.stdlib.get_logger()

INSTALL_MARKER = "installed.txt"


class InstallerService:
    """Downloads version files and records installations."""

    def __init__(
        self,
        source: RepositorySource,
        install_directory: Path,
        temp_directory: Path,
        filesystem: FileSystemService | None = None,
    ) -> None:
        """Initialize the installer service.

        Args:
            source: Repository the files are copied from
            install_directory: Directory holding one subdirectory per installed game
            temp_directory: Scratch directory for downloaded files
            filesystem: File system service for file operations
        """
        self._source = source
        self.install_directory = install_directory
        self.temp_directory = temp_directory
        self._fs = filesystem or FileSystemService()

    def install_path(self, game: GameRecord) -> Path:
        return self.install_directory / game.id

    def is_installed(self, game: GameRecord) -> bool:
        return (self.install_path(game) / INSTALL_MARKER).is_file()

    def temp_path(self, file: FileRecord) -> Path:
        """Download location mirroring the file's repository path."""
        return self.temp_directory.joinpath(*PurePosixPath(file.remote_path).parts)

    def required_files(self, version: VersionRecord) -> list[FileRecord]:
        """Installers, then patches in the order they must be applied."""
        return list(version.files) + ordered_patches(version)

    async def download_files(
        self,
        files: list[FileRecord],
        progress_callback: Callable[[DownloadProgress], None] | None = None,
    ) -> list[Path]:
        """Download files one after another into the temp directory.

        Args:
            files: Files to download
            progress_callback: Called after each completed file

        Returns:
            Local paths of the downloaded files, in input order

        Raises:
            InstallError: If a file cannot be downloaded or there is not
                enough free space
        """
        total_bytes = sum(f.size_bytes for f in files)
        available = self._fs.get_available_space(self.temp_directory)
        if total_bytes > available:
            raise InstallError(
                f"Not enough free space: need {total_bytes} bytes, {available} available",
            )

        downloaded: list[Path] = []
        bytes_done = 0
        for index, file in enumerate(files):
            local_path = self.temp_path(file)
            try:
                await asyncio.to_thread(self._source.download_file, file.remote_path, local_path)
            except OSError as e:
                self.cleanup(downloaded)
                raise InstallError("Failed to download file", file_name=file.name, original_error=e) from e

            downloaded.append(local_path)
            bytes_done += file.size_bytes
            log.debug("File downloaded", file=file.name, completed=index + 1, total=len(files))

            if progress_callback:
                progress_callback(
                    DownloadProgress(
                        current_file=file.name,
                        files_completed=index + 1,
                        total_files=len(files),
                        bytes_downloaded=bytes_done,
                        total_bytes=total_bytes,
                    )
                )

        return downloaded

    async def install_version(
        self,
        game: GameRecord,
        version: VersionRecord,
        progress_callback: Callable[[DownloadProgress], None] | None = None,
    ) -> Path:
        """Install a version of a game.

        Returns:
            The game's install directory

        Raises:
            InstallError: If downloading or writing the install marker fails
        """
        log.info("Installing game", game_id=game.id, version=version.display_name)

        downloaded = await self.download_files(self.required_files(version), progress_callback)
        install_dir = self.install_path(game)
        try:
            self._fs.ensure_directory(install_dir)
            marker = install_dir / INSTALL_MARKER
            marker.write_text(
                f"Game: {game.title}\nVersion: {version.display_name}\nInstalled: {datetime.now().isoformat()}\n",
                encoding="utf-8",
            )
        except OSError as e:
            raise InstallError("Failed to write installation marker", game_id=game.id, original_error=e) from e
        finally:
            self.cleanup(downloaded)

        log.info("Installation completed", game_id=game.id, install_dir=str(install_dir))
        return install_dir

    def uninstall(self, game: GameRecord) -> None:
        """Remove a game's install directory.

        Raises:
            InstallError: If the game is not installed or cannot be removed
        """
        install_dir = self.install_path(game)
        if not install_dir.is_dir():
            raise InstallError("Game is not installed", game_id=game.id)

        try:
            self._fs.delete_tree(install_dir)
        except OSError as e:
            raise InstallError("Failed to remove installation directory", game_id=game.id, original_error=e) from e

        log.info("Uninstallation completed", game_id=game.id)

    def cleanup(self, paths: list[Path]) -> None:
        """Delete downloaded files and the temp subdirectories they leave empty.

        Failures are logged, not raised.
        """
        for path in paths:
            try:
                self._fs.delete_file(path)
            except OSError as e:
                log.warning("Failed to remove downloaded file", path=str(path), error=str(e))
                continue

            parent = path.parent
            try:
                while parent != self.temp_directory and parent.is_relative_to(self.temp_directory):
                    if any(parent.iterdir()):
                        break
                    parent.rmdir()
                    parent = parent.parent
            except OSError as e:
                log.warning("Failed to remove temp directory", path=str(parent), error=str(e))
