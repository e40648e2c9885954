"""Repository access and scanning.

A repository is a folder with one subdirectory per game. Each game
directory holds installers, patches and optionally a small ``key: value``
info text file describing the game.

``RepositorySource`` reads either a local directory or, when the configured
server is not a local path, a simulated network share with demo content.
``RepositoryScanner`` turns every game directory into a ``GameRecord``.
"""

from pathlib import Path, PurePosixPath

import structlog

from ..models import FileCategory, FileRecord, GameRecord, RepositoryConfig, VersionRecord
from .classifier import classify
from .errors import ScanError
from .filesystem import FileSystemService
from .version_resolver import DEFAULT_BUILD_NUMBER, DEFAULT_VERSION_NAME, resolve_versions

log = structlog.stdlib.get_logger()

INFO_FILE_NAMES = ("info.txt", "!info.txt", "game.info", "game.txt")
DEFAULT_SCAN_DEPTH = 2

FIELD_ALIASES: dict[str, str] = {
    "title": "title",
    "name": "title",
    "game": "title",
    "game name": "title",
    "developer": "developer",
    "dev": "developer",
    "publisher": "publisher",
    "pub": "publisher",
    "release": "release_date",
    "release date": "release_date",
    "date": "release_date",
    "description": "description",
    "desc": "description",
    "about": "description",
    "igdb": "external_id",
    "igdb_id": "external_id",
    "igdb id": "external_id",
    "external_id": "external_id",
    "external id": "external_id",
}

DEMO_DIRECTORIES = ["amid_evil", "doom_eternal", "hades", "hollow_knight"]
SIMULATED_CONTENT = b"Simulated file content"


def humanize_title(directory_name: str) -> str:
    """``hollow_knight`` -> ``Hollow Knight``."""
    words = directory_name.replace("_", " ").split(" ")
    return " ".join(word[:1].upper() + word[1:] for word in words)


def _split_key_line(line: str) -> tuple[str, str] | None:
    """Split ``key: value`` on the first colon, lower-casing the key."""
    if ":" not in line:
        return None
    key, value = line.split(":", 1)
    return key.strip().lower(), value.strip()


def parse_info_text(text: str) -> dict[str, str]:
    """Parse info text into canonical field names.

    Blank lines and ``#`` comments are ignored. Every line containing a
    colon is a key line. A key with an empty value starts a multi-line
    value that runs until the next key line or the end of the text.
    Unknown keys, and any multi-line value under them, are ignored.
    """
    fields: dict[str, str] = {}
    pending_key: str | None = None
    pending_lines: list[str] = []

    def store(key: str, value: str) -> None:
        field = FIELD_ALIASES.get(key)
        if field is None:
            log.debug("Ignoring unknown info key", key=key)
            return
        fields[field] = value

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        key_value = _split_key_line(line)
        if key_value is None:
            if pending_key is not None:
                pending_lines.append(line)
            continue

        if pending_key is not None and pending_lines:
            store(pending_key, "\n".join(pending_lines))
        pending_key = None
        pending_lines = []

        key, value = key_value
        if value:
            store(key, value)
        else:
            pending_key = key

    if pending_key is not None and pending_lines:
        store(pending_key, "\n".join(pending_lines))
    return fields


def apply_info(record: GameRecord, fields: dict[str, str]) -> None:
    """Copy parsed info fields onto a game record."""
    for field, value in fields.items():
        if field == "external_id":
            try:
                record.external_id = int(value)
            except ValueError:
                log.warning("Ignoring non-numeric external id", game_id=record.id, value=value)
        else:
            setattr(record, field, value)


def looks_like_local_path(server: str) -> bool:
    return ":\\" in server or server.startswith("/") or server.startswith("\\")


class RepositorySource:
    """Read access to the game repository."""

    def __init__(self, config: RepositoryConfig, filesystem: FileSystemService | None = None) -> None:
        self.config = config
        self._fs = filesystem or FileSystemService()
        self.local_root: Path | None = None
        self.connected = False

    @classmethod
    def local(cls, root: Path, filesystem: FileSystemService | None = None) -> "RepositorySource":
        """Source reading directly from a local directory."""
        source = cls(RepositoryConfig(server=str(root), share=""), filesystem)
        source.local_root = root
        source.connected = True
        return source

    @property
    def is_local(self) -> bool:
        return self.local_root is not None

    def connect(self) -> None:
        """Choose local or simulated mode from the configured server."""
        server = self.config.server
        share = self.config.share

        if looks_like_local_path(server):
            path = Path(server)
            if share and share != "Games":
                path = path / share
            if path.is_dir():
                log.info("Using local directory as repository", path=str(path))
                self.local_root = path
                self.connected = True
                return
            log.warning("Local repository path is not a directory", path=str(path))

        log.info("Connected to simulated repository share", server=server, share=share)
        self.connected = True

    def list_directories(self) -> list[str]:
        """Game directory names, skipping names starting with ``.`` or ``_``."""
        if self.local_root is None:
            return list(DEMO_DIRECTORIES)

        try:
            names = sorted(entry.name for entry in self.local_root.iterdir() if entry.is_dir())
        except OSError as e:
            log.warning("Failed to list repository, using demo directories", path=str(self.local_root), error=str(e))
            return list(DEMO_DIRECTORIES)

        directories = [name for name in names if not name.startswith((".", "_"))]
        log.info("Found game directories", count=len(directories))
        return directories

    def read_info_text(self, directory: str) -> str | None:
        """Contents of the first info file present in a game directory."""
        if self.local_root is None:
            return None

        for file_name in INFO_FILE_NAMES:
            path = self.local_root / directory / file_name
            if path.is_file():
                try:
                    return path.read_text(encoding="utf-8", errors="replace")
                except OSError as e:
                    log.warning("Failed to read info file", path=str(path), error=str(e))
        return None

    def list_files(self, directory: str, max_depth: int = DEFAULT_SCAN_DEPTH) -> list[FileRecord]:
        """Classified files of a game directory, at most ``max_depth`` levels deep."""
        if self.local_root is None:
            return self._demo_files(directory)

        game_dir = self.local_root / directory
        if not game_dir.is_dir():
            raise FileNotFoundError(f"Game directory not found: {game_dir}")

        records = []
        for path in self._fs.list_files(game_dir, recursive=True):
            relative = PurePosixPath(path.relative_to(game_dir).as_posix())
            if len(relative.parts) > max_depth:
                continue
            records.append(
                FileRecord(
                    name=path.name,
                    remote_path=f"{directory}/{relative}",
                    size_bytes=path.stat().st_size,
                    category=classify(path.name),
                )
            )
        return records

    def _demo_files(self, directory: str) -> list[FileRecord]:
        installer = f"setup_{directory}_gog_build_2241b_(64bit)_(51706).exe"
        patch = f"patch_{directory}_GOG_Build_2055a_(37083)_to_GOG_Build_2172_(47150).exe"
        return [
            FileRecord(installer, f"{directory}/{installer}", 15_000_000, classify(installer)),
            FileRecord(patch, f"{directory}/{patch}", 2_000_000, classify(patch)),
        ]

    def demo_info(self) -> dict[str, str]:
        return {
            "developer": "Demo Developer",
            "publisher": "Demo Publisher",
            "release_date": "2023-01-01",
            "description": "This is a demo game description.",
        }

    def download_file(self, remote_path: str, local_path: Path) -> None:
        """Copy a repository file to ``local_path``.

        In simulated mode placeholder content is written instead.

        Raises:
            FileNotFoundError: If the file does not exist in a local repository
            OSError: If the file cannot be written
        """
        if self.local_root is None:
            log.info("Simulating repository download", remote_path=remote_path, local_path=str(local_path))
            self._fs.write_bytes(SIMULATED_CONTENT, local_path)
            return

        source = self.local_root / PurePosixPath(remote_path)
        log.info("Copying repository file", source=str(source), local_path=str(local_path))
        self._fs.copy_file(source, local_path)


class RepositoryScanner:
    """Builds ``GameRecord`` objects from a repository source."""

    def __init__(self, source: RepositorySource, max_depth: int = DEFAULT_SCAN_DEPTH) -> None:
        self.source = source
        self.max_depth = max_depth

    def scan(self) -> list[GameRecord]:
        """Scan every game directory.

        A directory that fails to scan is logged and skipped.
        """
        if not self.source.connected:
            self.source.connect()

        games = []
        for directory in self.source.list_directories():
            try:
                games.append(self.scan_directory(directory))
            except (OSError, ValueError, ScanError) as e:
                log.warning("Skipping game directory", directory=directory, error=str(e))

        log.info("Repository scan complete", games=len(games))
        return games

    def scan_directory(self, directory: str) -> GameRecord:
        """Build the record for a single game directory.

        Raises:
            ScanError: If the directory cannot be read
        """
        record = GameRecord(id=directory, title=humanize_title(directory))

        info_text = self.source.read_info_text(directory)
        if info_text is not None:
            apply_info(record, parse_info_text(info_text))

        try:
            record.files = self.source.list_files(directory, self.max_depth)
        except OSError as e:
            raise ScanError("Game directory could not be read", directory=directory, original_error=e) from e

        if not self.source.is_local:
            for field, value in self.source.demo_info().items():
                if getattr(record, field) is None:
                    setattr(record, field, value)

        record.versions = resolve_versions(record.files)
        if not record.versions and record.files:
            record.versions = [
                VersionRecord(
                    display_name=DEFAULT_VERSION_NAME,
                    build_number=DEFAULT_BUILD_NUMBER,
                    files=list(record.files),
                )
            ]

        log.debug(
            "Scanned game directory",
            directory=directory,
            files=len(record.files),
            installers=sum(1 for f in record.files if f.category == FileCategory.INSTALLER),
            versions=len(record.versions),
        )
        return record


def scan(root: Path, max_depth: int = DEFAULT_SCAN_DEPTH) -> list[GameRecord]:
    """Scan a local repository directory."""
    return RepositoryScanner(RepositorySource.local(root), max_depth).scan()
