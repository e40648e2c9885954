"""Game library data models."""

from dataclasses import dataclass, field
from enum import Enum


class FileCategory(Enum):
    """Classification of a file found in a game directory."""
    INSTALLER = "installer"
    PATCH = "patch"
    OTHER = "other"


@dataclass(frozen=True)
class FileRecord:
    """A single file inside a game directory."""
    name: str
    remote_path: str  # "<game dir>/<path relative to it>", always forward slashes
    size_bytes: int
    category: FileCategory


@dataclass
class VersionRecord:
    """An installable version of a game and the patches it needs."""
    display_name: str
    build_number: int
    files: list[FileRecord] = field(default_factory=list)
    required_patches: list[FileRecord] = field(default_factory=list)

    @property
    def total_size(self) -> int:
        return sum(f.size_bytes for f in self.files) + sum(p.size_bytes for p in self.required_patches)


@dataclass
class GameRecord:
    """A game directory in the repository.

    ``versions`` is kept sorted by build number, newest first.
    """
    id: str
    title: str
    developer: str | None = None
    publisher: str | None = None
    release_date: str | None = None
    description: str | None = None
    external_id: int | None = None
    files: list[FileRecord] = field(default_factory=list)
    versions: list[VersionRecord] = field(default_factory=list)
    cover_image_path: str | None = None

    def latest_version(self) -> VersionRecord | None:
        return self.versions[0] if self.versions else None

    def version_by_build(self, build_number: int) -> VersionRecord | None:
        for version in self.versions:
            if version.build_number == build_number:
                return version
        return None

    def installers(self) -> list[FileRecord]:
        return [f for f in self.files if f.category == FileCategory.INSTALLER]

    def patches(self) -> list[FileRecord]:
        return [f for f in self.files if f.category == FileCategory.PATCH]
