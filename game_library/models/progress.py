"""Progress tracking data models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Started:
    """Metadata fetch started for a game."""
    game_id: str
    game_name: str


@dataclass(frozen=True)
class Success:
    """Metadata for a game is cached and current."""
    game_id: str
    game_name: str


@dataclass(frozen=True)
class Failed:
    """Metadata fetch for a game did not produce data."""
    game_id: str
    game_name: str
    reason: str


@dataclass(frozen=True)
class Progress:
    """Batch progress: ``completed`` of ``total`` games processed."""
    completed: int
    total: int

    @property
    def percentage(self) -> float:
        if self.total == 0:
            return 100.0
        return (self.completed / self.total) * 100


@dataclass(frozen=True)
class Completed:
    """Final event of a batch update."""
    successful: int
    failed: int
    total: int


type MetadataStatus = Started | Success | Failed | Progress | Completed


@dataclass(frozen=True)
class DownloadProgress:
    """Progress information for download operations."""
    current_file: str
    files_completed: int
    total_files: int
    bytes_downloaded: int
    total_bytes: int
