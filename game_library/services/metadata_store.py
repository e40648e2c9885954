"""Persisted, staleness-aware cache of game metadata.

Layout under the cache root::

    metadata/<game_id>.json   serialized CachedMetadata
    images/<game_id>_cover.jpg   cover image bytes

The store keeps an in-memory overlay of every record it has loaded, created
or saved. Records are created lazily and never deleted automatically.
"""

import time
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

import structlog

from ..models import CachedMetadata, Candidate
from .errors import FileSystemError, MetadataError
from .filesystem import FileSystemService

log = structlog.stdlib.get_logger()

SECONDS_PER_DAY = 86_400


class MetadataStore:
    """Keyed collection of ``CachedMetadata`` records, one file per game."""

    def __init__(
        self,
        cache_dir: Path,
        filesystem: FileSystemService | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the store and create its directories.

        Args:
            cache_dir: Root directory of the cache
            filesystem: File system service used for all disk access
            clock: Returns the current Unix time in seconds

        Raises:
            FileSystemError: If the cache directories cannot be created
        """
        self.cache_dir = cache_dir
        self.metadata_dir = cache_dir / "metadata"
        self.images_dir = cache_dir / "images"
        self._fs = filesystem or FileSystemService()
        self._clock = clock
        self._records: dict[str, CachedMetadata] = {}

        for directory in (self.metadata_dir, self.images_dir):
            try:
                self._fs.ensure_directory(directory)
            except OSError as e:
                raise FileSystemError(
                    "Cannot create the metadata cache directory",
                    original_error=e,
                    path=str(directory),
                    operation="create_cache",
                ) from e

        log.info("Metadata store initialized", cache_dir=str(cache_dir))

    def _now(self) -> int:
        return int(self._clock())

    def metadata_path(self, game_id: str) -> Path:
        return self.metadata_dir / f"{game_id}.json"

    def _read(self, game_id: str) -> CachedMetadata | None:
        """Read a persisted record into memory.

        Raises:
            MetadataError: If the file exists but cannot be parsed
        """
        path = self.metadata_path(game_id)
        if not path.is_file():
            return None

        try:
            record = CachedMetadata.from_dict(self._fs.load_json(path))
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise MetadataError(
                "Cached metadata could not be read",
                game_id=game_id,
                path=str(path),
                original_error=e,
            ) from e

        self._records[game_id] = record
        return record

    def get(self, game_id: str) -> CachedMetadata | None:
        """Return the record for a game without creating one.

        Raises:
            MetadataError: If a persisted record cannot be parsed
        """
        if game_id in self._records:
            return self._records[game_id]
        return self._read(game_id)

    def load(self, game_id: str) -> CachedMetadata:
        """Return the record for a game, creating an empty one if needed.

        A newly created record is kept in memory only until ``save`` is
        called for it.

        Raises:
            MetadataError: If a persisted record cannot be parsed
        """
        record = self.get(game_id)
        if record is None:
            record = CachedMetadata(game_id=game_id, last_updated=self._now())
            self._records[game_id] = record
            log.debug("Created empty metadata record", game_id=game_id)
        return record

    def save(self, record: CachedMetadata) -> CachedMetadata:
        """Upsert a record in memory and write it to disk.

        ``last_updated`` never moves backwards: a record older than the one
        already held is saved with the held timestamp.

        Returns:
            The record as stored

        Raises:
            OSError: If the file cannot be written
            ValueError: If the record cannot be serialized
        """
        current = self._records.get(record.game_id)
        if current is not None and current.last_updated > record.last_updated:
            record = replace(record, last_updated=current.last_updated)

        self._fs.save_json(record.to_dict(), self.metadata_path(record.game_id))
        self._records[record.game_id] = record
        log.debug("Metadata saved", game_id=record.game_id, last_updated=record.last_updated)
        return record

    def update_with_candidate(self, game_id: str, candidate: Candidate) -> CachedMetadata:
        """Merge a game database match into the record and persist it."""
        record = replace(
            self.load(game_id),
            external_id=candidate.id,
            external_data=candidate,
            last_updated=self._now(),
        )
        return self.save(record)

    def update_cover_path(self, game_id: str, relative_path: str) -> CachedMetadata:
        """Record where the cover image lives, relative to the cache root."""
        record = replace(self.load(game_id), cover_path=relative_path)
        return self.save(record)

    def is_stale(self, game_id: str, max_age_days: int) -> bool:
        """True if the record is missing or older than ``max_age_days``."""
        record = self.get(game_id)
        if record is None:
            return True
        return self._now() - record.last_updated > max_age_days * SECONDS_PER_DAY

    def has_metadata(self, game_id: str) -> bool:
        return game_id in self._records or self.metadata_path(game_id).is_file()

    def has_external_data(self, game_id: str) -> bool:
        record = self.get(game_id)
        return record is not None and record.has_external_data

    def cover_relative_path(self, game_id: str) -> str:
        return f"images/{game_id}_cover.jpg"

    def cover_path(self, game_id: str) -> Path:
        return self.cache_dir / self.cover_relative_path(game_id)

    def has_cover(self, game_id: str) -> bool:
        return self.cover_path(game_id).is_file()

    def load_all(self) -> int:
        """Load every persisted record into memory.

        Files that cannot be parsed are logged and skipped.

        Returns:
            Number of records loaded
        """
        loaded = 0
        for path in self._fs.list_files(self.metadata_dir, "*.json"):
            try:
                record = CachedMetadata.from_dict(self._fs.load_json(path))
            except (OSError, ValueError, KeyError, TypeError) as e:
                log.warning("Skipping unreadable metadata file", path=str(path), error=str(e))
                continue
            self._records[record.game_id] = record
            loaded += 1

        log.info("Metadata cache loaded", records=loaded)
        return loaded

    def game_ids(self) -> list[str]:
        return sorted(self._records)
