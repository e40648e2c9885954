"""Metadata refresh orchestration.

Decides when a game's cached metadata needs refreshing, queries the game
database, merges results into the ``MetadataStore``, fetches cover images
and reports lifecycle events through an attached status channel.
"""

import asyncio
import time
import weakref
from collections.abc import Callable
from typing import Protocol

import structlog

from ..models import Candidate, Completed, Failed, MetadataStatus, Progress, Started, Success
from .errors import MetadataError
from .filesystem import FileSystemService
from .metadata_store import MetadataStore

log = structlog.stdlib.get_logger()

DEFAULT_MAX_AGE_DAYS = 30
DEFAULT_COVER_SIZE = "cover_big"
NO_MATCH_REASON = "No matching game found in the game database"


class EnrichmentSource(Protocol):
    """Game database lookups used to enrich cached metadata."""

    async def search(self, name: str) -> list[Candidate]: ...

    async def best_match(self, name: str) -> Candidate | None: ...

    async def fetch_cover_bytes(self, image_id: str, size_hint: str) -> bytes: ...


def pick_best_match(name: str, candidates: list[Candidate]) -> Candidate | None:
    """Exact case-insensitive name match if present, else the first candidate."""
    wanted = name.casefold()
    for candidate in candidates:
        if candidate.name.casefold() == wanted:
            return candidate
    return candidates[0] if candidates else None


class ChannelClosedError(Exception):
    """Raised when sending into a status channel whose receiver has gone."""


class StatusChannel(Protocol):
    def send(self, event: MetadataStatus) -> None: ...


class QueueStatusChannel:
    """Status channel backed by an ``asyncio.Queue``."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[MetadataStatus] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, event: MetadataStatus) -> None:
        if self._closed:
            raise ChannelClosedError("status channel is closed")
        self._queue.put_nowait(event)

    async def get(self) -> MetadataStatus:
        return await self._queue.get()

    def drain(self) -> list[MetadataStatus]:
        """Return every event queued so far without waiting."""
        events = []
        while not self._queue.empty():
            events.append(self._queue.get_nowait())
        return events

    def close(self) -> None:
        self._closed = True


class CallbackStatusChannel:
    """Status channel that forwards each event to a callable."""

    def __init__(self, callback: Callable[[MetadataStatus], None]) -> None:
        self._callback: Callable[[MetadataStatus], None] | None = callback

    @property
    def closed(self) -> bool:
        return self._callback is None

    def send(self, event: MetadataStatus) -> None:
        if self._callback is None:
            raise ChannelClosedError("status channel is closed")
        self._callback(event)

    def close(self) -> None:
        self._callback = None


class MetadataRefreshService:
    """Coordinates metadata refreshes for single games and whole libraries."""

    def __init__(
        self,
        store: MetadataStore,
        source: EnrichmentSource,
        max_age_days: int = DEFAULT_MAX_AGE_DAYS,
        request_delay: float = 0.0,
        filesystem: FileSystemService | None = None,
    ) -> None:
        """Initialize the refresh service.

        Args:
            store: Metadata store receiving refreshed records
            source: Game database used for lookups and cover bytes
            max_age_days: Age after which cached metadata is refreshed
            request_delay: Pause between games during a library update
            filesystem: File system service used to write cover images
        """
        self.store = store
        self.source = source
        self.max_age_days = max_age_days
        self.request_delay = request_delay
        self._fs = filesystem or FileSystemService()
        self._channel: StatusChannel | None = None
        self._last_refresh: dict[str, float] = {}
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        self._cancelled = False

    def attach_status_channel(self, channel: StatusChannel) -> None:
        """Route future status events to ``channel``, replacing any other."""
        self._channel = channel
        log.debug("Status channel attached", channel=type(channel).__name__)

    def detach_status_channel(self) -> None:
        """Stop delivering status events. Later events are dropped."""
        self._channel = None
        log.debug("Status channel detached")

    def _emit(self, event: MetadataStatus) -> None:
        if self._channel is None:
            return
        try:
            self._channel.send(event)
        except ChannelClosedError:
            log.warning("Status channel closed, dropping event", event_type=type(event).__name__)

    def _lock_for(self, game_id: str) -> asyncio.Lock:
        """Save lock for a game, alive only while someone holds or awaits it."""
        lock = self._locks.get(game_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[game_id] = lock
        return lock

    def _mark_refreshed(self, game_id: str) -> None:
        self._last_refresh[game_id] = time.monotonic()

    def is_current(self, game_id: str) -> bool:
        """True when the game has external data that is not stale."""
        return self.store.has_external_data(game_id) and not self.store.is_stale(game_id, self.max_age_days)

    def needs_refresh(self, game_id: str) -> bool:
        return not self.is_current(game_id)

    def was_recently_refreshed(self, game_id: str, within_seconds: float) -> bool:
        """Debounce helper: was this game refreshed in the last ``within_seconds``."""
        refreshed_at = self._last_refresh.get(game_id)
        if refreshed_at is None:
            return False
        return time.monotonic() - refreshed_at < within_seconds

    async def fetch_and_cache(self, game_id: str, game_name: str, force: bool = False) -> bool:
        """Fetch metadata for a game unless the cache is current.

        Args:
            game_id: Library game id
            game_name: Name used to search the game database
            force: Skip the cache check and always query

        Returns:
            True if the game has current metadata, False if no match was found

        Raises:
            Exception: Errors from the game database or from saving the
                record propagate after a ``Failed`` event has been emitted
        """
        self._emit(Started(game_id, game_name))

        if not force and self.is_current(game_id):
            log.debug("Metadata cache hit", game_id=game_id)
            self._mark_refreshed(game_id)
            self._emit(Success(game_id, game_name))
            return True

        try:
            candidate = await self.source.best_match(game_name)
        except Exception as e:
            log.error("Game database lookup failed", game_id=game_id, game_name=game_name, error=str(e))
            self._emit(Failed(game_id, game_name, f"Game database error: {e}"))
            raise

        if candidate is None:
            log.info("No game database match", game_id=game_id, game_name=game_name)
            self._emit(Failed(game_id, game_name, NO_MATCH_REASON))
            return False

        try:
            async with self._lock_for(game_id):
                self.store.update_with_candidate(game_id, candidate)
        except Exception as e:
            log.error("Saving metadata failed", game_id=game_id, error=str(e))
            self._emit(Failed(game_id, game_name, f"Could not save metadata: {e}"))
            raise

        self._mark_refreshed(game_id)
        log.info("Metadata cached", game_id=game_id, external_id=candidate.id, matched_name=candidate.name)
        self._emit(Success(game_id, game_name))
        return True

    async def refresh(self, game_id: str, game_name: str) -> bool:
        """Re-query the game database regardless of staleness, then fetch the cover."""
        found = await self.fetch_and_cache(game_id, game_name, force=True)
        if found and self.store.has_external_data(game_id):
            await self.download_cover(game_id, DEFAULT_COVER_SIZE)
        return found

    async def download_cover(self, game_id: str, size_hint: str = DEFAULT_COVER_SIZE) -> bool:
        """Download the cover image for a game if it is missing.

        Returns:
            True if the cover exists afterwards or the game has no cover,
            False if retrieval or writing failed
        """
        if self.store.has_cover(game_id):
            return True

        try:
            record = self.store.get(game_id)
        except MetadataError as e:
            log.warning("Cover skipped, cached metadata unreadable", game_id=game_id, error=str(e))
            return False
        if record is None or record.external_data is None or record.external_data.cover is None:
            return True

        image_id = record.external_data.cover.image_id
        try:
            data = await self.source.fetch_cover_bytes(image_id, size_hint)
            async with self._lock_for(game_id):
                self._fs.write_bytes(data, self.store.cover_path(game_id))
                self.store.update_cover_path(game_id, self.store.cover_relative_path(game_id))
        except Exception as e:
            log.warning("Cover download failed", game_id=game_id, image_id=image_id, error=str(e))
            return False

        log.info("Cover downloaded", game_id=game_id, size=len(data))
        return True

    def cancel_update(self) -> None:
        """Stop a running library update after the current game."""
        self._cancelled = True
        log.info("Metadata update cancellation requested")

    async def update_library(self, games: list[tuple[str, str]]) -> Completed:
        """Refresh metadata for every game in order.

        A failing game is counted and logged and never stops the batch.
        ``Progress`` is emitted before the first game and after each game,
        ``Completed`` is always the final event.

        Args:
            games: ``(game_id, game_name)`` pairs

        Returns:
            The ``Completed`` event that ended the batch
        """
        self._cancelled = False
        total = len(games)
        successful = 0
        failed = 0

        log.info("Starting library metadata update", total=total)
        self._emit(Progress(0, total))

        for index, (game_id, game_name) in enumerate(games):
            if self._cancelled:
                log.info("Library metadata update cancelled", processed=index, total=total)
                break

            reported = False
            try:
                if self.is_current(game_id):
                    self._emit(Started(game_id, game_name))
                    self._emit(Success(game_id, game_name))
                    successful += 1
                else:
                    reported = True
                    if await self.fetch_and_cache(game_id, game_name):
                        successful += 1
                        await self.download_cover(game_id)
                    else:
                        failed += 1

                    if self.request_delay > 0 and index + 1 < total:
                        await asyncio.sleep(self.request_delay)
            except Exception as e:
                log.warning("Metadata update failed for game", game_id=game_id, error=str(e))
                if not reported:
                    self._emit(Failed(game_id, game_name, str(e)))
                failed += 1

            self._emit(Progress(index + 1, total))

        completed = Completed(successful=successful, failed=failed, total=total)
        log.info("Library metadata update finished", successful=successful, failed=failed, total=total)
        self._emit(completed)
        return completed
