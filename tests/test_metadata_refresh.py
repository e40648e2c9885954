"""Tests for the metadata refresh service."""

import asyncio
import gc
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from hypothesis import given, settings, strategies as st

from game_library.models import Candidate, Completed, CoverRef, Failed, Progress, Started, Success
from game_library.services.metadata_refresh import (
    NO_MATCH_REASON,
    CallbackStatusChannel,
    ChannelClosedError,
    MetadataRefreshService,
    QueueStatusChannel,
    pick_best_match,
)
from game_library.services.metadata_store import SECONDS_PER_DAY, MetadataStore


class FakeClock:
    def __init__(self, now: float = 1_700_000_000) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeSource:
    """Game database stand-in returning canned matches."""

    def __init__(self, matches: dict[str, Candidate | Exception | None] | None = None) -> None:
        self.matches = matches or {}
        self.queries: list[str] = []
        self.cover_requests: list[tuple[str, str]] = []
        self.cover_bytes: bytes | Exception = b"\xff\xd8jpeg"

    async def search(self, name: str) -> list[Candidate]:
        match = await self.best_match(name)
        return [match] if match else []

    async def best_match(self, name: str) -> Candidate | None:
        self.queries.append(name)
        result = self.matches.get(name)
        if isinstance(result, Exception):
            raise result
        return result

    async def fetch_cover_bytes(self, image_id: str, size_hint: str) -> bytes:
        self.cover_requests.append((image_id, size_hint))
        if isinstance(self.cover_bytes, Exception):
            raise self.cover_bytes
        return self.cover_bytes


def candidate(name: str, game_id: int = 1, cover: str | None = None) -> Candidate:
    return Candidate(id=game_id, name=name, cover=CoverRef(cover) if cover else None)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(tmp_path: Path, clock: FakeClock) -> MetadataStore:
    return MetadataStore(tmp_path / "cache", clock=clock)


def make_service(store: MetadataStore, source: FakeSource) -> tuple[MetadataRefreshService, QueueStatusChannel]:
    service = MetadataRefreshService(store, source, max_age_days=30)
    channel = QueueStatusChannel()
    service.attach_status_channel(channel)
    return service, channel


class TestPickBestMatch:
    def test_exact_name_preferred(self) -> None:
        results = [candidate("Hades II", 2), candidate("hades", 1)]
        assert pick_best_match("Hades", results) == results[1]

    def test_first_result_otherwise(self) -> None:
        results = [candidate("Hades: Battle Out of Hell", 3), candidate("Hades II", 2)]
        assert pick_best_match("Hades", results) == results[0]

    def test_no_results(self) -> None:
        assert pick_best_match("Hades", []) is None


class TestFetchAndCache:
    @pytest.mark.asyncio
    async def test_fetch_stores_match(self, store: MetadataStore) -> None:
        source = FakeSource({"Hades": candidate("Hades", 113112)})
        service, channel = make_service(store, source)

        assert await service.fetch_and_cache("hades", "Hades") is True

        record = store.load("hades")
        assert record.external_id == 113112
        assert store.metadata_path("hades").is_file()
        assert channel.drain() == [Started("hades", "Hades"), Success("hades", "Hades")]

    @pytest.mark.asyncio
    async def test_cache_hit_skips_lookup(self, store: MetadataStore) -> None:
        source = FakeSource({"Hades": candidate("Hades")})
        service, channel = make_service(store, source)

        await service.fetch_and_cache("hades", "Hades")
        channel.drain()
        assert await service.fetch_and_cache("hades", "Hades") is True

        assert source.queries == ["Hades"]
        assert channel.drain() == [Started("hades", "Hades"), Success("hades", "Hades")]

    @pytest.mark.asyncio
    async def test_idempotent_within_max_age(self, store: MetadataStore, clock: FakeClock) -> None:
        source = FakeSource({"Hades": candidate("Hades")})
        service, _ = make_service(store, source)

        await service.fetch_and_cache("hades", "Hades")
        first = store.load("hades")
        clock.now += 29 * SECONDS_PER_DAY
        await service.fetch_and_cache("hades", "Hades")

        assert store.load("hades") == first
        assert len(source.queries) == 1

    @pytest.mark.asyncio
    async def test_stale_record_is_refetched(self, store: MetadataStore, clock: FakeClock) -> None:
        source = FakeSource({"Hades": candidate("Hades")})
        service, _ = make_service(store, source)

        await service.fetch_and_cache("hades", "Hades")
        clock.now += 31 * SECONDS_PER_DAY
        await service.fetch_and_cache("hades", "Hades")

        assert len(source.queries) == 2
        assert store.load("hades").last_updated == int(clock.now)

    @pytest.mark.asyncio
    async def test_empty_record_is_not_a_cache_hit(self, store: MetadataStore) -> None:
        store.load("hades")
        source = FakeSource({"Hades": candidate("Hades")})
        service, _ = make_service(store, source)

        await service.fetch_and_cache("hades", "Hades")

        assert source.queries == ["Hades"]

    @pytest.mark.asyncio
    async def test_force_bypasses_cache(self, store: MetadataStore) -> None:
        source = FakeSource({"Hades": candidate("Hades")})
        service, _ = make_service(store, source)

        await service.fetch_and_cache("hades", "Hades")
        await service.fetch_and_cache("hades", "Hades", force=True)

        assert len(source.queries) == 2

    @pytest.mark.asyncio
    async def test_no_match(self, store: MetadataStore) -> None:
        service, channel = make_service(store, FakeSource())

        assert await service.fetch_and_cache("hades", "Hades") is False

        assert channel.drain() == [Started("hades", "Hades"), Failed("hades", "Hades", NO_MATCH_REASON)]
        assert not store.metadata_path("hades").exists()

    @pytest.mark.asyncio
    async def test_lookup_error_propagates_after_failed_event(self, store: MetadataStore) -> None:
        service, channel = make_service(store, FakeSource({"Hades": RuntimeError("rate limited")}))

        with pytest.raises(RuntimeError):
            await service.fetch_and_cache("hades", "Hades")

        events = channel.drain()
        assert events[-1] == Failed("hades", "Hades", "Game database error: rate limited")

    @pytest.mark.asyncio
    async def test_save_error_propagates_after_failed_event(self, store: MetadataStore) -> None:
        store.metadata_path("hades").mkdir()
        service, channel = make_service(store, FakeSource({"Hades": candidate("Hades")}))

        with pytest.raises(OSError):
            await service.fetch_and_cache("hades", "Hades")

        events = channel.drain()
        assert events[0] == Started("hades", "Hades")
        assert isinstance(events[-1], Failed)
        assert events[-1].reason.startswith("Could not save metadata: ")

    @pytest.mark.asyncio
    async def test_save_locks_are_released(self, store: MetadataStore) -> None:
        source = FakeSource({f"Game {i}": candidate(f"Game {i}", i + 1) for i in range(5)})
        service, _ = make_service(store, source)

        for i in range(5):
            await service.fetch_and_cache(f"game_{i}", f"Game {i}")
        gc.collect()

        assert len(service._locks) == 0

    @pytest.mark.asyncio
    async def test_refresh_forces_lookup_and_downloads_cover(self, store: MetadataStore) -> None:
        source = FakeSource({"Hades": candidate("Hades", cover="co2i0c")})
        service, _ = make_service(store, source)

        await service.fetch_and_cache("hades", "Hades")
        assert await service.refresh("hades", "Hades") is True

        assert len(source.queries) == 2
        assert source.cover_requests == [("co2i0c", "cover_big")]
        assert service.was_recently_refreshed("hades", within_seconds=60)
        assert not service.was_recently_refreshed("doom", within_seconds=60)


class TestCoverDownload:
    @pytest.mark.asyncio
    async def test_cover_written_and_recorded(self, store: MetadataStore) -> None:
        source = FakeSource({"Hades": candidate("Hades", cover="co2i0c")})
        service, _ = make_service(store, source)
        await service.fetch_and_cache("hades", "Hades")

        assert await service.download_cover("hades", "cover_small") is True

        assert store.cover_path("hades").read_bytes() == b"\xff\xd8jpeg"
        assert store.load("hades").cover_path == "images/hades_cover.jpg"
        assert source.cover_requests == [("co2i0c", "cover_small")]

    @pytest.mark.asyncio
    async def test_existing_cover_not_downloaded(self, store: MetadataStore) -> None:
        source = FakeSource({"Hades": candidate("Hades", cover="co2i0c")})
        service, _ = make_service(store, source)
        await service.fetch_and_cache("hades", "Hades")
        store.cover_path("hades").write_bytes(b"existing")

        assert await service.download_cover("hades") is True
        assert source.cover_requests == []

    @pytest.mark.asyncio
    async def test_game_without_cover(self, store: MetadataStore) -> None:
        source = FakeSource({"Hades": candidate("Hades")})
        service, _ = make_service(store, source)
        await service.fetch_and_cache("hades", "Hades")

        assert await service.download_cover("hades") is True
        assert source.cover_requests == []

    @pytest.mark.asyncio
    async def test_cover_failure_returns_false(self, store: MetadataStore) -> None:
        source = FakeSource({"Hades": candidate("Hades", cover="co2i0c")})
        source.cover_bytes = OSError("network down")
        service, _ = make_service(store, source)
        await service.fetch_and_cache("hades", "Hades")

        assert await service.download_cover("hades") is False
        assert store.load("hades").cover_path is None


class TestUpdateLibrary:
    @pytest.mark.asyncio
    async def test_failing_game_does_not_stop_batch(self, store: MetadataStore) -> None:
        source = FakeSource(
            {
                "Hades": candidate("Hades", 1),
                "Doom": RuntimeError("lookup failed"),
                "Celeste": candidate("Celeste", 3),
            }
        )
        service, channel = make_service(store, source)

        result = await service.update_library([("hades", "Hades"), ("doom", "Doom"), ("celeste", "Celeste")])

        assert result == Completed(successful=2, failed=1, total=3)
        events = channel.drain()
        assert events[-1] == Completed(successful=2, failed=1, total=3)
        assert Failed("doom", "Doom", "Game database error: lookup failed") in events
        assert store.has_external_data("celeste")

    @pytest.mark.asyncio
    async def test_progress_events_are_ordered(self, store: MetadataStore) -> None:
        source = FakeSource({"A": candidate("A", 1), "B": None})
        service, channel = make_service(store, source)

        await service.update_library([("a", "A"), ("b", "B")])

        events = channel.drain()
        progress = [e for e in events if isinstance(e, Progress)]
        assert progress == [Progress(0, 2), Progress(1, 2), Progress(2, 2)]
        assert events[0] == Progress(0, 2)
        assert events.index(Success("a", "A")) < events.index(Progress(1, 2))
        assert events.index(Failed("b", "B", NO_MATCH_REASON)) < events.index(Progress(2, 2))
        assert events[-1] == Completed(successful=1, failed=1, total=2)

    @pytest.mark.asyncio
    async def test_current_games_take_fast_path(self, store: MetadataStore) -> None:
        source = FakeSource({"Hades": candidate("Hades")})
        service, channel = make_service(store, source)
        await service.fetch_and_cache("hades", "Hades")
        source.queries.clear()
        channel.drain()

        result = await service.update_library([("hades", "Hades")])

        assert source.queries == []
        assert result == Completed(successful=1, failed=0, total=1)
        assert channel.drain() == [
            Progress(0, 1),
            Started("hades", "Hades"),
            Success("hades", "Hades"),
            Progress(1, 1),
            Completed(successful=1, failed=0, total=1),
        ]

    @pytest.mark.asyncio
    async def test_corrupt_cache_counts_as_failure(self, store: MetadataStore) -> None:
        store.metadata_path("hades").write_text("{ broken", encoding="utf-8")
        service, channel = make_service(store, FakeSource({"Doom": candidate("Doom")}))

        result = await service.update_library([("hades", "Hades"), ("doom", "Doom")])

        assert result == Completed(successful=1, failed=1, total=2)
        events = channel.drain()
        hades_events = [e for e in events if getattr(e, "game_id", None) == "hades"]
        assert len(hades_events) == 1
        assert isinstance(hades_events[0], Failed)
        assert hades_events[0].game_name == "Hades"
        assert events.index(hades_events[0]) < events.index(Progress(1, 2))

    @pytest.mark.asyncio
    async def test_lookup_error_reported_once(self, store: MetadataStore) -> None:
        service, channel = make_service(store, FakeSource({"Hades": RuntimeError("rate limited")}))

        await service.update_library([("hades", "Hades")])

        failures = [e for e in channel.drain() if isinstance(e, Failed)]
        assert failures == [Failed("hades", "Hades", "Game database error: rate limited")]

    @pytest.mark.asyncio
    async def test_empty_library(self, store: MetadataStore) -> None:
        service, channel = make_service(store, FakeSource())

        result = await service.update_library([])

        assert result == Completed(successful=0, failed=0, total=0)
        assert channel.drain() == [Progress(0, 0), Completed(0, 0, 0)]

    @pytest.mark.asyncio
    async def test_cancel_stops_after_current_game(self, store: MetadataStore) -> None:
        source = FakeSource()
        service, channel = make_service(store, source)

        async def cancel_on_first(name: str) -> Candidate | None:
            service.cancel_update()
            return candidate(name)

        source.best_match = AsyncMock(side_effect=cancel_on_first)  # type: ignore[method-assign]

        result = await service.update_library([("a", "A"), ("b", "B"), ("c", "C")])

        assert result == Completed(successful=1, failed=0, total=3)
        assert source.best_match.await_count == 1
        assert channel.drain()[-1] == result

    @pytest.mark.asyncio
    async def test_new_update_clears_cancellation(self, store: MetadataStore) -> None:
        service, _ = make_service(store, FakeSource({"A": candidate("A")}))
        service.cancel_update()

        result = await service.update_library([("a", "A")])

        assert result == Completed(successful=1, failed=0, total=1)

    @pytest.mark.asyncio
    async def test_request_delay_between_games(self, store: MetadataStore, monkeypatch: pytest.MonkeyPatch) -> None:
        service = MetadataRefreshService(store, FakeSource(), request_delay=0.01)

        sleeps: list[float] = []
        real_sleep = asyncio.sleep

        async def fake_sleep(delay: float) -> None:
            sleeps.append(delay)
            await real_sleep(0)

        monkeypatch.setattr(asyncio, "sleep", fake_sleep)
        await service.update_library([("a", "A"), ("b", "B"), ("c", "C")])

        assert sleeps == [0.01, 0.01]


class TestStatusChannels:
    @pytest.mark.asyncio
    async def test_detached_service_emits_nothing(self, store: MetadataStore) -> None:
        service, channel = make_service(store, FakeSource({"Hades": candidate("Hades")}))
        service.detach_status_channel()

        await service.update_library([("hades", "Hades")])

        assert channel.drain() == []

    @pytest.mark.asyncio
    async def test_closed_channel_does_not_break_update(self, store: MetadataStore) -> None:
        service, channel = make_service(store, FakeSource({"Hades": candidate("Hades")}))
        channel.close()

        result = await service.update_library([("hades", "Hades")])

        assert result == Completed(successful=1, failed=0, total=1)

    def test_queue_channel_rejects_after_close(self) -> None:
        channel = QueueStatusChannel()
        channel.close()

        assert channel.closed
        with pytest.raises(ChannelClosedError):
            channel.send(Progress(0, 1))

    def test_callback_channel(self) -> None:
        received: list[object] = []
        channel = CallbackStatusChannel(received.append)

        channel.send(Progress(0, 1))
        channel.close()

        assert received == [Progress(0, 1)]
        with pytest.raises(ChannelClosedError):
            channel.send(Progress(1, 1))

    @pytest.mark.asyncio
    async def test_reattach_replaces_channel(self, store: MetadataStore) -> None:
        service, first = make_service(store, FakeSource())
        second = QueueStatusChannel()
        service.attach_status_channel(second)

        await service.update_library([])

        assert first.drain() == []
        assert second.drain()[-1] == Completed(0, 0, 0)


@given(outcomes=st.lists(st.sampled_from(["match", "none", "error"]), max_size=8))
@settings(max_examples=30, deadline=None)
def test_completed_counts_add_up(tmp_path_factory: pytest.TempPathFactory, outcomes: list[str]) -> None:
    """Whatever each lookup does, every game is counted exactly once."""
    matches: dict[str, Candidate | Exception | None] = {}
    games = []
    for index, outcome in enumerate(outcomes):
        name = f"Game {index}"
        games.append((f"game_{index}", name))
        matches[name] = {"match": candidate(name, index + 1), "none": None, "error": RuntimeError("boom")}[outcome]

    store = MetadataStore(tmp_path_factory.mktemp("cache"))
    service = MetadataRefreshService(store, FakeSource(matches))
    result = asyncio.run(service.update_library(games))

    assert result.total == len(outcomes)
    assert result.successful == outcomes.count("match")
    assert result.successful + result.failed == result.total
