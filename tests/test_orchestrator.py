"""
Tests for the sync orchestrator: single flight, atomic failure, persistence.
"""

import asyncio

import pytest

from kaptwatch.core.backends import FetchError
from kaptwatch.core.catalog import AssemblyResult, StopReason
from kaptwatch.core.errors import CatalogUnavailableError, SyncBusyError, SyncFailedError
from kaptwatch.core.models import BidSnapshot, SelectionSet
from kaptwatch.core.orchestrator import SyncOrchestrator
from kaptwatch.core.scheduler import execute_scheduled_sync
from kaptwatch.persistence import (
    BIDS_KEY,
    SELECTED_BIDS_KEY,
    SYNC_LOG_KEY,
    SYNC_STATE_KEY,
    MemoryKeyValueStore,
    SelectionRepository,
    SnapshotRepository,
)

from conftest import LIST_URL, RecordingNotifier, make_record, make_snapshot


def returning(result: AssemblyResult):
    async def assemble() -> AssemblyResult:
        return result

    return assemble


def raising(error: Exception):
    async def assemble() -> AssemblyResult:
        raise error

    return assemble


def seeded_store(snapshot: BidSnapshot, selection: SelectionSet) -> MemoryKeyValueStore:
    store = MemoryKeyValueStore()
    SnapshotRepository(store).save(snapshot)
    SelectionRepository(store).save(selection)
    return store


class TestSuccessfulRun:

    @pytest.mark.asyncio
    async def test_persists_snapshot_selection_state_and_log(self):
        old = make_record("1")
        selection = SelectionSet()
        selection.select(old)
        store = seeded_store(make_snapshot(old), selection)
        new_snapshot = make_snapshot(make_record("2"), make_record("1", status="마감"))
        notifier = RecordingNotifier()
        orchestrator = SyncOrchestrator(
            store,
            returning(AssemblyResult(snapshot=new_snapshot, pages_fetched=1)),
            notifiers=[notifier],
        )

        report = await orchestrator.run_sync()

        assert report.success
        assert report.total_bids == 2
        assert report.newly_added == 1
        assert report.updated_in_selection == 1
        assert report.pages_fetched == 1
        assert report.trigger == "manual"

        assert SnapshotRepository(store).load() == new_snapshot
        assert SelectionRepository(store).load().entries["1"].record.status == "마감"
        assert store.load(SYNC_STATE_KEY)["lastUpdate"] == report.finished_at.isoformat()
        assert orchestrator.status().last_update == report.finished_at

        events = store.load(SYNC_LOG_KEY)
        assert len(events) == 1
        assert events[0]["success"] is True
        assert events[0]["newlyAdded"] == 1
        assert notifier.reports == [report]

    @pytest.mark.asyncio
    async def test_soft_stop_is_reported_as_warning(self):
        store = MemoryKeyValueStore()
        result = AssemblyResult(
            snapshot=make_snapshot(make_record("1")),
            pages_fetched=1,
            stop_reason=StopReason.FETCH_ERROR,
            error=FetchError("connection reset", url=LIST_URL),
        )
        orchestrator = SyncOrchestrator(store, returning(result))

        report = await orchestrator.run_sync(trigger="scheduled")

        assert report.success
        assert any("pagination stopped after page 1" in w for w in report.warnings)
        assert store.load(SYNC_LOG_KEY)[0]["type"] == "scheduled"

    @pytest.mark.asyncio
    async def test_sync_log_is_capped(self):
        store = MemoryKeyValueStore()
        orchestrator = SyncOrchestrator(
            store,
            returning(AssemblyResult(snapshot=BidSnapshot())),
            sync_log_limit=2,
        )

        for _ in range(3):
            await orchestrator.run_sync()

        assert len(store.load(SYNC_LOG_KEY)) == 2


class TestFailedRun:

    @pytest.mark.asyncio
    async def test_failure_leaves_state_untouched(self):
        old = make_record("1")
        selection = SelectionSet()
        selection.select(old)
        store = seeded_store(make_snapshot(old), selection)
        before = {key: store.load(key) for key in (BIDS_KEY, SELECTED_BIDS_KEY, SYNC_STATE_KEY)}
        notifier = RecordingNotifier()
        error = CatalogUnavailableError(
            "Catalog unavailable: connection refused",
            snapshot=BidSnapshot(),
            cause=FetchError("connection refused", url=LIST_URL),
        )
        orchestrator = SyncOrchestrator(store, raising(error), notifiers=[notifier])

        with pytest.raises(SyncFailedError) as exc_info:
            await orchestrator.run_sync()

        assert {key: store.load(key) for key in before} == before
        assert exc_info.value.cause is error
        report = exc_info.value.report
        assert report.success is False
        assert report.total_bids == 0
        assert "connection refused" in report.error

        events = store.load(SYNC_LOG_KEY)
        assert len(events) == 1
        assert events[0]["success"] is False
        assert "connection refused" in events[0]["error"]
        assert notifier.reports == [report]
        assert orchestrator.in_progress is False

    @pytest.mark.asyncio
    async def test_unexpected_error_is_wrapped(self):
        orchestrator = SyncOrchestrator(MemoryKeyValueStore(), raising(RuntimeError("parser exploded")))

        with pytest.raises(SyncFailedError, match="parser exploded"):
            await orchestrator.run_sync()

        assert orchestrator.status().last_update is None

    @pytest.mark.asyncio
    async def test_unreadable_stored_selection_fails_the_run(self):
        store = MemoryKeyValueStore()
        store.save(SELECTED_BIDS_KEY, ["101", "102"])
        notifier = RecordingNotifier()
        snapshot = make_snapshot(make_record("101"))
        orchestrator = SyncOrchestrator(
            store,
            returning(AssemblyResult(snapshot=snapshot, pages_fetched=1)),
            notifiers=[notifier],
        )

        with pytest.raises(SyncFailedError) as exc_info:
            await orchestrator.run_sync()

        assert store.load(SELECTED_BIDS_KEY) == ["101", "102"]
        assert store.load(BIDS_KEY) is None
        events = store.load(SYNC_LOG_KEY)
        assert len(events) == 1
        assert events[0]["success"] is False
        assert notifier.reports == [exc_info.value.report]
        assert orchestrator.in_progress is False

    @pytest.mark.asyncio
    async def test_persist_failure_fails_the_run(self):
        class FullDiskStore(MemoryKeyValueStore):
            def save_many(self, items):
                raise OSError("disk full")

        old = make_record("1")
        selection = SelectionSet()
        selection.select(old)
        store = FullDiskStore({
            BIDS_KEY: make_snapshot(old).to_list(),
            SELECTED_BIDS_KEY: selection.to_dict(),
        })
        before = {key: store.load(key) for key in (BIDS_KEY, SELECTED_BIDS_KEY, SYNC_STATE_KEY)}
        orchestrator = SyncOrchestrator(
            store,
            returning(AssemblyResult(snapshot=make_snapshot(make_record("2")), pages_fetched=1)),
        )

        with pytest.raises(SyncFailedError, match="disk full"):
            await orchestrator.run_sync()

        assert {key: store.load(key) for key in before} == before
        assert store.load(SYNC_LOG_KEY)[0]["success"] is False
        assert orchestrator.status().last_update is None


class TestSingleFlight:

    @pytest.mark.asyncio
    async def test_concurrent_request_is_rejected(self):
        gate = asyncio.Event()
        snapshot = make_snapshot(make_record("1"))

        async def slow_assemble() -> AssemblyResult:
            await gate.wait()
            return AssemblyResult(snapshot=snapshot, pages_fetched=1)

        store = MemoryKeyValueStore()
        orchestrator = SyncOrchestrator(store, slow_assemble)

        first = asyncio.create_task(orchestrator.run_sync())
        await asyncio.sleep(0)
        assert orchestrator.status().in_progress is True

        with pytest.raises(SyncBusyError):
            await orchestrator.run_sync()

        gate.set()
        report = await first

        assert report.success
        assert orchestrator.in_progress is False
        assert len(store.load(SYNC_LOG_KEY)) == 1

    @pytest.mark.asyncio
    async def test_runs_again_after_completion(self):
        orchestrator = SyncOrchestrator(
            MemoryKeyValueStore(),
            returning(AssemblyResult(snapshot=BidSnapshot())),
        )

        await orchestrator.run_sync()
        report = await orchestrator.run_sync()

        assert report.success

    @pytest.mark.asyncio
    async def test_scheduled_run_skips_when_busy(self):
        gate = asyncio.Event()

        async def slow_assemble() -> AssemblyResult:
            await gate.wait()
            return AssemblyResult(snapshot=BidSnapshot())

        store = MemoryKeyValueStore()
        orchestrator = SyncOrchestrator(store, slow_assemble)
        first = asyncio.create_task(orchestrator.run_sync())
        await asyncio.sleep(0)

        await execute_scheduled_sync(orchestrator)

        gate.set()
        await first
        events = store.load(SYNC_LOG_KEY)
        assert [e["type"] for e in events] == ["manual"]

    @pytest.mark.asyncio
    async def test_scheduled_run_swallows_failure(self):
        store = MemoryKeyValueStore()
        orchestrator = SyncOrchestrator(store, raising(RuntimeError("boom")))

        await execute_scheduled_sync(orchestrator)

        assert store.load(SYNC_LOG_KEY)[0]["type"] == "scheduled"
        assert store.load(SYNC_LOG_KEY)[0]["success"] is False

    @pytest.mark.asyncio
    async def test_scheduled_run_survives_unreadable_state(self):
        store = MemoryKeyValueStore()
        store.save(SELECTED_BIDS_KEY, ["101"])
        snapshot = make_snapshot(make_record("101"))
        orchestrator = SyncOrchestrator(store, returning(AssemblyResult(snapshot=snapshot, pages_fetched=1)))

        await execute_scheduled_sync(orchestrator)

        assert store.load(SYNC_LOG_KEY)[0]["success"] is False
