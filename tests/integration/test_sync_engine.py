"""Integration tests for full sync passes against an in-memory remote."""

from __future__ import annotations

import asyncio

import pytest

from buzo.engine import NO_CONNECTIVITY_ERROR, SyncEngine
from buzo.exceptions import ConnectivityError, RemoteOperationError, StorageError
from buzo.models import Budget, SyncStatus, current_millis
from buzo.network import StaticConnectivityProbe
from buzo.queue import PendingOperationQueue
from buzo.status import SyncStatusTracker
from buzo.storage import LocalStore
from tests.utils.assertions import assert_idle
from tests.utils.fakes import InMemoryRemoteService


def _budget(record_id: str, updated_at: str = "2026-02-01T09:00:00+00:00") -> Budget:
    return Budget(
        id=record_id,
        name=f"Budget {record_id}",
        amount="100",
        category="Food",
        created_at="2026-02-01T09:00:00+00:00",
        updated_at=updated_at,
    )


async def _engine(
    store: LocalStore,
    remote: InMemoryRemoteService,
    probe: StaticConnectivityProbe,
    **kwargs,
) -> SyncEngine:
    tracker = SyncStatusTracker(store)
    await tracker.load()
    return SyncEngine(
        store, PendingOperationQueue(store), tracker, remote, probe, **kwargs
    )


@pytest.mark.sit
@pytest.mark.asyncio
async def test_full_sync_drains_queue(store, remote, probe) -> None:
    engine = await _engine(store, remote, probe)
    for record_id in ("a", "b", "c"):
        budget = _budget(record_id)
        await store.save_budgets([*await store.load_budgets(), budget])
        await engine.queue.enqueue("budget", "create", budget.to_dict())

    result = await engine.perform_full_sync()

    assert result.ok
    assert len(result.successful) == 3
    assert await engine.get_pending_sync_count() == 0
    assert set(remote.tables["budget"]) == {"a", "b", "c"}
    status = engine.tracker.snapshot()
    assert_idle(status)
    assert status.pending_count == 0
    assert status.sync_progress == 1.0
    assert status.error is None
    assert status.last_successful_sync == await store.get_last_sync()


@pytest.mark.sit
@pytest.mark.asyncio
async def test_failed_item_is_kept_and_counted(store, probe) -> None:
    remote = InMemoryRemoteService(reject_ids={"b"})
    engine = await _engine(store, remote, probe)
    for record_id in ("a", "b", "c"):
        budget = _budget(record_id)
        await store.save_budgets([*await store.load_budgets(), budget])
        await engine.queue.enqueue("budget", "create", budget.to_dict())

    result = await engine.perform_full_sync()

    assert [item.record_id for item in result.successful] == ["a", "c"]
    assert [item.record_id for item, _ in result.failed] == ["b"]
    remaining = await engine.queue.items()
    assert [item.record_id for item in remaining] == ["b"]
    assert remaining[0].attempts == 1
    status = engine.tracker.snapshot()
    assert status.pending_count == 1
    assert status.failed_count == 1
    assert "Rejected budget b" in status.error
    assert status.last_successful_sync is None
    assert await store.get_last_sync() is None
    # The unsynced local record survives the pull
    assert {budget.id for budget in await store.load_budgets()} == {"a", "b", "c"}


@pytest.mark.sit
@pytest.mark.asyncio
async def test_retry_after_failure_succeeds(store, probe) -> None:
    remote = InMemoryRemoteService(reject_ids={"b"})
    engine = await _engine(store, remote, probe)
    budget = _budget("b")
    await store.save_budgets([budget])
    await engine.queue.enqueue("budget", "create", budget.to_dict())
    await engine.perform_full_sync()

    remote.reject_ids.clear()
    result = await engine.perform_full_sync()

    assert result.ok
    assert await engine.has_pending_sync_items() is False
    assert engine.tracker.snapshot().failed_count == 0


@pytest.mark.sit
@pytest.mark.asyncio
async def test_replayed_create_is_treated_as_success(store, remote, probe) -> None:
    engine = await _engine(store, remote, probe)
    budget = _budget("a")
    remote.seed("budget", budget.to_dict())
    await store.save_budgets([budget])
    await engine.queue.enqueue("budget", "create", budget.to_dict())
    await engine.queue.enqueue("expense", "delete", None, record_id="gone")

    result = await engine.perform_full_sync()

    assert result.ok
    assert len(result.successful) == 2
    assert list(remote.tables["budget"]) == ["a"]


@pytest.mark.sit
@pytest.mark.asyncio
async def test_offline_sync_changes_nothing(store, remote) -> None:
    probe = StaticConnectivityProbe(online=False)
    engine = await _engine(store, remote, probe)
    budget = _budget("a")
    await engine.queue.enqueue("budget", "create", budget.to_dict())
    seen: list[SyncStatus] = []
    engine.tracker.add_listener(seen.append)

    with pytest.raises(ConnectivityError):
        await engine.perform_full_sync()

    assert remote.calls == []
    assert await engine.get_pending_sync_count() == 1
    assert await store.is_online() is False
    status = engine.tracker.snapshot()
    assert_idle(status)
    assert status.error == NO_CONNECTIVITY_ERROR
    assert status.pending_count == 1
    assert len(seen) == 1


@pytest.mark.sit
@pytest.mark.asyncio
async def test_pass_notifies_start_and_finish(store, remote, probe) -> None:
    engine = await _engine(store, remote, probe)
    seen: list[SyncStatus] = []
    engine.tracker.add_listener(seen.append)

    await engine.perform_full_sync()

    assert len(seen) >= 2
    assert seen[0].is_syncing is True
    assert seen[-1].is_syncing is False


@pytest.mark.sit
@pytest.mark.asyncio
async def test_concurrent_pass_is_skipped(store, remote, probe) -> None:
    engine = await _engine(store, remote, probe)
    budget = _budget("a")
    await store.save_budgets([budget])
    await engine.queue.enqueue("budget", "create", budget.to_dict())

    first, second = await asyncio.gather(
        engine.perform_full_sync(), engine.perform_full_sync()
    )

    assert first.ok
    assert second.skipped
    assert remote.calls.count(("create", "budget", "a")) == 1


@pytest.mark.sit
@pytest.mark.asyncio
async def test_stale_persisted_flag_is_reset(store, remote, probe) -> None:
    engine = await _engine(store, remote, probe, stale_sync_minutes=1)
    await engine.update_sync_status(
        is_syncing=True, last_sync_attempt=current_millis() - 10 * 60 * 1000
    )

    result = await engine.perform_full_sync()

    assert not result.skipped
    assert_idle(engine.tracker.snapshot())


@pytest.mark.sit
@pytest.mark.asyncio
async def test_live_persisted_flag_skips_pass(store, remote, probe) -> None:
    engine = await _engine(store, remote, probe)
    await engine.update_sync_status(is_syncing=True, last_sync_attempt=current_millis())

    result = await engine.perform_full_sync()

    assert result.skipped
    assert engine.tracker.snapshot().is_syncing is True


@pytest.mark.sit
@pytest.mark.asyncio
async def test_forced_pass_overrides_persisted_flag(store, remote, probe) -> None:
    engine = await _engine(store, remote, probe)
    budget = _budget("a")
    await store.save_budgets([budget])
    await engine.queue.enqueue("budget", "create", budget.to_dict())
    await engine.update_sync_status(is_syncing=True, last_sync_attempt=current_millis())

    result = await engine.perform_full_sync(force=True)

    assert not result.skipped
    assert result.ok
    assert "a" in remote.tables["budget"]
    assert_idle(engine.tracker.snapshot())


@pytest.mark.sit
@pytest.mark.asyncio
async def test_forced_pass_still_yields_to_running_pass(store, remote, probe) -> None:
    engine = await _engine(store, remote, probe)
    budget = _budget("a")
    await store.save_budgets([budget])
    await engine.queue.enqueue("budget", "create", budget.to_dict())

    first, second = await asyncio.gather(
        engine.perform_full_sync(), engine.perform_full_sync(force=True)
    )

    assert first.ok
    assert second.skipped
    assert remote.calls.count(("create", "budget", "a")) == 1


@pytest.mark.sit
@pytest.mark.asyncio
async def test_max_attempts_stops_retrying(store, probe) -> None:
    remote = InMemoryRemoteService(reject_ids={"a"})
    engine = await _engine(store, remote, probe, max_attempts=2, detect_local_changes=False)
    budget = _budget("a")
    await engine.queue.enqueue("budget", "create", budget.to_dict())

    for _ in range(3):
        await engine.perform_full_sync()

    assert remote.calls.count(("create", "budget", "a")) == 2
    assert (await engine.queue.items())[0].attempts == 2

    assert await engine.reset_failed_sync_items() == 1
    assert engine.tracker.snapshot().failed_count == 0
    assert engine.tracker.snapshot().error is None


@pytest.mark.sit
@pytest.mark.asyncio
async def test_last_sync_never_decreases(store, remote, probe) -> None:
    engine = await _engine(store, remote, probe)
    future = current_millis() + 60 * 60 * 1000
    await store.set_last_sync(future)

    await engine.perform_full_sync()

    assert await store.get_last_sync() == future
    assert engine.tracker.snapshot().last_successful_sync == future


@pytest.mark.sit
@pytest.mark.asyncio
async def test_pull_reconciles_with_pending_changes(store, remote, probe) -> None:
    engine = await _engine(store, remote, probe, detect_local_changes=False)
    remote.seed("budget", _budget("remote-only").to_dict(), _budget("deleted").to_dict())
    edited = _budget("edited", updated_at="2026-03-01T09:00:00+00:00")
    remote.seed("budget", dict(_budget("edited").to_dict(), name="Remote name"))
    await store.save_budgets([edited])
    # Queue items fail so the local intent is still pending during the pull
    remote.reject_ids.update({"edited", "deleted"})
    await engine.queue.enqueue("budget", "update", edited.to_dict())
    await engine.queue.enqueue("budget", "delete", None, record_id="deleted")

    result = await engine.perform_full_sync()

    budgets = {budget.id: budget for budget in await store.load_budgets()}
    assert set(budgets) == {"remote-only", "edited"}
    assert budgets["edited"].name == "Budget edited"
    assert result.pulled["budget"] == 2


@pytest.mark.sit
@pytest.mark.asyncio
async def test_unsynced_local_changes_are_queued(store, remote, probe) -> None:
    engine = await _engine(store, remote, probe)
    remote.seed("budget", _budget("same").to_dict(), _budget("stale").to_dict())
    await store.save_budgets(
        [
            _budget("same"),
            _budget("stale", updated_at="2026-03-01T09:00:00+00:00"),
            _budget("new"),
        ]
    )

    errors = await engine.queue_unsynced_local_changes()
    again = await engine.queue_unsynced_local_changes()

    assert errors == [] and again == []
    queued = {(item.type, item.record_id) for item in await engine.queue.items()}
    assert queued == {("update", "stale"), ("create", "new")}


@pytest.mark.sit
@pytest.mark.asyncio
async def test_pull_failure_is_reported(store, probe) -> None:
    remote = InMemoryRemoteService(fail_fetch={"expense"})
    engine = await _engine(store, remote, probe)

    result = await engine.perform_full_sync()

    assert not result.ok
    assert "expense" not in result.pulled
    assert engine.tracker.snapshot().error == "Listing expense failed"

    with pytest.raises(RemoteOperationError):
        await engine.pull_latest_data()


@pytest.mark.sit
@pytest.mark.asyncio
async def test_storage_failure_returns_status_to_idle(store, remote, probe, backend) -> None:
    engine = await _engine(store, remote, probe)
    await engine.queue.enqueue("budget", "delete", None, record_id="a")
    original = engine.remote.delete

    async def close_then_delete(entity: str, record_id: str) -> None:
        backend.close()
        await original(entity, record_id)

    engine.remote.delete = close_then_delete

    with pytest.raises(StorageError):
        await engine.perform_full_sync()

    assert_idle(engine.tracker.snapshot())


@pytest.mark.sit
@pytest.mark.asyncio
async def test_reset_sync_data(store, remote, probe) -> None:
    engine = await _engine(store, remote, probe)
    await engine.queue.enqueue("budget", "delete", None, record_id="a")
    await engine.update_sync_status(is_syncing=True, pending_count=1)

    await engine.reset_sync_data()

    assert await engine.has_pending_sync_items() is False
    status = engine.tracker.snapshot()
    assert_idle(status)
    assert status.pending_count == 0
    assert status.error == "Sync status forcibly reset"
