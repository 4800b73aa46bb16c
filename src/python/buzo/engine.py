"""Sync engine: drains the pending queue and refreshes the local cache."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from buzo.exceptions import (
    ConnectivityError,
    DuplicateError,
    NotFoundError,
    RemoteOperationError,
    StorageError,
)
from buzo.models import (
    ENTITY_MODELS,
    BaseEntity,
    PendingSyncItem,
    SyncResult,
    SyncStatus,
    current_millis,
    parse_iso,
)
from buzo.network import ConnectivityProbe
from buzo.queue import PendingOperationQueue
from buzo.remote import RemoteDataService
from buzo.schema import CHANGE_DETECTION_ENTITIES, ENTITY_TYPES
from buzo.status import SyncStatusTracker
from buzo.storage import LocalStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_STALE_SYNC_MINUTES = 5
NO_CONNECTIVITY_ERROR = "No network connectivity"
MAX_ATTEMPTS_ERROR = "Exceeded maximum retry attempts"


class SyncEngine:
    """Coordinate full sync passes against the remote service.

    A pass pushes queued operations oldest first, then pulls remote records
    into the local cache. A failing item is kept and counted but never aborts
    the pass. Only one pass runs at a time; overlapping requests are skipped.
    """

    def __init__(
        self,
        store: LocalStore,
        queue: PendingOperationQueue,
        tracker: SyncStatusTracker,
        remote: RemoteDataService,
        probe: ConnectivityProbe,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        stale_sync_minutes: float = DEFAULT_STALE_SYNC_MINUTES,
        detect_local_changes: bool = True,
    ) -> None:
        self.store = store
        self.queue = queue
        self.tracker = tracker
        self.remote = remote
        self.probe = probe
        self.max_attempts = max_attempts
        self.stale_sync_minutes = stale_sync_minutes
        self.detect_local_changes = detect_local_changes
        self._pass_lock = asyncio.Lock()

    async def perform_full_sync(self, force: bool = False) -> SyncResult:
        """Run one sync pass.

        Args:
            force: Ignore an in-progress flag persisted by another session.
                A pass already running in this process still wins.

        Returns:
            SyncResult describing applied, failed and pulled records. The
            result is marked skipped when another pass is already running.

        Raises:
            ConnectivityError: The probe reports offline; nothing is changed
                except the recorded error.
            StorageError: Local persistence failed; status is returned to idle
                before the error propagates.
        """
        if self._pass_lock.locked():
            logger.info("Sync already in progress, skipping")
            return SyncResult(skipped=True)

        async with self._pass_lock:
            if force:
                if self.tracker.snapshot().is_syncing:
                    logger.warning("Forcing sync over a persisted in-progress flag")
            elif not await self._claim_persisted_flag():
                logger.info("Sync already in progress in another session, skipping")
                return SyncResult(skipped=True)

            online = await self.probe.is_online()
            await self.store.set_online(online)
            if not online:
                await self.tracker.refresh_counts(error=NO_CONNECTIVITY_ERROR)
                raise ConnectivityError(NO_CONNECTIVITY_ERROR)

            started = current_millis()
            await self.tracker.update(
                is_syncing=True,
                last_sync_attempt=started,
                sync_progress=0.0,
                error=None,
            )
            try:
                result = await self._run_pass()
            except Exception as exc:
                await self._finish(error=str(exc))
                raise

            error = None
            if result.failed:
                error = result.failed[-1][1]
            elif result.errors:
                error = result.errors[-1]
            await self._finish(error=error, succeeded=result.ok)
            logger.info(
                "Sync complete: %d succeeded, %d failed",
                len(result.successful),
                len(result.failed),
            )
            return result

    async def _claim_persisted_flag(self) -> bool:
        """Return False when a live pass from another session still holds the flag."""
        status = self.tracker.snapshot()
        if not status.is_syncing:
            return True
        stale_after_ms = self.stale_sync_minutes * 60 * 1000
        attempt = status.last_sync_attempt or 0
        if current_millis() - attempt > stale_after_ms:
            logger.warning("Previous sync timed out, resetting sync status")
            await self.tracker.update(
                is_syncing=False, sync_progress=0.0, error="Previous sync timed out"
            )
            return True
        return False

    async def _run_pass(self) -> SyncResult:
        errors: list[str] = []
        if self.detect_local_changes:
            errors.extend(await self.queue_unsynced_local_changes())

        successful: list[PendingSyncItem] = []
        failed: list[tuple[PendingSyncItem, str]] = []
        items = await self.queue.items()
        total = len(items)
        for index, item in enumerate(items, start=1):
            error = await self._process_item(item)
            if error is None:
                successful.append(item)
            else:
                failed.append((item, error))
            await self._publish_counts(sync_progress=index / total)

        pulled, pull_errors = await self._pull(raise_errors=False)
        errors.extend(pull_errors)
        return SyncResult(successful=successful, failed=failed, pulled=pulled, errors=errors)

    async def _process_item(self, item: PendingSyncItem) -> str | None:
        """Apply one item; return None on success or the error message."""
        if item.attempts >= self.max_attempts:
            logger.warning("Skipping %s %s: %s", item.type, item.entity, MAX_ATTEMPTS_ERROR)
            return item.error or MAX_ATTEMPTS_ERROR
        try:
            await self.remote.apply(item)
        except DuplicateError:
            if item.type != "create":
                return await self._record_failure(item, "Duplicate record")
            logger.info("%s %s already exists remotely", item.entity, item.record_id)
        except NotFoundError as exc:
            if item.type == "create":
                return await self._record_failure(item, str(exc))
            logger.info("%s %s no longer exists remotely", item.entity, item.record_id)
        except RemoteOperationError as exc:
            return await self._record_failure(item, str(exc))
        await self.queue.mark_succeeded(item.id)
        return None

    async def _record_failure(self, item: PendingSyncItem, error: str) -> str:
        logger.warning("Failed to sync %s %s %s: %s", item.type, item.entity, item.record_id, error)
        await self.queue.mark_failed(item.id, error)
        return error

    async def _publish_counts(self, **changes: Any) -> SyncStatus:
        return await self.tracker.refresh_counts(**changes)

    async def _finish(self, error: str | None, succeeded: bool = False) -> None:
        changes: dict[str, Any] = {"is_syncing": False, "sync_progress": 1.0, "error": error}
        try:
            if succeeded:
                finished = await self.store.set_last_sync(current_millis())
                previous = self.tracker.snapshot().last_successful_sync or 0
                changes["last_successful_sync"] = max(previous, finished)
            await self._publish_counts(**changes)
        except StorageError:
            logger.exception("Could not persist final sync status")
            # Returns the in-memory status to idle before re-raising
            await self.tracker.update(**changes)
            raise

    async def queue_unsynced_local_changes(self) -> list[str]:
        """Queue creates and updates for cached records the remote side lacks.

        Returns error messages for entities whose remote records could not be fetched.
        """
        errors: list[str] = []
        for entity in CHANGE_DETECTION_ENTITIES:
            local = await self.store.load_collection(entity)
            if not local:
                continue
            try:
                remote_rows = await self.remote.fetch_all(entity)
            except RemoteOperationError as exc:
                logger.warning("Could not fetch remote %s records: %s", entity, exc)
                errors.append(str(exc))
                continue
            remote_by_id = {
                str(row.get("id")): row for row in remote_rows if isinstance(row, dict)
            }
            for record in local:
                remote_row = remote_by_id.get(record.id)
                if remote_row is None:
                    operation = "create"
                elif _is_newer(record, remote_row):
                    operation = "update"
                else:
                    continue
                if await self.queue.contains(entity, operation, record.id):
                    continue
                await self.queue.enqueue(entity, operation, record.to_dict())
                logger.info("Queued %s for unsynced %s %s", operation, entity, record.id)
        return errors

    async def pull_latest_data(self) -> dict[str, int]:
        """Refresh every cached collection from the remote service."""
        pulled, _ = await self._pull(raise_errors=True)
        return pulled

    async def _pull(self, raise_errors: bool) -> tuple[dict[str, int], list[str]]:
        pulled: dict[str, int] = {}
        errors: list[str] = []
        for entity in ENTITY_TYPES:
            try:
                remote_rows = await self.remote.fetch_all(entity)
            except RemoteOperationError as exc:
                if raise_errors:
                    raise
                logger.warning("Could not pull %s records: %s", entity, exc)
                errors.append(str(exc))
                continue
            # Cache writes take this lock after their queue item is stored
            async with self.store.queue_lock:
                pending = await self.store.get_pending_sync()
                merged = await self._reconcile(entity, remote_rows, pending)
                await self.store.save_collection(entity, merged)
            pulled[entity] = len(merged)
        return pulled, errors

    async def _reconcile(
        self,
        entity: str,
        remote_rows: list[dict[str, Any]],
        pending: list[PendingSyncItem],
    ) -> list[BaseEntity]:
        """Merge remote records with local records that still have queued changes."""
        model = ENTITY_MODELS[entity]
        queued = [item for item in pending if item.entity == entity]
        deleted = {item.record_id for item in queued if item.type == "delete"}
        kept_local = {item.record_id for item in queued if item.type != "delete"}

        local_by_id = {record.id: record for record in await self.store.load_collection(entity)}
        merged: dict[str, BaseEntity] = {}
        for row in remote_rows:
            try:
                record = model.from_dict(row)
            except ValueError as exc:
                logger.warning("Skipping invalid remote %s record: %s", entity, exc)
                continue
            if record.id in deleted:
                continue
            if record.id in kept_local and record.id in local_by_id:
                merged[record.id] = local_by_id[record.id]
            else:
                merged[record.id] = record
        for record_id in kept_local:
            if record_id not in merged and record_id in local_by_id:
                merged[record_id] = local_by_id[record_id]
        return list(merged.values())

    async def reset_failed_sync_items(self) -> int:
        """Clear failure flags so failed items are retried on the next pass."""
        reset = await self.queue.reset_failed()
        await self._publish_counts(error=None)
        logger.info("Reset %d failed sync items", reset)
        return reset

    async def update_sync_status(self, **changes: Any) -> SyncStatus:
        """Directly patch the status record; used to simulate failure conditions."""
        return await self.tracker.update(**changes)

    async def reset_sync_data(self) -> None:
        """Clear the queue and force the status back to idle."""
        await self.queue.clear()
        logger.warning("Forcing sync status reset")
        await self._publish_counts(
            is_syncing=False,
            sync_progress=0.0,
            error="Sync status forcibly reset",
        )

    async def has_pending_sync_items(self) -> bool:
        return await self.queue.count() > 0

    async def get_pending_sync_count(self) -> int:
        return await self.queue.count()


def _is_newer(record: BaseEntity, remote_row: dict[str, Any]) -> bool:
    local_updated = getattr(record, "updated_at", None)
    remote_updated = remote_row.get("updatedAt") or remote_row.get("updated_at")
    if not local_updated or not remote_updated:
        return False
    try:
        return parse_iso(local_updated) > parse_iso(str(remote_updated))
    except ValueError:
        return False
