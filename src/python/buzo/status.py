"""Observable, persisted sync status."""

from __future__ import annotations

from dataclasses import fields
import logging
from typing import Any, Callable

from buzo.models import SyncStatus
from buzo.storage import LocalStore

logger = logging.getLogger(__name__)

StatusListener = Callable[[SyncStatus], None]

_STATUS_FIELDS = {item.name for item in fields(SyncStatus)}


class SyncStatusTracker:
    """Single owner of the sync status record.

    Created once per client and handed to every consumer. Each update is
    persisted, then delivered synchronously to every subscriber.
    """

    def __init__(self, store: LocalStore) -> None:
        self.store = store
        self._status = SyncStatus()
        self._listeners: list[StatusListener] = []
        self._loaded = False

    async def load(self) -> SyncStatus:
        """Restore the persisted status, creating defaults on first launch.

        Queue counts are recomputed from the persisted queue, so counts left
        stale by an interrupted write are corrected on restart.
        """
        persisted = await self.store.load_status()
        status = persisted or SyncStatus()
        status = status.evolve(**await self._queue_counts())
        if status != persisted:
            await self.store.save_status(status)
        self._status = status
        self._loaded = True
        return status

    def snapshot(self) -> SyncStatus:
        return self._status

    async def _queue_counts(self) -> dict[str, int]:
        items = await self.store.get_pending_sync()
        return {
            "pending_count": len(items),
            "failed_count": sum(1 for item in items if item.failed),
        }

    async def refresh_counts(self, **changes: Any) -> SyncStatus:
        """Recompute queue counts and apply them together with any other changes."""
        if not self._loaded:
            await self.load()
        return await self.update(**await self._queue_counts(), **changes)

    def add_listener(self, listener: StatusListener) -> Callable[[], None]:
        """Subscribe to status changes and return the unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def update(self, **changes: Any) -> SyncStatus:
        """Apply a partial update, persist it and notify subscribers."""
        unknown = set(changes) - _STATUS_FIELDS
        if unknown:
            raise ValueError(f"Unknown sync status fields: {', '.join(sorted(unknown))}")
        status = self._status.evolve(**changes)
        try:
            await self.store.save_status(status)
        finally:
            # Subscribers see the change even when persisting it fails
            self._status = status
            self._notify(status)
        return status

    def _notify(self, status: SyncStatus) -> None:
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:
                logger.exception("Sync status listener failed")
