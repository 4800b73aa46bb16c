"""FIFO queue of pending create/update/delete operations."""

from __future__ import annotations

from dataclasses import replace
import logging
from typing import Any
import uuid

from buzo.models import ENTITY_MODELS, PendingSyncItem, current_millis
from buzo.schema import ENTITY_TYPES, OPERATION_TYPES
from buzo.status import SyncStatusTracker
from buzo.storage import LocalStore

logger = logging.getLogger(__name__)


class PendingOperationQueue:
    """Persisted queue of mutations awaiting remote confirmation.

    Items are ordered oldest first. Failed items stay queued with their error
    recorded until they succeed, are reset, or the queue is cleared. When a
    tracker is attached, every mutation refreshes its pending and failed counts.
    """

    def __init__(self, store: LocalStore, tracker: SyncStatusTracker | None = None) -> None:
        self.store = store
        self.tracker = tracker

    async def enqueue(
        self,
        entity: str,
        operation: str,
        data: dict[str, Any] | None,
        item_id: str | None = None,
        record_id: str | None = None,
    ) -> PendingSyncItem:
        """Append a mutation and return the stored item."""
        if entity not in ENTITY_TYPES:
            raise ValueError(f"Unknown entity: {entity}")
        if operation not in OPERATION_TYPES:
            raise ValueError(f"Unknown operation: {operation}")
        if operation == "delete":
            target = record_id or (data or {}).get("id")
            if not target:
                raise ValueError("delete operations require a record id")
            data = {"id": str(target)}
        else:
            # Payloads are validated here so bad records never reach the remote service
            data = ENTITY_MODELS[entity].from_dict(data or {}).to_dict()

        item = PendingSyncItem(
            id=item_id or str(uuid.uuid4()),
            entity=entity,
            type=operation,
            data=data,
            timestamp=current_millis(),
        )
        await self.store.add_to_pending_sync(item)
        await self._changed()
        logger.debug("Queued %s %s %s", operation, entity, item.record_id)
        return item

    async def items(self) -> list[PendingSyncItem]:
        """Return all queued items oldest first."""
        items = await self.store.get_pending_sync()
        # sorted() is stable, so equal timestamps keep insertion order
        return sorted(items, key=lambda item: item.timestamp)

    async def count(self) -> int:
        return len(await self.store.get_pending_sync())

    async def failed_items(self) -> list[PendingSyncItem]:
        return [item for item in await self.items() if item.failed]

    async def failed_count(self) -> int:
        return len(await self.failed_items())

    async def contains(self, entity: str, operation: str, record_id: str) -> bool:
        """Return True if a matching operation for the record is already queued."""
        return any(
            item.entity == entity and item.type == operation and item.record_id == record_id
            for item in await self.store.get_pending_sync()
        )

    async def get(self, item_id: str) -> PendingSyncItem | None:
        for item in await self.store.get_pending_sync():
            if item.id == item_id:
                return item
        return None

    async def mark_succeeded(self, item_id: str) -> None:
        """Remove an item the remote service accepted."""
        await self.store.remove_from_pending_sync([item_id])
        await self._changed()

    async def mark_failed(self, item_id: str, error: str) -> PendingSyncItem | None:
        """Record a failed attempt without removing the item."""
        async with self.store.queue_lock:
            items = await self.store.get_pending_sync()
            updated: PendingSyncItem | None = None
            for index, item in enumerate(items):
                if item.id == item_id:
                    updated = replace(
                        item,
                        attempts=item.attempts + 1,
                        last_attempt=current_millis(),
                        error=error,
                    )
                    items[index] = updated
                    break
            if updated is not None:
                await self.store.replace_pending_sync(items)
        await self._changed()
        return updated

    async def reset_failed(self) -> int:
        """Clear failure flags so failed items are retried on the next pass."""
        async with self.store.queue_lock:
            items = await self.store.get_pending_sync()
            reset = 0
            for index, item in enumerate(items):
                if item.failed or item.attempts:
                    if item.failed:
                        reset += 1
                    items[index] = replace(item, attempts=0, last_attempt=None, error=None)
            await self.store.replace_pending_sync(items)
        await self._changed()
        return reset

    async def clear(self) -> None:
        await self.store.clear_pending_sync()
        await self._changed()

    async def _changed(self) -> None:
        if self.tracker is not None:
            await self.tracker.refresh_counts()
