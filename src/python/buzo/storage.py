"""Async local store for cached collections, the pending queue and sync metadata."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Iterable, TypeVar

from buzo.exceptions import StorageError
from buzo.models import (
    ENTITY_MODELS,
    BaseEntity,
    Budget,
    Expense,
    PendingSyncItem,
    SavingsGoal,
    SyncStatus,
    Transaction,
    ensure_unique_ids,
)
from buzo.persistence import KeyValueBackend
from buzo.schema import ENTITY_COLLECTIONS, STORAGE_KEYS

T = TypeVar("T")

logger = logging.getLogger(__name__)


class LocalStore:
    """Typed load/save operations over a key-value backend.

    Every call suspends on a worker thread. Missing keys and malformed JSON
    load as empty values; backend failures surface as StorageError.
    """

    def __init__(self, backend: KeyValueBackend) -> None:
        self.backend = backend
        self.queue_lock = asyncio.Lock()

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(func, *args)
        except StorageError:
            raise
        except OSError as exc:
            raise StorageError(f"Storage unavailable: {exc}") from exc

    async def load_data(self, key: str) -> Any:
        """Load and decode the value stored under key, or None."""
        raw = await self._run(self.backend.get, key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed JSON stored under %s", key)
            return None

    async def save_data(self, key: str, data: Any) -> None:
        """Serialize data and overwrite the value stored under key."""
        await self._run(self.backend.set, key, json.dumps(data, separators=(",", ":")))

    async def remove_data(self, key: str) -> None:
        await self._run(self.backend.delete, key)

    async def load_collection(self, entity: str) -> list[BaseEntity]:
        """Load a cached entity collection, skipping records that fail validation."""
        model = ENTITY_MODELS[entity]
        payload = await self.load_data(ENTITY_COLLECTIONS[entity])
        if not isinstance(payload, list):
            return []
        records: list[BaseEntity] = []
        for raw in payload:
            try:
                records.append(model.from_dict(raw))
            except ValueError as exc:
                logger.warning("Skipping invalid cached %s record: %s", entity, exc)
        return records

    async def save_collection(self, entity: str, items: Iterable[BaseEntity]) -> None:
        """Validate and persist a whole entity collection."""
        model = ENTITY_MODELS[entity]
        records = list(items)
        for record in records:
            if not isinstance(record, model):
                raise ValueError(f"Expected {model.__name__}, got {type(record).__name__}")
        ensure_unique_ids(records, entity)
        await self.save_data(ENTITY_COLLECTIONS[entity], [record.to_dict() for record in records])

    async def load_budgets(self) -> list[Budget]:
        return await self.load_collection("budget")

    async def save_budgets(self, budgets: Iterable[Budget]) -> None:
        await self.save_collection("budget", budgets)

    async def load_expenses(self) -> list[Expense]:
        return await self.load_collection("expense")

    async def save_expenses(self, expenses: Iterable[Expense]) -> None:
        await self.save_collection("expense", expenses)

    async def load_savings_goals(self) -> list[SavingsGoal]:
        return await self.load_collection("savings")

    async def save_savings_goals(self, goals: Iterable[SavingsGoal]) -> None:
        await self.save_collection("savings", goals)

    async def load_transactions(self) -> list[Transaction]:
        return await self.load_collection("transaction")

    async def save_transactions(self, transactions: Iterable[Transaction]) -> None:
        await self.save_collection("transaction", transactions)

    async def get_pending_sync(self) -> list[PendingSyncItem]:
        """Return queued items in stored order."""
        payload = await self.load_data(STORAGE_KEYS["pending_sync"])
        if not isinstance(payload, list):
            return []
        items: list[PendingSyncItem] = []
        for raw in payload:
            try:
                items.append(PendingSyncItem.from_dict(raw))
            except ValueError as exc:
                logger.warning("Dropping unreadable pending sync item: %s", exc)
        return items

    async def replace_pending_sync(self, items: Iterable[PendingSyncItem]) -> None:
        await self.save_data(STORAGE_KEYS["pending_sync"], [item.to_dict() for item in items])

    async def add_to_pending_sync(self, item: PendingSyncItem) -> None:
        """Append an item to the persisted queue."""
        async with self.queue_lock:
            items = await self.get_pending_sync()
            items.append(item)
            await self.replace_pending_sync(items)

    async def remove_from_pending_sync(self, ids: Iterable[str]) -> None:
        targets = set(ids)
        async with self.queue_lock:
            items = await self.get_pending_sync()
            await self.replace_pending_sync([item for item in items if item.id not in targets])

    async def clear_pending_sync(self) -> None:
        await self.remove_data(STORAGE_KEYS["pending_sync"])

    async def is_online(self) -> bool:
        """Return the last persisted connectivity flag, assuming online if never probed."""
        flag = await self.load_data(STORAGE_KEYS["network_online"])
        if isinstance(flag, bool):
            return flag
        return True

    async def set_online(self, online: bool) -> None:
        await self.save_data(STORAGE_KEYS["network_online"], bool(online))

    async def get_last_sync(self) -> int | None:
        value = await self.load_data(STORAGE_KEYS["last_sync"])
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return int(value)

    async def set_last_sync(self, timestamp: int) -> int:
        """Store timestamp unless an older value would replace a newer one."""
        current = await self.get_last_sync()
        if current is not None and current >= timestamp:
            return current
        await self.save_data(STORAGE_KEYS["last_sync"], int(timestamp))
        return int(timestamp)

    async def load_status(self) -> SyncStatus | None:
        payload = await self.load_data(STORAGE_KEYS["sync_status"])
        if not isinstance(payload, dict):
            return None
        try:
            return SyncStatus.from_dict(payload)
        except (TypeError, ValueError) as exc:
            logger.warning("Ignoring invalid persisted sync status: %s", exc)
            return None

    async def save_status(self, status: SyncStatus) -> None:
        await self.save_data(STORAGE_KEYS["sync_status"], status.to_dict())

    async def clear_all(self) -> None:
        """Remove cached collections, the pending queue and the last sync timestamp."""
        for name in ("budgets", "expenses", "savings", "transactions", "pending_sync", "last_sync"):
            await self.remove_data(STORAGE_KEYS[name])
