"""Client orchestration layer for Buzo offline sync."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Callable
import logging
import os

from buzo.config import SyncConfig, load_config
from buzo.engine import SyncEngine
from buzo.exceptions import NotFoundError
from buzo.models import (
    ENTITY_MODELS,
    BaseEntity,
    PendingSyncItem,
    SyncResult,
    SyncStatus,
    now_iso,
)
from buzo.network import (
    ConnectivityProbe,
    HttpConnectivityProbe,
    NetworkMonitor,
    StaticConnectivityProbe,
)
from buzo.persistence import KeyValueBackend
from buzo.queue import PendingOperationQueue
from buzo.remote import RemoteDataService, RestRemoteService
from buzo.repository import SQLiteKeyValueStore
from buzo.status import StatusListener, SyncStatusTracker
from buzo.storage import LocalStore

# Configure logging
logger = logging.getLogger("buzo")
log_level = os.environ.get('LOGGING_LEVEL', 'INFO').upper()
logger.setLevel(getattr(logging, log_level, logging.INFO))
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter('%(levelname)s - %(name)s - %(message)s'))
    logger.addHandler(handler)


class BuzoClient:
    """Coordinate the local cache, the pending queue and sync passes."""

    def __init__(
        self,
        db_path: str | Path | None = None,
        config: SyncConfig | None = None,
        backend: KeyValueBackend | None = None,
        remote: RemoteDataService | None = None,
        probe: ConnectivityProbe | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            db_path: Path to the local SQLite store; overrides the config value
            config: Loaded configuration; read from the default location when omitted
            backend: Optional custom key-value backend
            remote: Optional remote data service; built from config when omitted
            probe: Optional connectivity probe; built from config when omitted
        """
        self.config = config or load_config()
        self.db_path = Path(db_path) if db_path is not None else self.config.db_path
        self.backend = backend or SQLiteKeyValueStore(self.db_path)
        self.store = LocalStore(self.backend)
        self.tracker = SyncStatusTracker(self.store)
        self.queue = PendingOperationQueue(self.store, self.tracker)
        self.remote = remote or self._build_remote()
        self.probe = probe or self._build_probe()
        self.network = NetworkMonitor(self.probe, self.store, on_reconnect=self.sync)
        self._engine: SyncEngine | None = None
        self._loaded = False

    def __enter__(self) -> "BuzoClient":
        """Open the backend connection."""
        self.backend.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        """Close the backend connection."""
        self.close()

    async def __aenter__(self) -> "BuzoClient":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def open(self) -> None:
        """Connect the backend and restore the persisted sync status."""
        self.backend.connect()
        await self._ensure_loaded()

    def close(self) -> None:
        """Close the backend connection."""
        self.backend.close()

    def _build_remote(self) -> RemoteDataService | None:
        remote = self.config.remote
        if not remote.base_url:
            return None
        return RestRemoteService(
            remote.base_url,
            api_key=remote.api_key,
            timeout_seconds=remote.timeout_seconds,
        )

    def _build_probe(self) -> ConnectivityProbe:
        url = self.config.probe_url or self.config.remote.base_url
        if not url:
            return StaticConnectivityProbe(online=True)
        return HttpConnectivityProbe(url, timeout_seconds=self.config.probe_timeout_seconds)

    async def _ensure_loaded(self) -> None:
        if not self._loaded:
            await self.tracker.load()
            self._loaded = True

    @property
    def engine(self) -> SyncEngine:
        """Sync engine bound to this client's store, queue and tracker."""
        if self.remote is None:
            raise ValueError("remote.base_url is required to sync")
        if self._engine is None:
            self._engine = SyncEngine(
                self.store,
                self.queue,
                self.tracker,
                self.remote,
                self.probe,
                max_attempts=self.config.max_attempts,
                stale_sync_minutes=self.config.stale_sync_minutes,
                detect_local_changes=self.config.detect_local_changes,
            )
        return self._engine

    @staticmethod
    def _model_for(entity: str) -> type[BaseEntity]:
        try:
            return ENTITY_MODELS[entity]
        except KeyError as exc:
            raise ValueError(f"Unknown entity: {entity}") from exc

    async def _write_cache(
        self, entity: str, change: Callable[[list[BaseEntity]], list[BaseEntity]]
    ) -> None:
        async with self.store.queue_lock:
            records = await self.store.load_collection(entity)
            await self.store.save_collection(entity, change(records))

    async def _find(self, entity: str, record_id: str) -> BaseEntity:
        for record in await self.store.load_collection(entity):
            if record.id == record_id:
                return record
        raise NotFoundError(f"{entity} not found: {record_id}", entity, record_id)

    async def list_records(self, entity: str) -> list[BaseEntity]:
        """Return the cached records for an entity."""
        self._model_for(entity)
        return await self.store.load_collection(entity)

    async def add(self, entity: str, record: BaseEntity) -> PendingSyncItem:
        """Queue a create operation for a new record, then cache it locally."""
        model = self._model_for(entity)
        if not isinstance(record, model):
            raise ValueError(f"Expected {model.__name__}, got {type(record).__name__}")
        await self._ensure_loaded()
        if any(existing.id == record.id for existing in await self.store.load_collection(entity)):
            raise ValueError(f"{entity} already exists: {record.id}")
        item = await self.queue.enqueue(entity, "create", record.to_dict())
        await self._write_cache(entity, lambda records: [*records, record])
        logger.debug("Added %s %s", entity, record.id)
        return item

    async def update(self, entity: str, record: BaseEntity) -> PendingSyncItem:
        """Queue an update operation, then replace the cached record."""
        self._model_for(entity)
        await self._ensure_loaded()
        await self._find(entity, record.id)
        if hasattr(record, "updated_at"):
            record = replace(record, updated_at=now_iso())
        item = await self.queue.enqueue(entity, "update", record.to_dict())
        await self._write_cache(
            entity,
            lambda records: [record if existing.id == record.id else existing for existing in records],
        )
        return item

    async def delete(self, entity: str, record_id: str) -> PendingSyncItem:
        """Queue a delete operation, then drop the cached record."""
        self._model_for(entity)
        await self._ensure_loaded()
        await self._find(entity, record_id)
        item = await self.queue.enqueue(entity, "delete", None, record_id=record_id)
        await self._write_cache(
            entity, lambda records: [existing for existing in records if existing.id != record_id]
        )
        return item

    async def sync(self, force: bool = False) -> SyncResult:
        """Run a full sync pass.

        Args:
            force: Run even if another session left the in-progress flag set
        """
        await self._ensure_loaded()
        return await self.engine.perform_full_sync(force=force)

    async def status(self) -> SyncStatus:
        await self._ensure_loaded()
        return self.tracker.snapshot()

    async def pending(self) -> list[PendingSyncItem]:
        return await self.queue.items()

    async def last_sync(self) -> int | None:
        return await self.store.get_last_sync()

    async def reset_failed(self) -> int:
        """Clear failure flags so failed items are retried."""
        await self._ensure_loaded()
        reset = await self.queue.reset_failed()
        await self.tracker.update(error=None)
        return reset

    async def check_network(self) -> bool:
        return await self.network.check()

    async def clear_all_offline_data(self) -> None:
        """Remove every cached collection, the queue and the last sync timestamp."""
        await self._ensure_loaded()
        await self.store.clear_all()
        await self.tracker.refresh_counts(sync_progress=0.0, error=None)
        logger.info("Cleared all offline data")

    def add_status_listener(self, listener: StatusListener) -> Callable[[], None]:
        """Subscribe to sync status changes."""
        return self.tracker.add_listener(listener)
