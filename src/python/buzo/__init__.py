"""Public Buzo package exports."""

from __future__ import annotations

from buzo.__version__ import __version__
from buzo.client import BuzoClient
from buzo.engine import SyncEngine
from buzo.exceptions import (
    ConnectivityError,
    DuplicateError,
    NotFoundError,
    RemoteOperationError,
    StorageError,
)
from buzo.models import (
    Budget,
    Expense,
    PendingSyncItem,
    SavingsGoal,
    SyncResult,
    SyncStatus,
    Transaction,
)
from buzo.persistence import KeyValueBackend
from buzo.repository import SQLiteKeyValueStore
from buzo.storage import LocalStore

__all__ = [
    "__version__",
    "BuzoClient",
    "SyncEngine",
    "ConnectivityError",
    "DuplicateError",
    "NotFoundError",
    "RemoteOperationError",
    "StorageError",
    "Budget",
    "Expense",
    "PendingSyncItem",
    "SavingsGoal",
    "SyncResult",
    "SyncStatus",
    "Transaction",
    "KeyValueBackend",
    "SQLiteKeyValueStore",
    "LocalStore",
]
