"""SQLite key-value repository implementation for Buzo."""

from __future__ import annotations

from pathlib import Path
import datetime as dt
import sqlite3
import threading

from buzo.exceptions import StorageError
from buzo.persistence import KeyValueBackend
from buzo.schema import KV_TABLE


class SQLiteKeyValueStore(KeyValueBackend):
    """SQLite-backed key-value persistence.

    Each value lives in one row, so a write is a single statement committed on
    its own and readers never observe a partially written value.
    """

    def __init__(self, db_path: str | Path) -> None:
        """Create a repository for the given database path."""
        self.db_path = db_path if str(db_path) == ":memory:" else Path(db_path)
        self.connection: sqlite3.Connection | None = None
        # Calls arrive from asyncio worker threads
        self._lock = threading.Lock()

    def connect(self) -> None:
        """Open the database connection and create the table if needed."""
        if self.connection is not None:
            return
        try:
            if isinstance(self.db_path, Path):
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.connection = sqlite3.connect(
                str(self.db_path), check_same_thread=False, isolation_level=None
            )
            self.connection.row_factory = sqlite3.Row
            self.connection.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {KV_TABLE} (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
        except (sqlite3.Error, OSError) as exc:
            self.connection = None
            raise StorageError(f"Storage unavailable: {exc}") from exc

    def close(self) -> None:
        """Close the database connection."""
        if self.connection is not None:
            self.connection.close()
            self.connection = None

    def get(self, key: str) -> str | None:
        """Return the stored value for key."""
        self._ensure_connection()
        try:
            with self._lock:
                row = self.connection.execute(
                    f"SELECT value FROM {KV_TABLE} WHERE key = ?",
                    (key,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Error loading data from {key}: {exc}", key) from exc
        return None if row is None else row["value"]

    def set(self, key: str, value: str) -> None:
        """Insert or replace the value for key."""
        self._ensure_connection()
        timestamp = dt.datetime.now().replace(microsecond=0)
        try:
            with self._lock:
                self.connection.execute(
                    f"""
                    INSERT INTO {KV_TABLE} (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, value, timestamp.strftime("%Y-%m-%d %H:%M:%S")),
                )
        except sqlite3.Error as exc:
            raise StorageError(f"Error saving data to {key}: {exc}", key) from exc

    def delete(self, key: str) -> None:
        """Delete the row for key if present."""
        self._ensure_connection()
        try:
            with self._lock:
                self.connection.execute(f"DELETE FROM {KV_TABLE} WHERE key = ?", (key,))
        except sqlite3.Error as exc:
            raise StorageError(f"Error removing data from {key}: {exc}", key) from exc

    def keys(self) -> list[str]:
        """Return all stored keys ordered by name."""
        self._ensure_connection()
        try:
            with self._lock:
                rows = self.connection.execute(
                    f"SELECT key FROM {KV_TABLE} ORDER BY key"
                ).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"Error listing keys: {exc}") from exc
        return [row["key"] for row in rows]

    def _ensure_connection(self) -> None:
        """Ensure the connection is initialized before use."""
        if self.connection is None:
            raise StorageError("Storage unavailable: connection is not initialized")
