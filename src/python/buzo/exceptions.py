"""Custom exception types for Buzo offline sync."""

from __future__ import annotations

from typing import Any


class StorageError(Exception):
    """Raised when local storage is unavailable or a write fails."""

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class ConnectivityError(Exception):
    """Raised when a sync pass is requested while offline."""


class RemoteOperationError(Exception):
    """Raised when the remote service rejects or fails an operation."""

    def __init__(
        self,
        message: str,
        entity: str | None = None,
        record_id: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.entity = entity
        self.record_id = record_id
        self.status_code = status_code


class DuplicateError(RemoteOperationError):
    """Raised when the remote service already holds the record."""

    def __init__(self, message: str, details: dict[str, Any]) -> None:
        super().__init__(
            message,
            entity=details.get("entity"),
            record_id=details.get("id"),
            status_code=409,
        )
        self.details = details


class NotFoundError(RemoteOperationError):
    """Raised when a requested record does not exist remotely."""
