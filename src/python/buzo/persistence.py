"""Persistence interfaces for Buzo key-value storage backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path


class KeyValueBackend(ABC):
    """Abstract interface for durable string key-value storage."""

    @abstractmethod
    def __init__(self, db_path: str | Path) -> None:
        """Initialize the backend with a storage path."""

    @abstractmethod
    def connect(self) -> None:
        """Establish a backend connection."""

    @abstractmethod
    def close(self) -> None:
        """Close the backend connection."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the raw serialized value for key, or None if absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Atomically overwrite the serialized value for key."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key. Missing keys are ignored."""

    @abstractmethod
    def keys(self) -> list[str]:
        """Return stored keys ordered by name."""
