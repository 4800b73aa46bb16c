"""Pytest configuration and fixtures for system integration tests.

These fixtures provide throwaway local stores and an in-memory remote
service, so no test touches the user's offline database or the network.
"""
from __future__ import annotations

from pathlib import Path
import sys

import pytest

SRC_DIR = Path(__file__).resolve().parents[1] / "src" / "python"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from buzo.client import BuzoClient  # noqa: E402
from buzo.config import SyncConfig  # noqa: E402
from buzo.network import StaticConnectivityProbe  # noqa: E402
from buzo.repository import SQLiteKeyValueStore  # noqa: E402
from buzo.storage import LocalStore  # noqa: E402
from tests.utils.fakes import InMemoryRemoteService  # noqa: E402


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    """Location of a fresh local store for SIT tests."""
    return tmp_path / "buzo-offline.db"


@pytest.fixture()
def backend(db_path: Path) -> SQLiteKeyValueStore:
    repo = SQLiteKeyValueStore(db_path)
    repo.connect()
    yield repo
    repo.close()


@pytest.fixture()
def store(backend: SQLiteKeyValueStore) -> LocalStore:
    return LocalStore(backend)


@pytest.fixture()
def remote() -> InMemoryRemoteService:
    return InMemoryRemoteService()


@pytest.fixture()
def probe() -> StaticConnectivityProbe:
    return StaticConnectivityProbe(online=True)


@pytest.fixture()
def client(
    db_path: Path,
    remote: InMemoryRemoteService,
    probe: StaticConnectivityProbe,
) -> BuzoClient:
    """Unopened client wired to the in-memory remote service."""
    return BuzoClient(db_path=db_path, config=SyncConfig(), remote=remote, probe=probe)


@pytest.fixture()
def sample_budget_payload() -> dict:
    return {
        "id": "budget-1",
        "name": "Groceries",
        "amount": 400.0,
        "category": "Food",
        "spent": 120.5,
        "period": "monthly",
        "createdAt": "2026-02-01T09:00:00+00:00",
        "updatedAt": "2026-02-01T09:00:00+00:00",
    }
