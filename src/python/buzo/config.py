"""Configuration loading for the Buzo sync client."""

from __future__ import annotations

from dataclasses import dataclass
import json
import os
from pathlib import Path
from typing import Any

from buzo.engine import DEFAULT_MAX_ATTEMPTS, DEFAULT_STALE_SYNC_MINUTES
from buzo.network import DEFAULT_PROBE_TIMEOUT_SECONDS
from buzo.remote import DEFAULT_TIMEOUT_SECONDS

CONFIG_ENV_VAR = "BUZO_CONFIG"
DEFAULT_DATA_DIR = Path.home() / ".buzo"
DEFAULT_CONFIG_NAME = "buzo-config.json"
DEFAULT_DB_NAME = "buzo-offline.db"


@dataclass(frozen=True)
class RemoteConfig:
    """Connection settings for the remote data service."""

    base_url: str | None = None
    api_key: str | None = None
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS


@dataclass(frozen=True)
class SyncConfig:
    """Settings for local storage, connectivity and sync passes."""

    db_path: Path = DEFAULT_DATA_DIR / DEFAULT_DB_NAME
    remote: RemoteConfig = RemoteConfig()
    probe_url: str | None = None
    probe_timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    stale_sync_minutes: float = DEFAULT_STALE_SYNC_MINUTES
    detect_local_changes: bool = True

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.stale_sync_minutes <= 0:
            raise ValueError("stale_sync_minutes must be positive")


def resolve_config_path(path: str | Path | None = None) -> Path:
    """Resolve the config file from an explicit path, the environment, or the default."""
    if path is not None:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_DATA_DIR / DEFAULT_CONFIG_NAME


def load_config(path: str | Path | None = None) -> SyncConfig:
    """Load config file if present, else return defaults."""
    config_path = resolve_config_path(path)
    if not config_path.exists():
        return SyncConfig()
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid config file {config_path}: {exc}") from exc
    if not isinstance(payload, dict):
        return SyncConfig()
    return config_from_dict(payload, base_dir=config_path.parent)


def config_from_dict(payload: dict[str, Any], base_dir: Path | None = None) -> SyncConfig:
    """Build a SyncConfig from a decoded JSON object."""
    kwargs: dict[str, Any] = {}
    db_path = payload.get("db_path")
    if db_path:
        resolved = Path(db_path).expanduser()
        if not resolved.is_absolute() and base_dir is not None:
            resolved = base_dir / resolved
        kwargs["db_path"] = resolved

    remote = payload.get("remote") or {}
    if not isinstance(remote, dict):
        raise ValueError("remote must be an object")
    kwargs["remote"] = RemoteConfig(
        base_url=remote.get("base_url"),
        api_key=remote.get("api_key"),
        timeout_seconds=float(remote.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)),
    )

    if payload.get("probe_url"):
        kwargs["probe_url"] = str(payload["probe_url"])
    for key, cast in (
        ("probe_timeout_seconds", float),
        ("max_attempts", int),
        ("stale_sync_minutes", float),
    ):
        if key in payload:
            kwargs[key] = cast(payload[key])
    if "detect_local_changes" in payload:
        if not isinstance(payload["detect_local_changes"], bool):
            raise ValueError("detect_local_changes must be true or false")
        kwargs["detect_local_changes"] = payload["detect_local_changes"]
    return SyncConfig(**kwargs)
