"""Package version identifier."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

DISTRIBUTION_NAME = "buzo-sync"

try:
    __version__ = version(DISTRIBUTION_NAME)
except PackageNotFoundError:
    # Source checkouts keep the version in the repository root
    __version__ = (Path(__file__).resolve().parents[3] / "VERSION").read_text().strip()
