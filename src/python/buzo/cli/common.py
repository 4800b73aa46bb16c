"""Shared CLI helpers."""

from __future__ import annotations

import asyncio
import datetime as dt
from decimal import Decimal
from typing import Awaitable, Callable, TypeVar

import click

from buzo.client import BuzoClient
from buzo.config import load_config
from buzo.exceptions import StorageError
from buzo.network import StaticConnectivityProbe

T = TypeVar("T")


def parse_decimal(value: str | None, field_name: str) -> Decimal | None:
    """Parse a decimal string into a Decimal."""
    if value is None:
        return None
    try:
        return Decimal(value)
    except Exception as exc:
        raise click.BadParameter("Use a valid decimal value.", param_hint=field_name) from exc


def format_timestamp(value: int | None) -> str:
    """Render a milliseconds timestamp for display."""
    if value is None:
        return "never"
    moment = dt.datetime.fromtimestamp(value / 1000, tz=dt.timezone.utc)
    return moment.replace(microsecond=0).isoformat()


def get_client(ctx: click.Context) -> BuzoClient:
    """Build a Buzo client from Click context.

    The --offline flag swaps in a probe that always reports no connectivity,
    which is how failure paths are exercised by hand.
    """
    payload = ctx.obj or {}
    try:
        config = load_config(payload.get("config_path"))
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    probe = StaticConnectivityProbe(online=False) if payload.get("offline") else None
    return BuzoClient(db_path=payload.get("db_path"), config=config, probe=probe)


def run_with_client(ctx: click.Context, action: Callable[[BuzoClient], Awaitable[T]]) -> T:
    """Open a client, run an async action against it, and close it."""
    client = get_client(ctx)

    async def runner() -> T:
        async with client:
            return await action(client)

    try:
        return asyncio.run(runner())
    except StorageError as exc:
        raise click.ClickException(f"Local storage failed: {exc}") from exc
