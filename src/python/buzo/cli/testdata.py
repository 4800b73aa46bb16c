"""Test data CLI commands."""

from __future__ import annotations

import click

from buzo import testdata as mock
from buzo.cli.common import run_with_client
from buzo.client import BuzoClient


@click.group()
def testdata() -> None:
    """Offline test data commands."""


@testdata.command("generate")
@click.option("--count", type=int, default=3, show_default=True, help="Items per entity.")
@click.pass_context
def generate(ctx: click.Context, count: int) -> None:
    """Add mock budgets, expenses and savings goals queued for sync."""
    if count < 0:
        raise click.BadParameter("Must not be negative.", param_hint="--count")

    async def action(client: BuzoClient) -> dict[str, list]:
        return await mock.add_multiple_mock_items(client, count)

    created = run_with_client(ctx, action)
    for name, records in created.items():
        click.echo(f"Added {len(records)} {name.replace('_', ' ')}")


@testdata.command("clear")
@click.confirmation_option(prompt="Remove all cached data and pending changes?")
@click.pass_context
def clear(ctx: click.Context) -> None:
    """Clear all offline data."""

    async def action(client: BuzoClient) -> None:
        await mock.clear_all_offline_data(client)

    run_with_client(ctx, action)
    click.echo("Cleared all offline data")
