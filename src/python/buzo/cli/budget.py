"""Budget CLI commands."""

from __future__ import annotations

import uuid

import click

from buzo.cli.common import parse_decimal, run_with_client
from buzo.client import BuzoClient
from buzo.exceptions import NotFoundError
from buzo.models import Budget
from buzo.schema import BUDGET_PERIODS


@click.group()
def budget() -> None:
    """Budget commands."""


@budget.command("add")
@click.option("--name", required=True, help="Budget name.")
@click.option("--amount", "amount_value", required=True, help="Budget amount.")
@click.option("--category", required=True, help="Budget category.")
@click.option(
    "--period",
    type=click.Choice(BUDGET_PERIODS),
    default="monthly",
    show_default=True,
    help="Budget period.",
)
@click.pass_context
def add_budget(
    ctx: click.Context,
    name: str,
    amount_value: str,
    category: str,
    period: str,
) -> None:
    """Add a budget locally and queue it for sync."""
    amount = parse_decimal(amount_value, "--amount")
    try:
        record = Budget(
            id=str(uuid.uuid4()),
            name=name,
            amount=amount,
            category=category,
            period=period,
        )
    except ValueError as exc:
        raise click.ClickException(f"Budget add failed: {exc}") from exc

    async def action(client: BuzoClient) -> None:
        await client.add("budget", record)

    run_with_client(ctx, action)
    click.echo(f"Added budget {record.id}")


@budget.command("list")
@click.pass_context
def list_budgets(ctx: click.Context) -> None:
    """List cached budgets."""

    async def action(client: BuzoClient):
        return await client.list_records("budget")

    for record in run_with_client(ctx, action):
        click.echo(
            f"{record.id}\t{record.name}\t{record.amount}\t{record.spent}"
            f"\t{record.category}\t{record.period}"
        )


@budget.command("delete")
@click.argument("budget_id")
@click.pass_context
def delete_budget(ctx: click.Context, budget_id: str) -> None:
    """Delete a cached budget and queue the remote delete."""

    async def action(client: BuzoClient) -> None:
        await client.delete("budget", budget_id)

    try:
        run_with_client(ctx, action)
    except NotFoundError as exc:
        raise click.ClickException(f"Budget delete failed: {exc}") from exc
    click.echo(f"Deleted budget {budget_id}")
