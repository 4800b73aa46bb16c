"""Sync CLI commands."""

from __future__ import annotations

from pathlib import Path

import click

from buzo.cli.common import format_timestamp, run_with_client
from buzo.client import BuzoClient
from buzo.exceptions import ConnectivityError
from buzo.models import SyncResult


@click.group()
def sync() -> None:
    """Sync commands."""


@sync.command("run")
@click.option(
    "--error-report",
    type=click.Path(path_type=Path),
    help="Write failed item details to this file.",
)
@click.option(
    "--force",
    is_flag=True,
    help="Run even if another session left a sync marked in progress.",
)
@click.pass_context
def run_sync(ctx: click.Context, error_report: Path | None, force: bool) -> None:
    """Push pending changes and refresh the local cache."""

    async def action(client: BuzoClient) -> SyncResult:
        return await client.sync(force=force)

    try:
        result = run_with_client(ctx, action)
    except ConnectivityError as exc:
        raise click.ClickException(f"Sync failed: {exc}") from exc
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc

    if result.skipped:
        click.echo("Sync already in progress, skipped")
        return

    click.echo("\nSync completed" if result.ok else "\nSync completed with errors")
    click.echo(f"  Successful: {len(result.successful)}")
    click.echo(f"  Failed: {len(result.failed)}")
    if result.failed:
        click.echo("\nFailed items:")
        for item, error in result.failed:
            click.echo(f"  {item.entity} {item.type} {item.record_id}: {error}")
    for error in result.errors:
        click.echo(f"  Error: {error}")

    if error_report and (result.failed or result.errors):
        lines = [
            f"Failed item: {item.entity} {item.type} {item.record_id} - {error}"
            for item, error in result.failed
        ]
        lines.extend(result.errors)
        error_report.write_text("\n".join(lines), encoding="utf-8")
        click.echo(f"\nError details written to {error_report}")


@sync.command("status")
@click.pass_context
def show_status(ctx: click.Context) -> None:
    """Show the current sync status."""

    async def action(client: BuzoClient):
        return await client.status(), await client.last_sync()

    status, last_sync = run_with_client(ctx, action)
    click.echo(f"Syncing: {'yes' if status.is_syncing else 'no'}")
    click.echo(f"Pending: {status.pending_count}")
    click.echo(f"Failed: {status.failed_count}")
    click.echo(f"Progress: {status.sync_progress:.0%}")
    click.echo(f"Last attempt: {format_timestamp(status.last_sync_attempt)}")
    click.echo(f"Last successful sync: {format_timestamp(status.last_successful_sync)}")
    click.echo(f"Last sync: {format_timestamp(last_sync)}")
    if status.error:
        click.echo(f"Error: {status.error}")


@sync.command("pending")
@click.option("--failed", "failed_only", is_flag=True, help="Only show failed items.")
@click.pass_context
def list_pending(ctx: click.Context, failed_only: bool) -> None:
    """List queued operations oldest first."""

    async def action(client: BuzoClient):
        return await client.pending()

    items = run_with_client(ctx, action)
    if failed_only:
        items = [item for item in items if item.failed]
    if not items:
        click.echo("No pending items")
        return
    for item in items:
        error = item.error or ""
        click.echo(
            f"{item.id}\t{format_timestamp(item.timestamp)}\t{item.entity}\t{item.type}"
            f"\t{item.record_id}\t{item.attempts}\t{error}"
        )


@sync.command("reset-failed")
@click.pass_context
def reset_failed(ctx: click.Context) -> None:
    """Clear failure flags so failed items are retried on the next sync."""

    async def action(client: BuzoClient) -> int:
        return await client.reset_failed()

    count = run_with_client(ctx, action)
    click.echo(f"Reset {count} failed items")


@sync.command("reset")
@click.confirmation_option(prompt="Remove all cached data and pending changes?")
@click.pass_context
def reset_all(ctx: click.Context) -> None:
    """Remove all offline data, including unsynced changes."""

    async def action(client: BuzoClient) -> None:
        await client.clear_all_offline_data()

    run_with_client(ctx, action)
    click.echo("Cleared all offline data")
