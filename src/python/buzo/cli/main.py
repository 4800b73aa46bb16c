"""Buzo CLI entry point."""

from __future__ import annotations

from pathlib import Path

import click

from buzo.__version__ import __version__
from buzo.cli.budget import budget
from buzo.cli.sync import sync
from buzo.cli.testdata import testdata


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="buzo")
@click.option(
    "--db",
    "db_path",
    type=click.Path(path_type=Path),
    help="Path to the local offline store.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    help="Path to the JSON config file.",
)
@click.option("--offline", is_flag=True, help="Simulate no network connectivity.")
@click.pass_context
def main(ctx: click.Context, db_path: Path | None, config_path: Path | None, offline: bool) -> None:
    """Buzo offline sync CLI entry point."""
    ctx.obj = {
        "db_path": db_path,
        "config_path": config_path,
        "offline": offline,
    }


main.add_command(budget)
main.add_command(sync)
main.add_command(testdata)


if __name__ == "__main__":
    main()
