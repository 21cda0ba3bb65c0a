"""
CLI log commands - truncate component log files.

Usage:
    mirrorsite clear-logs sync
    mirrorsite clear-logs --all
"""

from __future__ import annotations

from typing import Optional

import click

from .context import get_settings


@click.command("clear-logs")
@click.argument("name", required=False)
@click.option("--all", "-a", "clear_all", is_flag=True, help="Clear every *.log file")
@click.pass_context
def clear_logs(ctx: click.Context, name: Optional[str], clear_all: bool) -> None:
    """Clear one log (NAME, e.g. sync or build) or all of them."""
    from ..logging_config import clear_all_logs, clear_log

    if not name and not clear_all:
        raise click.UsageError("Give a log NAME or --all")

    log_dir = get_settings(ctx).logs.dir

    if clear_all:
        result = clear_all_logs(log_dir)
        for file_name in result.cleared:
            click.secho(f"✓ Cleared {file_name}", fg="green")
        for failure in result.failed:
            click.secho(f"✗ {failure['file']}: {failure['error']}", fg="red")
        if not result.cleared and not result.failed:
            click.echo(f"No log files in {log_dir}")
        if result.failed:
            ctx.exit(1)
        return

    name = name[:-4] if name.endswith(".log") else name
    if clear_log(name, log_dir):
        click.secho(f"✓ Cleared {name}.log", fg="green")
    else:
        click.secho(f"✗ {name}.log not found in {log_dir}", fg="red")
        ctx.exit(1)
