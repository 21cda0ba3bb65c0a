"""
mirrorsite - CLI Entry Point

Usage:
    mirrorsite serve [--no-sync-on-start]
    mirrorsite cycle [--json]
    mirrorsite sync
    mirrorsite build [--minimal]
    mirrorsite status [--json]
    mirrorsite health [--json]
    mirrorsite clear-logs [NAME] [--all]
"""

from __future__ import annotations

# Load .env file FIRST, before any other imports that might read env vars
from pathlib import Path
from dotenv import load_dotenv

_project_root = Path(__file__).parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

from typing import Optional

import click

from . import __version__
from .cli.logs import clear_logs
from .cli.ops import health, status
from .cli.service import build, cycle, serve, sync
from .config.loader import get_project_root


@click.group()
@click.version_option(__version__, prog_name="mirrorsite")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="YAML config file (default: MIRRORSITE_CONFIG or mirrorsite.yaml)",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path]) -> None:
    """Mirror an upstream repository and serve its built site."""
    ctx.ensure_object(dict)
    ctx.obj["root"] = get_project_root()
    ctx.obj["config_path"] = config_path


cli.add_command(serve)
cli.add_command(cycle)
cli.add_command(sync)
cli.add_command(build)
cli.add_command(status)
cli.add_command(health)
cli.add_command(clear_logs)


if __name__ == "__main__":
    cli()
