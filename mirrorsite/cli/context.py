"""
CLI helpers shared by the command modules.
"""

from __future__ import annotations

import click

from ..config.loader import load_settings
from ..errors import ConfigError
from ..logging_config import setup_logging
from ..models.config import Settings


def get_settings(ctx: click.Context) -> Settings:
    """Load settings once per invocation; config errors become usage errors."""
    obj = ctx.ensure_object(dict)
    if "settings" not in obj:
        try:
            obj["settings"] = load_settings(path=obj.get("config_path"), root=obj.get("root"))
        except ConfigError as e:
            raise click.ClickException(str(e)) from e
    return obj["settings"]


def init_logging(settings: Settings) -> None:
    if settings.logs.console:
        setup_logging(settings.logs.level, settings.logs.format)
