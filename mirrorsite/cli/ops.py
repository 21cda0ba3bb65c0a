"""
CLI ops commands - service status and health.

Usage:
    mirrorsite status [--json]
    mirrorsite health [--json]
"""

from __future__ import annotations

import json

import click

from .context import get_settings


@click.command("status")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show the last successful sync and recent cycles."""
    from ..persistence.status_file import load_status, status_path

    settings = get_settings(ctx)
    path = status_path(settings.paths.state)
    try:
        service_status = load_status(path)
    except (ValueError, OSError) as e:
        raise click.ClickException(f"Could not read {path}: {e}") from e

    if as_json:
        click.echo(json.dumps(service_status.model_dump(), indent=2))
        return

    click.echo(f"Checkout:      {settings.paths.repo}")
    click.echo(f"Website:       {settings.paths.website}")
    click.echo(f"Sources:       {', '.join(s.name for s in settings.sources)}")
    click.echo(f"Schedule:      {settings.sync.schedule}")
    click.echo("")
    click.echo(f"Last success:  {service_status.last_success_iso or 'never'}")

    last = service_status.last_cycle
    if last is None:
        click.echo("Last cycle:    none")
        return

    color = {"success": "green", "degraded_success": "yellow"}.get(last.outcome, "red")
    click.echo(f"Last cycle:    {last.cycle_id} ", nl=False)
    click.secho(last.outcome, fg=color, bold=True)
    for error in last.errors:
        click.echo(f"  - {error}")

    if len(service_status.history) > 1:
        click.echo("")
        click.echo("Recent cycles:")
        for record in service_status.history[:10]:
            click.echo(
                f"  {record.started_at}  {record.outcome:<17} "
                f"build={record.build_kind or '-'}  {record.duration_ms}ms"
            )


@click.command("health")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def health(ctx: click.Context, as_json: bool) -> None:
    """Check service health; exits 1 when unhealthy."""
    from ..observability.health import HealthChecker, HealthStatus

    checker = HealthChecker.from_settings(get_settings(ctx))
    result = checker.check()

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        status_colors = {
            HealthStatus.HEALTHY: ("✅", "green"),
            HealthStatus.DEGRADED: ("⚠️", "yellow"),
            HealthStatus.UNHEALTHY: ("❌", "red"),
        }
        icon, color = status_colors.get(result.status, ("❓", "white"))

        click.echo()
        click.secho(f"{icon} Service Health: {result.status.value.upper()}", fg=color, bold=True)
        click.echo()

        click.echo("Components:")
        for component in result.components:
            c_icon, c_color = status_colors.get(component.status, ("❓", "white"))
            click.echo(f"  {c_icon} ", nl=False)
            click.secho(component.name, fg=c_color, bold=True, nl=False)
            click.echo(f": {component.message}")
        click.echo()

    if result.status == HealthStatus.UNHEALTHY:
        ctx.exit(1)
