"""
CLI service commands - run the server, a cycle, or one half of a cycle.

Usage:
    mirrorsite serve [--no-sync-on-start] [--host H] [--port P]
    mirrorsite cycle [--json]
    mirrorsite sync
    mirrorsite build [--minimal]
"""

from __future__ import annotations

import json
from typing import Optional

import click

from .context import get_settings, init_logging


@click.command()
@click.option("--no-sync-on-start", is_flag=True, help="Skip the startup cycle")
@click.option("--host", default=None, help="Bind address (default: server.host)")
@click.option("--port", default=None, type=int, help="Port (default: server.port)")
@click.pass_context
def serve(ctx: click.Context, no_sync_on_start: bool, host: Optional[str], port: Optional[int]) -> None:
    """Serve the site and run cycles on schedule."""
    from ..server.app import run_server

    settings = get_settings(ctx)
    if host:
        settings.server.host = host
    if port:
        settings.server.port = port

    click.echo(f"Serving {settings.paths.website} on http://{settings.server.host}:{settings.server.port}")
    click.echo(f"Schedule: {settings.sync.schedule}")
    run_server(settings, sync_on_start=False if no_sync_on_start else None)


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def cycle(ctx: click.Context, as_json: bool) -> None:
    """Run one sync-then-build cycle and exit."""
    from ..engine.orchestrator import CycleOutcome, Orchestrator

    settings = get_settings(ctx)
    init_logging(settings)

    orchestrator = Orchestrator.from_settings(settings)
    try:
        result = orchestrator.run_cycle()
    finally:
        orchestrator.close()

    if result is None:
        click.secho("Cycle skipped: another cycle is running", fg="yellow")
        ctx.exit(1)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if result.outcome == CycleOutcome.FAILURE:
            ctx.exit(1)
        return

    colors = {
        CycleOutcome.SUCCESS: "green",
        CycleOutcome.DEGRADED_SUCCESS: "yellow",
        CycleOutcome.FAILURE: "red",
    }
    click.echo("")
    click.echo(f"  Cycle ID:  {result.cycle_id}")
    click.echo(f"  Sync:      {result.sync_status.value if result.sync_status else 'n/a'}")
    click.echo(f"  Build:     {result.build_kind.value if result.build_kind else 'n/a'}")
    click.echo(f"  Duration:  {result.duration_ms}ms")
    click.secho(f"  Outcome:   {result.outcome.value}", fg=colors[result.outcome], bold=True)
    for error in result.errors:
        click.echo(f"    - {error}")

    if result.outcome == CycleOutcome.FAILURE:
        ctx.exit(1)


@click.command()
@click.pass_context
def sync(ctx: click.Context) -> None:
    """Bring the local checkout in line with a remote, without building."""
    from ..logging_config import close_logger, create_logger
    from ..mirror.repository import RepositoryMirror

    settings = get_settings(ctx)
    init_logging(settings)

    log = create_logger("sync", settings.logs)
    try:
        state = RepositoryMirror.from_settings(settings, logger=log).ensure_synced()
    finally:
        close_logger(log)

    if state.synced:
        click.secho(f"✓ Synced {state.local_path} from {state.active_remote}", fg="green")
        return

    click.secho(f"✗ Sync failed: {state.last_error}", fg="red")
    ctx.exit(1)


@click.command()
@click.option("--minimal", is_flag=True, help="Run the reduced build (no npm)")
@click.pass_context
def build(ctx: click.Context, minimal: bool) -> None:
    """Build the site from the current checkout."""
    from ..errors import BuildFailure
    from ..logging_config import close_logger, create_logger
    from ..site.pipeline import BuildPipeline

    settings = get_settings(ctx)
    init_logging(settings)

    log = create_logger("build", settings.logs)
    pipeline = BuildPipeline.from_settings(settings, logger=log)
    try:
        result = pipeline.build_minimal() if minimal else pipeline.build_full()
    except BuildFailure as e:
        click.secho(f"✗ {e}", fg="red")
        for line in e.diagnostics[-5:]:
            click.echo(line)
        ctx.exit(1)
    finally:
        close_logger(log)

    click.secho(
        f"✓ {result.kind.value} build: {', '.join(result.sections)} → {result.output_dir}",
        fg="green",
    )
