"""Monitor subcommand: start, once, status."""

from __future__ import annotations

import asyncio
import signal
import sys

import typer

from predictlink.bootstrap import Components, build_components
from predictlink.cli.common import run_with_components
from predictlink.errors import PredictLinkError
from predictlink.models import proposal_state

app = typer.Typer(help="Run the autonomous dispute monitor")


@app.command("start")
def start(
    ctx: typer.Context,
    interval: float | None = typer.Option(None, "--interval", "-i", help="Seconds between iterations (overrides config)"),
) -> None:
    """Run the dispute monitor in the foreground until Ctrl+C / SIGTERM."""
    settings = ctx.obj["settings"]
    components = build_components(settings)
    try:
        monitor = components.monitor()
    except PredictLinkError as e:
        asyncio.run(components.close())
        typer.echo(f"Error [{e.code}]: {e.message}", err=True)
        raise typer.Exit(1)
    if interval is not None:
        monitor.interval_sec = interval
    stop_event = asyncio.Event()

    def shutdown() -> None:
        stop_event.set()

    loop = asyncio.new_event_loop()
    if sys.platform != "win32":
        loop.add_signal_handler(signal.SIGINT, shutdown)
        loop.add_signal_handler(signal.SIGTERM, shutdown)
    try:
        typer.echo("Starting dispute monitor (Ctrl+C to stop)...")
        loop.run_until_complete(monitor.run(stop_event=stop_event))
    except KeyboardInterrupt:
        pass
    finally:
        loop.run_until_complete(components.close())
        loop.close()
    status = monitor.get_status()
    typer.echo(f"Stopped after {status['iterations']} iterations, {status['disputes_filed']} disputes filed.")


@app.command("once")
def once(ctx: typer.Context) -> None:
    """Run a single monitor iteration and print what happened to each proposal."""

    async def go(c: Components):
        return await c.monitor().run_iteration()

    report = run_with_components(ctx, go)
    if report is None:
        typer.echo("An iteration is already running.")
        return
    for address, action in report.actions.items():
        typer.echo(f"  {address[:20]}...  {action.value}")
    typer.echo(f"Examined {len(report.actions)} proposals, disputed {len(report.disputed)}.")


@app.command("status")
def status(ctx: typer.Context) -> None:
    """Show oracle counters and the lifecycle state of current proposals."""

    async def go(c: Components):
        return await c.ledger.fetch_oracle(), await c.ledger.list_proposals(), c.engine.clock()

    oracle, proposals, now = run_with_components(ctx, go)
    typer.echo(f"Oracle authority: {oracle.authority}")
    typer.echo(f"Active proposals: {oracle.active_proposals}  Total resolved: {oracle.total_resolved}")
    for p in proposals:
        typer.echo(f"  {p.address[:20]}...  {proposal_state(p, now).value}")
