"""Events subcommand: create, list, show."""

from __future__ import annotations

import typer

from predictlink.bootstrap import Components
from predictlink.cli.common import run_with_components

app = typer.Typer(help="Create and inspect oracle events")


@app.command("create")
def create(
    ctx: typer.Context,
    description: str = typer.Argument(..., help="Question to resolve, e.g. 'Will X happen by June?'"),
    creator: str = typer.Option("cli-user", "--creator", help="Creator identity"),
    market: str | None = typer.Option(None, "--market", "-m", help="Linked market address"),
    category: str = typer.Option("default", "--category", "-c", help="Policy category (e.g. high_value)"),
) -> None:
    """Create an event on the ledger."""

    async def go(c: Components):
        return await c.ledger.create_event(description, creator, market_address=market, category=category)

    event = run_with_components(ctx, go)
    typer.echo(f"Created event #{event.event_id}: {event.address}")


@app.command("list")
def list_events(ctx: typer.Context) -> None:
    """List events known to the ledger."""

    async def go(c: Components):
        return await c.ledger.list_events()

    events = run_with_components(ctx, go)
    for e in events:
        typer.echo(f"  #{e.event_id}  {e.address[:20]}...  [{e.category}]  {e.description[:60]}")
    typer.echo(f"Total: {len(events)} events")


@app.command("show")
def show(ctx: typer.Context, address: str = typer.Argument(..., help="Event address")) -> None:
    """Show one event and its current proposal."""

    async def go(c: Components):
        event = await c.ledger.fetch_event(address)
        return event, await c.ledger.find_proposal_for_event(event.address)

    event, proposal = run_with_components(ctx, go)
    typer.echo(event.model_dump_json(indent=2))
    if proposal is None:
        typer.echo("No proposal yet.")
    else:
        typer.echo(f"Proposal: {proposal.address}")
