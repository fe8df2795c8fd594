"""Evidence subcommand: show, verify."""

from __future__ import annotations

import typer

from predictlink.bootstrap import Components
from predictlink.cli.common import run_with_components

app = typer.Typer(help="Inspect and verify stored evidence bundles")


@app.command("show")
def show(ctx: typer.Context, content_id: str = typer.Argument(..., help="Evidence content id")) -> None:
    """Print a stored evidence bundle."""

    async def go(c: Components):
        return await c.store.retrieve(content_id)

    bundle = run_with_components(ctx, go)
    typer.echo(bundle.model_dump_json(indent=2))


@app.command("verify")
def verify(
    ctx: typer.Context,
    content_id: str = typer.Argument(..., help="Evidence content id"),
    digest: str = typer.Argument(..., help="Expected digest (64 hex chars), e.g. from a proposal record"),
) -> None:
    """Check that stored evidence hashes to the on-ledger digest."""
    try:
        expected = bytes.fromhex(digest)
    except ValueError:
        typer.echo("Digest must be hex.", err=True)
        raise typer.Exit(1)

    async def go(c: Components):
        return await c.store.verify(content_id, expected)

    if run_with_components(ctx, go):
        typer.echo("OK: evidence matches digest.")
    else:
        typer.echo("MISMATCH: evidence does not match digest.")
        raise typer.Exit(2)
