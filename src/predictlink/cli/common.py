"""Shared CLI plumbing: run a coroutine against freshly built components."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

import typer

from predictlink.bootstrap import Components, build_components
from predictlink.errors import PredictLinkError
from predictlink.models import Proposal
from predictlink.results import Rejected

T = TypeVar("T")


def run_with_components(ctx: typer.Context, fn: Callable[[Components], Awaitable[T]]) -> T:
    """Build components, await fn(components), close. Core errors exit with status 1."""
    settings = ctx.obj["settings"]

    async def main() -> T:
        components = build_components(settings)
        try:
            return await fn(components)
        finally:
            await components.close()

    try:
        return asyncio.run(main())
    except PredictLinkError as e:
        typer.echo(f"Error [{e.code}]: {e.message}", err=True)
        raise typer.Exit(1)


def echo_rejection(result: Any) -> None:
    if isinstance(result, Rejected):
        typer.echo(f"Rejected [{result.code}]: {result.reason.message}")


def format_proposal(p: Proposal) -> str:
    if p.resolved:
        state = f"resolved={p.final_outcome}"
    elif p.disputed:
        state = "disputed"
    else:
        state = "pending"
    return f"  {p.address[:20]}...  round={p.round}  outcome={p.outcome}  {state}  liveness_end={p.liveness_end}"
