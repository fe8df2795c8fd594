"""Proposals subcommand: propose, dispute, resolve, list, show."""

from __future__ import annotations

import typer

from predictlink.bootstrap import Components
from predictlink.cli.common import echo_rejection, format_proposal, run_with_components
from predictlink.lifecycle import SubmissionStatus

app = typer.Typer(help="Propose, dispute and resolve event outcomes")


@app.command("propose")
def propose(
    ctx: typer.Context,
    event_address: str = typer.Argument(..., help="Event address"),
    proposer: str | None = typer.Option(None, "--proposer", help="Proposer identity (default: config ledger.proposer)"),
) -> None:
    """Assess the event with the aggregator and propose its outcome (or flag for human review)."""

    async def go(c: Components):
        return await c.pipeline().propose_event(event_address, proposer or c.settings.proposer)

    sub = run_with_components(ctx, go)
    if sub.assessment is not None:
        a = sub.assessment
        typer.echo(f"Assessment: outcome={a.outcome} confidence={a.confidence:.2f} sources={len(a.sources)}")
    if sub.status == SubmissionStatus.FLAGGED_FOR_REVIEW:
        typer.echo("Flagged for human review: confidence below publish threshold or no sources.")
        return
    if sub.evidence is not None:
        typer.echo(f"Evidence: {sub.evidence.content_id}  digest={sub.evidence.digest_hex}")
    if sub.status == SubmissionStatus.PROPOSED:
        p = sub.result.proposal
        typer.echo(f"Proposed: {p.address}  liveness_end={p.liveness_end}")
    else:
        echo_rejection(sub.result)
        raise typer.Exit(2)


@app.command("dispute")
def dispute(
    ctx: typer.Context,
    proposal_address: str = typer.Argument(..., help="Proposal address"),
    evidence: str = typer.Option(..., "--evidence", "-e", help="Counter-evidence text"),
    source: list[str] = typer.Option([], "--source", "-s", help="Source label (repeatable)"),
    disputer: str = typer.Option("cli-user", "--disputer", help="Disputer identity"),
) -> None:
    """Dispute a pending proposal with counter-evidence."""

    async def go(c: Components):
        return await c.pipeline().dispute_with_evidence(proposal_address, evidence, disputer, source)

    sub = run_with_components(ctx, go)
    if sub.status == SubmissionStatus.DISPUTED:
        typer.echo(f"Disputed: {sub.target}  evidence={sub.evidence.content_id}")
    else:
        echo_rejection(sub.result)
        raise typer.Exit(2)


@app.command("resolve")
def resolve(
    ctx: typer.Context,
    proposal_address: str = typer.Argument(..., help="Proposal address"),
    outcome: bool = typer.Option(..., "--outcome/--no-outcome", help="Final outcome"),
    authority: str | None = typer.Option(None, "--authority", help="Resolver identity (default: config ledger.authority)"),
) -> None:
    """Resolve a proposal (after liveness, or adjudicate a dispute as the authority)."""

    async def go(c: Components):
        return await c.pipeline().resolve(proposal_address, outcome, authority or c.settings.authority)

    sub = run_with_components(ctx, go)
    if sub.status == SubmissionStatus.RESOLVED:
        typer.echo(f"Resolved: {sub.target}  outcome={outcome}")
    else:
        echo_rejection(sub.result)
        raise typer.Exit(2)


@app.command("list")
def list_proposals(
    ctx: typer.Context,
    active: bool = typer.Option(False, "--active", help="Only pending (undisputed, unresolved) proposals"),
) -> None:
    """List current proposals."""

    async def go(c: Components):
        if active:
            return await c.ledger.list_active_proposals()
        return await c.ledger.list_proposals()

    proposals = run_with_components(ctx, go)
    for p in proposals:
        typer.echo(format_proposal(p))
    typer.echo(f"Total: {len(proposals)} proposals")


@app.command("show")
def show(ctx: typer.Context, proposal_address: str = typer.Argument(..., help="Proposal address")) -> None:
    """Show one proposal record."""

    async def go(c: Components):
        return await c.ledger.fetch_proposal(proposal_address)

    p = run_with_components(ctx, go)
    data = p.model_dump(exclude={"evidence_digest", "dispute_evidence_digest"})
    data["evidence_digest"] = p.evidence_digest.hex()
    data["dispute_evidence_digest"] = p.dispute_evidence_digest.hex() if p.dispute_evidence_digest else None
    for key, value in data.items():
        typer.echo(f"  {key}: {value}")
