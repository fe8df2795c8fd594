"""Proposal lifecycle record and the Oracle singleton."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator

DIGEST_SIZE = 32


class ProposalState(str, Enum):
    NO_PROPOSAL = "no_proposal"
    PENDING = "pending"
    DISPUTED = "disputed"
    EXPIRED_UNRESOLVED = "expired_unresolved"
    RESOLVED = "resolved"


def _check_digest(v: bytes | None) -> bytes | None:
    if v is not None and len(v) != DIGEST_SIZE:
        raise ValueError(f"digest must be {DIGEST_SIZE} bytes, got {len(v)}")
    return v


class Proposal(BaseModel):
    """One proposal per event address. Transitions produce copies, never in-place edits."""

    address: str
    event_address: str
    round: int = Field(1, ge=1)
    proposer: str
    outcome: bool
    evidence_digest: bytes
    submitted_at: int
    liveness_end: int
    bonded_amount: int = Field(0, ge=0)
    resolved: bool = False
    disputed: bool = False
    dispute_bond: int = Field(0, ge=0)
    disputer: str | None = None
    dispute_evidence_digest: bytes | None = None
    resolver: str | None = None
    final_outcome: bool | None = None

    @field_validator("evidence_digest", "dispute_evidence_digest")
    @classmethod
    def _digest_width(cls, v: bytes | None) -> bytes | None:
        return _check_digest(v)

    @property
    def is_live(self) -> bool:
        """Not yet resolved (pending or disputed)."""
        return not self.resolved

    def dispute_window_open(self, now: int) -> bool:
        return not self.resolved and not self.disputed and now < self.liveness_end


def proposal_state(proposal: Proposal | None, now: int) -> ProposalState:
    """Derive the lifecycle state of a proposal at time `now`."""
    if proposal is None:
        return ProposalState.NO_PROPOSAL
    if proposal.resolved:
        return ProposalState.RESOLVED
    if proposal.disputed:
        return ProposalState.DISPUTED
    if now >= proposal.liveness_end:
        return ProposalState.EXPIRED_UNRESOLVED
    return ProposalState.PENDING


class Oracle(BaseModel):
    """Oracle singleton: authority, counters and default policy on the ledger."""

    address: str
    authority: str
    active_proposals: int = 0
    total_resolved: int = 0
    bond_amount: int = 0
    liveness_period: int = 7200
