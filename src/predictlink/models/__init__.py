"""Canonical schema (Pydantic) - Event, Proposal, Oracle, Assessment, EvidenceBundle."""

from predictlink.models.event import Event, ResolutionType
from predictlink.models.evidence import Assessment, EvidenceBundle
from predictlink.models.proposal import DIGEST_SIZE, Oracle, Proposal, ProposalState, proposal_state

__all__ = [
    "Event",
    "ResolutionType",
    "Assessment",
    "EvidenceBundle",
    "Oracle",
    "Proposal",
    "ProposalState",
    "proposal_state",
    "DIGEST_SIZE",
]
