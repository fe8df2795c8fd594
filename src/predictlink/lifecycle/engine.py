"""Resolution lifecycle engine - the proposal state machine.

NoProposal -> Pending -> {Disputed, ExpiredUnresolved} -> Resolved

Policy refusals come back as Rejected values; malformed input raises ValidationError.
The ledger's own precondition checks are the final fence against concurrent actors.
"""

from __future__ import annotations

import structlog

from predictlink.aggregator import ConfidenceGate
from predictlink.clock import Clock, system_clock
from predictlink.errors import (
    AlreadyFinal,
    DuplicateProposal,
    LivenessActive,
    LivenessExpired,
    LowConfidence,
    PolicyRejection,
    ResolutionMismatch,
    ValidationError,
)
from predictlink.ledger.base import LedgerClient
from predictlink.lifecycle.policy import BondPolicy, LivenessPolicy
from predictlink.models import DIGEST_SIZE, Assessment, Event, Proposal, ResolutionType
from predictlink.results import Accepted, LifecycleResult, Rejected

log = structlog.get_logger(__name__)


def _require_digest(digest: bytes, name: str) -> None:
    if not isinstance(digest, (bytes, bytearray)) or len(digest) != DIGEST_SIZE:
        raise ValidationError(f"{name} must be {DIGEST_SIZE} bytes")


def _require_identity(value: str, name: str) -> None:
    if not value or not value.strip():
        raise ValidationError(f"{name} must not be empty")


class ResolutionEngine:
    """Validates transitions against confidence and liveness policy, then drives the ledger."""

    def __init__(
        self,
        ledger: LedgerClient,
        gate: ConfidenceGate | None = None,
        liveness: LivenessPolicy | None = None,
        bonds: BondPolicy | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.ledger = ledger
        self.gate = gate or ConfidenceGate()
        self.liveness = liveness or LivenessPolicy()
        self.bonds = bonds or BondPolicy()
        self.clock = clock or system_clock

    def dispute_rejection(self, proposal: Proposal) -> PolicyRejection | None:
        """Why a dispute on `proposal` would be refused right now, or None if it is allowed."""
        if proposal.resolved or proposal.disputed:
            return AlreadyFinal("proposal is already disputed or resolved", proposal=proposal.address)
        if self.clock() >= proposal.liveness_end:
            return LivenessExpired("dispute window has closed", proposal=proposal.address)
        return None

    async def propose(
        self,
        event: Event,
        assessment: Assessment,
        evidence_digest: bytes,
        proposer: str,
    ) -> LifecycleResult:
        _require_digest(evidence_digest, "evidence_digest")
        _require_identity(proposer, "proposer")
        if event.resolution_type != ResolutionType.BINARY:
            raise ValidationError("only binary events can be proposed", event=event.address)

        if assessment.confidence < self.gate.publish_threshold:
            log.info("proposal_low_confidence", event_address=event.address, confidence=assessment.confidence)
            return Rejected(
                LowConfidence(
                    f"confidence {assessment.confidence:.2f} below {self.gate.publish_threshold:.2f}; route to human review",
                    event=event.address,
                )
            )
        if not assessment.sources:
            raise ValidationError("a publishable assessment must cite at least one source", event=event.address)

        existing = await self.ledger.find_proposal_for_event(event.address)
        if existing is not None and not existing.resolved:
            return Rejected(DuplicateProposal("a live proposal already exists for this event", proposal=existing.address))

        now = self.clock()
        liveness_end = now + self.liveness.duration(event.category)
        bond = self.bonds.amount(event.category)
        try:
            tx = await self.ledger.submit_propose(
                event,
                assessment.outcome,
                bytes(evidence_digest),
                proposer,
                liveness_end=liveness_end,
                bond=bond,
            )
        except PolicyRejection as e:
            log.info("proposal_rejected", event_address=event.address, code=e.code)
            return Rejected(e)
        log.info(
            "proposal_submitted",
            event_address=event.address,
            proposal=tx.proposal.address,
            outcome=tx.proposal.outcome,
            confidence=assessment.confidence,
            liveness_end=tx.proposal.liveness_end,
        )
        return Accepted(tx.proposal, tx.signature)

    async def dispute(
        self,
        proposal: Proposal,
        counter_assessment: Assessment | None,
        counter_digest: bytes,
        disputer: str,
    ) -> LifecycleResult:
        """counter_assessment is None for human disputes backed only by counter-evidence text."""
        _require_digest(counter_digest, "counter_digest")
        _require_identity(disputer, "disputer")
        rejection = self.dispute_rejection(proposal)
        if rejection is not None:
            return Rejected(rejection)
        try:
            tx = await self.ledger.submit_dispute(
                proposal,
                bytes(counter_digest),
                disputer,
                bond=self.bonds.dispute_amount(proposal.bonded_amount),
            )
        except PolicyRejection as e:
            log.info("dispute_rejected", proposal=proposal.address, code=e.code)
            return Rejected(e)
        log.info(
            "proposal_disputed",
            proposal=proposal.address,
            disputer=disputer,
            counter_outcome=counter_assessment.outcome if counter_assessment else None,
            confidence=counter_assessment.confidence if counter_assessment else None,
        )
        return Accepted(tx.proposal, tx.signature)

    async def resolve(self, proposal: Proposal, final_outcome: bool, authority: str) -> LifecycleResult:
        """Authoritative resolution; no confidence gate. Bond slashing is the ledger's business."""
        _require_identity(authority, "authority")
        if proposal.resolved:
            return Rejected(AlreadyFinal("proposal is already resolved", proposal=proposal.address))
        if not proposal.disputed:
            if self.clock() < proposal.liveness_end:
                return Rejected(LivenessActive("liveness window is still open", proposal=proposal.address))
            if final_outcome != proposal.outcome:
                return Rejected(
                    ResolutionMismatch("undisputed proposals resolve to the proposed outcome", proposal=proposal.address)
                )
        try:
            tx = await self.ledger.submit_resolve(proposal, final_outcome, authority)
        except PolicyRejection as e:
            log.info("resolve_rejected", proposal=proposal.address, code=e.code)
            return Rejected(e)
        log.info(
            "proposal_resolved",
            proposal=proposal.address,
            outcome=final_outcome,
            disputed=proposal.disputed,
            resolver=authority,
        )
        return Accepted(tx.proposal, tx.signature)
