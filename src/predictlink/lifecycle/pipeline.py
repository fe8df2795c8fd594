"""Resolution pipeline: event -> assessment -> confidence gate -> evidence -> proposal.

Also carries the human-triggered dispute and resolve paths.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import structlog

from predictlink.aggregator import ConfidenceGate, EvidenceAggregator
from predictlink.errors import DuplicateProposal, EvaluationFailure
from predictlink.evidence import EvidenceStore, StoredEvidence, bundle_from_assessment
from predictlink.ledger.base import LedgerClient
from predictlink.lifecycle.engine import ResolutionEngine
from predictlink.models import Assessment, EvidenceBundle
from predictlink.results import Accepted, LifecycleResult, Rejected

log = structlog.get_logger(__name__)


class SubmissionStatus(str, Enum):
    PROPOSED = "proposed"
    FLAGGED_FOR_REVIEW = "flagged_for_review"
    DISPUTED = "disputed"
    RESOLVED = "resolved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ProposalSubmission:
    """What happened to one pipeline request."""

    status: SubmissionStatus
    target: str  # event or proposal address
    assessment: Assessment | None = None
    evidence: StoredEvidence | None = None
    result: LifecycleResult | None = None

    @property
    def reason(self) -> str | None:
        if isinstance(self.result, Rejected):
            return self.result.code
        return None


def _status(result: LifecycleResult, on_accept: SubmissionStatus) -> SubmissionStatus:
    match result:
        case Accepted():
            return on_accept
        case Rejected():
            return SubmissionStatus.REJECTED


class ResolutionPipeline:
    """Orchestrates aggregator, evidence store and engine for one request at a time."""

    def __init__(
        self,
        ledger: LedgerClient,
        aggregator: EvidenceAggregator | None,
        store: EvidenceStore,
        engine: ResolutionEngine,
        gate: ConfidenceGate | None = None,
    ) -> None:
        self.ledger = ledger
        self.aggregator = aggregator
        self.store = store
        self.engine = engine
        self.gate = gate or engine.gate

    async def propose_event(self, event_address: str, proposer: str) -> ProposalSubmission:
        """Assess an event and propose its outcome, or flag it for human review."""
        event = await self.ledger.fetch_event(event_address)
        existing = await self.ledger.find_proposal_for_event(event.address)
        if existing is not None and not existing.resolved:
            reason = DuplicateProposal("a live proposal already exists for this event", proposal=existing.address)
            return ProposalSubmission(SubmissionStatus.REJECTED, event.address, result=Rejected(reason))

        if self.aggregator is None:
            raise EvaluationFailure("no evaluation provider configured (set OPENAI_API_KEY)")
        assessment = await self.aggregator.assess(event.description)
        if not self.gate.publishable(assessment):
            log.warning(
                "flagged_for_review",
                event_address=event.address,
                confidence=assessment.confidence,
                sources=len(assessment.sources),
            )
            return ProposalSubmission(SubmissionStatus.FLAGGED_FOR_REVIEW, event.address, assessment=assessment)

        bundle = bundle_from_assessment(
            event.description, assessment, created_at=self.engine.clock(), kind="proposal"
        )
        stored = await self.store.store(bundle)
        result = await self.engine.propose(event, assessment, stored.digest, proposer)
        return ProposalSubmission(
            _status(result, SubmissionStatus.PROPOSED),
            event.address,
            assessment=assessment,
            evidence=stored,
            result=result,
        )

    async def dispute_with_evidence(
        self,
        proposal_address: str,
        counter_evidence: str,
        disputer: str,
        sources: Sequence[str] = (),
    ) -> ProposalSubmission:
        """Human-triggered dispute backed by free-text counter-evidence."""
        proposal = await self.ledger.fetch_proposal(proposal_address)
        rejection = self.engine.dispute_rejection(proposal)
        if rejection is not None:
            return ProposalSubmission(SubmissionStatus.REJECTED, proposal.address, result=Rejected(rejection))

        event = await self.ledger.fetch_event(proposal.event_address)
        bundle = EvidenceBundle(
            event_description=event.description,
            sources=list(sources),
            summary=counter_evidence,
            raw_output={"counter_evidence": counter_evidence, "proposed_outcome": proposal.outcome},
            created_at=self.engine.clock(),
            kind="dispute",
        )
        stored = await self.store.store(bundle)
        result = await self.engine.dispute(proposal, None, stored.digest, disputer)
        return ProposalSubmission(
            _status(result, SubmissionStatus.DISPUTED), proposal.address, evidence=stored, result=result
        )

    async def resolve(self, proposal_address: str, final_outcome: bool, authority: str) -> ProposalSubmission:
        proposal = await self.ledger.fetch_proposal(proposal_address)
        result = await self.engine.resolve(proposal, final_outcome, authority)
        return ProposalSubmission(_status(result, SubmissionStatus.RESOLVED), proposal.address, result=result)
