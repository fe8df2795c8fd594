"""End-to-end pipeline: assess -> gate -> evidence -> propose; human dispute and resolve."""

import pytest
from structlog.testing import capture_logs

from conftest import AUTHORITY, StubEvaluator, payload
from predictlink.aggregator import EvidenceAggregator
from predictlink.errors import EvaluationFailure, EventNotFound
from predictlink.lifecycle import ResolutionPipeline, SubmissionStatus
from predictlink.results import Accepted


def blob_count(conn) -> int:
    return conn.execute("SELECT COUNT(*) FROM evidence_blobs").fetchone()[0]


@pytest.mark.asyncio
async def test_confident_event_is_proposed_with_verifiable_evidence(pipeline, ledger, store, clock):
    event = await ledger.create_event("Will X happen?", "creator")
    sub = await pipeline.propose_event(event.address, "ai-proposer")
    assert sub.status == SubmissionStatus.PROPOSED
    assert isinstance(sub.result, Accepted)
    p = sub.result.proposal
    assert p.evidence_digest == sub.evidence.digest
    assert p.liveness_end == clock() + 7200
    assert await store.verify(sub.evidence.content_id, p.evidence_digest)

    bundle = await store.retrieve_verified(sub.evidence.content_id, p.evidence_digest)
    assert bundle.event_description == "Will X happen?"
    assert bundle.kind == "proposal"
    assert bundle.sources == ["AP News", "Reuters"]
    assert bundle.raw_output["confidence"] == 0.9


@pytest.mark.asyncio
async def test_low_confidence_is_flagged_and_stores_nothing(pipeline, ledger, evaluator, conn):
    event = await ledger.create_event("Will X happen?", "creator")
    evaluator.respond("Will X happen?", payload(True, 0.3))
    with capture_logs() as logs:
        sub = await pipeline.propose_event(event.address, "ai-proposer")
    assert [e["event_address"] for e in logs if e["event"] == "flagged_for_review"] == [event.address]
    assert sub.status == SubmissionStatus.FLAGGED_FOR_REVIEW
    assert sub.assessment.confidence == 0.3
    assert sub.result is None
    assert blob_count(conn) == 0
    assert await ledger.find_proposal_for_event(event.address) is None


@pytest.mark.asyncio
async def test_no_sources_is_flagged_for_review(ledger, store, engine, gate, conn):
    evaluator = StubEvaluator(default=payload(True, 0.95, sources=[]))
    pipeline = ResolutionPipeline(ledger, EvidenceAggregator(evaluator), store, engine, gate)
    event = await ledger.create_event("Will X happen?", "creator")
    sub = await pipeline.propose_event(event.address, "ai-proposer")
    assert sub.status == SubmissionStatus.FLAGGED_FOR_REVIEW
    assert blob_count(conn) == 0


@pytest.mark.asyncio
async def test_live_proposal_short_circuits_before_evaluation(pipeline, ledger, evaluator):
    event = await ledger.create_event("Will X happen?", "creator")
    await pipeline.propose_event(event.address, "ai-proposer")
    calls = len(evaluator.calls)
    sub = await pipeline.propose_event(event.address, "ai-proposer")
    assert sub.status == SubmissionStatus.REJECTED
    assert sub.reason == "duplicate_proposal"
    assert len(evaluator.calls) == calls


@pytest.mark.asyncio
async def test_unknown_event_raises(pipeline):
    with pytest.raises(EventNotFound):
        await pipeline.propose_event("missing", "ai-proposer")


@pytest.mark.asyncio
async def test_missing_aggregator_raises_evaluation_failure(ledger, store, engine):
    pipeline = ResolutionPipeline(ledger, None, store, engine)
    event = await ledger.create_event("Will X happen?", "creator")
    with pytest.raises(EvaluationFailure):
        await pipeline.propose_event(event.address, "ai-proposer")


@pytest.mark.asyncio
async def test_human_dispute_then_authority_resolution(pipeline, ledger, store):
    event = await ledger.create_event("Will X happen?", "creator")
    proposed = await pipeline.propose_event(event.address, "ai-proposer")
    address = proposed.result.proposal.address

    sub = await pipeline.dispute_with_evidence(address, "Official results say no.", "alice", ["gov.example"])
    assert sub.status == SubmissionStatus.DISPUTED
    disputed = sub.result.proposal
    assert disputed.disputer == "alice"
    bundle = await store.retrieve_verified(sub.evidence.content_id, disputed.dispute_evidence_digest)
    assert bundle.kind == "dispute"
    assert bundle.raw_output == {"counter_evidence": "Official results say no.", "proposed_outcome": True}

    again = await pipeline.dispute_with_evidence(address, "me too", "bob")
    assert again.status == SubmissionStatus.REJECTED
    assert again.reason == "already_final"
    assert again.evidence is None

    resolved = await pipeline.resolve(address, False, AUTHORITY)
    assert resolved.status == SubmissionStatus.RESOLVED
    assert resolved.result.proposal.final_outcome is False


@pytest.mark.asyncio
async def test_dispute_after_liveness_stores_nothing(pipeline, ledger, clock, conn):
    event = await ledger.create_event("Will X happen?", "creator")
    proposed = await pipeline.propose_event(event.address, "ai-proposer")
    before = blob_count(conn)
    clock.advance(7200)
    sub = await pipeline.dispute_with_evidence(proposed.result.proposal.address, "late", "alice")
    assert sub.reason == "liveness_expired"
    assert blob_count(conn) == before


@pytest.mark.asyncio
async def test_resolve_inside_window_is_rejected(pipeline, ledger):
    event = await ledger.create_event("Will X happen?", "creator")
    proposed = await pipeline.propose_event(event.address, "ai-proposer")
    sub = await pipeline.resolve(proposed.result.proposal.address, True, AUTHORITY)
    assert sub.status == SubmissionStatus.REJECTED
    assert sub.reason == "liveness_active"
