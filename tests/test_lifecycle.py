"""Resolution engine: propose / dispute / resolve against the local ledger."""

import asyncio

import pytest
from structlog.testing import capture_logs

from conftest import AUTHORITY, START
from predictlink.errors import (
    AlreadyFinal,
    DuplicateProposal,
    LivenessActive,
    LivenessExpired,
    LowConfidence,
    ResolutionMismatch,
    Unauthorized,
    ValidationError,
)
from predictlink.lifecycle import BondPolicy, LivenessPolicy, ResolutionEngine
from predictlink.models import Assessment, ProposalState, ResolutionType, proposal_state
from predictlink.results import Accepted, Rejected

DIGEST = bytes(range(32))
COUNTER = bytes(reversed(range(32)))


def confident(outcome: bool = True, confidence: float = 0.9) -> Assessment:
    return Assessment(confidence=confidence, outcome=outcome, summary="s", sources=["AP News"])


async def proposed(engine, ledger, description: str = "Will X happen?", category: str = "default"):
    event = await ledger.create_event(description, "creator", category=category)
    result = await engine.propose(event, confident(), DIGEST, "proposer-1")
    assert isinstance(result, Accepted)
    return event, result.proposal


@pytest.mark.asyncio
async def test_confident_proposal_is_accepted(engine, ledger, clock):
    event = await ledger.create_event("Will X happen?", "creator")
    result = await engine.propose(event, confident(), DIGEST, "proposer-1")
    assert isinstance(result, Accepted)
    p = result.proposal
    assert p.outcome is True
    assert p.evidence_digest == DIGEST
    assert p.submitted_at == START
    assert p.liveness_end == START + 7200
    assert p.round == 1
    assert p.bonded_amount > 0
    assert not p.resolved and not p.disputed
    assert result.signature
    assert (await ledger.fetch_oracle()).active_proposals == 1


@pytest.mark.asyncio
async def test_low_confidence_is_rejected_without_ledger_write(engine, ledger):
    event = await ledger.create_event("Will X happen?", "creator")
    result = await engine.propose(event, confident(confidence=0.4), DIGEST, "proposer-1")
    assert isinstance(result, Rejected)
    assert isinstance(result.reason, LowConfidence)
    assert await ledger.find_proposal_for_event(event.address) is None
    assert (await ledger.fetch_oracle()).active_proposals == 0


@pytest.mark.asyncio
async def test_second_proposal_for_live_event_is_duplicate(engine, ledger):
    event, first = await proposed(engine, ledger)
    result = await engine.propose(event, confident(outcome=False), DIGEST, "proposer-2")
    assert isinstance(result, Rejected)
    assert isinstance(result.reason, DuplicateProposal)
    assert (await ledger.fetch_proposal(first.address)) == first


@pytest.mark.asyncio
async def test_concurrent_proposals_yield_exactly_one_accept(engine, ledger):
    event = await ledger.create_event("Will X happen?", "creator")
    results = await asyncio.gather(
        *(engine.propose(event, confident(), DIGEST, f"proposer-{i}") for i in range(5))
    )
    accepted = [r for r in results if isinstance(r, Accepted)]
    assert len(accepted) == 1
    assert all(isinstance(r.reason, DuplicateProposal) for r in results if isinstance(r, Rejected))


@pytest.mark.asyncio
async def test_ledger_duplicate_check_is_final_fence(engine, ledger):
    event, _ = await proposed(engine, ledger)
    with pytest.raises(DuplicateProposal):
        await ledger.submit_propose(event, True, DIGEST, "someone", liveness_end=START + 1, bond=1)


@pytest.mark.asyncio
async def test_bad_inputs_raise_validation_error(engine, ledger):
    event = await ledger.create_event("Will X happen?", "creator")
    with pytest.raises(ValidationError):
        await engine.propose(event, confident(), b"short", "proposer-1")
    with pytest.raises(ValidationError):
        await engine.propose(event, confident(), DIGEST, "  ")
    with pytest.raises(ValidationError):
        await engine.propose(
            event, Assessment(confidence=0.9, outcome=True, sources=[]), DIGEST, "proposer-1"
        )
    assert await ledger.find_proposal_for_event(event.address) is None


@pytest.mark.asyncio
async def test_non_binary_event_cannot_be_proposed(engine, ledger):
    event = await ledger.create_event("How many?", "creator", resolution_type=ResolutionType.NUMERIC)
    with pytest.raises(ValidationError):
        await engine.propose(event, confident(), DIGEST, "proposer-1")


@pytest.mark.asyncio
async def test_high_value_category_gets_longer_liveness_and_bond(ledger, gate, clock):
    engine = ResolutionEngine(
        ledger,
        gate,
        LivenessPolicy(7200, {"high_value": 86400}),
        BondPolicy(1000, {"high_value": 5.0}),
        clock=clock,
    )
    _, p = await proposed(engine, ledger, category="high_value")
    assert p.liveness_end == START + 86400
    assert p.bonded_amount == 5000


@pytest.mark.asyncio
async def test_dispute_after_window_is_expired_and_leaves_proposal(engine, ledger, clock):
    _, p = await proposed(engine, ledger)
    clock.now = p.liveness_end + 1
    result = await engine.dispute(p, None, COUNTER, "disputer-1")
    assert isinstance(result, Rejected)
    assert isinstance(result.reason, LivenessExpired)
    assert await ledger.fetch_proposal(p.address) == p


@pytest.mark.asyncio
async def test_dispute_at_exact_liveness_end_is_expired(engine, ledger, clock):
    _, p = await proposed(engine, ledger)
    clock.now = p.liveness_end
    result = await engine.dispute(p, None, COUNTER, "disputer-1")
    assert isinstance(result.reason, LivenessExpired)


@pytest.mark.asyncio
async def test_dispute_then_second_dispute_is_already_final(engine, ledger, clock):
    _, p = await proposed(engine, ledger)
    clock.advance(60)
    counter = confident(outcome=False, confidence=0.95)
    result = await engine.dispute(p, counter, COUNTER, "disputer-1")
    assert isinstance(result, Accepted)
    d = result.proposal
    assert d.disputed and not d.resolved
    assert d.disputer == "disputer-1"
    assert d.dispute_evidence_digest == COUNTER
    assert d.dispute_bond == p.bonded_amount
    assert proposal_state(d, clock()) is ProposalState.DISPUTED

    again = await engine.dispute(d, counter, COUNTER, "disputer-2")
    assert isinstance(again.reason, AlreadyFinal)


@pytest.mark.asyncio
async def test_stale_proposal_copy_is_fenced_by_ledger(engine, ledger, clock):
    _, p = await proposed(engine, ledger)
    assert isinstance(await engine.dispute(p, None, COUNTER, "disputer-1"), Accepted)
    # p is the pre-dispute copy; the ledger still refuses
    result = await engine.dispute(p, None, COUNTER, "disputer-2")
    assert isinstance(result, Rejected)
    assert isinstance(result.reason, AlreadyFinal)


@pytest.mark.asyncio
async def test_resolve_during_liveness_is_refused(engine, ledger):
    _, p = await proposed(engine, ledger)
    result = await engine.resolve(p, True, AUTHORITY)
    assert isinstance(result.reason, LivenessActive)


@pytest.mark.asyncio
async def test_uncontested_resolution_after_liveness(engine, ledger, clock):
    _, p = await proposed(engine, ledger)
    clock.now = p.liveness_end
    assert proposal_state(p, clock()) is ProposalState.EXPIRED_UNRESOLVED
    result = await engine.resolve(p, True, "anyone")
    assert isinstance(result, Accepted)
    r = result.proposal
    assert r.resolved and r.final_outcome is True and r.resolver == "anyone"
    oracle = await ledger.fetch_oracle()
    assert oracle.active_proposals == 0
    assert oracle.total_resolved == 1

    again = await engine.resolve(r, True, AUTHORITY)
    assert isinstance(again.reason, AlreadyFinal)


@pytest.mark.asyncio
async def test_uncontested_resolution_must_match_proposed_outcome(engine, ledger, clock):
    _, p = await proposed(engine, ledger)
    clock.now = p.liveness_end + 10
    result = await engine.resolve(p, False, AUTHORITY)
    assert isinstance(result.reason, ResolutionMismatch)


@pytest.mark.asyncio
async def test_disputed_proposal_needs_oracle_authority(engine, ledger, clock):
    _, p = await proposed(engine, ledger)
    d = (await engine.dispute(p, None, COUNTER, "disputer-1")).proposal
    refused = await engine.resolve(d, False, "not-the-authority")
    assert isinstance(refused.reason, Unauthorized)

    # authority may override the proposed outcome, even inside the window
    result = await engine.resolve(d, False, AUTHORITY)
    assert isinstance(result, Accepted)
    assert result.proposal.final_outcome is False
    assert result.proposal.outcome is True


@pytest.mark.asyncio
async def test_resolved_event_can_be_proposed_again(engine, ledger, clock):
    event, p = await proposed(engine, ledger)
    clock.now = p.liveness_end
    await engine.resolve(p, True, AUTHORITY)
    result = await engine.propose(event, confident(outcome=False), DIGEST, "proposer-2")
    assert isinstance(result, Accepted)
    assert result.proposal.address == p.address
    assert result.proposal.round == 2
    assert not result.proposal.resolved


def test_proposal_state_without_proposal():
    assert proposal_state(None, START) is ProposalState.NO_PROPOSAL


def test_policies():
    live = LivenessPolicy(600, {"high_value": 86400})
    assert live.duration("high_value") == 86400
    assert live.duration("sports") == 600
    assert live.duration(None) == 600
    with pytest.raises(ValueError):
        LivenessPolicy(0)
    bonds = BondPolicy(100, {"high_value": 2.5})
    assert bonds.amount("high_value") == 250
    assert bonds.dispute_amount(250) == 250
    assert bonds.dispute_amount(0) == 100


@pytest.mark.asyncio
async def test_propose_paths_log_the_event_address_and_return_results(engine, ledger):
    event = await ledger.create_event("Will X happen?", "creator")
    with capture_logs() as logs:
        low = await engine.propose(event, confident(confidence=0.2), DIGEST, "proposer-1")
        accepted = await engine.propose(event, confident(), DIGEST, "proposer-1")
    assert isinstance(low, Rejected)
    assert isinstance(accepted, Accepted)
    by_name = {entry["event"]: entry for entry in logs}
    assert by_name["proposal_low_confidence"]["event_address"] == event.address
    assert by_name["proposal_submitted"]["event_address"] == event.address
    assert by_name["proposal_submitted"]["proposal"] == accepted.proposal.address


@pytest.mark.asyncio
async def test_ledger_refusal_comes_back_as_rejected(ledger, gate, clock):
    engine = ResolutionEngine(ledger, gate, clock=clock)
    event = await ledger.create_event("Will X happen?", "creator")
    await ledger.submit_propose(event, True, DIGEST, "someone", liveness_end=START + 100, bond=1)

    class StaleView:
        """Reports no proposal so the engine reaches the ledger's own check."""

        def __getattr__(self, name):
            return getattr(ledger, name)

        async def find_proposal_for_event(self, event_address):
            return None

    engine.ledger = StaleView()
    with capture_logs() as logs:
        result = await engine.propose(event, confident(), DIGEST, "proposer-1")
    assert isinstance(result, Rejected)
    assert isinstance(result.reason, DuplicateProposal)
    assert [e["event_address"] for e in logs if e["event"] == "proposal_rejected"] == [event.address]


@pytest.mark.asyncio
async def test_dispute_is_logged_at_info(engine, ledger):
    _, p = await proposed(engine, ledger)
    with capture_logs() as logs:
        await engine.dispute(p, None, COUNTER, "disputer-1")
    [entry] = [e for e in logs if e["event"] == "proposal_disputed"]
    assert entry["log_level"] == "info"
