"""Dispute monitor - periodically re-assess live proposals and dispute incorrect ones.

One iteration at a time per monitor instance. Within an iteration proposals are
evaluated concurrently; a failure on one proposal never affects the others.
Nothing is cached between iterations: proposals and events are read fresh.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from predictlink.aggregator import ConfidenceGate, EvidenceAggregator
from predictlink.clock import Clock, system_clock
from predictlink.errors import AlreadyFinal, LivenessExpired
from predictlink.evidence import EvidenceStore, bundle_from_assessment
from predictlink.ledger.base import LedgerClient
from predictlink.lifecycle.engine import ResolutionEngine
from predictlink.models import Proposal
from predictlink.results import Accepted, Rejected

log = structlog.get_logger(__name__)


class ProposalAction(str, Enum):
    SKIPPED_EXPIRED = "skipped_expired"
    AGREES = "agrees"
    BELOW_THRESHOLD = "below_threshold"
    DISPUTED = "disputed"
    RACE_LOST = "race_lost"
    FAILED = "failed"


@dataclass
class IterationReport:
    """Per-proposal outcome of one monitor iteration."""

    started_at: int
    finished_at: int | None = None
    actions: dict[str, ProposalAction] = field(default_factory=dict)

    def count(self, action: ProposalAction) -> int:
        return sum(1 for a in self.actions.values() if a == action)

    @property
    def disputed(self) -> list[str]:
        return [addr for addr, a in self.actions.items() if a == ProposalAction.DISPUTED]


class DisputeMonitor:
    """Runs the dispute iteration on a fixed interval until stopped."""

    def __init__(
        self,
        ledger: LedgerClient,
        aggregator: EvidenceAggregator,
        store: EvidenceStore,
        engine: ResolutionEngine,
        *,
        disputer: str,
        gate: ConfidenceGate | None = None,
        interval_sec: float = 300.0,
        max_concurrency: int = 4,
        clock: Clock | None = None,
    ) -> None:
        self.ledger = ledger
        self.aggregator = aggregator
        self.store = store
        self.engine = engine
        self.disputer = disputer
        self.gate = gate or engine.gate
        self.interval_sec = interval_sec
        self.max_concurrency = max(1, max_concurrency)
        self.clock = clock or engine.clock or system_clock
        self._lock = asyncio.Lock()
        self._stop: asyncio.Event | None = None
        self._task: asyncio.Task[None] | None = None
        self._iterations = 0
        self._disputes_filed = 0
        self._last_report: IterationReport | None = None

    @property
    def iteration_running(self) -> bool:
        return self._lock.locked()

    async def run_iteration(self) -> IterationReport | None:
        """Run one iteration. Returns None without doing anything if one is already running."""
        if self._lock.locked():
            log.warning("monitor_iteration_skipped", reason="previous iteration still running")
            return None
        async with self._lock:
            report = await self._iterate()
        self._iterations += 1
        self._disputes_filed += len(report.disputed)
        self._last_report = report
        return report

    async def _iterate(self) -> IterationReport:
        report = IterationReport(started_at=self.clock())
        oracle = await self.ledger.fetch_oracle()
        if oracle.active_proposals == 0:
            report.finished_at = self.clock()
            log.debug("monitor_no_active_proposals")
            return report
        proposals = await self.ledger.list_active_proposals()
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def guarded(proposal: Proposal) -> tuple[str, ProposalAction]:
            async with semaphore:
                return proposal.address, await self._process(proposal)

        for address, action in await asyncio.gather(*(guarded(p) for p in proposals)):
            report.actions[address] = action
        report.finished_at = self.clock()
        log.info(
            "monitor_iteration_done",
            examined=len(proposals),
            disputed=report.count(ProposalAction.DISPUTED),
            expired=report.count(ProposalAction.SKIPPED_EXPIRED),
            failed=report.count(ProposalAction.FAILED),
        )
        return report

    async def _process(self, proposal: Proposal) -> ProposalAction:
        plog = log.bind(proposal=proposal.address)
        if self.clock() >= proposal.liveness_end:
            plog.debug("proposal_expired_skipped", liveness_end=proposal.liveness_end)
            return ProposalAction.SKIPPED_EXPIRED
        try:
            event = await self.ledger.fetch_event(proposal.event_address)
            assessment = await self.aggregator.assess(event.description)
            if assessment.outcome == proposal.outcome:
                return ProposalAction.AGREES
            if not self.gate.disputable(assessment):
                plog.info("mismatch_below_threshold", confidence=assessment.confidence)
                return ProposalAction.BELOW_THRESHOLD
            bundle = bundle_from_assessment(
                event.description, assessment, created_at=self.clock(), kind="dispute"
            )
            stored = await self.store.store(bundle)
            result = await self.engine.dispute(proposal, assessment, stored.digest, self.disputer)
        except Exception as e:
            plog.error("monitor_proposal_failed", error=str(e), error_type=type(e).__name__)
            return ProposalAction.FAILED

        match result:
            case Accepted():
                plog.warning(
                    "dispute_triggered",
                    confidence=assessment.confidence,
                    counter_outcome=assessment.outcome,
                    evidence=stored.content_id,
                )
                return ProposalAction.DISPUTED
            case Rejected(reason=AlreadyFinal() | LivenessExpired()):
                plog.info("dispute_race_lost", code=result.code)
                return ProposalAction.RACE_LOST
            case Rejected():
                plog.warning("dispute_rejected", code=result.code, detail=result.reason.message)
                return ProposalAction.FAILED

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        """Run iterations every interval_sec until stop_event is set."""
        stop = stop_event or asyncio.Event()
        self._stop = stop
        log.info("dispute_monitor_started", interval_sec=self.interval_sec, disputer=self.disputer)
        loop = asyncio.get_running_loop()
        while not stop.is_set():
            started = loop.time()
            try:
                await self.run_iteration()
            except Exception as e:
                log.error("monitor_iteration_failed", error=str(e), error_type=type(e).__name__)
            remaining = max(0.0, self.interval_sec - (loop.time() - started))
            try:
                await asyncio.wait_for(stop.wait(), timeout=remaining)
            except asyncio.TimeoutError:
                pass
        log.info("dispute_monitor_stopped", iterations=self._iterations, disputes=self._disputes_filed)

    def start(self) -> asyncio.Task[None]:
        """Start the recurring task on the running loop."""
        if self._task is not None and not self._task.done():
            return self._task
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self.run(self._stop))
        return self._task

    async def stop(self) -> None:
        """Let an in-flight iteration finish, then stop the timer."""
        if self._stop is not None:
            self._stop.set()
        if self._task is not None:
            await self._task
            self._task = None

    def get_status(self) -> dict[str, Any]:
        last = self._last_report
        return {
            "iterations": self._iterations,
            "disputes_filed": self._disputes_filed,
            "iteration_running": self.iteration_running,
            "last_started_at": last.started_at if last else None,
            "last_finished_at": last.finished_at if last else None,
            "interval_sec": self.interval_sec,
        }
