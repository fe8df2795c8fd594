"""Shared fixtures: temp DuckDB, controllable clock, stub providers."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable

import pytest

from predictlink.aggregator import ConfidenceGate, EvidenceAggregator
from predictlink.evidence import DuckDBEvidenceBackend, EvidenceStore
from predictlink.ledger import LocalLedger
from predictlink.lifecycle import LivenessPolicy, ResolutionEngine, ResolutionPipeline
from predictlink.storage.db import get_connection, init_schema

START = 1_700_000_000
AUTHORITY = "oracle-authority"


class FakeClock:
    def __init__(self, now: int = START) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


class StubEvaluator:
    """Returns a payload per event description (or a default); can raise or block."""

    def __init__(self, default: dict[str, Any] | None = None) -> None:
        self.default = default
        self.by_description: dict[str, Any] = {}
        self.calls: list[str] = []
        self.gate: asyncio.Event | None = None
        self.on_call: Callable[[str], None] | None = None

    def respond(self, description: str, payload: dict[str, Any] | Exception) -> None:
        self.by_description[description] = payload

    async def evaluate(self, prompt: str, schema: dict[str, Any]) -> dict[str, Any]:
        description = next((d for d in self.by_description if d in prompt), None)
        self.calls.append(description or prompt)
        if self.on_call is not None:
            self.on_call(prompt)
        if self.gate is not None:
            await self.gate.wait()
        payload = self.by_description.get(description, self.default) if description else self.default
        if isinstance(payload, Exception):
            raise payload
        return dict(payload)


class StubSource:
    def __init__(self, labels: list[str] | None = None, error: Exception | None = None, delay: float = 0.0, name: str = "stub"):
        self.labels = labels or []
        self.error = error
        self.delay = delay
        self.name = name

    async def search(self, query: str) -> list[str]:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.labels)


def payload(outcome: bool, confidence: float, sources: list[str] | None = None, summary: str = "evidence") -> dict[str, Any]:
    return {
        "confidence": confidence,
        "outcome": outcome,
        "summary": summary,
        "sources": ["AP News"] if sources is None else sources,
    }


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def conn(tmp_path: Path):
    c = get_connection(tmp_path / "test.duckdb")
    init_schema(c)
    yield c
    c.close()


@pytest.fixture
def ledger(conn, clock):
    return LocalLedger(conn, program_id="test-program", authority=AUTHORITY, clock=clock)


@pytest.fixture
def store(conn):
    return EvidenceStore(DuckDBEvidenceBackend(conn), read_retry_sec=0)


@pytest.fixture
def gate():
    return ConfidenceGate(publish_threshold=0.5, dispute_threshold=0.8)


@pytest.fixture
def engine(ledger, gate, clock):
    return ResolutionEngine(ledger, gate, LivenessPolicy(7200, {"high_value": 86400}), clock=clock)


@pytest.fixture
def evaluator():
    return StubEvaluator(default=payload(True, 0.9))


@pytest.fixture
def aggregator(evaluator):
    return EvidenceAggregator(evaluator, [StubSource(["Reuters"])], timeout_sec=1.0)


@pytest.fixture
def pipeline(ledger, aggregator, store, engine, gate):
    return ResolutionPipeline(ledger, aggregator, store, engine, gate)
