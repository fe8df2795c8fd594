"""Build the oracle components from Settings."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from predictlink.aggregator import ConfidenceGate, EvidenceAggregator, NewsApiSource, OpenAIEvaluator, StaticSource
from predictlink.aggregator.sources import SourceProvider
from predictlink.clock import Clock, system_clock
from predictlink.config.settings import Settings
from predictlink.errors import EvaluationFailure
from predictlink.evidence import DuckDBEvidenceBackend, EvidenceStore, HttpEvidenceBackend
from predictlink.ledger import LedgerClient, LocalLedger, RpcLedgerClient
from predictlink.lifecycle import BondPolicy, LivenessPolicy, ResolutionEngine, ResolutionPipeline
from predictlink.monitor import DisputeMonitor
from predictlink.storage.db import get_connection, init_schema

log = structlog.get_logger(__name__)


@dataclass
class Components:
    settings: Settings
    ledger: LedgerClient
    store: EvidenceStore
    gate: ConfidenceGate
    engine: ResolutionEngine
    aggregator: EvidenceAggregator | None = None
    _closeables: list[Any] = field(default_factory=list)
    _conn: Any = None

    def pipeline(self) -> ResolutionPipeline:
        return ResolutionPipeline(self.ledger, self.aggregator, self.store, self.engine, self.gate)

    def monitor(self) -> DisputeMonitor:
        return DisputeMonitor(
            self.ledger,
            self.require_aggregator(),
            self.store,
            self.engine,
            disputer=self.settings.disputer,
            gate=self.gate,
            interval_sec=self.settings.monitor_interval_sec,
            max_concurrency=self.settings.monitor_max_concurrency,
        )

    def require_aggregator(self) -> EvidenceAggregator:
        if self.aggregator is None:
            raise EvaluationFailure("no evaluation provider configured (set OPENAI_API_KEY)")
        return self.aggregator

    async def close(self) -> None:
        for obj in self._closeables:
            await obj.aclose()
        await self.ledger.close()
        if self._conn is not None:
            self._conn.close()
            self._conn = None


def build_sources(settings: Settings) -> list[SourceProvider]:
    sources: list[SourceProvider] = []
    if settings.newsapi_key:
        sources.append(NewsApiSource(settings.newsapi_key, base_url=settings.newsapi_base))
    if settings.static_sources:
        sources.append(StaticSource(settings.static_sources))
    return sources


def build_components(settings: Settings, clock: Clock | None = None) -> Components:
    """Wire ledger, evidence store, aggregator and engine according to config."""
    clock = clock or system_clock
    conn = None
    closeables: list[Any] = []

    if settings.ledger_backend == "local" or settings.evidence_backend == "duckdb":
        conn = get_connection(settings.db_path)
        init_schema(conn)

    if settings.ledger_backend == "rpc":
        ledger: LedgerClient = RpcLedgerClient(settings.ledger_rpc_url, program_id=settings.program_id)
    else:
        ledger = LocalLedger(
            conn,
            program_id=settings.program_id,
            authority=settings.authority,
            bond_amount=settings.bond_amount,
            liveness_period=settings.liveness_sec,
            clock=clock,
        )

    if settings.evidence_backend == "http":
        backend = HttpEvidenceBackend(
            settings.evidence_gateway_url,
            settings.evidence_upload_url,
            timeout=settings.evidence_timeout_sec,
        )
        closeables.append(backend)
    else:
        backend = DuckDBEvidenceBackend(conn)
    store = EvidenceStore(backend, app_name=settings.evidence_app_name, read_retry_sec=settings.evidence_read_retry_sec)

    aggregator = None
    if settings.openai_api_key:
        evaluator = OpenAIEvaluator(
            settings.openai_api_key,
            model=settings.evaluation_model,
            temperature=settings.evaluation_temperature,
            base_url=settings.evaluation_base_url,
            timeout=settings.aggregator_timeout_sec,
        )
        sources = build_sources(settings)
        closeables.append(evaluator)
        closeables.extend(s for s in sources if hasattr(s, "aclose"))
        aggregator = EvidenceAggregator(evaluator, sources, timeout_sec=settings.aggregator_timeout_sec)
    else:
        log.debug("aggregator_disabled", reason="OPENAI_API_KEY not set")

    gate = ConfidenceGate(settings.publish_threshold, settings.dispute_threshold)
    engine = ResolutionEngine(
        ledger,
        gate,
        LivenessPolicy(settings.liveness_sec, settings.liveness_by_category),
        BondPolicy(settings.bond_amount, settings.bond_multipliers),
        clock=clock,
    )
    return Components(
        settings=settings,
        ledger=ledger,
        store=store,
        gate=gate,
        engine=engine,
        aggregator=aggregator,
        _closeables=closeables,
        _conn=conn,
    )
