"""Evidence aggregator - gather sources, run structured evaluation, return an Assessment."""

from __future__ import annotations

import asyncio
from typing import Any

import pydantic
import structlog

from predictlink.aggregator.evaluation import AssessmentPayload, EvaluationProvider, SchemaError
from predictlink.aggregator.sources import SourceProvider
from predictlink.errors import AssessmentFormatError, EvaluationFailure
from predictlink.models import Assessment

log = structlog.get_logger(__name__)

ASSESSMENT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "confidence": {"type": "number", "description": "Confidence score between 0 and 1"},
        "outcome": {"type": "boolean", "description": "True/False for binary outcome"},
        "summary": {"type": "string", "description": "Brief summary of evidence"},
        "sources": {"type": "array", "items": {"type": "string"}, "description": "List of verified sources"},
    },
    "required": ["confidence", "outcome", "summary", "sources"],
    "additionalProperties": False,
}

PROMPT_TEMPLATE = """You are an AI evidence aggregator for prediction markets. For the event: {event_description}

Aggregate evidence from reliable sources such as AP News, Reuters and official APIs (sports APIs, government sites).
Look for corroborating data and score your confidence by the degree of consensus.

Sources found for this event:
{sources}

Respond only with a JSON object with keys: confidence (0..1), outcome (true/false), summary, sources."""


class ConfidenceGate:
    """Confidence policy: publish (autonomous proposal) and dispute thresholds."""

    def __init__(self, publish_threshold: float = 0.5, dispute_threshold: float = 0.8) -> None:
        self.publish_threshold = publish_threshold
        self.dispute_threshold = dispute_threshold

    def publishable(self, assessment: Assessment) -> bool:
        return assessment.confidence >= self.publish_threshold and bool(assessment.sources)

    def disputable(self, assessment: Assessment) -> bool:
        return assessment.confidence >= self.dispute_threshold


def _dedupe(labels: list[str]) -> list[str]:
    seen: set[str] = set()
    out = []
    for label in labels:
        label = label.strip()
        if label and label not in seen:
            seen.add(label)
            out.append(label)
    return out


class EvidenceAggregator:
    """Gathers source labels concurrently, then evaluates against ASSESSMENT_SCHEMA."""

    def __init__(
        self,
        evaluator: EvaluationProvider,
        sources: list[SourceProvider] | None = None,
        *,
        timeout_sec: float = 20.0,
        source_timeout_sec: float | None = None,
    ) -> None:
        self.evaluator = evaluator
        self.sources = list(sources or [])
        # timeout_sec bounds the whole assess call; gathering gets a share of it
        self.timeout_sec = timeout_sec
        self.source_timeout_sec = source_timeout_sec if source_timeout_sec is not None else timeout_sec / 2

    async def gather_sources(self, query: str) -> list[str]:
        """Query every provider concurrently. Failures and timeouts degrade to fewer labels."""
        if not self.sources:
            return []
        collected: dict[int, list[str]] = {}

        async def one(idx: int, provider: SourceProvider) -> None:
            try:
                collected[idx] = await provider.search(query)
            except Exception as e:
                log.warning("source_failed", provider=getattr(provider, "name", type(provider).__name__), error=str(e))

        tasks = [asyncio.create_task(one(i, p)) for i, p in enumerate(self.sources)]
        done, pending = await asyncio.wait(tasks, timeout=self.source_timeout_sec)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            log.warning("source_timeout", pending=len(pending), timeout_sec=self.source_timeout_sec)
        labels: list[str] = []
        for idx in sorted(collected):
            labels.extend(collected[idx])
        return _dedupe(labels)

    async def assess(self, event_description: str) -> Assessment:
        """Produce an Assessment within timeout_sec. Evaluation failures are fatal for this call."""
        try:
            return await asyncio.wait_for(self._assess(event_description), timeout=self.timeout_sec)
        except asyncio.TimeoutError as e:
            log.warning("assessment_timeout", timeout_sec=self.timeout_sec)
            raise EvaluationFailure(f"assessment exceeded {self.timeout_sec}s", timeout_sec=self.timeout_sec) from e

    async def _assess(self, event_description: str) -> Assessment:
        gathered = await self.gather_sources(event_description)
        prompt = PROMPT_TEMPLATE.format(
            event_description=event_description,
            sources="\n".join(f"- {s}" for s in gathered) or "- (none found)",
        )
        try:
            raw = await self.evaluator.evaluate(prompt, ASSESSMENT_SCHEMA)
        except SchemaError as e:
            raise AssessmentFormatError(str(e)) from e
        except EvaluationFailure:
            raise
        except Exception as e:
            raise EvaluationFailure(f"evaluation call failed: {e}") from e
        try:
            payload = AssessmentPayload.model_validate(raw)
        except pydantic.ValidationError as e:
            raise AssessmentFormatError(f"evaluation output failed schema validation: {e}") from e
        assessment = Assessment(
            confidence=payload.confidence,
            outcome=payload.outcome,
            summary=payload.summary,
            sources=_dedupe(payload.sources + gathered),
            raw_output=payload.model_dump(),
        )
        log.info(
            "assessment_ready",
            confidence=assessment.confidence,
            outcome=assessment.outcome,
            sources=len(assessment.sources),
        )
        return assessment
