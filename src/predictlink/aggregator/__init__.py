"""Evidence aggregation: source providers, structured evaluation, confidence gate."""

from predictlink.aggregator.aggregator import ASSESSMENT_SCHEMA, ConfidenceGate, EvidenceAggregator
from predictlink.aggregator.evaluation import AssessmentPayload, EvaluationProvider, OpenAIEvaluator, SchemaError
from predictlink.aggregator.sources import NewsApiSource, SourceProvider, StaticSource

__all__ = [
    "ASSESSMENT_SCHEMA",
    "AssessmentPayload",
    "ConfidenceGate",
    "EvaluationProvider",
    "EvidenceAggregator",
    "NewsApiSource",
    "OpenAIEvaluator",
    "SchemaError",
    "SourceProvider",
    "StaticSource",
]
