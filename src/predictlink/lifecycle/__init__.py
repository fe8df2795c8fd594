"""Resolution lifecycle: propose -> (dispute) -> resolve, under liveness and bond policy."""

from predictlink.lifecycle.engine import ResolutionEngine
from predictlink.lifecycle.pipeline import ProposalSubmission, ResolutionPipeline, SubmissionStatus
from predictlink.lifecycle.policy import BondPolicy, LivenessPolicy

__all__ = [
    "BondPolicy",
    "LivenessPolicy",
    "ProposalSubmission",
    "ResolutionEngine",
    "ResolutionPipeline",
    "SubmissionStatus",
]
