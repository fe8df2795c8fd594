"""Error taxonomy shared by evidence, aggregator, ledger, lifecycle and monitor."""

from __future__ import annotations


class PredictLinkError(Exception):
    """Base for all oracle core errors. `code` is machine-readable."""

    code = "error"

    def __init__(self, message: str = "", **context: object) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.context = context


class ValidationError(PredictLinkError):
    """Bad input shape. Fatal, nothing is submitted."""

    code = "validation_error"


# --- Policy rejections (expected outcomes of racy operation) ---
class PolicyRejection(PredictLinkError):
    code = "policy_rejection"


class LowConfidence(PolicyRejection):
    code = "low_confidence"


class DuplicateProposal(PolicyRejection):
    code = "duplicate_proposal"


class LivenessExpired(PolicyRejection):
    code = "liveness_expired"


class AlreadyFinal(PolicyRejection):
    code = "already_final"


class LivenessActive(PolicyRejection):
    code = "liveness_active"


class Unauthorized(PolicyRejection):
    code = "unauthorized"


class ResolutionMismatch(PolicyRejection):
    code = "resolution_mismatch"


class InsufficientBond(PolicyRejection):
    code = "insufficient_bond"


# --- Provider failures ---
class ProviderFailure(PredictLinkError):
    code = "provider_failure"


class SourceUnavailable(ProviderFailure):
    code = "source_unavailable"


class EvaluationFailure(ProviderFailure):
    """Evaluation call failed (timeout, quota, transport)."""

    code = "evaluation_failure"


class AssessmentFormatError(EvaluationFailure):
    """Evaluation output failed schema validation."""

    code = "assessment_format_error"


class StorageFailure(ProviderFailure):
    code = "storage_failure"


class LedgerFailure(ProviderFailure):
    code = "ledger_failure"


# --- Lookups ---
class NotFound(PredictLinkError):
    code = "not_found"


class EvidenceNotFound(NotFound):
    code = "evidence_not_found"


class EventNotFound(NotFound):
    code = "event_not_found"


class ProposalNotFound(NotFound):
    code = "proposal_not_found"


class IntegrityError(PredictLinkError):
    """Evidence bytes do not deserialize or do not match their digest."""

    code = "integrity_error"
