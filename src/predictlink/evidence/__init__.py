"""Content-addressed evidence attestation: canonical bundles, digests, durable backends."""

from predictlink.evidence.attestation import bundle_from_assessment, canonical_bytes, compute_digest
from predictlink.evidence.backends import DuckDBEvidenceBackend, EvidenceBackend, HttpEvidenceBackend
from predictlink.evidence.store import EvidenceStore, StoredEvidence

__all__ = [
    "EvidenceStore",
    "StoredEvidence",
    "EvidenceBackend",
    "DuckDBEvidenceBackend",
    "HttpEvidenceBackend",
    "bundle_from_assessment",
    "canonical_bytes",
    "compute_digest",
]
