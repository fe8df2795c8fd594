"""Canonical serialization and digest of evidence bundles.

Every commitment stored on the ledger is `compute_digest(canonical_bytes(bundle))`.
There is exactly one serialization; proposal and dispute paths both use it.
"""

from __future__ import annotations

import hashlib
import json
from typing import Literal

from predictlink.models import DIGEST_SIZE, Assessment, EvidenceBundle


def canonical_bytes(bundle: EvidenceBundle) -> bytes:
    """Deterministic UTF-8 JSON: sorted keys, compact separators, no NaN."""
    return json.dumps(
        bundle.model_dump(mode="json"),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def compute_digest(data: bytes) -> bytes:
    """SHA-256 of data, truncated to the on-ledger digest width."""
    return hashlib.sha256(data).digest()[:DIGEST_SIZE]


def bundle_from_assessment(
    event_description: str,
    assessment: Assessment,
    *,
    created_at: int,
    kind: Literal["proposal", "dispute"] = "proposal",
) -> EvidenceBundle:
    """Fold an assessment into an evidence bundle."""
    return EvidenceBundle(
        event_description=event_description,
        sources=list(assessment.sources),
        summary=assessment.summary,
        raw_output=dict(assessment.raw_output),
        created_at=created_at,
        kind=kind,
    )
