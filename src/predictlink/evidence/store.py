"""Evidence store - store/retrieve/verify evidence bundles by content id and digest."""

from __future__ import annotations

import hmac
import json
from dataclasses import dataclass

import pydantic
import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_delay, wait_exponential

from predictlink.errors import EvidenceNotFound, IntegrityError, ValidationError
from predictlink.evidence.attestation import canonical_bytes, compute_digest
from predictlink.evidence.backends import EvidenceBackend
from predictlink.models import DIGEST_SIZE, EvidenceBundle

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StoredEvidence:
    content_id: str
    digest: bytes

    @property
    def digest_hex(self) -> str:
        return self.digest.hex()


class EvidenceStore:
    """Binds evidence bundles to 32-byte digests. The ledger stores the digest, not the id."""

    def __init__(
        self,
        backend: EvidenceBackend,
        *,
        app_name: str = "PredictLink-Oracle",
        read_retry_sec: float = 5.0,
    ) -> None:
        self.backend = backend
        self.app_name = app_name
        self.read_retry_sec = read_retry_sec

    async def store(self, bundle: EvidenceBundle) -> StoredEvidence:
        """Serialize, digest, upload. Safe to retry: same bundle -> same digest."""
        data = canonical_bytes(bundle)
        digest = compute_digest(data)
        tags = {
            "Content-Type": "application/json",
            "App-Name": self.app_name,
            "Event-Type": "Evidence-Bundle",
            "Bundle-Kind": bundle.kind,
            "Digest": digest.hex(),
        }
        content_id = await self.backend.put(data, tags)
        log.info("evidence_stored", content_id=content_id, digest=digest.hex(), kind=bundle.kind)
        return StoredEvidence(content_id=content_id, digest=digest)

    async def _get_bytes(self, content_id: str) -> bytes:
        """Read raw bytes, retrying not-found for a short window (eventual consistency)."""
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(EvidenceNotFound),
            stop=stop_after_delay(self.read_retry_sec),
            wait=wait_exponential(multiplier=0.25, max=2.0),
            reraise=True,
        ):
            with attempt:
                return await self.backend.get(content_id)
        raise EvidenceNotFound(f"no evidence with id {content_id}", content_id=content_id)

    async def retrieve(self, content_id: str) -> EvidenceBundle:
        data = await self._get_bytes(content_id)
        return _decode(content_id, data)

    async def verify(self, content_id: str, expected_digest: bytes) -> bool:
        """True iff the stored bytes hash to expected_digest. Mismatch returns False."""
        data = await self._get_bytes(content_id)
        ok = hmac.compare_digest(compute_digest(data), bytes(expected_digest))
        if not ok:
            log.warning("evidence_digest_mismatch", content_id=content_id, expected=bytes(expected_digest).hex())
        return ok

    async def retrieve_verified(self, content_id: str, expected_digest: bytes) -> EvidenceBundle:
        """Retrieve and refuse to return evidence whose bytes do not match the digest."""
        if len(expected_digest) != DIGEST_SIZE:
            raise ValidationError(f"digest must be {DIGEST_SIZE} bytes")
        data = await self._get_bytes(content_id)
        actual = compute_digest(data)
        if not hmac.compare_digest(actual, bytes(expected_digest)):
            raise IntegrityError(
                "evidence digest mismatch",
                content_id=content_id,
                expected=bytes(expected_digest).hex(),
                actual=actual.hex(),
            )
        return _decode(content_id, data)


def _decode(content_id: str, data: bytes) -> EvidenceBundle:
    try:
        return EvidenceBundle.model_validate(json.loads(data.decode("utf-8")))
    except (UnicodeDecodeError, json.JSONDecodeError, pydantic.ValidationError) as e:
        raise IntegrityError(f"evidence {content_id} is not a valid bundle: {e}", content_id=content_id) from e
