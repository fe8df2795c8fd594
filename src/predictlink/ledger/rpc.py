"""JSON-RPC ledger gateway client (httpx). Maps program error names to the error taxonomy."""

from __future__ import annotations

import itertools
from typing import Any

import httpx
import structlog

from predictlink.errors import (
    AlreadyFinal,
    DuplicateProposal,
    EventNotFound,
    InsufficientBond,
    LedgerFailure,
    LivenessActive,
    LivenessExpired,
    PredictLinkError,
    ProposalNotFound,
    ResolutionMismatch,
    Unauthorized,
)
from predictlink.ledger.base import LedgerClient, TxResult
from predictlink.models import Event, Oracle, Proposal, ResolutionType

log = structlog.get_logger(__name__)

# Program error name -> core error
PROGRAM_ERRORS: dict[str, type[PredictLinkError]] = {
    "AlreadyResolved": AlreadyFinal,
    "AlreadyDisputed": AlreadyFinal,
    "DisputeExpired": LivenessExpired,
    "IdExists": DuplicateProposal,
    "LivenessActive": LivenessActive,
    "Unauthorized": Unauthorized,
    "ResolutionMismatch": ResolutionMismatch,
    "InsufficientBond": InsufficientBond,
    "ProposalNotFound": ProposalNotFound,
    "InvalidEvent": EventNotFound,
}


def _proposal_from_wire(raw: dict[str, Any]) -> Proposal:
    data = dict(raw)
    data["evidence_digest"] = bytes.fromhex(data["evidence_digest"])
    if data.get("dispute_evidence_digest"):
        data["dispute_evidence_digest"] = bytes.fromhex(data["dispute_evidence_digest"])
    else:
        data["dispute_evidence_digest"] = None
    return Proposal.model_validate(data)


def _error_from_wire(error: dict[str, Any]) -> PredictLinkError:
    data = error.get("data") if isinstance(error.get("data"), dict) else {}
    name = str(data.get("name") or error.get("name") or "")
    message = str(error.get("message") or name or "ledger error")
    cls = PROGRAM_ERRORS.get(name, LedgerFailure)
    return cls(message, program_error=name or None, rpc_code=error.get("code"))


class RpcLedgerClient(LedgerClient):
    """Ledger access through a JSON-RPC 2.0 gateway. Digests travel as hex."""

    def __init__(
        self,
        rpc_url: str,
        *,
        program_id: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.program_id = program_id
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)

    async def _call(self, method: str, params: dict[str, Any]) -> Any:
        body = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": {"programId": self.program_id, **params},
        }
        try:
            resp = await self._client.post(self.rpc_url, json=body)
            resp.raise_for_status()
            payload = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise LedgerFailure(f"ledger rpc {method} failed: {e}") from e
        if payload.get("error"):
            err = _error_from_wire(payload["error"])
            log.debug("ledger_rpc_error", method=method, code=err.code)
            raise err
        return payload.get("result")

    async def _tx(self, method: str, params: dict[str, Any]) -> TxResult:
        result = await self._call(method, params)
        return TxResult(signature=result["signature"], proposal=_proposal_from_wire(result["proposal"]))

    async def fetch_oracle(self) -> Oracle:
        return Oracle.model_validate(await self._call("getOracle", {}))

    async def create_event(
        self,
        description: str,
        creator: str,
        *,
        market_address: str | None = None,
        category: str = "default",
        resolution_type: ResolutionType = ResolutionType.BINARY,
    ) -> Event:
        result = await self._call(
            "createEvent",
            {
                "description": description,
                "creator": creator,
                "market": market_address,
                "category": category,
                "resolutionType": int(resolution_type),
            },
        )
        return Event.model_validate(result)

    async def fetch_event(self, address: str) -> Event:
        result = await self._call("getEvent", {"address": address})
        if result is None:
            raise EventNotFound(f"event {address} not found", address=address)
        return Event.model_validate(result)

    async def list_events(self) -> list[Event]:
        return [Event.model_validate(r) for r in await self._call("listEvents", {}) or []]

    async def fetch_proposal(self, address: str) -> Proposal:
        result = await self._call("getProposal", {"address": address})
        if result is None:
            raise ProposalNotFound(f"proposal {address} not found", address=address)
        return _proposal_from_wire(result)

    async def find_proposal_for_event(self, event_address: str) -> Proposal | None:
        result = await self._call("getProposalForEvent", {"event": event_address})
        return _proposal_from_wire(result) if result else None

    async def list_proposals(self) -> list[Proposal]:
        return [_proposal_from_wire(r) for r in await self._call("listProposals", {"active": False}) or []]

    async def list_active_proposals(self) -> list[Proposal]:
        rows = await self._call("listProposals", {"active": True}) or []
        proposals = [_proposal_from_wire(r) for r in rows]
        return [p for p in proposals if not p.resolved and not p.disputed]

    async def submit_propose(
        self,
        event: Event,
        outcome: bool,
        digest: bytes,
        proposer: str,
        *,
        liveness_end: int,
        bond: int,
    ) -> TxResult:
        return await self._tx(
            "propose",
            {
                "event": event.address,
                "outcome": outcome,
                "evidenceHash": digest.hex(),
                "proposer": proposer,
                "livenessEnd": liveness_end,
                "bond": bond,
            },
        )

    async def submit_dispute(self, proposal: Proposal, digest: bytes, disputer: str, *, bond: int) -> TxResult:
        return await self._tx(
            "dispute",
            {
                "proposal": proposal.address,
                "event": proposal.event_address,
                "counterEvidenceHash": digest.hex(),
                "disputer": disputer,
                "bond": bond,
            },
        )

    async def submit_resolve(self, proposal: Proposal, outcome: bool, authority: str) -> TxResult:
        return await self._tx(
            "resolve",
            {
                "proposal": proposal.address,
                "event": proposal.event_address,
                "finalOutcome": outcome,
                "authority": authority,
            },
        )

    async def close(self) -> None:
        await self._client.aclose()
