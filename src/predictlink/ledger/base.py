"""Abstract ledger client - the narrow contract the oracle core needs from the ledger."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from predictlink.models import Event, Oracle, Proposal, ResolutionType


@dataclass(frozen=True)
class TxResult:
    """Confirmed ledger transaction and the proposal state it produced."""

    signature: str
    proposal: Proposal


class LedgerClient(ABC):
    """Each submit_* is atomic on the ledger side and raises the PolicyRejection
    matching the violated precondition (AlreadyFinal, LivenessExpired, ...)."""

    program_id: str = ""

    @abstractmethod
    async def fetch_oracle(self) -> Oracle: ...

    @abstractmethod
    async def create_event(
        self,
        description: str,
        creator: str,
        *,
        market_address: str | None = None,
        category: str = "default",
        resolution_type: ResolutionType = ResolutionType.BINARY,
    ) -> Event: ...

    @abstractmethod
    async def fetch_event(self, address: str) -> Event:
        """Raise EventNotFound if absent."""
        ...

    @abstractmethod
    async def list_events(self) -> list[Event]: ...

    @abstractmethod
    async def fetch_proposal(self, address: str) -> Proposal:
        """Latest round at the proposal address. Raise ProposalNotFound if absent."""
        ...

    @abstractmethod
    async def find_proposal_for_event(self, event_address: str) -> Proposal | None: ...

    @abstractmethod
    async def list_proposals(self) -> list[Proposal]: ...

    @abstractmethod
    async def list_active_proposals(self) -> list[Proposal]:
        """Current proposals with resolved == False and disputed == False."""
        ...

    @abstractmethod
    async def submit_propose(
        self,
        event: Event,
        outcome: bool,
        digest: bytes,
        proposer: str,
        *,
        liveness_end: int,
        bond: int,
    ) -> TxResult: ...

    @abstractmethod
    async def submit_dispute(
        self,
        proposal: Proposal,
        digest: bytes,
        disputer: str,
        *,
        bond: int,
    ) -> TxResult: ...

    @abstractmethod
    async def submit_resolve(self, proposal: Proposal, outcome: bool, authority: str) -> TxResult: ...

    async def close(self) -> None:
        pass
