"""Local development ledger on DuckDB.

Enforces the same preconditions the on-chain program does, so the oracle core
can run end-to-end without a chain. Writes are serialized and transactional.
"""

from __future__ import annotations

import secrets
import threading
from typing import TYPE_CHECKING, Any

import structlog

from predictlink.clock import Clock, system_clock
from predictlink.errors import (
    AlreadyFinal,
    DuplicateProposal,
    EventNotFound,
    LivenessActive,
    LivenessExpired,
    ProposalNotFound,
    ResolutionMismatch,
    Unauthorized,
    ValidationError,
)
from predictlink.ledger.addressing import derive_event_address, derive_oracle_address, derive_proposal_address
from predictlink.ledger.base import LedgerClient, TxResult
from predictlink.models import Event, Oracle, Proposal, ResolutionType
from predictlink.storage.db import init_schema

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

log = structlog.get_logger(__name__)

_PROPOSAL_COLUMNS = [
    "address",
    "round",
    "event_address",
    "proposer",
    "outcome",
    "evidence_digest",
    "submitted_at",
    "liveness_end",
    "bonded_amount",
    "resolved",
    "disputed",
    "dispute_bond",
    "disputer",
    "dispute_evidence_digest",
    "resolver",
    "final_outcome",
]
_EVENT_COLUMNS = [
    "address",
    "event_id",
    "description",
    "resolution_type",
    "market_address",
    "category",
    "created_at",
    "creator",
]
# Latest round per proposal address
_CURRENT = (
    f"SELECT {', '.join(_PROPOSAL_COLUMNS)} FROM proposals p "
    "WHERE p.round = (SELECT MAX(q.round) FROM proposals q WHERE q.address = p.address)"
)


def _new_signature() -> str:
    return secrets.token_urlsafe(48)


def _row_to_proposal(row: tuple[Any, ...]) -> Proposal:
    data = dict(zip(_PROPOSAL_COLUMNS, row))
    data["evidence_digest"] = bytes(data["evidence_digest"])
    if data["dispute_evidence_digest"] is not None:
        data["dispute_evidence_digest"] = bytes(data["dispute_evidence_digest"])
    return Proposal.model_validate(data)


def _row_to_event(row: tuple[Any, ...]) -> Event:
    return Event.model_validate(dict(zip(_EVENT_COLUMNS, row)))


class LocalLedger(LedgerClient):
    """DuckDB-backed ledger: oracle singleton, events, proposals (history by round)."""

    def __init__(
        self,
        conn: DuckDBPyConnection,
        *,
        program_id: str,
        authority: str,
        bond_amount: int = 1_000_000,
        liveness_period: int = 7200,
        clock: Clock | None = None,
    ) -> None:
        self._conn = conn
        self.program_id = program_id
        self.oracle_address = derive_oracle_address(program_id)
        self._clock = clock or system_clock
        self._lock = threading.Lock()
        init_schema(conn)
        self._initialize(authority, bond_amount, liveness_period)

    def _initialize(self, authority: str, bond_amount: int, liveness_period: int) -> None:
        """Create the oracle singleton on first use; existing config is kept."""
        with self._lock:
            exists = self._conn.execute(
                "SELECT 1 FROM oracle WHERE address = ?", [self.oracle_address]
            ).fetchone()
            if exists is None:
                self._conn.execute(
                    "INSERT INTO oracle (address, authority, bond_amount, liveness_period) VALUES (?, ?, ?, ?)",
                    [self.oracle_address, authority, bond_amount, liveness_period],
                )
                log.info("oracle_initialized", oracle=self.oracle_address, authority=authority)

    def _oracle(self) -> Oracle:
        row = self._conn.execute(
            "SELECT address, authority, active_proposals, total_resolved, bond_amount, liveness_period "
            "FROM oracle WHERE address = ?",
            [self.oracle_address],
        ).fetchone()
        cols = ["address", "authority", "active_proposals", "total_resolved", "bond_amount", "liveness_period"]
        return Oracle.model_validate(dict(zip(cols, row)))

    def _current(self, address: str) -> Proposal | None:
        row = self._conn.execute(f"{_CURRENT} AND p.address = ?", [address]).fetchone()
        return _row_to_proposal(row) if row else None

    def _transaction(self):
        return _Tx(self._conn)

    # --- reads ---
    async def fetch_oracle(self) -> Oracle:
        with self._lock:
            return self._oracle()

    async def fetch_event(self, address: str) -> Event:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {', '.join(_EVENT_COLUMNS)} FROM events WHERE address = ?", [address]
            ).fetchone()
        if row is None:
            raise EventNotFound(f"event {address} not found", address=address)
        return _row_to_event(row)

    async def list_events(self) -> list[Event]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {', '.join(_EVENT_COLUMNS)} FROM events ORDER BY event_id"
            ).fetchall()
        return [_row_to_event(r) for r in rows]

    async def fetch_proposal(self, address: str) -> Proposal:
        with self._lock:
            proposal = self._current(address)
        if proposal is None:
            raise ProposalNotFound(f"proposal {address} not found", address=address)
        return proposal

    async def find_proposal_for_event(self, event_address: str) -> Proposal | None:
        with self._lock:
            return self._current(derive_proposal_address(self.program_id, event_address))

    async def list_proposals(self) -> list[Proposal]:
        with self._lock:
            rows = self._conn.execute(f"{_CURRENT} ORDER BY submitted_at").fetchall()
        return [_row_to_proposal(r) for r in rows]

    async def list_active_proposals(self) -> list[Proposal]:
        with self._lock:
            rows = self._conn.execute(
                f"{_CURRENT} AND NOT p.resolved AND NOT p.disputed ORDER BY liveness_end"
            ).fetchall()
        return [_row_to_proposal(r) for r in rows]

    # --- writes ---
    async def create_event(
        self,
        description: str,
        creator: str,
        *,
        market_address: str | None = None,
        category: str = "default",
        resolution_type: ResolutionType = ResolutionType.BINARY,
    ) -> Event:
        if not description.strip():
            raise ValidationError("event description must not be empty")
        address = derive_event_address(self.program_id, self.oracle_address, description)
        with self._lock:
            exists = self._conn.execute("SELECT 1 FROM events WHERE address = ?", [address]).fetchone()
            if exists is not None:
                raise ValidationError("an event with this description already exists", address=address)
            self._conn.execute(
                "INSERT INTO events (address, description, resolution_type, market_address, category, created_at, creator) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                [address, description, int(resolution_type), market_address, category, self._clock(), creator],
            )
        event = await self.fetch_event(address)
        log.info("event_created", event_address=address, event_id=event.event_id)
        return event

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
        address = derive_proposal_address(self.program_id, event.address)
        with self._lock, self._transaction():
            exists = self._conn.execute("SELECT 1 FROM events WHERE address = ?", [event.address]).fetchone()
            if exists is None:
                raise EventNotFound(f"event {event.address} not found", address=event.address)
            if event.resolution_type != ResolutionType.BINARY:
                raise ResolutionMismatch("only binary events can be proposed")
            current = self._current(address)
            if current is not None and not current.resolved:
                raise DuplicateProposal("a live proposal already exists for this event", proposal=address)
            next_round = current.round + 1 if current is not None else 1
            self._conn.execute(
                "INSERT INTO proposals (address, round, event_address, proposer, outcome, evidence_digest, "
                "submitted_at, liveness_end, bonded_amount) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [address, next_round, event.address, proposer, outcome, bytes(digest), self._clock(), liveness_end, bond],
            )
            self._conn.execute(
                "UPDATE oracle SET active_proposals = active_proposals + 1 WHERE address = ?",
                [self.oracle_address],
            )
            proposal = self._current(address)
        return TxResult(signature=_new_signature(), proposal=proposal)

    async def submit_dispute(
        self,
        proposal: Proposal,
        digest: bytes,
        disputer: str,
        *,
        bond: int,
    ) -> TxResult:
        with self._lock, self._transaction():
            current = self._current(proposal.address)
            if current is None:
                raise ProposalNotFound(f"proposal {proposal.address} not found", address=proposal.address)
            if current.resolved or current.disputed:
                raise AlreadyFinal("proposal is already disputed or resolved", proposal=proposal.address)
            if self._clock() >= current.liveness_end:
                raise LivenessExpired("dispute window has closed", proposal=proposal.address)
            self._conn.execute(
                "UPDATE proposals SET disputed = TRUE, disputer = ?, dispute_bond = ?, dispute_evidence_digest = ? "
                "WHERE address = ? AND round = ?",
                [disputer, bond, bytes(digest), current.address, current.round],
            )
            updated = self._current(proposal.address)
        return TxResult(signature=_new_signature(), proposal=updated)

    async def submit_resolve(self, proposal: Proposal, outcome: bool, authority: str) -> TxResult:
        with self._lock, self._transaction():
            current = self._current(proposal.address)
            if current is None:
                raise ProposalNotFound(f"proposal {proposal.address} not found", address=proposal.address)
            if current.resolved:
                raise AlreadyFinal("proposal is already resolved", proposal=proposal.address)
            if current.disputed:
                if authority != self._oracle().authority:
                    raise Unauthorized("only the oracle authority may resolve a disputed proposal")
            else:
                if self._clock() < current.liveness_end:
                    raise LivenessActive("liveness window is still open", proposal=proposal.address)
                if outcome != current.outcome:
                    raise ResolutionMismatch("undisputed proposals resolve to the proposed outcome")
            self._conn.execute(
                "UPDATE proposals SET resolved = TRUE, resolver = ?, final_outcome = ? WHERE address = ? AND round = ?",
                [authority, outcome, current.address, current.round],
            )
            self._conn.execute(
                "UPDATE oracle SET active_proposals = GREATEST(active_proposals - 1, 0), "
                "total_resolved = total_resolved + 1 WHERE address = ?",
                [self.oracle_address],
            )
            updated = self._current(proposal.address)
        return TxResult(signature=_new_signature(), proposal=updated)


class _Tx:
    """BEGIN/COMMIT around a block; ROLLBACK on any exception."""

    def __init__(self, conn: DuckDBPyConnection) -> None:
        self._conn = conn

    def __enter__(self) -> _Tx:
        self._conn.begin()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self._conn.commit()
        else:
            self._conn.rollback()
