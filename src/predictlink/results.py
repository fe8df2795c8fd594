"""Typed lifecycle results: Accepted | Rejected, matched on by callers."""

from __future__ import annotations

from dataclasses import dataclass

from predictlink.errors import PolicyRejection
from predictlink.models import Proposal


@dataclass(frozen=True)
class Accepted:
    """Ledger accepted the transition."""

    proposal: Proposal
    signature: str

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Rejected:
    """Transition refused by policy; the proposal (if any) is unchanged."""

    reason: PolicyRejection

    @property
    def ok(self) -> bool:
        return False

    @property
    def code(self) -> str:
        return self.reason.code


LifecycleResult = Accepted | Rejected
