"""Liveness and bond policy, selected by event category."""

from __future__ import annotations


class LivenessPolicy:
    """Liveness window length in seconds; longer windows for high-value categories."""

    def __init__(self, default_sec: int = 7200, by_category: dict[str, int] | None = None) -> None:
        if default_sec <= 0:
            raise ValueError("liveness must be positive")
        self.default_sec = default_sec
        self.by_category = dict(by_category or {})

    def duration(self, category: str | None = None) -> int:
        return int(self.by_category.get(category or "", self.default_sec))


class BondPolicy:
    """Fixed base bond, optionally scaled per category (risk-scaled mode)."""

    def __init__(self, base_amount: int = 1_000_000, multipliers: dict[str, float] | None = None) -> None:
        self.base_amount = base_amount
        self.multipliers = dict(multipliers or {})

    def amount(self, category: str | None = None) -> int:
        return int(round(self.base_amount * self.multipliers.get(category or "", 1.0)))

    def dispute_amount(self, proposer_bond: int) -> int:
        """Disputers match the proposer's stake."""
        return proposer_bond if proposer_bond > 0 else self.base_amount
