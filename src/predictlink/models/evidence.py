"""Assessment (aggregator output) and EvidenceBundle (stored evidence)."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Assessment(BaseModel):
    """Confidence-scored outcome assessment for one event description."""

    model_config = ConfigDict(frozen=True)

    confidence: float
    outcome: bool
    summary: str = ""
    sources: list[str] = Field(default_factory=list)
    raw_output: dict[str, Any] = Field(default_factory=dict)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v: Any) -> float:
        value = float(v)
        if value != value:  # NaN
            return 0.0
        return min(1.0, max(0.0, value))


class EvidenceBundle(BaseModel):
    """Evidence backing a proposal or a dispute. Immutable once stored."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    event_description: str
    sources: list[str] = Field(default_factory=list)
    summary: str = ""
    raw_output: dict[str, Any] = Field(default_factory=dict)
    created_at: int  # unix seconds
    kind: Literal["proposal", "dispute"] = "proposal"
