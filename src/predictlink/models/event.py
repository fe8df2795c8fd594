"""Event - the question to be resolved."""

from __future__ import annotations

from enum import IntEnum

from pydantic import BaseModel, ConfigDict, Field


class ResolutionType(IntEnum):
    """On-ledger resolution type tag. Only BINARY is proposable."""

    BINARY = 0
    MULTI_CHOICE = 1
    NUMERIC = 2


class Event(BaseModel):
    """Immutable event description, created once through the ledger."""

    model_config = ConfigDict(frozen=True)

    address: str
    event_id: int = Field(..., ge=1)
    description: str = Field(..., min_length=1)
    resolution_type: ResolutionType = ResolutionType.BINARY
    market_address: str | None = None
    category: str = "default"
    created_at: int  # unix seconds
    creator: str
