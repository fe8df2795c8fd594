"""Deterministic ledger addresses. A proposal address is always derived from its event address."""

from __future__ import annotations

import hashlib

_PDA_MARKER = b"ProgramDerivedAddress"


def _derive(program_id: str, *seeds: bytes | str) -> str:
    h = hashlib.sha256()
    for seed in seeds:
        b = seed.encode("utf-8") if isinstance(seed, str) else seed
        h.update(len(b).to_bytes(4, "big"))
        h.update(b)
    h.update(program_id.encode("utf-8"))
    h.update(_PDA_MARKER)
    return h.hexdigest()


def derive_oracle_address(program_id: str) -> str:
    return _derive(program_id, "oracle")


def derive_event_address(program_id: str, oracle_address: str, description: str) -> str:
    return _derive(program_id, "event", oracle_address, description)


def derive_proposal_address(program_id: str, event_address: str) -> str:
    return _derive(program_id, "proposal", event_address)
