"""Proposal ledger client: contract, address derivation, local and RPC implementations."""

from predictlink.ledger.addressing import derive_event_address, derive_oracle_address, derive_proposal_address
from predictlink.ledger.base import LedgerClient, TxResult
from predictlink.ledger.local import LocalLedger
from predictlink.ledger.rpc import RpcLedgerClient

__all__ = [
    "LedgerClient",
    "LocalLedger",
    "RpcLedgerClient",
    "TxResult",
    "derive_event_address",
    "derive_oracle_address",
    "derive_proposal_address",
]
