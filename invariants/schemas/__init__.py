"""Pydantic schemas."""

from invariants.schemas.chain import (
    PartitionProgress,
    PartitionRef,
    TerminationPreview,
    TipSet,
)
from invariants.schemas.ledger import (
    Agent,
    AgentEcon,
    AvailableBalanceSnapshot,
    IFILTotalSupply,
    MinerDetails,
    ProtocolMetrics,
    TransactionRecord,
)

__all__ = [
    "Agent",
    "AgentEcon",
    "AvailableBalanceSnapshot",
    "IFILTotalSupply",
    "MinerDetails",
    "PartitionProgress",
    "PartitionRef",
    "ProtocolMetrics",
    "TerminationPreview",
    "TipSet",
    "TransactionRecord",
]
