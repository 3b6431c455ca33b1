"""Chain query service schemas."""

from typing import Any  # noqa: I001

from pydantic import BaseModel, Field

from invariants.schemas.ledger import BigInt


class TipSet(BaseModel):
    """Subset of a Lotus tipset needed for height handling."""

    model_config = {"populate_by_name": True}

    height: int = Field(..., alias="Height", description="Chain epoch of the tipset")
    cids: list[dict[str, Any]] = Field(default_factory=list, alias="Cids", description="Tipset key")


class PartitionRef(BaseModel):
    """A (deadline, partition) pair of a miner."""

    deadline: int
    partition: int
    sectors: int = Field(default=0, description="Live sectors in the partition")


class TerminationPreview(BaseModel):
    """Result of one termination-penalty estimate tier."""

    model_config = {"populate_by_name": True}

    termination_penalty: BigInt = Field(default=0, alias="terminationPenalty", description="Penalty (attoFIL)")
    sectors_terminated: int = Field(default=0, alias="sectorsTerminated", description="Sectors included in the estimate")
    sectors_count: int = Field(default=0, alias="sectorsCount", description="Total live sectors of the miner")
    epoch: int = Field(default=0, description="Epoch the estimate was computed at")


class PartitionProgress(BaseModel):
    """Progress event emitted by an on-chain partition scan."""

    deadline_partition_index: int
    deadline_partition_count: int

