"""Termination-penalty estimates for a storage provider at three cost tiers.

* quick: offline heuristic served by the estimator endpoint in one call.
* sampled: on-chain preview of a bounded, evenly spread subset of partitions,
  extrapolated to the miner's live sector count.
* full: on-chain preview of every partition, reporting progress per partition.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Protocol

from pydantic import ValidationError

from invariants.core.errors import ChainUnavailable
from invariants.schemas.chain import PartitionProgress, PartitionRef, TerminationPreview
from invariants.services.lotus_client import LotusClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_SAMPLED_PARTITIONS = 21

# Assumed method names: the estimator endpoint publishes no preview API, and
# go-pools computes these previews in-process with
# terminate.PreviewTerminateSectors. Change both here if the endpoint differs.
QUICK_PREVIEW_METHOD = "Glif.PreviewTerminateSectorsQuick"
PARTITION_PREVIEW_METHOD = "Glif.PreviewTerminatePartition"

ProgressCallback = Callable[[PartitionProgress], None]


class TerminationEstimator(Protocol):
    """Boundary for the three penalty estimate tiers."""

    async def preview_quick(self, miner: str, epoch: int) -> TerminationPreview:
        ...

    async def preview_sampled(self, miner: str, epoch: int) -> TerminationPreview:
        ...

    async def preview_full(
        self,
        miner: str,
        epoch: int,
        on_progress: ProgressCallback | None = None,
    ) -> TerminationPreview:
        ...


def count_bitfield(runs: Any) -> int:
    """Count set bits of a Lotus JSON bitfield (alternating run lengths, zeros first)."""
    if not isinstance(runs, list):
        return 0
    return sum(int(run) for run in runs[1::2])


def sample_partitions(partitions: list[PartitionRef], max_partitions: int) -> list[PartitionRef]:
    """Evenly spread subset of at most ``max_partitions`` partitions, order preserved."""
    if max_partitions <= 0 or len(partitions) <= max_partitions:
        return list(partitions)
    stride = len(partitions) / max_partitions
    return [partitions[int(i * stride)] for i in range(max_partitions)]


class AdoTerminationEstimator:
    """Estimator backed by the ADO JSON-RPC endpoint and a Lotus node."""

    def __init__(
        self,
        *,
        lotus: LotusClient,
        ado: LotusClient,
        max_sampled_partitions: int = DEFAULT_MAX_SAMPLED_PARTITIONS,
    ) -> None:
        self._lotus = lotus
        self._ado = ado
        self._max_sampled_partitions = max_sampled_partitions

    async def preview_quick(self, miner: str, epoch: int) -> TerminationPreview:
        tipset = await self._lotus.chain_get_tipset_by_height(epoch)
        result = await self._ado.call(QUICK_PREVIEW_METHOD, miner, tipset.cids)
        preview = self._preview(result)
        return preview.model_copy(update={"epoch": tipset.height})

    async def preview_sampled(self, miner: str, epoch: int) -> TerminationPreview:
        tipset = await self._lotus.chain_get_tipset_by_height(epoch)
        partitions = await self.list_partitions(miner, tipset.cids)
        sampled = sample_partitions(partitions, self._max_sampled_partitions)
        penalty, terminated = await self._scan(miner, tipset.cids, sampled, None)
        total = sum(partition.sectors for partition in partitions)
        if terminated and terminated < total:
            penalty = penalty * total // terminated
        return TerminationPreview(
            termination_penalty=penalty,
            sectors_terminated=terminated,
            sectors_count=total,
            epoch=tipset.height,
        )

    async def preview_full(
        self,
        miner: str,
        epoch: int,
        on_progress: ProgressCallback | None = None,
    ) -> TerminationPreview:
        tipset = await self._lotus.chain_get_tipset_by_height(epoch)
        partitions = await self.list_partitions(miner, tipset.cids)
        penalty, terminated = await self._scan(miner, tipset.cids, partitions, on_progress)
        return TerminationPreview(
            termination_penalty=penalty,
            sectors_terminated=terminated,
            sectors_count=sum(partition.sectors for partition in partitions),
            epoch=tipset.height,
        )

    async def list_partitions(self, miner: str, tipset_key: list[dict[str, Any]]) -> list[PartitionRef]:
        """All (deadline, partition) pairs holding live sectors."""
        deadlines = await self._lotus.state_miner_deadlines(miner, tipset_key)
        partitions: list[PartitionRef] = []
        for deadline_index in range(len(deadlines)):
            raw_partitions = await self._lotus.state_miner_partitions(miner, deadline_index, tipset_key)
            for partition_index, raw in enumerate(raw_partitions):
                live = count_bitfield(raw.get("LiveSectors")) if isinstance(raw, dict) else 0
                if live > 0:
                    partitions.append(PartitionRef(deadline=deadline_index, partition=partition_index, sectors=live))
        logger.debug("Miner %s: %d partitions with live sectors", miner, len(partitions))
        return partitions

    async def _scan(
        self,
        miner: str,
        tipset_key: list[dict[str, Any]],
        partitions: list[PartitionRef],
        on_progress: ProgressCallback | None,
    ) -> tuple[int, int]:
        penalty = 0
        terminated = 0
        for index, partition in enumerate(partitions):
            result = await self._ado.call(
                PARTITION_PREVIEW_METHOD,
                miner,
                partition.deadline,
                partition.partition,
                tipset_key,
            )
            preview = self._preview(result)
            penalty += preview.termination_penalty
            terminated += preview.sectors_terminated or partition.sectors
            if on_progress is not None:
                on_progress(PartitionProgress(deadline_partition_index=index, deadline_partition_count=len(partitions)))
        return penalty, terminated

    @staticmethod
    def _preview(result: Any) -> TerminationPreview:
        if not isinstance(result, dict):
            raise ChainUnavailable("Termination preview must be an object.", code="ESTIMATOR_BAD_RESPONSE")
        try:
            return TerminationPreview.model_validate(result)
        except ValidationError as exc:
            raise ChainUnavailable(f"Termination preview is malformed: {exc}", code="ESTIMATOR_BAD_RESPONSE") from exc
