"""Contract tests for the ADO-backed termination penalty estimator."""

from __future__ import annotations

import asyncio

import pytest

from invariants.core.errors import ChainUnavailable
from invariants.schemas.chain import PartitionProgress, PartitionRef, TipSet
from invariants.services.termination_estimator import AdoTerminationEstimator, count_bitfield, sample_partitions

TIPSET_KEY = [{"/": "bafy-head"}]


class _StubLotus:
    """Two deadlines: deadline 0 holds partitions with 10 and 0 live sectors, deadline 1 one with 30."""

    async def chain_get_tipset_by_height(self, height: int) -> TipSet:
        return TipSet(height=height, cids=TIPSET_KEY)

    async def state_miner_deadlines(self, miner: str, tipset_key):  # type: ignore[no-untyped-def]
        assert tipset_key == TIPSET_KEY
        return [{}, {}]

    async def state_miner_partitions(self, miner: str, deadline: int, tipset_key):  # type: ignore[no-untyped-def]
        if deadline == 0:
            return [{"LiveSectors": [0, 10]}, {"LiveSectors": [5]}]
        return [{"LiveSectors": [2, 20, 4, 10]}]


class _StubAdo:
    def __init__(self, *, quick_result: object = None) -> None:
        self.calls: list[tuple[str, tuple[object, ...]]] = []
        self.quick_result = quick_result

    async def call(self, method: str, *params):  # type: ignore[no-untyped-def]
        self.calls.append((method, params))
        if method == "Glif.PreviewTerminateSectorsQuick":
            return self.quick_result
        _, deadline, _, _ = params
        sectors = 10 if deadline == 0 else 30
        return {"terminationPenalty": str(sectors * 100), "sectorsTerminated": sectors}


def test_count_bitfield_sums_set_runs() -> None:
    assert count_bitfield([0, 10]) == 10
    assert count_bitfield([2, 20, 4, 10]) == 30
    assert count_bitfield([7]) == 0
    assert count_bitfield(None) == 0


def test_sample_partitions_spreads_evenly_and_keeps_order() -> None:
    partitions = [PartitionRef(deadline=i, partition=0) for i in range(10)]

    assert [p.deadline for p in sample_partitions(partitions, 3)] == [0, 3, 6]
    assert sample_partitions(partitions, 20) == partitions


def test_full_scan_sums_every_partition_and_reports_progress() -> None:
    ado = _StubAdo()
    estimator = AdoTerminationEstimator(lotus=_StubLotus(), ado=ado)  # type: ignore[arg-type]
    events: list[PartitionProgress] = []

    preview = asyncio.run(estimator.preview_full("f01234", 900, events.append))

    assert preview.termination_penalty == 4000
    assert preview.sectors_terminated == 40
    assert preview.sectors_count == 40
    assert preview.epoch == 900
    assert [(e.deadline_partition_index, e.deadline_partition_count) for e in events] == [(0, 2), (1, 2)]
    assert {method for method, _ in ado.calls} == {"Glif.PreviewTerminatePartition"}
    assert [params[1:3] for _, params in ado.calls] == [(0, 0), (1, 0)]


def test_sampled_scan_extrapolates_to_live_sectors() -> None:
    ado = _StubAdo()
    estimator = AdoTerminationEstimator(lotus=_StubLotus(), ado=ado, max_sampled_partitions=1)  # type: ignore[arg-type]

    preview = asyncio.run(estimator.preview_sampled("f01234", 900))

    assert len(ado.calls) == 1
    assert preview.sectors_terminated == 10
    assert preview.sectors_count == 40
    assert preview.termination_penalty == 1000 * 40 // 10


def test_quick_preview_uses_tipset_key_and_validates_shape() -> None:
    ado = _StubAdo(quick_result={"terminationPenalty": "777", "sectorsTerminated": 40, "sectorsCount": 40})
    estimator = AdoTerminationEstimator(lotus=_StubLotus(), ado=ado)  # type: ignore[arg-type]

    preview = asyncio.run(estimator.preview_quick("f01234", 900))

    assert preview.termination_penalty == 777
    assert preview.epoch == 900
    assert ado.calls == [("Glif.PreviewTerminateSectorsQuick", ("f01234", TIPSET_KEY))]

    broken = AdoTerminationEstimator(lotus=_StubLotus(), ado=_StubAdo(quick_result="oops"))  # type: ignore[arg-type]
    with pytest.raises(ChainUnavailable) as excinfo:
        asyncio.run(broken.preview_quick("f01234", 900))
    assert excinfo.value.code == "ESTIMATOR_BAD_RESPONSE"
