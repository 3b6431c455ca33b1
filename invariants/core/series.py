"""Height-indexed value series consumed by the divergence search."""

from __future__ import annotations

import logging
from bisect import bisect_right
from collections.abc import Awaitable, Callable, Sequence
from typing import Protocol

from invariants.core.epoch import EpochNormalizer
from invariants.schemas.ledger import TransactionRecord

logger = logging.getLogger(__name__)


class HeightSeries(Protocol):
    """``await series(height) -> value``. May raise; not required to be total."""

    async def __call__(self, height: int) -> int:
        ...


class LedgerSeries:
    """Ledger-reported value: piecewise constant between transaction heights, zero before the first."""

    def __init__(self, records: Sequence[TransactionRecord]) -> None:
        self._heights = [record.height for record in records]
        self._values = [record.available_balance for record in records]

    async def __call__(self, height: int) -> int:
        return self.value_at(height)

    def value_at(self, height: int) -> int:
        index = bisect_right(self._heights, height)
        if index == 0:
            return 0
        return self._values[index - 1]


class ChainSeries:
    """Authoritative value recomputed at the normalized block for each requested height."""

    def __init__(
        self,
        normalizer: EpochNormalizer,
        query: Callable[[int], Awaitable[int]],
        *,
        label: str = "value",
    ) -> None:
        self._normalizer = normalizer
        self._query = query
        self._label = label
        self.evaluations = 0

    async def __call__(self, height: int) -> int:
        block_number = await self._normalizer.normalize(height)
        value = await self._query(block_number)
        self.evaluations += 1
        logger.debug("%s @%d (block %d): %s", self._label, height, block_number, value)
        return value


class CachedSeries:
    """Memoizes another series per height for the lifetime of one search."""

    def __init__(self, inner: HeightSeries) -> None:
        self._inner = inner
        self._values: dict[int, int] = {}

    async def __call__(self, height: int) -> int:
        if height not in self._values:
            self._values[height] = await self._inner(height)
        return self._values[height]

    def cached(self, height: int) -> int | None:
        return self._values.get(height)

    @property
    def evaluations(self) -> int:
        return len(self._values)
