"""Height normalization for authoritative lookups.

The chain commits the effects of a message one block after the height the
ledger attributes it to. "State as of height H" is therefore read at the first
produced tipset at or after H + 1.
"""

from __future__ import annotations

import logging
from typing import Protocol

from invariants.core.errors import ChainUnavailable
from invariants.schemas.chain import TipSet

logger = logging.getLogger(__name__)

SETTLEMENT_LAG = 1


class ChainHeights(Protocol):
    async def chain_head(self) -> TipSet:
        ...

    async def chain_get_tipset_after_height(self, height: int) -> TipSet:
        ...


class EpochNormalizer:
    """Maps requested heights to evaluable block heights.

    Normalize exactly once per logical height: every call adds the settlement
    lag, so feeding an output back in drifts forward.
    """

    def __init__(self, chain: ChainHeights) -> None:
        self._chain = chain

    async def normalize(self, height: int) -> int:
        try:
            tipset = await self._chain.chain_get_tipset_after_height(height + SETTLEMENT_LAG)
        except ChainUnavailable:
            raise
        except Exception as exc:
            raise ChainUnavailable(f"Cannot resolve tipset after height {height}: {exc}", code="NORMALIZATION_FAILED") from exc
        logger.debug("Normalized height %d -> %d", height, tipset.height)
        return tipset.height

    async def head_height(self) -> int:
        try:
            tipset = await self._chain.chain_head()
        except ChainUnavailable:
            raise
        except Exception as exc:
            raise ChainUnavailable(f"Cannot resolve chain head: {exc}") from exc
        return tipset.height
