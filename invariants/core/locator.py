"""Localize where a ledger transaction log stops matching the chain."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from invariants.core.series import CachedSeries, HeightSeries
from invariants.schemas.ledger import TransactionRecord

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_STEP = 10_000


@dataclass(frozen=True)
class Bracket:
    """Adjacent pair of log points: values agree at ``good``, disagree at ``bad``.

    ``records`` is the log the indices refer to, including any synthetic points
    added during the search. Recomputed values are ``None`` for points that
    were never evaluated against the chain.
    """

    records: tuple[TransactionRecord, ...]
    good_index: int
    bad_index: int
    good_recomputed: int | None
    bad_recomputed: int | None
    evaluations: int
    reason: str

    @property
    def good(self) -> TransactionRecord:
        return self.records[self.good_index]

    @property
    def bad(self) -> TransactionRecord:
        return self.records[self.bad_index]

    @property
    def good_height(self) -> int:
        return self.good.height

    @property
    def bad_height(self) -> int:
        return self.bad.height

    @property
    def good_value(self) -> int:
        return self.good.available_balance

    @property
    def bad_value(self) -> int:
        return self.bad.available_balance


def synthetic_point(height: int, value: int) -> TransactionRecord:
    return TransactionRecord(height=height, available_balance=value, synthetic=True)


async def locate(
    records: Sequence[TransactionRecord],
    authoritative: HeightSeries,
    *,
    head_height: int,
    creation_height: int,
) -> Bracket | None:
    """Find the bracket where ``records`` first disagrees with ``authoritative``.

    Returns ``None`` when the log agrees with the chain at every recorded
    height and at the head. Evaluation errors propagate unchanged.
    """
    series = CachedSeries(authoritative)
    points = list(records)

    if not points:
        tail_height = head_height - 2
        tail_value = await series(tail_height)
        if tail_value == 0:
            logger.info("Empty log agrees with chain @%d", tail_height)
            return None
        points = [synthetic_point(creation_height, 0), synthetic_point(tail_height, 0)]
        return _bracket(points, series, 0, 1, "empty_log")

    first = points[0]
    if not await _matches(series, first):
        logger.info("First record @%d mismatches; divergence predates the log", first.height)
        points.insert(0, synthetic_point(creation_height, 0))
        return _bracket(points, series, 0, 1, "before_first_record")

    last_index = len(points) - 1
    if last_index > 0 and not await _matches(series, points[last_index]):
        good, bad = await _bisect(points, series, 0, last_index)
        return _bracket(points, series, good, bad, "between_records")

    # The whole log agrees; look for a missing trailing entry.
    last = points[last_index]
    tail_height = head_height - 1
    if tail_height <= last.height:
        return None
    tail_value = await series(tail_height)
    if tail_value == last.available_balance:
        logger.info("Log agrees with chain through @%d", tail_height)
        return None
    points.append(synthetic_point(tail_height, last.available_balance))
    return _bracket(points, series, last_index, last_index + 1, "after_last_record")


async def find_last_agreeing_height(
    agrees: Callable[[int], Awaitable[bool]],
    max_height: int,
    *,
    step: int = DEFAULT_SEARCH_STEP,
) -> int | None:
    """Highest height <= ``max_height`` at which ``agrees`` holds.

    Walks back in windows of ``step`` heights until a window's lower edge
    agrees, then bisects inside that window assuming agreement holds on a
    prefix of it. Returns ``None`` if no agreeing height exists down to 0.
    """
    if step <= 0:
        raise ValueError("step must be positive")
    upper = max_height
    while upper >= 0:
        lower = max(upper - step + 1, 0)
        logger.info("Searching for agreeing height between %d and %d", lower, upper)
        if await agrees(lower):
            low, high = lower, upper
            while low < high:
                mid = (low + high + 1) // 2
                if await agrees(mid):
                    low = mid
                else:
                    high = mid - 1
            return low
        upper = lower - 1
    return None


async def _matches(series: CachedSeries, record: TransactionRecord) -> bool:
    value = await series(record.height)
    matched = value == record.available_balance
    logger.debug(
        "Record @%d: %s (node %s, ledger %s)",
        record.height,
        "match" if matched else "mismatch",
        value,
        record.available_balance,
    )
    return matched


async def _bisect(
    points: list[TransactionRecord],
    series: CachedSeries,
    good: int,
    bad: int,
) -> tuple[int, int]:
    while bad - good > 1:
        mid = (good + bad) // 2
        if await _matches(series, points[mid]):
            good = mid
        else:
            bad = mid
    return good, bad


def _bracket(
    points: list[TransactionRecord],
    series: CachedSeries,
    good: int,
    bad: int,
    reason: str,
) -> Bracket:
    bracket = Bracket(
        records=tuple(points),
        good_index=good,
        bad_index=bad,
        good_recomputed=series.cached(points[good].height),
        bad_recomputed=series.cached(points[bad].height),
        evaluations=series.evaluations,
        reason=reason,
    )
    logger.info(
        "Divergence bracket (%s): good idx %d @%d, bad idx %d @%d",
        reason,
        good,
        bracket.good_height,
        bad,
        bracket.bad_height,
    )
    return bracket
