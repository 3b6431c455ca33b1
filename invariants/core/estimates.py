"""Run the three termination-penalty estimate tiers under one deadline.

Quick is awaited in-line. Sampled and full run as background tasks that report
through a single message queue: a terminal ``result`` or ``error`` per tier,
plus ``progress`` events from the full scan. The caller only consumes the
queue; no other state crosses task boundaries.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from functools import partial
from time import monotonic

from invariants.core.errors import EstimateFailed, EstimateTimeout
from invariants.core.reconciler import EstimateTriple
from invariants.schemas.chain import PartitionProgress, TerminationPreview
from invariants.services.termination_estimator import TerminationEstimator

logger = logging.getLogger(__name__)

QUICK = "quick"
SAMPLED = "sampled"
FULL = "full"


@dataclass(frozen=True)
class _Message:
    kind: str
    tier: str
    preview: TerminationPreview | None = None
    progress: PartitionProgress | None = None
    error: BaseException | None = None
    elapsed: float = 0.0


@dataclass(frozen=True)
class TieredEstimates:
    quick: TerminationPreview
    sampled: TerminationPreview
    full: TerminationPreview
    elapsed: dict[str, float] = field(default_factory=dict)

    @property
    def triple(self) -> EstimateTriple:
        return EstimateTriple(
            quick=self.quick.termination_penalty,
            sampled=self.sampled.termination_penalty,
            full=self.full.termination_penalty,
        )


async def _report(
    tier: str,
    compute: Callable[[], Awaitable[TerminationPreview]],
    queue: asyncio.Queue[_Message],
) -> None:
    start = monotonic()
    try:
        preview = await compute()
    except Exception as exc:
        queue.put_nowait(_Message(kind="error", tier=tier, error=exc, elapsed=monotonic() - start))
        return
    queue.put_nowait(_Message(kind="result", tier=tier, preview=preview, elapsed=monotonic() - start))


async def run_estimates(
    estimator: TerminationEstimator,
    miner: str,
    epoch: int,
    *,
    timeout: float | None = None,
    on_progress: Callable[[PartitionProgress], None] | None = None,
) -> TieredEstimates:
    """Compute quick, sampled and full estimates for ``miner`` at ``epoch``.

    Raises :class:`EstimateTimeout` when ``timeout`` seconds elapse first and
    :class:`EstimateFailed` when a background tier reports an error; in both
    cases outstanding tasks are cancelled.
    """
    queue: asyncio.Queue[_Message] = asyncio.Queue()
    results: dict[str, TerminationPreview] = {}
    elapsed: dict[str, float] = {}
    tasks: dict[str, asyncio.Task[None]] = {}

    def publish_progress(progress: PartitionProgress) -> None:
        queue.put_nowait(_Message(kind="progress", tier=FULL, progress=progress))

    try:
        async with asyncio.timeout(timeout) as deadline:
            try:
                start = monotonic()
                results[QUICK] = await estimator.preview_quick(miner, epoch)
                elapsed[QUICK] = monotonic() - start

                tasks[SAMPLED] = asyncio.create_task(
                    _report(SAMPLED, partial(estimator.preview_sampled, miner, epoch), queue)
                )
                tasks[FULL] = asyncio.create_task(
                    _report(FULL, partial(estimator.preview_full, miner, epoch, publish_progress), queue)
                )

                while len(results) < 3:
                    message = await queue.get()
                    if message.kind == "progress":
                        if on_progress is not None and message.progress is not None:
                            on_progress(message.progress)
                        continue
                    if message.kind == "error":
                        logger.error("Miner %s @%d: %s estimate failed: %s", miner, epoch, message.tier, message.error)
                        raise EstimateFailed(
                            f"{message.tier} estimate failed for {miner}: {message.error}",
                            tier=message.tier,
                        ) from message.error
                    results[message.tier] = message.preview  # type: ignore[assignment]
                    elapsed[message.tier] = message.elapsed
            except TimeoutError:
                if deadline.expired():
                    raise
                raise EstimateFailed(f"estimate transport timed out for {miner}", tier=QUICK) from None
    except TimeoutError as exc:
        pending = tuple(tier for tier in (QUICK, SAMPLED, FULL) if tier not in results)
        logger.warning("Miner %s @%d: estimates timed out after %ss (pending: %s)", miner, epoch, timeout, pending)
        raise EstimateTimeout(f"estimates for {miner} timed out after {timeout}s", pending=pending) from exc
    finally:
        for task in tasks.values():
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks.values(), return_exceptions=True)

    return TieredEstimates(quick=results[QUICK], sampled=results[SAMPLED], full=results[FULL], elapsed=elapsed)
