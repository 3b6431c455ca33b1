"""Enumerate heights at which the authoritative series changes value."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from invariants.core.series import HeightSeries

logger = logging.getLogger(__name__)

DEFAULT_MAX_TRANSITIONS = 1_000


@dataclass(frozen=True)
class Transition:
    height: int
    value: int


async def find_next_transition(
    series: HeightSeries,
    min_height: int,
    prev_value: int,
    max_height: int,
) -> Transition | None:
    """Leftmost height in ``[min_height, max_height]`` whose value differs from ``prev_value``.

    Bisects the height range, keeping the leftmost differing height. Only
    requires the value to stay equal to ``prev_value`` up to the first change.
    """
    found: Transition | None = None
    low, high = min_height, max_height
    while low <= high:
        sample = low + (high - low) // 2
        value = await series(sample)
        logger.debug("  Searching %d to %d: @%d = %s", low, high, sample, value)
        if value == prev_value:
            low = sample + 1
        else:
            found = Transition(height=sample, value=value)
            high = sample - 1
    return found


async def enumerate_transitions(
    series: HeightSeries,
    start_height: int,
    start_value: int,
    end_height: int,
    *,
    max_transitions: int = DEFAULT_MAX_TRANSITIONS,
) -> list[Transition]:
    """All transitions strictly between ``start_height`` and ``end_height``, ascending."""
    transitions: list[Transition] = []
    height, value = start_height, start_value
    while len(transitions) < max_transitions:
        transition = await find_next_transition(series, height + 1, value, end_height - 1)
        if transition is None:
            break
        logger.info("Transition @%d: %s -> %s", transition.height, value, transition.value)
        transitions.append(transition)
        height, value = transition.height, transition.value
    else:
        logger.warning("Stopped after %d transitions before @%d", max_transitions, end_height)
    return transitions
