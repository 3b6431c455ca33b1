"""Transition enumeration between a good and a bad height."""

from __future__ import annotations

import asyncio

from invariants.core.transitions import Transition, enumerate_transitions, find_next_transition


def _piecewise(steps: list[tuple[int, int]], initial: int):  # type: ignore[no-untyped-def]
    calls: list[int] = []

    async def _series(height: int) -> int:
        calls.append(height)
        value = initial
        for start, step_value in steps:
            if height >= start:
                value = step_value
        return value

    return _series, calls


def test_enumerates_every_change_in_ascending_order() -> None:
    series, _ = _piecewise([(105, 200), (130, 160), (170, 75)], initial=100)

    transitions = asyncio.run(enumerate_transitions(series, 100, 100, 200))

    assert transitions == [
        Transition(height=105, value=200),
        Transition(height=130, value=160),
        Transition(height=170, value=75),
    ]


def test_constant_series_has_no_transitions() -> None:
    series, calls = _piecewise([], initial=42)

    assert asyncio.run(enumerate_transitions(series, 0, 42, 1_024)) == []
    assert len(calls) <= 11


def test_change_at_end_height_is_excluded() -> None:
    series, _ = _piecewise([(150, 1)], initial=0)

    assert asyncio.run(enumerate_transitions(series, 100, 0, 150)) == []


def test_change_right_after_start_is_found() -> None:
    series, _ = _piecewise([(101, 9)], initial=0)

    assert asyncio.run(enumerate_transitions(series, 100, 0, 150)) == [Transition(height=101, value=9)]


def test_stops_at_transition_cap() -> None:
    series, _ = _piecewise([(110, 1), (120, 2), (130, 3), (140, 4)], initial=0)

    transitions = asyncio.run(enumerate_transitions(series, 100, 0, 200, max_transitions=2))

    assert [t.height for t in transitions] == [110, 120]


def test_find_next_transition_on_empty_range_returns_none() -> None:
    series, calls = _piecewise([(5, 1)], initial=0)

    assert asyncio.run(find_next_transition(series, 10, 0, 9)) is None
    assert calls == []
