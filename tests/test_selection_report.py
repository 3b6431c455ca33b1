"""Entity selection rules and run aggregation."""

from __future__ import annotations

import random

import pytest

from invariants.checks import CheckOutcome, RunSummary, SelectionError, flatten_miners, pick_random, validate_selection
from invariants.checks.report import ERROR, INFO, OK
from invariants.schemas.ledger import Agent


@pytest.mark.parametrize(
    ("entity_id", "all_entities", "random_count"),
    [
        (None, True, 3),
        (7, True, 0),
        (7, False, 2),
        (None, False, 0),
    ],
)
def test_invalid_selections_are_rejected(entity_id, all_entities, random_count) -> None:  # type: ignore[no-untyped-def]
    with pytest.raises(SelectionError):
        validate_selection(entity_id=entity_id, all_entities=all_entities, random_count=random_count)


def test_valid_selections() -> None:
    validate_selection(entity_id=7, all_entities=False, random_count=0)
    validate_selection(entity_id=None, all_entities=True, random_count=0)
    validate_selection(entity_id=None, all_entities=False, random_count=4)


def test_pick_random_returns_distinct_items_capped_at_population() -> None:
    items = list(range(10))

    picked = pick_random(items, 4, rng=random.Random(1))
    assert len(picked) == 4
    assert len(set(picked)) == 4
    assert set(picked) <= set(items)

    assert sorted(pick_random(items, 50, rng=random.Random(1))) == items
    assert items == list(range(10))


def test_flatten_miners_uses_each_agents_miner_count() -> None:
    agents = [Agent(id=1, miners=2), Agent(id=2, miners=0), Agent(id=3, miners=1)]

    flattened = flatten_miners(agents)

    assert [(entry.agent.id, entry.position) for entry in flattened] == [(1, 1), (1, 2), (3, 1)]


def test_outcome_compare_records_findings() -> None:
    outcome = CheckOutcome(entity="Agent 4")

    assert outcome.compare("available balance", 10, 10) is True
    assert outcome.passed
    assert outcome.compare("available balance", 10, 12, where=" @99") is False
    assert not outcome.passed
    assert [finding.level for finding in outcome.findings] == [OK, ERROR]
    assert outcome.findings[1].text == (
        "Agent 4 @99: Error, available balance from REST API doesn't match node. Node: 12 API: 10"
    )


def test_run_summary_counts_failures_and_timeouts() -> None:
    summary = RunSummary(check="Miner liquidation")
    summary.add(CheckOutcome(entity="a"))
    failed = summary.add(CheckOutcome(entity="b"))
    failed.fail("mismatch")
    timed_out = summary.add(CheckOutcome(entity="c", timed_out=True))
    timed_out.fail("timed out")
    summary.add(CheckOutcome(entity="d")).info("note")

    assert summary.fail_count == 2
    assert summary.timeout_count == 1
    assert not summary.passed
    assert summary.outcomes[-1].findings[0].level == INFO
