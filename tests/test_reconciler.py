"""Estimate reconciliation and variance formatting."""

from __future__ import annotations

import pytest

from invariants.core.reconciler import (
    AGREE,
    ATTO_PER_FIL,
    OVERESTIMATED,
    UNDERESTIMATED,
    EstimateTriple,
    describe,
    format_pct,
    reconcile,
    variance,
)


def test_small_underestimate_passes() -> None:
    result = reconcile(EstimateTriple(quick=1000, sampled=1000, full=1050), 5.0)

    quick = result.variance("quick")
    assert result.passed
    assert quick is not None
    assert quick.diff == 50
    assert quick.direction == UNDERESTIMATED
    assert format_pct(quick) == "4.762%"


def test_large_variance_fails_for_each_tier() -> None:
    result = reconcile(EstimateTriple(quick=1000, sampled=1000, full=1200), 5.0)

    assert not result.passed
    assert [breach.label for breach in result.breaches] == ["quick", "sampled"]
    assert result.breaches[0].pct_of_reference == pytest.approx(16.6667, rel=1e-4)


def test_overestimate_direction() -> None:
    result = variance("quick", 1000, 1100)

    assert result.diff == -100
    assert result.direction == OVERESTIMATED
    assert result.absolute_diff == 100


def test_negated_inputs_give_same_percentage_and_opposite_direction() -> None:
    positive = variance("quick", 100, 90)
    negative = variance("quick", -100, -90)

    assert positive.pct_of_reference == pytest.approx(negative.pct_of_reference)
    assert positive.direction == UNDERESTIMATED
    assert negative.direction == OVERESTIMATED


def test_zero_reference_percentage_is_not_applicable() -> None:
    result = reconcile(EstimateTriple(quick=10, sampled=0, full=0), 5.0)

    quick = result.variance("quick")
    sampled = result.variance("sampled")
    assert quick is not None and sampled is not None
    assert quick.pct_of_reference is None
    assert format_pct(quick) == "n/a"
    assert sampled.direction == AGREE
    assert result.passed


def test_secondary_percentage_is_informational() -> None:
    result = reconcile(
        EstimateTriple(quick=1000, sampled=1050, full=1050),
        5.0,
        secondary_reference=10_000,
    )

    quick = result.variance("quick")
    assert quick is not None
    assert quick.pct_of_secondary == pytest.approx(0.5)
    assert format_pct(quick) == "4.762%, 0.500% of agent principal"
    assert result.passed


def test_stored_penalty_is_reconciled_when_known() -> None:
    result = reconcile(EstimateTriple(quick=1000, sampled=1000, full=1000), 5.0, api_reported=1300)

    assert [breach.label for breach in result.breaches] == ["api"]


def test_describe_reports_fil_amounts() -> None:
    result = variance("quick", 3 * ATTO_PER_FIL, 2 * ATTO_PER_FIL)

    assert describe(result) == "Quick method UNDERESTIMATED: 1.000 FIL (33.333%)"
    assert describe(variance("quick", 5, 5)) == "Quick method and Full method agree."
