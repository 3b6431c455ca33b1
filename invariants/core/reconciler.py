"""Cross-validate the tiers of a termination-penalty estimate."""

from __future__ import annotations

from dataclasses import dataclass, field

ATTO_PER_FIL = 10**18

AGREE = "agree"
OVERESTIMATED = "overestimated"
UNDERESTIMATED = "UNDERESTIMATED"


@dataclass(frozen=True)
class EstimateTriple:
    """Three estimates of the same penalty; ``full`` is the reference."""

    quick: int
    sampled: int
    full: int


@dataclass(frozen=True)
class VarianceResult:
    label: str
    diff: int
    pct_of_reference: float | None
    pct_of_secondary: float | None = None

    @property
    def absolute_diff(self) -> int:
        return abs(self.diff)

    @property
    def direction(self) -> str:
        # diff is full - estimate: negative means the estimate was above the reference.
        if self.diff == 0:
            return AGREE
        return OVERESTIMATED if self.diff < 0 else UNDERESTIMATED

    def exceeds(self, max_pct_variance: float) -> bool:
        return self.pct_of_reference is not None and self.pct_of_reference > max_pct_variance


@dataclass(frozen=True)
class Reconciliation:
    triple: EstimateTriple
    max_pct_variance: float
    variances: list[VarianceResult] = field(default_factory=list)

    @property
    def breaches(self) -> list[VarianceResult]:
        return [variance for variance in self.variances if variance.exceeds(self.max_pct_variance)]

    @property
    def passed(self) -> bool:
        return not self.breaches

    def variance(self, label: str) -> VarianceResult | None:
        for variance in self.variances:
            if variance.label == label:
                return variance
        return None


def variance(
    label: str,
    reference: int,
    estimate: int,
    *,
    secondary_reference: int | None = None,
) -> VarianceResult:
    """Signed ``reference - estimate`` with its size relative to the reference and, optionally, a secondary figure."""
    diff = reference - estimate
    pct_of_reference = abs(diff) * 100 / abs(reference) if reference != 0 else None
    pct_of_secondary = None
    if secondary_reference is not None and secondary_reference > 0:
        pct_of_secondary = abs(diff) * 100 / secondary_reference
    return VarianceResult(
        label=label,
        diff=diff,
        pct_of_reference=pct_of_reference,
        pct_of_secondary=pct_of_secondary,
    )


def reconcile(
    triple: EstimateTriple,
    max_pct_variance: float,
    *,
    secondary_reference: int | None = None,
    api_reported: int | None = None,
) -> Reconciliation:
    """Compare quick, sampled and (optionally) a stored estimate against full.

    Fails iff any variance exceeds ``max_pct_variance`` percent of ``full``;
    the secondary percentage is informational only.
    """
    variances = [
        variance("quick", triple.full, triple.quick, secondary_reference=secondary_reference),
        variance("sampled", triple.full, triple.sampled, secondary_reference=secondary_reference),
    ]
    if api_reported is not None:
        variances.append(variance("api", triple.full, api_reported, secondary_reference=secondary_reference))
    return Reconciliation(triple=triple, max_pct_variance=max_pct_variance, variances=variances)


def to_fil(atto: int) -> float:
    return atto / ATTO_PER_FIL


def format_pct(result: VarianceResult, *, secondary_label: str = "agent principal") -> str:
    """``"4.762%"`` or ``"n/a"``, with the secondary percentage appended when known."""
    text = "n/a" if result.pct_of_reference is None else f"{result.pct_of_reference:0.3f}%"
    if result.pct_of_secondary is not None:
        text += f", {result.pct_of_secondary:0.3f}% of {secondary_label}"
    return text


def describe(result: VarianceResult, *, subject: str = "Quick method") -> str:
    """One-line human summary of a variance, in FIL."""
    if result.direction == AGREE:
        return f"{subject} and Full method agree."
    return f"{subject} {result.direction}: {to_fil(result.absolute_diff):0.3f} FIL ({format_pct(result)})"
