"""Per-entity check outcomes and run-level aggregation."""

from __future__ import annotations

from dataclasses import dataclass, field

from invariants.core.locator import Bracket
from invariants.core.reconciler import Reconciliation
from invariants.core.transitions import Transition

OK = "ok"
INFO = "info"
ERROR = "error"


@dataclass(frozen=True)
class Finding:
    level: str
    text: str


@dataclass
class CheckOutcome:
    """Result of one check for one entity. Mismatches are recorded here, not raised."""

    entity: str
    passed: bool = True
    timed_out: bool = False
    findings: list[Finding] = field(default_factory=list)
    bracket: Bracket | None = None
    transitions: list[Transition] = field(default_factory=list)
    reconciliation: Reconciliation | None = None

    def ok(self, text: str) -> None:
        self.findings.append(Finding(OK, text))

    def info(self, text: str) -> None:
        self.findings.append(Finding(INFO, text))

    def fail(self, text: str) -> None:
        self.passed = False
        self.findings.append(Finding(ERROR, text))

    def compare(self, label: str, ledger_value: object, chain_value: object, *, where: str = "") -> bool:
        """Record a match or mismatch between a ledger and a chain figure."""
        prefix = f"{self.entity}{where}"
        if ledger_value == chain_value:
            self.ok(f"{prefix}: Success, {label} matches: {ledger_value}")
            return True
        self.fail(f"{prefix}: Error, {label} from REST API doesn't match node. Node: {chain_value} API: {ledger_value}")
        return False


@dataclass
class RunSummary:
    """Accumulates outcomes; pass/fail is only meaningful once the entity loop is done."""

    check: str
    outcomes: list[CheckOutcome] = field(default_factory=list)

    def add(self, outcome: CheckOutcome) -> CheckOutcome:
        self.outcomes.append(outcome)
        return outcome

    @property
    def fail_count(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.passed)

    @property
    def timeout_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.timed_out)

    @property
    def passed(self) -> bool:
        return self.fail_count == 0
