"""Invariant checks over agents, miners and protocol-wide figures."""

from invariants.checks.report import CheckOutcome, Finding, RunSummary
from invariants.checks.selection import AgentMiner, SelectionError, flatten_miners, pick_random, validate_selection
from invariants.checks.service import ECON_HEAD_OFFSET, METRICS_HEAD_OFFSET, InvariantCheckService

__all__ = [
    "AgentMiner",
    "CheckOutcome",
    "ECON_HEAD_OFFSET",
    "Finding",
    "InvariantCheckService",
    "METRICS_HEAD_OFFSET",
    "RunSummary",
    "SelectionError",
    "flatten_miners",
    "pick_random",
    "validate_selection",
]
