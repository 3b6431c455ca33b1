"""Divergence localization and estimate reconciliation."""

from invariants.core.epoch import EpochNormalizer
from invariants.core.errors import (
    ChainUnavailable,
    ConfigurationError,
    EstimateFailed,
    EstimateTimeout,
    InvariantsError,
    LedgerError,
)
from invariants.core.locator import Bracket, find_last_agreeing_height, locate
from invariants.core.reconciler import EstimateTriple, Reconciliation, VarianceResult, reconcile
from invariants.core.series import CachedSeries, ChainSeries, HeightSeries, LedgerSeries
from invariants.core.transitions import Transition, enumerate_transitions, find_next_transition

__all__ = [
    "Bracket",
    "CachedSeries",
    "ChainSeries",
    "ChainUnavailable",
    "ConfigurationError",
    "EpochNormalizer",
    "EstimateFailed",
    "EstimateTimeout",
    "EstimateTriple",
    "HeightSeries",
    "InvariantsError",
    "LedgerError",
    "LedgerSeries",
    "Reconciliation",
    "Transition",
    "VarianceResult",
    "enumerate_transitions",
    "find_last_agreeing_height",
    "find_next_transition",
    "locate",
    "reconcile",
]
