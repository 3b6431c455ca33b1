"""Ledger and chain service clients."""

from invariants.services.ledger_client import LedgerClient
from invariants.services.lotus_client import LotusClient
from invariants.services.pools_query import PoolsQuery, PoolsReader
from invariants.services.termination_estimator import AdoTerminationEstimator, TerminationEstimator

__all__ = [
    "AdoTerminationEstimator",
    "LedgerClient",
    "LotusClient",
    "PoolsQuery",
    "PoolsReader",
    "TerminationEstimator",
]
