"""Error taxonomy for invariant checks.

Mismatches and variance breaches are findings, not errors. Everything raised
from here aborts the check for the current entity.
"""

from __future__ import annotations


class InvariantsError(Exception):
    """Base error for checker operations."""

    def __init__(self, message: str, *, code: str = "INVARIANTS_ERROR", status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code


class ConfigurationError(InvariantsError):
    """A required endpoint or contract address is not configured."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="CONFIGURATION_MISSING")


class LedgerError(InvariantsError):
    """Ledger REST API transport, status, or decode failure."""


class ChainUnavailable(InvariantsError):
    """Chain node, contract call, or estimator failure, including normalization."""

    def __init__(self, message: str, *, code: str = "CHAIN_UNAVAILABLE") -> None:
        super().__init__(message, code=code)


class EstimateTimeout(InvariantsError):
    """The estimate deadline expired before all tiers reported."""

    def __init__(self, message: str, *, pending: tuple[str, ...] = ()) -> None:
        super().__init__(message, code="ESTIMATE_TIMEOUT")
        self.pending = pending


class EstimateFailed(InvariantsError):
    """A background estimate task reported an error."""

    def __init__(self, message: str, *, tier: str) -> None:
        super().__init__(message, code="ESTIMATE_FAILED")
        self.tier = tier
