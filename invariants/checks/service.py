"""Ledger vs chain invariant checks, one entity at a time."""

from __future__ import annotations

import logging
from collections.abc import Callable
from functools import partial

from invariants.core.epoch import EpochNormalizer
from invariants.core.errors import EstimateTimeout
from invariants.core.estimates import run_estimates
from invariants.core.locator import find_last_agreeing_height, locate
from invariants.core.reconciler import describe, format_pct, reconcile, to_fil
from invariants.core.series import ChainSeries
from invariants.core.transitions import enumerate_transitions
from invariants.checks.report import CheckOutcome
from invariants.schemas.chain import PartitionProgress
from invariants.schemas.ledger import Agent, MinerDetails
from invariants.services.ledger_client import LedgerClient
from invariants.services.pools_query import PoolsReader
from invariants.services.termination_estimator import TerminationEstimator

logger = logging.getLogger(__name__)

METRICS_HEAD_OFFSET = 2
ECON_HEAD_OFFSET = 3


class InvariantCheckService:
    """Compare ledger-reported figures with values recomputed from the chain."""

    def __init__(
        self,
        *,
        ledger: LedgerClient,
        normalizer: EpochNormalizer,
        pools: PoolsReader,
        estimator: TerminationEstimator | None = None,
    ) -> None:
        self._ledger = ledger
        self._normalizer = normalizer
        self._pools = pools
        self._estimator = estimator

    async def default_height(self, offset: int) -> int:
        return await self._normalizer.head_height() - offset

    def liquid_assets_series(self, agent: Agent) -> ChainSeries:
        return ChainSeries(
            self._normalizer,
            partial(self._pools.agent_liquid_assets, agent.address_native),
            label=f"Agent {agent.id} liquid assets",
        )

    # ------------------------------------------------------------------
    # Agent balances
    # ------------------------------------------------------------------

    async def check_agent_balance(self, agent: Agent, epoch: int | None = None) -> CheckOutcome:
        """Available balance: latest snapshot, or replayed log vs chain at ``epoch``.

        A mismatch at the latest snapshot triggers the divergence search over
        the transaction log.
        """
        outcome = CheckOutcome(entity=f"Agent {agent.id}")
        if epoch is None:
            snapshot = await self._ledger.get_available_balance(agent.id)
            if outcome.compare("latest available balance", snapshot.stored, snapshot.recomputed):
                return outcome
            await self.examine_transaction_history(agent, outcome)
            return outcome

        ledger_balance = await self._ledger.get_available_balance_at(agent.id, epoch)
        chain_balance = await self.liquid_assets_series(agent)(epoch)
        outcome.compare("available balance", ledger_balance, chain_balance, where=f" @{epoch}")
        return outcome

    async def examine_transaction_history(self, agent: Agent, outcome: CheckOutcome) -> None:
        """Locate the divergence bracket and enumerate chain transitions inside it."""
        records = await self._ledger.get_transactions(agent.id)
        outcome.info(f"Examining transaction history: {len(records)} transactions retrieved from REST API")
        head = await self._normalizer.head_height()
        series = self.liquid_assets_series(agent)

        bracket = await locate(records, series, head_height=head, creation_height=agent.height)
        if bracket is None:
            outcome.info("Transaction log agrees with the node at every recorded height and at head.")
            return
        outcome.bracket = bracket
        outcome.info(
            f"Last good tx via API (idx: {bracket.good_index}) @{bracket.good_height}: "
            f"{bracket.good_value} (node: {_or_na(bracket.good_recomputed)})"
        )
        outcome.info(
            f"First bad tx via API (idx: {bracket.bad_index}) @{bracket.bad_height}: "
            f"{bracket.bad_value} (node: {_or_na(bracket.bad_recomputed)})"
        )

        outcome.transitions = await enumerate_transitions(
            series,
            bracket.good_height,
            bracket.good_value,
            bracket.bad_height,
        )
        outcome.info(f"Interim balance transitions on node between @{bracket.good_height} and @{bracket.bad_height}:")
        for transition in outcome.transitions:
            outcome.info(f"  @{transition.height}: {transition.value}")
        if not outcome.transitions:
            outcome.info("  none")
        logger.info("Agent %d: %d chain evaluations", agent.id, series.evaluations)

    # ------------------------------------------------------------------
    # Agent economics
    # ------------------------------------------------------------------

    async def check_agent_econ(self, agent: Agent, epoch: int) -> CheckOutcome:
        outcome = CheckOutcome(entity=f"Agent {agent.id}")
        econ = await self._ledger.get_agent_econ(agent.id)
        block_number = await self._normalizer.normalize(epoch)
        principal = await self._pools.agent_principal(agent.address_native, block_number)
        outcome.compare("latest liability", econ.liability, principal, where=f" (node @{block_number})")
        return outcome

    # ------------------------------------------------------------------
    # Protocol metrics
    # ------------------------------------------------------------------

    async def check_metrics(self, epoch: int) -> CheckOutcome:
        outcome = CheckOutcome(entity=f"@{epoch}")
        metrics = await self._ledger.get_metrics(epoch)
        block_number = await self._normalizer.normalize(epoch)
        where = f" (node @{block_number})"
        outcome.compare(
            "pool total assets",
            metrics.pool_total_assets,
            await self._pools.pool_total_assets(block_number),
            where=where,
        )
        outcome.compare(
            "pool total borrowed",
            metrics.pool_total_borrowed,
            await self._pools.pool_total_borrowed(block_number),
            where=where,
        )
        outcome.compare("agent count", metrics.total_agent_count, await self._pools.agent_count(block_number), where=where)
        return outcome

    # ------------------------------------------------------------------
    # iFIL total supply
    # ------------------------------------------------------------------

    async def chain_ifil_supply(self, height: int) -> tuple[int, int]:
        block_number = await self._normalizer.normalize(height)
        return await self._pools.ifil_total_supply(block_number), block_number

    async def ifil_supply_agrees(self, height: int) -> bool:
        ledger_supply = await self._ledger.get_ifil_total_supply(height)
        chain_supply, _ = await self.chain_ifil_supply(height)
        agrees = ledger_supply.total_supply == chain_supply
        logger.info("@%d %s", height, "pass" if agrees else "fail")
        return agrees

    async def check_ifil_total_supply(self, epoch: int, *, find_missing: bool = False) -> CheckOutcome:
        outcome = CheckOutcome(entity=f"@{epoch}")
        ledger_supply = await self._ledger.get_ifil_total_supply(epoch)
        chain_supply, block_number = await self.chain_ifil_supply(epoch)
        if outcome.compare("iFIL total supply", ledger_supply.total_supply, chain_supply, where=f" (node @{block_number})"):
            return outcome
        if find_missing:
            outcome.info("Searching for missing iFIL events")
            last_good = await find_last_agreeing_height(self.ifil_supply_agrees, epoch)
            if last_good is None:
                outcome.fail("No passing epochs found")
            else:
                outcome.info(f"Highest passing epoch: {last_good}")
        return outcome

    # ------------------------------------------------------------------
    # Miner liquidation
    # ------------------------------------------------------------------

    async def check_miner_liquidation(
        self,
        miner: str,
        epoch: int,
        *,
        agent: Agent | None = None,
        miner_details: MinerDetails | None = None,
        label: str = "",
        timeout: float | None = None,
        max_pct_variance: float = 5.0,
        on_progress: Callable[[PartitionProgress], None] | None = None,
    ) -> CheckOutcome:
        """Reconcile quick, sampled and full penalty estimates (and the ledger's, when known)."""
        if self._estimator is None:
            raise RuntimeError("Miner liquidation checks need a termination estimator.")
        prefix = f"Agent {agent.id}: " if agent is not None else ""
        count = f"{label} " if label else ""
        outcome = CheckOutcome(entity=f"{prefix}Miner {count}{miner} @{epoch}")

        try:
            estimates = await run_estimates(self._estimator, miner, epoch, timeout=timeout, on_progress=on_progress)
        except EstimateTimeout as exc:
            outcome.timed_out = True
            outcome.fail(f"{outcome.entity}: Timed out, estimates inconclusive (pending: {', '.join(exc.pending)})")
            return outcome

        for tier, preview in (("Quick", estimates.quick), ("Sampled", estimates.sampled), ("Full", estimates.full)):
            outcome.info(
                f"{outcome.entity}: {tier} method: {to_fil(preview.termination_penalty):0.3f} FIL "
                f"({preview.sectors_terminated} of {preview.sectors_count} sectors, "
                f"{estimates.elapsed.get(tier.lower(), 0.0):0.1f}s)"
            )

        api_reported = miner_details.termination_penalty if miner_details is not None else None
        if api_reported is not None:
            outcome.info(f"{outcome.entity}: Termination penalty via API: {to_fil(api_reported):0.3f} FIL")

        reconciliation = reconcile(
            estimates.triple,
            max_pct_variance,
            secondary_reference=agent.principal_balance if agent is not None else None,
            api_reported=api_reported,
        )
        outcome.reconciliation = reconciliation

        quick = reconciliation.variance("quick")
        if quick is not None:
            outcome.info(f"{outcome.entity}: {describe(quick)}")
        for breach in reconciliation.breaches:
            outcome.fail(
                f"{outcome.entity}: Assertion failed: {breach.label} vs full diff "
                f"{format_pct(breach)} > {max_pct_variance:0.3f}%"
            )
        return outcome


def _or_na(value: int | None) -> str:
    return "n/a" if value is None else str(value)
