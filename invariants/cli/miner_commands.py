"""Miner liquidation check: reconcile termination penalty estimates."""

import asyncio
from contextlib import nullcontext
from dataclasses import dataclass

import typer
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn

from invariants.checks import ECON_HEAD_OFFSET, RunSummary, SelectionError, flatten_miners, pick_random, validate_selection
from invariants.cli.runtime import CliState, console, fatal, finish, open_session, print_outcome
from invariants.core.errors import InvariantsError
from invariants.schemas.chain import PartitionProgress
from invariants.schemas.ledger import Agent, MinerDetails
from invariants.services.ledger_client import LedgerClient

DEFAULT_TIMEOUT_SECONDS = 15 * 60
DEFAULT_MAX_PCT_VARIANCE = 5.0


@dataclass(frozen=True)
class MinerTarget:
    miner: str
    agent: Agent | None = None
    details: MinerDetails | None = None


async def select_miners(
    ledger: LedgerClient,
    miner: str | None,
    agent_id: int | None,
    random_count: int,
) -> list[MinerTarget]:
    if miner is not None:
        return [MinerTarget(miner=miner)]

    if agent_id is not None:
        agent = await ledger.get_agent(agent_id)
        if agent is None:
            raise SelectionError(f"Agent {agent_id} not found.")
        return await _pledged_targets(ledger, [agent])

    agents = await ledger.list_agents()
    if random_count <= 0:
        return await _pledged_targets(ledger, agents)

    chosen = pick_random(flatten_miners(agents), random_count)
    miners_by_agent: dict[int, list[MinerDetails]] = {}
    targets = []
    for entry in chosen:
        if entry.agent.id not in miners_by_agent:
            miners_by_agent[entry.agent.id] = await ledger.get_agent_miners(entry.agent.id)
        pledged = miners_by_agent[entry.agent.id]
        if entry.position <= len(pledged):
            details = pledged[entry.position - 1]
            targets.append(MinerTarget(miner=details.miner_addr, agent=entry.agent, details=details))
    return targets


async def _pledged_targets(ledger: LedgerClient, agents: list[Agent]) -> list[MinerTarget]:
    targets = []
    for agent in agents:
        for details in await ledger.get_agent_miners(agent.id):
            targets.append(MinerTarget(miner=details.miner_addr, agent=agent, details=details))
    return targets


async def _miner_liquidation(
    state: CliState,
    miner: str | None,
    agent_id: int | None,
    random_count: int,
    epoch: int | None,
    show_progress: bool,
    timeout: float,
    max_pct_variance: float,
) -> RunSummary:
    summary = RunSummary(check="Miner liquidation")
    async with open_session(state, with_estimator=True) as session:
        targets = await select_miners(session.ledger, miner, agent_id, random_count)
        height = epoch if epoch is not None else await session.service.default_height(ECON_HEAD_OFFSET)
        console.print(f"[bold cyan]Checking termination penalty for {len(targets)} miner(s) @{height}[/bold cyan]")

        progress = (
            Progress(
                TextColumn("[cyan]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeElapsedColumn(),
                console=console,
                transient=True,
            )
            if show_progress
            else None
        )
        with progress if progress is not None else nullcontext():
            for index, target in enumerate(targets, start=1):
                on_progress = None
                if progress is not None:
                    task_id = progress.add_task(f"{target.miner} partitions", total=None)

                    def on_progress(event: PartitionProgress, task_id=task_id) -> None:
                        progress.update(
                            task_id,
                            completed=event.deadline_partition_index + 1,
                            total=event.deadline_partition_count,
                        )

                outcome = await session.service.check_miner_liquidation(
                    target.miner,
                    height,
                    agent=target.agent,
                    miner_details=target.details,
                    label=f"{index}/{len(targets)}",
                    timeout=timeout,
                    max_pct_variance=max_pct_variance,
                    on_progress=on_progress,
                )
                if progress is not None:
                    progress.remove_task(task_id)
                print_outcome(summary.add(outcome))
    return summary


def miner_liquidation(
    ctx: typer.Context,
    miner: str | None = typer.Argument(None, help="Miner address, e.g. f01234"),
    agent_id: int | None = typer.Option(None, "--agent", help="Check every miner pledged to this agent"),
    all_agents: bool = typer.Option(False, "--all-agents", help="Check every miner of every agent"),
    random_count: int = typer.Option(0, "--random", help="Check N randomly chosen pledged miners"),
    epoch: int | None = typer.Option(None, "--epoch", help="Height to check (default: head - 3)"),
    show_progress: bool = typer.Option(True, "--progress/--no-progress", help="Show full-scan partition progress"),
    timeout: float = typer.Option(DEFAULT_TIMEOUT_SECONDS, "--timeout", help="Seconds allowed per miner"),
    max_pct_variance: float = typer.Option(
        DEFAULT_MAX_PCT_VARIANCE,
        "--max-pct-variance",
        help="Largest tolerated estimate deviation from the full scan, in percent",
    ),
) -> None:
    """Reconcile quick, sampled and full termination penalty estimates."""
    if miner is not None and agent_id is not None:
        raise typer.BadParameter("A miner address cannot be combined with --agent.")
    try:
        validate_selection(
            entity_id=miner if miner is not None else agent_id,
            all_entities=all_agents,
            random_count=random_count,
        )
    except SelectionError as exc:
        raise typer.BadParameter(str(exc)) from exc

    try:
        summary = asyncio.run(
            _miner_liquidation(
                ctx.obj,
                miner,
                agent_id,
                random_count,
                epoch,
                show_progress,
                timeout,
                max_pct_variance,
            )
        )
    except (InvariantsError, SelectionError) as exc:
        fatal("Miner liquidation check aborted", exc)
    finish(summary)
