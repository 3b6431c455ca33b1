"""Per-agent checks: available balance and liability."""

import asyncio
from collections.abc import Awaitable, Callable

import typer

from invariants.checks import ECON_HEAD_OFFSET, RunSummary, SelectionError, pick_random, validate_selection
from invariants.cli.runtime import CliState, console, fatal, finish, open_session, print_outcome
from invariants.core.errors import InvariantsError
from invariants.schemas.ledger import Agent
from invariants.services.ledger_client import LedgerClient


async def select_agents(
    ledger: LedgerClient,
    agent_id: int | None,
    random_count: int,
) -> list[Agent]:
    """Resolve the CLI selection into agents, in ledger order or random order."""
    if agent_id is not None:
        agent = await ledger.get_agent(agent_id)
        if agent is None:
            raise SelectionError(f"Agent {agent_id} not found.")
        return [agent]
    agents = await ledger.list_agents()
    if random_count > 0:
        return pick_random(agents, random_count)
    return agents


async def _agent_balances(
    state: CliState,
    agent_id: int | None,
    random_count: int,
    epoch: int | None,
) -> RunSummary:
    summary = RunSummary(check="Agent balances")
    async with open_session(state) as session:
        agents = await select_agents(session.ledger, agent_id, random_count)
        console.print(f"[bold cyan]Checking available balance for {len(agents)} agent(s)[/bold cyan]")
        for agent in agents:
            outcome = await session.service.check_agent_balance(agent, epoch)
            print_outcome(summary.add(outcome))
    return summary


async def _agent_econ(
    state: CliState,
    agent_id: int | None,
    random_count: int,
    epoch: int | None,
) -> RunSummary:
    summary = RunSummary(check="Agent econ")
    async with open_session(state) as session:
        agents = await select_agents(session.ledger, agent_id, random_count)
        height = epoch if epoch is not None else await session.service.default_height(ECON_HEAD_OFFSET)
        console.print(f"[bold cyan]Checking liability for {len(agents)} agent(s) @{height}[/bold cyan]")
        for agent in agents:
            outcome = await session.service.check_agent_econ(agent, height)
            print_outcome(summary.add(outcome))
    return summary


def _run(
    check: Callable[[CliState, int | None, int, int | None], Awaitable[RunSummary]],
    state: CliState,
    agent_id: int | None,
    all_agents: bool,
    random_count: int,
    epoch: int | None,
) -> None:
    try:
        validate_selection(entity_id=agent_id, all_entities=all_agents, random_count=random_count)
    except SelectionError as exc:
        raise typer.BadParameter(str(exc)) from exc
    try:
        summary = asyncio.run(check(state, agent_id, random_count, epoch))
    except (InvariantsError, SelectionError) as exc:
        fatal("Check aborted", exc)
    finish(summary)


def agent_balances(
    ctx: typer.Context,
    agent_id: int | None = typer.Argument(None, help="Agent id"),
    all_agents: bool = typer.Option(False, "--all", help="Check every agent"),
    random_count: int = typer.Option(0, "--random", help="Check N randomly chosen agents"),
    epoch: int | None = typer.Option(None, "--epoch", help="Compare at this height instead of the latest snapshot"),
) -> None:
    """Compare ledger available balance with the agent's on-chain liquid assets."""
    _run(_agent_balances, ctx.obj, agent_id, all_agents, random_count, epoch)


def agent_econ(
    ctx: typer.Context,
    agent_id: int | None = typer.Argument(None, help="Agent id"),
    all_agents: bool = typer.Option(False, "--all", help="Check every agent"),
    random_count: int = typer.Option(0, "--random", help="Check N randomly chosen agents"),
    epoch: int | None = typer.Option(None, "--epoch", help="Height to check (default: head - 3)"),
) -> None:
    """Compare ledger liability with the agent's on-chain principal."""
    _run(_agent_econ, ctx.obj, agent_id, all_agents, random_count, epoch)
