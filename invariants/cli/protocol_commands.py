"""Protocol-wide checks: pool metrics and iFIL supply."""

import asyncio

import typer

from invariants.checks import METRICS_HEAD_OFFSET, RunSummary
from invariants.cli.runtime import CliState, console, fatal, finish, open_session, print_outcome
from invariants.core.errors import InvariantsError


async def _metrics(state: CliState, epoch: int | None) -> RunSummary:
    summary = RunSummary(check="Metrics")
    async with open_session(state) as session:
        height = epoch if epoch is not None else await session.service.default_height(METRICS_HEAD_OFFSET)
        console.print(f"[bold cyan]Checking protocol metrics @{height}[/bold cyan]")
        print_outcome(summary.add(await session.service.check_metrics(height)))
    return summary


async def _ifil_total_supply(state: CliState, epoch: int | None, find_missing: bool) -> RunSummary:
    summary = RunSummary(check="iFIL total supply")
    async with open_session(state) as session:
        height = epoch if epoch is not None else await session.service.default_height(METRICS_HEAD_OFFSET)
        console.print(f"[bold cyan]Checking iFIL total supply @{height}[/bold cyan]")
        outcome = await session.service.check_ifil_total_supply(height, find_missing=find_missing)
        print_outcome(summary.add(outcome))
    return summary


def metrics(
    ctx: typer.Context,
    epoch: int | None = typer.Option(None, "--epoch", help="Height to check (default: head - 2)"),
) -> None:
    """Compare pool total assets, total borrowed and agent count."""
    try:
        summary = asyncio.run(_metrics(ctx.obj, epoch))
    except InvariantsError as exc:
        fatal("Metrics check aborted", exc)
    finish(summary)


def ifil_total_supply(
    ctx: typer.Context,
    epoch: int | None = typer.Option(None, "--epoch", help="Height to check (default: head - 2)"),
    find_missing: bool = typer.Option(
        False,
        "--find-missing",
        help="On mismatch, search back for the highest height where supplies agree",
    ),
) -> None:
    """Compare the ledger's iFIL total supply with the token contract."""
    try:
        summary = asyncio.run(_ifil_total_supply(ctx.obj, epoch, find_missing))
    except InvariantsError as exc:
        fatal("iFIL total supply check aborted", exc)
    finish(summary)
