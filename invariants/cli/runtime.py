"""Shared CLI plumbing: settings, client wiring and report rendering."""

import logging
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from invariants.checks import CheckOutcome, InvariantCheckService, RunSummary
from invariants.checks.report import ERROR, OK
from invariants.config import Settings
from invariants.core.epoch import EpochNormalizer
from invariants.services.ledger_client import LedgerClient
from invariants.services.lotus_client import LotusClient
from invariants.services.pools_query import PoolsQuery
from invariants.services.termination_estimator import AdoTerminationEstimator

console = Console()

_STYLES = {OK: "green", ERROR: "bold red"}


@dataclass
class CliState:
    """Options from the top-level callback, handed to every command via ``ctx.obj``."""

    settings: Settings
    archive: bool = True


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)],
        force=True,
    )
    # web3 and httpx are chatty at DEBUG
    for name in ("httpx", "httpcore", "web3"):
        logging.getLogger(name).setLevel(logging.INFO if verbose else logging.WARNING)


@dataclass
class Session:
    ledger: LedgerClient
    service: InvariantCheckService


@asynccontextmanager
async def open_session(state: CliState, *, with_estimator: bool = False) -> AsyncIterator[Session]:
    """Build the clients for one run and close them when it ends."""
    settings = state.settings
    dial_addr, token = settings.lotus_endpoint(archive=state.archive)
    async with AsyncExitStack() as stack:
        ledger = await stack.enter_async_context(LedgerClient(settings))
        lotus = await stack.enter_async_context(
            LotusClient(dial_addr=dial_addr, token=token, timeout_seconds=settings.rpc_timeout_seconds)
        )
        estimator = None
        if with_estimator:
            ado = await stack.enter_async_context(
                LotusClient(dial_addr=settings.ado_addr, timeout_seconds=settings.rpc_timeout_seconds)
            )
            estimator = AdoTerminationEstimator(lotus=lotus, ado=ado)
        service = InvariantCheckService(
            ledger=ledger,
            normalizer=EpochNormalizer(lotus),
            pools=PoolsQuery(settings=settings, rpc_url=dial_addr, token=token),
            estimator=estimator,
        )
        yield Session(ledger=ledger, service=service)


def print_outcome(outcome: CheckOutcome) -> None:
    for finding in outcome.findings:
        style = _STYLES.get(finding.level)
        console.print(finding.text, style=style, markup=False, highlight=False)


def print_summary(summary: RunSummary) -> None:
    table = Table(title=f"{summary.check} summary", border_style="cyan")
    table.add_column("Checked", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Timed out", justify="right")
    table.add_column("Result", justify="center")
    table.add_row(
        str(len(summary.outcomes)),
        str(summary.fail_count),
        str(summary.timeout_count),
        "[green]PASS[/green]" if summary.passed else "[red]FAIL[/red]",
    )
    console.print(table)


def finish(summary: RunSummary) -> None:
    """Render the summary and exit non-zero when any entity failed."""
    print_summary(summary)
    if not summary.passed:
        raise typer.Exit(1)


def fatal(title: str, exc: Exception) -> NoReturn:
    code = getattr(exc, "code", None)
    detail = f"[red]{exc}[/red]" if code is None else f"[red]{exc}[/red]\n\n[dim]{code}[/dim]"
    console.print(Panel(detail, title=title, border_style="red"))
    raise typer.Exit(1)
