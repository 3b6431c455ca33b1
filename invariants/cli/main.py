"""Ledger invariants CLI - Main entry point."""

import typer
from dotenv import load_dotenv
from rich.panel import Panel
from rich.table import Table

from invariants.cli.agent_commands import agent_balances, agent_econ
from invariants.cli.miner_commands import miner_liquidation
from invariants.cli.protocol_commands import ifil_total_supply, metrics
from invariants.cli.runtime import CliState, configure_logging, console
from invariants.config import load_settings

app = typer.Typer(
    name="invariants",
    help="Check ledger-reported pool figures against the chain",
    no_args_is_help=True,
)

app.command("agent-balances")(agent_balances)
app.command("agent-econ")(agent_econ)
app.command("metrics")(metrics)
app.command("ifil-total-supply")(ifil_total_supply)
app.command("miner-liquidation")(miner_liquidation)


@app.callback()
def main(
    ctx: typer.Context,
    config: str = typer.Option("mainnet", "--config", help="Env file stem to load settings from"),
    archive: bool = typer.Option(True, "--archive/--no-archive", help="Query the archive node instead of the private node"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log requests and search steps"),
) -> None:
    """Load configuration and logging for every subcommand."""
    env_file = config if config.endswith(".env") else f"{config}.env"
    load_dotenv(env_file)
    configure_logging(verbose)
    ctx.obj = CliState(settings=load_settings(config), archive=archive)


@app.command()
def status(ctx: typer.Context) -> None:
    """Show the endpoints and contracts the checks will use."""
    state: CliState = ctx.obj
    settings = state.settings
    dial_addr, token = settings.lotus_endpoint(archive=state.archive)

    console.print(
        Panel(
            "[bold cyan]Ledger invariants[/bold cyan] - ledger vs chain consistency checks",
            title="Configuration",
            border_style="cyan",
        )
    )

    table = Table(border_style="cyan")
    table.add_column("Component", style="bold white")
    table.add_column("Status", justify="center")
    table.add_column("Details", style="dim")

    def row(name: str, value: str) -> None:
        configured = "[green]Configured[/green]" if value else "[yellow]Not configured[/yellow]"
        table.add_row(name, configured, value or "N/A")

    row("Events API", settings.events_api)
    row(f"Lotus ({'archive' if state.archive else 'private'})", dial_addr)
    table.add_row("Lotus token", "[green]Set[/green]" if token else "[yellow]Unset[/yellow]", "")
    row("Termination estimator", settings.ado_addr)
    row("Infinity pool", settings.infinity_pool_address)
    row("Agent factory", settings.agent_factory_address)
    row("iFIL token", settings.ifil_address)
    table.add_row("Chain id", "[cyan]Set[/cyan]", str(settings.chain_id))

    console.print(table)


if __name__ == "__main__":
    app()
