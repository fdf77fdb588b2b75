"""CLI for the DeFi portfolio aggregator."""

import json
import logging
from enum import StrEnum

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.traceback import install

from defi_portfolio.chains import ChainRegistry
from defi_portfolio.core import PortfolioAggregator
from defi_portfolio.core.models import Portfolio
from defi_portfolio.pricing import DeFiLlamaPricing
from defi_portfolio.protocols import build_default_protocol_registry
from defi_portfolio.types import ChainId

# Install rich traceback handler
install(show_locals=False)

app = typer.Typer(
    name="defi-portfolio",
    help="Aggregate DeFi positions across chains with automatic RPC failover",
    add_completion=False,
)

console = Console()


class OutputFormat(StrEnum):
    """Output format options."""

    TABLE = "table"
    JSON = "json"


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


def _parse_chain_id(value: str) -> ChainId:
    # EVM chains are numeric; anything else (e.g. 'solana') stays a string
    return int(value) if value.isdigit() else value.lower()


@app.callback()
def main(debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging")) -> None:
    _configure_logging(debug)


@app.command()
def portfolio(
    address: str = typer.Argument(..., help="Wallet address to query"),
    chain: list[str] | None = typer.Option(None, "--chain", "-c", help="Chain id to query (repeatable)"),
    no_prices: bool = typer.Option(False, "--no-prices", help="Skip USD valuation"),
    format: OutputFormat = typer.Option(OutputFormat.TABLE, "--format", "-f", help="Output format"),
) -> None:
    """
    Get all DeFi positions for a wallet address.

    Examples:

        # All chains
        defi-portfolio portfolio 0xABC...

        # Ethereum and Arbitrum only, as JSON
        defi-portfolio portfolio 0xABC... -c 1 -c 42161 --format json

        # Verbose logging goes on the app, before the command
        defi-portfolio --debug portfolio 0xABC...
    """
    chain_ids = [_parse_chain_id(c) for c in chain or []]

    chain_registry = ChainRegistry.from_defaults()
    protocol_registry = build_default_protocol_registry(chain_registry)

    unknown = [c for c in chain_ids if chain_registry.get_chain(c) is None]
    if unknown:
        console.print(f"[bold red]Unknown chain(s):[/bold red] {', '.join(map(str, unknown))}")
        raise typer.Exit(code=1)

    with DeFiLlamaPricing() as pricing:
        aggregator = PortfolioAggregator(
            chain_registry,
            protocol_registry,
            price_oracle=None if no_prices else pricing,
        )

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task(f"Fetching positions for {address}...", total=None)
            result = aggregator.get_portfolio(address, chain_ids)

    if format == OutputFormat.JSON:
        _output_json(result)
    else:
        _output_table(result)


@app.command("rpc-status")
def rpc_status() -> None:
    """Show the active RPC endpoint and its health for every chain."""
    chain_registry = ChainRegistry.from_defaults()

    table = Table(title="RPC Status", show_header=True, header_style="bold magenta")
    table.add_column("Chain", style="cyan")
    table.add_column("RPC URL", style="green")
    table.add_column("Index", justify="right")
    table.add_column("Failures", justify="right", style="yellow")

    for chain_id, status in chain_registry.get_rpc_status().items():
        table.add_row(str(chain_id), status.rpc_url, str(status.rpc_index), str(status.health.failure_count))

    console.print(table)


@app.command()
def health() -> None:
    """Probe every chain's current RPC endpoint."""
    chain_registry = ChainRegistry.from_defaults()
    results = chain_registry.health_check_all()

    table = Table(title="Chain Health", show_header=True, header_style="bold magenta")
    table.add_column("Chain", style="cyan")
    table.add_column("RPC URL", style="dim")
    table.add_column("Status")

    for chain_id, ok in results.items():
        status = "[green]✓ ok[/green]" if ok else "[red]✗ fail[/red]"
        table.add_row(str(chain_id), chain_registry.get_current_rpc_url(chain_id), status)

    console.print(table)

    if not all(results.values()):
        raise typer.Exit(code=1)


@app.command("list-protocols")
def list_protocols() -> None:
    """List all supported protocols."""
    chain_registry = ChainRegistry.from_defaults()
    protocol_registry = build_default_protocol_registry(chain_registry)

    table = Table(title="Supported Protocols", show_header=True, header_style="bold magenta")
    table.add_column("Protocol", style="cyan")
    table.add_column("Category", style="yellow")
    table.add_column("Supported Chains", style="green")

    for adapter in protocol_registry.get_all_adapters():
        chains = ", ".join(str(chain_id) for chain_id in adapter.supported_chains)
        table.add_row(adapter.protocol.id, adapter.protocol.category.value, chains)

    console.print(table)


@app.command("list-chains")
def list_chains() -> None:
    """List all configured chains."""
    chain_registry = ChainRegistry.from_defaults()

    table = Table(title="Supported Chains", show_header=True, header_style="bold magenta")
    table.add_column("Id", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Network")
    table.add_column("RPC Endpoints", justify="right")

    for config in chain_registry.get_all_chains():
        table.add_row(str(config.id), config.name, config.network.value, str(len(config.rpc_urls)))

    console.print(table)


def _output_table(result: Portfolio) -> None:
    """Output portfolio as rich table."""
    if not result.positions:
        console.print("\n[yellow]No positions found[/yellow]")
        return

    table = Table(
        title=f"Portfolio for {result.address[:10]}...{result.address[-8:]}",
        show_header=True,
        header_style="bold magenta",
    )

    table.add_column("Protocol", style="cyan")
    table.add_column("Chain", style="blue")
    table.add_column("Type", style="yellow")
    table.add_column("Token", style="green")
    table.add_column("Balance", style="white", justify="right")
    table.add_column("APY", justify="right")
    table.add_column("USD Value", style="bold green", justify="right")

    for position in result.positions:
        chain_portfolio = result.by_chain.get(position.chain_id)
        token = position.tokens[0] if position.tokens else None
        apy = f"{position.yield_info.apy * 100:.2f}%" if position.yield_info else "-"
        usd = f"${position.value_usd:,.2f}" if position.value_usd else "-"
        table.add_row(
            position.protocol.name,
            chain_portfolio.chain_name if chain_portfolio else str(position.chain_id),
            position.position_type.value,
            token.symbol if token else "-",
            token.balance_formatted if token else "-",
            apy,
            usd,
        )

    console.print("\n")
    console.print(table)

    summary_table = Table(show_header=False, box=None)
    summary_table.add_column("Label", style="bold")
    summary_table.add_column("Value", style="bold green")

    summary_table.add_row("Total Value:", f"${result.total_value_usd:,.2f}")
    summary_table.add_row("Total Positions:", str(len(result.positions)))

    summary_table.add_row("", "")
    summary_table.add_row("[bold]By Chain:[/bold]", "")
    for chain_portfolio in result.by_chain.values():
        summary_table.add_row(f"  {chain_portfolio.chain_name}", f"${chain_portfolio.total_value_usd:,.2f}")

    if result.by_protocol:
        summary_table.add_row("", "")
        summary_table.add_row("[bold]By Protocol:[/bold]", "")
        for protocol_portfolio in result.by_protocol.values():
            summary_table.add_row(
                f"  {protocol_portfolio.protocol_name}",
                f"${protocol_portfolio.total_value_usd:,.2f}",
            )

    console.print("\n")
    console.print(summary_table)
    console.print("\n")


def _output_json(result: Portfolio) -> None:
    """Output portfolio as JSON."""
    data = result.model_dump(mode="json")
    console.print_json(json.dumps(data))


if __name__ == "__main__":
    app()
