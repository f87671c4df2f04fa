"""CLI for replaying pool events into financial metrics."""

import json
import logging
from enum import StrEnum
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table
from rich.traceback import install

from staking_pool_metrics.core.aggregator import FinancialMetricsAggregator
from staking_pool_metrics.core.models import (
    RECORD_TYPES,
    FinancialsDailySnapshot,
    Pool,
    PoolDailySnapshot,
    PoolHourlySnapshot,
    Protocol,
)
from staking_pool_metrics.data import load_protocol_config
from staking_pool_metrics.pipeline import DepositEvent, EventPipeline, RewardsEvent, load_events, load_prices
from staking_pool_metrics.pricing import DeFiLlamaPriceOracle, StaticPriceOracle
from staking_pool_metrics.storage import InMemoryRecordStore, RecordStore, SqlRecordStore

# Install rich traceback handler
install(show_locals=True)

app = typer.Typer(
    name="staking-pool-metrics",
    help="Replay liquid staking pool events into cumulative, daily, and hourly financial metrics",
    add_completion=False,
)

console = Console()


class OutputFormat(StrEnum):
    """Output format options."""

    TABLE = "table"
    JSON = "json"


class OracleKind(StrEnum):
    """Price source options."""

    STATIC = "static"
    DEFILLAMA = "defillama"


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _open_store(state: Path | None) -> RecordStore:
    if state is None:
        return InMemoryRecordStore()
    return SqlRecordStore.for_path(state)


def _build_oracle(
    kind: OracleKind,
    prices_file: Path | None,
    events: list[DepositEvent | RewardsEvent],
) -> StaticPriceOracle | DeFiLlamaPriceOracle:
    if kind == OracleKind.DEFILLAMA:
        return DeFiLlamaPriceOracle(
            block_timestamps={event.block.number: event.block.timestamp for event in events},
        )

    if prices_file is None:
        msg = "--prices is required with the static oracle"
        raise ValueError(msg)

    oracle = StaticPriceOracle()
    for point in load_prices(prices_file):
        oracle.set_price(point.token, point.block_number, point.price_usd)
    return oracle


@app.command()
def replay(
    events_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="YAML list of events"),
    prices_file: Path | None = typer.Option(
        None,
        "--prices",
        "-p",
        exists=True,
        dir_okay=False,
        help="YAML list of prices (static oracle)",
    ),
    oracle_kind: OracleKind = typer.Option(OracleKind.STATIC, "--oracle", "-o", help="Price source"),
    state: Path | None = typer.Option(None, "--state", "-s", help="SQLite file to persist records to"),
    config_file: Path | None = typer.Option(None, "--config", help="Protocol configuration YAML"),
    format: OutputFormat = typer.Option(
        OutputFormat.TABLE,
        "--format",
        "-f",
        help="Output format",
    ),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug output"),
) -> None:
    """
    Replay events through the metrics aggregator and print the results.

    Examples:

        # Replay into memory and print tables
        staking-pool-metrics replay events.yaml --prices prices.yaml

        # Price with DeFiLlama historical prices, persist records and print JSON
        staking-pool-metrics replay events.yaml --oracle defillama --state state.db --format json
    """
    _configure_logging(debug)

    try:
        config = load_protocol_config(config_file)
        events = load_events(events_file)
        oracle = _build_oracle(oracle_kind, prices_file, events)
        store = _open_store(state)
        pipeline = EventPipeline(FinancialMetricsAggregator(store, oracle, config))

        try:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                console=console,
                transient=True,
                disable=format == OutputFormat.JSON,
            ) as progress:
                task = progress.add_task(f"Replaying {len(events)} events...", total=len(events))
                for event in events:
                    pipeline.handle(event)
                    progress.advance(task)

            _output(store, format)
        finally:
            if isinstance(oracle, DeFiLlamaPriceOracle):
                oracle.close()
            if isinstance(store, SqlRecordStore):
                store.close()

    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        if debug:
            # Rich traceback will automatically handle this
            raise
        raise typer.Exit(1) from e


@app.command()
def show(
    state: Path = typer.Option(..., "--state", "-s", exists=True, dir_okay=False, help="SQLite record store file"),
    format: OutputFormat = typer.Option(
        OutputFormat.TABLE,
        "--format",
        "-f",
        help="Output format",
    ),
) -> None:
    """Print the aggregates and snapshots stored in a state file."""
    try:
        with SqlRecordStore.for_path(state) as store:
            _output(store, format)
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1) from e


def _output(store: RecordStore, format: OutputFormat) -> None:
    if format == OutputFormat.JSON:
        _output_json(store)
    else:
        _output_table(store)


def _usd(value) -> str:
    return f"${value:,.2f}" if value is not None else "-"


def _output_table(store: RecordStore) -> None:
    """Output aggregates and snapshots as rich tables."""
    protocols = store.records(Protocol)
    pools = store.records(Pool)

    if not protocols and not pools:
        console.print("\n[yellow]No records found[/yellow]")
        return

    summary_table = Table(title="Aggregates", show_header=True, header_style="bold magenta")
    summary_table.add_column("Record", style="cyan")
    summary_table.add_column("TVL", style="bold green", justify="right")
    summary_table.add_column("Total Revenue", justify="right")
    summary_table.add_column("Protocol Revenue", justify="right")
    summary_table.add_column("Supply Revenue", justify="right")
    summary_table.add_column("Balances", style="white", justify="right")

    for protocol in protocols:
        summary_table.add_row(
            f"protocol {protocol.slug or protocol.id}",
            _usd(protocol.total_value_locked_usd),
            _usd(protocol.cumulative_total_revenue_usd),
            _usd(protocol.cumulative_protocol_side_revenue_usd),
            _usd(protocol.cumulative_supply_side_revenue_usd),
            "",
        )
    for pool in pools:
        summary_table.add_row(
            f"pool {pool.id[:10]}...",
            _usd(pool.total_value_locked_usd),
            _usd(pool.cumulative_total_revenue_usd),
            _usd(pool.cumulative_protocol_side_revenue_usd),
            _usd(pool.cumulative_supply_side_revenue_usd),
            ", ".join(str(balance) for balance in pool.input_token_balances),
        )

    console.print("\n")
    console.print(summary_table)

    financials_table = Table(title="Financials Daily", show_header=True, header_style="bold magenta")
    financials_table.add_column("Day", style="cyan")
    financials_table.add_column("Block", style="blue", justify="right")
    financials_table.add_column("TVL", style="bold green", justify="right")
    financials_table.add_column("Total", justify="right")
    financials_table.add_column("Protocol", justify="right")
    financials_table.add_column("Supply", justify="right")

    for snapshot in store.records(FinancialsDailySnapshot):
        financials_table.add_row(
            snapshot.id,
            str(snapshot.block_number),
            _usd(snapshot.total_value_locked_usd),
            _usd(snapshot.daily_total_revenue_usd),
            _usd(snapshot.daily_protocol_side_revenue_usd),
            _usd(snapshot.daily_supply_side_revenue_usd),
        )

    console.print(financials_table)

    for title, model, prefix in (
        ("Pool Daily", PoolDailySnapshot, "daily"),
        ("Pool Hourly", PoolHourlySnapshot, "hourly"),
    ):
        table = Table(title=title, show_header=True, header_style="bold magenta")
        table.add_column("Bucket", style="cyan")
        table.add_column("Block", style="blue", justify="right")
        table.add_column("TVL", style="bold green", justify="right")
        table.add_column("Total", justify="right")
        table.add_column("Supply", justify="right")
        table.add_column("Emissions", justify="right")
        table.add_column("Emissions USD", justify="right")

        for snapshot in store.records(model):
            table.add_row(
                snapshot.id,
                str(snapshot.block_number),
                _usd(snapshot.total_value_locked_usd),
                _usd(getattr(snapshot, f"{prefix}_total_revenue_usd")),
                _usd(getattr(snapshot, f"{prefix}_supply_side_revenue_usd")),
                str(snapshot.reward_token_emissions_amount[0]),
                _usd(snapshot.reward_token_emissions_usd[0]),
            )

        console.print(table)

    console.print("\n")


def _output_json(store: RecordStore) -> None:
    """Output all records as JSON."""
    data = {
        kind: [record.model_dump(mode="json") for record in store.records(model)]
        for kind, model in RECORD_TYPES.items()
    }

    print(json.dumps(data, indent=2))


if __name__ == "__main__":
    app()
