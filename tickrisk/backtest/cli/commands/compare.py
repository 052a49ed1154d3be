"""
Compare Command - 策略比较

Usage:
    tickrisk compare --ticks data/R_10.csv --symbol R_10 -s frequency -s time_series
"""

import sys

import click

from tickrisk.backtest.cli.commands.common import (
    build_options,
    build_simulator,
    setup_logging,
    tick_file_options,
    write_json,
)
from tickrisk.backtest.engine.errors import BacktestError


@click.command()
@click.option(
    "--strategy",
    "-s",
    "strategies",
    multiple=True,
    default=("frequency", "time_series"),
    show_default=True,
    help="策略 id (可多次指定)",
)
@tick_file_options
def compare(
    strategies: tuple[str, ...],
    tick_file: str,
    symbol: str,
    config_file: str | None,
    capital: float | None,
    max_trades: int | None,
    slippage: str | None,
    latency: bool | None,
    costs: bool | None,
    output: str | None,
    verbose: bool,
) -> None:
    """在相同配置下比较多个策略"""
    setup_logging(verbose)

    try:
        options = build_options(config_file, capital, max_trades, slippage, latency, costs)
        simulator = build_simulator(tick_file, symbol, options)
        report = simulator.compare_strategies(symbol, list(strategies))
    except (BacktestError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo("\n" + "=" * 60)
    click.echo(f"Strategy Comparison: {symbol}")
    click.echo("=" * 60)
    for metric, result in report.comparison.items():
        best, worst = result["best"], result["worst"]
        click.echo(
            f"{metric:<15} best={best['strategy']} ({best['value']:.4f})  "
            f"worst={worst['strategy']} ({worst['value']:.4f})  avg={result['average']:.4f}"
        )
    click.echo()
    click.echo("Ranking: " + ", ".join(f"{sid} ({wins})" for sid, wins in report.ranking))
    click.echo("=" * 60)

    write_json(report.to_dict(), output)
