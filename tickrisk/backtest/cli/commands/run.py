"""
Run Command - 运行单次回测

Usage:
    tickrisk run --ticks data/R_10.csv --symbol R_10 --strategy frequency \
        --max-trades 100 --latency --output reports/frequency.json
"""

import sys

import click

from tickrisk.backtest.cli.commands.common import (
    build_options,
    build_simulator,
    echo_performance,
    setup_logging,
    tick_file_options,
    write_json,
)
from tickrisk.backtest.engine.errors import BacktestError


@click.command()
@click.option("--strategy", "-s", default="frequency", show_default=True, help="策略 id")
@tick_file_options
def run(
    strategy: str,
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
    """运行单次回测并打印绩效摘要

    \b
    示例:
        tickrisk run -t data/R_10.csv -S R_10 -s frequency --max-trades 100
        tickrisk run -t data/R_10.parquet -S R_10 -s time_series --latency -o out.json
    """
    setup_logging(verbose)

    try:
        options = build_options(config_file, capital, max_trades, slippage, latency, costs)
        simulator = build_simulator(tick_file, symbol, options)
        report = simulator.run_backtest(strategy, symbol)
    except (BacktestError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    payload = report.to_dict()
    metadata = payload["metadata"]

    click.echo("\n" + "=" * 60)
    click.echo("Backtest Results")
    click.echo("=" * 60)
    click.echo(f"Strategy: {strategy}")
    click.echo(f"Symbol: {symbol}")
    click.echo(f"Period: {metadata['start_time']} ~ {metadata['end_time']} ({metadata['data_points']} ticks)")
    click.echo()
    echo_performance(payload["performance"])
    click.echo()
    realism = metadata["backtest_realism"]
    click.echo(f"Realism: {realism['score']:.2f} ({', '.join(realism['factors']) or 'none'})")
    if metadata["halted_reason"]:
        click.echo(f"Circuit breaker: {metadata['halted_reason']}")
    click.echo("=" * 60)

    write_json(payload, output)
