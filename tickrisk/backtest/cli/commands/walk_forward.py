"""
Walk-Forward Command - 滚动验证

Usage:
    tickrisk walk-forward --ticks data/R_10.csv --symbol R_10 --strategy frequency \
        --train-window 1000 --test-window 200 --step-size 100
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
from tickrisk.backtest.config.backtest_config import WalkForwardOptions
from tickrisk.backtest.engine.errors import BacktestError


@click.command("walk-forward")
@click.option("--strategy", "-s", default="frequency", show_default=True, help="策略 id")
@click.option("--train-window", default=1000, show_default=True, type=int, help="训练窗口 (tick)")
@click.option("--test-window", default=200, show_default=True, type=int, help="测试窗口 (tick)")
@click.option("--step-size", default=100, show_default=True, type=int, help="滑动步长 (tick)")
@tick_file_options
def walk_forward(
    strategy: str,
    train_window: int,
    test_window: int,
    step_size: int,
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
    """滚动验证: 每个测试窗口独立回测并评估稳健性"""
    setup_logging(verbose)

    try:
        options = build_options(config_file, capital, max_trades, slippage, latency, costs)
        wf_options = WalkForwardOptions(train_window, test_window, step_size)
        simulator = build_simulator(tick_file, symbol, options)
        result = simulator.walk_forward_analysis(strategy, symbol, wf_options)
    except (BacktestError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo("\n" + "=" * 60)
    click.echo(f"Walk-Forward: {strategy} on {symbol}")
    click.echo("=" * 60)
    click.echo(f"{'#':>3} {'Test Window':>15} {'Trades':>7} {'Profit':>10} {'Win Rate':>9}")
    for s in result.slices:
        perf = s.performance
        click.echo(
            f"{s.window.index:>3} {s.window.test_start:>7}-{s.window.test_end:<7} "
            f"{perf.total_trades:>7} {perf.total_profit:>10.2f} {perf.win_rate:>9.1%}"
        )
    click.echo()
    for metric, value in result.average_performance.items():
        click.echo(f"Avg {metric}: {value:.4f}")
    robustness = result.robustness
    click.echo(f"Robustness: {robustness.assessment.value} (score {robustness.score:.2f})")
    click.echo("=" * 60)

    write_json(result.to_dict(), output)
