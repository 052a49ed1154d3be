"""CLI 共用的选项和输出工具"""

import json
import logging
from pathlib import Path
from typing import Any

import click

from tickrisk.backtest.config.backtest_config import BacktestOptions
from tickrisk.backtest.data.tick_history import DataFrameTickSource
from tickrisk.backtest.engine.simulator import BacktestSimulator
from tickrisk.business.config.config_mode import ConfigMode
from tickrisk.business.config.portfolio_config import PortfolioConfig
from tickrisk.business.config.risk_config import RiskConfig


def tick_file_options(func):
    """数据与配置相关的公共选项"""
    options = [
        click.option(
            "--ticks",
            "-t",
            "tick_file",
            required=True,
            type=click.Path(exists=True, dir_okay=False),
            help="tick 数据文件 (CSV / Parquet)",
        ),
        click.option("--symbol", "-S", required=True, help="标的，例如 R_10"),
        click.option(
            "--config",
            "-c",
            "config_file",
            type=click.Path(exists=True, dir_okay=False),
            help="回测配置 YAML (BacktestOptions)",
        ),
        click.option("--capital", type=float, help="初始资金 (覆盖配置)"),
        click.option("--max-trades", type=int, help="最多交易笔数 (覆盖配置)"),
        click.option(
            "--slippage",
            type=click.Choice(["none", "fixed", "realistic", "aggressive"], case_sensitive=False),
            help="滑点模型 (覆盖配置)",
        ),
        click.option("--latency/--no-latency", default=None, help="是否模拟延迟"),
        click.option("--costs/--no-costs", default=None, help="是否计入交易成本"),
        click.option("--output", "-o", type=click.Path(dir_okay=False), help="JSON 输出路径"),
        click.option("--verbose", "-v", is_flag=True, help="详细输出"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def setup_logging(verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def build_options(
    config_file: str | None,
    capital: float | None,
    max_trades: int | None,
    slippage: str | None,
    latency: bool | None,
    costs: bool | None,
) -> BacktestOptions:
    """配置文件 + 命令行覆盖"""
    data = BacktestOptions.from_yaml(config_file).to_dict() if config_file else {}
    overrides = {
        "initial_balance": capital,
        "max_trades": max_trades,
        "slippage_model": slippage.lower() if slippage else None,
        "realistic_latency": latency,
        "include_transaction_costs": costs,
    }
    data.update({k: v for k, v in overrides.items() if v is not None})
    return BacktestOptions.from_dict(data)


def build_simulator(tick_file: str, symbol: str, options: BacktestOptions) -> BacktestSimulator:
    """从 tick 文件创建模拟器，风控 / 组合配置使用 BACKTEST 模式"""
    source = DataFrameTickSource.from_file(tick_file, symbol=symbol)
    return BacktestSimulator(
        tick_source=source,
        risk_config=RiskConfig.load(ConfigMode.BACKTEST),
        portfolio_config=PortfolioConfig.load(ConfigMode.BACKTEST),
        options=options,
    )


def write_json(payload: dict[str, Any], output: str | None) -> None:
    if not output:
        return
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)
    click.echo(f"Saved: {path}")


def echo_performance(performance: dict[str, Any]) -> None:
    risk = performance["risk_adjusted_metrics"]
    click.echo(f"Total Trades: {performance['total_trades']}")
    click.echo(f"Win Rate: {performance['win_rate']:.1%}")
    click.echo(f"Total Profit: {performance['total_profit']:,.2f}")
    click.echo(f"Profit Factor: {performance['profit_factor']:.2f}")
    click.echo(f"Sharpe Ratio: {performance['sharpe_ratio']:.2f}")
    click.echo(f"Max Drawdown: {performance['max_drawdown']:.2%}")
    click.echo(f"Total Fees: {performance['total_fees']:,.2f}")
    click.echo(f"VaR: {risk['value_at_risk']:.2%}  ES: {risk['expected_shortfall']:.2%}")
    click.echo(f"Risk of Ruin: {risk['risk_of_ruin']:.2%}")
