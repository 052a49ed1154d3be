"""
Backtest Module - 策略回测系统

回放历史 tick，在真实交易成本和风控限制下验证预测策略。

模块结构:
- config/: 回测配置 (BacktestOptions, WalkForwardOptions)
- data/: 历史 tick 数据源 (内存 / CSV / Parquet)
- engine/: 回测模拟器、策略注册表、交易成本模拟
- analysis/: 绩效指标、市场环境、真实性评分
- optimization/: 滚动验证、策略比较
- cli/: CLI 命令

Usage:
    from tickrisk.backtest import BacktestOptions, BacktestSimulator, InMemoryTickSource

    simulator = BacktestSimulator(tick_source=InMemoryTickSource(ticks))
    report = simulator.run_backtest("frequency", "R_10", BacktestOptions(max_trades=100))
"""

from tickrisk.backtest.config.backtest_config import BacktestOptions, WalkForwardOptions
from tickrisk.backtest.data.tick_history import DataFrameTickSource, InMemoryTickSource
from tickrisk.backtest.engine.errors import (
    BacktestAlreadyRunningError,
    BacktestError,
    InsufficientHistoricalDataError,
    UnknownStrategyError,
)
from tickrisk.backtest.engine.simulator import BacktestReport, BacktestSimulator
from tickrisk.backtest.engine.strategies import StrategyRegistry

__all__ = [
    "BacktestAlreadyRunningError",
    "BacktestError",
    "BacktestOptions",
    "BacktestReport",
    "BacktestSimulator",
    "DataFrameTickSource",
    "InMemoryTickSource",
    "InsufficientHistoricalDataError",
    "StrategyRegistry",
    "UnknownStrategyError",
    "WalkForwardOptions",
]
