"""Backtest configuration."""

from tickrisk.backtest.config.backtest_config import (
    BacktestOptions,
    SlippageModelType,
    WalkForwardOptions,
)

__all__ = [
    "BacktestOptions",
    "SlippageModelType",
    "WalkForwardOptions",
]
