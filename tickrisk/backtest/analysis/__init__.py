"""Backtest analysis module.

Provides performance metrics, market-condition analysis and realism scoring.
"""

from tickrisk.backtest.analysis.metrics import (
    PerformanceReport,
    RiskAdjustedMetrics,
    build_equity_curve,
    compute_performance,
)
from tickrisk.backtest.analysis.market_conditions import (
    BacktestRealism,
    MarketConditions,
    analyze_market_conditions,
    assess_backtest_realism,
)

__all__ = [
    "BacktestRealism",
    "MarketConditions",
    "PerformanceReport",
    "RiskAdjustedMetrics",
    "analyze_market_conditions",
    "assess_backtest_realism",
    "build_equity_curve",
    "compute_performance",
]
