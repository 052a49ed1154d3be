"""Backtest optimization module.

Walk-forward validation and multi-strategy comparison.
"""

from tickrisk.backtest.optimization.comparison import (
    MetricComparison,
    compare_performance,
    rank_strategies,
)
from tickrisk.backtest.optimization.walk_forward import (
    RobustnessAssessment,
    RobustnessLevel,
    WalkForwardResult,
    WalkForwardSlice,
    WalkForwardWindow,
    assess_robustness,
    average_performance,
    build_windows,
)

__all__ = [
    "MetricComparison",
    "RobustnessAssessment",
    "RobustnessLevel",
    "WalkForwardResult",
    "WalkForwardSlice",
    "WalkForwardWindow",
    "assess_robustness",
    "average_performance",
    "build_windows",
    "compare_performance",
    "rank_strategies",
]
