"""
Walk-Forward Validation - 滚动验证

提供策略的样本外验证能力:
- 训练/测试窗口切分 (单位: tick)
- 每个测试窗口独立回测 (由 BacktestSimulator.walk_forward_analysis 执行)
- 各窗口平均绩效
- 稳健性评估: 利润和胜率在窗口之间的一致性

稳健性:
    profit_consistency   = clip(1 − CV(每窗口利润), 0, 1)
    win_rate_consistency = clip(1 − std(每窗口胜率), 0, 1)
    score = (profit_consistency + win_rate_consistency) / 2
    > 0.8 highly robust, > 0.6 moderately robust, > 0.4 somewhat robust, 其他 not robust
    窗口数 < 3 时为 insufficient data
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

import numpy as np

from tickrisk.backtest.analysis.metrics import PerformanceReport
from tickrisk.backtest.config.backtest_config import WalkForwardOptions
from tickrisk.engine.portfolio.returns import calc_coefficient_of_variation

logger = logging.getLogger(__name__)


class RobustnessLevel(str, Enum):
    """稳健性评级"""

    HIGHLY_ROBUST = "highly robust"
    MODERATELY_ROBUST = "moderately robust"
    SOMEWHAT_ROBUST = "somewhat robust"
    NOT_ROBUST = "not robust"
    INSUFFICIENT_DATA = "insufficient data"


AVERAGED_METRICS = ("total_profit", "win_rate", "profit_factor", "sharpe_ratio", "max_drawdown")


@dataclass
class WalkForwardWindow:
    """一个训练/测试窗口 (tick 下标，左闭右开)"""

    index: int
    train_start: int
    train_end: int
    test_start: int
    test_end: int


@dataclass
class WalkForwardSlice:
    """单个窗口的样本外结果"""

    window: WalkForwardWindow
    performance: PerformanceReport
    test_start_time: datetime | None = None
    test_end_time: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.window.index,
            "train_start": self.window.train_start,
            "train_end": self.window.train_end,
            "test_start": self.window.test_start,
            "test_end": self.window.test_end,
            "test_start_time": self.test_start_time.isoformat() if self.test_start_time else None,
            "test_end_time": self.test_end_time.isoformat() if self.test_end_time else None,
            "performance": self.performance.to_dict(),
        }


@dataclass
class RobustnessAssessment:
    """稳健性评估"""

    score: float
    assessment: RobustnessLevel
    profit_consistency: float | None = None
    win_rate_consistency: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "assessment": self.assessment.value,
            "profit_consistency": self.profit_consistency,
            "win_rate_consistency": self.win_rate_consistency,
        }


@dataclass
class WalkForwardResult:
    """滚动验证结果"""

    strategy_id: str
    symbol: str
    options: WalkForwardOptions
    slices: list[WalkForwardSlice] = field(default_factory=list)
    average_performance: dict[str, float] = field(default_factory=dict)
    robustness: RobustnessAssessment | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy_id": self.strategy_id,
            "symbol": self.symbol,
            "options": self.options.to_dict(),
            "walk_forward_results": [s.to_dict() for s in self.slices],
            "average_performance": dict(self.average_performance),
            "robustness": self.robustness.to_dict() if self.robustness else None,
        }


def build_windows(n_ticks: int, options: WalkForwardOptions) -> list[WalkForwardWindow]:
    """按 step_size 滑动切分训练/测试窗口

    Example:
        >>> [w.test_start for w in build_windows(1400, WalkForwardOptions(1000, 200, 100))]
        [1000, 1100, 1200]
    """
    windows = []
    position = 0
    span = options.train_window + options.test_window
    while position + span <= n_ticks:
        windows.append(
            WalkForwardWindow(
                index=len(windows),
                train_start=position,
                train_end=position + options.train_window,
                test_start=position + options.train_window,
                test_end=position + span,
            )
        )
        position += options.step_size
    return windows


def average_performance(slices: list[WalkForwardSlice]) -> dict[str, float]:
    """各窗口关键指标的平均值"""
    if not slices:
        return {}
    return {
        metric: float(np.mean([getattr(s.performance, metric) for s in slices]))
        for metric in AVERAGED_METRICS
    }


def classify_robustness(score: float) -> RobustnessLevel:
    if score > 0.8:
        return RobustnessLevel.HIGHLY_ROBUST
    if score > 0.6:
        return RobustnessLevel.MODERATELY_ROBUST
    if score > 0.4:
        return RobustnessLevel.SOMEWHAT_ROBUST
    return RobustnessLevel.NOT_ROBUST


def assess_robustness(slices: list[WalkForwardSlice], min_slices: int = 3) -> RobustnessAssessment:
    """根据窗口间利润和胜率的一致性评估稳健性

    Args:
        slices: 各窗口结果
        min_slices: 最少窗口数

    Returns:
        RobustnessAssessment
    """
    if len(slices) < min_slices:
        return RobustnessAssessment(score=0.0, assessment=RobustnessLevel.INSUFFICIENT_DATA)

    profits = [s.performance.total_profit for s in slices]
    win_rates = [s.performance.win_rate for s in slices]

    # 平均利润为 0 时 CV 无定义，视为完全不一致
    cv = calc_coefficient_of_variation(profits)
    profit_consistency = 0.0 if cv is None else float(np.clip(1 - cv, 0.0, 1.0))
    win_rate_consistency = float(np.clip(1 - np.std(win_rates), 0.0, 1.0))

    score = (profit_consistency + win_rate_consistency) / 2
    return RobustnessAssessment(
        score=score,
        assessment=classify_robustness(score),
        profit_consistency=profit_consistency,
        win_rate_consistency=win_rate_consistency,
    )
