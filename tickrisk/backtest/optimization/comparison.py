"""
Strategy Comparison - 策略比较

在相同回测配置下运行多个策略后，按指标给出最好 / 最差 / 平均值。
max_drawdown 和风险指标越低越好，其余越高越好。
"""

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from tickrisk.backtest.analysis.metrics import PerformanceReport

# 指标 -> 是否越高越好
COMPARISON_METRICS: dict[str, bool] = {
    "total_profit": True,
    "win_rate": True,
    "profit_factor": True,
    "sharpe_ratio": True,
    "max_drawdown": False,
    "value_at_risk": False,
}


def _metric_value(performance: PerformanceReport, metric: str) -> float:
    if metric == "value_at_risk":
        return performance.risk_adjusted.value_at_risk
    return getattr(performance, metric)


@dataclass
class MetricComparison:
    """单个指标的比较结果"""

    metric: str
    higher_is_better: bool
    best_strategy: str
    best_value: float
    worst_strategy: str
    worst_value: float
    average: float
    values: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "best": {"strategy": self.best_strategy, "value": self.best_value},
            "worst": {"strategy": self.worst_strategy, "value": self.worst_value},
            "average": self.average,
            "higher_is_better": self.higher_is_better,
            "values": dict(self.values),
        }


def compare_performance(results: dict[str, PerformanceReport]) -> dict[str, MetricComparison]:
    """按指标比较各策略

    Args:
        results: strategy_id -> PerformanceReport (按插入顺序，平局取先出现的策略)

    Returns:
        metric -> MetricComparison；没有结果时返回空字典
    """
    if not results:
        return {}

    comparison = {}
    for metric, higher_is_better in COMPARISON_METRICS.items():
        values = {sid: _metric_value(perf, metric) for sid, perf in results.items()}
        ranked = sorted(values, key=lambda sid: values[sid], reverse=higher_is_better)
        best, worst = ranked[0], ranked[-1]
        comparison[metric] = MetricComparison(
            metric=metric,
            higher_is_better=higher_is_better,
            best_strategy=best,
            best_value=values[best],
            worst_strategy=worst,
            worst_value=values[worst],
            average=float(np.mean(list(values.values()))),
            values=values,
        )
    return comparison


def rank_strategies(comparison: dict[str, MetricComparison]) -> list[tuple[str, int]]:
    """按"获得最佳指标的次数"排序策略

    Returns:
        [(strategy_id, wins), ...]，wins 降序
    """
    wins: dict[str, int] = {}
    for result in comparison.values():
        for sid in result.values:
            wins.setdefault(sid, 0)
        wins[result.best_strategy] += 1
    return sorted(wins.items(), key=lambda item: item[1], reverse=True)
