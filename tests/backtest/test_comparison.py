"""Tests for strategy comparison."""

import pytest

from tickrisk.backtest.analysis.metrics import PerformanceReport, RiskAdjustedMetrics
from tickrisk.backtest.optimization.comparison import compare_performance, rank_strategies


@pytest.fixture
def results() -> dict[str, PerformanceReport]:
    return {
        "alpha": PerformanceReport(
            total_profit=10.0,
            win_rate=0.1,
            profit_factor=1.2,
            sharpe_ratio=0.5,
            max_drawdown=0.10,
            risk_adjusted=RiskAdjustedMetrics(value_at_risk=0.8),
        ),
        "beta": PerformanceReport(
            total_profit=5.0,
            win_rate=0.2,
            profit_factor=1.2,
            sharpe_ratio=0.3,
            max_drawdown=0.05,
            risk_adjusted=RiskAdjustedMetrics(value_at_risk=1.0),
        ),
    }


class TestComparePerformance:
    """Tests for per-metric best / worst selection."""

    def test_higher_is_better(self, results):
        comparison = compare_performance(results)
        assert comparison["total_profit"].best_strategy == "alpha"
        assert comparison["win_rate"].best_strategy == "beta"
        assert comparison["total_profit"].average == pytest.approx(7.5)

    def test_lower_is_better_for_risk(self, results):
        comparison = compare_performance(results)
        assert comparison["max_drawdown"].best_strategy == "beta"
        assert comparison["max_drawdown"].worst_strategy == "alpha"
        assert comparison["value_at_risk"].best_strategy == "alpha"

    def test_tie_goes_to_first(self, results):
        assert compare_performance(results)["profit_factor"].best_strategy == "alpha"

    def test_empty(self):
        assert compare_performance({}) == {}

    def test_to_dict(self, results):
        data = compare_performance(results)["win_rate"].to_dict()
        assert data["best"] == {"strategy": "beta", "value": 0.2}
        assert data["higher_is_better"] is True


def test_rank_strategies(results):
    ranking = rank_strategies(compare_performance(results))
    assert ranking == [("alpha", 4), ("beta", 2)]
