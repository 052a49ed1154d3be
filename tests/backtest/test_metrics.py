"""Tests for backtest performance metrics."""

from datetime import datetime, timedelta

import pytest

from tickrisk.backtest.analysis.metrics import (
    PerformanceReport,
    build_equity_curve,
    compute_performance,
)
from tickrisk.backtest.engine.trade_simulator import BacktestTrade
from tickrisk.engine.models.enums import TradeResult

START = datetime(2024, 1, 2, 9, 0, 0)


def make_trade(index: int, won: bool, stake: float = 10.0, fees: float = 0.0) -> BacktestTrade:
    payout = stake * 9.0 if won else 0.0
    gross = payout - stake
    return BacktestTrade(
        trade_id=f"t{index}",
        symbol="R_10",
        strategy_id="test",
        prediction=7,
        actual_digit=7 if won else 3,
        probability=0.12,
        confidence=0.12,
        stake=stake,
        entry_time=START + timedelta(seconds=2 * index),
        exit_time=START + timedelta(seconds=2 * index + 2),
        result=TradeResult.WON if won else TradeResult.LOST,
        payout=payout,
        gross_profit=gross,
        fees=fees,
        slippage=0.0,
        net_profit=gross - fees,
        holding_time=2.0,
        balance_after=0.0,
    )


class TestComputePerformance:
    """Tests for compute_performance."""

    def test_no_trades_neutral(self):
        report = compute_performance([], 1000.0)
        assert report.total_trades == 0
        assert report.final_balance == 1000.0
        assert report.win_rate == 0.0
        assert report.profit_factor == 0.0
        assert report.max_drawdown == 0.0

    def test_basic_metrics(self):
        """Test one win of 80 against nine losses of 10."""
        trades = [make_trade(0, True)] + [make_trade(i, False) for i in range(1, 10)]
        report = compute_performance(trades, 1000.0)
        assert report.total_trades == 10
        assert report.winning_trades == 1
        assert report.losing_trades == 9
        assert report.win_rate == pytest.approx(0.1)
        assert report.total_profit == pytest.approx(-10.0)
        assert report.profit_factor == pytest.approx(80 / 90)
        assert report.avg_win == pytest.approx(80.0)
        assert report.avg_loss == pytest.approx(10.0)
        assert report.expectancy == pytest.approx(-1.0)
        assert report.final_balance == pytest.approx(990.0)
        assert report.return_pct == pytest.approx(-0.01)

    def test_drawdown_from_equity_curve(self):
        trades = [make_trade(0, True), make_trade(1, False), make_trade(2, False)]
        report = compute_performance(trades, 1000.0)
        # peak 1080 -> 1060
        assert report.max_drawdown == pytest.approx(20 / 1080)

    def test_fees_summed(self):
        trades = [make_trade(i, False, fees=0.05) for i in range(4)]
        report = compute_performance(trades, 1000.0)
        assert report.total_fees == pytest.approx(0.2)
        assert report.total_profit == pytest.approx(-40.2)

    def test_metrics_bounded(self):
        trades = [make_trade(i, i % 7 == 0) for i in range(60)]
        report = compute_performance(trades, 1000.0)
        assert 0.0 <= report.win_rate <= 1.0
        assert 0.0 <= report.max_drawdown <= 1.0
        assert report.profit_factor >= 0.0
        assert 0.0 <= report.risk_adjusted.risk_of_ruin <= 1.0
        assert report.risk_adjusted.value_at_risk >= 0.0
        assert report.risk_adjusted.expected_shortfall >= report.risk_adjusted.value_at_risk

    def test_round_trip(self):
        report = compute_performance([make_trade(0, True), make_trade(1, False)], 1000.0)
        assert PerformanceReport.from_dict(report.to_dict()) == report


def test_build_equity_curve():
    trades = [make_trade(0, True), make_trade(1, False)]
    assert build_equity_curve(trades, 100.0) == [100.0, 180.0, 170.0]
