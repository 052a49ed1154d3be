"""Tests for RiskEngine: stake sizing, circuit breakers and daily tracking."""

from datetime import date, timedelta

import pytest

from tickrisk.business.config.risk_config import RiskConfig
from tickrisk.business.risk.daily_tracker import DailyLossTracker
from tickrisk.business.risk.engine import RiskEngine, StakeContext
from tickrisk.engine.models.enums import MarketRegime, StopReason, TradeResult
from tickrisk.engine.models.portfolio import TradeOutcome


class FakeClock:
    """Mutable date source for rollover tests."""

    def __init__(self, today: date) -> None:
        self.today = today

    def __call__(self) -> date:
        return self.today


def loss(amount: float, symbol: str = "R_10") -> TradeOutcome:
    return TradeOutcome(symbol, amount, TradeResult.LOST, -amount)


def win(stake: float, profit: float, symbol: str = "R_10") -> TradeOutcome:
    return TradeOutcome(symbol, stake, TradeResult.WON, profit)


@pytest.fixture
def engine() -> RiskEngine:
    return RiskEngine(RiskConfig())


class TestKellyStake:
    """Tests for Kelly stake sizing with half-Kelly and clamping."""

    @pytest.mark.parametrize("win_rate", [0.0, -0.5, 1.0, 1.2])
    def test_invalid_win_rate_falls_back_to_one_percent(self, engine, win_rate):
        """Test win rate outside (0, 1) returns exactly 1% of balance."""
        balance = 1000.0
        assert engine.kelly_stake(win_rate, 8.0, 1.0, balance) == balance * 0.01

    def test_invalid_averages_fall_back(self, engine):
        assert engine.kelly_stake(0.2, 8.0, 0.0, 500.0) == 500.0 * 0.01
        assert engine.kelly_stake(0.2, 0.0, 1.0, 500.0) == 500.0 * 0.01

    def test_fallback_is_logged(self, engine, caplog):
        with caplog.at_level("WARNING"):
            engine.kelly_stake(1.0, 8.0, 1.0, 1000.0)
        assert "fallback" in caplog.text

    def test_fractional_half_kelly(self, engine):
        """Test f x fraction x half-Kelly x balance."""
        # f = 0.1, fraction 0.5, half-Kelly 0.5 -> 2.5% of 1000
        stake = engine.kelly_stake(0.2, 8.0, 1.0, 1000.0)
        assert stake == pytest.approx(25.0)

    def test_capped_at_five_percent(self, engine):
        stake = engine.kelly_stake(0.9, 8.0, 1.0, 1000.0, variant="classic")
        assert stake == pytest.approx(50.0)

    def test_negative_edge_floored_at_minimum(self, engine):
        stake = engine.kelly_stake(0.05, 8.0, 1.0, 1000.0)
        assert stake == pytest.approx(1.0)

    def test_zero_balance(self, engine):
        assert engine.kelly_stake(0.2, 8.0, 1.0, 0.0) == 0.0


class TestPositionSize:
    """Tests for volatility / ATR / regime adjusted sizing."""

    def test_default_volatility_without_history(self, engine):
        """Test short history uses moderate volatility 2.5 (multiplier 0.8)."""
        sizing = engine.position_size("R_10", 1000.0)
        assert sizing.volatility == 2.5
        assert sizing.volatility_multiplier == 0.8
        assert sizing.atr is None
        assert sizing.market_regime == MarketRegime.UNKNOWN
        assert sizing.recommended_position_size == pytest.approx(16.0)

    def test_explicit_low_volatility(self, engine):
        sizing = engine.position_size("R_10", 1000.0, volatility=1.0)
        assert sizing.recommended_position_size == pytest.approx(24.0)

    def test_recorded_ticks_feed_atr_and_regime(self, engine, ticks):
        for tick in ticks[:200]:
            engine.record_tick(tick)
        sizing = engine.position_size("R_10", 1000.0)
        assert sizing.atr is not None
        assert sizing.market_regime != MarketRegime.UNKNOWN
        assert sizing.recommended_position_size == pytest.approx(
            min(sizing.volatility_adjusted, sizing.atr_based) * sizing.regime_multiplier
        )
        assert sizing.reasoning


class TestRecommendedStake:
    """Tests for the exposed stake query."""

    def test_min_of_kelly_and_position_size(self, engine):
        context = StakeContext(win_rate=0.2, avg_win=8.0, avg_loss=1.0)
        # Kelly 25.0 vs volatility sizing 16.0
        assert engine.recommended_stake("R_10", 1000.0, context) == pytest.approx(16.0)

    def test_without_win_rate_uses_fallback(self, engine):
        assert engine.recommended_stake("R_10", 1000.0) == pytest.approx(10.0)

    def test_zero_when_halted(self, engine):
        for _ in range(5):
            engine.record_outcome(loss(1.0))
        context = StakeContext(win_rate=0.2, avg_win=8.0, avg_loss=1.0)
        assert engine.recommended_stake("R_10", 1000.0, context) == 0.0


class TestRecordOutcome:
    """Tests for PortfolioStats updates."""

    def test_drawdown_after_loss(self, engine):
        """Test a 10 loss from 1000 gives 1% drawdown."""
        stats = engine.record_outcome(loss(10.0))
        assert stats.total_balance == 990.0
        assert stats.peak_balance == 1000.0
        assert stats.current_drawdown == pytest.approx(0.01)
        assert stats.consecutive_losses == 1

    def test_win_resets_streak_and_raises_peak(self, engine):
        engine.record_outcome(loss(10.0))
        stats = engine.record_outcome(win(10.0, 80.0))
        assert stats.consecutive_losses == 0
        assert stats.peak_balance == 1070.0
        assert stats.current_drawdown == 0.0
        assert stats.win_rate == 0.5

    def test_balance_never_negative(self, engine):
        stats = engine.record_outcome(loss(2000.0))
        assert stats.total_balance == 0.0
        assert stats.current_drawdown == 1.0


class TestCircuitBreakers:
    """Tests for should_stop_trading ordering."""

    def test_no_stop_initially(self, engine):
        assert not engine.should_stop_trading().stop

    def test_consecutive_losses(self, engine):
        for _ in range(5):
            engine.record_outcome(loss(1.0))
        decision = engine.should_stop_trading()
        assert decision.stop
        assert decision.reason == StopReason.CONSECUTIVE_LOSSES

    def test_drawdown_checked_first(self, engine):
        """Test a large loss reports drawdown before daily loss."""
        engine.record_outcome(loss(250.0))
        decision = engine.should_stop_trading()
        assert decision.reason == StopReason.MAX_DRAWDOWN

    def test_daily_loss(self):
        engine = RiskEngine(RiskConfig(max_daily_loss=0.05))
        engine.record_outcome(loss(60.0))
        decision = engine.should_stop_trading()
        assert decision.reason == StopReason.MAX_DAILY_LOSS
        assert decision.to_dict()["reason"] == "max_daily_loss"

    def test_daily_loss_resets_on_new_day(self):
        clock = FakeClock(date(2024, 1, 2))
        engine = RiskEngine(RiskConfig(max_daily_loss=0.05), clock=clock)
        engine.record_outcome(loss(60.0))
        assert engine.should_stop_trading().stop

        clock.today += timedelta(days=1)
        assert not engine.should_stop_trading().stop
        assert engine.stats.daily_loss == 0.0
        assert engine.stats.last_reset_date == date(2024, 1, 3)
        assert engine.get_daily_stats().date == date(2024, 1, 3)
        assert engine.get_daily_stats().trades == 0


class TestEngineMaintenance:
    """Tests for reports, resets, parameter updates and stress tests."""

    def test_generate_risk_report(self, engine):
        engine.record_outcome(loss(10.0))
        report = engine.generate_risk_report()
        assert report["portfolio"]["total_balance"] == 990.0
        assert report["daily"]["losses"] == 1
        assert report["alerts"]["stop"] is False

    def test_risk_report_shows_net_daily_loss(self, engine):
        """Test the report carries the net figure the daily breaker checks."""
        engine.record_outcome(loss(10.0))
        engine.record_outcome(win(10.0, 30.0))
        report = engine.generate_risk_report()
        assert report["portfolio"]["daily_loss"] == 10.0
        assert report["daily"]["net_loss"] == 0.0
        assert report["daily"]["net_loss_limit"] == pytest.approx(1020.0 * 0.10)

    def test_reset_metrics(self, engine):
        engine.record_outcome(loss(10.0))
        engine.reset_metrics(500.0)
        assert engine.stats.total_balance == 500.0
        assert engine.stats.total_trades == 0
        with pytest.raises(ValueError):
            engine.reset_metrics(0)

    def test_update_parameters(self, engine):
        engine.update_parameters(max_consecutive_losses=10)
        assert engine.config.max_consecutive_losses == 10

    def test_update_parameters_rejects_invalid(self, engine):
        with pytest.raises(ValueError):
            engine.update_parameters(max_losses=3)
        with pytest.raises(ValueError):
            engine.update_parameters(max_drawdown=1.5)
        assert engine.config.max_drawdown == 0.20

    def test_stress_test_balance(self, engine):
        results = engine.stress_test_balance([{"name": "crash", "shocks": [-0.1, -0.2]}])
        assert results[0].stressed_balance == pytest.approx(720.0)
        assert results[0].drawdown == pytest.approx(0.28)
        assert results[0].breach_limit

    def test_stop_loss_level(self, engine):
        assert engine.stop_loss_level(1000.0, 0.5) == pytest.approx(50.0)
        assert engine.stop_loss_level(1000.0, 0.5, atr=10.0) == pytest.approx(20.0)

    def test_var_position_size(self, engine):
        assert engine.var_position_size([0.1] * 5) == 0.0
        returns = [-1.0] * 5 + [8.0] * 15
        # VaR return -1.0 -> risk 2% of 1000 / 1.0
        assert engine.var_position_size(returns) == pytest.approx(20.0)


class TestDailyLossTracker:
    """Tests for per-day profit tracking."""

    def test_records_per_day(self):
        clock = FakeClock(date(2024, 1, 2))
        tracker = DailyLossTracker(clock)
        tracker.record(-10.0)
        tracker.record(5.0)
        today = tracker.get_today()
        assert today.profit == -5.0
        assert today.trades == 2
        assert today.losses == 1
        assert today.net_loss == 5.0

        clock.today = date(2024, 1, 3)
        assert tracker.record(-1.0) is True
        assert len(tracker.get_history()) == 2
