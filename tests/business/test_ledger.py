"""Tests for PortfolioLedger: lifecycle, diversification gate and risk assessment."""

import pytest

from tickrisk.business.config.portfolio_config import PortfolioConfig
from tickrisk.business.config.risk_config import RiskConfig
from tickrisk.business.portfolio.ledger import PortfolioLedger
from tickrisk.business.portfolio.risk_assessment import StressScenario
from tickrisk.business.risk.engine import RiskEngine
from tickrisk.engine.models.enums import PositionStatus, RiskLevel, TradeResult
from tickrisk.engine.models.portfolio import TickEvent, TradeOutcome


@pytest.fixture
def ledger() -> PortfolioLedger:
    return PortfolioLedger(PortfolioConfig(), RiskEngine(RiskConfig()))


def feed_pair(ledger: PortfolioLedger, ticks: list[TickEvent], scale: float = 2.0) -> None:
    """Record R_10 ticks and an R_25 series moving in lockstep."""
    for tick in ticks:
        ledger.record_tick(tick)
        ledger.record_tick(TickEvent("R_25", tick.timestamp, tick.price * scale, last_digit=0))


class TestPositionLifecycle:
    """Tests for opening and closing positions."""

    def test_add_position(self, ledger):
        position = ledger.add_position("R_10", 10.0, prediction=7)
        assert position.status == PositionStatus.OPEN
        assert ledger.get_position(position.id) is position
        assert ledger.get_open_positions("R_10") == [position]

    def test_close_exactly_once(self, ledger):
        position = ledger.add_position("R_10", 10.0)
        assert ledger.update_position("R_10", position.id, TradeResult.WON, 80.0)
        assert not ledger.update_position("R_10", position.id, TradeResult.LOST, -10.0)
        assert position.result == TradeResult.WON
        assert position.profit == 80.0

    def test_update_unknown_position(self, ledger):
        assert not ledger.update_position("R_10", "missing", "won", 1.0)

    def test_apply_outcome_releases_exit_state(self, ledger):
        position = ledger.add_position(
            "R_10", 10.0, entry_price=100.0, trailing_distance=5.0, partial_close=True
        )
        assert ledger.exits.has_state(position.id)

        outcome = TradeOutcome("R_10", 10.0, TradeResult.LOST, -10.0, position_id=position.id)
        assert ledger.apply_outcome(outcome)
        assert not ledger.exits.has_state(position.id)
        assert ledger.risk_engine.stats.total_trades == 1
        assert ledger.risk_engine.stats.total_balance == 990.0

    def test_apply_outcome_twice_is_rejected(self, ledger):
        position = ledger.add_position("R_10", 10.0)
        outcome = TradeOutcome("R_10", 10.0, TradeResult.LOST, -10.0, position_id=position.id)
        ledger.apply_outcome(outcome)
        assert not ledger.apply_outcome(outcome)
        assert ledger.risk_engine.stats.total_trades == 1

    def test_invalid_positions(self, ledger):
        with pytest.raises(ValueError):
            ledger.add_position("R_10", 0.0)
        with pytest.raises(ValueError):
            ledger.add_position("R_10", 10.0, trailing_distance=5.0)

    def test_partial_close(self, ledger):
        position = ledger.add_position("R_10", 100.0, partial_close=True)
        assert ledger.apply_partial_close(position.id, 50.0, profit=25.0, level_index=0)
        assert position.current_stake == 50.0
        assert position.closed_amount == 50.0
        assert ledger.exits.get_partial_close_stats(position.id)["executed_levels"] == 1
        assert not ledger.apply_partial_close(position.id, 80.0)

    def test_clear_positions(self, ledger):
        position = ledger.add_position("R_10", 10.0, scale_out=True)
        ledger.clear_positions()
        assert ledger.get_open_positions() == []
        assert not ledger.exits.has_state(position.id)


class TestAllocation:
    """Tests for allocation snapshots."""

    def test_allocation_sums_to_one(self, ledger):
        ledger.add_position("R_10", 10.0)
        ledger.add_position("R_25", 30.0)
        snapshot = ledger.get_allocation()
        assert snapshot.allocation == pytest.approx({"R_10": 0.25, "R_25": 0.75})
        assert sum(snapshot.allocation.values()) == pytest.approx(1.0)
        assert snapshot.total_allocated == 40.0

    def test_closed_positions_excluded(self, ledger):
        position = ledger.add_position("R_10", 10.0)
        ledger.update_position("R_10", position.id, TradeResult.LOST, -10.0)
        assert ledger.get_allocation().allocation == {}


class TestDiversificationGate:
    """Tests for can_add_position."""

    def test_empty_book_allowed(self, ledger):
        assert ledger.can_add_position("R_10", 10.0).allowed

    def test_allocation_ceiling(self, ledger):
        """Test a second stake on the same symbol breaches the 30% ceiling."""
        ledger.add_position("R_10", 10.0)
        decision = ledger.can_add_position("R_10", 10.0)
        assert not decision.allowed
        assert "30%" in decision.reason
        assert decision.projected_allocation == pytest.approx(1.0)

    def test_correlated_symbol_rejected(self, ledger, ticks):
        feed_pair(ledger, ticks)
        ledger.add_position("R_10", 10.0)
        decision = ledger.can_add_position("R_25", 10.0, max_symbol_allocation=1.0)
        assert not decision.allowed
        assert "R_10" in decision.reason
        assert decision.correlation == pytest.approx(1.0)

    def test_correlation_recomputed_as_history_grows(self, ledger, ticks):
        """Test an early check on thin history does not pin the pair at 0."""
        feed_pair(ledger, ticks[:5])
        ledger.add_position("R_10", 10.0)
        assert ledger.can_add_position("R_25", 10.0, max_symbol_allocation=1.0).allowed
        assert ledger.get_correlation("R_10", "R_25") == 0.0

        feed_pair(ledger, ticks[5:105])
        decision = ledger.can_add_position("R_25", 10.0, max_symbol_allocation=1.0)
        assert not decision.allowed
        assert decision.correlated_symbol == "R_10"
        assert ledger.get_correlation("R_10", "R_25") == pytest.approx(1.0)

    def test_uncorrelated_symbol_allowed(self, ledger, tick_factory):
        for tick in tick_factory("R_10", n=200, seed=1):
            ledger.record_tick(tick)
        for tick in tick_factory("R_50", n=200, seed=2):
            ledger.record_tick(tick)
        ledger.add_position("R_10", 10.0)
        assert ledger.can_add_position("R_50", 10.0, max_symbol_allocation=1.0).allowed

    def test_halted_engine_rejects(self, ledger):
        for _ in range(5):
            ledger.risk_engine.record_outcome(TradeOutcome("R_10", 1.0, TradeResult.LOST, -1.0))
        decision = ledger.can_add_position("R_10", 1.0)
        assert not decision.allowed
        assert decision.reason == "Trading halted: consecutive_losses"

    def test_drawdown_tightens_ceiling(self):
        """Test drawdown at half the limit scales the ceiling by 0.75."""
        ledger = PortfolioLedger(PortfolioConfig(), RiskEngine(RiskConfig(max_daily_loss=0.5)))
        ledger.risk_engine.record_outcome(TradeOutcome("R_10", 150.0, TradeResult.LOST, -150.0))
        decision = ledger.can_add_position("R_10", 10.0)
        assert decision.allowed
        assert decision.allocation_ceiling == pytest.approx(0.225)

    def test_non_positive_stake(self, ledger):
        assert not ledger.can_add_position("R_10", 0.0).allowed


class TestCorrelation:
    """Tests for the correlation cache."""

    def test_matrix(self, ledger, ticks):
        feed_pair(ledger, ticks)
        matrix = ledger.update_correlation_matrix(["R_10", "R_25"])
        assert matrix["R_10_R_25"] == pytest.approx(1.0)
        assert ledger.get_correlation("R_25", "R_10") == pytest.approx(1.0)

    def test_insufficient_history(self, ledger):
        assert ledger.calculate_correlation("R_10", "R_25") == 0.0

    def test_same_symbol(self, ledger):
        assert ledger.get_correlation("R_10", "R_10") == 1.0


class TestRiskAssessment:
    """Tests for portfolio risk scoring and stress tests."""

    def test_empty_book(self, ledger):
        assert ledger.assess_portfolio_risk().risk_level == RiskLevel.NONE

    def test_correlation_reflects_latest_history(self, ledger, ticks):
        ledger.add_position("R_10", 10.0)
        ledger.add_position("R_25", 10.0)
        feed_pair(ledger, ticks[:5])
        assert ledger.assess_portfolio_risk().avg_correlation == 0.0

        feed_pair(ledger, ticks[5:105])
        assessment = ledger.assess_portfolio_risk()
        assert assessment.avg_correlation == pytest.approx(1.0)
        assert assessment.concentration_hhi == pytest.approx(0.5)

    def test_single_position_is_concentrated(self, ledger):
        """Test one symbol scores low diversification (+2) and concentration (+2)."""
        ledger.add_position("R_10", 10.0)
        assessment = ledger.assess_portfolio_risk()
        assert assessment.risk_score == 4
        assert assessment.risk_level == RiskLevel.HIGH
        assert assessment.effective_bets == 1.0
        assert assessment.concentration_hhi == 1.0
        assert assessment.max_allocation_symbol == "R_10"
        assert assessment.recommendations

    def test_default_stress_scenarios(self, ledger):
        ledger.add_position("R_10", 100.0)
        results = {r.scenario: r for r in ledger.stress_test_portfolio()}
        assert results["flash_crash"].breach
        assert results["flash_crash"].shock_loss == pytest.approx(20.0)
        assert not results["volatility_spike"].breach

    def test_custom_scenario(self, ledger):
        ledger.add_position("R_10", 100.0)
        ledger.add_position("R_25", 100.0)
        scenario = StressScenario(name="r10_drop", shocks={"R_10": -0.05}, var_ceiling=0.05)
        result = ledger.stress_test_portfolio([scenario])[0]
        assert result.shock_loss_pct == pytest.approx(0.025)
        assert not result.breach


class TestOptimization:
    """Tests for allocation optimization and rebalancing."""

    def test_optimize_allocation(self, ledger, tick_factory):
        for tick in tick_factory("R_10", n=200, seed=1, volatility=0.001):
            ledger.record_tick(tick)
        for tick in tick_factory("R_50", n=200, seed=2, volatility=0.002):
            ledger.record_tick(tick)
        weights = ledger.optimize_allocation(["R_10", "R_50"])
        assert sum(weights.values()) == pytest.approx(1.0)
        assert weights["R_10"] > weights["R_50"]

    def test_optimize_trivial(self, ledger):
        assert ledger.optimize_allocation([]) == {}
        assert ledger.optimize_allocation(["R_10"]) == {"R_10": 1.0}

    def test_rebalance(self, ledger):
        ledger.add_position("R_10", 10.0)
        adjustments = ledger.rebalance_portfolio({"R_10": 0.5, "R_25": 0.5})
        assert adjustments["R_10"]["action"] == "decrease"
        assert adjustments["R_25"]["action"] == "increase"


class TestReporting:
    """Tests for performance and report output."""

    def test_performance_without_trades(self, ledger):
        assert ledger.calculate_performance() is None

    def test_performance(self, ledger):
        first = ledger.add_position("R_10", 10.0)
        second = ledger.add_position("R_10", 10.0)
        ledger.update_position("R_10", first.id, TradeResult.WON, 80.0)
        ledger.update_position("R_10", second.id, TradeResult.LOST, -10.0)
        performance = ledger.calculate_performance()
        assert performance["total_trades"] == 2
        assert performance["total_profit"] == 70.0
        assert performance["win_rate"] == 0.5
        assert performance["profit_factor"] == pytest.approx(8.0)

    def test_generate_report(self, ledger):
        ledger.add_position("R_10", 10.0)
        report = ledger.generate_report()
        assert report["summary"]["num_open_positions"] == 1
        assert report["performance"] is None
        assert report["risk"]["risk_level"] == "high"
