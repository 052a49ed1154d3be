"""Tests for BacktestSimulator: replay, errors, concurrency and result storage."""

import threading
from dataclasses import replace

import pytest

from tickrisk.backtest.config.backtest_config import BacktestOptions, WalkForwardOptions
from tickrisk.backtest.data.tick_history import InMemoryTickSource
from tickrisk.backtest.engine.errors import (
    BacktestAlreadyRunningError,
    BacktestError,
    InsufficientHistoricalDataError,
    UnknownStrategyError,
)
from tickrisk.backtest.engine.simulator import BacktestSimulator
from tickrisk.backtest.engine.strategies import CallableOracle
from tickrisk.backtest.optimization.walk_forward import RobustnessLevel
from tickrisk.engine.models.enums import TradeResult
from tickrisk.engine.models.portfolio import Prediction


@pytest.fixture
def simulator(ticks) -> BacktestSimulator:
    return BacktestSimulator(tick_source=InMemoryTickSource(ticks))


@pytest.fixture
def options(permissive_risk) -> BacktestOptions:
    return BacktestOptions(risk_overrides=permissive_risk)


class TestRunBacktest:
    """Tests for a single replay."""

    def test_max_trades_reached(self, simulator, permissive_risk, tick_factory):
        """Test every decision point trades until max_trades with permissive limits."""
        options = BacktestOptions(max_trades=50, risk_overrides=permissive_risk)
        report = simulator.run_backtest("frequency", "R_10", options=options, ticks=tick_factory(n=300))
        assert report.performance.total_trades == 50
        assert len(report.trades) == 50
        assert report.metadata["decisions"]["rejected_by_ledger"] == 0

    def test_unbounded_run_uses_all_decision_points(self, simulator, options, tick_factory):
        report = simulator.run_backtest("frequency", "R_10", options=options, ticks=tick_factory(n=300))
        # 300 ticks - 100 warmup
        assert report.performance.total_trades == 200

    def test_trade_accounting(self, simulator, options):
        report = simulator.run_backtest("frequency", "R_10", options=options)
        performance = report.performance
        for trade in report.trades:
            assert trade.net_profit == pytest.approx(trade.gross_profit - trade.fees - trade.slippage)
            assert trade.fees >= 0
            assert trade.slippage >= 0
            assert trade.stake >= options.min_stake
            assert trade.won == (trade.prediction == trade.actual_digit)
            assert trade.holding_time == pytest.approx(2.0)
        assert performance.total_profit == pytest.approx(sum(t.net_profit for t in report.trades))
        assert performance.final_balance == pytest.approx(options.initial_balance + performance.total_profit)
        assert report.trades[-1].balance_after == pytest.approx(performance.final_balance)

    def test_no_costs(self, simulator, permissive_risk):
        options = BacktestOptions(include_transaction_costs=False, risk_overrides=permissive_risk)
        report = simulator.run_backtest("frequency", "R_10", options=options)
        for trade in report.trades:
            expected = trade.stake * 8.0 if trade.result == TradeResult.WON else -trade.stake
            assert trade.net_profit == pytest.approx(expected)
        assert report.performance.total_fees == 0.0

    def test_probability_gate(self, simulator, options):
        """Test predictions of an unseen digit never trade."""
        simulator.registry.register(
            "never_seen", lambda: CallableOracle(lambda digits: Prediction(7, 0.9))
        )
        ticks = [t for t in simulator.tick_source.get_ticks("R_10") if t.last_digit != 7]
        report = simulator.run_backtest("never_seen", "R_10", options=options, ticks=ticks)
        assert report.performance.total_trades == 0
        assert report.metadata["decisions"]["low_probability"] > 0

    def test_metadata(self, simulator, options):
        report = simulator.run_backtest("frequency", "R_10", options=options)
        assert report.metadata["data_points"] == 500
        assert report.metadata["market_conditions"]["liquidity"] == "high"
        assert report.metadata["backtest_realism"]["score"] == pytest.approx(0.55)
        assert report.metadata["halted_reason"] is None

    @pytest.mark.parametrize("seed", [1, 2, 3, 4, 5])
    def test_metrics_bounded_across_seeds(self, tick_factory, seed):
        simulator = BacktestSimulator(tick_source=InMemoryTickSource(tick_factory(n=400, seed=seed)))
        for strategy_id in ("frequency", "time_series"):
            performance = simulator.run_backtest(strategy_id, "R_10").performance
            assert 0.0 <= performance.win_rate <= 1.0
            assert 0.0 <= performance.max_drawdown <= 1.0
            assert performance.profit_factor >= 0.0
            assert 0.0 <= performance.risk_adjusted.risk_of_ruin <= 1.0


class TestCircuitBreaker:
    """Tests for circuit breaker handling during replay."""

    @pytest.fixture
    def losing_run(self, simulator, ticks):
        """Alternating 0/1 digits with an oracle that always repeats the current digit."""
        simulator.registry.register(
            "always_wrong", lambda: CallableOracle(lambda digits: Prediction(digits[-1], 0.5))
        )
        return [replace(tick, last_digit=i % 2) for i, tick in enumerate(ticks)]

    def test_halt_counts_skipped_decisions(self, simulator, losing_run):
        """Test a one-loss streak limit halts after the first loss."""
        options = BacktestOptions(min_probability=0.0, risk_overrides={"max_consecutive_losses": 1})
        report = simulator.run_backtest("always_wrong", "R_10", options=options, ticks=losing_run)
        assert report.performance.total_trades == 1
        assert report.metadata["halted_reason"] == "consecutive_losses"
        assert report.metadata["decisions"]["circuit_breaker"] > 0

    def test_stop_on_circuit_breaker(self, simulator, losing_run):
        options = BacktestOptions(
            min_probability=0.0,
            stop_on_circuit_breaker=True,
            risk_overrides={"max_consecutive_losses": 1},
        )
        report = simulator.run_backtest("always_wrong", "R_10", options=options, ticks=losing_run)
        assert report.metadata["decisions"]["circuit_breaker"] == 1


class TestLatency:
    """Tests for delayed settlement."""

    def test_settles_one_tick_later(self, simulator, permissive_risk):
        options = BacktestOptions(realistic_latency=True, latency_ticks=1, risk_overrides=permissive_risk)
        report = simulator.run_backtest("frequency", "R_10", options=options)
        assert report.trades
        for trade in report.trades:
            assert trade.holding_time == pytest.approx(4.0)
            assert trade.slippage > 0
        # the open position blocks the next tick on the same symbol
        assert report.metadata["decisions"]["rejected_by_ledger"] > 0


class TestErrors:
    """Tests for failure modes."""

    def test_unknown_strategy(self, simulator):
        with pytest.raises(UnknownStrategyError):
            simulator.run_backtest("missing", "R_10")
        assert not simulator.is_running

    def test_insufficient_history_for_max_trades(self, simulator, tick_factory):
        with pytest.raises(InsufficientHistoricalDataError) as exc_info:
            simulator.run_backtest(
                "frequency", "R_10", options=BacktestOptions(max_trades=51), ticks=tick_factory(n=150)
            )
        assert exc_info.value.required == 51
        assert exc_info.value.available == 50
        assert not simulator.is_running
        assert simulator.get_results() == {}

    def test_history_shorter_than_warmup(self, simulator, tick_factory):
        with pytest.raises(InsufficientHistoricalDataError):
            simulator.run_backtest("frequency", "R_10", ticks=tick_factory(n=80))

    def test_unknown_symbol_has_no_data(self, simulator):
        with pytest.raises(InsufficientHistoricalDataError):
            simulator.run_backtest("frequency", "R_100")

    def test_no_tick_source(self):
        with pytest.raises(BacktestError):
            BacktestSimulator().run_backtest("frequency", "R_10")

    def test_unknown_override(self, simulator):
        with pytest.raises(ValueError):
            simulator.run_backtest("frequency", "R_10", options=BacktestOptions(risk_overrides={"bogus": 1}))


class TestConcurrency:
    """Tests for the one-run-at-a-time guard."""

    def test_second_run_rejected(self, simulator):
        started = threading.Event()
        release = threading.Event()

        def blocking(digits):
            started.set()
            release.wait(timeout=10)
            return None

        simulator.registry.register("blocking", lambda: CallableOracle(blocking))
        errors = []

        def target():
            try:
                simulator.run_backtest("blocking", "R_10")
            except BacktestError as e:
                errors.append(e)

        thread = threading.Thread(target=target)
        thread.start()
        try:
            assert started.wait(timeout=10)
            assert simulator.is_running
            with pytest.raises(BacktestAlreadyRunningError):
                simulator.run_backtest("frequency", "R_10")
            with pytest.raises(BacktestAlreadyRunningError):
                simulator.compare_strategies("R_10", ["frequency"])
        finally:
            release.set()
            thread.join(timeout=10)

        assert errors == []
        assert not simulator.is_running
        # the guard does not queue: the rejected run never executed
        assert len(simulator.get_results()) == 1


class TestResultStore:
    """Tests for stored results and JSON export."""

    def test_results_stored(self, simulator, options):
        report = simulator.run_backtest("frequency", "R_10", options=options)
        assert simulator.get_results(report.key) is report
        simulator.clear_results()
        assert simulator.get_results() == {}

    def test_export_import(self, simulator, options, tmp_path):
        report = simulator.run_backtest("frequency", "R_10", options=options)
        path = tmp_path / "results.json"
        assert simulator.export_results(path) == 1

        restored = BacktestSimulator()
        assert restored.import_results(path) == 1
        loaded = restored.get_results(report.key)
        assert loaded.performance.total_trades == report.performance.total_trades
        assert loaded.performance.total_profit == pytest.approx(report.performance.total_profit)
        assert loaded.trades[0] == report.trades[0]


class TestCompareStrategies:
    """Tests for multi-strategy comparison."""

    def test_compare(self, simulator, options):
        report = simulator.compare_strategies("R_10", ["frequency", "time_series"], options=options)
        assert set(report.results) == {"frequency", "time_series"}
        assert set(report.comparison) >= {"total_profit", "win_rate", "max_drawdown"}
        assert sum(wins for _, wins in report.ranking) == len(report.comparison)
        assert len(simulator.get_results()) == 2

    def test_unknown_strategy_fails_before_running(self, simulator, options):
        with pytest.raises(UnknownStrategyError):
            simulator.compare_strategies("R_10", ["frequency", "missing"], options=options)
        assert simulator.get_results() == {}


class TestWalkForward:
    """Tests for walk-forward analysis."""

    def test_three_slices(self, tick_factory, permissive_risk):
        simulator = BacktestSimulator(tick_source=InMemoryTickSource(tick_factory(n=1400)))
        options = BacktestOptions(risk_overrides=permissive_risk)
        result = simulator.walk_forward_analysis(
            "frequency", "R_10", WalkForwardOptions(1000, 200, 100), options=options
        )
        assert len(result.slices) == 3
        for s in result.slices:
            assert s.performance.total_trades == 200
        assert result.robustness.assessment != RobustnessLevel.INSUFFICIENT_DATA
        assert 0.0 <= result.robustness.score <= 1.0
        assert set(result.average_performance) >= {"total_profit", "win_rate"}

    def test_trades_only_in_test_window(self, tick_factory, permissive_risk):
        ticks = tick_factory(n=1400)
        simulator = BacktestSimulator(tick_source=InMemoryTickSource(ticks))
        result = simulator.walk_forward_analysis(
            "frequency",
            "R_10",
            WalkForwardOptions(1000, 200, 100),
            options=BacktestOptions(risk_overrides=permissive_risk),
        )
        first = result.slices[0]
        assert first.test_start_time == ticks[1000].timestamp
        assert first.test_end_time == ticks[1199].timestamp

    def test_fit_called_with_train_window(self, tick_factory):
        fitted = []
        simulator = BacktestSimulator(tick_source=InMemoryTickSource(tick_factory(n=1400)))
        simulator.registry.register(
            "recording",
            lambda: CallableOracle(lambda digits: None, fit_func=lambda train: fitted.append(len(train))),
        )
        simulator.walk_forward_analysis("recording", "R_10", WalkForwardOptions(1000, 200, 100))
        assert fitted == [1000, 1000, 1000]

    def test_insufficient_history(self, tick_factory):
        simulator = BacktestSimulator(tick_source=InMemoryTickSource(tick_factory(n=1100)))
        with pytest.raises(InsufficientHistoricalDataError):
            simulator.walk_forward_analysis("frequency", "R_10", WalkForwardOptions(1000, 200, 100))
        assert not simulator.is_running
