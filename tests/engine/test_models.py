"""Tests for engine data models."""

from datetime import datetime

import pytest

from tickrisk.engine.models import (
    CorrelationEntry,
    PortfolioStats,
    Position,
    PositionStatus,
    Prediction,
    TickEvent,
    TradeOutcome,
    TradeResult,
    last_digit_of,
)


class TestLastDigit:
    """Tests for settlement digit extraction."""

    def test_shortest_representation(self):
        assert last_digit_of(1234.57) == 7

    def test_fixed_decimals(self):
        assert last_digit_of(1234.5, decimals=2) == 0
        assert last_digit_of(1234.56, decimals=2) == 6

    def test_tick_derives_digit(self):
        tick = TickEvent("R_10", datetime(2024, 1, 2), 6543.21)
        assert tick.last_digit == 1

    def test_tick_keeps_explicit_digit(self):
        tick = TickEvent("R_10", datetime(2024, 1, 2), 6543.21, last_digit=4)
        assert tick.last_digit == 4


class TestPrediction:
    """Tests for prediction normalization."""

    def test_percentage_normalized(self):
        assert Prediction(digit=7, probability=14.5).probability == pytest.approx(0.145)

    def test_fraction_kept(self):
        assert Prediction(digit=3, probability=0.12).probability == 0.12

    def test_invalid_digit(self):
        with pytest.raises(ValueError):
            Prediction(digit=10, probability=0.1)


class TestPosition:
    """Tests for position invariants."""

    def test_stake_must_be_positive(self):
        with pytest.raises(ValueError):
            Position(id="p1", symbol="R_10", stake=0)

    def test_new_position_is_open(self):
        position = Position(id="p1", symbol="R_10", stake=10.0, prediction=7)
        assert position.status == PositionStatus.OPEN
        assert position.current_stake == 10.0
        assert position.to_dict()["status"] == "open"


class TestStats:
    """Tests for stats and outcome helpers."""

    def test_win_rate_without_trades(self):
        assert PortfolioStats().win_rate == 0.0

    def test_outcome_won(self):
        assert TradeOutcome("R_10", 10.0, TradeResult.WON, 80.0).won
        assert not TradeOutcome("R_10", 10.0, TradeResult.LOST, -10.0).won

    def test_pair_key_order_independent(self):
        assert CorrelationEntry.make_pair_key("R_50", "R_10") == "R_10_R_50"
        assert CorrelationEntry.make_pair_key("R_10", "R_50") == "R_10_R_50"
