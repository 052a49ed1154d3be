"""Tests for Kelly criterion stake sizing."""

import pytest

from tickrisk.engine.account.position_sizing import (
    calc_consistency_multiplier,
    calc_kelly_edge,
    calc_kelly_fraction,
    clamp_stake,
    shrink_win_rate,
)
from tickrisk.engine.models.enums import KellyVariant
from tickrisk.engine.models.errors import InvalidParameterError


class TestKellyEdge:
    """Tests for the raw edge used by the risk engine."""

    def test_edge_formula(self):
        """f = (b*p - q) / b."""
        # b = 8, p = 0.2 -> (1.6 - 0.8) / 8 = 0.1
        assert calc_kelly_edge(0.2, 8.0, 1.0) == pytest.approx(0.1)

    def test_edge_keeps_negative_sign(self):
        assert calc_kelly_edge(0.05, 8.0, 1.0) < 0

    @pytest.mark.parametrize("win_rate", [0.0, 1.0, -0.2, 1.3])
    def test_edge_rejects_win_rate_outside_open_interval(self, win_rate):
        with pytest.raises(InvalidParameterError):
            calc_kelly_edge(win_rate, 8.0, 1.0)

    def test_edge_rejects_non_positive_averages(self):
        with pytest.raises(InvalidParameterError):
            calc_kelly_edge(0.5, 8.0, 0.0)
        with pytest.raises(InvalidParameterError):
            calc_kelly_edge(0.5, -1.0, 1.0)


class TestKellyVariants:
    """Tests for calc_kelly_fraction variants."""

    def test_classic_is_raw_edge(self):
        assert calc_kelly_fraction(0.2, 8.0, 1.0, KellyVariant.CLASSIC) == pytest.approx(0.1)

    def test_fractional_scales_edge(self):
        result = calc_kelly_fraction(0.2, 8.0, 1.0, KellyVariant.FRACTIONAL, fraction=0.5)
        assert result == pytest.approx(0.05)

    def test_fractional_rejects_bad_fraction(self):
        with pytest.raises(InvalidParameterError):
            calc_kelly_fraction(0.2, 8.0, 1.0, KellyVariant.FRACTIONAL, fraction=1.5)

    def test_robust_is_more_conservative(self):
        """Shrinking the win rate lowers the fraction."""
        classic = calc_kelly_fraction(0.2, 8.0, 1.0, KellyVariant.CLASSIC)
        robust = calc_kelly_fraction(0.2, 8.0, 1.0, KellyVariant.ROBUST, sample_size=100)
        assert robust < classic

    def test_dynamic_uses_recent_outcomes(self):
        """Recent results beating expectation scale the fraction up."""
        hot_streak = [True, True, False, True, False]
        result = calc_kelly_fraction(
            0.2, 8.0, 1.0, KellyVariant.DYNAMIC, recent_outcomes=hot_streak
        )
        assert result == pytest.approx(0.1 * 1.5)

    def test_shrink_win_rate(self):
        assert shrink_win_rate(0.5, 100) == pytest.approx(0.45)
        with pytest.raises(InvalidParameterError):
            shrink_win_rate(0.5, 0)


class TestConsistencyMultiplier:
    """Tests for the dynamic Kelly multiplier."""

    def test_neutral_with_few_samples(self):
        assert calc_consistency_multiplier([True, False], 0.5) == 1.0
        assert calc_consistency_multiplier(None, 0.5) == 1.0

    def test_clamped_range(self):
        all_losses = [False] * 10
        all_wins = [True] * 10
        assert calc_consistency_multiplier(all_losses, 0.5) == 0.5
        assert calc_consistency_multiplier(all_wins, 0.2) == 1.5

    def test_tracking_expectation(self):
        outcomes = [True, False] * 5
        assert calc_consistency_multiplier(outcomes, 0.5) == pytest.approx(1.0)


class TestClampStake:
    """Tests for the [0.1%, 5%] stake clamp."""

    def test_clamp_bounds(self):
        assert clamp_stake(0.0, 1000.0) == pytest.approx(1.0)
        assert clamp_stake(500.0, 1000.0) == pytest.approx(50.0)
        assert clamp_stake(20.0, 1000.0) == 20.0

    def test_custom_bounds(self):
        assert clamp_stake(0.0, 1000.0, 0.002, 0.01) == pytest.approx(2.0)
        assert clamp_stake(50.0, 1000.0, 0.002, 0.01) == pytest.approx(10.0)
