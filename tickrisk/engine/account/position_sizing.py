"""Position sizing calculations using Kelly criterion.

Account-level module for optimal stake sizing of digit contracts.
"""

import math

from tickrisk.engine.models.enums import KellyVariant
from tickrisk.engine.models.errors import InvalidParameterError

HALF_KELLY = 0.5
MIN_STAKE_FRACTION = 0.001  # 0.1% of balance
MAX_STAKE_FRACTION = 0.05  # 5% of balance


def calc_kelly_edge(win_rate: float, avg_win: float, avg_loss: float) -> float:
    """Raw Kelly fraction f = (b*p - q) / b, where b = avg_win / avg_loss.

    The result is not floored at zero, so a negative edge stays visible to
    the caller.

    Raises:
        InvalidParameterError: If win_rate is not in (0, 1) or either
            average is non-positive.
    """
    if win_rate is None or not 0 < win_rate < 1:
        raise InvalidParameterError(f"win_rate must be in (0, 1), got {win_rate}")
    if avg_loss is None or avg_loss <= 0:
        raise InvalidParameterError(f"avg_loss must be positive, got {avg_loss}")
    if avg_win is None or avg_win <= 0:
        raise InvalidParameterError(f"avg_win must be positive, got {avg_win}")

    b = avg_win / avg_loss
    q = 1 - win_rate
    return (b * win_rate - q) / b


def shrink_win_rate(win_rate: float, sample_size: int) -> float:
    """Shrink a win rate by one binomial standard error.

    p' = p - sqrt(p(1-p)/n), floored just above zero.

    Example:
        >>> round(shrink_win_rate(0.5, 100), 3)
        0.45
    """
    if sample_size <= 0:
        raise InvalidParameterError(f"sample_size must be positive, got {sample_size}")
    std_err = math.sqrt(win_rate * (1 - win_rate) / sample_size)
    return max(1e-6, win_rate - std_err)


def calc_consistency_multiplier(
    recent_outcomes: list[bool] | None,
    expected_win_rate: float,
    min_samples: int = 5,
) -> float:
    """Scale factor from how recent results track the expected win rate.

    multiplier = recent_win_rate / expected_win_rate, clamped to [0.5, 1.5].
    Neutral (1.0) with fewer than min_samples outcomes.

    Args:
        recent_outcomes: Recent settled results, True = won.
        expected_win_rate: Win rate the stake is being sized for.
        min_samples: Outcomes needed before the multiplier departs from 1.0.

    Returns:
        Multiplier in [0.5, 1.5].
    """
    if not recent_outcomes or len(recent_outcomes) < min_samples or expected_win_rate <= 0:
        return 1.0
    recent_win_rate = sum(1 for won in recent_outcomes if won) / len(recent_outcomes)
    return min(1.5, max(0.5, recent_win_rate / expected_win_rate))


def calc_kelly_fraction(
    win_rate: float,
    avg_win: float,
    avg_loss: float,
    variant: KellyVariant = KellyVariant.FRACTIONAL,
    fraction: float = 0.25,
    sample_size: int = 100,
    recent_outcomes: list[bool] | None = None,
) -> float:
    """Kelly fraction for one of the supported variants, before conservatism.

    - CLASSIC: raw f
    - FRACTIONAL: f x fraction
    - ROBUST: f computed on a win rate shrunk by its standard error
    - DYNAMIC: f x consistency multiplier (0.5-1.5)

    Raises:
        InvalidParameterError: On invalid win rate, averages or fraction.
    """
    if variant == KellyVariant.ROBUST:
        # validate the unshrunk inputs first
        calc_kelly_edge(win_rate, avg_win, avg_loss)
        return calc_kelly_edge(shrink_win_rate(win_rate, sample_size), avg_win, avg_loss)

    edge = calc_kelly_edge(win_rate, avg_win, avg_loss)
    if variant == KellyVariant.CLASSIC:
        return edge
    if variant == KellyVariant.FRACTIONAL:
        if fraction <= 0 or fraction > 1:
            raise InvalidParameterError(f"fraction must be in (0, 1], got {fraction}")
        return edge * fraction
    if variant == KellyVariant.DYNAMIC:
        return edge * calc_consistency_multiplier(recent_outcomes, win_rate)
    raise InvalidParameterError(f"Unknown Kelly variant: {variant}")


def clamp_stake(
    stake: float,
    balance: float,
    min_fraction: float = MIN_STAKE_FRACTION,
    max_fraction: float = MAX_STAKE_FRACTION,
) -> float:
    """Clamp a stake to [min_fraction, max_fraction] of balance (default 0.1%-5%)."""
    return min(balance * max_fraction, max(balance * min_fraction, stake))
