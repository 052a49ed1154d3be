"""Digit and tick volatility calculations.

Volatility measures used to adjust stake size on tick-settled contracts:
- digit volatility: std-dev of consecutive absolute last-digit changes
- tick ATR: mean absolute price change over a window
- market regime: trending vs ranging from the fit of a linear trend
"""

import numpy as np

from tickrisk.engine.models.enums import MarketRegime

DEFAULT_DIGIT_VOLATILITY = 2.5  # Moderate volatility when history is short

# (upper bound, multiplier), evaluated in order
VOLATILITY_BANDS: list[tuple[float, float]] = [
    (1.5, 1.2),  # Low volatility: size up
    (2.5, 1.0),  # Normal
    (3.0, 0.8),  # Elevated
    (3.5, 0.5),  # High
]
EXTREME_VOLATILITY_MULTIPLIER = 0.3


def calc_digit_volatility(
    digits: list[int],
    lookback: int = 100,
    min_samples: int = 20,
) -> float:
    """Standard deviation of consecutive absolute digit deltas.

    Args:
        digits: Last digits, oldest to newest.
        lookback: Number of most recent digits to use.
        min_samples: Minimum digits required, below which the default
            moderate volatility (2.5) is returned.

    Returns:
        Digit volatility. For uniformly random digits this is about 2.0.

    Example:
        >>> calc_digit_volatility([1, 2] * 30)
        0.0
    """
    if digits is None or len(digits) < max(min_samples, 3):
        return DEFAULT_DIGIT_VOLATILITY

    recent = np.asarray(digits[-lookback:], dtype=float)
    deltas = np.abs(np.diff(recent))
    return float(np.std(deltas, ddof=1))


def get_volatility_multiplier(volatility: float) -> float:
    """Position size multiplier from the volatility band table.

    <1.5 -> 1.2, <2.5 -> 1.0, <3.0 -> 0.8, <3.5 -> 0.5, otherwise 0.3.
    """
    for upper, multiplier in VOLATILITY_BANDS:
        if volatility < upper:
            return multiplier
    return EXTREME_VOLATILITY_MULTIPLIER


def calc_tick_atr(prices: list[float], period: int = 14) -> float | None:
    """Average true range on tick data.

    Ticks have no high/low, so the true range of a tick is the absolute
    change from the previous price.

    Args:
        prices: Tick prices, oldest to newest.
        period: ATR window.

    Returns:
        ATR in price units, or None if fewer than period + 1 prices.
    """
    if prices is None or len(prices) < period + 1:
        return None

    recent = np.asarray(prices[-(period + 1) :], dtype=float)
    true_ranges = np.abs(np.diff(recent))
    return float(np.mean(true_ranges))


def calc_trend_strength(prices: list[float], window: int = 50) -> float | None:
    """R-squared of a least-squares line through recent prices.

    Returns:
        R-squared in [0, 1], 0.0 for flat prices, None if fewer than 10
        prices.
    """
    if prices is None or len(prices) < 10:
        return None

    recent = np.asarray(prices[-window:], dtype=float)
    x = np.arange(len(recent), dtype=float)
    slope, intercept = np.polyfit(x, recent, 1)
    fitted = slope * x + intercept

    ss_tot = float(np.sum((recent - recent.mean()) ** 2))
    if ss_tot == 0:
        return 0.0
    ss_res = float(np.sum((recent - fitted) ** 2))
    return max(0.0, min(1.0, 1 - ss_res / ss_tot))


def detect_market_regime(
    prices: list[float],
    window: int = 50,
    trend_threshold: float = 0.5,
    min_samples: int = 20,
) -> MarketRegime:
    """Classify recent price action as trending or ranging.

    Args:
        prices: Tick prices, oldest to newest.
        window: Number of recent prices to fit.
        trend_threshold: R-squared at or above which the market is trending.
        min_samples: Prices required for a classification.

    Returns:
        MarketRegime.TRENDING, RANGING, or UNKNOWN when data is short.
    """
    if prices is None or len(prices) < min_samples:
        return MarketRegime.UNKNOWN

    r_squared = calc_trend_strength(prices, window)
    if r_squared is None:
        return MarketRegime.UNKNOWN
    if r_squared >= trend_threshold:
        return MarketRegime.TRENDING
    return MarketRegime.RANGING


def get_regime_multiplier(regime: MarketRegime) -> float:
    """+10% size in a trending market, -10% when ranging."""
    if regime == MarketRegime.TRENDING:
        return 1.1
    if regime == MarketRegime.RANGING:
        return 0.9
    return 1.0
