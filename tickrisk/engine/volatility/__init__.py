"""Volatility calculation module."""

from tickrisk.engine.volatility.digit import (
    DEFAULT_DIGIT_VOLATILITY,
    calc_digit_volatility,
    calc_tick_atr,
    calc_trend_strength,
    detect_market_regime,
    get_regime_multiplier,
    get_volatility_multiplier,
)

__all__ = [
    "DEFAULT_DIGIT_VOLATILITY",
    "calc_digit_volatility",
    "calc_tick_atr",
    "calc_trend_strength",
    "detect_market_regime",
    "get_regime_multiplier",
    "get_volatility_multiplier",
]
