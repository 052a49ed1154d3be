"""Calculation Engine Layer.

Pure, stateless calculations consumed by the business layer.

Architecture:
- models/: Data containers and enums (PortfolioStats, Position, TrailingStop, ...)
- account/: Stake sizing (Kelly criterion variants)
- volatility/: Digit volatility, tick ATR, market regime
- portfolio/: Trade returns, risk metrics, correlation
"""

from tickrisk.engine.account import calc_kelly_edge, calc_kelly_fraction, clamp_stake
from tickrisk.engine.models import (
    KellyVariant,
    MarketRegime,
    PortfolioStats,
    Position,
    Prediction,
    TickEvent,
    TradeOutcome,
    TradeResult,
)
from tickrisk.engine.portfolio import (
    calc_correlation,
    calc_cvar,
    calc_effective_bets,
    calc_max_drawdown,
    calc_profit_factor,
    calc_sharpe_ratio,
    calc_var,
)
from tickrisk.engine.volatility import calc_digit_volatility, calc_tick_atr, detect_market_regime

__all__ = [
    "KellyVariant",
    "MarketRegime",
    "PortfolioStats",
    "Position",
    "Prediction",
    "TickEvent",
    "TradeOutcome",
    "TradeResult",
    "calc_correlation",
    "calc_cvar",
    "calc_digit_volatility",
    "calc_effective_bets",
    "calc_kelly_edge",
    "calc_kelly_fraction",
    "calc_max_drawdown",
    "calc_profit_factor",
    "calc_sharpe_ratio",
    "calc_tick_atr",
    "calc_var",
    "clamp_stake",
    "detect_market_regime",
]
