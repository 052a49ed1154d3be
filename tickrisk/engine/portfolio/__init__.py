"""Portfolio-level calculations (returns, risk, correlation)."""

from tickrisk.engine.portfolio.correlation import (
    calc_concentration_hhi,
    calc_correlation,
    calc_effective_bets,
    calc_inverse_volatility_weights,
    calc_portfolio_volatility,
    calc_simple_returns,
)
from tickrisk.engine.portfolio.returns import (
    PROFIT_FACTOR_CAP,
    calc_average_loss,
    calc_average_win,
    calc_calmar_ratio,
    calc_coefficient_of_variation,
    calc_cvar,
    calc_max_drawdown,
    calc_profit_factor,
    calc_risk_of_ruin,
    calc_sharpe_ratio,
    calc_var,
    calc_win_rate,
)

__all__ = [
    # Correlation
    "calc_concentration_hhi",
    "calc_correlation",
    "calc_effective_bets",
    "calc_inverse_volatility_weights",
    "calc_portfolio_volatility",
    "calc_simple_returns",
    # Returns
    "PROFIT_FACTOR_CAP",
    "calc_average_loss",
    "calc_average_win",
    "calc_calmar_ratio",
    "calc_coefficient_of_variation",
    "calc_cvar",
    "calc_max_drawdown",
    "calc_profit_factor",
    "calc_risk_of_ruin",
    "calc_sharpe_ratio",
    "calc_var",
    "calc_win_rate",
]
