"""Trade return and risk metric calculations.

Metrics over a sequence of settled trades. Every function guards its
denominators and returns a defined neutral value (0.0, None or a capped
sentinel) instead of NaN or infinity.
"""

import math

import numpy as np

PROFIT_FACTOR_CAP = 100.0  # Reported when there are wins but no losses


def calc_win_rate(trades: list[float]) -> float | None:
    """Calculate win rate from a list of trade P&L.

    Args:
        trades: List of trade profits/losses (positive = win, negative = loss).

    Returns:
        Win rate as a decimal (0-1). E.g., 0.6 means 60% win rate.
        Returns None if no trades.

    Example:
        >>> trades = [8.1, -0.9, 8.1, -0.9, -0.9]  # 2 wins, 3 losses
        >>> calc_win_rate(trades)
        0.4
    """
    if trades is None or len(trades) == 0:
        return None

    wins = sum(1 for t in trades if t > 0)
    return wins / len(trades)


def calc_average_win(trades: list[float]) -> float | None:
    """Average profit of winning trades, None if no wins."""
    if trades is None:
        return None

    wins = [t for t in trades if t > 0]
    if len(wins) == 0:
        return None

    return sum(wins) / len(wins)


def calc_average_loss(trades: list[float]) -> float | None:
    """Average loss of losing trades as a positive number, None if no losses."""
    if trades is None:
        return None

    losses = [abs(t) for t in trades if t < 0]
    if len(losses) == 0:
        return None

    return sum(losses) / len(losses)


def calc_profit_factor(trades: list[float], cap: float = PROFIT_FACTOR_CAP) -> float:
    """Calculate profit factor.

    Profit Factor = Gross Profit / Gross Loss

    Args:
        trades: List of trade profits/losses.
        cap: Upper bound, also reported when there are wins but no losses.

    Returns:
        Profit factor. > 1 indicates profitable strategy.
        0.0 when there are neither wins nor losses.
    """
    if trades is None or len(trades) == 0:
        return 0.0

    gross_profit = sum(t for t in trades if t > 0)
    gross_loss = sum(abs(t) for t in trades if t < 0)

    if gross_loss == 0:
        return cap if gross_profit > 0 else 0.0

    return min(cap, gross_profit / gross_loss)


def calc_sharpe_ratio(
    returns: list[float],
    risk_free_rate: float = 0.0,
    periods_per_year: int = 252,
) -> float:
    """Calculate annualized Sharpe ratio.

    Formula: Sharpe = (Mean Return - Risk Free Rate) / Std Dev * sqrt(periods_per_year)

    Args:
        returns: Per-trade returns (profit / stake).
        risk_free_rate: Risk-free rate per period (as decimal).
        periods_per_year: Annualization factor.

    Returns:
        Annualized Sharpe ratio, 0.0 with fewer than 2 returns or zero
        volatility.
    """
    if returns is None or len(returns) < 2:
        return 0.0

    excess_returns = np.asarray(returns, dtype=float) - risk_free_rate
    mean_excess = np.mean(excess_returns)
    std_dev = np.std(excess_returns, ddof=1)

    if std_dev == 0 or not np.isfinite(std_dev):
        return 0.0

    return float((mean_excess / std_dev) * math.sqrt(periods_per_year))


def calc_max_drawdown(equity_curve: list[float]) -> float:
    """Calculate maximum drawdown from an equity curve.

    Max Drawdown = (Peak - Trough) / Peak

    Args:
        equity_curve: Balance after each trade, starting with the initial
            balance.

    Returns:
        Maximum drawdown in [0, 1]. 0.0 for fewer than 2 points.

    Example:
        >>> equity = [100, 110, 105, 120, 100, 130]
        >>> round(calc_max_drawdown(equity), 4)  # 120 -> 100
        0.1667
    """
    if equity_curve is None or len(equity_curve) < 2:
        return 0.0

    max_drawdown = 0.0
    peak = equity_curve[0]

    for value in equity_curve:
        if value > peak:
            peak = value
        elif peak > 0:
            drawdown = (peak - value) / peak
            max_drawdown = max(max_drawdown, drawdown)

    return min(1.0, max(0.0, max_drawdown))


def calc_calmar_ratio(total_return: float, max_drawdown: float) -> float:
    """Calmar Ratio = Return / Max Drawdown, 0.0 when there is no drawdown."""
    if total_return is None or not max_drawdown:
        return 0.0
    return total_return / max_drawdown


def calc_var(
    returns: list[float],
    confidence: float = 0.95,
    min_samples: int = 10,
) -> float | None:
    """Calculate Value at Risk (VaR) using historical method.

    Args:
        returns: Per-trade returns (as decimals).
        confidence: Confidence level (e.g., 0.95 for 95% VaR).
        min_samples: Minimum number of returns.

    Returns:
        VaR as a positive loss magnitude, 0.0 when even the tail
        percentile is a gain. None if insufficient data.
    """
    if returns is None or len(returns) < min_samples:
        return None

    var_percentile = np.percentile(np.asarray(returns, dtype=float), (1 - confidence) * 100)

    return max(0.0, -float(var_percentile))


def calc_cvar(
    returns: list[float],
    confidence: float = 0.95,
    min_samples: int = 10,
) -> float | None:
    """Calculate Conditional Value at Risk (CVaR / Expected Shortfall).

    CVaR is the mean of returns at or beyond the VaR threshold.

    Returns:
        CVaR as a positive loss magnitude. None if insufficient data.
    """
    if returns is None or len(returns) < min_samples:
        return None

    returns_array = np.asarray(returns, dtype=float)
    var_percentile = np.percentile(returns_array, (1 - confidence) * 100)

    # Expected shortfall: mean of returns at or below VaR
    tail_returns = returns_array[returns_array <= var_percentile]

    if len(tail_returns) == 0:
        return None

    return max(0.0, -float(np.mean(tail_returns)))


def calc_risk_of_ruin(profits: list[float], capital: float) -> float:
    """Estimate probability of losing all capital.

    Diffusion approximation: RoR = exp(-2 * mu * B / sigma^2), where mu and
    sigma are the mean and std-dev of per-trade profit and B the capital.

    Args:
        profits: Per-trade net profits.
        capital: Starting capital.

    Returns:
        Probability in [0, 1]. 1.0 for a non-positive edge,
        0.0 for a riskless positive edge or no trades.

    Example:
        >>> calc_risk_of_ruin([-1.0, -1.0], 100)
        1.0
    """
    if profits is None or len(profits) == 0 or capital <= 0:
        return 0.0

    profits_array = np.asarray(profits, dtype=float)
    mu = float(np.mean(profits_array))
    if mu <= 0:
        return 1.0

    variance = float(np.var(profits_array, ddof=1)) if len(profits_array) > 1 else 0.0
    if variance == 0:
        return 0.0

    return min(1.0, max(0.0, math.exp(-2 * mu * capital / variance)))


def calc_coefficient_of_variation(values: list[float]) -> float | None:
    """std / |mean| (population std). None when the mean is zero or no data."""
    if values is None or len(values) == 0:
        return None
    values_array = np.asarray(values, dtype=float)
    mean = float(np.mean(values_array))
    if mean == 0:
        return None
    return float(np.std(values_array)) / abs(mean)
