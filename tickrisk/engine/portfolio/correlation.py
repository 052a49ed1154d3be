"""Cross-instrument correlation and diversification metrics."""

import math

import numpy as np


def calc_simple_returns(prices: list[float]) -> list[float]:
    """Simple returns p[i]/p[i-1] - 1. Non-positive prices yield 0.0."""
    if prices is None or len(prices) < 2:
        return []
    returns = []
    for prev, curr in zip(prices[:-1], prices[1:]):
        returns.append(curr / prev - 1 if prev > 0 else 0.0)
    return returns


def calc_correlation(
    series_a: list[float],
    series_b: list[float],
    min_samples: int = 10,
) -> float:
    """Pearson correlation of two series aligned on their most recent values.

    Args:
        series_a: First return series.
        series_b: Second return series.
        min_samples: Minimum overlapping length.

    Returns:
        Coefficient in [-1, 1]. 0.0 with too few samples or zero variance.

    Example:
        >>> round(calc_correlation(list(range(20)), list(range(20))), 6)
        1.0
    """
    if series_a is None or series_b is None:
        return 0.0

    n = min(len(series_a), len(series_b))
    if n < min_samples:
        return 0.0

    a = np.asarray(series_a[-n:], dtype=float)
    b = np.asarray(series_b[-n:], dtype=float)
    if np.std(a) == 0 or np.std(b) == 0:
        return 0.0

    coefficient = float(np.corrcoef(a, b)[0, 1])
    if not math.isfinite(coefficient):
        return 0.0
    return max(-1.0, min(1.0, coefficient))


def calc_effective_bets(weights: list[float]) -> float:
    """Effective number of bets: 1 / sum(weight^2).

    Example:
        >>> calc_effective_bets([0.25, 0.25, 0.25, 0.25])
        4.0
    """
    squared = sum(w**2 for w in weights or [])
    if squared == 0:
        return 0.0
    return 1 / squared


def calc_concentration_hhi(weights: list[float]) -> float | None:
    """Herfindahl-Hirschman Index of allocation weights.

    HHI ranges from 1/n (perfectly diversified) to 1 (single position).
    """
    if not weights:
        return None
    return sum(w**2 for w in weights)


def calc_portfolio_volatility(weights: list[float], covariance: np.ndarray) -> float:
    """Portfolio volatility sqrt(w' Σ w)."""
    w = np.asarray(weights, dtype=float)
    cov = np.asarray(covariance, dtype=float)
    if w.size == 0 or cov.size == 0:
        return 0.0
    variance = float(w @ cov @ w)
    return math.sqrt(variance) if variance > 0 else 0.0


def calc_inverse_volatility_weights(volatilities: dict[str, float]) -> dict[str, float]:
    """Risk-parity weights proportional to 1 / volatility.

    Symbols with zero or unknown volatility share the weight of the
    average inverse volatility. Weights sum to 1.
    """
    if not volatilities:
        return {}

    inverse = {s: 1 / v for s, v in volatilities.items() if v and v > 0}
    fallback = sum(inverse.values()) / len(inverse) if inverse else 1.0
    raw = {s: inverse.get(s, fallback) for s in volatilities}
    total = sum(raw.values())
    return {s: value / total for s, value in raw.items()}
