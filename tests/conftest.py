"""
Pytest fixtures shared by all test packages.

Provides deterministic synthetic tick streams so no market data is needed.
"""

from datetime import datetime, timedelta

import numpy as np
import pytest

from tickrisk.engine.models.portfolio import TickEvent

START_TIME = datetime(2024, 1, 2, 9, 0, 0)


# ============================================================================
# Sample Data Generation
# ============================================================================


def generate_ticks(
    symbol: str = "R_10",
    n: int = 500,
    seed: int = 42,
    start: datetime = START_TIME,
    interval_seconds: float = 2.0,
    base_price: float = 1000.0,
    volatility: float = 0.0005,
) -> list[TickEvent]:
    """Generate a random-walk tick stream with uniformly random last digits.

    Args:
        symbol: Symbol of every tick
        n: Number of ticks
        seed: RNG seed
        start: Timestamp of the first tick
        interval_seconds: Spacing between ticks
        base_price: Starting price
        volatility: Per-tick return std-dev

    Returns:
        Ticks in chronological order
    """
    rng = np.random.default_rng(seed)
    returns = rng.normal(0.0, volatility, n)
    prices = base_price * np.cumprod(1 + returns)
    digits = rng.integers(0, 10, n)

    return [
        TickEvent(
            symbol=symbol,
            timestamp=start + timedelta(seconds=i * interval_seconds),
            price=round(float(price), 2),
            last_digit=int(digit),
        )
        for i, (price, digit) in enumerate(zip(prices, digits))
    ]


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def tick_factory():
    """Factory fixture: tick_factory(n=..., seed=..., symbol=...)."""
    return generate_ticks


@pytest.fixture
def ticks() -> list[TickEvent]:
    """500 ticks of R_10, two seconds apart."""
    return generate_ticks()


@pytest.fixture
def permissive_risk() -> dict:
    """Risk overrides that keep circuit breakers from firing in a replay.

    Stakes are capped at 0.2% of balance so a few hundred losses cannot
    exhaust the daily loss limit.
    """
    return {
        "max_consecutive_losses": 10000,
        "max_drawdown": 1.0,
        "max_daily_loss": 1.0,
        "max_stake_pct": 0.002,
    }
