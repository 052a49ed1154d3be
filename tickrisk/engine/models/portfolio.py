"""Portfolio-level data models.

Pure data containers shared by the risk engine, the portfolio ledger and
the backtest simulator. All calculation logic lives in the engine
functions and the business-layer components that own these objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from tickrisk.engine.models.enums import PositionStatus, TradeResult


def last_digit_of(price: float, decimals: int | None = None) -> int:
    """Extract the settlement digit of a quoted price.

    Args:
        price: Quoted price.
        decimals: Quote precision. When omitted the shortest decimal
            representation of the float is used.

    Returns:
        Final digit (0-9).

    Example:
        >>> last_digit_of(1234.57)
        7
        >>> last_digit_of(1234.5, decimals=2)
        0
    """
    if decimals is not None:
        return int(round(abs(price) * 10**decimals)) % 10
    text = repr(float(price)).rstrip("0").rstrip(".")
    return int(text[-1])


@dataclass
class PortfolioStats:
    """Aggregate account health.

    Written only by RiskEngine. current_drawdown is always
    (peak_balance - total_balance) / peak_balance and never negative;
    peak_balance only increases.
    """

    total_balance: float = 1000.0
    peak_balance: float = 1000.0
    current_drawdown: float = 0.0
    consecutive_losses: int = 0
    daily_loss: float = 0.0  # gross losses today; the daily breaker uses DailyStats.net_loss
    last_reset_date: date | None = None

    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    total_profit: float = 0.0

    @property
    def win_rate(self) -> float:
        if self.total_trades == 0:
            return 0.0
        return self.winning_trades / self.total_trades

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_balance": self.total_balance,
            "peak_balance": self.peak_balance,
            "current_drawdown": self.current_drawdown,
            "consecutive_losses": self.consecutive_losses,
            "daily_loss": self.daily_loss,
            "last_reset_date": self.last_reset_date.isoformat() if self.last_reset_date else None,
            "total_trades": self.total_trades,
            "winning_trades": self.winning_trades,
            "losing_trades": self.losing_trades,
            "total_profit": self.total_profit,
            "win_rate": self.win_rate,
        }


@dataclass
class DailyStats:
    """One calendar day of settled outcomes.

    profit is the net result of the day (wins minus losses).
    """

    date: date
    profit: float = 0.0
    trades: int = 0
    losses: int = 0

    @property
    def net_loss(self) -> float:
        """Net loss of the day as a positive magnitude (0 when in profit)."""
        return max(0.0, -self.profit)


@dataclass
class Prediction:
    """Oracle output: predicted digit and its probability.

    Probabilities given as percentages (e.g. 14.5) are normalised to
    fractions.
    """

    digit: int
    probability: float

    def __post_init__(self) -> None:
        if not 0 <= self.digit <= 9:
            raise ValueError(f"digit must be 0-9, got {self.digit}")
        if self.probability > 1:
            self.probability = self.probability / 100
        self.probability = min(1.0, max(0.0, self.probability))


@dataclass
class TickEvent:
    """Market tick consumed from the data layer."""

    symbol: str
    timestamp: datetime
    price: float
    last_digit: int | None = None

    def __post_init__(self) -> None:
        if self.last_digit is None:
            self.last_digit = last_digit_of(self.price)


@dataclass
class TradeOutcome:
    """Settled trade outcome event."""

    symbol: str
    stake: float
    result: TradeResult
    profit: float
    timestamp: datetime | None = None
    position_id: str | None = None

    @property
    def won(self) -> bool:
        return self.result == TradeResult.WON


@dataclass
class Position:
    """One stake on one instrument.

    Status transitions OPEN -> CLOSED exactly once. current_stake shrinks
    as partial closes are applied; stake keeps the entry size.
    """

    id: str
    symbol: str
    stake: float
    prediction: int | None = None
    status: PositionStatus = PositionStatus.OPEN
    result: TradeResult | None = None
    profit: float = 0.0
    timestamp: datetime = field(default_factory=datetime.now)
    entry_price: float | None = None
    current_stake: float | None = None
    closed_amount: float = 0.0
    closed_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.stake <= 0:
            raise ValueError(f"Position stake must be positive, got {self.stake}")
        if self.current_stake is None:
            self.current_stake = self.stake

    @property
    def is_open(self) -> bool:
        return self.status == PositionStatus.OPEN

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "stake": self.stake,
            "prediction": self.prediction,
            "status": self.status.value,
            "result": self.result.value if self.result else None,
            "profit": self.profit,
            "timestamp": self.timestamp.isoformat(),
            "entry_price": self.entry_price,
            "current_stake": self.current_stake,
            "closed_amount": self.closed_amount,
            "closed_at": self.closed_at.isoformat() if self.closed_at else None,
        }


@dataclass
class CorrelationEntry:
    """Cached pairwise correlation. Recomputed on demand, never authoritative."""

    pair_key: str
    coefficient: float
    samples: int = 0
    computed_at: datetime = field(default_factory=datetime.now)

    @staticmethod
    def make_pair_key(symbol_a: str, symbol_b: str) -> str:
        """Order-independent key, e.g. ("R_50", "R_10") -> "R_10_R_50"."""
        return "_".join(sorted((symbol_a, symbol_b)))
