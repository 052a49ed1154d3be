"""Engine layer enumerations.

Centralized location for all enums used in the engine layer.
"""

from enum import Enum


class PositionStatus(Enum):
    """Position lifecycle status."""

    OPEN = "open"
    CLOSED = "closed"


class TradeResult(Enum):
    """Settled outcome of a digit contract."""

    WON = "won"
    LOST = "lost"


class KellyVariant(Enum):
    """Kelly criterion variants used for stake sizing."""

    CLASSIC = "classic"  # Raw Kelly fraction
    FRACTIONAL = "fractional"  # Kelly x user fraction
    ROBUST = "robust"  # Win rate shrunk by binomial standard error
    DYNAMIC = "dynamic"  # Scaled by recent consistency


class StopType(Enum):
    """Trailing stop distance type."""

    FIXED = "fixed"  # Absolute price distance
    PERCENTAGE = "percentage"  # Fraction of price


class TrailingStopState(Enum):
    """Trailing stop state machine.

    A position without a stop is simply absent from the stop book
    (uninitialized). Initialization arms the stop; an adverse cross
    triggers it. TRIGGERED is terminal.
    """

    ARMED = "armed"
    TRIGGERED = "triggered"


class ScaleDirection(Enum):
    """Scale strategy direction."""

    IN = "in"  # Multi-tranche entry
    OUT = "out"  # Multi-tranche exit


class MarketRegime(Enum):
    """Price regime used for position size adjustment."""

    TRENDING = "trending"  # Size +10%
    RANGING = "ranging"  # Size -10%
    UNKNOWN = "unknown"  # Not enough data


class StopReason(Enum):
    """Circuit breaker reason codes, in evaluation order."""

    MAX_DRAWDOWN = "max_drawdown"
    MAX_DAILY_LOSS = "max_daily_loss"
    CONSECUTIVE_LOSSES = "consecutive_losses"


class RiskLevel(Enum):
    """Portfolio risk classification."""

    NONE = "none"  # No open positions
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EXTREME = "extreme"
