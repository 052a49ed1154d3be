"""Engine layer data models."""

from tickrisk.engine.models.enums import (
    KellyVariant,
    MarketRegime,
    PositionStatus,
    RiskLevel,
    ScaleDirection,
    StopReason,
    StopType,
    TradeResult,
    TrailingStopState,
)
from tickrisk.engine.models.errors import InvalidParameterError
from tickrisk.engine.models.exits import (
    PartialCloseDecision,
    PartialCloseLevel,
    PartialCloseRecord,
    PartialCloseRule,
    ScaleStrategy,
    ScaleTranche,
    TrailingStop,
)
from tickrisk.engine.models.portfolio import (
    CorrelationEntry,
    DailyStats,
    PortfolioStats,
    Position,
    Prediction,
    TickEvent,
    TradeOutcome,
    last_digit_of,
)

__all__ = [
    # Enums
    "KellyVariant",
    "MarketRegime",
    "PositionStatus",
    "RiskLevel",
    "ScaleDirection",
    "StopReason",
    "StopType",
    "TradeResult",
    "TrailingStopState",
    # Errors
    "InvalidParameterError",
    # Exits
    "PartialCloseDecision",
    "PartialCloseLevel",
    "PartialCloseRecord",
    "PartialCloseRule",
    "ScaleStrategy",
    "ScaleTranche",
    "TrailingStop",
    # Portfolio
    "CorrelationEntry",
    "DailyStats",
    "PortfolioStats",
    "Position",
    "Prediction",
    "TickEvent",
    "TradeOutcome",
    "last_digit_of",
]
