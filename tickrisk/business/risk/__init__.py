"""Risk management: stake sizing, circuit breakers, exit management."""

from tickrisk.business.risk.daily_tracker import DailyLossTracker
from tickrisk.business.risk.engine import (
    BalanceStressResult,
    PositionSizingRecommendation,
    RiskEngine,
    StakeContext,
    StopDecision,
)
from tickrisk.business.risk.exits import ExitManager

__all__ = [
    "BalanceStressResult",
    "DailyLossTracker",
    "ExitManager",
    "PositionSizingRecommendation",
    "RiskEngine",
    "StakeContext",
    "StopDecision",
]
