"""Exit-management data models.

State containers for trailing stops, partial-close ladders and
multi-tranche scale strategies. The state transitions are implemented by
ExitManager in the business layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from tickrisk.engine.models.enums import ScaleDirection, StopType, TrailingStopState


@dataclass
class TrailingStop:
    """Trailing stop for one position.

    current_stop only moves in the favourable direction: up for longs,
    down for shorts.
    """

    position_id: str
    entry_price: float
    current_stop: float
    trailing_amount: float
    stop_type: StopType = StopType.FIXED
    is_long: bool = True
    highest_price: float = 0.0
    lowest_price: float = 0.0
    activated: bool = False
    state: TrailingStopState = TrailingStopState.ARMED
    created_at: datetime = field(default_factory=datetime.now)
    triggered_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "position_id": self.position_id,
            "entry_price": self.entry_price,
            "current_stop": self.current_stop,
            "trailing_amount": self.trailing_amount,
            "stop_type": self.stop_type.value,
            "is_long": self.is_long,
            "highest_price": self.highest_price,
            "lowest_price": self.lowest_price,
            "activated": self.activated,
            "state": self.state.value,
        }


@dataclass
class PartialCloseLevel:
    """One rung of a profit-target ladder.

    profit_target is a profit ratio on stake (0.5 = +50%);
    close_percent is the fraction of the original stake to close.
    """

    profit_target: float
    close_percent: float
    description: str = ""


@dataclass
class PartialCloseRule:
    """Profit-target ladder for one position.

    Levels are sorted ascending by profit_target and their close_percent
    sum to at most 1.
    """

    position_id: str
    levels: list[PartialCloseLevel]
    min_holding_time: float = 0.0  # seconds
    executed_levels: set[int] = field(default_factory=set)
    current_stake: float | None = None
    closed_amount: float = 0.0
    history: list["PartialCloseRecord"] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class PartialCloseDecision:
    """Result of evaluating a partial-close ladder."""

    level_index: int
    profit_target: float
    close_percent: float
    close_amount: float = 0.0
    remaining_amount: float = 0.0
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "level_index": self.level_index,
            "profit_target": self.profit_target,
            "close_percent": self.close_percent,
            "close_amount": self.close_amount,
            "remaining_amount": self.remaining_amount,
            "description": self.description,
        }


@dataclass
class PartialCloseRecord:
    """Executed partial close, kept for statistics."""

    level_index: int
    close_amount: float
    profit: float
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class ScaleStrategy:
    """Multi-tranche entry (IN) or exit (OUT) plan.

    stake_distribution sums to 1 and completed_parts never exceeds
    total_parts. Scale-out plans carry profit_levels, scale-in plans may
    carry price_levels.
    """

    strategy_id: str
    direction: ScaleDirection
    total_parts: int
    stake_distribution: list[float]
    profit_levels: list[float] = field(default_factory=list)
    price_levels: list[float] = field(default_factory=list)
    completed_parts: int = 0
    executed_amounts: list[float] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def is_complete(self) -> bool:
        return self.completed_parts >= self.total_parts

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy_id": self.strategy_id,
            "direction": self.direction.value,
            "total_parts": self.total_parts,
            "stake_distribution": list(self.stake_distribution),
            "profit_levels": list(self.profit_levels),
            "price_levels": list(self.price_levels),
            "completed_parts": self.completed_parts,
            "executed_amounts": list(self.executed_amounts),
        }


@dataclass
class ScaleTranche:
    """Next tranche of a scale strategy."""

    part_index: int
    percent: float
    amount: float
    trigger: float | None = None  # profit level (OUT) or price level (IN)
    remaining_parts: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "part_index": self.part_index,
            "percent": self.percent,
            "amount": self.amount,
            "trigger": self.trigger,
            "remaining_parts": self.remaining_parts,
        }
