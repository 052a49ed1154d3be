"""
Exit Manager - 退出管理

持仓级退出状态机:
- Trailing stop: 未初始化 → ARMED → TRIGGERED，止损价只朝有利方向单向移动
- Partial close: 盈利目标阶梯，按最短持仓时间过滤，每一级只执行一次
- Scale in / out: 分批建仓 / 分批止盈，completed_parts 保证每一批只触发一次

状态以 position id 为键保存；PortfolioLedger 在建仓时创建、平仓时调用 release() 销毁。

Usage:
    exits = ExitManager(config)
    exits.initialize_trailing_stop("p1", entry_price=100, distance=5)
    exits.update_trailing_stop("p1", 110)            # → 105
    exits.should_exit_on_trailing_stop("p1", 104)    # → True
"""

import logging
from datetime import datetime
from typing import Any

from tickrisk.business.config.risk_config import RiskConfig
from tickrisk.engine.models.enums import ScaleDirection, StopType, TrailingStopState
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

logger = logging.getLogger(__name__)

_TOLERANCE = 1e-9


def _validate_distribution(distribution: list[float], parts: int) -> list[float]:
    """校验分批比例: 长度等于批数、每项为正、总和为 1"""
    if parts < 1:
        raise InvalidParameterError(f"total_parts must be positive, got {parts}")
    if len(distribution) != parts:
        raise InvalidParameterError(
            f"stake_distribution has {len(distribution)} entries for {parts} parts"
        )
    if any(p <= 0 for p in distribution):
        raise InvalidParameterError("stake_distribution entries must be positive")
    if abs(sum(distribution) - 1) > 1e-6:
        raise InvalidParameterError(
            f"stake_distribution must sum to 1, got {sum(distribution):.4f}"
        )
    return [float(p) for p in distribution]


def _equal_split(parts: int) -> list[float]:
    return [1 / parts] * parts


class ExitManager:
    """持仓退出状态管理器

    三类状态分别保存在独立的字典中，均以 position id 为键。
    """

    def __init__(self, config: RiskConfig | None = None) -> None:
        self.config = config or RiskConfig()
        self._trailing_stops: dict[str, TrailingStop] = {}
        self._partial_rules: dict[str, PartialCloseRule] = {}
        self._scale_strategies: dict[str, ScaleStrategy] = {}

    # ========== Trailing Stop ==========

    def initialize_trailing_stop(
        self,
        position_id: str,
        entry_price: float,
        distance: float,
        stop_type: StopType | str = StopType.FIXED,
        is_long: bool = True,
    ) -> TrailingStop:
        """初始化追踪止损 (ARMED)

        Args:
            position_id: 持仓 ID
            entry_price: 开仓价
            distance: 固定距离 (FIXED) 或比例 (PERCENTAGE, 如 0.05)
            stop_type: 止损类型
            is_long: 多头为 True

        Returns:
            TrailingStop，多头 current_stop = entry - distance
        """
        stop_type = StopType(stop_type)
        if entry_price <= 0 or distance <= 0:
            raise InvalidParameterError(
                f"entry_price and distance must be positive, got {entry_price}, {distance}"
            )
        if stop_type == StopType.PERCENTAGE and distance >= 1:
            raise InvalidParameterError(f"percentage distance must be < 1, got {distance}")

        stop = TrailingStop(
            position_id=position_id,
            entry_price=entry_price,
            current_stop=self._candidate_stop(entry_price, distance, stop_type, is_long),
            trailing_amount=distance,
            stop_type=stop_type,
            is_long=is_long,
            highest_price=entry_price,
            lowest_price=entry_price,
        )
        self._trailing_stops[position_id] = stop
        logger.debug(f"Trailing stop armed for {position_id}: stop={stop.current_stop:.4f}")
        return stop

    @staticmethod
    def _candidate_stop(price: float, distance: float, stop_type: StopType, is_long: bool) -> float:
        if stop_type == StopType.PERCENTAGE:
            return price * (1 - distance) if is_long else price * (1 + distance)
        return price - distance if is_long else price + distance

    def update_trailing_stop(
        self,
        position_id: str,
        current_price: float,
        is_long: bool | None = None,
    ) -> float | None:
        """按新价格更新追踪止损

        多头: 价格创新高时计算候选止损，只有严格高于当前止损才接受 (空头对称)。

        Returns:
            更新后的止损价；未初始化返回 None
        """
        stop = self._trailing_stops.get(position_id)
        if stop is None:
            return None
        if stop.state == TrailingStopState.TRIGGERED:
            return stop.current_stop

        long_side = stop.is_long if is_long is None else is_long
        if long_side:
            if current_price > stop.highest_price:
                stop.highest_price = current_price
                candidate = self._candidate_stop(
                    current_price, stop.trailing_amount, stop.stop_type, True
                )
                if candidate > stop.current_stop:
                    stop.current_stop = candidate
                    stop.activated = True
        else:
            if current_price < stop.lowest_price:
                stop.lowest_price = current_price
                candidate = self._candidate_stop(
                    current_price, stop.trailing_amount, stop.stop_type, False
                )
                if candidate < stop.current_stop:
                    stop.current_stop = candidate
                    stop.activated = True

        return stop.current_stop

    def should_exit_on_trailing_stop(
        self,
        position_id: str,
        current_price: float,
        is_long: bool | None = None,
    ) -> bool:
        """价格反向穿越止损时返回 True，并转为 TRIGGERED"""
        stop = self._trailing_stops.get(position_id)
        if stop is None:
            return False
        if stop.state == TrailingStopState.TRIGGERED:
            return True

        long_side = stop.is_long if is_long is None else is_long
        crossed = current_price <= stop.current_stop if long_side else current_price >= stop.current_stop
        if crossed:
            stop.state = TrailingStopState.TRIGGERED
            stop.triggered_at = datetime.now()
            logger.info(
                f"Trailing stop triggered for {position_id}: "
                f"price={current_price:.4f}, stop={stop.current_stop:.4f}"
            )
        return crossed

    def get_trailing_stop(self, position_id: str) -> TrailingStop | None:
        return self._trailing_stops.get(position_id)

    # ========== Partial Close ==========

    def _default_levels(self) -> list[PartialCloseLevel]:
        return [
            PartialCloseLevel(
                profit_target=target,
                close_percent=percent,
                description=f"{target:.0%} profit - close {percent:.0%}",
            )
            for target, percent in self.config.partial_close_levels
        ]

    @staticmethod
    def _validate_levels(levels: list[PartialCloseLevel]) -> list[PartialCloseLevel]:
        if not levels:
            raise InvalidParameterError("partial close ladder is empty")
        for level in levels:
            if level.profit_target <= 0:
                raise InvalidParameterError(f"profit_target must be positive, got {level.profit_target}")
            if not 0 < level.close_percent <= 1:
                raise InvalidParameterError(f"close_percent must be in (0, 1], got {level.close_percent}")
        total = sum(level.close_percent for level in levels)
        if total > 1 + _TOLERANCE:
            raise InvalidParameterError(f"close percentages sum to {total:.2f} > 1")
        return sorted(levels, key=lambda level: level.profit_target)

    def set_partial_close_rules(
        self,
        position_id: str,
        levels: list[PartialCloseLevel | dict[str, Any] | tuple[float, float]] | None = None,
        min_holding_time: float | None = None,
        stake: float | None = None,
    ) -> PartialCloseRule:
        """设置分批止盈阶梯

        非法阶梯 (目标非正、比例越界、比例总和 > 1) 回退到默认阶梯并记录 WARNING。

        Args:
            position_id: 持仓 ID
            levels: 阶梯，支持 PartialCloseLevel、dict 或 (target, percent) 元组
            min_holding_time: 最短持仓时间 (秒)
            stake: 初始仓位 (用于统计)

        Returns:
            PartialCloseRule
        """
        if levels is None:
            parsed = self._default_levels()
        else:
            try:
                parsed = self._validate_levels([self._parse_level(level) for level in levels])
            except (InvalidParameterError, KeyError, TypeError) as e:
                logger.warning(f"Invalid partial close rules for {position_id}: {e}; using defaults")
                parsed = self._default_levels()

        rule = PartialCloseRule(
            position_id=position_id,
            levels=parsed,
            min_holding_time=(
                self.config.min_holding_time if min_holding_time is None else min_holding_time
            ),
            current_stake=stake,
        )
        self._partial_rules[position_id] = rule
        return rule

    @staticmethod
    def _parse_level(level: PartialCloseLevel | dict[str, Any] | tuple[float, float]) -> PartialCloseLevel:
        if isinstance(level, PartialCloseLevel):
            return level
        if isinstance(level, dict):
            return PartialCloseLevel(
                profit_target=float(level["profit_target"]),
                close_percent=float(level["close_percent"]),
                description=level.get("description", ""),
            )
        target, percent = level
        return PartialCloseLevel(profit_target=float(target), close_percent=float(percent))

    def should_partial_close(
        self,
        position_id: str,
        current_profit: float,
        holding_time: float | None = None,
    ) -> PartialCloseDecision | None:
        """返回第一个已达到且未执行的盈利目标

        Args:
            position_id: 持仓 ID
            current_profit: 当前盈利比例 (0.6 = +60%)
            holding_time: 已持仓秒数；低于 min_holding_time 时不触发

        Returns:
            PartialCloseDecision (金额为 0，由 calculate_partial_close_amount 填充)；
            未达到任何目标返回 None
        """
        rule = self._partial_rules.get(position_id)
        if rule is None:
            return None
        if holding_time is not None and holding_time < rule.min_holding_time:
            return None

        for index, level in enumerate(rule.levels):
            if index in rule.executed_levels:
                continue
            if current_profit >= level.profit_target:
                return PartialCloseDecision(
                    level_index=index,
                    profit_target=level.profit_target,
                    close_percent=level.close_percent,
                    description=level.description,
                )
        return None

    def calculate_partial_close_amount(
        self,
        position_id: str,
        current_profit: float,
        current_stake: float,
        holding_time: float | None = None,
    ) -> PartialCloseDecision | None:
        """计算分批平仓金额: close = stake × close_percent, remaining = stake - close"""
        decision = self.should_partial_close(position_id, current_profit, holding_time)
        if decision is None:
            return None
        decision.close_amount = current_stake * decision.close_percent
        decision.remaining_amount = current_stake - decision.close_amount
        return decision

    def record_partial_close(
        self,
        position_id: str,
        close_amount: float,
        remaining_amount: float,
        level_index: int | None = None,
        profit: float = 0.0,
    ) -> bool:
        """记录已执行的分批平仓

        Returns:
            成功返回 True；没有阶梯规则返回 False
        """
        rule = self._partial_rules.get(position_id)
        if rule is None:
            return False
        if close_amount < 0 or remaining_amount < 0:
            raise InvalidParameterError("close and remaining amounts must be non-negative")

        if level_index is not None:
            rule.executed_levels.add(level_index)
        rule.current_stake = remaining_amount
        rule.closed_amount += close_amount
        rule.history.append(
            PartialCloseRecord(
                level_index=-1 if level_index is None else level_index,
                close_amount=close_amount,
                profit=profit,
            )
        )
        logger.info(
            f"Partial close on {position_id}: closed={close_amount:.2f}, remaining={remaining_amount:.2f}"
        )
        return True

    def get_partial_close_stats(self, position_id: str) -> dict[str, Any] | None:
        """分批平仓统计"""
        rule = self._partial_rules.get(position_id)
        if rule is None:
            return None
        return {
            "position_id": position_id,
            "levels": [
                {
                    "profit_target": level.profit_target,
                    "close_percent": level.close_percent,
                    "description": level.description,
                    "executed": index in rule.executed_levels,
                }
                for index, level in enumerate(rule.levels)
            ],
            "executed_levels": len(rule.executed_levels),
            "remaining_levels": len(rule.levels) - len(rule.executed_levels),
            "position": {
                "current_stake": rule.current_stake,
                "closed_amount": rule.closed_amount,
            },
            "total_realized_profit": sum(record.profit for record in rule.history),
            "partial_closes": len(rule.history),
        }

    # ========== Scale In / Out ==========

    def create_scale_in_strategy(
        self,
        strategy_id: str,
        total_parts: int | None = None,
        stake_distribution: list[float] | None = None,
        price_levels: list[float] | None = None,
    ) -> ScaleStrategy:
        """创建分批建仓计划

        默认 3 批，比例 [0.4, 0.3, 0.3]。比例不合法时回退为等分并记录 WARNING。
        """
        parts = total_parts or self.config.scale_in_parts
        distribution = stake_distribution
        if distribution is None:
            distribution = (
                self.config.scale_in_distribution
                if parts == len(self.config.scale_in_distribution)
                else _equal_split(parts)
            )
        try:
            distribution = _validate_distribution(distribution, parts)
        except InvalidParameterError as e:
            if parts < 1:
                raise
            logger.warning(f"Scale-in {strategy_id}: {e}; using equal split")
            distribution = _equal_split(parts)

        strategy = ScaleStrategy(
            strategy_id=strategy_id,
            direction=ScaleDirection.IN,
            total_parts=parts,
            stake_distribution=distribution,
            price_levels=list(price_levels or []),
        )
        self._scale_strategies[strategy_id] = strategy
        return strategy

    def get_next_scale_in_entry(
        self,
        strategy_id: str,
        total_stake: float,
        current_price: float | None = None,
        is_long: bool = True,
    ) -> ScaleTranche | None:
        """返回下一批建仓

        设置了 price_levels 时，下一批只在价格到达对应价位时触发
        (多头: price ≤ level, 空头: price ≥ level)。

        Returns:
            ScaleTranche；已完成或价格未到返回 None
        """
        strategy = self._scale_strategies.get(strategy_id)
        if strategy is None or strategy.direction != ScaleDirection.IN or strategy.is_complete:
            return None

        part = strategy.completed_parts
        trigger = None
        if part < len(strategy.price_levels):
            trigger = strategy.price_levels[part]
            if current_price is None:
                return None
            reached = current_price <= trigger if is_long else current_price >= trigger
            if not reached:
                return None

        return self._fire_tranche(strategy, total_stake, trigger)

    def create_scale_out_strategy(
        self,
        strategy_id: str,
        profit_levels: list[float] | None = None,
        stake_distribution: list[float] | None = None,
    ) -> ScaleStrategy:
        """创建分批止盈计划

        默认 profit_levels [0.25, 0.5, 1.0]，比例 [0.3, 0.3, 0.4]。
        盈利目标按升序排列；比例不合法时回退为等分并记录 WARNING。
        """
        levels = list(profit_levels or self.config.scale_out_levels)
        if not levels or any(level <= 0 for level in levels):
            raise InvalidParameterError(f"profit_levels must be positive, got {levels}")

        distribution = stake_distribution
        if distribution is None:
            distribution = (
                self.config.scale_out_distribution
                if len(levels) == len(self.config.scale_out_distribution)
                else _equal_split(len(levels))
            )
        try:
            distribution = _validate_distribution(distribution, len(levels))
        except InvalidParameterError as e:
            logger.warning(f"Scale-out {strategy_id}: {e}; using equal split")
            distribution = _equal_split(len(levels))

        # 按盈利目标升序，比例随之重排
        pairs = sorted(zip(levels, distribution), key=lambda pair: pair[0])
        strategy = ScaleStrategy(
            strategy_id=strategy_id,
            direction=ScaleDirection.OUT,
            total_parts=len(pairs),
            stake_distribution=[p for _, p in pairs],
            profit_levels=[level for level, _ in pairs],
        )
        self._scale_strategies[strategy_id] = strategy
        return strategy

    def get_next_scale_out_exit(
        self,
        strategy_id: str,
        current_profit: float,
        total_stake: float,
    ) -> ScaleTranche | None:
        """返回下一批止盈 (每次最多一批)

        Args:
            strategy_id: 计划 ID
            current_profit: 当前盈利比例
            total_stake: 计划的总仓位

        Returns:
            ScaleTranche (amount = total_stake × 比例)；未达到下一档返回 None
        """
        strategy = self._scale_strategies.get(strategy_id)
        if strategy is None or strategy.direction != ScaleDirection.OUT or strategy.is_complete:
            return None

        level = strategy.profit_levels[strategy.completed_parts]
        if current_profit < level:
            return None
        return self._fire_tranche(strategy, total_stake, level)

    @staticmethod
    def _fire_tranche(strategy: ScaleStrategy, total_stake: float, trigger: float | None) -> ScaleTranche:
        part = strategy.completed_parts
        percent = strategy.stake_distribution[part]
        amount = total_stake * percent
        strategy.completed_parts += 1
        strategy.executed_amounts.append(amount)
        return ScaleTranche(
            part_index=part,
            percent=percent,
            amount=amount,
            trigger=trigger,
            remaining_parts=strategy.total_parts - strategy.completed_parts,
        )

    def get_scale_strategy(self, strategy_id: str) -> ScaleStrategy | None:
        return self._scale_strategies.get(strategy_id)

    # ========== Lifecycle ==========

    def release(self, position_id: str) -> None:
        """销毁持仓的全部退出状态 (平仓时由 PortfolioLedger 调用)"""
        self._trailing_stops.pop(position_id, None)
        self._partial_rules.pop(position_id, None)
        self._scale_strategies.pop(position_id, None)

    def has_state(self, position_id: str) -> bool:
        return (
            position_id in self._trailing_stops
            or position_id in self._partial_rules
            or position_id in self._scale_strategies
        )

    def clear(self) -> None:
        self._trailing_stops.clear()
        self._partial_rules.clear()
        self._scale_strategies.clear()

    def get_status(self) -> dict[str, int]:
        return {
            "trailing_stops": len(self._trailing_stops),
            "partial_close_rules": len(self._partial_rules),
            "scale_strategies": len(self._scale_strategies),
        }
