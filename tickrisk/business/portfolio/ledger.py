"""
Portfolio Ledger - 组合账本

跨标的持仓账本: 持仓生命周期、资金分配、两两相关性、分散化闸门、
组合风险评估与压力测试。

持仓状态 (Position) 以及其退出状态 (追踪止损 / 分批止盈 / 分批止盈计划)
由账本负责创建和销毁；退出状态机本身由 RiskEngine.exits 执行。
账本向 RiskEngine 查询动态限制 (熔断、回撤收紧)，但不写入 PortfolioStats
以外的任何风控状态，PortfolioStats 只通过 RiskEngine.record_outcome 更新。

Usage:
    ledger = PortfolioLedger(PortfolioConfig(), RiskEngine())
    decision = ledger.can_add_position("R_10", 10.0)
    if decision.allowed:
        position = ledger.add_position("R_10", 10.0, prediction=7)
    ledger.apply_outcome(TradeOutcome("R_10", 10.0, TradeResult.LOST, -10.0, position_id=position.id))
"""

import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from itertools import combinations
from typing import Any

import numpy as np

from tickrisk.business.config.portfolio_config import PortfolioConfig
from tickrisk.business.portfolio.risk_assessment import (
    PortfolioRiskAssessment,
    StressScenario,
    StressTestResult,
    build_recommendations,
    classify_risk_score,
    default_stress_scenarios,
    run_stress_scenario,
)
from tickrisk.business.risk.engine import RiskEngine
from tickrisk.engine.models.enums import PositionStatus, RiskLevel, StopType, TradeResult
from tickrisk.engine.models.portfolio import CorrelationEntry, Position, TickEvent, TradeOutcome
from tickrisk.engine.portfolio.correlation import (
    calc_concentration_hhi,
    calc_correlation,
    calc_effective_bets,
    calc_inverse_volatility_weights,
    calc_portfolio_volatility,
    calc_simple_returns,
)
from tickrisk.engine.portfolio.returns import (
    calc_average_loss,
    calc_average_win,
    calc_max_drawdown,
    calc_profit_factor,
    calc_sharpe_ratio,
    calc_win_rate,
)

logger = logging.getLogger(__name__)


@dataclass
class AllocationSnapshot:
    """每个标的占未平仓总金额的比例 (有持仓时总和为 1)"""

    allocation: dict[str, float] = field(default_factory=dict)
    total_allocated: float = 0.0
    exposures: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "allocation": dict(self.allocation),
            "total_allocated": self.total_allocated,
            "exposures": dict(self.exposures),
        }


@dataclass
class AdmissionDecision:
    """分散化闸门结果"""

    allowed: bool
    reason: str = ""
    projected_allocation: float | None = None
    allocation_ceiling: float | None = None
    correlated_symbol: str | None = None
    correlation: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "reason": self.reason,
            "projected_allocation": self.projected_allocation,
            "allocation_ceiling": self.allocation_ceiling,
            "correlated_symbol": self.correlated_symbol,
            "correlation": self.correlation,
        }


class PortfolioLedger:
    """组合账本

    每个实例拥有独立的持仓和价格历史；回测每次运行都会新建一个实例。
    """

    def __init__(
        self,
        config: PortfolioConfig | None = None,
        risk_engine: RiskEngine | None = None,
    ) -> None:
        """初始化

        Args:
            config: 组合配置
            risk_engine: 风控引擎 (提供熔断 / 回撤限制和退出状态机)
        """
        self.config = config or PortfolioConfig()
        self.risk_engine = risk_engine or RiskEngine()
        self.exits = self.risk_engine.exits

        self._positions: dict[str, list[Position]] = {}
        self._index: dict[str, Position] = {}
        self._prices: dict[str, deque[float]] = {}
        self._correlations: dict[str, CorrelationEntry] = {}

    # ========== Market Data ==========

    def record_tick(self, tick: TickEvent) -> None:
        """记录 tick 价格 (相关性 / 波动率) 并转发给 RiskEngine"""
        history = self._prices.setdefault(
            tick.symbol, deque(maxlen=self.config.price_history_limit)
        )
        history.append(tick.price)
        self.risk_engine.record_tick(tick)

    def get_returns(self, symbol: str, window: int | None = None) -> list[float]:
        """标的最近的简单收益率序列"""
        prices = list(self._prices.get(symbol, ()))
        window = window or self.config.correlation_window
        return calc_simple_returns(prices[-(window + 1) :])

    # ========== Positions ==========

    def add_position(
        self,
        symbol: str,
        stake: float,
        prediction: int | None = None,
        timestamp: datetime | None = None,
        entry_price: float | None = None,
        trailing_distance: float | None = None,
        stop_type: StopType | str = StopType.FIXED,
        partial_close: bool = False,
        scale_out: bool = False,
    ) -> Position:
        """新增持仓，并按需创建退出状态

        Args:
            symbol: 标的
            stake: 下注金额 (> 0)
            prediction: 预测数字
            timestamp: 开仓时间
            entry_price: 开仓价 (追踪止损需要)
            trailing_distance: 追踪止损距离，提供时初始化追踪止损
            stop_type: 追踪止损类型
            partial_close: 是否设置默认分批止盈阶梯
            scale_out: 是否创建默认分批止盈计划

        Returns:
            新建的 Position

        Raises:
            ValueError: stake ≤ 0，或设置追踪止损但缺少 entry_price
        """
        if trailing_distance is not None and entry_price is None:
            raise ValueError("entry_price is required for a trailing stop")

        position = Position(
            id=uuid.uuid4().hex[:12],
            symbol=symbol,
            stake=stake,
            prediction=prediction,
            timestamp=timestamp or datetime.now(),
            entry_price=entry_price,
        )
        self._positions.setdefault(symbol, []).append(position)
        self._index[position.id] = position

        if trailing_distance is not None:
            self.exits.initialize_trailing_stop(position.id, entry_price, trailing_distance, stop_type)
        if partial_close:
            self.exits.set_partial_close_rules(position.id, stake=stake)
        if scale_out:
            self.exits.create_scale_out_strategy(position.id)

        logger.debug(f"Position {position.id} opened: {symbol} stake={stake:.2f}")
        return position

    def get_position(self, position_id: str) -> Position | None:
        return self._index.get(position_id)

    def update_position(
        self,
        symbol: str,
        position_id: str,
        result: TradeResult | str,
        profit: float,
    ) -> bool:
        """平仓 (open → closed 只发生一次)，并销毁其退出状态

        Returns:
            成功返回 True；持仓不存在或已平仓返回 False
        """
        position = self._index.get(position_id)
        if position is None or position.symbol != symbol:
            return False
        if not position.is_open:
            logger.warning(f"Position {position_id} is already closed")
            return False

        position.status = PositionStatus.CLOSED
        position.result = TradeResult(result)
        position.profit = profit
        position.closed_at = datetime.now()
        self.exits.release(position_id)
        return True

    def apply_outcome(self, outcome: TradeOutcome) -> bool:
        """应用交易结果事件: 平仓并更新 RiskEngine

        outcome.position_id 为空时只更新 RiskEngine。
        """
        if outcome.position_id is not None:
            if not self.update_position(
                outcome.symbol, outcome.position_id, outcome.result, outcome.profit
            ):
                return False
            if outcome.timestamp is not None:
                self._index[outcome.position_id].closed_at = outcome.timestamp
        self.risk_engine.record_outcome(outcome)
        return True

    def apply_partial_close(
        self,
        position_id: str,
        close_amount: float,
        profit: float = 0.0,
        level_index: int | None = None,
    ) -> bool:
        """部分平仓: 减少 current_stake，累计 closed_amount"""
        position = self._index.get(position_id)
        if position is None or not position.is_open:
            return False
        if not 0 < close_amount <= position.current_stake:
            logger.warning(
                f"Invalid partial close {close_amount:.2f} for {position_id} "
                f"(current stake {position.current_stake:.2f})"
            )
            return False

        position.current_stake -= close_amount
        position.closed_amount += close_amount
        self.exits.record_partial_close(
            position_id,
            close_amount,
            position.current_stake,
            level_index=level_index,
            profit=profit,
        )
        return True

    def get_open_positions(self, symbol: str | None = None) -> list[Position]:
        if symbol is not None:
            return [p for p in self._positions.get(symbol, []) if p.is_open]
        return [p for positions in self._positions.values() for p in positions if p.is_open]

    def get_all_trades(self) -> list[Position]:
        """全部已平仓持仓 (按开仓时间排序)"""
        closed = [p for positions in self._positions.values() for p in positions if not p.is_open]
        return sorted(closed, key=lambda p: p.timestamp)

    def get_allocation(self) -> AllocationSnapshot:
        """每个标的占未平仓总金额的比例"""
        exposures: dict[str, float] = {}
        for symbol, positions in self._positions.items():
            amount = sum(p.current_stake for p in positions if p.is_open)
            if amount > 0:
                exposures[symbol] = amount

        total = sum(exposures.values())
        allocation = {s: amount / total for s, amount in exposures.items()} if total > 0 else {}
        return AllocationSnapshot(allocation=allocation, total_allocated=total, exposures=exposures)

    # ========== Correlation ==========

    def calculate_correlation(
        self,
        symbol_a: str,
        symbol_b: str,
        window: int | None = None,
    ) -> float:
        """两个标的收益率的样本相关系数，并写入缓存

        样本不足 (min_correlation_samples) 或零方差时返回 0。
        """
        returns_a = self.get_returns(symbol_a, window)
        returns_b = self.get_returns(symbol_b, window)
        coefficient = calc_correlation(
            returns_a, returns_b, min_samples=self.config.min_correlation_samples
        )
        key = CorrelationEntry.make_pair_key(symbol_a, symbol_b)
        self._correlations[key] = CorrelationEntry(
            pair_key=key,
            coefficient=coefficient,
            samples=min(len(returns_a), len(returns_b)),
        )
        return coefficient

    def update_correlation_matrix(self, symbols: list[str]) -> dict[str, float]:
        """重新计算所有标的对的相关系数"""
        return {
            CorrelationEntry.make_pair_key(a, b): self.calculate_correlation(a, b)
            for a, b in combinations(symbols, 2)
        }

    def get_correlation(self, symbol_a: str, symbol_b: str) -> float:
        """读取缓存的相关系数 (用于报告)，没有缓存时按需计算

        闸门与风险评估使用 calculate_correlation 以反映最新行情。
        """
        if symbol_a == symbol_b:
            return 1.0
        entry = self._correlations.get(CorrelationEntry.make_pair_key(symbol_a, symbol_b))
        if entry is None:
            return self.calculate_correlation(symbol_a, symbol_b)
        return entry.coefficient

    # ========== Diversification Gate ==========

    def can_add_position(
        self,
        symbol: str,
        stake: float,
        max_symbol_allocation: float | None = None,
        max_correlation: float | None = None,
    ) -> AdmissionDecision:
        """分散化闸门

        检查顺序:
        1. RiskEngine 熔断
        2. 新增后的单标的占比 ≤ 上限 (空账本跳过；回撤较大时上限收紧)
        3. 与任一持仓标的的 |相关系数| ≤ 上限

        Returns:
            AdmissionDecision，拒绝时 reason 说明上限或相关标的
        """
        if stake <= 0:
            return AdmissionDecision(False, f"Stake must be positive, got {stake}")

        stop = self.risk_engine.should_stop_trading()
        if stop.stop:
            return AdmissionDecision(False, f"Trading halted: {stop.reason.value}")

        ceiling = self.config.max_symbol_allocation if max_symbol_allocation is None else max_symbol_allocation
        correlation_ceiling = self.config.max_correlation if max_correlation is None else max_correlation

        # 回撤超过上限的一定比例时收紧单标的上限
        drawdown = self.risk_engine.stats.current_drawdown
        if drawdown >= self.risk_engine.config.max_drawdown * self.config.drawdown_tightening_ratio:
            ceiling *= self.config.tightened_allocation_factor

        snapshot = self.get_allocation()
        projected = None
        if snapshot.total_allocated > 0:
            current = snapshot.exposures.get(symbol, 0.0)
            projected = (current + stake) / (snapshot.total_allocated + stake)
            if projected > ceiling:
                return AdmissionDecision(
                    False,
                    f"Symbol allocation would exceed {ceiling * 100:.0f}% limit",
                    projected_allocation=projected,
                    allocation_ceiling=ceiling,
                )

        for existing in snapshot.allocation:
            if existing == symbol:
                continue
            correlation = self.calculate_correlation(symbol, existing)
            if abs(correlation) > correlation_ceiling:
                return AdmissionDecision(
                    False,
                    f"High correlation ({correlation:.2f}) with {existing}",
                    projected_allocation=projected,
                    allocation_ceiling=ceiling,
                    correlated_symbol=existing,
                    correlation=correlation,
                )

        return AdmissionDecision(True, projected_allocation=projected, allocation_ceiling=ceiling)

    # ========== Risk Assessment ==========

    def _covariance(self, symbols: list[str]) -> np.ndarray | None:
        """持仓标的收益率协方差矩阵 (按最近值对齐)"""
        series = [self.get_returns(s) for s in symbols]
        n = min(len(r) for r in series)
        if n < self.config.min_correlation_samples:
            return None
        matrix = np.array([r[-n:] for r in series], dtype=float)
        return np.atleast_2d(np.cov(matrix, ddof=1))

    def assess_portfolio_risk(self) -> PortfolioRiskAssessment:
        """组合风险评估

        评分: 有效下注数 < 3 (+1，< 1.5 时 +2)，最大占比 > 40% (+2)，
        平均相关性 > 0.6 (+2)，VaR > 上限 (+1)。
        """
        snapshot = self.get_allocation()
        if not snapshot.allocation:
            return PortfolioRiskAssessment(risk_level=RiskLevel.NONE)

        symbols = sorted(snapshot.allocation)
        weights = [snapshot.allocation[s] for s in symbols]
        issues: list[str] = []
        score = 0

        effective_bets = calc_effective_bets(weights)
        low_diversification = effective_bets < self.config.min_effective_bets
        if low_diversification:
            issues.append(
                f"Low diversification: effective number of bets {effective_bets:.2f} "
                f"< {self.config.min_effective_bets:.0f}"
            )
            score += 2 if effective_bets < 1.5 else 1

        max_symbol = max(symbols, key=lambda s: snapshot.allocation[s])
        max_allocation = snapshot.allocation[max_symbol]
        concentrated = max_allocation > self.config.max_single_allocation
        if concentrated:
            issues.append(f"Concentration: {max_symbol} holds {max_allocation:.0%} of open stake")
            score += 2

        pair_correlations = [
            abs(self.calculate_correlation(a, b)) for a, b in combinations(symbols, 2)
        ]
        avg_correlation = float(np.mean(pair_correlations)) if pair_correlations else 0.0
        correlated = avg_correlation > self.config.max_avg_correlation
        if correlated:
            issues.append(f"High average correlation ({avg_correlation:.2f})")
            score += 2

        covariance = self._covariance(symbols)
        volatility = calc_portfolio_volatility(weights, covariance) if covariance is not None else 0.0
        value_at_risk = volatility * self.config.var_z_score
        volatile = value_at_risk > self.config.max_portfolio_var
        if volatile:
            issues.append(f"Portfolio VaR {value_at_risk:.2%} exceeds {self.config.max_portfolio_var:.0%}")
            score += 1

        level = classify_risk_score(score)
        return PortfolioRiskAssessment(
            risk_level=level,
            risk_score=score,
            effective_bets=effective_bets,
            concentration_hhi=calc_concentration_hhi(weights) or 0.0,
            max_allocation=max_allocation,
            max_allocation_symbol=max_symbol,
            avg_correlation=avg_correlation,
            portfolio_volatility=volatility,
            value_at_risk=value_at_risk,
            value_at_risk_amount=value_at_risk * snapshot.total_allocated,
            issues=issues,
            recommendations=build_recommendations(
                level, low_diversification, concentrated, correlated, volatile
            ),
        )

    def stress_test_portfolio(
        self,
        scenarios: list[StressScenario] | None = None,
    ) -> list[StressTestResult]:
        """按场景对持仓施加比例冲击，报告 VaR 是否突破场景上限"""
        snapshot = self.get_allocation()
        symbols = sorted(snapshot.allocation)
        covariance = self._covariance(symbols) if symbols else None
        base_volatility = (
            calc_portfolio_volatility([snapshot.allocation[s] for s in symbols], covariance)
            if covariance is not None
            else 0.0
        )

        results = []
        for scenario in scenarios or default_stress_scenarios():
            result = run_stress_scenario(
                scenario,
                snapshot.exposures,
                base_volatility,
                self.config.stress_confidence,
                self.config.stress_var_ceiling,
            )
            if result.breach:
                logger.warning(
                    f"Stress scenario {result.scenario} breaches VaR ceiling: "
                    f"{result.stressed_var:.2%} > {result.var_ceiling:.2%}"
                )
            results.append(result)
        return results

    # ========== Allocation Optimization ==========

    def optimize_allocation(self, symbols: list[str]) -> dict[str, float]:
        """风险平价分配: 权重与收益率波动率成反比"""
        if not symbols:
            return {}
        if len(symbols) == 1:
            return {symbols[0]: 1.0}

        volatilities = {}
        for symbol in symbols:
            returns = self.get_returns(symbol)
            volatilities[symbol] = float(np.std(returns, ddof=1)) if len(returns) > 1 else 0.0
        return calc_inverse_volatility_weights(volatilities)

    def rebalance_portfolio(self, target_allocation: dict[str, float]) -> dict[str, dict[str, Any]]:
        """当前分配与目标分配的差异"""
        current_allocation = self.get_allocation().allocation
        adjustments = {}
        for symbol, target in target_allocation.items():
            current = current_allocation.get(symbol, 0.0)
            difference = target - current
            if difference > 0:
                action = "increase"
            elif difference < 0:
                action = "decrease"
            else:
                action = "hold"
            adjustments[symbol] = {
                "current": current,
                "target": target,
                "difference": difference,
                "action": action,
            }
        return adjustments

    # ========== Reporting ==========

    def calculate_performance(self) -> dict[str, Any] | None:
        """已平仓交易的绩效统计，没有交易返回 None"""
        trades = self.get_all_trades()
        if not trades:
            return None

        profits = [p.profit for p in trades]
        returns = [p.profit / p.stake for p in trades]
        equity = [0.0]
        for profit in profits:
            equity.append(equity[-1] + profit)
        # 以初始余额为基准计算回撤
        base = self.risk_engine.config.initial_balance
        return {
            "total_trades": len(trades),
            "total_profit": sum(profits),
            "win_rate": calc_win_rate(profits) or 0.0,
            "avg_win": calc_average_win(profits) or 0.0,
            "avg_loss": calc_average_loss(profits) or 0.0,
            "profit_factor": calc_profit_factor(profits),
            "sharpe_ratio": calc_sharpe_ratio(returns),
            "max_drawdown": calc_max_drawdown([base + value for value in equity]),
            "winning_trades": sum(1 for p in profits if p > 0),
            "losing_trades": sum(1 for p in profits if p < 0),
        }

    def generate_report(self) -> dict[str, Any]:
        """组合报告"""
        open_positions = self.get_open_positions()
        return {
            "timestamp": datetime.now().isoformat(),
            "summary": {
                "num_symbols": len(self._positions),
                "num_open_positions": len(open_positions),
                "total_closed": len(self.get_all_trades()),
            },
            "allocation": self.get_allocation().to_dict(),
            "performance": self.calculate_performance(),
            "positions": [p.to_dict() for p in open_positions],
            "correlations": {key: entry.coefficient for key, entry in self._correlations.items()},
            "risk": self.assess_portfolio_risk().to_dict(),
        }

    def get_status(self) -> dict[str, Any]:
        return {
            "symbols": sorted(self._positions),
            "allocation": self.get_allocation().to_dict(),
            "open_positions": len(self.get_open_positions()),
            "total_positions": sum(len(p) for p in self._positions.values()),
        }

    def clear_positions(self) -> None:
        """清空全部持仓及其退出状态"""
        for position_id in self._index:
            self.exits.release(position_id)
        self._positions.clear()
        self._index.clear()
        logger.info("Portfolio positions cleared")
