"""
Risk Engine - 风控引擎

单笔仓位计算、熔断检查与退出管理的统一入口。

职责:
1. Stake sizing: Kelly 变体 (classic / fractional / robust / dynamic)，
   统一乘以 half-Kelly 并限制在 [0.1%, 5%] of balance
2. Volatility sizing: 数字波动率分档 + tick ATR，取较小值，再按市场状态 ±10%
3. Circuit breakers: 最大回撤 → 单日亏损 → 连续亏损，按顺序检查
4. Exit management: 通过 self.exits (ExitManager) 提供追踪止损 / 分批止盈 / 分批建仓

PortfolioStats 只由 RiskEngine 写入。日期切换在每次交易结果事件时检查。

Usage:
    engine = RiskEngine(RiskConfig.load())
    engine.record_outcome(TradeOutcome("R_10", 10.0, TradeResult.LOST, -10.0))
    decision = engine.should_stop_trading()
    stake = engine.recommended_stake("R_10", 1000.0, StakeContext(win_rate=0.12, avg_win=8.0, avg_loss=1.0))
"""

import logging
import math
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from typing import Any

from tickrisk.business.config.risk_config import RiskConfig
from tickrisk.business.risk.daily_tracker import DailyLossTracker
from tickrisk.business.risk.exits import ExitManager
from tickrisk.engine.account.position_sizing import HALF_KELLY, calc_kelly_fraction, clamp_stake
from tickrisk.engine.models.enums import KellyVariant, MarketRegime, StopReason
from tickrisk.engine.models.errors import InvalidParameterError
from tickrisk.engine.models.portfolio import DailyStats, PortfolioStats, TickEvent, TradeOutcome
from tickrisk.engine.volatility.digit import (
    calc_digit_volatility,
    calc_tick_atr,
    detect_market_regime,
    get_regime_multiplier,
    get_volatility_multiplier,
)

logger = logging.getLogger(__name__)


@dataclass
class StopDecision:
    """熔断检查结果"""

    stop: bool
    reason: StopReason | None = None
    detail: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "stop": self.stop,
            "reason": self.reason.value if self.reason else None,
            "detail": self.detail,
        }


@dataclass
class StakeContext:
    """recommended_stake 的上下文

    win_rate 为 None 时不做 Kelly 计算，使用保守仓位 (1% of balance)。
    """

    win_rate: float | None = None
    avg_win: float | None = None
    avg_loss: float | None = None
    variant: KellyVariant | None = None
    fraction: float | None = None
    sample_size: int | None = None
    base_risk: float | None = None
    volatility: float | None = None


@dataclass
class PositionSizingRecommendation:
    """波动率 / ATR / 市场状态调整后的仓位建议"""

    symbol: str
    recommended_position_size: float
    volatility_adjusted: float
    atr_based: float
    volatility: float
    volatility_multiplier: float
    atr: float | None
    market_regime: MarketRegime
    regime_multiplier: float
    reasoning: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "recommended_position_size": self.recommended_position_size,
            "volatility_adjusted": self.volatility_adjusted,
            "atr_based": self.atr_based,
            "volatility": self.volatility,
            "volatility_multiplier": self.volatility_multiplier,
            "atr": self.atr,
            "market_regime": self.market_regime.value,
            "regime_multiplier": self.regime_multiplier,
            "reasoning": list(self.reasoning),
        }


@dataclass
class BalanceStressResult:
    """账户余额压力测试结果"""

    scenario: str
    initial_balance: float
    stressed_balance: float
    drawdown: float
    breach_limit: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "scenario": self.scenario,
            "initial_balance": self.initial_balance,
            "stressed_balance": self.stressed_balance,
            "drawdown": self.drawdown,
            "breach_limit": self.breach_limit,
        }


class RiskEngine:
    """风控引擎

    每个实例拥有独立的 PortfolioStats；回测每次运行都会新建一个实例。
    """

    def __init__(
        self,
        config: RiskConfig | None = None,
        clock: Callable[[], date] | None = None,
        exits: ExitManager | None = None,
    ) -> None:
        """初始化

        Args:
            config: 风控配置，默认 dataclass 默认值
            clock: 返回当前日期的函数，默认 date.today (回测中指向 tick 日期)
            exits: 退出状态管理器，默认新建
        """
        self.config = config or RiskConfig()
        self._clock = clock or date.today
        self._daily = DailyLossTracker(self._clock)
        self.exits = exits or ExitManager(self.config)

        self._stats = self._fresh_stats(self.config.initial_balance)
        self._digits: dict[str, deque[int]] = {}
        self._prices: dict[str, deque[float]] = {}
        self._recent_outcomes: deque[bool] = deque(maxlen=self.config.dynamic_window)
        self._returns: deque[float] = deque(maxlen=self.config.price_history_limit)

    def _fresh_stats(self, balance: float) -> PortfolioStats:
        return PortfolioStats(
            total_balance=balance,
            peak_balance=balance,
            last_reset_date=self._clock(),
        )

    @property
    def stats(self) -> PortfolioStats:
        """当前账户统计 (只读使用)"""
        return self._stats

    # ========== Event Intake ==========

    def record_tick(self, tick: TickEvent) -> None:
        """记录 tick，用于数字波动率、ATR 和市场状态"""
        limit = self.config.price_history_limit
        self._digits.setdefault(tick.symbol, deque(maxlen=limit)).append(tick.last_digit)
        self._prices.setdefault(tick.symbol, deque(maxlen=limit)).append(tick.price)

    def record_outcome(self, outcome: TradeOutcome) -> PortfolioStats:
        """记录已结算交易，更新 PortfolioStats

        Args:
            outcome: 交易结果事件

        Returns:
            更新后的 PortfolioStats
        """
        stats = self._stats

        # 每次交易事件检查日期切换
        if self._daily.check_rollover():
            stats.daily_loss = 0.0
            stats.last_reset_date = self._daily.current_date
        self._daily.record(outcome.profit)

        stats.total_balance += outcome.profit
        if stats.total_balance < 0:
            logger.error(
                f"Balance would go negative ({stats.total_balance:.2f}) after {outcome.symbol} trade; clamping to 0"
            )
            stats.total_balance = 0.0
        stats.peak_balance = max(stats.peak_balance, stats.total_balance)
        stats.current_drawdown = (
            (stats.peak_balance - stats.total_balance) / stats.peak_balance
            if stats.peak_balance > 0
            else 0.0
        )

        stats.total_trades += 1
        stats.total_profit += outcome.profit
        if outcome.won:
            stats.winning_trades += 1
            stats.consecutive_losses = 0
        else:
            stats.losing_trades += 1
            stats.consecutive_losses += 1
        if outcome.profit < 0:
            stats.daily_loss += abs(outcome.profit)

        self._recent_outcomes.append(outcome.won)
        if outcome.stake > 0:
            self._returns.append(outcome.profit / outcome.stake)

        logger.debug(
            f"Outcome {outcome.symbol} {outcome.result.value}: profit={outcome.profit:.2f}, "
            f"balance={stats.total_balance:.2f}, drawdown={stats.current_drawdown:.2%}"
        )
        return stats

    # ========== Circuit Breakers ==========

    def should_stop_trading(self) -> StopDecision:
        """按顺序检查熔断: max_drawdown → max_daily_loss → consecutive_losses

        Returns:
            StopDecision，第一个触发的原因
        """
        stats = self._stats
        if self._daily.check_rollover():
            stats.daily_loss = 0.0
            stats.last_reset_date = self._daily.current_date

        if stats.current_drawdown >= self.config.max_drawdown:
            detail = f"Max drawdown reached ({stats.current_drawdown:.2%})"
            logger.warning(f"Risk management: {detail}")
            return StopDecision(True, StopReason.MAX_DRAWDOWN, detail)

        today = self._daily.get_today()
        daily_ceiling = stats.total_balance * self.config.max_daily_loss
        if today.net_loss > daily_ceiling:
            detail = f"Max daily loss reached ({today.net_loss:.2f} > {daily_ceiling:.2f})"
            logger.warning(f"Risk management: {detail}")
            return StopDecision(True, StopReason.MAX_DAILY_LOSS, detail)

        if stats.consecutive_losses >= self.config.max_consecutive_losses:
            detail = f"Max consecutive losses reached ({stats.consecutive_losses})"
            logger.warning(f"Risk management: {detail}")
            return StopDecision(True, StopReason.CONSECUTIVE_LOSSES, detail)

        return StopDecision(False)

    # ========== Stake Sizing ==========

    def kelly_stake(
        self,
        win_rate: float,
        avg_win: float,
        avg_loss: float,
        balance: float,
        fraction: float | None = None,
        variant: KellyVariant | str | None = None,
        sample_size: int | None = None,
        recent_outcomes: list[bool] | None = None,
    ) -> float:
        """Kelly 仓位

        f = (b·p − q)/b，b = avg_win/avg_loss。所有变体再乘以 half-Kelly，
        结果限制在 [min_stake_pct, max_stake_pct] of balance。
        参数非法时返回 balance × fallback_stake_pct (1%)。

        Args:
            win_rate: 胜率 (0, 1)
            avg_win: 平均盈利 (正数)
            avg_loss: 平均亏损 (正数)
            balance: 当前余额
            fraction: fractional 变体系数，默认 config.kelly_fraction
            variant: Kelly 变体，默认 config.kelly_variant
            sample_size: robust 变体样本量，默认 config.robust_min_sample
            recent_outcomes: dynamic 变体的最近结果，默认引擎记录的结果

        Returns:
            建议下注金额
        """
        if balance <= 0:
            return 0.0

        variant = KellyVariant(variant or self.config.kelly_variant)
        try:
            f = calc_kelly_fraction(
                win_rate,
                avg_win,
                avg_loss,
                variant=variant,
                fraction=self.config.kelly_fraction if fraction is None else fraction,
                sample_size=sample_size or self.config.robust_min_sample,
                recent_outcomes=(
                    list(self._recent_outcomes) if recent_outcomes is None else recent_outcomes
                ),
            )
        except InvalidParameterError as e:
            logger.warning(f"Kelly sizing fallback to {self.config.fallback_stake_pct:.1%}: {e}")
            return balance * self.config.fallback_stake_pct

        stake = f * HALF_KELLY * balance
        return clamp_stake(
            stake, balance, self.config.min_stake_pct, self.config.max_stake_pct
        )

    def position_size(
        self,
        symbol: str,
        balance: float,
        base_risk: float | None = None,
        volatility: float | None = None,
    ) -> PositionSizingRecommendation:
        """波动率 / ATR / 市场状态调整后的仓位

        最终建议 = min(波动率仓位, ATR 仓位) × 市场状态系数 (趋势 1.1 / 震荡 0.9)

        Args:
            symbol: 标的
            balance: 当前余额
            base_risk: 基础风险比例，默认 config.base_risk
            volatility: 数字波动率；不提供时从已记录的 tick 计算

        Returns:
            PositionSizingRecommendation
        """
        base_risk = self.config.base_risk if base_risk is None else base_risk
        reasoning: list[str] = []
        digits = list(self._digits.get(symbol, ()))
        prices = list(self._prices.get(symbol, ()))

        if volatility is None:
            volatility = calc_digit_volatility(
                digits,
                lookback=self.config.volatility_lookback,
                min_samples=self.config.volatility_min_samples,
            )
            if len(digits) < self.config.volatility_min_samples:
                reasoning.append(f"Insufficient digit history ({len(digits)}), using moderate volatility")

        vol_multiplier = get_volatility_multiplier(volatility)
        vol_size = balance * base_risk * vol_multiplier
        reasoning.append(f"Volatility {volatility:.2f} -> multiplier {vol_multiplier:.1f}")

        atr = calc_tick_atr(prices, self.config.atr_period)
        last_price = prices[-1] if prices else 0.0
        if atr is not None and atr > 0 and last_price > 0:
            atr_multiplier = min(1.2, max(0.3, self.config.reference_atr_pct / (atr / last_price)))
            atr_size = balance * base_risk * atr_multiplier
            reasoning.append(f"ATR {atr:.5f} -> multiplier {atr_multiplier:.2f}")
        else:
            atr_size = vol_size
            reasoning.append("ATR unavailable, using volatility-based size")

        regime = detect_market_regime(
            prices,
            window=self.config.regime_window,
            trend_threshold=self.config.trend_threshold,
            min_samples=self.config.volatility_min_samples,
        )
        regime_multiplier = get_regime_multiplier(regime)
        if regime != MarketRegime.UNKNOWN:
            reasoning.append(f"{regime.value.capitalize()} market -> x{regime_multiplier:.1f}")

        recommended = min(vol_size, atr_size) * regime_multiplier
        return PositionSizingRecommendation(
            symbol=symbol,
            recommended_position_size=max(0.0, min(recommended, balance)),
            volatility_adjusted=vol_size,
            atr_based=atr_size,
            volatility=volatility,
            volatility_multiplier=vol_multiplier,
            atr=atr,
            market_regime=regime,
            regime_multiplier=regime_multiplier,
            reasoning=reasoning,
        )

    def recommended_stake(
        self,
        symbol: str,
        balance: float,
        context: StakeContext | None = None,
    ) -> float:
        """对外仓位查询接口

        熔断触发时返回 0；否则取 Kelly 仓位与波动率仓位的较小值，且不超过余额。
        """
        if balance <= 0 or self.should_stop_trading().stop:
            return 0.0

        context = context or StakeContext()
        if context.win_rate is None:
            kelly = balance * self.config.fallback_stake_pct
        else:
            kelly = self.kelly_stake(
                context.win_rate,
                context.avg_win,
                context.avg_loss,
                balance,
                fraction=context.fraction,
                variant=context.variant,
                sample_size=context.sample_size,
            )
        sizing = self.position_size(symbol, balance, context.base_risk, context.volatility)
        return max(0.0, min(kelly, sizing.recommended_position_size, balance))

    def stop_loss_level(self, balance: float, volatility: float, atr: float | None = None) -> float:
        """动态止损金额

        5% of balance × clip(volatility / 0.5, 0.5, 2.0)，提供 ATR 时不超过 2 × ATR。
        """
        base = balance * self.config.stop_loss_base_pct
        multiplier = max(0.5, min(2.0, volatility / 0.5))
        if atr:
            return min(base * multiplier, atr * 2)
        return base * multiplier

    def var_position_size(
        self,
        returns: list[float] | None = None,
        confidence: float = 0.95,
    ) -> float:
        """VaR 仓位: 在置信水平下最多亏损 var_risk_pct of balance

        Args:
            returns: 历史单笔收益率，默认引擎记录的收益率
            confidence: 置信水平

        Returns:
            仓位金额；少于 10 个样本返回 0
        """
        history = list(self._returns) if returns is None else list(returns)
        if len(history) < 10:
            return 0.0

        ordered = sorted(history)
        var_return = ordered[math.floor((1 - confidence) * len(ordered))]
        balance = self._stats.total_balance
        if var_return >= 0:
            # 尾部没有亏损，按最大仓位
            return balance * self.config.max_stake_pct
        size = balance * self.config.var_risk_pct / abs(var_return)
        return min(size, balance)

    # ========== Stress Test / Report ==========

    def stress_test_balance(self, scenarios: list[dict[str, Any]]) -> list[BalanceStressResult]:
        """对账户余额依次施加冲击

        Args:
            scenarios: [{"name": str, "shocks": [float, ...]}]，冲击按顺序复合

        Returns:
            每个场景的结果，drawdown 超过 max_drawdown 时 breach_limit=True
        """
        results = []
        stats = self._stats
        for scenario in scenarios:
            stressed = stats.total_balance
            for shock in scenario.get("shocks", []):
                stressed *= 1 + shock
            drawdown = (stats.peak_balance - stressed) / stats.peak_balance if stats.peak_balance > 0 else 0.0
            results.append(
                BalanceStressResult(
                    scenario=scenario.get("name", "unnamed"),
                    initial_balance=stats.total_balance,
                    stressed_balance=stressed,
                    drawdown=drawdown,
                    breach_limit=drawdown > self.config.max_drawdown,
                )
            )
        return results

    def get_daily_stats(self) -> DailyStats:
        return self._daily.get_today()

    def generate_risk_report(self) -> dict[str, Any]:
        """风控报告"""
        daily = self._daily.get_today()
        return {
            "timestamp": datetime.now().isoformat(),
            "portfolio": self._stats.to_dict(),
            "daily": {
                "date": daily.date.isoformat(),
                "profit": daily.profit,
                "trades": daily.trades,
                "losses": daily.losses,
                "loss_rate": daily.losses / daily.trades if daily.trades > 0 else 0.0,
                "net_loss": daily.net_loss,
                "net_loss_limit": self._stats.total_balance * self.config.max_daily_loss,
            },
            "limits": {
                "max_drawdown": self.config.max_drawdown,
                "max_daily_loss": self.config.max_daily_loss,
                "max_consecutive_losses": self.config.max_consecutive_losses,
            },
            "exits": self.exits.get_status(),
            "alerts": self.should_stop_trading().to_dict(),
        }

    # ========== Maintenance ==========

    def reset_metrics(self, initial_balance: float | None = None) -> None:
        """重置账户统计 (谨慎使用)"""
        balance = self.config.initial_balance if initial_balance is None else initial_balance
        if balance <= 0:
            raise ValueError(f"initial_balance must be positive, got {balance}")
        self._stats = self._fresh_stats(balance)
        self._daily.reset()
        self._recent_outcomes.clear()
        self._returns.clear()
        logger.info(f"Risk metrics reset (balance={balance:.2f})")

    def update_parameters(self, **params: Any) -> RiskConfig:
        """更新风控参数 (任意 RiskConfig 字段)

        Raises:
            ValueError: 未知字段或新配置验证失败 (原配置保持不变)
        """
        valid = {f.name for f in fields(RiskConfig)}
        unknown = set(params) - valid
        if unknown:
            raise ValueError(f"Unknown risk parameters: {sorted(unknown)}")

        self.config = replace(self.config, **params)
        self.exits.config = self.config
        logger.info(f"Risk parameters updated: {params}")
        return self.config
