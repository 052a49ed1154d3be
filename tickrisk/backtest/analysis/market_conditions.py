"""
Market Conditions - 回测市场环境与真实性评估

- analyze_market_conditions: 回放区间的数字波动率、流动性 (tick 频率) 和趋势
- assess_backtest_realism: 根据启用的摩擦模型给回测打分 (0-1)
"""

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from tickrisk.backtest.config.backtest_config import BacktestOptions, SlippageModelType
from tickrisk.engine.models.enums import MarketRegime
from tickrisk.engine.models.portfolio import TickEvent
from tickrisk.engine.volatility.digit import (
    DEFAULT_DIGIT_VOLATILITY,
    calc_digit_volatility,
    calc_trend_strength,
    detect_market_regime,
)

# 真实性因子权重 (总和为 1)
REALISM_WEIGHTS = {
    "transaction_costs": 0.30,
    "realistic_slippage": 0.25,
    "prediction_latency": 0.20,
    "market_hours_filter": 0.10,
    "sufficient_history": 0.15,
}
SUFFICIENT_HISTORY_TICKS = 1000
HIGH_LIQUIDITY_TICKS_PER_MINUTE = 20.0
LOW_LIQUIDITY_TICKS_PER_MINUTE = 5.0


@dataclass
class MarketConditions:
    """回放区间的市场环境"""

    volatility: float = DEFAULT_DIGIT_VOLATILITY  # 数字波动率
    liquidity: str = "unknown"  # high / medium / low / unknown
    ticks_per_minute: float = 0.0
    trend: str = MarketRegime.UNKNOWN.value
    trend_strength: float = 0.0  # R²
    price_change_pct: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "volatility": self.volatility,
            "liquidity": self.liquidity,
            "ticks_per_minute": self.ticks_per_minute,
            "trend": self.trend,
            "trend_strength": self.trend_strength,
            "price_change_pct": self.price_change_pct,
        }


@dataclass
class BacktestRealism:
    """回测真实性评分"""

    score: float = 0.0
    factors: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "factors": list(self.factors),
            "missing": list(self.missing),
        }


def _classify_liquidity(ticks_per_minute: float) -> str:
    if ticks_per_minute <= 0:
        return "unknown"
    if ticks_per_minute >= HIGH_LIQUIDITY_TICKS_PER_MINUTE:
        return "high"
    if ticks_per_minute >= LOW_LIQUIDITY_TICKS_PER_MINUTE:
        return "medium"
    return "low"


def analyze_market_conditions(ticks: list[TickEvent]) -> MarketConditions:
    """分析回放区间的市场环境

    Args:
        ticks: 按时间排序的 tick

    Returns:
        MarketConditions；tick 不足时波动率取默认中性值
    """
    if not ticks:
        return MarketConditions()

    digits = [t.last_digit for t in ticks]
    prices = [t.price for t in ticks]
    volatility = calc_digit_volatility(digits, lookback=len(digits))

    span_seconds = (ticks[-1].timestamp - ticks[0].timestamp).total_seconds()
    ticks_per_minute = (len(ticks) - 1) / (span_seconds / 60) if span_seconds > 0 else 0.0

    regime = detect_market_regime(prices, window=len(prices))
    strength = calc_trend_strength(prices, window=len(prices)) or 0.0
    change = (prices[-1] - prices[0]) / prices[0] if prices[0] else 0.0

    return MarketConditions(
        volatility=volatility,
        liquidity=_classify_liquidity(ticks_per_minute),
        ticks_per_minute=ticks_per_minute,
        trend=regime.value,
        trend_strength=float(np.clip(strength, 0.0, 1.0)),
        price_change_pct=change,
    )


def assess_backtest_realism(options: BacktestOptions, data_points: int) -> BacktestRealism:
    """根据启用的摩擦模型给回测打分

    Args:
        options: 回测配置
        data_points: 回放的 tick 数

    Returns:
        BacktestRealism，score = 已启用因子的权重之和
    """
    enabled = {
        "transaction_costs": options.include_transaction_costs,
        "realistic_slippage": options.include_transaction_costs
        and options.slippage_model in (SlippageModelType.REALISTIC, SlippageModelType.AGGRESSIVE),
        "prediction_latency": options.realistic_latency,
        "market_hours_filter": options.market_hours_only,
        "sufficient_history": data_points >= SUFFICIENT_HISTORY_TICKS,
    }
    factors = [name for name, on in enabled.items() if on]
    missing = [name for name, on in enabled.items() if not on]
    score = sum(REALISM_WEIGHTS[name] for name in factors)
    return BacktestRealism(score=round(score, 4), factors=factors, missing=missing)
