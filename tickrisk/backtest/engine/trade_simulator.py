"""
Trade Simulator - 交易成本模拟器

模拟回测中的交易成本，包括:
- 点差成本 (按 stake 比例)
- 固定佣金 (每笔)
- 滑点模型 (none / fixed / realistic / aggressive)
- 延迟惩罚 (结算推迟时的逆向选择成本)

所有成本均为非负金额，从毛利润中扣除。

Usage:
    simulator = TradeSimulator.from_options(BacktestOptions())
    costs = simulator.calculate_costs(stake=10.0, balance=1000.0)
    print(f"fees={costs.fees:.4f}, slippage={costs.slippage:.4f}")
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from tickrisk.backtest.config.backtest_config import BacktestOptions, SlippageModelType
from tickrisk.engine.models.enums import TradeResult

logger = logging.getLogger(__name__)


@dataclass
class BacktestTrade:
    """回测交易记录

    gross_profit = payout − stake；net_profit = gross_profit − fees − slippage。
    latency 惩罚计入 slippage。
    """

    trade_id: str
    symbol: str
    strategy_id: str
    prediction: int
    actual_digit: int
    probability: float  # 预测数字在历史窗口中的经验频率
    confidence: float  # oracle 给出的概率
    stake: float
    entry_time: datetime
    exit_time: datetime
    result: TradeResult
    payout: float
    gross_profit: float
    fees: float
    slippage: float
    net_profit: float
    holding_time: float  # 秒
    balance_after: float

    @property
    def won(self) -> bool:
        return self.result == TradeResult.WON

    @property
    def trade_return(self) -> float:
        """单笔收益率 net_profit / stake"""
        return self.net_profit / self.stake if self.stake > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "trade_id": self.trade_id,
            "symbol": self.symbol,
            "strategy_id": self.strategy_id,
            "prediction": self.prediction,
            "actual_digit": self.actual_digit,
            "probability": self.probability,
            "confidence": self.confidence,
            "stake": self.stake,
            "entry_time": self.entry_time.isoformat(),
            "exit_time": self.exit_time.isoformat(),
            "result": self.result.value,
            "payout": self.payout,
            "gross_profit": self.gross_profit,
            "fees": self.fees,
            "slippage": self.slippage,
            "net_profit": self.net_profit,
            "holding_time": self.holding_time,
            "balance_after": self.balance_after,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BacktestTrade":
        values = dict(data)
        values["entry_time"] = datetime.fromisoformat(values["entry_time"])
        values["exit_time"] = datetime.fromisoformat(values["exit_time"])
        values["result"] = TradeResult(values["result"])
        return cls(**values)


@dataclass
class SlippageModel:
    """滑点模型

    - NONE: 无滑点
    - FIXED: stake × base_pct
    - REALISTIC: stake × (base_pct + impact_factor × stake/balance)，仓位越大冲击越大
    - AGGRESSIVE: REALISTIC × aggressive_multiplier
    """

    model: SlippageModelType = SlippageModelType.REALISTIC
    base_pct: float = 0.001  # 0.1%
    impact_factor: float = 0.05
    aggressive_multiplier: float = 3.0

    def calculate(self, stake: float, balance: float) -> float:
        """计算滑点金额

        Args:
            stake: 下注金额
            balance: 下注前余额

        Returns:
            滑点金额 (≥ 0)
        """
        if stake <= 0 or self.model == SlippageModelType.NONE:
            return 0.0

        if self.model == SlippageModelType.FIXED:
            return stake * self.base_pct

        # 市场冲击随仓位占余额比例增大
        participation = stake / balance if balance > 0 else 1.0
        slippage = stake * (self.base_pct + self.impact_factor * participation)
        if self.model == SlippageModelType.AGGRESSIVE:
            slippage *= self.aggressive_multiplier
        return slippage


@dataclass
class CommissionModel:
    """费用模型: 点差成本 + 每笔固定佣金"""

    spread_pct: float = 0.005  # 0.5% of stake
    per_trade: float = 0.0

    def calculate(self, stake: float) -> float:
        if stake <= 0:
            return 0.0
        return stake * self.spread_pct + self.per_trade


@dataclass
class LatencyModel:
    """延迟模型

    启用时结算推迟 ticks 个 tick，并按 stake 收取逆向选择惩罚。
    """

    enabled: bool = False
    ticks: int = 1
    penalty_pct: float = 0.01

    @property
    def delay(self) -> int:
        return self.ticks if self.enabled else 0

    def calculate(self, stake: float) -> float:
        if not self.enabled or stake <= 0:
            return 0.0
        return stake * self.penalty_pct


@dataclass
class TradeCosts:
    """单笔交易成本拆分"""

    fees: float = 0.0
    slippage: float = 0.0
    latency_penalty: float = 0.0

    @property
    def total(self) -> float:
        return self.fees + self.slippage + self.latency_penalty


class TradeSimulator:
    """交易成本模拟器

    组合 CommissionModel、SlippageModel 和 LatencyModel。
    include_transaction_costs=False 时费用和滑点均为 0，延迟惩罚仍按延迟模型计算。
    """

    def __init__(
        self,
        commission_model: CommissionModel | None = None,
        slippage_model: SlippageModel | None = None,
        latency_model: LatencyModel | None = None,
        include_transaction_costs: bool = True,
    ) -> None:
        self.commission_model = commission_model or CommissionModel()
        self.slippage_model = slippage_model or SlippageModel()
        self.latency_model = latency_model or LatencyModel()
        self.include_transaction_costs = include_transaction_costs

    @classmethod
    def from_options(cls, options: BacktestOptions) -> "TradeSimulator":
        """按回测配置创建"""
        return cls(
            commission_model=CommissionModel(
                spread_pct=options.spread_pct,
                per_trade=options.commission_per_trade,
            ),
            slippage_model=SlippageModel(
                model=options.slippage_model,
                base_pct=options.base_slippage_pct,
                impact_factor=options.market_impact_factor,
                aggressive_multiplier=options.aggressive_multiplier,
            ),
            latency_model=LatencyModel(
                enabled=options.realistic_latency,
                ticks=options.latency_ticks,
                penalty_pct=options.latency_penalty_pct,
            ),
            include_transaction_costs=options.include_transaction_costs,
        )

    @property
    def settlement_delay(self) -> int:
        """结算相对决策 tick 的额外延迟 (tick 数)"""
        return self.latency_model.delay

    def calculate_costs(self, stake: float, balance: float) -> TradeCosts:
        """计算单笔交易成本

        Args:
            stake: 下注金额
            balance: 下注前余额

        Returns:
            TradeCosts
        """
        if self.include_transaction_costs:
            fees = self.commission_model.calculate(stake)
            slippage = self.slippage_model.calculate(stake, balance)
        else:
            fees = 0.0
            slippage = 0.0

        costs = TradeCosts(
            fees=fees,
            slippage=slippage,
            latency_penalty=self.latency_model.calculate(stake),
        )
        logger.debug(
            f"Costs for stake {stake:.2f}: fees={costs.fees:.4f}, "
            f"slippage={costs.slippage:.4f}, latency={costs.latency_penalty:.4f}"
        )
        return costs
