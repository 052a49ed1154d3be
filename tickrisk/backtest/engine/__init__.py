"""Backtest engine module - Strategy registry, cost model and simulator.

组件架构 (BacktestSimulator 直接访问所有组件):
- Strategy 层: StrategyRegistry (策略 id -> 预测 oracle)
- Trade 层: TradeSimulator (点差、佣金、滑点、延迟)
- Risk 层: 每次运行新建的 RiskEngine + PortfolioLedger
"""

from tickrisk.backtest.engine.errors import (
    BacktestAlreadyRunningError,
    BacktestError,
    InsufficientHistoricalDataError,
    UnknownStrategyError,
)
from tickrisk.backtest.engine.strategies import (
    CallableOracle,
    FrequencyOracle,
    PredictionOracle,
    StrategyRegistry,
    TimeSeriesOracle,
)
from tickrisk.backtest.engine.trade_simulator import (
    BacktestTrade,
    CommissionModel,
    LatencyModel,
    SlippageModel,
    TradeCosts,
    TradeSimulator,
)
from tickrisk.backtest.engine.simulator import (
    BacktestReport,
    BacktestSimulator,
    ComparisonReport,
    ResultStore,
)

__all__ = [
    # Errors
    "BacktestAlreadyRunningError",
    "BacktestError",
    "InsufficientHistoricalDataError",
    "UnknownStrategyError",
    # Strategies
    "CallableOracle",
    "FrequencyOracle",
    "PredictionOracle",
    "StrategyRegistry",
    "TimeSeriesOracle",
    # Trade Simulator
    "BacktestTrade",
    "CommissionModel",
    "LatencyModel",
    "SlippageModel",
    "TradeCosts",
    "TradeSimulator",
    # Simulator
    "BacktestReport",
    "BacktestSimulator",
    "ComparisonReport",
    "ResultStore",
]
