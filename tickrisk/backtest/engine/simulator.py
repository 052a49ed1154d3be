"""
Backtest Simulator - 回测模拟器

按时间顺序回放历史 tick，把预测 oracle、RiskEngine 和 PortfolioLedger 串起来，
模拟交易成本后汇总为绩效报告。

每个决策点 (预热之后的每个 tick) 的流程:
1. oracle 预测下一个 tick 的数字
2. 概率闸门: 预测数字在历史窗口中的经验频率 ≥ min_probability
3. 熔断检查 (RiskEngine.should_stop_trading)
4. 仓位: min(Kelly ∧ 波动率仓位, balance × risk_per_trade)，不低于 min_stake，不超过余额
5. 分散化闸门 (PortfolioLedger.can_add_position)
6. 在 tick i + 1 + latency 结算，扣除费用 / 滑点 / 延迟惩罚
7. 交易结果写入 PortfolioLedger 和 RiskEngine

并发: 每个模拟器同时只能运行一个回测 (非阻塞锁)，第二个调用立即抛出
BacktestAlreadyRunningError。滚动验证和策略比较在整个过程中持有锁。
每次运行都新建独立的 RiskEngine 和 PortfolioLedger，日期切换由 tick 时间驱动。

Usage:
    simulator = BacktestSimulator(tick_source=InMemoryTickSource(ticks))
    report = simulator.run_backtest("frequency", "R_10", BacktestOptions(max_trades=50))
    print(report.performance.win_rate)
"""

import json
import logging
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from pathlib import Path
from typing import Any

from tickrisk.backtest.analysis.market_conditions import (
    analyze_market_conditions,
    assess_backtest_realism,
)
from tickrisk.backtest.analysis.metrics import PerformanceReport, compute_performance
from tickrisk.backtest.config.backtest_config import BacktestOptions, WalkForwardOptions
from tickrisk.backtest.data.tick_history import TickSource, filter_ticks
from tickrisk.backtest.engine.errors import (
    BacktestAlreadyRunningError,
    BacktestError,
    InsufficientHistoricalDataError,
)
from tickrisk.backtest.engine.strategies import PredictionOracle, StrategyRegistry
from tickrisk.backtest.engine.trade_simulator import BacktestTrade, TradeCosts, TradeSimulator
from tickrisk.backtest.optimization.comparison import compare_performance, rank_strategies
from tickrisk.backtest.optimization.walk_forward import (
    WalkForwardResult,
    WalkForwardSlice,
    assess_robustness,
    average_performance,
    build_windows,
)
from tickrisk.business.config.portfolio_config import PortfolioConfig
from tickrisk.business.config.risk_config import RiskConfig
from tickrisk.business.portfolio.ledger import PortfolioLedger
from tickrisk.business.risk.engine import RiskEngine, StakeContext
from tickrisk.engine.models.enums import TradeResult
from tickrisk.engine.models.portfolio import Position, TickEvent, TradeOutcome

logger = logging.getLogger(__name__)


@dataclass
class BacktestReport:
    """单次回测报告"""

    key: str
    strategy_id: str
    symbol: str
    performance: PerformanceReport
    trades: list[BacktestTrade] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    options: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "strategy_id": self.strategy_id,
            "symbol": self.symbol,
            "performance": self.performance.to_dict(),
            "trades": [t.to_dict() for t in self.trades],
            "metadata": dict(self.metadata),
            "options": dict(self.options),
            "timestamp": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BacktestReport":
        return cls(
            key=data["key"],
            strategy_id=data["strategy_id"],
            symbol=data["symbol"],
            performance=PerformanceReport.from_dict(data["performance"]),
            trades=[BacktestTrade.from_dict(t) for t in data.get("trades", [])],
            metadata=data.get("metadata", {}),
            options=data.get("options", {}),
            created_at=datetime.fromisoformat(data["timestamp"]) if data.get("timestamp") else datetime.now(),
        )


@dataclass
class ComparisonReport:
    """策略比较报告"""

    symbol: str
    results: dict[str, BacktestReport]
    comparison: dict[str, Any]
    ranking: list[tuple[str, int]]

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "results": {sid: r.to_dict() for sid, r in self.results.items()},
            "comparison": dict(self.comparison),
            "ranking": [{"strategy": sid, "best_metrics": wins} for sid, wins in self.ranking],
        }


class ResultStore:
    """回测结果存储 (进程内，可导出 / 导入 JSON)"""

    def __init__(self) -> None:
        self._results: dict[str, BacktestReport] = {}

    def add(self, report: BacktestReport) -> None:
        self._results[report.key] = report

    def get_results(self, key: str | None = None) -> BacktestReport | dict[str, BacktestReport] | None:
        """key 为空返回全部结果，否则返回单个结果 (不存在返回 None)"""
        if key is not None:
            return self._results.get(key)
        return dict(self._results)

    def clear_results(self) -> None:
        self._results.clear()

    def export_results(self, path: str | Path) -> int:
        """导出全部结果到 JSON 文件

        Returns:
            导出的结果数
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {key: report.to_dict() for key, report in self._results.items()}
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        logger.info(f"Exported {len(payload)} backtest results to {path}")
        return len(payload)

    def import_results(self, path: str | Path) -> int:
        """从 JSON 文件导入结果 (同 key 覆盖)

        Returns:
            导入的结果数
        """
        with open(path, encoding="utf-8") as f:
            payload = json.load(f)
        for data in payload.values():
            self.add(BacktestReport.from_dict(data))
        logger.info(f"Imported {len(payload)} backtest results from {path}")
        return len(payload)

    def __len__(self) -> int:
        return len(self._results)


class _ReplayClock:
    """回测时钟: 返回当前回放 tick 的日期"""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> date:
        return self.now.date()


@dataclass
class _PendingTrade:
    position: Position
    settle_index: int
    entry_index: int
    entry_time: datetime
    prediction: int
    probability: float
    confidence: float
    costs: TradeCosts


@dataclass
class _RunCounters:
    decision_points: int = 0
    no_signal: int = 0
    low_probability: int = 0
    circuit_breaker: int = 0
    insufficient_balance: int = 0
    rejected_by_ledger: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "decision_points": self.decision_points,
            "no_signal": self.no_signal,
            "low_probability": self.low_probability,
            "circuit_breaker": self.circuit_breaker,
            "insufficient_balance": self.insufficient_balance,
            "rejected_by_ledger": self.rejected_by_ledger,
        }


class BacktestSimulator:
    """回测模拟器

    Args:
        tick_source: 历史 tick 数据源 (run_backtest 未显式传入 ticks 时使用)
        registry: 策略注册表，默认包含 frequency / time_series
        risk_config: 每次运行的基础风控配置 (再叠加 options.risk_overrides)
        portfolio_config: 每次运行的基础组合配置 (再叠加 options.portfolio_overrides)
        options: 默认回测配置
    """

    def __init__(
        self,
        tick_source: TickSource | None = None,
        registry: StrategyRegistry | None = None,
        risk_config: RiskConfig | None = None,
        portfolio_config: PortfolioConfig | None = None,
        options: BacktestOptions | None = None,
    ) -> None:
        self.tick_source = tick_source
        self.registry = registry or StrategyRegistry.with_defaults()
        self.risk_config = risk_config or RiskConfig()
        self.portfolio_config = portfolio_config or PortfolioConfig()
        self.options = options or BacktestOptions()
        self.results = ResultStore()
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def _acquire(self) -> None:
        if not self._lock.acquire(blocking=False):
            raise BacktestAlreadyRunningError()

    # ========== Public API ==========

    def run_backtest(
        self,
        strategy_id: str,
        symbol: str,
        options: BacktestOptions | None = None,
        ticks: list[TickEvent] | None = None,
    ) -> BacktestReport:
        """运行单次回测

        Args:
            strategy_id: 已注册的策略 id
            symbol: 标的
            options: 回测配置，默认模拟器的 options
            ticks: 显式传入的历史 tick，默认从 tick_source 读取

        Returns:
            BacktestReport (同时存入 self.results)

        Raises:
            BacktestAlreadyRunningError: 已有回测在运行
            UnknownStrategyError: 策略未注册
            InsufficientHistoricalDataError: 历史数据不足
        """
        self._acquire()
        try:
            options = options or self.options
            oracle = self.registry.create(strategy_id)
            history = self._load_ticks(symbol, options, ticks)
            report = self._simulate(strategy_id, symbol, oracle, history, options)
            self.results.add(report)
            return report
        finally:
            self._lock.release()

    def walk_forward_analysis(
        self,
        strategy_id: str,
        symbol: str,
        wf_options: WalkForwardOptions | None = None,
        options: BacktestOptions | None = None,
        ticks: list[TickEvent] | None = None,
    ) -> WalkForwardResult:
        """滚动验证

        每个窗口新建 oracle，先在训练窗口上 fit，再在测试窗口上独立回测。
        训练窗口的最后 warmup_ticks 个 tick 作为测试回测的预热数据，
        因此所有交易都发生在测试窗口内。

        Raises:
            BacktestAlreadyRunningError: 已有回测在运行
            UnknownStrategyError: 策略未注册
            InsufficientHistoricalDataError: tick 数少于 train_window + test_window
        """
        self._acquire()
        try:
            wf_options = wf_options or WalkForwardOptions()
            options = options or self.options
            self.registry.validate([strategy_id])

            history = self._load_ticks(symbol, options, ticks)
            windows = build_windows(len(history), wf_options)
            if not windows:
                raise InsufficientHistoricalDataError(
                    f"Insufficient historical data for walk-forward analysis: "
                    f"{len(history)} ticks < {wf_options.train_window + wf_options.test_window}",
                    required=wf_options.train_window + wf_options.test_window,
                    available=len(history),
                )

            warmup = min(options.warmup_ticks, wf_options.train_window)
            slice_options = replace(options, max_trades=None, warmup_ticks=warmup)
            logger.info(
                f"Walk-forward {strategy_id} on {symbol}: {len(windows)} windows "
                f"(train={wf_options.train_window}, test={wf_options.test_window}, step={wf_options.step_size})"
            )

            slices = []
            for window in windows:
                train = history[window.train_start : window.train_end]
                test = history[window.test_start : window.test_end]
                oracle = self.registry.create(strategy_id)
                oracle.fit(train)
                report = self._simulate(strategy_id, symbol, oracle, train[-warmup:] + test, slice_options)
                slices.append(
                    WalkForwardSlice(
                        window=window,
                        performance=report.performance,
                        test_start_time=test[0].timestamp,
                        test_end_time=test[-1].timestamp,
                    )
                )

            result = WalkForwardResult(
                strategy_id=strategy_id,
                symbol=symbol,
                options=wf_options,
                slices=slices,
                average_performance=average_performance(slices),
                robustness=assess_robustness(slices, wf_options.min_slices),
            )
            logger.info(
                f"Walk-forward {strategy_id} on {symbol} completed: "
                f"robustness={result.robustness.assessment.value} ({result.robustness.score:.2f})"
            )
            return result
        finally:
            self._lock.release()

    def compare_strategies(
        self,
        symbol: str,
        strategy_ids: list[str],
        options: BacktestOptions | None = None,
        ticks: list[TickEvent] | None = None,
    ) -> ComparisonReport:
        """在相同配置和相同 tick 上比较多个策略

        所有 id 先校验，任一未注册时在运行前抛出 UnknownStrategyError。
        单个策略数据不足等回测错误会使整个比较失败。
        """
        self._acquire()
        try:
            if not strategy_ids:
                raise ValueError("strategy_ids must not be empty")
            self.registry.validate(strategy_ids)
            options = options or self.options
            history = self._load_ticks(symbol, options, ticks)

            results: dict[str, BacktestReport] = {}
            for strategy_id in dict.fromkeys(strategy_ids):
                oracle = self.registry.create(strategy_id)
                report = self._simulate(strategy_id, symbol, oracle, history, options)
                self.results.add(report)
                results[strategy_id] = report

            comparison = compare_performance({sid: r.performance for sid, r in results.items()})
            return ComparisonReport(
                symbol=symbol,
                results=results,
                comparison={metric: c.to_dict() for metric, c in comparison.items()},
                ranking=rank_strategies(comparison),
            )
        finally:
            self._lock.release()

    def get_results(self, key: str | None = None) -> BacktestReport | dict[str, BacktestReport] | None:
        return self.results.get_results(key)

    def clear_results(self) -> None:
        self.results.clear_results()

    def export_results(self, path: str | Path) -> int:
        return self.results.export_results(path)

    def import_results(self, path: str | Path) -> int:
        return self.results.import_results(path)

    # ========== Replay ==========

    def _load_ticks(
        self,
        symbol: str,
        options: BacktestOptions,
        ticks: list[TickEvent] | None,
    ) -> list[TickEvent]:
        """读取并过滤 tick: 日期范围 → 交易时段 → 最多 history_limit 个"""
        if ticks is not None:
            history = filter_ticks(ticks, options.start_date, options.end_date, options.history_limit)
        elif self.tick_source is not None:
            history = self.tick_source.get_ticks(
                symbol,
                limit=options.history_limit,
                start=options.start_date,
                end=options.end_date,
            )
        else:
            raise BacktestError("No tick source configured and no ticks given")

        if options.market_hours_only:
            history = [
                t
                for t in history
                if options.market_open_hour <= t.timestamp.hour < options.market_close_hour
            ]
        return history

    def _build_components(
        self,
        options: BacktestOptions,
        start: datetime,
    ) -> tuple[RiskEngine, PortfolioLedger, _ReplayClock]:
        """为一次运行新建独立的 RiskEngine / PortfolioLedger

        Raises:
            ValueError: overrides 含未知字段或覆盖后配置无效
        """
        risk_overrides = {
            "initial_balance": options.initial_balance,
            "kelly_variant": options.kelly_variant,
            **options.risk_overrides,
        }
        for config, overrides in (
            (self.risk_config, risk_overrides),
            (self.portfolio_config, options.portfolio_overrides),
        ):
            unknown = set(overrides) - {f.name for f in fields(config)}
            if unknown:
                raise ValueError(f"Unknown {type(config).__name__} overrides: {sorted(unknown)}")

        risk_config = replace(self.risk_config, **risk_overrides)
        portfolio_config = replace(self.portfolio_config, **options.portfolio_overrides)
        clock = _ReplayClock(start)
        engine = RiskEngine(risk_config, clock=clock)
        return engine, PortfolioLedger(portfolio_config, engine), clock

    def _simulate(
        self,
        strategy_id: str,
        symbol: str,
        oracle: PredictionOracle,
        ticks: list[TickEvent],
        options: BacktestOptions,
    ) -> BacktestReport:
        trade_simulator = TradeSimulator.from_options(options)
        delay = trade_simulator.settlement_delay
        available = len(ticks) - options.warmup_ticks - delay
        if available < 1:
            raise InsufficientHistoricalDataError(
                f"Insufficient historical data: {len(ticks)} ticks, "
                f"need more than {options.warmup_ticks + delay}",
                required=options.warmup_ticks + delay + 1,
                available=len(ticks),
            )
        if options.max_trades is not None and options.max_trades > available:
            raise InsufficientHistoricalDataError(
                f"Insufficient historical data: {options.max_trades} trades requested, "
                f"history supports at most {available}",
                required=options.max_trades,
                available=available,
            )

        logger.info(f"Backtest {strategy_id} on {symbol} started: {len(ticks)} ticks")
        engine, ledger, clock = self._build_components(options, ticks[0].timestamp)
        digits: deque[int] = deque(maxlen=options.history_window)
        pending: list[_PendingTrade] = []
        trades: list[BacktestTrade] = []
        counters = _RunCounters()
        halted_reason = None
        opened = 0
        accepting = True

        for i, tick in enumerate(ticks):
            clock.now = tick.timestamp
            ledger.record_tick(tick)
            digits.append(tick.last_digit)

            for item in [p for p in pending if p.settle_index == i]:
                pending.remove(item)
                trades.append(self._settle(item, ticks, i, strategy_id, options, ledger))

            if options.max_trades is not None and opened >= options.max_trades:
                accepting = False
            if not accepting or i + 1 + delay >= len(ticks):
                # 不再开仓，等待挂单结算
                if not pending:
                    break
                continue
            if i < options.warmup_ticks - 1:
                continue

            counters.decision_points += 1
            prediction = oracle.predict(list(digits))
            if prediction is None:
                counters.no_signal += 1
                continue

            probability = digits.count(prediction.digit) / len(digits)
            if probability < options.min_probability:
                counters.low_probability += 1
                continue

            stop = engine.should_stop_trading()
            if stop.stop:
                counters.circuit_breaker += 1
                halted_reason = stop.reason.value
                if options.stop_on_circuit_breaker:
                    logger.warning(f"Backtest {strategy_id} on {symbol} halted: {stop.detail}")
                    accepting = False
                continue

            balance = engine.stats.total_balance
            stake = self._size_stake(engine, symbol, balance, probability, options)
            if stake <= 0:
                counters.insufficient_balance += 1
                continue

            admission = ledger.can_add_position(symbol, stake)
            if not admission.allowed:
                counters.rejected_by_ledger += 1
                logger.debug(f"Trade at tick {i} rejected: {admission.reason}")
                continue

            position = ledger.add_position(
                symbol,
                stake,
                prediction=prediction.digit,
                timestamp=tick.timestamp,
                entry_price=tick.price,
            )
            pending.append(
                _PendingTrade(
                    position=position,
                    settle_index=i + 1 + delay,
                    entry_index=i,
                    entry_time=tick.timestamp,
                    prediction=prediction.digit,
                    probability=probability,
                    confidence=prediction.probability,
                    costs=trade_simulator.calculate_costs(stake, balance),
                )
            )
            opened += 1

        performance = compute_performance(
            trades,
            options.initial_balance,
            var_confidence=options.var_confidence,
            periods_per_year=options.periods_per_year,
        )
        metadata = {
            "market_conditions": analyze_market_conditions(ticks).to_dict(),
            "backtest_realism": assess_backtest_realism(options, len(ticks)).to_dict(),
            "data_points": len(ticks),
            "start_time": ticks[0].timestamp.isoformat(),
            "end_time": ticks[-1].timestamp.isoformat(),
            "halted_reason": halted_reason,
            "decisions": counters.to_dict(),
            "risk": engine.generate_risk_report()["portfolio"],
        }
        report = BacktestReport(
            key=f"{strategy_id}_{symbol}_{datetime.now():%Y%m%d%H%M%S}_{uuid.uuid4().hex[:6]}",
            strategy_id=strategy_id,
            symbol=symbol,
            performance=performance,
            trades=trades,
            metadata=metadata,
            options=options.to_dict(),
        )
        logger.info(
            f"Backtest {strategy_id} on {symbol} completed: {performance.total_trades} trades, "
            f"profit={performance.total_profit:.2f}, win_rate={performance.win_rate:.2%}, "
            f"profit_factor={performance.profit_factor:.2f}"
        )
        return report

    def _size_stake(
        self,
        engine: RiskEngine,
        symbol: str,
        balance: float,
        probability: float,
        options: BacktestOptions,
    ) -> float:
        """Kelly ∧ 波动率仓位 ∧ risk_per_trade，不低于 min_stake，余额不足返回 0"""
        context = StakeContext(
            win_rate=probability,
            avg_win=options.payout_multiplier - 1,
            avg_loss=1.0,
        )
        stake = min(
            engine.recommended_stake(symbol, balance, context),
            balance * options.risk_per_trade,
        )
        stake = max(stake, options.min_stake)
        if stake > balance or stake <= 0:
            return 0.0
        return stake

    def _settle(
        self,
        item: _PendingTrade,
        ticks: list[TickEvent],
        index: int,
        strategy_id: str,
        options: BacktestOptions,
        ledger: PortfolioLedger,
    ) -> BacktestTrade:
        """在结算 tick 上结算挂单，并写入账本和风控引擎"""
        exit_tick = ticks[index]
        position = item.position
        stake = position.stake
        won = exit_tick.last_digit == item.prediction
        payout = stake * options.payout_multiplier if won else 0.0
        gross_profit = payout - stake
        slippage = item.costs.slippage + item.costs.latency_penalty
        net_profit = gross_profit - item.costs.fees - slippage
        result = TradeResult.WON if won else TradeResult.LOST

        ledger.apply_outcome(
            TradeOutcome(
                symbol=position.symbol,
                stake=stake,
                result=result,
                profit=net_profit,
                timestamp=exit_tick.timestamp,
                position_id=position.id,
            )
        )

        holding_time = (exit_tick.timestamp - item.entry_time).total_seconds()
        if holding_time <= 0:
            holding_time = (index - item.entry_index) * options.tick_interval_seconds

        trade = BacktestTrade(
            trade_id=position.id,
            symbol=position.symbol,
            strategy_id=strategy_id,
            prediction=item.prediction,
            actual_digit=exit_tick.last_digit,
            probability=item.probability,
            confidence=item.confidence,
            stake=stake,
            entry_time=item.entry_time,
            exit_time=exit_tick.timestamp,
            result=result,
            payout=payout,
            gross_profit=gross_profit,
            fees=item.costs.fees,
            slippage=slippage,
            net_profit=net_profit,
            holding_time=holding_time,
            balance_after=ledger.risk_engine.stats.total_balance,
        )
        logger.debug(
            f"Trade {trade.trade_id}: predicted {trade.prediction}, actual {trade.actual_digit}, "
            f"stake={stake:.2f}, net={net_profit:.2f}"
        )
        return trade
