"""
Backtest Metrics - 回测指标计算

计算回测结果的各类绩效指标:
- 交易指标: 胜率、盈亏比、平均盈亏、期望收益
- 风险指标: 最大回撤、VaR、Expected Shortfall、破产概率
- 风险调整收益: Sharpe、Calmar
- 费用统计: 总手续费、总滑点

所有指标都有定义好的中性值 (0 或上限)，不会出现 NaN / inf。

Usage:
    from tickrisk.backtest.analysis.metrics import compute_performance

    report = compute_performance(trades, initial_balance=1000.0)
    print(f"Win Rate: {report.win_rate:.1%}, Max Drawdown: {report.max_drawdown:.2%}")
"""

from dataclasses import dataclass
from typing import Any

from tickrisk.backtest.engine.trade_simulator import BacktestTrade
from tickrisk.engine.portfolio.returns import (
    calc_average_loss,
    calc_average_win,
    calc_calmar_ratio,
    calc_cvar,
    calc_max_drawdown,
    calc_profit_factor,
    calc_risk_of_ruin,
    calc_sharpe_ratio,
    calc_var,
)


@dataclass
class RiskAdjustedMetrics:
    """尾部风险指标 (均为正的亏损幅度 / 概率)"""

    value_at_risk: float = 0.0
    expected_shortfall: float = 0.0
    risk_of_ruin: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {
            "value_at_risk": self.value_at_risk,
            "expected_shortfall": self.expected_shortfall,
            "risk_of_ruin": self.risk_of_ruin,
        }


@dataclass
class PerformanceReport:
    """回测绩效汇总"""

    # ========== 交易指标 ==========
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    profit_factor: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    expectancy: float = 0.0  # 平均每笔净利润

    # ========== 收益与风险 ==========
    total_profit: float = 0.0
    final_balance: float = 0.0
    return_pct: float = 0.0
    sharpe_ratio: float = 0.0
    max_drawdown: float = 0.0
    calmar_ratio: float = 0.0

    # ========== 费用 ==========
    total_fees: float = 0.0
    total_slippage: float = 0.0

    risk_adjusted: RiskAdjustedMetrics | None = None

    def __post_init__(self) -> None:
        if self.risk_adjusted is None:
            self.risk_adjusted = RiskAdjustedMetrics()

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_trades": self.total_trades,
            "winning_trades": self.winning_trades,
            "losing_trades": self.losing_trades,
            "win_rate": self.win_rate,
            "profit_factor": self.profit_factor,
            "avg_win": self.avg_win,
            "avg_loss": self.avg_loss,
            "expectancy": self.expectancy,
            "total_profit": self.total_profit,
            "final_balance": self.final_balance,
            "return_pct": self.return_pct,
            "sharpe_ratio": self.sharpe_ratio,
            "max_drawdown": self.max_drawdown,
            "calmar_ratio": self.calmar_ratio,
            "total_fees": self.total_fees,
            "total_slippage": self.total_slippage,
            "risk_adjusted_metrics": self.risk_adjusted.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PerformanceReport":
        values = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        values["risk_adjusted"] = RiskAdjustedMetrics(**data.get("risk_adjusted_metrics", {}))
        return cls(**values)


def build_equity_curve(trades: list[BacktestTrade], initial_balance: float) -> list[float]:
    """初始余额 + 每笔净利润的累计曲线"""
    equity = [initial_balance]
    for trade in trades:
        equity.append(equity[-1] + trade.net_profit)
    return equity


def compute_performance(
    trades: list[BacktestTrade],
    initial_balance: float,
    var_confidence: float = 0.95,
    periods_per_year: int = 252,
) -> PerformanceReport:
    """从交易列表计算绩效

    Args:
        trades: 按时间排序的回测交易
        initial_balance: 初始余额
        var_confidence: VaR / ES 置信度
        periods_per_year: Sharpe 年化因子

    Returns:
        PerformanceReport；没有交易时全部为中性值
    """
    if not trades:
        return PerformanceReport(final_balance=initial_balance)

    profits = [t.net_profit for t in trades]
    returns = [t.trade_return for t in trades]
    total_profit = sum(profits)
    max_drawdown = calc_max_drawdown(build_equity_curve(trades, initial_balance))
    return_pct = total_profit / initial_balance if initial_balance > 0 else 0.0

    return PerformanceReport(
        total_trades=len(trades),
        winning_trades=sum(1 for t in trades if t.won),
        losing_trades=sum(1 for t in trades if not t.won),
        win_rate=sum(1 for t in trades if t.won) / len(trades),
        profit_factor=calc_profit_factor(profits),
        avg_win=calc_average_win(profits) or 0.0,
        avg_loss=calc_average_loss(profits) or 0.0,
        expectancy=total_profit / len(trades),
        total_profit=total_profit,
        final_balance=initial_balance + total_profit,
        return_pct=return_pct,
        sharpe_ratio=calc_sharpe_ratio(returns, periods_per_year=periods_per_year),
        max_drawdown=max_drawdown,
        calmar_ratio=calc_calmar_ratio(return_pct, max_drawdown),
        total_fees=sum(t.fees for t in trades),
        total_slippage=sum(t.slippage for t in trades),
        risk_adjusted=RiskAdjustedMetrics(
            value_at_risk=calc_var(returns, var_confidence) or 0.0,
            expected_shortfall=calc_cvar(returns, var_confidence) or 0.0,
            risk_of_ruin=calc_risk_of_ruin(profits, initial_balance),
        ),
    )
