"""
Portfolio Risk Assessment - 组合风险评估

组合级风险评分与压力测试的数据结构和计算。

风险评分项:
- 有效下注数 1/Σw² (< 3 扣分)
- 单标的最大占比 (> 40% 扣分)
- 平均两两相关系数 (> 0.6 扣分)
- 组合波动率 sqrt(wᵀΣw) 与 99% VaR = 波动率 × 2.33
"""

from dataclasses import dataclass, field
from typing import Any

from scipy import stats

from tickrisk.engine.models.enums import RiskLevel


@dataclass
class PortfolioRiskAssessment:
    """组合风险评估结果"""

    risk_level: RiskLevel
    risk_score: int = 0
    effective_bets: float = 0.0
    concentration_hhi: float = 0.0  # Σw², 1/n ~ 1
    max_allocation: float = 0.0
    max_allocation_symbol: str | None = None
    avg_correlation: float = 0.0
    portfolio_volatility: float = 0.0
    value_at_risk: float = 0.0  # 99% VaR，占已分配资金比例
    value_at_risk_amount: float = 0.0
    issues: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "risk_level": self.risk_level.value,
            "risk_score": self.risk_score,
            "effective_bets": self.effective_bets,
            "concentration_hhi": self.concentration_hhi,
            "max_allocation": self.max_allocation,
            "max_allocation_symbol": self.max_allocation_symbol,
            "avg_correlation": self.avg_correlation,
            "portfolio_volatility": self.portfolio_volatility,
            "value_at_risk": self.value_at_risk,
            "value_at_risk_amount": self.value_at_risk_amount,
            "issues": list(self.issues),
            "recommendations": list(self.recommendations),
        }


def classify_risk_score(score: int) -> RiskLevel:
    """0 → LOW, ≤2 → MEDIUM, ≤4 → HIGH, 其他 → EXTREME"""
    if score == 0:
        return RiskLevel.LOW
    if score <= 2:
        return RiskLevel.MEDIUM
    if score <= 4:
        return RiskLevel.HIGH
    return RiskLevel.EXTREME


def build_recommendations(
    risk_level: RiskLevel,
    low_diversification: bool,
    concentrated: bool,
    correlated: bool,
    volatile: bool,
) -> list[str]:
    """按优先级生成整改建议"""
    recommendations = []
    if low_diversification:
        recommendations.append("Increase diversification by adding more uncorrelated symbols")
    if concentrated:
        recommendations.append("Reduce the largest single-symbol allocation below 40%")
    if correlated:
        recommendations.append("Reduce exposure to highly correlated symbols")
    if volatile:
        recommendations.append("Reduce position sizes to bring portfolio VaR within limits")
    if risk_level in (RiskLevel.HIGH, RiskLevel.EXTREME):
        recommendations.append("Tighten position limits and stop-losses")
    if risk_level == RiskLevel.EXTREME:
        recommendations.append("Halt new positions until portfolio risk is reduced")
    return recommendations


@dataclass
class StressScenario:
    """压力测试场景

    shocks: 每个标的的比例冲击 (-0.2 = 下跌 20%)，未列出的标的不受冲击
    volatility_multiplier: 波动率放大倍数
    var_ceiling: 场景 VaR 上限 (None 使用配置默认值)
    confidence: VaR 置信度 (None 使用配置默认值)
    """

    name: str
    shocks: dict[str, float] = field(default_factory=dict)
    volatility_multiplier: float = 1.0
    var_ceiling: float | None = None
    confidence: float | None = None
    default_shock: float = 0.0  # 未列出标的的冲击

    def shock_for(self, symbol: str) -> float:
        return self.shocks.get(symbol, self.default_shock)


@dataclass
class StressTestResult:
    """压力测试结果"""

    scenario: str
    initial_value: float
    stressed_value: float
    shock_loss: float
    shock_loss_pct: float
    stressed_volatility: float
    stressed_var: float
    var_ceiling: float
    breach: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "scenario": self.scenario,
            "initial_value": self.initial_value,
            "stressed_value": self.stressed_value,
            "shock_loss": self.shock_loss,
            "shock_loss_pct": self.shock_loss_pct,
            "stressed_volatility": self.stressed_volatility,
            "stressed_var": self.stressed_var,
            "var_ceiling": self.var_ceiling,
            "breach": self.breach,
        }


def default_stress_scenarios() -> list[StressScenario]:
    """默认压力测试场景"""
    return [
        StressScenario(name="flash_crash", default_shock=-0.20, volatility_multiplier=3.0),
        StressScenario(name="volatility_spike", volatility_multiplier=2.5),
        StressScenario(name="correlated_selloff", default_shock=-0.10, volatility_multiplier=1.5),
    ]


def run_stress_scenario(
    scenario: StressScenario,
    exposures: dict[str, float],
    base_volatility: float,
    default_confidence: float,
    default_ceiling: float,
) -> StressTestResult:
    """对持仓施加一个场景

    stressed_var = 波动率 × 放大倍数 × z(confidence) + 直接冲击亏损比例

    Args:
        scenario: 场景
        exposures: 每个标的的未平仓金额
        base_volatility: 当前组合波动率
        default_confidence: 场景未指定时的置信度
        default_ceiling: 场景未指定时的 VaR 上限

    Returns:
        StressTestResult
    """
    initial_value = sum(exposures.values())
    stressed_value = sum(
        amount * (1 + scenario.shock_for(symbol)) for symbol, amount in exposures.items()
    )
    shock_loss = max(0.0, initial_value - stressed_value)
    shock_loss_pct = shock_loss / initial_value if initial_value > 0 else 0.0

    confidence = scenario.confidence or default_confidence
    z_score = float(stats.norm.ppf(confidence))
    stressed_volatility = base_volatility * scenario.volatility_multiplier
    stressed_var = stressed_volatility * z_score + shock_loss_pct
    ceiling = default_ceiling if scenario.var_ceiling is None else scenario.var_ceiling

    return StressTestResult(
        scenario=scenario.name,
        initial_value=initial_value,
        stressed_value=stressed_value,
        shock_loss=shock_loss,
        shock_loss_pct=shock_loss_pct,
        stressed_volatility=stressed_volatility,
        stressed_var=stressed_var,
        var_ceiling=ceiling,
        breach=stressed_var > ceiling,
    )
