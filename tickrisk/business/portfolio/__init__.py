"""Portfolio ledger: positions, allocation, correlation, diversification, risk."""

from tickrisk.business.portfolio.ledger import AdmissionDecision, AllocationSnapshot, PortfolioLedger
from tickrisk.business.portfolio.risk_assessment import (
    PortfolioRiskAssessment,
    StressScenario,
    StressTestResult,
    default_stress_scenarios,
)

__all__ = [
    "AdmissionDecision",
    "AllocationSnapshot",
    "PortfolioLedger",
    "PortfolioRiskAssessment",
    "StressScenario",
    "StressTestResult",
    "default_stress_scenarios",
]
