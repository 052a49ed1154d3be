"""
Business Layer - 业务层

有状态的风控与组合组件。

模块结构:
- config/: RiskConfig / PortfolioConfig、ConfigMode、配置工具
- risk/: RiskEngine (仓位、熔断)、ExitManager (退出状态机)、DailyLossTracker
- portfolio/: PortfolioLedger (持仓、分配、相关性、分散化闸门、风险评估)
"""

from tickrisk.business.config import ConfigMode, PortfolioConfig, RiskConfig
from tickrisk.business.portfolio import PortfolioLedger
from tickrisk.business.risk import ExitManager, RiskEngine, StakeContext, StopDecision

__all__ = [
    "ConfigMode",
    "ExitManager",
    "PortfolioConfig",
    "PortfolioLedger",
    "RiskConfig",
    "RiskEngine",
    "StakeContext",
    "StopDecision",
]
