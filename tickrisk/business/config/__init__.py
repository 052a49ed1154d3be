"""Business layer configuration."""

from tickrisk.business.config.config_mode import ConfigMode
from tickrisk.business.config.config_utils import apply_env_overrides, merge_overrides
from tickrisk.business.config.portfolio_config import PortfolioConfig
from tickrisk.business.config.risk_config import RiskConfig

__all__ = [
    "ConfigMode",
    "PortfolioConfig",
    "RiskConfig",
    "apply_env_overrides",
    "merge_overrides",
]
