"""
Portfolio Configuration - 组合配置

PortfolioLedger 的分散化闸门、相关性计算和风险评估阈值。

配置文件: config/risk.yaml 的 portfolio 节
"""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from tickrisk.business.config.config_mode import ConfigMode
from tickrisk.business.config.config_utils import apply_env_overrides, merge_overrides
from tickrisk.business.config.risk_config import CONFIG_FILE


@dataclass
class PortfolioConfig:
    """组合配置

    示例:
        config = PortfolioConfig.load()
        config = PortfolioConfig(max_symbol_allocation=0.25)
    """

    # ========== 分散化闸门 (can_add_position) ==========
    max_symbol_allocation: float = 0.30  # 单标的占总持仓上限
    max_correlation: float = 0.70  # 与任一持仓的 |相关系数| 上限
    drawdown_tightening_ratio: float = 0.5  # 回撤 ≥ 上限 × 此比例时收紧
    tightened_allocation_factor: float = 0.75  # 收紧后的上限系数

    # ========== 相关性 ==========
    correlation_window: int = 1000  # 计算相关性的收益率窗口
    min_correlation_samples: int = 10
    price_history_limit: int = 5000  # 每个标的保留的价格数

    # ========== 风险评估 (assess_portfolio_risk) ==========
    min_effective_bets: float = 3.0  # 低于则扣分
    max_single_allocation: float = 0.40  # 高于则扣分
    max_avg_correlation: float = 0.60  # 高于则扣分
    var_z_score: float = 2.33  # 99% 单尾
    max_portfolio_var: float = 0.05  # VaR 占比上限

    # ========== 压力测试 ==========
    stress_confidence: float = 0.99
    stress_var_ceiling: float = 0.10

    def __post_init__(self) -> None:
        """初始化后验证"""
        errors = self.validate()
        if errors:
            raise ValueError(f"Invalid PortfolioConfig: {'; '.join(errors)}")

    def validate(self) -> list[str]:
        """验证配置

        Returns:
            错误信息列表，为空表示验证通过
        """
        errors = []
        if not 0 < self.max_symbol_allocation <= 1:
            errors.append("max_symbol_allocation must be in (0, 1]")
        if not 0 < self.max_correlation <= 1:
            errors.append("max_correlation must be in (0, 1]")
        if not 0 < self.tightened_allocation_factor <= 1:
            errors.append("tightened_allocation_factor must be in (0, 1]")
        if self.correlation_window < 2 or self.min_correlation_samples < 2:
            errors.append("correlation windows must be at least 2")
        if self.min_effective_bets <= 0:
            errors.append("min_effective_bets must be positive")
        if not 0 < self.stress_confidence < 1:
            errors.append("stress_confidence must be in (0, 1)")
        return errors

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PortfolioConfig":
        """从字典创建配置 (支持嵌套 portfolio 节或扁平结构)"""
        section = data.get("portfolio", data)
        valid_fields = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in section.items() if k in valid_fields})

    @classmethod
    def from_yaml(
        cls,
        path: str | Path,
        mode: ConfigMode = ConfigMode.LIVE,
    ) -> "PortfolioConfig":
        """从 YAML 文件加载配置"""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if mode == ConfigMode.BACKTEST and "backtest_overrides" in data:
            data = merge_overrides(data, data["backtest_overrides"])

        return cls.from_dict(data.get("portfolio", {}))

    @classmethod
    def load(cls, mode: ConfigMode = ConfigMode.LIVE) -> "PortfolioConfig":
        """加载配置: 环境变量 > YAML > 默认值"""
        config = cls.from_yaml(CONFIG_FILE, mode=mode) if CONFIG_FILE.exists() else cls()
        apply_env_overrides(config)
        config.__post_init__()
        return config

    def to_dict(self) -> dict[str, Any]:
        """转换为字典"""
        return {"portfolio": {f.name: getattr(self, f.name) for f in fields(self)}}
