"""
Risk Configuration - 风控配置

RiskEngine 所有参数的唯一配置源。

配置分区:
- Circuit Breakers: 熔断阈值 (最大回撤、单日亏损、连续亏损)
- Kelly Sizing: 凯利公式仓位参数
- Volatility Sizing: 波动率 / ATR / 市场状态调整
- Exit Management: 追踪止损、分批止盈、分批建仓默认值

配置模式:
- LIVE: 使用 YAML 主配置（fallback 到 dataclass 默认值）
- BACKTEST: 自动合并 YAML backtest_overrides 节

配置文件: config/risk.yaml
环境变量: TICKRISK_<FIELD>，例如 TICKRISK_MAX_DRAWDOWN=0.15
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from tickrisk.business.config.config_mode import ConfigMode
from tickrisk.business.config.config_utils import apply_env_overrides, merge_overrides

CONFIG_FILE = Path(__file__).parent.parent.parent.parent / "config" / "risk.yaml"


@dataclass
class RiskConfig:
    """风控配置

    配置来源 (优先级高→低):
    1. BacktestOptions.risk_overrides (per-run 自定义覆盖)
    2. 环境变量 TICKRISK_<FIELD>
    3. YAML backtest_overrides 节 (BACKTEST 模式自动合并)
    4. YAML 主配置节 (LIVE 基准值)
    5. dataclass 默认值 (代码 fallback)

    示例:
        # Live 模式 (从 YAML 加载)
        config = RiskConfig.load()

        # Backtest 模式 (YAML + backtest_overrides 合并)
        config = RiskConfig.load(mode=ConfigMode.BACKTEST)

        # 从字典加载 (可覆盖任意字段)
        config = RiskConfig.from_dict({"max_drawdown": 0.15})
    """

    # =========================================================================
    # Circuit Breakers (熔断阈值)
    # 由 RiskEngine.should_stop_trading 按顺序检查
    # =========================================================================

    max_drawdown: float = 0.20  # 20% - 回撤达到即停止交易
    max_daily_loss: float = 0.10  # 10% of balance - 当日净亏损超过即停止
    max_consecutive_losses: int = 5  # 连续亏损笔数上限
    initial_balance: float = 1000.0

    # =========================================================================
    # Kelly Sizing (凯利公式参数)
    # 所有变体都再乘以 half-Kelly，并限制在 [min_stake_pct, max_stake_pct]
    # =========================================================================

    kelly_fraction: float = 0.5  # fractional 变体的用户系数
    kelly_variant: str = "fractional"  # classic / fractional / robust / dynamic
    robust_min_sample: int = 100  # robust 变体默认样本量
    dynamic_window: int = 20  # dynamic 变体: 最近 N 笔结果
    min_stake_pct: float = 0.001  # 0.1% of balance
    max_stake_pct: float = 0.05  # 5% of balance
    fallback_stake_pct: float = 0.01  # 参数非法时的保守仓位

    # =========================================================================
    # Volatility Sizing (波动率仓位调整)
    # =========================================================================

    base_risk: float = 0.02  # 2% of balance - 波动率仓位基准
    volatility_lookback: int = 100  # 数字波动率回看 tick 数
    volatility_min_samples: int = 20  # 少于此数使用默认波动率 2.5
    atr_period: int = 14
    reference_atr_pct: float = 0.0001  # ATR/价格 的参考值 (1bp)
    regime_window: int = 50  # 趋势拟合窗口
    trend_threshold: float = 0.5  # R² ≥ 此值视为趋势市
    price_history_limit: int = 1000  # 每个标的保留的 tick 数

    # =========================================================================
    # Stop Loss / VaR Sizing (止损与 VaR 仓位)
    # =========================================================================

    stop_loss_base_pct: float = 0.05  # 5% of balance
    var_risk_pct: float = 0.02  # VaR 仓位: 最多承受 2% of balance

    # =========================================================================
    # Exit Management (退出管理默认值)
    # =========================================================================

    # (profit_target, close_percent): +50% 平 50%, +100% 平 25%, +200% 平 25%
    partial_close_levels: list[tuple[float, float]] = field(
        default_factory=lambda: [(0.5, 0.5), (1.0, 0.25), (2.0, 0.25)]
    )
    min_holding_time: float = 0.0  # 秒
    scale_in_parts: int = 3
    scale_in_distribution: list[float] = field(default_factory=lambda: [0.4, 0.3, 0.3])
    scale_out_levels: list[float] = field(default_factory=lambda: [0.25, 0.5, 1.0])
    scale_out_distribution: list[float] = field(default_factory=lambda: [0.3, 0.3, 0.4])

    def __post_init__(self) -> None:
        """初始化后验证"""
        self.partial_close_levels = [
            (float(level[0]), float(level[1])) for level in self.partial_close_levels
        ]
        errors = self.validate()
        if errors:
            raise ValueError(f"Invalid RiskConfig: {'; '.join(errors)}")

    def validate(self) -> list[str]:
        """验证配置

        Returns:
            错误信息列表，为空表示验证通过
        """
        errors = []

        if not 0 < self.max_drawdown <= 1:
            errors.append("max_drawdown must be in (0, 1]")
        if not 0 < self.max_daily_loss <= 1:
            errors.append("max_daily_loss must be in (0, 1]")
        if self.max_consecutive_losses < 1:
            errors.append("max_consecutive_losses must be at least 1")
        if self.initial_balance <= 0:
            errors.append("initial_balance must be positive")

        if not 0 < self.kelly_fraction <= 1:
            errors.append("kelly_fraction must be in (0, 1]")
        if self.kelly_variant not in ("classic", "fractional", "robust", "dynamic"):
            errors.append(f"unknown kelly_variant: {self.kelly_variant}")
        if not 0 < self.min_stake_pct <= self.max_stake_pct <= 1:
            errors.append("stake bounds must satisfy 0 < min_stake_pct <= max_stake_pct <= 1")
        if not 0 < self.fallback_stake_pct <= 1:
            errors.append("fallback_stake_pct must be in (0, 1]")
        if self.robust_min_sample < 1:
            errors.append("robust_min_sample must be positive")

        if not 0 < self.base_risk <= 1:
            errors.append("base_risk must be in (0, 1]")
        if self.atr_period < 1 or self.volatility_lookback < 3:
            errors.append("atr_period and volatility_lookback must be positive windows")

        if sum(level[1] for level in self.partial_close_levels) > 1 + 1e-9:
            errors.append("partial_close_levels close percentages must sum to at most 1")
        if abs(sum(self.scale_in_distribution) - 1) > 1e-6:
            errors.append("scale_in_distribution must sum to 1")
        if abs(sum(self.scale_out_distribution) - 1) > 1e-6:
            errors.append("scale_out_distribution must sum to 1")
        if len(self.scale_out_levels) != len(self.scale_out_distribution):
            errors.append("scale_out_levels and scale_out_distribution must have equal length")

        return errors

    @classmethod
    def _apply_dict(cls, config: "RiskConfig", data: dict[str, Any]) -> "RiskConfig":
        """将字典中的值覆盖到 config 实例上（内部方法）"""
        risk_limits = data.get("risk", data)
        valid_fields = {f.name for f in fields(cls) if not f.name.startswith("_")}
        for key, value in risk_limits.items():
            if key in valid_fields:
                setattr(config, key, value)
        config.__post_init__()
        return config

    @classmethod
    def from_yaml(
        cls,
        path: str | Path,
        mode: ConfigMode = ConfigMode.LIVE,
    ) -> "RiskConfig":
        """从 YAML 文件加载配置

        Args:
            path: YAML 文件路径
            mode: 配置模式 (LIVE 或 BACKTEST)

        Returns:
            RiskConfig 实例
        """
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        # BACKTEST 模式：合并 YAML 中的 backtest_overrides
        if mode == ConfigMode.BACKTEST and "backtest_overrides" in data:
            data = merge_overrides(data, data["backtest_overrides"])

        return cls._apply_dict(cls(), data)

    @classmethod
    def load(cls, mode: ConfigMode = ConfigMode.LIVE) -> "RiskConfig":
        """加载配置

        优先从 YAML 加载，如果 YAML 不存在则使用 dataclass 默认值，
        最后应用环境变量覆盖。

        Args:
            mode: 配置模式 (LIVE 或 BACKTEST)

        Returns:
            RiskConfig 实例
        """
        config = cls.from_yaml(CONFIG_FILE, mode=mode) if CONFIG_FILE.exists() else cls()
        apply_env_overrides(config)
        config.__post_init__()
        return config

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        mode: ConfigMode = ConfigMode.LIVE,
    ) -> "RiskConfig":
        """从字典创建配置

        支持两种场景：
        1. 完整 YAML 格式（含 backtest_overrides）→ 直接解析
        2. 部分覆盖字典（如 BacktestOptions.risk_overrides）→ 先加载基线再叠加

        Args:
            data: 配置字典 (支持嵌套 risk 节或扁平结构)
            mode: 配置模式

        Returns:
            RiskConfig 实例
        """
        if "backtest_overrides" in data:
            if mode == ConfigMode.BACKTEST:
                data = merge_overrides(data, data["backtest_overrides"])
            return cls._apply_dict(cls(), data)

        base = cls.load(mode)
        return cls._apply_dict(base, data)

    def to_dict(self) -> dict[str, Any]:
        """转换为字典"""
        return {
            "risk": {
                # Circuit breakers
                "max_drawdown": self.max_drawdown,
                "max_daily_loss": self.max_daily_loss,
                "max_consecutive_losses": self.max_consecutive_losses,
                "initial_balance": self.initial_balance,
                # Kelly
                "kelly_fraction": self.kelly_fraction,
                "kelly_variant": self.kelly_variant,
                "robust_min_sample": self.robust_min_sample,
                "dynamic_window": self.dynamic_window,
                "min_stake_pct": self.min_stake_pct,
                "max_stake_pct": self.max_stake_pct,
                "fallback_stake_pct": self.fallback_stake_pct,
                # Volatility
                "base_risk": self.base_risk,
                "volatility_lookback": self.volatility_lookback,
                "volatility_min_samples": self.volatility_min_samples,
                "atr_period": self.atr_period,
                "reference_atr_pct": self.reference_atr_pct,
                "regime_window": self.regime_window,
                "trend_threshold": self.trend_threshold,
                "price_history_limit": self.price_history_limit,
                # Stop loss / VaR
                "stop_loss_base_pct": self.stop_loss_base_pct,
                "var_risk_pct": self.var_risk_pct,
                # Exits
                "partial_close_levels": [list(level) for level in self.partial_close_levels],
                "min_holding_time": self.min_holding_time,
                "scale_in_parts": self.scale_in_parts,
                "scale_in_distribution": list(self.scale_in_distribution),
                "scale_out_levels": list(self.scale_out_levels),
                "scale_out_distribution": list(self.scale_out_distribution),
            }
        }
