"""
Backtest Configuration - 回测配置

定义单次回测 (BacktestOptions) 和滚动验证 (WalkForwardOptions) 的全部参数。

支持:
- YAML 文件加载 (含 inherit 继承和 ${VAR} 环境变量替换)
- 字典创建 / 导出
- 初始化时验证，非法配置直接抛出 ValueError

Usage:
    options = BacktestOptions(initial_balance=1000, max_trades=50, slippage_model="aggressive")
    options = BacktestOptions.from_yaml("config/backtest.yaml")
"""

import os
import re
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

import yaml


class SlippageModelType(str, Enum):
    """滑点模型类型"""

    NONE = "none"  # 无滑点
    FIXED = "fixed"  # 固定比例
    REALISTIC = "realistic"  # 固定比例 + 市场冲击 (随仓位增大)
    AGGRESSIVE = "aggressive"  # realistic × 3


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


@dataclass
class BacktestOptions:
    """单次回测配置

    所有回测共用同一组选项时 (策略比较、滚动验证) 结果可直接比较。
    """

    # ========== 资金与仓位 ==========
    initial_balance: float = 1000.0
    max_trades: int | None = None  # None = 不限制
    risk_per_trade: float = 0.02  # 单笔最多占余额比例
    min_probability: float = 0.10  # 预测概率下限 (>1 视为百分比)
    payout_multiplier: float = 9.0  # 赢时返还 stake × 倍数 (含本金)
    kelly_variant: str = "fractional"
    min_stake: float = 0.35  # 最小下注金额

    # ========== 交易成本 ==========
    include_transaction_costs: bool = True
    slippage_model: SlippageModelType = SlippageModelType.REALISTIC
    spread_pct: float = 0.005  # 点差成本 (占 stake 比例)
    commission_per_trade: float = 0.0  # 每笔固定佣金
    base_slippage_pct: float = 0.001  # 基础滑点 (占 stake 比例)
    market_impact_factor: float = 0.05  # 市场冲击: stake/balance × 系数
    aggressive_multiplier: float = 3.0

    # ========== 延迟 ==========
    realistic_latency: bool = False
    latency_ticks: int = 1  # 启用延迟时结算推迟的 tick 数
    latency_penalty_pct: float = 0.01  # 逆向选择惩罚 (占 stake 比例)
    tick_interval_seconds: float = 2.0  # 时间戳缺失时的 tick 间隔

    # ========== 数据 ==========
    start_date: datetime | None = None
    end_date: datetime | None = None
    market_hours_only: bool = False
    market_open_hour: int = 8  # 含
    market_close_hour: int = 20  # 不含
    warmup_ticks: int = 100  # 开始交易前需要的样本数
    history_window: int = 1000  # 传给预测器的最近数字数量
    history_limit: int = 10000  # 从数据源读取的最多 tick 数

    # ========== 指标 ==========
    var_confidence: float = 0.95
    periods_per_year: int = 252

    # ========== 控制 ==========
    stop_on_circuit_breaker: bool = False  # True: 熔断后结束回测; False: 跳过决策点
    risk_overrides: dict[str, Any] = field(default_factory=dict)
    portfolio_overrides: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """初始化后验证"""
        self.slippage_model = SlippageModelType(self.slippage_model)
        self.start_date = _parse_datetime(self.start_date)
        self.end_date = _parse_datetime(self.end_date)
        if self.min_probability > 1:
            self.min_probability = self.min_probability / 100

        errors = self.validate()
        if errors:
            raise ValueError(f"Invalid BacktestOptions: {'; '.join(errors)}")

    def validate(self) -> list[str]:
        """验证配置

        Returns:
            错误信息列表 (空表示验证通过)
        """
        errors = []
        if self.initial_balance <= 0:
            errors.append("initial_balance must be positive")
        if self.max_trades is not None and self.max_trades < 1:
            errors.append("max_trades must be positive when set")
        if not 0 < self.risk_per_trade <= 1:
            errors.append("risk_per_trade must be in (0, 1]")
        if not 0 <= self.min_probability <= 1:
            errors.append("min_probability must be in [0, 1]")
        if self.payout_multiplier <= 1:
            errors.append("payout_multiplier must be greater than 1")
        if self.min_stake < 0:
            errors.append("min_stake must be non-negative")
        for name in ("spread_pct", "commission_per_trade", "base_slippage_pct", "market_impact_factor", "latency_penalty_pct"):
            if getattr(self, name) < 0:
                errors.append(f"{name} must be non-negative")
        if self.latency_ticks < 0:
            errors.append("latency_ticks must be non-negative")
        if self.start_date and self.end_date and self.start_date > self.end_date:
            errors.append(f"start_date ({self.start_date}) must not be after end_date ({self.end_date})")
        if not 0 <= self.market_open_hour < self.market_close_hour <= 24:
            errors.append("market hours must satisfy 0 <= open < close <= 24")
        if self.warmup_ticks < 1:
            errors.append("warmup_ticks must be positive")
        if not 0 < self.var_confidence < 1:
            errors.append("var_confidence must be in (0, 1)")
        return errors

    @classmethod
    def from_yaml(cls, path: str | Path) -> "BacktestOptions":
        """从 YAML 文件加载配置

        Raises:
            FileNotFoundError: 文件不存在
            ValueError: 配置无效
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        # 处理配置继承
        if "inherit" in data:
            parent_path = Path(data.pop("inherit"))
            if not parent_path.is_absolute():
                parent_path = path.parent / parent_path
            parent_dict = cls.from_yaml(parent_path).to_dict()
            parent_dict.update(data)
            data = parent_dict

        return cls.from_dict(_substitute_env_vars(data))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BacktestOptions":
        """从字典创建配置 (忽略未知字段)"""
        valid_fields = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in valid_fields})

    def to_dict(self) -> dict[str, Any]:
        """转换为字典"""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["slippage_model"] = self.slippage_model.value
        data["start_date"] = self.start_date.isoformat() if self.start_date else None
        data["end_date"] = self.end_date.isoformat() if self.end_date else None
        return data

    def to_yaml(self, path: str | Path) -> None:
        """保存配置到 YAML 文件"""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, allow_unicode=True)


@dataclass
class WalkForwardOptions:
    """滚动验证配置 (单位: tick)"""

    train_window: int = 1000
    test_window: int = 200
    step_size: int = 100
    min_slices: int = 3  # 少于此数不评估稳健性

    def __post_init__(self) -> None:
        if self.train_window < 1 or self.test_window < 1 or self.step_size < 1:
            raise ValueError("train_window, test_window and step_size must be positive")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WalkForwardOptions":
        valid_fields = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in valid_fields})

    def to_dict(self) -> dict[str, Any]:
        return {
            "train_window": self.train_window,
            "test_window": self.test_window,
            "step_size": self.step_size,
            "min_slices": self.min_slices,
        }


def _substitute_env_vars(data: Any) -> Any:
    """替换 ${VAR} 或 $VAR 格式的环境变量"""
    if isinstance(data, str):
        pattern = r"\$\{(\w+)\}|\$(\w+)"
        for match in re.findall(pattern, data):
            var_name = match[0] or match[1]
            env_value = os.environ.get(var_name)
            if env_value:
                if match[0]:
                    data = data.replace(f"${{{var_name}}}", env_value)
                else:
                    data = data.replace(f"${var_name}", env_value)
        return data
    if isinstance(data, dict):
        return {k: _substitute_env_vars(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_substitute_env_vars(v) for v in data]
    return data
