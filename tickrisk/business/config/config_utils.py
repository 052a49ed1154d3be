"""
Config Utilities - 配置工具函数

所有配置模块共享的工具函数：字典深合并、环境变量读取。
"""

import logging
import os
from typing import Any

logger = logging.getLogger(__name__)

ENV_PREFIX = "TICKRISK_"


def merge_overrides(
    base: dict[str, Any],
    overrides: dict[str, Any],
) -> dict[str, Any]:
    """递归深合并覆盖配置到基础配置

    用于 backtest_overrides 等场景：将覆盖字典递归合并到基础字典中。
    - 嵌套 dict：递归合并
    - 其他类型：直接覆盖
    - 跳过 "backtest_overrides" 键本身

    Args:
        base: 基础配置字典
        overrides: 覆盖字典

    Returns:
        合并后的配置字典（不修改原字典）
    """
    result = base.copy()
    for key, value in overrides.items():
        if key == "backtest_overrides":
            continue
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_overrides(result[key], value)
        else:
            result[key] = value
    return result


def _env_float(key: str, default: float) -> float:
    """从环境变量获取 float"""
    val = os.getenv(key)
    if val is not None:
        try:
            return float(val)
        except ValueError:
            logger.warning(f"Ignoring non-numeric {key}={val!r}")
    return default


def _env_int(key: str, default: int) -> int:
    """从环境变量获取 int"""
    val = os.getenv(key)
    if val is not None:
        try:
            return int(val)
        except ValueError:
            logger.warning(f"Ignoring non-integer {key}={val!r}")
    return default


def _env_bool(key: str, default: bool) -> bool:
    """从环境变量获取 bool"""
    val = os.getenv(key)
    if val is not None:
        return val.lower() in ("true", "1", "yes")
    return default


def apply_env_overrides(config: Any, prefix: str = ENV_PREFIX) -> Any:
    """用环境变量覆盖 dataclass 配置中的标量字段

    变量名为 prefix + 字段名大写，例如 TICKRISK_MAX_DRAWDOWN=0.15。
    仅处理 bool/int/float 字段，按字段当前值的类型解析。

    Args:
        config: dataclass 配置实例 (原地修改)
        prefix: 环境变量前缀

    Returns:
        同一个 config 实例
    """
    for name in config.__dataclass_fields__:
        key = f"{prefix}{name.upper()}"
        if os.getenv(key) is None:
            continue
        current = getattr(config, name)
        # bool 必须先于 int 判断
        if isinstance(current, bool):
            setattr(config, name, _env_bool(key, current))
        elif isinstance(current, int):
            setattr(config, name, _env_int(key, current))
        elif isinstance(current, float):
            setattr(config, name, _env_float(key, current))
    return config
