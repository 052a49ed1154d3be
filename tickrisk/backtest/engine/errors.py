"""Backtest errors.

所有回测异常都继承 BacktestError。这些错误不会被内部恢复，直接抛给调用方，
失败的运行不产生部分报告。
"""


class BacktestError(Exception):
    """回测异常基类"""


class InsufficientHistoricalDataError(BacktestError):
    """历史数据不足

    请求的交易数超过 tick 历史能支持的决策点数量，或 tick 数少于预热要求。
    """

    def __init__(self, message: str, required: int | None = None, available: int | None = None):
        super().__init__(message)
        self.required = required
        self.available = available


class UnknownStrategyError(BacktestError, KeyError):
    """策略未注册 (在任何模拟开始前抛出)"""

    def __init__(self, strategy_id: str):
        super().__init__(strategy_id)
        self.strategy_id = strategy_id

    def __str__(self) -> str:
        return f"Unknown strategy: {self.strategy_id}"


class BacktestAlreadyRunningError(BacktestError):
    """同一模拟器上已有回测在运行 (不排队，不等待)"""

    def __init__(self, message: str = "Backtest already running"):
        super().__init__(message)
