"""
Strategy Registry - 预测策略注册表

回测把预测模型视为一个黑盒 oracle: (最近的数字序列) -> Prediction | None。
策略在注册表中按 id 注册；回测或比较时未注册的 id 会在模拟开始前抛出
UnknownStrategyError。

内置参考策略:
- frequency: 选择历史窗口中出现频率最高的数字
- time_series: 用最后两个数字的趋势线性外推 (限制在 0-9)

Usage:
    registry = StrategyRegistry.with_defaults()
    registry.register("always_seven", lambda: CallableOracle(lambda digits: Prediction(7, 0.1)))
    oracle = registry.create("frequency")
    prediction = oracle.predict([1, 7, 7, 3])
"""

from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Callable, Sequence

import numpy as np

from tickrisk.backtest.engine.errors import UnknownStrategyError
from tickrisk.engine.models.portfolio import Prediction, TickEvent


class PredictionOracle(ABC):
    """预测策略基类"""

    name: str = "oracle"

    @abstractmethod
    def predict(self, recent_digits: Sequence[int]) -> Prediction | None:
        """预测下一个 tick 的数字

        Args:
            recent_digits: 最近的数字 (时间顺序，最后一个是当前 tick)

        Returns:
            Prediction，没有信号时返回 None
        """
        pass

    def fit(self, train_ticks: Sequence[TickEvent]) -> None:
        """在训练窗口上拟合 (滚动验证调用)，默认无操作"""
        return None


class FrequencyOracle(PredictionOracle):
    """频率策略: 选择出现最多的数字，概率为其出现频率

    频率相同时选择较小的数字。
    """

    name = "frequency"

    def predict(self, recent_digits: Sequence[int]) -> Prediction | None:
        if not recent_digits:
            return None
        counts = Counter(recent_digits)
        digit, count = min(counts.items(), key=lambda item: (-item[1], item[0]))
        return Prediction(digit=digit, probability=count / len(recent_digits))


class TimeSeriesOracle(PredictionOracle):
    """趋势外推策略

    取最近 window 个数字，方差为 0 或数据不足时不给信号。
    预测 = clip(最后一个 + (最后一个 − 倒数第二个), 0, 9)。
    """

    name = "time_series"

    def __init__(self, window: int = 10, min_samples: int = 5, confidence: float = 0.5) -> None:
        self.window = window
        self.min_samples = min_samples
        self.confidence = confidence

    def predict(self, recent_digits: Sequence[int]) -> Prediction | None:
        if len(recent_digits) < self.min_samples:
            return None

        series = np.asarray(recent_digits[-self.window :], dtype=float)
        if np.var(series) == 0:
            return None

        trend = series[-1] - series[-2]
        predicted = min(9.0, max(0.0, series[-1] + trend))
        return Prediction(digit=int(round(predicted)), probability=self.confidence)


class CallableOracle(PredictionOracle):
    """把普通函数包装成 oracle"""

    def __init__(
        self,
        func: Callable[[Sequence[int]], Prediction | None],
        name: str = "callable",
        fit_func: Callable[[Sequence[TickEvent]], None] | None = None,
    ) -> None:
        self._func = func
        self._fit_func = fit_func
        self.name = name

    def predict(self, recent_digits: Sequence[int]) -> Prediction | None:
        return self._func(recent_digits)

    def fit(self, train_ticks: Sequence[TickEvent]) -> None:
        if self._fit_func is not None:
            self._fit_func(train_ticks)


OracleFactory = Callable[[], PredictionOracle]


class StrategyRegistry:
    """策略注册表: strategy_id -> oracle 工厂

    每次回测调用工厂新建 oracle，避免运行之间共享拟合状态。
    """

    def __init__(self) -> None:
        self._factories: dict[str, OracleFactory] = {}

    @classmethod
    def with_defaults(cls) -> "StrategyRegistry":
        """包含 frequency 和 time_series 的注册表"""
        registry = cls()
        registry.register("frequency", FrequencyOracle)
        registry.register("time_series", TimeSeriesOracle)
        return registry

    def register(self, strategy_id: str, factory: OracleFactory) -> None:
        """注册 (同名覆盖)"""
        if not strategy_id:
            raise ValueError("strategy_id must be non-empty")
        self._factories[strategy_id] = factory

    def unregister(self, strategy_id: str) -> None:
        self._factories.pop(strategy_id, None)

    def __contains__(self, strategy_id: str) -> bool:
        return strategy_id in self._factories

    @property
    def strategy_ids(self) -> list[str]:
        return sorted(self._factories)

    def validate(self, strategy_ids: Sequence[str]) -> None:
        """校验全部 id，遇到第一个未注册的 id 抛出 UnknownStrategyError"""
        for strategy_id in strategy_ids:
            if strategy_id not in self._factories:
                raise UnknownStrategyError(strategy_id)

    def create(self, strategy_id: str) -> PredictionOracle:
        """新建 oracle

        Raises:
            UnknownStrategyError: 未注册
        """
        self.validate([strategy_id])
        return self._factories[strategy_id]()
