"""
Daily Loss Tracker - 每日盈亏追踪

按自然日累计已结算交易的盈亏，供 RiskEngine 的单日亏损熔断使用。

日期切换在每次交易事件时检查 (而不是后台定时器)，
避免定时器与交易更新之间的竞争。

Usage:
    tracker = DailyLossTracker(clock=date.today)
    rolled = tracker.record(profit=-10.0)
    today = tracker.get_today()
"""

import logging
from collections.abc import Callable
from datetime import date

from tickrisk.engine.models.portfolio import DailyStats

logger = logging.getLogger(__name__)


class DailyLossTracker:
    """每日盈亏追踪器

    每个自然日一条 DailyStats 记录。当前日期由注入的 clock 提供，
    回测中 clock 指向被回放 tick 的日期。
    """

    def __init__(self, clock: Callable[[], date] | None = None) -> None:
        """初始化

        Args:
            clock: 返回当前日期的函数，默认 date.today
        """
        self._clock = clock or date.today
        self._history: dict[date, DailyStats] = {}
        self._current_date: date = self._clock()

    @property
    def current_date(self) -> date:
        return self._current_date

    def check_rollover(self) -> bool:
        """如果日期变更则切换到新的一天

        Returns:
            True 表示发生了日期切换
        """
        today = self._clock()
        if today == self._current_date:
            return False

        previous = self._history.get(self._current_date)
        if previous is not None:
            logger.info(
                f"Daily rollover {self._current_date} -> {today}: "
                f"profit={previous.profit:.2f}, trades={previous.trades}, losses={previous.losses}"
            )
        self._current_date = today
        return True

    def record(self, profit: float) -> bool:
        """记录一笔已结算交易

        Args:
            profit: 净盈亏 (负数为亏损)

        Returns:
            True 表示本次记录前发生了日期切换
        """
        rolled = self.check_rollover()
        daily = self._history.setdefault(self._current_date, DailyStats(date=self._current_date))
        daily.profit += profit
        daily.trades += 1
        if profit < 0:
            daily.losses += 1
        return rolled

    def get_today(self) -> DailyStats:
        """获取当日统计 (不存在则返回空记录，不写入历史)"""
        self.check_rollover()
        return self._history.get(self._current_date, DailyStats(date=self._current_date))

    def get_history(self) -> dict[date, DailyStats]:
        """全部历史记录 (按日期)"""
        return dict(self._history)

    def reset(self) -> None:
        """清空历史"""
        self._history.clear()
        self._current_date = self._clock()
