"""Backtest data module.

Historical tick sources for the replay loop.
"""

from tickrisk.backtest.data.tick_history import (
    DataFrameTickSource,
    InMemoryTickSource,
    TickSource,
    filter_ticks,
)

__all__ = [
    "DataFrameTickSource",
    "InMemoryTickSource",
    "TickSource",
    "filter_ticks",
]
