"""
Tick History - 历史 tick 数据源

回测从 TickSource 读取按时间排序的 tick。提供:
- InMemoryTickSource: 内存中的 tick 列表 (测试 / 调用方已加载的数据)
- DataFrameTickSource: pandas DataFrame，支持从 CSV / Parquet 加载

文件格式: 列 symbol (可选), timestamp/epoch, price/quote, last_digit (可选)。
epoch 为 Unix 秒。缺少 symbol 列时由调用方指定。

Usage:
    source = DataFrameTickSource.from_file("data/R_10.parquet", symbol="R_10")
    ticks = source.get_ticks("R_10", limit=10000)
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Protocol

import pandas as pd

from tickrisk.engine.models.portfolio import TickEvent

logger = logging.getLogger(__name__)

_TIMESTAMP_COLUMNS = ("timestamp", "epoch", "time")
_PRICE_COLUMNS = ("price", "quote")


class TickSource(Protocol):
    """历史 tick 数据源协议"""

    def get_ticks(
        self,
        symbol: str,
        limit: int | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[TickEvent]:
        """返回按时间升序排列的 tick (最多最近 limit 个)"""
        ...


def filter_ticks(
    ticks: list[TickEvent],
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int | None = None,
) -> list[TickEvent]:
    """按时间排序，按日期范围过滤，保留最近 limit 个"""
    ordered = sorted(ticks, key=lambda t: t.timestamp)
    if start is not None:
        ordered = [t for t in ordered if t.timestamp >= start]
    if end is not None:
        ordered = [t for t in ordered if t.timestamp <= end]
    if limit is not None and len(ordered) > limit:
        ordered = ordered[-limit:]
    return ordered


class InMemoryTickSource:
    """内存 tick 数据源"""

    def __init__(self, ticks: list[TickEvent] | None = None) -> None:
        self._ticks: dict[str, list[TickEvent]] = {}
        for tick in ticks or []:
            self.add_tick(tick)

    def add_tick(self, tick: TickEvent) -> None:
        self._ticks.setdefault(tick.symbol, []).append(tick)

    @property
    def symbols(self) -> list[str]:
        return sorted(self._ticks)

    def get_ticks(
        self,
        symbol: str,
        limit: int | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[TickEvent]:
        return filter_ticks(self._ticks.get(symbol, []), start, end, limit)


class DataFrameTickSource:
    """pandas DataFrame tick 数据源"""

    def __init__(self, df: pd.DataFrame, symbol: str | None = None) -> None:
        self._df = self._normalize(df, symbol)

    @staticmethod
    def _normalize(df: pd.DataFrame, symbol: str | None) -> pd.DataFrame:
        df = df.copy()
        df.columns = [str(c).lower() for c in df.columns]

        ts_col = next((c for c in _TIMESTAMP_COLUMNS if c in df.columns), None)
        price_col = next((c for c in _PRICE_COLUMNS if c in df.columns), None)
        if ts_col is None or price_col is None:
            raise ValueError(
                f"Tick data needs a timestamp column {_TIMESTAMP_COLUMNS} "
                f"and a price column {_PRICE_COLUMNS}, got {list(df.columns)}"
            )

        if pd.api.types.is_numeric_dtype(df[ts_col]):
            df["timestamp"] = pd.to_datetime(df[ts_col], unit="s")
        else:
            df["timestamp"] = pd.to_datetime(df[ts_col])
        df["price"] = df[price_col].astype(float)

        if "symbol" not in df.columns:
            if symbol is None:
                raise ValueError("Tick data has no symbol column; pass symbol explicitly")
            df["symbol"] = symbol
        if "last_digit" not in df.columns:
            df["last_digit"] = None

        return df[["symbol", "timestamp", "price", "last_digit"]].sort_values("timestamp")

    @classmethod
    def from_file(cls, path: str | Path, symbol: str | None = None) -> "DataFrameTickSource":
        """从 CSV 或 Parquet 文件加载

        Raises:
            FileNotFoundError: 文件不存在
            ValueError: 不支持的格式或缺少必要的列
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Tick file not found: {path}")

        suffix = path.suffix.lower()
        if suffix == ".csv":
            df = pd.read_csv(path)
        elif suffix in (".parquet", ".pq"):
            df = pd.read_parquet(path)
        else:
            raise ValueError(f"Unsupported tick file format: {suffix}")

        logger.info(f"Loaded {len(df)} ticks from {path}")
        return cls(df, symbol)

    @property
    def symbols(self) -> list[str]:
        return sorted(self._df["symbol"].unique().tolist())

    def get_ticks(
        self,
        symbol: str,
        limit: int | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[TickEvent]:
        df = self._df[self._df["symbol"] == symbol]
        if start is not None:
            df = df[df["timestamp"] >= pd.Timestamp(start)]
        if end is not None:
            df = df[df["timestamp"] <= pd.Timestamp(end)]
        if limit is not None:
            df = df.tail(limit)

        ticks = []
        for row in df.itertuples(index=False):
            last_digit = None if pd.isna(row.last_digit) else int(row.last_digit)
            ticks.append(
                TickEvent(
                    symbol=row.symbol,
                    timestamp=row.timestamp.to_pydatetime(),
                    price=float(row.price),
                    last_digit=last_digit,
                )
            )
        return ticks
