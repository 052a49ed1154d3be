"""Tests for historical tick sources."""

from datetime import datetime, timedelta

import pandas as pd
import pytest

from tickrisk.backtest.data.tick_history import (
    DataFrameTickSource,
    InMemoryTickSource,
    filter_ticks,
)


def to_frame(ticks) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "timestamp": [t.timestamp for t in ticks],
            "price": [t.price for t in ticks],
            "last_digit": [t.last_digit for t in ticks],
        }
    )


class TestFilterTicks:
    """Tests for ordering, date filtering and limits."""

    def test_sorted_and_limited(self, ticks):
        result = filter_ticks(list(reversed(ticks)), limit=10)
        assert result == ticks[-10:]

    def test_date_range(self, ticks):
        start = ticks[10].timestamp
        end = ticks[19].timestamp
        result = filter_ticks(ticks, start=start, end=end)
        assert len(result) == 10
        assert result[0] == ticks[10]


class TestInMemoryTickSource:
    """Tests for the in-memory source."""

    def test_per_symbol(self, tick_factory):
        source = InMemoryTickSource(tick_factory("R_10", n=20) + tick_factory("R_25", n=30))
        assert source.symbols == ["R_10", "R_25"]
        assert len(source.get_ticks("R_25")) == 30
        assert source.get_ticks("R_50") == []


class TestDataFrameTickSource:
    """Tests for the pandas-backed source."""

    def test_from_dataframe(self, ticks):
        source = DataFrameTickSource(to_frame(ticks), symbol="R_10")
        loaded = source.get_ticks("R_10", limit=50)
        assert len(loaded) == 50
        assert loaded[-1].price == ticks[-1].price
        assert loaded[-1].last_digit == ticks[-1].last_digit
        assert loaded[-1].timestamp == ticks[-1].timestamp

    def test_csv_with_epoch_and_quote(self, tmp_path):
        start = datetime(2024, 1, 2, 9, 0, 0)
        epoch = int(pd.Timestamp(start).timestamp())
        path = tmp_path / "ticks.csv"
        pd.DataFrame(
            {
                "symbol": ["R_10", "R_10", "R_25"],
                "epoch": [epoch, epoch + 2, epoch + 2],
                "quote": [1234.56, 1234.57, 987.65],
            }
        ).to_csv(path, index=False)

        source = DataFrameTickSource.from_file(path)
        assert source.symbols == ["R_10", "R_25"]
        loaded = source.get_ticks("R_10")
        assert [t.last_digit for t in loaded] == [6, 7]
        assert loaded[1].timestamp == start + timedelta(seconds=2)

    def test_date_filter(self, ticks):
        source = DataFrameTickSource(to_frame(ticks), symbol="R_10")
        loaded = source.get_ticks("R_10", start=ticks[100].timestamp, end=ticks[199].timestamp)
        assert len(loaded) == 100

    def test_missing_columns(self):
        with pytest.raises(ValueError):
            DataFrameTickSource(pd.DataFrame({"price": [1.0]}), symbol="R_10")

    def test_missing_symbol(self, ticks):
        with pytest.raises(ValueError):
            DataFrameTickSource(to_frame(ticks))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            DataFrameTickSource.from_file(tmp_path / "missing.csv")

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "ticks.json"
        path.write_text("{}", encoding="utf-8")
        with pytest.raises(ValueError):
            DataFrameTickSource.from_file(path)
