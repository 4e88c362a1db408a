"""Tests for candle sources: CSV loading and session grouping."""

from datetime import date

import pandas as pd
import pytest

from niftylevels.models import Candle
from niftylevels.sources import (
    CandleSource,
    CsvCandleSource,
    InMemoryCandleSource,
    frame_to_sessions,
)


def _frame() -> pd.DataFrame:
    # 03:45 UTC = 09:15 IST; the last row is the next IST trading day.
    return pd.DataFrame(
        {
            "time": [
                "2025-01-06T03:46:00Z",
                "2025-01-06T03:45:00Z",
                "2025-01-06T09:59:00Z",
                "2025-01-07T03:45:00Z",
            ],
            "open": [100.5, 100.0, 101.0, 102.0],
            "high": [101.0, 100.8, 101.5, 102.5],
            "low": [100.2, 99.5, 100.9, 101.8],
            "close": [100.8, 100.5, 101.2, 102.1],
            "volume": [10, 12, 8, 5],
        }
    )


class TestFrameToSessions:
    def test_groups_by_local_date_and_sorts(self):
        sessions = frame_to_sessions(_frame(), tz="Asia/Kolkata")
        assert list(sessions) == [date(2025, 1, 6), date(2025, 1, 7)]

        first = sessions[date(2025, 1, 6)]
        assert len(first) == 3
        assert [c.time.hour * 60 + c.time.minute for c in first] == [
            9 * 60 + 15, 9 * 60 + 16, 15 * 60 + 29,
        ]
        assert isinstance(first[0], Candle)
        assert first[0].open == 100.0
        assert first[0].time.utcoffset().total_seconds() == 5.5 * 3600

    def test_epoch_seconds(self):
        df = pd.DataFrame(
            {"time": [1736135100, 1736135160], "open": [1.0, 2.0], "high": [1.5, 2.5],
             "low": [0.5, 1.5], "close": [1.2, 2.2]}
        )
        sessions = frame_to_sessions(df)
        assert list(sessions) == [date(2025, 1, 6)]
        assert len(sessions[date(2025, 1, 6)]) == 2

    def test_missing_column(self):
        with pytest.raises(ValueError, match="close"):
            frame_to_sessions(_frame().drop(columns=["close"]))

    def test_empty_frame(self):
        assert frame_to_sessions(_frame().iloc[0:0]) == {}


class TestSources:
    def test_csv_source(self, tmp_path):
        path = tmp_path / "nifty.csv"
        _frame().to_csv(path, index=False)
        source = CsvCandleSource(path)
        assert isinstance(source, CandleSource)
        sessions = source.fetch_sessions()
        assert sum(len(c) for c in sessions.values()) == 4

    def test_in_memory_source_copies(self):
        candles = frame_to_sessions(_frame())[date(2025, 1, 6)]
        source = InMemoryCandleSource({date(2025, 1, 6): candles})
        fetched = source.fetch_sessions()
        fetched[date(2025, 1, 6)].clear()
        assert len(source.fetch_sessions()[date(2025, 1, 6)]) == 3
