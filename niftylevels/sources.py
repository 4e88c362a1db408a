"""Candle sources: hand sessions of candles to the orchestrator.

Acquisition itself (vendor APIs, network fetches) happens outside the
engine; these sources only shape already-available data into
``{trading_date: [Candle, ...]}``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date
from pathlib import Path
from typing import Protocol, runtime_checkable

import pandas as pd

from niftylevels.models import Candle

logger = logging.getLogger("niftylevels.sources")

_REQUIRED_COLUMNS = ["time", "open", "high", "low", "close"]


@runtime_checkable
class CandleSource(Protocol):
    """Interface every candle provider must satisfy."""

    def fetch_sessions(self) -> Mapping[date, list[Candle]]:
        """Return candles grouped by trading date, each list oldest first."""
        ...


class InMemoryCandleSource:
    """Wraps candles the caller already holds."""

    def __init__(self, sessions: Mapping[date, list[Candle]]) -> None:
        self._sessions = {d: list(candles) for d, candles in sessions.items()}

    def fetch_sessions(self) -> dict[date, list[Candle]]:
        return {d: list(candles) for d, candles in self._sessions.items()}


def frame_to_sessions(df: pd.DataFrame, tz: str = "Asia/Kolkata") -> dict[date, list[Candle]]:
    """Group a flat candle DataFrame into sessions by local calendar date.

    ``time`` may be epoch seconds or any timestamp pandas can parse; naive
    timestamps are taken as UTC.  Candles within a session are sorted by
    time.  Extra columns (volume, ...) are ignored.

    Raises ``ValueError`` if a required column is missing.
    """
    missing = [c for c in _REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Candle data missing column(s): {', '.join(missing)}")

    if df.empty:
        return {}

    df = df[_REQUIRED_COLUMNS].copy()
    if pd.api.types.is_numeric_dtype(df["time"]):
        df["time"] = pd.to_datetime(df["time"], unit="s", utc=True)
    else:
        df["time"] = pd.to_datetime(df["time"], utc=True)
    df["time"] = df["time"].dt.tz_convert(tz)
    df = df.sort_values("time", kind="stable")

    sessions: dict[date, list[Candle]] = {}
    for trading_date, group in df.groupby(df["time"].dt.date, sort=True):
        sessions[trading_date] = [
            Candle(
                time=row.time.to_pydatetime(),
                open=float(row.open),
                high=float(row.high),
                low=float(row.low),
                close=float(row.close),
            )
            for row in group.itertuples(index=False)
        ]
    logger.debug("Grouped %d candles into %d session(s)", len(df), len(sessions))
    return sessions


class CsvCandleSource:
    """Reads a CSV with ``time, open, high, low, close`` columns."""

    def __init__(self, path: str | Path, tz: str = "Asia/Kolkata") -> None:
        self._path = Path(path)
        self._tz = tz

    def fetch_sessions(self) -> dict[date, list[Candle]]:
        df = pd.read_csv(self._path)
        sessions = frame_to_sessions(df, self._tz)
        logger.info("Loaded %d session(s) from %s", len(sessions), self._path)
        return sessions
