"""Shared candle fixtures.

All sessions are fixed, hand-built price paths: same input, same output.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from niftylevels.models import Candle

IST = timezone(timedelta(hours=5, minutes=30))
SESSION_DATE = date(2025, 1, 6)

# Zigzag between 101 and 109 in steps of 1.6; every candle spans ±1 around
# its path value, so lows touch 100 at candles 3, 13, 23 and highs touch 110
# at candles 8 and 18.  The tail drifts up without reaching 110 again.
OSCILLATION_PATH = [
    105.8, 104.2, 102.6, 101.0, 102.6, 104.2, 105.8, 107.4, 109.0, 107.4,
    105.8, 104.2, 102.6, 101.0, 102.6, 104.2, 105.8, 107.4, 109.0, 107.4,
    105.8, 104.2, 102.6, 101.0, 102.6, 104.2, 105.8, 107.4, 108.2, 108.6,
]


def session_start(day: date = SESSION_DATE) -> datetime:
    return datetime(day.year, day.month, day.day, 9, 15, tzinfo=IST)


def path_candles(path: list[float], day: date = SESSION_DATE, spread: float = 1.0) -> list[Candle]:
    """One-minute candles with open = close = path value and ±spread wicks."""
    start = session_start(day)
    return [
        Candle(
            time=start + timedelta(minutes=i),
            open=p,
            high=p + spread,
            low=p - spread,
            close=p,
        )
        for i, p in enumerate(path)
    ]


@pytest.fixture
def oscillation_candles() -> list[Candle]:
    """30 candles oscillating between 100 and 110, no breakout."""
    return path_candles(OSCILLATION_PATH)


@pytest.fixture
def wave_candles() -> list[Candle]:
    """75 candles on a drifting wave around 24000 (Nifty-like prices)."""
    path = []
    level = 24000.0
    pattern = [0, 18, 31, 22, 5, -14, -26, -19, -3, 12, 24, 15]
    for i in range(75):
        path.append(round(level + pattern[i % len(pattern)] + i * 1.5, 2))
    return path_candles(path, day=date(2025, 1, 7), spread=6.0)


@pytest.fixture
def make_session():
    """Factory: ``make_session(path, day=..., spread=...)`` → candles."""
    return path_candles
