"""Candle statistics shared by level detection and signal replay. Pure functions, no I/O."""

import numpy as np

from niftylevels.errors import InsufficientDataError
from niftylevels.models import Candle


def average_range(candles: list[Candle], end: int, period: int = 14) -> float:
    """Mean ``high - low`` of the *period* candles ending at index *end* (inclusive).

    Uses fewer candles when the session has not produced *period* yet.

    Raises ``InsufficientDataError`` if *end* does not index a candle.
    """
    if not 0 <= end < len(candles):
        raise InsufficientDataError(
            f"No candle at index {end} (session has {len(candles)})"
        )
    window = candles[max(0, end - period + 1): end + 1]
    ranges = np.array([c.high - c.low for c in window], dtype=float)
    return float(ranges.mean())


def all_finite(*values: float) -> bool:
    """Return True when every value is a finite number (no NaN / inf)."""
    return bool(np.all(np.isfinite(np.array(values, dtype=float))))


def price_range(candles: list[Candle]) -> tuple[float, float]:
    """Return ``(min low, max high)`` across *candles*.

    Raises ``InsufficientDataError`` on an empty sequence.
    """
    if not candles:
        raise InsufficientDataError("Cannot compute the price range of zero candles")
    lows = np.array([c.low for c in candles], dtype=float)
    highs = np.array([c.high for c in candles], dtype=float)
    return float(lows.min()), float(highs.max())
