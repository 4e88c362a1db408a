"""Opening range: first-minutes high/low of a session. Pure function."""

from datetime import datetime, timedelta
from typing import Optional

from niftylevels.errors import InsufficientDataError
from niftylevels.models import Candle, OpeningRange


def _session_anchor(candles: list[Candle], session_open: Optional[str]) -> datetime:
    """Start of the opening window.

    The first candle's time, or *session_open* (``"HH:MM"``) on the first
    candle's date in the candle's own timezone.
    """
    first = candles[0].time
    if session_open is None:
        return first
    hour, minute = (int(part) for part in session_open.split(":"))
    return first.replace(hour=hour, minute=minute, second=0, microsecond=0)


def calculate_opening_range(
    candles: list[Candle],
    minutes: int = 5,
    session_open: Optional[str] = None,
) -> OpeningRange:
    """Derive the opening range from the candles opening in the first *minutes*.

    A candle belongs to the window when ``anchor <= time < anchor + minutes``.

    Raises ``InsufficientDataError`` if no candle falls inside the window
    (empty session or truncated feed).
    """
    if not candles:
        raise InsufficientDataError("Session has no candles")

    start = _session_anchor(candles, session_open)
    end = start + timedelta(minutes=minutes)
    window = [c for c in candles if start <= c.time < end]
    if not window:
        raise InsufficientDataError(
            f"No candles between {start.isoformat()} and {end.isoformat()}"
        )

    return OpeningRange(
        low=min(c.low for c in window),
        high=max(c.high for c in window),
    )
