"""Signal generation: replays a session's candles against its levels. Pure functions, no I/O.

Two confirmation rules are evaluated per level, causally (only candles at
or after the level's last touch are eligible):

* **Bounce**: price tests the level from the near side and closes back
  on that side within the confirmation window.  Support → buy,
  resistance → sell.
* **Breakout**: price closes beyond the level by more than the buffer and
  the next candle closes on the same side.  Through resistance → buy,
  through support → sell.

Candidate events on one level form one interaction while each starts
within a confirmation window of the latest confirming candle so far;
an interaction yields a single signal, its most confident event.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from niftylevels.analysis.indicators import all_finite, average_range
from niftylevels.config import AnalyzerConfig
from niftylevels.models import (
    BOUNCE,
    BREAKOUT,
    BUY,
    RESISTANCE,
    SELL,
    SUPPORT,
    Candle,
    Level,
    Signal,
)

logger = logging.getLogger("niftylevels.signals")


@dataclass(frozen=True)
class _Event:
    """A confirmed interaction before confidence scoring."""

    trigger: int
    confirm: int
    rule: str
    action: str
    move: float
    reference: float  # extreme reached (bounce) or trigger close (breakout)


# ── Rules ────────────────────────────────────────────────────────────────


def _bounce_at(
    candles: list[Candle], level: Level, j: int, config: AnalyzerConfig
) -> Optional[_Event]:
    """Bounce off *level* triggered by candle *j*, if confirmed."""
    value = level.value
    band = value * config.touch_tolerance
    prev_close = candles[j - 1].close
    last = min(j + config.confirmation_candles, len(candles))

    if level.kind == SUPPORT:
        if not (prev_close > value and candles[j].low <= value + band):
            return None
        for m in range(j, last):
            if candles[m].close > value:
                extreme = min(c.low for c in candles[j: m + 1])
                return _Event(j, m, BOUNCE, BUY, candles[m].close - extreme, extreme)
        return None

    if not (prev_close < value and candles[j].high >= value - band):
        return None
    for m in range(j, last):
        if candles[m].close < value:
            extreme = max(c.high for c in candles[j: m + 1])
            return _Event(j, m, BOUNCE, SELL, extreme - candles[m].close, extreme)
    return None


def _breakout_at(
    candles: list[Candle], level: Level, j: int, config: AnalyzerConfig
) -> Optional[_Event]:
    """Breakout through *level* on candle *j*, confirmed by candle ``j + 1``."""
    if j + 1 >= len(candles):
        return None
    value = level.value
    buffer = value * config.breakout_buffer
    prev_close, close = candles[j - 1].close, candles[j].close
    follow = candles[j + 1].close

    if level.kind == RESISTANCE:
        threshold = value + buffer
        if prev_close <= threshold < close and follow > value:
            return _Event(j, j + 1, BREAKOUT, BUY, follow - value, close)
        return None

    threshold = value - buffer
    if prev_close >= threshold > close and follow < value:
        return _Event(j, j + 1, BREAKOUT, SELL, value - follow, close)
    return None


# ── Scoring ──────────────────────────────────────────────────────────────


def _confidence(
    candles: list[Candle], level: Level, event: _Event, config: AnalyzerConfig
) -> Optional[float]:
    """Blend level strength and confirmation sharpness into ``[0, 1]``.

    Returns ``None`` when the recent average range is zero or any term is
    not finite.
    """
    avg_range = average_range(candles, event.confirm, config.range_period)
    if not all_finite(avg_range) or avg_range <= 0:
        return None

    touch_score = min(level.touches / config.touch_saturation, 1.0)
    reaction_score = min(
        level.avg_reaction_magnitude / (avg_range * config.reaction_saturation), 1.0
    )
    sharpness = min(event.move / avg_range, 1.0)

    w = config.confidence_weights
    total = w.touches + w.reaction + w.sharpness
    raw = (w.touches * touch_score + w.reaction * reaction_score + w.sharpness * sharpness) / total
    if not all_finite(raw):
        return None
    return round(min(max(raw, 0.0), 1.0), 3)


def _describe(level: Level, event: _Event, candles: list[Candle]) -> str:
    """Deterministic confirmation text for an event."""
    name = f"{level.label} {level.value:.2f}"
    close = candles[event.confirm].close
    if event.rule == BOUNCE and event.action == BUY:
        return (
            f"Bounce off support {name}: dipped to {event.reference:.2f} and closed "
            f"back above at {close:.2f}, {event.move:.2f} pts off the low."
        )
    if event.rule == BOUNCE:
        return (
            f"Rejection at resistance {name}: tested {event.reference:.2f} and closed "
            f"back below at {close:.2f}, {event.move:.2f} pts off the high."
        )
    if event.action == BUY:
        return (
            f"Breakout above resistance {name}: closed at {event.reference:.2f} and "
            f"held {event.move:.2f} pts above on the next candle."
        )
    return (
        f"Breakdown below support {name}: closed at {event.reference:.2f} and "
        f"held {event.move:.2f} pts below on the next candle."
    )


# ── Public API ───────────────────────────────────────────────────────────


def _level_signals(
    candles: list[Candle], level: Level, config: AnalyzerConfig
) -> list[Signal]:
    scored: list[tuple[_Event, float]] = []
    for j in range(max(level.last_touch_index, 1), len(candles)):
        for event in (_bounce_at(candles, level, j, config), _breakout_at(candles, level, j, config)):
            if event is None:
                continue
            confidence = _confidence(candles, level, event, config)
            if confidence is None:
                logger.debug("Dropping %s at %s: confidence undefined", event.rule, level.label)
                continue
            scored.append((event, confidence))

    # A run of back-to-back candidates is one interaction with the level
    groups: list[list[tuple[_Event, float]]] = []
    group_end = -1
    for item in scored:
        if groups and item[0].trigger < group_end + config.confirmation_candles:
            groups[-1].append(item)
        else:
            groups.append([item])
        group_end = max(group_end, item[0].confirm)

    signals: list[Signal] = []
    for group in groups:
        event, confidence = max(group, key=lambda it: (it[1], -it[0].trigger))
        signals.append(
            Signal(
                id=f"{level.id}:{event.rule}:{event.confirm}",
                level_id=level.id,
                time=candles[event.confirm].time,
                action=event.action,
                price=level.value,
                confidence=confidence,
                confirmation=_describe(level, event, candles),
                rule=event.rule,
            )
        )
    return signals


def generate_signals(
    candles: list[Candle],
    levels: list[Level],
    config: AnalyzerConfig | None = None,
) -> list[Signal]:
    """Replay *candles* against *levels* and return confirmed signals.

    Args:
        candles: The session's candles, oldest first.
        levels: Levels detected for the same session.
        config: Confirmation and confidence parameters; defaults when omitted.

    Returns:
        Signals ordered by time, then level id.
    """
    config = config or AnalyzerConfig()
    if len(candles) < 2 or not levels:
        return []

    signals = [s for level in levels for s in _level_signals(candles, level, config)]
    signals.sort(key=lambda s: (s.time, s.level_id))
    return signals
