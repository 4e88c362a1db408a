"""Analysis data models: typed representations of the engine's output contract."""

import json
from dataclasses import dataclass, field
from datetime import date, datetime


SUPPORT = "support"
RESISTANCE = "resistance"

BUY = "buy"
SELL = "sell"

BOUNCE = "bounce"
BREAKOUT = "breakout"


@dataclass(frozen=True)
class Candle:
    """A single fixed-interval OHLC bar."""

    time: datetime
    open: float
    high: float
    low: float
    close: float

    def to_dict(self) -> dict:
        return {
            "time": int(self.time.timestamp()),
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
        }


@dataclass(frozen=True)
class OpeningRange:
    """High/low band of the first minutes of a session."""

    low: float
    high: float

    @property
    def width(self) -> float:
        return self.high - self.low


@dataclass(frozen=True)
class Level:
    """A clustered support or resistance price with reaction statistics."""

    id: str
    kind: str  # "support" or "resistance"
    label: str  # "S1", "R2", ...
    value: float
    touches: int
    strongest_move: float
    avg_reaction_magnitude: float
    touch_indices: tuple[int, ...] = field(default=(), compare=False)

    @property
    def last_touch_index(self) -> int:
        """Candle index of the most recent pivot contributing to the level."""
        return max(self.touch_indices) if self.touch_indices else 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "label": self.label,
            "value": self.value,
            "touches": self.touches,
            "strongestMove": self.strongest_move,
            "avgReactionMagnitude": self.avg_reaction_magnitude,
        }


@dataclass(frozen=True)
class Signal:
    """A confirmed buy/sell interaction with a level."""

    id: str
    level_id: str
    time: datetime
    action: str  # "buy" or "sell"
    price: float
    confidence: float
    confirmation: str
    rule: str  # "bounce" or "breakout"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "levelId": self.level_id,
            "time": int(self.time.timestamp()),
            "action": self.action,
            "price": self.price,
            "confidence": self.confidence,
            "confirmation": self.confirmation,
            "rule": self.rule,
        }


@dataclass(frozen=True)
class Summary:
    """Dominant levels and narrative for one session."""

    dominant_resistances: list[Level]
    dominant_supports: list[Level]
    narrative: list[str]

    def to_dict(self) -> dict:
        return {
            "dominantResistances": [lvl.to_dict() for lvl in self.dominant_resistances],
            "dominantSupports": [lvl.to_dict() for lvl in self.dominant_supports],
            "narrative": list(self.narrative),
        }


@dataclass(frozen=True)
class DailyAnalysis:
    """Full analysis of a single trading session."""

    trading_date: date
    first_five_low: float
    first_five_high: float
    candles: list[Candle]
    levels: list[Level]
    signals: list[Signal]
    summary: Summary

    def to_dict(self) -> dict:
        return {
            "tradingDate": self.trading_date.isoformat(),
            "firstFiveLow": self.first_five_low,
            "firstFiveHigh": self.first_five_high,
            "candles": [c.to_dict() for c in self.candles],
            "levels": [lvl.to_dict() for lvl in self.levels],
            "signals": [s.to_dict() for s in self.signals],
            "summary": self.summary.to_dict(),
        }


@dataclass(frozen=True)
class AnalyzerResponse:
    """The engine's sole output artifact: every analysed session, oldest first."""

    fetched_at: datetime
    days: list[DailyAnalysis]

    def to_dict(self) -> dict:
        return {
            "fetchedAt": int(self.fetched_at.timestamp() * 1000),
            "days": [d.to_dict() for d in self.days],
        }

    def to_json(self, indent: int | None = None) -> str:
        """Render deterministic JSON (sorted keys)."""
        return json.dumps(self.to_dict(), sort_keys=True, indent=indent)
