"""Session summary: dominant levels and templated narrative. Pure functions."""

from niftylevels.config import AnalyzerConfig, RankingWeights
from niftylevels.models import (
    BUY,
    RESISTANCE,
    SELL,
    SUPPORT,
    Candle,
    Level,
    OpeningRange,
    Signal,
    Summary,
)

DOMINANT_COUNT = 2


def strength_score(level: Level, weights: RankingWeights) -> float:
    """Weighted sum of touches, average reaction and strongest move."""
    return (
        weights.touch_weight * level.touches
        + weights.reaction_weight * level.avg_reaction_magnitude
        + weights.move_weight * level.strongest_move
    )


def rank_levels(
    levels: list[Level], kind: str, close: float, weights: RankingWeights
) -> list[Level]:
    """Levels of *kind* by descending strength; closer to *close* wins ties."""
    return sorted(
        (lvl for lvl in levels if lvl.kind == kind),
        key=lambda lvl: (-strength_score(lvl, weights), abs(lvl.value - close), lvl.value),
    )


def session_bias(close: float, opening_range: OpeningRange, signals: list[Signal]) -> str:
    """Infer ``"bullish"``, ``"bearish"`` or ``"range-bound"``.

    Net signal direction and the close relative to the opening range each
    vote once.
    """
    net = sum(1 if s.action == BUY else -1 for s in signals)
    score = (net > 0) - (net < 0)
    if close > opening_range.high:
        score += 1
    elif close < opening_range.low:
        score -= 1
    if score > 0:
        return "bullish"
    if score < 0:
        return "bearish"
    return "range-bound"


# ── Narrative ────────────────────────────────────────────────────────────


def _opening_sentence(close: float, opening_range: OpeningRange) -> str:
    span = (
        f"The first five minutes set a range of {opening_range.low:.2f} to "
        f"{opening_range.high:.2f} ({opening_range.width:.2f} pts)"
    )
    if close > opening_range.high:
        return f"{span}; price closed {close - opening_range.high:.2f} pts above it at {close:.2f}."
    if close < opening_range.low:
        return f"{span}; price closed {opening_range.low - close:.2f} pts below it at {close:.2f}."
    return f"{span}; price finished back inside it at {close:.2f}."


def _level_sentence(level: Level | None, kind: str, signals: list[Signal]) -> str:
    if level is None:
        return f"No {kind} level formed during the session."

    verb = "capped rallies" if kind == RESISTANCE else "absorbed selling"
    sentence = (
        f"{level.label} at {level.value:.2f} {verb} with {level.touches} "
        f"touch{'es' if level.touches != 1 else ''}, strongest reaction "
        f"{level.strongest_move:.2f} pts (avg {level.avg_reaction_magnitude:.2f})"
    )
    hits = [s for s in signals if s.level_id == level.id]
    if hits:
        latest = hits[-1]
        return f"{sentence}; latest signal: {latest.action} via {latest.rule}."
    return f"{sentence}."


def _signal_sentence(signals: list[Signal]) -> str:
    if not signals:
        return "No level interaction met the confirmation rules."
    buys = sum(1 for s in signals if s.action == BUY)
    sells = sum(1 for s in signals if s.action == SELL)
    best = max(signals, key=lambda s: s.confidence)
    return (
        f"{len(signals)} confirmed signal{'s' if len(signals) != 1 else ''} "
        f"({buys} buy, {sells} sell); highest confidence {best.confidence:.0%} "
        f"at {best.level_id}."
    )


def compose_summary(
    candles: list[Candle],
    opening_range: OpeningRange,
    levels: list[Level],
    signals: list[Signal],
    config: AnalyzerConfig | None = None,
) -> Summary:
    """Pick the dominant levels and write the session narrative."""
    config = config or AnalyzerConfig()
    close = candles[-1].close
    weights = config.ranking_weights

    resistances = rank_levels(levels, RESISTANCE, close, weights)[:DOMINANT_COUNT]
    supports = rank_levels(levels, SUPPORT, close, weights)[:DOMINANT_COUNT]

    bias = session_bias(close, opening_range, signals)
    narrative = [
        _opening_sentence(close, opening_range),
        _level_sentence(resistances[0] if resistances else None, RESISTANCE, signals),
        _level_sentence(supports[0] if supports else None, SUPPORT, signals),
        _signal_sentence(signals),
        f"Session bias: {bias}.",
    ]
    return Summary(
        dominant_resistances=resistances,
        dominant_supports=supports,
        narrative=narrative,
    )
