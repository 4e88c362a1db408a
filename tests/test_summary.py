"""Tests for level ranking, dominant level selection and the narrative."""

from datetime import datetime, timedelta, timezone

import pytest

from niftylevels.analysis.levels import detect_levels
from niftylevels.analysis.opening_range import calculate_opening_range
from niftylevels.analysis.signals import generate_signals
from niftylevels.analysis.summary import (
    compose_summary,
    rank_levels,
    session_bias,
    strength_score,
)
from niftylevels.config import AnalyzerConfig, RankingWeights
from niftylevels.models import BOUNCE, BUY, RESISTANCE, SELL, SUPPORT, Level, OpeningRange, Signal

IST = timezone(timedelta(hours=5, minutes=30))


def _level(kind: str, value: float, touches: int = 2) -> Level:
    label = "R1" if kind == RESISTANCE else "S1"
    return Level(
        id=f"{label}@{value:.2f}",
        kind=kind,
        label=label,
        value=value,
        touches=touches,
        strongest_move=5.0,
        avg_reaction_magnitude=4.0,
    )


def _signal(action: str, level_id: str = "S1@100.00") -> Signal:
    return Signal(
        id=f"{level_id}:{action}",
        level_id=level_id,
        time=datetime(2025, 1, 6, 10, 0, tzinfo=IST),
        action=action,
        price=100.0,
        confidence=0.5,
        confirmation="",
        rule=BOUNCE,
    )


class TestRanking:
    def test_strength_score_is_weighted_sum(self):
        level = _level(SUPPORT, 100.0, touches=3)  # avg 4.0, strongest 5.0
        weights = RankingWeights(touch_weight=1.0, reaction_weight=0.5, move_weight=0.25)
        assert strength_score(level, weights) == pytest.approx(3 + 2.0 + 1.25)

    def test_ties_broken_by_proximity_to_close(self):
        near = _level(RESISTANCE, 105.0)
        far = _level(RESISTANCE, 120.0)
        ranked = rank_levels([far, near], RESISTANCE, close=101.0, weights=RankingWeights())
        assert ranked == [near, far]

    def test_touches_outrank_when_weighted(self):
        strong = _level(SUPPORT, 95.0, touches=4)
        weak = _level(SUPPORT, 99.0, touches=1)
        ranked = rank_levels([weak, strong], SUPPORT, close=100.0, weights=RankingWeights())
        assert ranked[0] is strong


class TestBias:
    def test_bullish_close_above_range(self):
        assert session_bias(110.0, OpeningRange(100.0, 105.0), []) == "bullish"

    def test_bearish_sells_and_close_below(self):
        signals = [_signal(SELL), _signal(SELL), _signal(BUY)]
        assert session_bias(98.0, OpeningRange(100.0, 105.0), signals) == "bearish"

    def test_conflicting_votes_range_bound(self):
        signals = [_signal(SELL)]
        assert session_bias(110.0, OpeningRange(100.0, 105.0), signals) == "range-bound"

    def test_inside_range_no_signals_range_bound(self):
        assert session_bias(102.0, OpeningRange(100.0, 105.0), []) == "range-bound"


class TestComposeSummary:
    def test_oscillation_summary(self, oscillation_candles):
        levels = detect_levels(oscillation_candles)
        signals = generate_signals(oscillation_candles, levels)
        rng = calculate_opening_range(oscillation_candles)
        summary = compose_summary(oscillation_candles, rng, levels, signals)

        assert [lvl.label for lvl in summary.dominant_resistances] == ["R1"]
        assert [lvl.label for lvl in summary.dominant_supports] == ["S1"]
        assert len(summary.narrative) == 5
        assert summary.narrative[0].startswith("The first five minutes set a range of 100.00 to 106.80")
        assert "closed 1.80 pts above it" in summary.narrative[0]
        assert summary.narrative[1].startswith("R1 at 110.00 capped rallies with 2 touches")
        assert summary.narrative[2].endswith("latest signal: buy via bounce.")
        assert summary.narrative[3].startswith("2 confirmed signals (1 buy, 1 sell)")
        assert summary.narrative[-1] == "Session bias: bullish."

    def test_at_most_two_dominant_levels_descending(self, make_session):
        levels = [
            _level(SUPPORT, 95.0, touches=1),
            _level(SUPPORT, 97.0, touches=3),
            _level(SUPPORT, 99.0, touches=2),
        ]
        candles = make_session([100.0] * 8)
        rng = OpeningRange(99.0, 101.0)
        config = AnalyzerConfig()
        summary = compose_summary(candles, rng, levels, [], config)

        assert [lvl.value for lvl in summary.dominant_supports] == [97.0, 99.0]
        assert summary.dominant_resistances == []
        scores = [strength_score(lvl, config.ranking_weights) for lvl in summary.dominant_supports]
        assert scores == sorted(scores, reverse=True)
        assert summary.narrative[1] == "No resistance level formed during the session."
        assert summary.narrative[3] == "No level interaction met the confirmation rules."
