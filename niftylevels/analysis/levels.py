"""Support/Resistance level detection from intraday candles: pure functions.

Pipeline: pivots → clusters → levels.  Each stage returns new immutable
values so it can be exercised on its own.
"""

import logging
from dataclasses import dataclass

import numpy as np

from niftylevels.analysis.indicators import all_finite, price_range
from niftylevels.config import AnalyzerConfig
from niftylevels.models import RESISTANCE, SUPPORT, Candle, Level

logger = logging.getLogger("niftylevels.levels")


@dataclass(frozen=True)
class Pivot:
    """A local price extremum at one candle."""

    index: int
    price: float
    kind: str  # "resistance" for pivot-highs, "support" for pivot-lows


@dataclass(frozen=True)
class Cluster:
    """Pivots of one kind whose prices lie within the clustering tolerance."""

    kind: str
    members: tuple[Pivot, ...]

    @property
    def value(self) -> float:
        return sum(p.price for p in self.members) / len(self.members)

    @property
    def touch_indices(self) -> tuple[int, ...]:
        return tuple(sorted(p.index for p in self.members))


# ── Pivot extraction ─────────────────────────────────────────────────────


def find_pivot_highs(candles: list[Candle], window: int = 3) -> list[Pivot]:
    """Identify pivot highs.

    A pivot high is a candle whose high is the maximum of the *window*
    candles on each side.  On equal highs the earliest candle is the pivot:
    it must be strictly above its left neighbours and at least equal to its
    right neighbours.
    """
    pivots: list[Pivot] = []
    for i in range(window, len(candles) - window):
        high = candles[i].high
        left = all(candles[i - j].high < high for j in range(1, window + 1))
        right = all(candles[i + j].high <= high for j in range(1, window + 1))
        if left and right:
            pivots.append(Pivot(index=i, price=high, kind=RESISTANCE))
    return pivots


def find_pivot_lows(candles: list[Candle], window: int = 3) -> list[Pivot]:
    """Identify pivot lows (mirror of :func:`find_pivot_highs`)."""
    pivots: list[Pivot] = []
    for i in range(window, len(candles) - window):
        low = candles[i].low
        left = all(candles[i - j].low > low for j in range(1, window + 1))
        right = all(candles[i + j].low >= low for j in range(1, window + 1))
        if left and right:
            pivots.append(Pivot(index=i, price=low, kind=SUPPORT))
    return pivots


# ── Clustering ───────────────────────────────────────────────────────────


def _split_by_kind(members: list[Pivot]) -> list[Cluster]:
    """Turn one price-sorted tolerance group into single-kind clusters.

    A mixed group is cut wherever the kind changes, so each cluster is a
    contiguous price run and neighbouring clusters never interleave.
    """
    runs: list[list[Pivot]] = [[members[0]]]
    for pivot in members[1:]:
        if pivot.kind == runs[-1][-1].kind:
            runs[-1].append(pivot)
        else:
            runs.append([pivot])

    if len(runs) > 1:
        logger.debug(
            "Splitting mixed cluster near %.2f into %d single-kind runs",
            members[0].price, len(runs),
        )
    return [Cluster(kind=run[0].kind, members=tuple(run)) for run in runs]


def cluster_pivots(pivots: list[Pivot], tolerance: float = 0.001) -> list[Cluster]:
    """Cluster nearby pivot prices into levels.

    Pivots are sorted by price and a pivot joins the current cluster while
    it lies within ``tolerance × running mean`` of the cluster's running
    mean.  Returns single-kind clusters sorted by value.
    """
    if not pivots:
        return []

    ordered = sorted(pivots, key=lambda p: (p.price, p.index))
    groups: list[list[Pivot]] = []
    current: list[Pivot] = [ordered[0]]
    running_mean = ordered[0].price

    for pivot in ordered[1:]:
        if abs(pivot.price - running_mean) <= tolerance * abs(running_mean):
            current.append(pivot)
            running_mean = sum(p.price for p in current) / len(current)
        else:
            groups.append(current)
            current = [pivot]
            running_mean = pivot.price
    groups.append(current)

    clusters = [cluster for group in groups for cluster in _split_by_kind(group)]
    return sorted(clusters, key=lambda c: (c.value, c.kind))


# ── Reaction metrics ─────────────────────────────────────────────────────


def reaction_magnitudes(
    candles: list[Candle],
    cluster: Cluster,
    value: float,
    lookahead: int = 6,
) -> list[float]:
    """Favourable excursion away from *value* after each touch.

    Support touches measure how far highs rose above the level over the
    next *lookahead* candles; resistance touches measure how far lows fell
    below it.  A touch with no later candles reacts by 0.
    """
    magnitudes: list[float] = []
    for index in cluster.touch_indices:
        after = candles[index + 1: index + 1 + lookahead]
        if not after:
            magnitudes.append(0.0)
            continue
        if cluster.kind == SUPPORT:
            move = float(np.max([c.high for c in after])) - value
        else:
            move = value - float(np.min([c.low for c in after]))
        magnitudes.append(max(move, 0.0))
    return magnitudes


# ── Labels ───────────────────────────────────────────────────────────────


def _label_levels(levels: list[Level], close: float) -> list[Level]:
    """Label levels by rank within kind, nearest to *close* first."""
    labelled: list[Level] = []
    for kind, prefix in ((RESISTANCE, "R"), (SUPPORT, "S")):
        ranked = sorted(
            (lvl for lvl in levels if lvl.kind == kind),
            key=lambda lvl: (abs(lvl.value - close), lvl.value),
        )
        for rank, lvl in enumerate(ranked, start=1):
            label = f"{prefix}{rank}"
            labelled.append(
                Level(
                    id=f"{label}@{lvl.value:.2f}",
                    kind=lvl.kind,
                    label=label,
                    value=lvl.value,
                    touches=lvl.touches,
                    strongest_move=lvl.strongest_move,
                    avg_reaction_magnitude=lvl.avg_reaction_magnitude,
                    touch_indices=lvl.touch_indices,
                )
            )
    labelled.sort(key=lambda lvl: (lvl.value, lvl.kind))
    return labelled


# ── Public API ───────────────────────────────────────────────────────────


def detect_levels(
    candles: list[Candle],
    config: AnalyzerConfig | None = None,
) -> list[Level]:
    """Detect labelled support and resistance levels for one session.

    Args:
        candles: The session's candles, oldest first.
        config: Detection parameters; defaults when omitted.

    Returns:
        ``Level`` objects sorted by price.  Sessions too short to hold a
        full pivot window yield an empty list.
    """
    config = config or AnalyzerConfig()
    if not candles:
        return []

    window = config.pivot_window
    pivots = find_pivot_highs(candles, window) + find_pivot_lows(candles, window)
    clusters = cluster_pivots(pivots, config.cluster_tolerance)
    logger.debug("%d pivots → %d clusters", len(pivots), len(clusters))

    session_low, session_high = price_range(candles)
    levels: list[Level] = []
    for cluster in clusters:
        touches = len(cluster.members)
        if touches < config.min_touches:
            continue

        value = cluster.value
        moves = reaction_magnitudes(candles, cluster, value, config.reaction_lookahead)
        strongest = max(moves)
        average = sum(moves) / len(moves)
        if not all_finite(value, strongest, average):
            logger.warning("Discarding %s cluster with non-finite metrics", cluster.kind)
            continue

        levels.append(
            Level(
                id="",
                kind=cluster.kind,
                label="",
                value=min(max(round(value, 2), session_low), session_high),
                touches=touches,
                strongest_move=round(strongest, 2),
                avg_reaction_magnitude=round(average, 2),
                touch_indices=cluster.touch_indices,
            )
        )

    return _label_levels(levels, candles[-1].close)
