"""AnalysisOrchestrator: runs the per-session pipeline across a batch of sessions.

Each session goes opening range → levels → signals → invariant checks →
summary.  Sessions are independent and run on a thread pool; a session
that fails is dropped with a logged reason and never blocks the others.
The batch only fails when no session survives.
"""

import asyncio
import logging
import threading
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone
from numbers import Real
from typing import Callable, Optional, Union

from niftylevels.analysis.indicators import all_finite, price_range
from niftylevels.analysis.levels import detect_levels
from niftylevels.analysis.opening_range import calculate_opening_range
from niftylevels.analysis.signals import generate_signals
from niftylevels.analysis.summary import compose_summary
from niftylevels.config import AnalyzerConfig
from niftylevels.errors import (
    AnalyzerError,
    CandleSequenceError,
    InsufficientDataError,
    InvalidLevelReferenceError,
    InvariantViolationError,
    NoAnalyzableDataError,
)
from niftylevels.models import AnalyzerResponse, Candle, DailyAnalysis, Level, OpeningRange, Signal
from niftylevels.sources import CandleSource

logger = logging.getLogger("niftylevels.orchestrator")

Sessions = Union[Mapping[date, list[Candle]], CandleSource]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ── Validation ───────────────────────────────────────────────────────────


def validate_candles(candles: list[Candle]) -> None:
    """Check the input contract for one session.

    Raises ``InsufficientDataError`` on an empty session, a naive timestamp
    or a price that is non-numeric, non-finite or has ``high < low``.
    Raises ``CandleSequenceError`` when timestamps are not strictly
    increasing.
    """
    if not candles:
        raise InsufficientDataError("Session has no candles")
    for i, candle in enumerate(candles):
        if not isinstance(candle.time, datetime) or candle.time.utcoffset() is None:
            raise InsufficientDataError(f"Candle {i} has no timezone-aware time ({candle.time!r})")
        prices = (candle.open, candle.high, candle.low, candle.close)
        if not all(isinstance(p, Real) and not isinstance(p, bool) for p in prices):
            raise InsufficientDataError(f"Non-numeric price in candle {i} ({candle.time})")
        if not all_finite(*prices):
            raise InsufficientDataError(f"Non-finite price in candle {i} ({candle.time})")
        if candle.high < candle.low:
            raise InsufficientDataError(
                f"Candle {i} ({candle.time}) has high {candle.high} below low {candle.low}"
            )
        if i and candle.time <= candles[i - 1].time:
            raise CandleSequenceError(
                f"Candle {i} at {candle.time} does not follow {candles[i - 1].time}"
            )


def validate_output(
    candles: list[Candle],
    opening_range: OpeningRange,
    levels: list[Level],
    signals: list[Signal],
    touch_tolerance: float,
) -> None:
    """Check the output-contract invariants of one session.

    Raises ``InvalidLevelReferenceError`` for a signal pointing at an
    unknown level and ``InvariantViolationError`` for any other breach.
    """
    if opening_range.low > opening_range.high:
        raise InvariantViolationError(
            f"Opening range inverted: {opening_range.low} > {opening_range.high}"
        )

    session_low, session_high = price_range(candles)
    by_id: dict[str, Level] = {}
    for level in levels:
        if level.touches < 1:
            raise InvariantViolationError(f"Level {level.id} has no touches")
        if not session_low <= level.value <= session_high:
            raise InvariantViolationError(
                f"Level {level.id} outside session range "
                f"[{session_low}, {session_high}]"
            )
        if level.id in by_id:
            raise InvariantViolationError(f"Duplicate level id {level.id}")
        by_id[level.id] = level

    for signal in signals:
        level = by_id.get(signal.level_id)
        if level is None:
            raise InvalidLevelReferenceError(
                f"Signal {signal.id} references unknown level {signal.level_id}"
            )
        if abs(signal.price - level.value) > abs(level.value) * touch_tolerance:
            raise InvariantViolationError(
                f"Signal {signal.id} priced {signal.price} away from level {level.value}"
            )
        if not 0.0 <= signal.confidence <= 1.0:
            raise InvariantViolationError(
                f"Signal {signal.id} confidence {signal.confidence} outside [0, 1]"
            )


# ── Orchestrator ─────────────────────────────────────────────────────────


class AnalysisOrchestrator:
    """Entry point of the analysis engine.

    Args:
        config: Engine configuration; defaults when omitted.
        clock: Returns the ``fetchedAt`` timestamp.  Defaults to UTC now.
    """

    def __init__(
        self,
        config: Optional[AnalyzerConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._config = (config or AnalyzerConfig()).validate()
        self._clock = clock or _utc_now
        self._stop = threading.Event()

    @property
    def config(self) -> AnalyzerConfig:
        return self._config

    def stop(self) -> None:
        """Abandon sessions of the current run that have not started yet."""
        self._stop.set()

    def analyze_session(self, trading_date: date, candles: list[Candle]) -> DailyAnalysis:
        """Run the full pipeline for one session.

        Raises an ``AnalyzerError`` subclass when the session cannot be
        analysed.
        """
        cfg = self._config
        validate_candles(candles)

        opening_range = calculate_opening_range(
            candles, cfg.opening_range_minutes, cfg.session_open
        )
        levels = detect_levels(candles, cfg)
        signals = generate_signals(candles, levels, cfg)
        validate_output(candles, opening_range, levels, signals, cfg.touch_tolerance)
        summary = compose_summary(candles, opening_range, levels, signals, cfg)

        return DailyAnalysis(
            trading_date=trading_date,
            first_five_low=opening_range.low,
            first_five_high=opening_range.high,
            candles=list(candles),
            levels=levels,
            signals=signals,
            summary=summary,
        )

    def _run_session(self, trading_date: date, candles: list[Candle]) -> Optional[DailyAnalysis]:
        if self._stop.is_set():
            logger.info("Session %s abandoned: run stopped", trading_date)
            return None
        try:
            analysis = self.analyze_session(trading_date, candles)
        except InvariantViolationError as exc:
            logger.error("Session %s dropped: %s", trading_date, exc)
            return None
        except AnalyzerError as exc:
            logger.warning("Session %s dropped: %s", trading_date, exc)
            return None
        except Exception as exc:
            logger.exception("Session %s dropped: unexpected error: %s", trading_date, exc)
            return None

        logger.info(
            "Session %s: %d candles, %d levels, %d signals",
            trading_date, len(candles), len(analysis.levels), len(analysis.signals),
        )
        return analysis

    def analyze(self, sessions: Sessions) -> AnalyzerResponse:
        """Analyse every session and assemble the response, oldest date first.

        Raises ``NoAnalyzableDataError`` if no session could be analysed.
        """
        self._stop.clear()
        if isinstance(sessions, CandleSource):
            sessions = sessions.fetch_sessions()

        fetched_at = self._clock()
        ordered = sorted(sessions.items(), key=lambda item: item[0])

        with ThreadPoolExecutor(max_workers=self._config.max_workers) as pool:
            futures = [
                pool.submit(self._run_session, trading_date, list(candles))
                for trading_date, candles in ordered
            ]
            results = [f.result() for f in futures]

        days = [r for r in results if r is not None]
        if not days:
            raise NoAnalyzableDataError(
                f"None of {len(ordered)} session(s) could be analysed"
            )

        logger.info("Analysed %d of %d session(s)", len(days), len(ordered))
        return AnalyzerResponse(fetched_at=fetched_at, days=days)

    async def analyze_async(self, sessions: Sessions) -> AnalyzerResponse:
        """``analyze`` for asyncio callers; runs off the event loop."""
        return await asyncio.to_thread(self.analyze, sessions)
