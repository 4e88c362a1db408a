"""Analysis engine error taxonomy.

Per-session errors are recovered by the orchestrator (the session is
dropped); ``NoAnalyzableDataError`` is the only one that reaches callers.
"""


class AnalyzerError(Exception):
    """Base class for all analysis engine errors."""


class InsufficientDataError(AnalyzerError):
    """A session lacks the candles (or finite values) a calculation needs."""


class CandleSequenceError(AnalyzerError):
    """Candle timestamps are not strictly increasing within a session."""


class InvariantViolationError(AnalyzerError):
    """Computed output breaks an output-contract invariant."""


class InvalidLevelReferenceError(InvariantViolationError):
    """A signal references a level that does not exist in its session."""


class NoAnalyzableDataError(AnalyzerError):
    """No session in the batch could be analysed."""
