"""NiftyLevels: analysis configuration.

Every tunable of the engine lives in one frozen, serializable structure.
``load_config`` overlays ``NIFTY_*`` environment variables (and a ``.env``
file) on the documented defaults.
"""

import os
import re
from dataclasses import asdict, dataclass, field, fields
from typing import Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class ConfidenceWeights:
    """Blend of the components of a signal's confidence."""

    touches: float = 0.4
    reaction: float = 0.3
    sharpness: float = 0.3


@dataclass(frozen=True)
class RankingWeights:
    """Weights of the level strength score used for dominant-level ranking."""

    touch_weight: float = 1.0
    reaction_weight: float = 0.5
    move_weight: float = 0.25


@dataclass(frozen=True)
class AnalyzerConfig:
    """Typed configuration for every stage of the analysis engine."""

    # Level detection
    pivot_window: int = 3
    cluster_tolerance: float = 0.001  # fraction of price
    min_touches: int = 1
    reaction_lookahead: int = 6

    # Signal generation
    touch_tolerance: float = 0.001  # fraction of price
    breakout_buffer: float = 0.001  # fraction of price
    confirmation_candles: int = 2
    range_period: int = 14
    touch_saturation: int = 3
    reaction_saturation: float = 3.0  # avg reaction, in average candle ranges
    confidence_weights: ConfidenceWeights = field(default_factory=ConfidenceWeights)

    # Summary
    ranking_weights: RankingWeights = field(default_factory=RankingWeights)

    # Session
    opening_range_minutes: int = 5
    session_open: Optional[str] = None  # "HH:MM"; None anchors at the first candle
    timezone: str = "Asia/Kolkata"

    # Runtime
    max_workers: int = 4
    log_level: str = "INFO"

    def validate(self) -> "AnalyzerConfig":
        """Raise ``ValueError`` naming the first out-of-range field."""
        positive_ints = (
            "pivot_window",
            "min_touches",
            "reaction_lookahead",
            "confirmation_candles",
            "range_period",
            "touch_saturation",
            "opening_range_minutes",
            "max_workers",
        )
        for name in positive_ints:
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(self, name)}")

        for name in ("cluster_tolerance", "touch_tolerance", "breakout_buffer"):
            value = getattr(self, name)
            if not 0 <= value < 1:
                raise ValueError(f"{name} must be in [0, 1), got {value}")

        if self.reaction_saturation <= 0:
            raise ValueError(
                f"reaction_saturation must be > 0, got {self.reaction_saturation}"
            )

        cw = self.confidence_weights
        if min(cw.touches, cw.reaction, cw.sharpness) < 0:
            raise ValueError("confidence_weights must be non-negative")
        if cw.touches + cw.reaction + cw.sharpness <= 0:
            raise ValueError("confidence_weights must not all be zero")

        rw = self.ranking_weights
        if min(rw.touch_weight, rw.reaction_weight, rw.move_weight) < 0:
            raise ValueError("ranking_weights must be non-negative")

        if self.session_open is not None and not re.fullmatch(
            r"([01]\d|2[0-3]):[0-5]\d", self.session_open
        ):
            raise ValueError(
                f"session_open must be HH:MM, got {self.session_open!r}"
            )
        return self

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "AnalyzerConfig":
        """Build a config from a (possibly partial) dict, e.g. from ``to_dict``.

        Unknown keys raise ``ValueError``.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config field(s): {', '.join(unknown)}")

        values = dict(data)
        if isinstance(values.get("confidence_weights"), dict):
            values["confidence_weights"] = ConfidenceWeights(**values["confidence_weights"])
        if isinstance(values.get("ranking_weights"), dict):
            values["ranking_weights"] = RankingWeights(**values["ranking_weights"])
        return cls(**values).validate()


_ENV_FIELDS: dict[str, tuple[str, type]] = {
    "NIFTY_PIVOT_WINDOW": ("pivot_window", int),
    "NIFTY_CLUSTER_TOLERANCE": ("cluster_tolerance", float),
    "NIFTY_MIN_TOUCHES": ("min_touches", int),
    "NIFTY_REACTION_LOOKAHEAD": ("reaction_lookahead", int),
    "NIFTY_TOUCH_TOLERANCE": ("touch_tolerance", float),
    "NIFTY_BREAKOUT_BUFFER": ("breakout_buffer", float),
    "NIFTY_CONFIRMATION_CANDLES": ("confirmation_candles", int),
    "NIFTY_RANGE_PERIOD": ("range_period", int),
    "NIFTY_OPENING_RANGE_MINUTES": ("opening_range_minutes", int),
    "NIFTY_SESSION_OPEN": ("session_open", str),
    "NIFTY_TIMEZONE": ("timezone", str),
    "NIFTY_MAX_WORKERS": ("max_workers", int),
    "LOG_LEVEL": ("log_level", str),
}


def load_config(env_path: str | None = None) -> AnalyzerConfig:
    """Load configuration from environment variables.

    Variables that are absent keep their documented defaults.  Raises
    ``ValueError`` naming the variable when a value cannot be parsed or is
    out of range.
    """
    load_dotenv(dotenv_path=env_path)

    overrides: dict = {}
    for var, (name, cast) in _ENV_FIELDS.items():
        raw = os.environ.get(var)
        if raw is None or raw == "":
            continue
        try:
            overrides[name] = cast(raw)
        except ValueError:
            raise ValueError(f"Invalid value for {var}: {raw!r}") from None

    return AnalyzerConfig(**overrides).validate()
