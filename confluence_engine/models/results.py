"""Result records produced by the scoring and filtering stages."""

from dataclasses import dataclass, field

from confluence_engine.models.signal import Direction, ExecutionLevel, Signal


@dataclass(frozen=True)
class IndicatorReading:
    """One indicator's contribution to the evidence tally."""

    name: str
    vote: Direction | None  # None when the reading sits in its neutral band
    detail: str


@dataclass(frozen=True)
class IndicatorTally:
    """Bullish/bearish vote count and majority label for one asset."""

    bullish: int
    bearish: int
    majority: Direction
    readings: tuple[IndicatorReading, ...] = ()

    @property
    def spread(self) -> int:
        return abs(self.bullish - self.bearish)


@dataclass(frozen=True)
class FuturesScores:
    """Per-factor futures sub-scores (total on a 0-100 scale)."""

    funding_rate: float = 0.0
    open_interest: float = 0.0
    liquidation: float = 0.0
    long_short_ratio: float = 0.0
    btc_correlation: float = 0.0
    whale_activity: float = 0.0
    total: float = 0.0
    confidence: float = 0.0
    strengths: tuple[str, ...] = ()
    weaknesses: tuple[str, ...] = ()


@dataclass(frozen=True)
class ConfidenceResult:
    """Outcome of one confidence-scoring call."""

    confidence: float
    total_score: float
    max_score: float
    breakdown: tuple[str, ...] = ()
    auto_rejected: bool = False
    rejection_reason: str | None = None
    futures_scores: FuturesScores | None = None


@dataclass(frozen=True)
class ExecutionDecision:
    """Execution tier for a surviving signal."""

    level: ExecutionLevel
    auto_tradeable: bool
    size_multiplier: float | None
    reason: str
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class RejectedSignal:
    """Candidate removed by the filter, retained for operator audit."""

    signal: Signal
    reason: str


@dataclass(frozen=True)
class CapitalAllocation:
    """Equal-split capital allocation for one pass."""

    total_capital: float
    per_signal: float
    slots: int


@dataclass
class CycleResult:
    """Everything one signal cycle produced."""

    signals: list[Signal] = field(default_factory=list)
    rejected: list[RejectedSignal] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)
    correlation_matrix: dict[str, float] = field(default_factory=dict)
    allocation: CapitalAllocation | None = None

    @property
    def is_empty(self) -> bool:
        return not self.signals
