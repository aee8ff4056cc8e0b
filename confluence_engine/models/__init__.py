"""Domain models for the signal pipeline."""

from .evidence import EvidenceBundle, ExternalData, IndicatorSet, TrendAlignment
from .proposal import AccountSnapshot, Position, Proposal
from .results import (
    CapitalAllocation,
    ConfidenceResult,
    CycleResult,
    ExecutionDecision,
    FuturesScores,
    IndicatorReading,
    IndicatorTally,
    RejectedSignal,
)
from .signal import Direction, ExecutionLevel, Signal, SignalKind

__all__ = [
    "AccountSnapshot",
    "CapitalAllocation",
    "ConfidenceResult",
    "CycleResult",
    "Direction",
    "EvidenceBundle",
    "ExecutionDecision",
    "ExecutionLevel",
    "ExternalData",
    "FuturesScores",
    "IndicatorReading",
    "IndicatorSet",
    "IndicatorTally",
    "Position",
    "Proposal",
    "RejectedSignal",
    "Signal",
    "SignalKind",
    "TrendAlignment",
]
