"""Evidence reduction and confidence scoring."""

from .confidence import ConfidenceScorer
from .evidence_reducer import reduce_evidence
from .expected_value import calculate_expected_value
from .futures_confidence import calculate_futures_confidence
from .penalties import compose_penalties
from .trend import derive_trend_alignment

__all__ = [
    "ConfidenceScorer",
    "calculate_expected_value",
    "calculate_futures_confidence",
    "compose_penalties",
    "derive_trend_alignment",
    "reduce_evidence",
]
