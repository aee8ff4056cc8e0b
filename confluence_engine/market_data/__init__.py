"""Evidence providers and the cross-asset correlation matrix."""

from .correlation import build_correlation_matrix, pair_key, pearson_correlation
from .provider import EvidenceProvider
from .stub_provider import StubEvidenceProvider

__all__ = [
    "EvidenceProvider",
    "StubEvidenceProvider",
    "build_correlation_matrix",
    "pair_key",
    "pearson_correlation",
]
