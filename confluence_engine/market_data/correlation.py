"""Pairwise price correlation across the asset universe."""

import logging
from collections.abc import Mapping, Sequence

import numpy as np

logger = logging.getLogger(__name__)


def pair_key(a: str, b: str) -> str:
    """Unordered pair key ("A-B" with symbols sorted)."""
    first, second = sorted((a, b))
    return f"{first}-{second}"


def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """
    Pearson correlation of two equal-length series.

    Returns:
        Coefficient in [-1, 1]; 0.0 for mismatched lengths, fewer than two
        points or a constant series
    """
    if len(x) != len(y) or len(x) < 2:
        return 0.0
    xs = np.asarray(x, dtype=float)
    ys = np.asarray(y, dtype=float)
    x_dev = xs - xs.mean()
    y_dev = ys - ys.mean()
    denominator = np.sqrt((x_dev**2).sum() * (y_dev**2).sum())
    if denominator == 0 or not np.isfinite(denominator):
        return 0.0
    return float(np.clip((x_dev * y_dev).sum() / denominator, -1.0, 1.0))


def _series(closes: Sequence[float], lookback: int, use_returns: bool) -> np.ndarray:
    window = np.asarray(closes[-(lookback + 1 if use_returns else lookback) :], dtype=float)
    if use_returns:
        if len(window) < 2 or np.any(window[:-1] == 0):
            return np.asarray([], dtype=float)
        return np.diff(window) / window[:-1]
    return window


def build_correlation_matrix(
    closes: Mapping[str, Sequence[float]],
    lookback: int = 12,
    use_returns: bool = True,
) -> dict[str, float]:
    """
    Build the pairwise correlation matrix for a cycle.

    Args:
        closes: Recent closes per symbol (oldest first)
        lookback: Number of recent points used per series
        use_returns: Correlate simple returns instead of raw closes

    Returns:
        Mapping of pair key to coefficient; empty for fewer than two assets
    """
    symbols = sorted(closes)
    if len(symbols) < 2:
        return {}

    series = {symbol: _series(closes[symbol], lookback, use_returns) for symbol in symbols}
    matrix: dict[str, float] = {}
    for i, a in enumerate(symbols):
        for b in symbols[i + 1 :]:
            matrix[pair_key(a, b)] = pearson_correlation(series[a], series[b])

    logger.info(f"📊 Correlation matrix built for {len(symbols)} assets ({len(matrix)} pairs)")
    return matrix
