"""Suppression of contradictory signals on highly correlated assets."""

import logging
from collections.abc import Mapping, Sequence

from confluence_engine.market_data.correlation import pair_key
from confluence_engine.models.results import RejectedSignal
from confluence_engine.models.signal import Direction, Signal

logger = logging.getLogger(__name__)

CORRELATION_REJECT_REASON = "High correlation with contradictory signals"


def majority_direction(signals: Sequence[Signal]) -> Direction | None:
    """BUY or SELL when one side outnumbers the other, else None."""
    buys = sum(1 for s in signals if s.direction == Direction.BUY)
    sells = sum(1 for s in signals if s.direction == Direction.SELL)
    if buys > sells:
        return Direction.BUY
    if sells > buys:
        return Direction.SELL
    return None


def filter_correlated(
    signals: Sequence[Signal],
    correlation_matrix: Mapping[str, float],
    threshold: float = 0.8,
    prefer_majority: bool = True,
) -> tuple[list[Signal], list[RejectedSignal]]:
    """
    Keep one side of every highly correlated contradictory pair.

    Signals are considered in priority order: those agreeing with the batch
    majority direction first (when ``prefer_majority`` and a majority exists),
    then by position in ``signals``. A signal is dropped when it opposes an
    already kept signal whose correlation with it exceeds ``threshold``.
    Non-directional signals always pass.

    Args:
        signals: Candidates that passed the quality filter
        correlation_matrix: Pair key to coefficient
        threshold: Correlation above which contradictory pairs conflict
        prefer_majority: Use the majority direction as the first tie-break

    Returns:
        Tuple of (kept signals in input order, rejected signals)
    """
    majority = majority_direction(signals) if prefer_majority else None

    def priority(index: int) -> tuple[int, int]:
        agrees = majority is not None and signals[index].direction == majority
        return (0 if agrees or majority is None else 1, index)

    kept_indices: list[int] = []
    rejected: dict[int, RejectedSignal] = {}
    for index in sorted(range(len(signals)), key=priority):
        signal = signals[index]
        if signal.direction is None:
            kept_indices.append(index)
            continue

        conflict = None
        for other_index in kept_indices:
            other = signals[other_index]
            if other.direction is None or other.direction == signal.direction:
                continue
            correlation = correlation_matrix.get(pair_key(signal.symbol, other.symbol))
            if correlation is not None and correlation > threshold:
                conflict = (other, correlation)
                break

        if conflict is None:
            kept_indices.append(index)
        else:
            other, correlation = conflict
            logger.info(
                f"🔗 {signal.symbol}: {signal.kind.value} suppressed, correlation {correlation:.2f} "
                f"with opposing {other.symbol} {other.kind.value}"
            )
            rejected[index] = RejectedSignal(
                signal=signal,
                reason=signal.rejection_reason or CORRELATION_REJECT_REASON,
            )

    kept = [signals[i] for i in sorted(kept_indices)]
    return kept, [rejected[i] for i in sorted(rejected)]
