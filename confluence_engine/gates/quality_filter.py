"""Confidence and expected-value quality filter."""

import logging
import math
from dataclasses import dataclass

from confluence_engine.config.models import PipelineConfig
from confluence_engine.models.signal import Signal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RejectThresholds:
    """Reject floors in force for one cycle."""

    confidence: float
    expected_value: float
    limited_pairs: bool = False


def resolve_reject_thresholds(config: PipelineConfig, asset_count: int) -> RejectThresholds:
    """
    Resolve the confidence and EV reject floors for a cycle.

    Limited-pairs mode (few assets) raises the confidence floor to the medium
    tier, and the EV floor too in MANUAL mode. AUTONOMOUS mode always uses the
    lenient EV floor. MIN_CONFIDENCE_THRESHOLD / MIN_EV_THRESHOLD overrides
    win over both.

    Args:
        config: Pipeline configuration
        asset_count: Number of assets in the cycle

    Returns:
        RejectThresholds
    """
    conf = config.thresholds.confidence
    ev = config.thresholds.expected_value
    limited = config.limited_pairs.enabled and asset_count <= config.limited_pairs.max_assets

    confidence_floor = conf.medium if limited else conf.reject
    if config.is_autonomous:
        ev_floor = ev.autonomous_reject
    else:
        ev_floor = ev.medium if limited else ev.reject

    if config.confidence_reject_override is not None:
        confidence_floor = config.confidence_reject_override
    if config.ev_reject_override is not None:
        ev_floor = config.ev_reject_override

    if limited:
        logger.info(
            f"📊 Limited Pairs Mode ({asset_count} assets): Using relaxed thresholds "
            f"(confidence ≥{confidence_floor * 100:.0f}%, EV ≥${ev_floor:.2f})"
        )
        logger.info(
            f"   Max Risk: ${config.safety.max_risk_per_trade:.2f}, "
            f"Max Positions: {config.safety.max_open_positions}"
        )

    return RejectThresholds(confidence=confidence_floor, expected_value=ev_floor, limited_pairs=limited)


def is_invalid_confidence(confidence: float | None) -> bool:
    return confidence is None or math.isnan(confidence) or confidence == 0


class QualityFilter:
    """Rejects signals below the cycle's confidence or EV floor."""

    def __init__(self, thresholds: RejectThresholds) -> None:
        self.thresholds = thresholds

    def evaluate(self, signal: Signal) -> tuple[bool, str | None]:
        """
        Evaluate one directional signal.

        Signals the scorer auto-rejected (gatekeeper veto, hard penalty reject)
        fail regardless of the floors. A reason already recorded on the signal
        takes precedence over the threshold reason.

        Returns:
            Tuple of (passed, rejection_reason)
        """
        confidence = signal.confidence
        if is_invalid_confidence(confidence):
            logger.error(
                f"❌ {signal.symbol}: CRITICAL ERROR - Confidence is invalid ({confidence}) in quality filter "
                f"(kind={signal.kind.value}, entry={signal.entry_price or 'N/A'})"
            )
            return False, signal.rejection_reason or f"Confidence is invalid ({confidence}) - must be >= 10%"

        if signal.auto_rejected:
            return False, signal.rejection_reason or "Auto-rejected by confidence scorer"

        if confidence < self.thresholds.confidence:
            return False, signal.rejection_reason or (
                f"Confidence too low: {confidence * 100:.1f}% < {self.thresholds.confidence * 100:.1f}%"
            )

        ev = signal.expected_value
        if ev is not None and ev < self.thresholds.expected_value:
            return False, signal.rejection_reason or (
                f"EV too low: ${ev:.2f} < ${self.thresholds.expected_value:.2f}"
            )

        return True, None
