"""Execution-tier decision table."""

from confluence_engine.config.models import PipelineConfig
from confluence_engine.models.results import ExecutionDecision
from confluence_engine.models.signal import ExecutionLevel


def should_auto_execute(
    confidence: float | None,
    expected_value: float | None,
    config: PipelineConfig,
) -> ExecutionDecision:
    """
    Classify a signal into an execution tier.

    Args:
        confidence: Final confidence (None treated as 0)
        expected_value: Expected value in quote currency (None treated as 0)
        config: Pipeline configuration (thresholds, sizing, mode)

    Returns:
        ExecutionDecision with the tier, size multiplier and warnings
    """
    confidence = confidence or 0.0
    expected_value = expected_value or 0.0
    conf = config.thresholds.confidence
    sizing = config.position_sizing
    ev_high = config.thresholds.expected_value.high

    confidence_pct = f"{confidence * 100:.2f}"
    ev_fixed = f"{expected_value:.2f}"

    if confidence >= conf.high and expected_value >= ev_high:
        return ExecutionDecision(
            level=ExecutionLevel.HIGH_CONFIDENCE_HIGH_EV,
            auto_tradeable=True,
            size_multiplier=sizing.high_confidence,
            reason=f"High confidence ({confidence_pct}%) + High EV (${ev_fixed})",
        )

    if confidence >= conf.high and expected_value > 0:
        return ExecutionDecision(
            level=ExecutionLevel.HIGH_CONFIDENCE_MEDIUM_EV,
            auto_tradeable=True,
            size_multiplier=sizing.high_confidence,
            reason=f"High confidence ({confidence_pct}%) + Medium EV (${ev_fixed})",
            warnings=(
                f"High confidence ({confidence_pct}%)",
                f"EV: ${ev_fixed} (below high threshold of ${ev_high:.2f})",
                "Consider monitoring EV during execution",
            ),
        )

    if conf.medium <= confidence < conf.high and expected_value > 0:
        return ExecutionDecision(
            level=ExecutionLevel.MEDIUM_CONFIDENCE_POSITIVE_EV,
            auto_tradeable=True,
            size_multiplier=sizing.medium_confidence,
            reason=f"Medium confidence ({confidence_pct}%) + Positive EV (${ev_fixed})",
            warnings=(
                f"Medium confidence ({confidence_pct}%)",
                f"EV: ${ev_fixed}",
                "Manual review recommended",
            ),
        )

    if config.is_autonomous and conf.reject <= confidence < conf.medium:
        return ExecutionDecision(
            level=ExecutionLevel.LOW_CONFIDENCE_FUTURES,
            auto_tradeable=True,
            size_multiplier=sizing.low_confidence * 0.5,
            reason=f"Low confidence futures signal (Conf: {confidence_pct}%, EV: ${ev_fixed})",
            warnings=(
                "LOW CONFIDENCE - Futures trading",
                f"Confidence: {confidence_pct}% (futures threshold: {conf.reject * 100:.0f}%+)",
                "Position size reduced to 50% (low confidence)",
                "Monitor closely - exit quickly if invalidated",
                "Leverage amplifies risk - use caution",
            ),
        )

    floor = conf.reject if config.is_autonomous else conf.low
    mode = "futures" if config.is_autonomous else "spot"
    return ExecutionDecision(
        level=ExecutionLevel.MARGINAL_REJECTED,
        auto_tradeable=False,
        size_multiplier=None,
        reason=(
            f"Signal quality insufficient: Confidence {confidence_pct}% < {floor * 100:.2f}% "
            f"({mode} minimum threshold). EV: ${ev_fixed}"
        ),
    )
