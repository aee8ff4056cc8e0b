"""Additive-capped penalty composition for the confidence scorer.

Penalty fractions are summed first, the sum is capped, and the capped total
is applied once against the running confidence. The four volume-derived
signals are folded into one consolidated penalty with its own cap so the
same underlying evidence is not charged four times.
"""

from dataclasses import dataclass

from confluence_engine.models.evidence import ExternalData, IndicatorSet
from confluence_engine.models.signal import Direction

HARD_REJECT_CONFIDENCE = 0.3


@dataclass(frozen=True)
class PenaltyOutcome:
    """Result of applying penalties to a base confidence."""

    confidence: float
    total_penalty: float  # Uncapped sum of contributions
    applied_penalty: float  # Capped fraction actually applied
    details: tuple[str, ...] = ()
    rejected: bool = False
    rejection_reason: str | None = None


def rsi_penalty(rsi: float) -> tuple[float, str]:
    """Overbought penalty for a long entry (0 when RSI <= 70)."""
    if rsi > 80:
        return 0.15, f"RSI extreme overbought ({rsi:.2f}) - HIGH reversal risk"
    if rsi > 75:
        return 0.10, f"RSI strong overbought ({rsi:.2f}) - MEDIUM reversal risk"
    if rsi > 70:
        return 0.08, f"RSI overbought ({rsi:.2f}) - caution advised"
    return 0.0, ""


def macd_penalty(histogram: float) -> tuple[float, str]:
    """Bearish-momentum penalty for a long entry (0 when histogram >= 0)."""
    if histogram >= 0:
        return 0.0, ""
    if histogram < -0.5:
        return 0.12, f"MACD histogram strongly bearish ({histogram:.4f}) - weak momentum"
    if histogram < -0.2:
        return 0.08, f"MACD histogram bearish ({histogram:.4f}) - caution advised"
    return 0.05, f"MACD histogram negative ({histogram:.4f}) - slight bearish momentum"


def volume_penalty(
    side: Direction | None,
    external: ExternalData | None,
    price: float | None,
) -> tuple[float, list[str]]:
    """Consolidated volume penalty, uncapped, with its reasons."""
    if external is None:
        return 0.0, []
    analysis = external.volume_analysis
    volume_trend = external.enhanced_metrics.volume_trend if external.enhanced_metrics else None
    if analysis is None and volume_trend is None:
        return 0.0, []

    recommendation = analysis.recommendation if analysis else None
    action = recommendation.action if recommendation else None
    rec_confidence = recommendation.confidence if recommendation else 0.0

    penalty = 0.0
    reasons: list[str] = []

    if side == Direction.BUY:
        if action in ("hold", "exit", "wait"):
            if rec_confidence > 0.7:
                penalty += 0.08
                reasons.append(f"Volume analysis strongly recommends {action.upper()} ({rec_confidence:.0%} confidence)")
            elif rec_confidence > 0.5:
                penalty += 0.04
                reasons.append(f"Volume analysis recommends {action.upper()} ({rec_confidence:.0%} confidence)")

        if analysis is not None and price:
            nearby = next(
                (
                    zone
                    for zone in analysis.liquidity_zones
                    if zone.type == "resistance"
                    and min(abs(price - zone.low), abs(price - zone.high)) / price < 0.02
                ),
                None,
            )
            if nearby is not None:
                penalty += {"high": 0.04, "medium": 0.02}.get(nearby.strength, 0.0)
                reasons.append(f"Near {nearby.strength} resistance zone")

        net_delta = analysis.footprint.net_delta if analysis and analysis.footprint else None
        if net_delta is not None and net_delta < -50_000_000:
            penalty += 0.03
            reasons.append(f"Strong selling pressure (Net Delta: {net_delta / 1_000_000:.2f}M)")

        if volume_trend == "decreasing":
            penalty += 0.02
            reasons.append("Volume trend decreasing")

    elif side == Direction.SELL and action in ("enter", "hold"):
        if rec_confidence > 0.7:
            penalty = 0.12
        elif rec_confidence > 0.5:
            penalty = 0.06
        if penalty:
            reasons.append(f"Volume analysis recommends {action.upper()} ({rec_confidence:.0%} confidence)")

    return penalty, reasons


def compose_penalties(
    confidence: float,
    side: Direction | None,
    indicators: IndicatorSet | None,
    external: ExternalData | None,
    price: float | None,
    max_total: float = 0.5,
    max_volume: float = 0.15,
    min_confidence: float = 0.1,
) -> PenaltyOutcome:
    """
    Apply RSI, MACD and consolidated volume penalties to a confidence value.

    Args:
        confidence: Confidence before penalties
        side: Trade side (only longs take RSI/MACD penalties)
        indicators: Primary-timeframe indicators
        external: External data carrying volume analysis
        price: Current price
        max_total: Cap on the combined penalty fraction
        max_volume: Cap on the consolidated volume penalty
        min_confidence: Floor re-applied after penalties

    Returns:
        PenaltyOutcome; ``rejected`` is set when an extreme RSI or MACD reading
        would push the projected confidence below 30%.
    """
    total = 0.0
    details: list[str] = []

    def projected() -> float:
        return confidence * (1 - min(total, max_total))

    if side == Direction.BUY and indicators is not None:
        if indicators.rsi14 is not None:
            rsi = indicators.rsi14
            amount, reason = rsi_penalty(rsi)
            if amount:
                total += amount
                details.append(f"RSI Overbought: -{amount:.0%} ({reason})")
                if rsi > 80 and projected() < HARD_REJECT_CONFIDENCE:
                    return PenaltyOutcome(
                        confidence=min_confidence,
                        total_penalty=total,
                        applied_penalty=min(total, max_total),
                        details=tuple(details),
                        rejected=True,
                        rejection_reason=(
                            f"RSI extreme overbought {rsi:.2f}: "
                            "Estimated confidence would drop below 30%"
                        ),
                    )

        if indicators.macd is not None and indicators.macd.histogram is not None:
            hist = indicators.macd.histogram
            amount, reason = macd_penalty(hist)
            if amount:
                total += amount
                details.append(f"MACD Bearish: -{amount:.0%} ({reason})")
                if hist < -1.0 and projected() < HARD_REJECT_CONFIDENCE:
                    return PenaltyOutcome(
                        confidence=min_confidence,
                        total_penalty=total,
                        applied_penalty=min(total, max_total),
                        details=tuple(details),
                        rejected=True,
                        rejection_reason=(
                            f"MACD histogram extremely bearish {hist:.4f}: "
                            "Estimated confidence would drop below 30%"
                        ),
                    )

    vol_amount, vol_reasons = volume_penalty(side, external, price)
    if vol_amount > 0:
        capped_volume = min(vol_amount, max_volume)
        total += capped_volume
        details.append(f"Volume Analysis (Comprehensive): -{capped_volume:.0%} ({', '.join(vol_reasons)})")
        if vol_amount > max_volume:
            details.append(f"Note: Volume penalty capped at -{max_volume:.0%} (was {vol_amount:.0%})")

    applied = min(total, max_total)
    result = confidence
    if applied > 0:
        result = confidence * (1 - applied)
        if total > max_total:
            details.append(f"Note: Total penalty capped at {max_total:.0%} (was {total:.0%})")
        details.append(
            f"Total Penalty Applied: -{applied:.1%} (Confidence: {confidence:.1%} → {result:.1%})"
        )

    if result < min_confidence:
        result = min_confidence

    return PenaltyOutcome(
        confidence=result,
        total_penalty=total,
        applied_penalty=applied,
        details=tuple(details),
    )
