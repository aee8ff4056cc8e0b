"""Multi-timeframe trend alignment derived from daily/4h/1h indicator sets."""

from confluence_engine.models.evidence import (
    MultiTimeframeIndicators,
    TimeframeIndicators,
    TrendAlignment,
    TrendLabel,
)


def _ema_trend(tf: TimeframeIndicators) -> TrendLabel:
    if tf.price is None or tf.ema20 is None or tf.ema50 is None:
        return "neutral"
    if tf.price > tf.ema20 > tf.ema50:
        return "uptrend"
    if tf.price < tf.ema20 < tf.ema50:
        return "downtrend"
    return "neutral"


def _side_of_ema20(tf: TimeframeIndicators | None) -> int:
    """+1 above EMA20, -1 below, 0 when unknown."""
    if tf is None or tf.price is None or tf.ema20 is None:
        return 0
    if tf.price > tf.ema20:
        return 1
    if tf.price < tf.ema20:
        return -1
    return 0


def derive_trend_alignment(timeframes: MultiTimeframeIndicators | None) -> TrendAlignment:
    """
    Build a trend-alignment record from per-timeframe indicators.

    The daily EMA stack sets the trend. Lower timeframes count as aligned
    unless price sits on the wrong side of their EMA20. Score is 40 for a
    directional daily trend plus 30 per aligned lower timeframe; a neutral
    daily trend with agreeing 4h and 1h scores 60.

    Args:
        timeframes: Daily/4h/1h indicator sets

    Returns:
        TrendAlignment (neutral with score 0 when daily data is missing)
    """
    if timeframes is None or timeframes.daily is None:
        return TrendAlignment(trend="neutral", daily_trend="neutral", alignment_score=0.0)

    daily_trend = _ema_trend(timeframes.daily)
    h4_side = _side_of_ema20(timeframes.h4)
    h1_side = _side_of_ema20(timeframes.h1)

    h4_aligned = True
    h1_aligned = True
    if daily_trend == "uptrend":
        h4_aligned = h4_side >= 0
        h1_aligned = h1_side >= 0
    elif daily_trend == "downtrend":
        h4_aligned = h4_side <= 0
        h1_aligned = h1_side <= 0

    score = 0.0
    if daily_trend != "neutral":
        score = 40.0
        if h4_aligned:
            score += 30.0
        if h1_aligned:
            score += 30.0
    elif h4_side != 0 and h4_side == h1_side:
        score = 60.0

    return TrendAlignment(
        trend=daily_trend,
        daily_trend=daily_trend,
        h4_aligned=h4_aligned,
        h1_aligned=h1_aligned,
        alignment_score=score,
    )
