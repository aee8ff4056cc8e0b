"""Futures-market confidence sub-scores.

Scores funding rate, open interest, liquidation zones, long/short ratio, BTC
correlation and whale flow for one trade side. The total is on a 0-100 scale;
the confidence scorer adds half of it to External Confirmation.
"""

import logging

from confluence_engine.models.evidence import (
    BtcCorrelationData,
    FundingRateData,
    FuturesMarketData,
    LiquidationData,
    LongShortRatioData,
    OpenInterestData,
    PriceZone,
    WhaleActivity,
)
from confluence_engine.models.results import FuturesScores
from confluence_engine.models.signal import Direction

logger = logging.getLogger(__name__)

WARNING_PREFIX = "Warning:"


def _clamp(value: float, upper: float) -> float:
    return max(0.0, min(upper, value))


# --- Funding rate (0-20) ---


def score_funding_rate(
    funding: FundingRateData,
    side: Direction,
    price_change_24h: float = 0.0,
) -> tuple[float, list[str]]:
    score = 0.0
    reasons: list[str] = []
    long = side == Direction.BUY
    current = funding.current

    if abs(current) > 0.001:
        extreme_high = current > 0
        if (extreme_high and not long) or (not extreme_high and long):
            score += 10
            reasons.append(f"Extreme funding ({current * 10000:.2f}bps) favors {side.value}")
        else:
            score -= 5
            reasons.append(f"{WARNING_PREFIX} Extreme funding contradicts {side.value} signal")

    if current > funding.rate_24h * 1.05 and not long:
        score += 5
        reasons.append("Funding momentum rising (favor SHORT)")
    elif current < funding.rate_24h * 0.95 and long:
        score += 5
        reasons.append("Funding momentum falling (favor LONG)")

    # Mean reversion towards the 7d average
    deviation = abs(current - funding.rate_7d) / max(0.0001, abs(funding.rate_7d))
    if min(1.0, deviation) > 0.5 and abs(current) > 0.0005:
        reversion = "short" if current > 0.001 else "long" if current < -0.001 else None
        if (reversion == "long" and long) or (reversion == "short" and not long):
            score += 5
            reasons.append("Mean reversion signal aligns with entry")

    divergence = max(-1.0, min(1.0, ((current - funding.rate_24h) * 10000 - price_change_24h) / 10))
    if divergence < -0.3 and long:
        score -= 3
        reasons.append(f"{WARNING_PREFIX} Funding divergence bearish for LONG")
    elif divergence > 0.3 and not long:
        score -= 3
        reasons.append(f"{WARNING_PREFIX} Funding divergence bullish for SHORT")

    return _clamp(score, 20), reasons


# --- Open interest (0-20) ---


def score_open_interest(
    oi: OpenInterestData,
    side: Direction,
    price_change_24h: float = 0.0,
) -> tuple[float, list[str]]:
    score = 0.0
    reasons: list[str] = []
    long = side == Direction.BUY

    trend = "rising" if oi.change_24h > 2 else "falling" if oi.change_24h < -2 else "neutral"
    if (trend == "rising" and long) or (trend == "falling" and not long):
        score += 8
        reasons.append(f"OI {trend} (favor {side.value})")
    elif trend != "neutral":
        score -= 4
        reasons.append(f"{WARNING_PREFIX} OI trend ({trend}) contradicts {side.value} signal")

    divergence = None
    if price_change_24h > 0 and oi.change_24h < -3:
        divergence = "bearish"
    elif price_change_24h < 0 and oi.change_24h > 3:
        divergence = "bullish"
    if divergence is not None:
        if (divergence == "bullish" and long) or (divergence == "bearish" and not long):
            score += 7
            reasons.append(f"OI divergence {divergence} (favor {side.value})")
        else:
            score -= 3
            reasons.append(f"{WARNING_PREFIX} OI divergence {divergence}")

    if abs(oi.momentum) > 50 and ((trend == "rising" and long) or (trend == "falling" and not long)):
        score += 5
        reasons.append("OI momentum breakout")

    return _clamp(score, 20), reasons


# --- Liquidation zones (0-15) ---


def score_liquidation(liquidation: LiquidationData, price: float) -> tuple[float, list[str]]:
    score = 0.0
    reasons: list[str] = []
    if price <= 0:
        return 0.0, reasons

    zones = list(liquidation.safe_entry_zones)
    if not zones and liquidation.liquidation_distance > 3:
        zones = [PriceZone(low=price * 0.99, high=price * 1.01)]

    if zones:
        if any(zone.contains(price) for zone in zones):
            score += 8
            reasons.append("Price in safe entry zone (low liquidation density)")
        else:
            score += 4
            reasons.append("Safe entry zones identified (not at current price)")

    clusters = liquidation.clusters
    distance = min((abs(c.price - price) / price * 100 for c in clusters), default=100.0)
    if distance > 5:
        score += 4
        reasons.append(f"Good liquidation distance ({distance:.1f}%)")
    elif distance > 3:
        score += 2
        reasons.append(f"Moderate liquidation distance ({distance:.1f}%)")
    else:
        score -= 3
        reasons.append(f"{WARNING_PREFIX} Low liquidation distance ({distance:.1f}%)")

    # Stop hunt: a large cluster close to price
    nearby = [c for c in clusters if abs(c.price - price) / price < 0.05]
    total_liquidations = liquidation.long_liquidations_24h + liquidation.short_liquidations_24h
    if nearby:
        target = max(nearby, key=lambda c: c.size)
        if target.size > 0.03 * total_liquidations:
            target_pct = abs(target.price - price) / price * 100
            if target_pct > 2:
                score += 3
                reasons.append(f"Stop hunt predicted but far ({target_pct:.1f}% away)")
            else:
                score -= 5
                reasons.append(f"{WARNING_PREFIX} Stop hunt likely nearby ({target_pct:.1f}% away)")

    return _clamp(score, 15), reasons


# --- Long/short ratio (0-15) ---


def score_long_short_ratio(ratio: LongShortRatioData, side: Direction) -> tuple[float, list[str]]:
    score = 0.0
    reasons: list[str] = []
    long = side == Direction.BUY
    retail = ratio.retail_long_pct

    contrarian = None
    strength = 0.0
    if retail > 70:
        contrarian, strength = "short", min(1.0, (retail - 70) / 20)
    elif retail < 30:
        contrarian, strength = "long", min(1.0, (30 - retail) / 20)
    if contrarian is not None:
        if (contrarian == "long" and long) or (contrarian == "short" and not long):
            score += 8 * strength
            reasons.append(f"Contrarian signal: fade retail ({contrarian.upper()})")
        else:
            score -= 4
            reasons.append(f"{WARNING_PREFIX} Contrarian signal contradicts {side.value} entry")

    if (ratio.long_pct < 30 and long) or (ratio.long_pct > 70 and not long):
        score += 4
        reasons.append(f"Extreme ratio favors {side.value} (reversal likely)")

    if abs(retail - ratio.pro_long_pct) / 100 > 0.1:
        if (retail > 60 and not long) or (retail < 40 and long):
            score += 3
            reasons.append("Follow pro, fade retail (aligns with entry)")

    return _clamp(score, 15), reasons


# --- BTC correlation (0-15) ---


def score_btc_correlation(correlation: BtcCorrelationData, side: Direction) -> tuple[float, list[str]]:
    score = 0.0
    reasons: list[str] = []
    long = side == Direction.BUY

    if correlation.strength == "strong":
        score += 5
        reasons.append("Strong BTC correlation (predictable moves)")
    elif correlation.strength == "moderate":
        score += 3
        reasons.append("Moderate BTC correlation")

    corr = correlation.correlation_7d
    if (long and corr > 0.5) or (not long and corr < -0.5):
        score += 7
        reasons.append(f"BTC correlation ({corr:.2f}) favors {side.value}")
    elif abs(corr) > 0.5:
        score -= 3
        reasons.append(f"{WARNING_PREFIX} BTC correlation ({corr:.2f}) may oppose {side.value} signal")

    if correlation.impact_multiplier > 1.5:
        score += 3
        reasons.append(f"High BTC impact multiplier ({correlation.impact_multiplier:.2f}x)")

    return _clamp(score, 15), reasons


# --- Whale activity (0-15) ---


def score_whale_activity(whale: WhaleActivity, side: Direction) -> tuple[float, list[str]]:
    long = side == Direction.BUY
    flow = whale.smart_money_flow
    score = whale.whale_score * 5
    reasons: list[str] = []

    if (long and flow > 0.3) or (not long and flow < -0.3):
        score += 10
        reasons.append(f"Strong smart money flow ({flow:.2f}) with {side.value}")
    elif abs(flow) > 0.2:
        if (long and flow > 0) or (not long and flow < 0):
            score += 5
            reasons.append(f"Smart money flow aligns with {side.value} signal")
        else:
            score -= 3
            reasons.append(f"{WARNING_PREFIX} Smart money flow opposes {side.value} signal")

    return _clamp(score, 15), reasons


def calculate_futures_confidence(
    data: FuturesMarketData,
    side: Direction,
    price: float,
    price_change_24h: float = 0.0,
) -> FuturesScores:
    """
    Score a futures snapshot for one trade side.

    Args:
        data: Futures market snapshot
        side: BUY (long) or SELL (short)
        price: Current price
        price_change_24h: 24h price change in percent

    Returns:
        FuturesScores with per-factor scores, 0-100 total and reasons
    """
    funding, funding_reasons = score_funding_rate(data.funding_rate, side, price_change_24h)
    oi, oi_reasons = score_open_interest(data.open_interest, side, price_change_24h)
    liquidation, liq_reasons = score_liquidation(data.liquidation, price)
    ratio, ratio_reasons = score_long_short_ratio(data.long_short_ratio, side)
    btc, btc_reasons = (
        score_btc_correlation(data.btc_correlation, side) if data.btc_correlation else (0.0, [])
    )
    whale, whale_reasons = score_whale_activity(data.whale_activity or WhaleActivity(), side)

    total = max(0.0, min(100.0, funding + oi + liquidation + ratio + btc + whale))
    reasons = funding_reasons + oi_reasons + liq_reasons + ratio_reasons + btc_reasons + whale_reasons

    return FuturesScores(
        funding_rate=funding,
        open_interest=oi,
        liquidation=liquidation,
        long_short_ratio=ratio,
        btc_correlation=btc,
        whale_activity=whale,
        total=total,
        confidence=total / 100,
        strengths=tuple(r for r in reasons if not r.startswith(WARNING_PREFIX)),
        weaknesses=tuple(r for r in reasons if r.startswith(WARNING_PREFIX)),
    )
