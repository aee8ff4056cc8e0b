"""Additive sub-scores for the confidence scorer.

Each function scores one factor for one trade side and never raises; missing
evidence contributes 0. ``side`` is None for non-directional kinds, which
score 0 everywhere.
"""

from confluence_engine.models.evidence import (
    ExternalData,
    IndicatorSet,
    MarketRegime,
    SupportResistance,
    TrendAlignment,
)
from confluence_engine.models.signal import Direction

TREND_MAX = 25
RISK_REWARD_MAX = 20
TECHNICAL_MAX = 30
CONTEXT_MAX = 10
EXTERNAL_MAX = 30
EXTERNAL_MAX_SOFTENED = 15
SR_MAX = 5
SR_MAX_TOP_RANKED = 10
DIVERGENCE_MAX = 15

BUY = Direction.BUY
SELL = Direction.SELL


def _matches(side: Direction | None, trend: str | None) -> bool:
    if side == BUY:
        return trend == "uptrend"
    if side == SELL:
        return trend == "downtrend"
    return False


def trend_alignment_score(
    side: Direction | None,
    alignment: TrendAlignment | None,
    indicators: IndicatorSet | None,
    price: float | None,
) -> float:
    """Trend Alignment (0-25) before rank bonuses."""
    if side is None:
        return 0
    if alignment is not None:
        daily_score = 10 if alignment.trend and _matches(side, alignment.trend) else 0
        h4_score = 8 if alignment.h4_aligned else 0
        h1_score = 7 if alignment.h1_aligned else 0
        daily_trend = alignment.daily_trend or alignment.trend

        if alignment.alignment_score > 0:
            if _matches(side, daily_trend):
                return round(alignment.alignment_score / 100 * 25)
            if daily_trend != "neutral":
                # Contradicting but directional: partial credit
                return round(alignment.alignment_score / 100 * 10)
            return 0
        return daily_score + h4_score + h1_score

    if indicators is None or not price or not indicators.ema20 or not indicators.ema50:
        return 0

    ema20, ema50, ema200 = indicators.ema20, indicators.ema50, indicators.ema200
    uptrend = price > ema20 > ema50
    downtrend = price < ema20 < ema50
    with_trend = (uptrend and side == BUY) or (downtrend and side == SELL)

    score = 0
    if with_trend:
        score += 10 + 7
        if ema200 and (
            (side == BUY and price > ema200 and ema50 > ema200)
            or (side == SELL and price < ema200 and ema50 < ema200)
        ):
            score += 8
    return score


def risk_reward_score(
    risk_reward: float | None,
    entry_price: float | None,
    stop_loss: float | None,
) -> float:
    """Risk/Reward Quality (0-20): ratio ladder plus stop tightness."""
    score = 0
    if risk_reward:
        if risk_reward >= 3.0:
            score += 15
        elif risk_reward >= 2.5:
            score += 12
        elif risk_reward >= 2.0:
            score += 10
        elif risk_reward >= 1.5:
            score += 7
        elif risk_reward >= 1.0:
            score += 3

    if stop_loss and entry_price:
        sl_pct = abs(entry_price - stop_loss) / entry_price * 100
        if sl_pct <= 1.5:
            score += 5
        elif sl_pct <= 2.0:
            score += 3
        elif sl_pct <= 2.5:
            score += 1
    return score


def technical_score(side: Direction | None, indicators: IndicatorSet | None, price: float | None) -> float:
    """Technical Consensus (0-30)."""
    if indicators is None or side is None or not price:
        return 0

    score = 0
    buy = side == BUY
    ind = indicators

    if ind.ema20 and ind.ema50 and ind.ema200:
        e20, e50, e200 = ind.ema20, ind.ema50, ind.ema200
        if buy:
            if price > e20 > e50 and price > e200 and e50 > e200:
                score += 8
            elif price > e20 > e50:
                score += 6
            elif price > e20:
                score += 4
            elif price > e50:
                score += 2
        else:
            if price < e20 < e50 and price < e200 and e50 < e200:
                score += 8
            elif price < e20 < e50:
                score += 6
            elif price < e20:
                score += 4
            elif price < e50:
                score += 2

    if ind.vwap:
        if (buy and price > ind.vwap) or (not buy and price < ind.vwap):
            score += 5

    if ind.bollinger is not None:
        middle = ind.bollinger.middle
        # Entries on the cheap side of the mean score higher
        if (buy and price < middle) or (not buy and price > middle):
            score += 4
        else:
            score += 1

    if ind.parabolic_sar:
        if (buy and price > ind.parabolic_sar) or (not buy and price < ind.parabolic_sar):
            score += 4

    if ind.obv is not None:
        if (buy and ind.obv > 0) or (not buy and ind.obv < 0):
            score += 4

    if ind.stochastic is not None:
        k = ind.stochastic.k
        if buy:
            score += 4 if k < 20 else 2 if k < 30 else 0 if k > 80 else 1
        else:
            score += 4 if k > 80 else 2 if k > 70 else 0 if k < 20 else 1
    elif ind.williams_r is not None:
        wr = ind.williams_r
        if buy:
            score += 4 if wr < -80 else 2 if wr < -70 else 0 if wr > -20 else 1
        else:
            score += 4 if wr > -20 else 2 if wr > -30 else 0 if wr < -80 else 1

    return min(score, TECHNICAL_MAX)


def market_context_score(regime: MarketRegime | None, atr: float | None, price: float | None) -> float:
    """Market Context (0-10): regime plus ATR% sweet spot."""
    score = 0
    if regime is not None:
        score += {"trending": 5, "neutral": 3, "choppy": 2}.get(regime.regime, 0)

    if atr and price:
        atr_pct = atr / price * 100
        if 1 <= atr_pct <= 3:
            score += 5
        elif atr_pct <= 5:
            score += 3
        else:
            score += 1
    return score


def external_base_score(side: Direction | None, external: ExternalData, price: float) -> float:
    """External Confirmation base factors (up to 30) excluding the futures bonus."""
    score = 0
    buy = side == BUY
    sell = side == SELL

    venue = external.derivatives
    if venue is not None and venue.funding_rate is not None:
        rate = venue.funding_rate
        if buy:
            score += 3 if rate < 0 else 2 if abs(rate) < 0.0001 else 1
        elif sell:
            score += 3 if rate > 0 else 2 if abs(rate) < 0.0001 else 1

    if venue is not None and venue.oi_trend:
        score += {"increasing": 3, "stable": 1}.get(venue.oi_trend, 0)

    book = external.order_book
    if book is not None and price > 0:
        if buy and book.imbalance > 0.1:
            score += 2
        elif sell and book.imbalance < -0.1:
            score += 2
        elif abs(book.imbalance) < 0.05:
            score += 1

        if buy and book.support_zones and book.support_zones[0].distance < price * 0.02:
            score += 2
        if sell and book.resistance_zones and book.resistance_zones[0].distance < price * 0.02:
            score += 2

    profile = external.volume_profile
    if profile is not None and price > 0:
        session = profile.session
        if session is not None and session.poc:
            poc_pct = abs((price - session.poc) / session.poc) * 100
            if poc_pct < 1:
                score += 3
            elif poc_pct < 2:
                score += 2
            elif session.val <= price <= session.vah:
                score += 1

        composite = profile.composite
        if composite is not None:
            if buy and composite.accumulation_zone and composite.accumulation_zone.contains(price):
                score += 2
            if sell and composite.distribution_zone and composite.distribution_zone.contains(price):
                score += 2

    structure = external.market_structure
    if structure is not None and structure.coc is not None:
        coc = structure.coc
        if (coc.direction == "bullish" and buy) or (coc.direction == "bearish" and sell):
            score += 4 if coc.reversal_signal else 2

    delta = external.volume_delta
    if delta is not None and delta.cvd_trend:
        if (delta.cvd_trend == "rising" and buy) or (delta.cvd_trend == "falling" and sell):
            score += 2

    chain = external.blockchain
    if chain is not None:
        flow = chain.estimated_exchange_flow
        if flow is not None and ((flow < 0 and buy) or (flow > 0 and sell)):
            score += 2  # Outflow is bullish, inflow bearish
        whale = chain.whale_activity_score
        if whale is not None and ((whale > 0 and buy) or (whale < 0 and sell)):
            score += 2

    if venue is not None and venue.premium is not None:
        if (venue.premium < 0 and buy) or (venue.premium > 0 and sell):
            score += 2

    return score


def support_resistance_score(
    side: Direction | None,
    levels: SupportResistance | None,
    price: float | None,
    top_ranked: bool,
) -> float:
    """Support/Resistance proximity (0-5, or 0-10 for top-ranked assets)."""
    cap = SR_MAX_TOP_RANKED if top_ranked else SR_MAX
    if levels is None or not price or side is None:
        return 0

    score = 0
    if side == BUY:
        support = levels.support
        if support and price > support:
            distance = (price - support) / price
            if distance < 0.05:
                score += 6 if top_ranked else 3
            elif distance < 0.10:
                score += 2 if top_ranked else 1
            elif top_ranked and distance < 0.15:
                score += 1
            if top_ranked and distance < 0.02:
                score += 2
    else:
        resistance = levels.resistance
        if resistance and price < resistance:
            distance = (resistance - price) / price
            if distance < 0.05:
                score += 4 if top_ranked else 2
            elif distance < 0.10:
                score += 2 if top_ranked else 1
            elif top_ranked and distance < 0.15:
                score += 1
            if top_ranked and distance < 0.02:
                score += 2

    return min(score, cap)


def divergence_score(side: Direction | None, indicators: IndicatorSet | None, price: float | None) -> float:
    """Divergence & Momentum (0-15): MACD histogram plus RSI extremity."""
    if indicators is None or side is None:
        return 0.0

    score = 0.0
    buy = side == BUY

    if indicators.macd is not None and indicators.macd.histogram is not None:
        hist = indicators.macd.histogram
        if buy:
            if hist > 0:
                score += 7.5
            elif hist > -0.1:
                score += 2
        else:
            score += 7.5 if hist < 0 else 2 if hist < 0.1 else 1

    if indicators.rsi14 is not None and price:
        rsi = indicators.rsi14
        if buy:
            score += 7.5 if rsi < 30 else 4 if rsi < 40 else 0 if rsi > 70 else 2.5
        else:
            score += 7.5 if rsi > 70 else 4 if rsi > 60 else 0 if rsi < 30 else 2.5

    return min(score, DIVERGENCE_MAX)
