"""Evidence reducer: bullish/bearish indicator tally per asset.

The readings returned here are the single source of truth for directional
evidence. The opinion validator, the rationale builder and the opinion
request payload all consume the same tally, so the displayed explanation and
the enforced direction cannot drift apart.

Rule table (each available indicator votes at most once, absent ones skip):

- MACD histogram: > 0 bullish, otherwise bearish
- Volume change: > +10% bullish, < -10% bearish
- Bollinger middle: price above bullish, otherwise bearish
- Parabolic SAR: price above bullish, otherwise bearish
- Aroon: up > down bullish, otherwise bearish
- CCI: > 100 bullish, < -100 bearish
- VWAP: price above bullish, otherwise bearish
- 24h price change: > 0 bullish, otherwise bearish
- RSI14: < 30 bullish (oversold), > 70 bearish (overbought)
- Stochastic %K: < 20 bullish, > 80 bearish
- Williams %R: < -80 bullish, > -20 bearish
- EMA stack: price > EMA20 > EMA50 bullish, mirrored bearish
- RSI divergence text: "bullish"/"bearish"
- OBV sign: > 0 bullish, < 0 bearish
"""

import logging

from confluence_engine.models.evidence import IndicatorSet
from confluence_engine.models.results import IndicatorReading, IndicatorTally
from confluence_engine.models.signal import Direction

logger = logging.getLogger(__name__)

BULL = Direction.BUY
BEAR = Direction.SELL


def _collect_readings(indicators: IndicatorSet, price: float | None) -> list[IndicatorReading]:
    readings: list[IndicatorReading] = []

    def add(name: str, vote: Direction | None, detail: str) -> None:
        readings.append(IndicatorReading(name=name, vote=vote, detail=detail))

    if indicators.macd is not None and indicators.macd.histogram is not None:
        hist = indicators.macd.histogram
        add("MACD", BULL if hist > 0 else BEAR, f"histogram {hist:.4f}")

    if indicators.volume_change is not None:
        change = indicators.volume_change
        vote = BULL if change > 10 else BEAR if change < -10 else None
        add("Volume", vote, f"volume change {change:+.1f}%")

    if price:
        if indicators.bollinger is not None:
            middle = indicators.bollinger.middle
            add(
                "Bollinger",
                BULL if price > middle else BEAR,
                f"price {'above' if price > middle else 'below'} middle band {middle:g}",
            )
        if indicators.parabolic_sar is not None:
            sar = indicators.parabolic_sar
            add("Parabolic SAR", BULL if price > sar else BEAR, f"SAR {sar:g}")
        if indicators.vwap is not None:
            vwap = indicators.vwap
            add(
                "VWAP",
                BULL if price > vwap else BEAR,
                f"price {'above' if price > vwap else 'below'} VWAP {vwap:g}",
            )

    if indicators.aroon is not None:
        up, down = indicators.aroon.up, indicators.aroon.down
        add("Aroon", BULL if up > down else BEAR, f"up {up:g} / down {down:g}")

    if indicators.cci is not None:
        cci = indicators.cci
        vote = BULL if cci > 100 else BEAR if cci < -100 else None
        add("CCI", vote, f"CCI {cci:.1f}")

    if indicators.price_change_24h is not None:
        change = indicators.price_change_24h
        add("24h change", BULL if change > 0 else BEAR, f"{change:+.2f}%")

    if indicators.rsi14 is not None:
        rsi = indicators.rsi14
        vote = BULL if rsi < 30 else BEAR if rsi > 70 else None
        label = "oversold" if rsi < 30 else "overbought" if rsi > 70 else "neutral"
        add("RSI", vote, f"RSI14 {rsi:.1f} ({label})")

    if indicators.stochastic is not None:
        k = indicators.stochastic.k
        vote = BULL if k < 20 else BEAR if k > 80 else None
        add("Stochastic", vote, f"%K {k:.1f}")

    if indicators.williams_r is not None:
        wr = indicators.williams_r
        vote = BULL if wr < -80 else BEAR if wr > -20 else None
        add("Williams %R", vote, f"%R {wr:.1f}")

    if price and indicators.ema20 is not None and indicators.ema50 is not None:
        ema20, ema50 = indicators.ema20, indicators.ema50
        if price > ema20 > ema50:
            vote = BULL
        elif price < ema20 < ema50:
            vote = BEAR
        else:
            vote = None
        add("EMA stack", vote, f"price {price:g} / EMA20 {ema20:g} / EMA50 {ema50:g}")

    if indicators.rsi_divergence:
        text = indicators.rsi_divergence.lower()
        vote = BULL if "bullish" in text else BEAR if "bearish" in text else None
        add("RSI divergence", vote, indicators.rsi_divergence)

    if indicators.obv is not None:
        obv = indicators.obv
        vote = BULL if obv > 0 else BEAR if obv < 0 else None
        add("OBV", vote, f"OBV {obv:+,.0f}")

    return readings


def reduce_evidence(indicators: IndicatorSet | None, price: float | None) -> IndicatorTally:
    """Count bullish and bearish readings and derive the majority direction.

    Args:
        indicators: Primary-timeframe indicator set (may be None)
        price: Current price; price-relative rules are skipped without it

    Returns:
        IndicatorTally with counts, majority label and per-indicator readings
    """
    if indicators is None:
        return IndicatorTally(bullish=0, bearish=0, majority=Direction.MIXED)

    readings = _collect_readings(indicators, price)
    bullish = sum(1 for r in readings if r.vote == BULL)
    bearish = sum(1 for r in readings if r.vote == BEAR)

    if bullish > bearish:
        majority = Direction.BUY
    elif bearish > bullish:
        majority = Direction.SELL
    else:
        majority = Direction.MIXED

    for reading in readings:
        logger.debug(f"{reading.name}: {reading.vote.value if reading.vote else 'neutral'} ({reading.detail})")

    return IndicatorTally(
        bullish=bullish,
        bearish=bearish,
        majority=majority,
        readings=tuple(readings),
    )
