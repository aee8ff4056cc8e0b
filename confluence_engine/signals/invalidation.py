"""Invalidation-condition text for directional signals."""

import math

from confluence_engine.models.evidence import IndicatorSet
from confluence_engine.models.signal import Direction

GENERIC_PHRASES = (
    "if price moves against",
    "if trend reverses",
    "if conditions change",
    "if market turns",
)
MAX_CONDITIONS = 5


def needs_regeneration(condition: str | None) -> bool:
    """True when the supplied condition is missing, a placeholder or generic."""
    if condition is None:
        return True
    text = condition.strip().lower()
    if text in ("", "n/a", "na"):
        return True
    return any(phrase in text for phrase in GENERIC_PHRASES)


def _fallback(side: Direction | None, entry_price: float, stop_loss: float | None) -> str:
    if side == Direction.BUY:
        level = stop_loss or entry_price * 0.98
        return f"Price breaks below ${level:.2f} (stop loss level) OR main indicator reverses"
    if side == Direction.SELL:
        level = stop_loss or entry_price * 1.02
        return f"Price breaks above ${level:.2f} (stop loss level) OR main indicator reverses"
    return "Price breaks key support/resistance OR main indicator reverses"


def _buy_conditions(ind: IndicatorSet, price: float, stop_loss: float | None) -> list[str]:
    conditions: list[str] = []
    if ind.rsi14 is not None:
        rsi = ind.rsi14
        if rsi > 70:
            conditions.append(f"RSI(14) {rsi:.2f} breaks back below {max(65, math.floor(rsi - 5))} (momentum failure)")
        elif rsi < 50:
            conditions.append(f"RSI(14) breaks back below {max(30, math.floor(rsi - 10))} (momentum failure)")
        else:
            conditions.append("RSI(14) breaks below 50 (momentum failure)")
    if ind.macd is not None and ind.macd.histogram is not None:
        hist = ind.macd.histogram
        if hist > 0:
            conditions.append(f"MACD histogram turns negative (from +{hist:.4f}, bearish momentum)")
        else:
            conditions.append(f"MACD histogram fails to recover above 0 (remains {hist:.4f})")
    if ind.obv is not None and ind.obv > 0:
        conditions.append(f"OBV turns negative (from +{ind.obv:.2f}, selling pressure)")
    support = ind.support_resistance.support if ind.support_resistance else None
    if support and 0 < support < price:
        conditions.append(f"Price breaks below ${support:.2f} (support level)")
    if stop_loss and stop_loss > 0:
        conditions.append(f"Price breaks below ${stop_loss:.2f} (stop loss level)")
    if ind.bollinger is not None:
        if price > ind.bollinger.lower:
            conditions.append(f"Price breaks below ${ind.bollinger.lower:.2f} (BB lower band)")
        if price > ind.bollinger.middle:
            conditions.append(f"Price breaks below ${ind.bollinger.middle:.2f} (BB middle, bearish)")
    if ind.parabolic_sar and price > ind.parabolic_sar:
        conditions.append(f"Price breaks below Parabolic SAR ${ind.parabolic_sar:.2f} (bearish reversal)")
    if ind.vwap and price > ind.vwap:
        conditions.append(f"Price breaks below VWAP ${ind.vwap:.2f} (bearish)")
    if ind.ema20 and price > ind.ema20:
        conditions.append(f"Price breaks below EMA20 ${ind.ema20:.2f} (trend breakdown)")
    if ind.ema50 and price > ind.ema50:
        conditions.append(f"Price breaks below EMA50 ${ind.ema50:.2f} (major trend breakdown)")
    if ind.adx is not None and ind.adx.adx > 20:
        conditions.append(f"ADX drops below 20 (from {ind.adx.adx:.2f}, trend weakening)")
    return conditions


def _sell_conditions(ind: IndicatorSet, price: float, stop_loss: float | None) -> list[str]:
    conditions: list[str] = []
    if ind.rsi14 is not None:
        rsi = ind.rsi14
        if rsi < 30:
            conditions.append(f"RSI(14) {rsi:.2f} breaks back above {min(35, math.ceil(rsi + 5))} (momentum failure)")
        elif rsi > 50:
            conditions.append(f"RSI(14) breaks back above {min(70, math.ceil(rsi + 10))} (momentum failure)")
        else:
            conditions.append("RSI(14) breaks above 50 (momentum failure)")
    if ind.macd is not None and ind.macd.histogram is not None:
        hist = ind.macd.histogram
        if hist < 0:
            conditions.append(f"MACD histogram turns positive (from {hist:.4f}, bullish momentum)")
        else:
            conditions.append(f"MACD histogram fails to decline below 0 (remains +{hist:.4f})")
    if ind.obv is not None and ind.obv < 0:
        conditions.append(f"OBV turns positive (from {ind.obv:.2f}, buying pressure)")
    resistance = ind.support_resistance.resistance if ind.support_resistance else None
    if resistance and resistance > price:
        conditions.append(f"Price breaks above ${resistance:.2f} (resistance level)")
    if stop_loss and stop_loss > 0:
        conditions.append(f"Price breaks above ${stop_loss:.2f} (stop loss level)")
    if ind.bollinger is not None:
        if price < ind.bollinger.upper:
            conditions.append(f"Price breaks above ${ind.bollinger.upper:.2f} (BB upper band)")
        if price < ind.bollinger.middle:
            conditions.append(f"Price breaks above ${ind.bollinger.middle:.2f} (BB middle, bullish)")
    if ind.parabolic_sar and price < ind.parabolic_sar:
        conditions.append(f"Price breaks above Parabolic SAR ${ind.parabolic_sar:.2f} (bullish reversal)")
    if ind.vwap and price < ind.vwap:
        conditions.append(f"Price breaks above VWAP ${ind.vwap:.2f} (bullish)")
    if ind.ema20 and price < ind.ema20:
        conditions.append(f"Price breaks above EMA20 ${ind.ema20:.2f} (trend breakdown)")
    if ind.ema50 and price < ind.ema50:
        conditions.append(f"Price breaks above EMA50 ${ind.ema50:.2f} (major trend breakdown)")
    if ind.adx is not None and ind.adx.adx > 20:
        conditions.append(f"ADX drops below 20 (from {ind.adx.adx:.2f}, trend weakening)")
    return conditions


def generate_invalidation_condition(
    side: Direction | None,
    indicators: IndicatorSet | None,
    price: float | None,
    entry_price: float,
    stop_loss: float | None,
) -> str:
    """
    Build an invalidation predicate from the available evidence.

    Args:
        side: Trade side (None for management kinds)
        indicators: Primary-timeframe indicators
        price: Current price
        entry_price: Signal entry price (fallback level base)
        stop_loss: Stop-loss level, if known

    Returns:
        Up to five conditions joined with " OR "
    """
    if indicators is None or not price or price <= 0 or side is None:
        return _fallback(side, entry_price, stop_loss)

    if side == Direction.BUY:
        conditions = _buy_conditions(indicators, price, stop_loss)
    else:
        conditions = _sell_conditions(indicators, price, stop_loss)

    if not conditions:
        return _fallback(side, entry_price, stop_loss)
    return " OR ".join(conditions[:MAX_CONDITIONS])
