"""ATR-based stop loss and minimum reward:risk take profit."""

import logging
from dataclasses import dataclass

from confluence_engine.config.models import StopsConfig
from confluence_engine.models.signal import Direction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExitPlan:
    """Stop, target and derived reward:risk for one entry."""

    stop_loss: float
    stop_distance: float
    take_profit: float
    risk_reward: float


def stop_loss_pct(atr: float | None, entry_price: float, config: StopsConfig) -> float:
    """
    Stop distance as a fraction of entry, widened with volatility.

    ATR% above the high threshold uses 2.0x ATR (3% minimum), above the
    medium threshold 1.75x (2% minimum), otherwise 1.5x (1.5% minimum); a
    wick buffer is added. Without ATR the fallback percentage is used.
    """
    if not atr or entry_price <= 0:
        return config.fallback_stop_pct

    atr_pct = atr / entry_price * 100
    if atr_pct > config.high_volatility_atr_pct:
        multiplier, floor = 2.0, 0.03
    elif atr_pct > config.medium_volatility_atr_pct:
        multiplier, floor = 1.75, 0.02
    else:
        multiplier, floor = 1.5, 0.015
    return max(atr * multiplier / entry_price, floor) + config.wick_buffer_pct


def plan_exits(
    side: Direction,
    entry_price: float,
    atr: float | None,
    proposed_target: float | None,
    cautious: bool,
    config: StopsConfig,
) -> ExitPlan | None:
    """
    Compute stop loss and take profit for an entry.

    Args:
        side: BUY or SELL
        entry_price: Entry price
        atr: ATR of the primary timeframe, if available
        proposed_target: Target suggested by the opinion service
        cautious: Low-confidence or contrarian signal (wider minimum R:R)
        config: Stop settings

    Returns:
        ExitPlan, or None when no usable stop exists
    """
    if entry_price <= 0:
        return None

    buy = side == Direction.BUY
    pct = stop_loss_pct(atr, entry_price, config)
    stop_loss = entry_price * (1 - pct) if buy else entry_price * (1 + pct)
    distance = abs(entry_price - stop_loss)

    min_rr = config.min_rr_cautious if cautious else config.min_rr
    target = entry_price + distance * min_rr if buy else entry_price - distance * min_rr

    if proposed_target and proposed_target > 0:
        correct_side = proposed_target > entry_price if buy else proposed_target < entry_price
        target_pct = abs(proposed_target - entry_price) / entry_price
        if correct_side and config.target_min_pct <= target_pct <= config.target_max_pct:
            target = proposed_target
        else:
            logger.debug(f"Proposed target {proposed_target} rejected (correct side={correct_side}, {target_pct:.2%})")

    risk_reward = abs(target - entry_price) / distance
    if risk_reward < min_rr:
        target = entry_price + distance * min_rr if buy else entry_price - distance * min_rr
        risk_reward = min_rr

    return ExitPlan(
        stop_loss=stop_loss,
        stop_distance=distance,
        take_profit=target,
        risk_reward=risk_reward,
    )
