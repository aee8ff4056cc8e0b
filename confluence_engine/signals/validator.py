"""Opinion validator and corrector.

Turns an external proposal into a directionally consistent provisional
signal:

- HOLD without an open position is converted to BUY/SELL (majority, then
  EMA stack, then VWAP side, then BUY)
- A directional proposal severely contradicting the indicator majority
  (spread >= 3) is forced to the majority direction
- Missing or zero entry prices are filled from the live venue price
"""

import logging

from confluence_engine.models.evidence import EvidenceBundle
from confluence_engine.models.proposal import Proposal
from confluence_engine.models.results import IndicatorTally
from confluence_engine.models.signal import (
    Direction,
    Signal,
    SignalKind,
    entry_kind_for,
    kind_direction,
)

from .rationale import build_rationale

logger = logging.getLogger(__name__)


def tiebreak_direction(evidence: EvidenceBundle) -> tuple[Direction, str]:
    """Pick a direction from the EMA stack, then the VWAP side, else BUY."""
    price = evidence.price
    ind = evidence.indicators
    if ind is not None and price:
        if ind.ema20 is not None and ind.ema50 is not None:
            if price > ind.ema20 > ind.ema50:
                return Direction.BUY, "EMA stack bullish"
            if price < ind.ema20 < ind.ema50:
                return Direction.SELL, "EMA stack bearish"
        if ind.vwap:
            if price > ind.vwap:
                return Direction.BUY, "price above VWAP"
            if price < ind.vwap:
                return Direction.SELL, "price below VWAP"
    return Direction.BUY, "default"


class OpinionValidator:
    """Validates and corrects proposals against the evidence tally."""

    def __init__(self, severe_spread: int = 3) -> None:
        """
        Initialize validator.

        Args:
            severe_spread: |bullish - bearish| at which the majority is enforced
        """
        self.severe_spread = severe_spread

    def validate(
        self,
        proposal: Proposal,
        evidence: EvidenceBundle,
        tally: IndicatorTally,
        has_position: bool,
    ) -> Signal:
        """
        Build a provisional signal from a proposal.

        Args:
            proposal: Parsed external proposal
            evidence: Evidence bundle for the asset
            tally: Evidence reducer output
            has_position: Whether a position is open for the asset

        Returns:
            Provisional Signal (never HOLD when no position exists)
        """
        symbol = evidence.symbol
        kind = proposal.kind

        if kind == SignalKind.HOLD and not has_position:
            if tally.majority != Direction.MIXED:
                direction, basis = tally.majority, f"indicator majority ({tally.bullish} vs {tally.bearish})"
            else:
                direction, basis = tiebreak_direction(evidence)
            kind = entry_kind_for(direction)
            logger.info(f"🔄 {symbol}: HOLD without position converted to {kind.value} ({basis})")

        side = kind_direction(kind)
        contrarian = proposal.contrarian
        if side is not None and tally.majority != Direction.MIXED and side != tally.majority:
            if tally.spread >= self.severe_spread:
                corrected = entry_kind_for(tally.majority)
                logger.warning(
                    f"⚠️ {symbol}: {kind.value} contradicts indicator majority "
                    f"{tally.majority.value} ({tally.bullish} vs {tally.bearish}), forcing {corrected.value}"
                )
                kind = corrected
                side = tally.majority
            else:
                logger.warning(
                    f"⚠️ {symbol}: {kind.value} moderately contradicts majority "
                    f"{tally.majority.value} ({tally.bullish} vs {tally.bearish}), keeping direction"
                )
                contrarian = True

        entry_price = proposal.entry_price
        entry_price_string = None
        if side is not None:
            if not entry_price and evidence.price:
                entry_price = evidence.price
            # Display string always follows the venue quote, even when the proposal named its own entry
            if evidence.price_string:
                entry_price_string = evidence.price_string
            elif evidence.price:
                entry_price_string = str(evidence.price)
            elif entry_price:
                entry_price_string = str(entry_price)

        return Signal(
            symbol=symbol,
            kind=kind,
            entry_price=entry_price or None,
            entry_price_string=entry_price_string,
            quantity=proposal.quantity,
            take_profit=proposal.take_profit,
            stop_loss=proposal.stop_loss,
            invalidation_condition=proposal.invalidation_condition,
            rationale=build_rationale(side, tally, proposal.rationale),
            contrarian=contrarian,
        )
