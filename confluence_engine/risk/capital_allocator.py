"""Two-pass equal-split capital allocator.

The first pass splits capital across every requested asset and is used for
provisional sizing while per-asset work runs. The second pass runs after all
assets have joined, splits capital across the signals that actually need
sizing, and returns re-sized copies; signals already produced are never
mutated.
"""

import dataclasses
import logging
from collections.abc import Sequence

from confluence_engine.config.models import AllocationConfig
from confluence_engine.models.proposal import AccountSnapshot
from confluence_engine.models.results import CapitalAllocation
from confluence_engine.models.signal import Signal
from confluence_engine.scoring.expected_value import calculate_expected_value

logger = logging.getLogger(__name__)


class CapitalAllocator:
    """Equal-split capital allocation and risk-based sizing."""

    def __init__(self, config: AllocationConfig) -> None:
        self.config = config

    def account_balance(self, account: AccountSnapshot) -> float:
        """Account value, else available cash, else the configured default."""
        return account.account_value or account.available_cash or self.config.default_balance

    def allocate(self, account: AccountSnapshot, slots: int) -> CapitalAllocation:
        """Split the allocatable capital equally across ``slots``."""
        total = self.account_balance(account) * self.config.capital_fraction
        per_signal = total / slots if slots > 0 else 0.0
        return CapitalAllocation(total_capital=total, per_signal=per_signal, slots=max(slots, 0))

    def first_pass(self, account: AccountSnapshot, assets: Sequence[str]) -> CapitalAllocation:
        """Provisional split across every requested asset."""
        allocation = self.allocate(account, len(assets))
        logger.info(
            f"💰 Provisional allocation: ${allocation.per_signal:.2f} per asset "
            f"across {len(assets)} assets (total ${allocation.total_capital:.2f})"
        )
        return allocation

    def needs_sizing(self, signal: Signal) -> bool:
        return signal.is_directional and bool(signal.entry_price) and signal.entry_price > 0

    def size_signal(self, signal: Signal, capital_per_signal: float) -> Signal:
        """
        Size a directional signal from its stop distance.

        risk = capital * risk_fraction (halved for contrarian signals)
        quantity = risk / (stop_distance * leverage)

        Returns:
            A re-sized copy; the input is returned unchanged when it has no
            usable stop.
        """
        if not self.needs_sizing(signal) or not signal.stop_loss:
            return signal
        stop_distance = abs(signal.entry_price - signal.stop_loss)
        if stop_distance <= 0:
            return signal

        risk_usd = capital_per_signal * self.config.risk_fraction
        if signal.contrarian:
            risk_usd *= self.config.contrarian_risk_multiplier
        quantity = risk_usd / (stop_distance * signal.leverage)
        return dataclasses.replace(signal, quantity=quantity, risk_usd=risk_usd)

    def final_pass(
        self,
        signals: Sequence[Signal],
        account: AccountSnapshot,
    ) -> tuple[list[Signal], CapitalAllocation]:
        """
        Re-split capital across signals needing sizing and re-size them.

        Expected value is recomputed from each signal's confidence, reward:risk
        and new risk amount.

        Args:
            signals: Joined per-asset signals
            account: Account snapshot

        Returns:
            Tuple of (new signal list in input order, final allocation)
        """
        slots = sum(1 for s in signals if self.needs_sizing(s))
        allocation = self.allocate(account, slots)
        if slots == 0:
            return list(signals), allocation

        resized: list[Signal] = []
        for signal in signals:
            if not self.needs_sizing(signal):
                resized.append(signal)
                continue
            sized = self.size_signal(signal, allocation.per_signal)
            ev = calculate_expected_value(sized.confidence, sized.risk_usd, sized.risk_reward)
            resized.append(dataclasses.replace(sized, expected_value=ev))

        logger.info(
            f"💰 Final allocation: ${allocation.per_signal:.2f} per signal "
            f"across {slots} sized signals (total ${allocation.total_capital:.2f})"
        )
        return resized, allocation
