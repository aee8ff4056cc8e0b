"""Account-level risk limit gate."""

from confluence_engine.config.models import SafetyLimitsConfig
from confluence_engine.models.proposal import AccountSnapshot
from confluence_engine.models.signal import Signal, SignalKind

# Closing and holding kinds never open exposure
POSITION_CAP_EXEMPT = frozenset({SignalKind.HOLD, SignalKind.CLOSE, SignalKind.REDUCE, SignalKind.CLOSE_ALL})


class RiskLimitGate:
    """Checks per-trade risk and the open-position cap."""

    def __init__(self, safety: SafetyLimitsConfig):
        """
        Initialize risk gate.

        Args:
            safety: Max risk per trade and max open positions
        """
        self.safety = safety

    def evaluate(self, signal: Signal, account: AccountSnapshot | None) -> tuple[bool, str | None]:
        """
        Evaluate an auto-tradeable signal against the safety limits.

        Args:
            signal: Signal marked auto-tradeable
            account: Current account snapshot, if known

        Returns:
            Tuple of (allowed, reason)
        """
        risk = signal.risk_usd or 0.0
        if risk > self.safety.max_risk_per_trade:
            return False, (
                f"Risk per trade (${risk:.2f}) exceeds maximum (${self.safety.max_risk_per_trade:.2f})"
            )

        if account is not None and signal.kind not in POSITION_CAP_EXEMPT:
            open_positions = account.open_position_count
            if open_positions >= self.safety.max_open_positions:
                return False, (
                    f"Max open positions ({self.safety.max_open_positions}) reached. "
                    f"Current: {open_positions}"
                )

        return True, None
