"""Signal models for trading decisions."""

import math
from dataclasses import dataclass, field
from enum import Enum


class SignalKind(str, Enum):
    """Signal kinds emitted by the pipeline."""

    ENTER_LONG = "ENTER_LONG"  # Open a long position
    ENTER_SHORT = "ENTER_SHORT"  # Open a short position
    ADD = "ADD"  # Add to an existing position (buy side)
    REDUCE = "REDUCE"  # Reduce an existing position
    CLOSE = "CLOSE"  # Close the position for one asset
    CLOSE_ALL = "CLOSE_ALL"  # Close every open position
    HOLD = "HOLD"  # Keep the existing position unchanged


class Direction(str, Enum):
    """Directional label shared by the evidence tally and the signal side."""

    BUY = "BUY"
    SELL = "SELL"
    MIXED = "MIXED"


class ExecutionLevel(str, Enum):
    """Execution tiers assigned by the filter stage."""

    HIGH_CONFIDENCE_HIGH_EV = "HIGH_CONFIDENCE_HIGH_EV"
    HIGH_CONFIDENCE_MEDIUM_EV = "HIGH_CONFIDENCE_MEDIUM_EV"
    MEDIUM_CONFIDENCE_POSITIVE_EV = "MEDIUM_CONFIDENCE_POSITIVE_EV"
    LOW_CONFIDENCE_FUTURES = "LOW_CONFIDENCE_FUTURES"
    MARGINAL_REJECTED = "MARGINAL_REJECTED"
    RISK_LIMIT_VIOLATION = "RISK_LIMIT_VIOLATION"


BUY_SIDE_KINDS = frozenset({SignalKind.ENTER_LONG, SignalKind.ADD})
SELL_SIDE_KINDS = frozenset({SignalKind.ENTER_SHORT})
SIZED_KINDS = frozenset({SignalKind.ENTER_LONG, SignalKind.ENTER_SHORT, SignalKind.ADD})


def kind_direction(kind: SignalKind) -> Direction | None:
    """Return the trade side of a signal kind, or None for management kinds."""
    if kind in BUY_SIDE_KINDS:
        return Direction.BUY
    if kind in SELL_SIDE_KINDS:
        return Direction.SELL
    return None


def entry_kind_for(direction: Direction) -> SignalKind:
    """Map a BUY/SELL direction to the matching entry kind."""
    if direction == Direction.SELL:
        return SignalKind.ENTER_SHORT
    return SignalKind.ENTER_LONG


@dataclass(frozen=True)
class Signal:
    """One directional or management decision for one asset.

    Instances are immutable; every pipeline stage that changes a field returns
    a copy built with ``dataclasses.replace``.
    """

    symbol: str
    kind: SignalKind
    entry_price: float | None = None
    entry_price_string: str | None = None  # Exchange-formatted price, kept verbatim
    quantity: float | None = None
    leverage: int = 10
    take_profit: float | None = None
    stop_loss: float | None = None
    invalidation_condition: str | None = None
    rationale: str = ""
    confidence: float | None = None  # 0.1 to 1.0 once scored
    expected_value: float | None = None  # Quote currency
    risk_usd: float | None = None
    risk_reward: float | None = None
    contrarian: bool = False
    rejection_reason: str | None = None
    execution_level: ExecutionLevel | None = None
    auto_tradeable: bool = False
    auto_rejected: bool = False
    size_multiplier: float | None = None
    warnings: tuple[str, ...] = ()
    confidence_breakdown: tuple[str, ...] = field(default=(), repr=False)

    def __post_init__(self) -> None:
        """Validate signal data."""
        if not 1 <= self.leverage <= 10:
            raise ValueError("Leverage must be between 1 and 10")
        if self.confidence is not None and not math.isnan(self.confidence):
            if not 0.0 <= self.confidence <= 1.0:
                raise ValueError("Confidence must be between 0.0 and 1.0")

    @property
    def direction(self) -> Direction | None:
        """Trade side of the signal (None for management kinds)."""
        return kind_direction(self.kind)

    @property
    def is_directional(self) -> bool:
        """True when the signal opens or adds exposure."""
        return self.kind in SIZED_KINDS
