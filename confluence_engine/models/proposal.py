"""External directional-opinion proposal and account snapshot models."""

from pydantic import BaseModel, ConfigDict, Field

from confluence_engine.models.signal import SignalKind


class Proposal(BaseModel):
    """Structured proposal returned by the directional-opinion collaborator."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    symbol: str | None = None
    kind: SignalKind
    entry_price: float | None = Field(default=None, ge=0.0)
    quantity: float | None = Field(default=None, ge=0.0)
    leverage: int | None = Field(default=None, ge=1)
    take_profit: float | None = None
    stop_loss: float | None = None
    invalidation_condition: str | None = None
    rationale: str = ""
    contrarian: bool = False  # Deliberately fading the prevailing move


class Position(BaseModel):
    """Open position held on the venue."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    symbol: str
    quantity: float
    side: str = "long"
    entry_price: float | None = None


class AccountSnapshot(BaseModel):
    """Account state supplied at the start of a cycle."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    account_value: float | None = None
    available_cash: float | None = None
    positions: tuple[Position, ...] = ()

    def has_position(self, symbol: str) -> bool:
        """True when a non-zero position exists for the symbol."""
        return any(p.symbol == symbol and p.quantity != 0 for p in self.positions)

    @property
    def open_position_count(self) -> int:
        return sum(1 for p in self.positions if p.quantity != 0)
