"""Stub opinion provider for testing with controllable proposals."""

from confluence_engine.errors import ProposalParseError
from confluence_engine.models.evidence import EvidenceBundle
from confluence_engine.models.proposal import Proposal
from confluence_engine.models.results import IndicatorTally
from confluence_engine.models.signal import SignalKind

from .provider import OpinionProvider


class StubOpinionProvider(OpinionProvider):
    """Stub provider returning pre-configured proposals per symbol."""

    def __init__(self) -> None:
        """Initialize stub provider with a default HOLD proposal."""
        self._proposals: dict[str, Proposal] = {}
        self._failures: dict[str, Exception] = {}
        self.calls: list[str] = []

    def set_proposal(self, symbol: str, proposal: Proposal) -> None:
        """
        Set the proposal returned for a symbol.

        Args:
            symbol: Asset symbol
            proposal: Proposal to return on the next fetch_proposal() calls
        """
        self._proposals[symbol] = proposal
        self._failures.pop(symbol, None)

    def set_failure(self, symbol: str, error: Exception | None = None) -> None:
        """Make fetch_proposal() raise for a symbol (parse failure by default)."""
        self._failures[symbol] = error or ProposalParseError(f"No valid JSON found in AI response for {symbol}")

    async def fetch_proposal(
        self,
        evidence: EvidenceBundle,
        tally: IndicatorTally,
        has_position: bool,
    ) -> Proposal:
        """Return the pre-configured proposal (HOLD when none is set)."""
        self.calls.append(evidence.symbol)
        if evidence.symbol in self._failures:
            raise self._failures[evidence.symbol]
        return self._proposals.get(
            evidence.symbol,
            Proposal(symbol=evidence.symbol, kind=SignalKind.HOLD),
        )
