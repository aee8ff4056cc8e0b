"""Per-asset pipeline state machine with validated transitions."""

from enum import Enum

from confluence_engine.monitoring.sentry_service import get_sentry


class AssetState(str, Enum):
    """States of one asset's run through the pipeline."""

    BUILD_EVIDENCE = "BUILD_EVIDENCE"  # Checking and completing the evidence bundle
    VALIDATE_DIRECTION = "VALIDATE_DIRECTION"  # Fetching and correcting the opinion
    SCORE = "SCORE"  # Exit plan and confidence scoring
    POST_PROCESS = "POST_PROCESS"  # Invalidation, leverage, sizing, EV
    DONE = "DONE"  # Signal produced
    FAILED = "FAILED"  # No signal for this asset


TERMINAL_STATES = frozenset({AssetState.DONE, AssetState.FAILED})

# Valid state transitions; any non-terminal state may fail
VALID_TRANSITIONS: dict[AssetState, list[AssetState]] = {
    AssetState.BUILD_EVIDENCE: [AssetState.VALIDATE_DIRECTION, AssetState.FAILED],
    AssetState.VALIDATE_DIRECTION: [AssetState.SCORE, AssetState.POST_PROCESS, AssetState.FAILED],
    AssetState.SCORE: [AssetState.POST_PROCESS, AssetState.FAILED],
    AssetState.POST_PROCESS: [AssetState.DONE, AssetState.FAILED],
    AssetState.DONE: [],
    AssetState.FAILED: [],
}


class StateMachine:
    """Per-asset state machine with transition validation."""

    def __init__(self, symbol: str, initial_state: AssetState = AssetState.BUILD_EVIDENCE):
        """
        Initialize state machine.

        Args:
            symbol: Asset symbol (e.g., "BTC")
            initial_state: Starting state (default: BUILD_EVIDENCE)
        """
        self.symbol = symbol
        self._current_state = initial_state
        self.history: list[AssetState] = [initial_state]

    @property
    def current_state(self) -> AssetState:
        return self._current_state

    @property
    def is_terminal(self) -> bool:
        return self._current_state in TERMINAL_STATES

    def transition_to(self, new_state: AssetState) -> None:
        """
        Transition to a new state with validation.

        Args:
            new_state: Target state

        Raises:
            ValueError: If transition is invalid
        """
        if new_state not in VALID_TRANSITIONS[self._current_state]:
            raise ValueError(
                f"Invalid transition from {self._current_state} to {new_state} "
                f"for {self.symbol}"
            )

        previous = self._current_state
        self._current_state = new_state
        self.history.append(new_state)

        sentry = get_sentry()
        if sentry:
            sentry.add_breadcrumb(
                "asset",
                f"{self.symbol}: {previous.value} -> {new_state.value}",
                data={"symbol": self.symbol, "from": previous.value, "to": new_state.value},
                level="warning" if new_state == AssetState.FAILED else "info",
            )

    def can_transition_to(self, new_state: AssetState) -> bool:
        """Check if transition is valid without executing it."""
        return new_state in VALID_TRANSITIONS[self._current_state]

    def fail(self) -> None:
        """Move to FAILED from any non-terminal state (no-op once terminal)."""
        if not self.is_terminal:
            self.transition_to(AssetState.FAILED)
