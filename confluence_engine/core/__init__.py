"""Per-asset orchestration and the signal cycle runner."""

from .asset_pipeline import AssetContext, AssetOutcome, AssetPipeline
from .signal_cycle import CycleRequest, SignalCycle
from .state_machine import VALID_TRANSITIONS, AssetState, StateMachine

__all__ = [
    "VALID_TRANSITIONS",
    "AssetContext",
    "AssetOutcome",
    "AssetPipeline",
    "AssetState",
    "CycleRequest",
    "SignalCycle",
    "StateMachine",
]
