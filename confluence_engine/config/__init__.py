"""Configuration package for the signal pipeline."""

from .loader import config_from_env, load_config
from .models import (
    ConfidenceThresholds,
    ExpectedValueThresholds,
    PipelineConfig,
    SafetyLimitsConfig,
    ScoringConfig,
)

__all__ = [
    "ConfidenceThresholds",
    "ExpectedValueThresholds",
    "PipelineConfig",
    "SafetyLimitsConfig",
    "ScoringConfig",
    "config_from_env",
    "load_config",
]
