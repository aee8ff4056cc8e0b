"""Cross-asset filtering and risk gating."""

from .correlation_filter import CORRELATION_REJECT_REASON, filter_correlated, majority_direction
from .execution_tier import should_auto_execute
from .quality_filter import QualityFilter, RejectThresholds, resolve_reject_thresholds
from .risk_gate import RiskLimitGate
from .signal_filter import SignalFilter

__all__ = [
    "CORRELATION_REJECT_REASON",
    "QualityFilter",
    "RejectThresholds",
    "RiskLimitGate",
    "SignalFilter",
    "filter_correlated",
    "majority_direction",
    "resolve_reject_thresholds",
    "should_auto_execute",
]
