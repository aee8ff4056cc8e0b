"""Pydantic configuration models with type safety and validation."""

from typing import Literal

from pydantic import BaseModel, Field, model_validator


class ConfidenceThresholds(BaseModel):
    """Confidence tiers used by the quality filter and execution tiers."""

    high: float = Field(default=0.60, ge=0.0, le=1.0, description="Full-size auto-trade tier")
    medium: float = Field(default=0.40, ge=0.0, le=1.0, description="Review-with-warning tier")
    low: float = Field(default=0.35, ge=0.0, le=1.0, description="Lowest tradeable tier (spot)")
    reject: float = Field(
        default=0.30,
        ge=0.0,
        le=1.0,
        description="Quality-filter floor and futures auto-trade floor. Recommended: 0.30",
    )

    @model_validator(mode="after")
    def validate_ordering(self) -> "ConfidenceThresholds":
        """Ensure reject <= low <= medium <= high."""
        if not self.reject <= self.low <= self.medium <= self.high:
            raise ValueError("Confidence thresholds must satisfy reject <= low <= medium <= high")
        return self


class ExpectedValueThresholds(BaseModel):
    """Expected-value tiers in quote currency."""

    high: float = Field(default=0.5, description="EV for the full-size tier")
    medium: float = Field(default=0.2, description="EV reject floor when few assets are in play")
    low: float = Field(default=0.1, description="Low EV tier")
    reject: float = Field(default=-1.0, description="Default EV reject floor")
    autonomous_reject: float = Field(
        default=-2.0,
        description="EV reject floor in AUTONOMOUS mode; leverage compensates for lower certainty",
    )


class ThresholdsConfig(BaseModel):
    confidence: ConfidenceThresholds = Field(default_factory=ConfidenceThresholds)
    expected_value: ExpectedValueThresholds = Field(default_factory=ExpectedValueThresholds)


class PositionSizingConfig(BaseModel):
    """Size multipliers applied per execution tier."""

    high_confidence: float = Field(default=1.0, gt=0.0, le=1.0)
    medium_confidence: float = Field(default=0.7, gt=0.0, le=1.0)
    low_confidence: float = Field(default=0.5, gt=0.0, le=1.0)


class SafetyLimitsConfig(BaseModel):
    """Account-level limits enforced by the risk gate."""

    max_risk_per_trade: float = Field(
        default=2.0,
        gt=0.0,
        description="Maximum risk per trade in quote currency. Recommended: 2% of equity",
    )
    max_open_positions: int = Field(
        default=2,
        ge=1,
        description="Maximum concurrent open positions",
    )


class LimitedPairsConfig(BaseModel):
    """Relaxed-threshold behaviour for small asset universes."""

    enabled: bool = Field(default=True, description="Use medium tiers as reject floors for small runs")
    max_assets: int = Field(default=2, ge=1, description="Asset count at or below which the mode applies")


class CorrelationConfig(BaseModel):
    """Correlation matrix and correlation filter settings."""

    lookback: int = Field(default=12, ge=2, description="Number of recent closes used")
    threshold: float = Field(default=0.8, gt=0.0, le=1.0, description="Suppression threshold")
    min_signals: int = Field(
        default=4,
        ge=2,
        description="Minimum surviving candidates before the filter runs",
    )
    use_returns: bool = Field(default=True, description="Correlate returns instead of raw closes")
    prefer_majority: bool = Field(
        default=True,
        description="Keep the signal agreeing with the batch majority direction when possible",
    )


class AllocationConfig(BaseModel):
    """Capital allocation and per-signal risk settings."""

    default_balance: float = Field(default=90.0, gt=0.0, description="Balance when the account reports none")
    capital_fraction: float = Field(default=0.9, gt=0.0, le=1.0, description="Share of balance allocated")
    risk_fraction: float = Field(default=0.02, gt=0.0, le=0.2, description="Risk per signal as share of its capital")
    contrarian_risk_multiplier: float = Field(default=0.5, gt=0.0, le=1.0)
    default_leverage: int = Field(default=10, ge=1, le=10)


class StopsConfig(BaseModel):
    """ATR-based stop ladder and target rules."""

    fallback_stop_pct: float = Field(default=0.02, gt=0.0, le=0.2, description="Stop distance without ATR")
    wick_buffer_pct: float = Field(default=0.003, ge=0.0, le=0.05)
    high_volatility_atr_pct: float = Field(default=4.0, description="ATR% above which the wide stop applies")
    medium_volatility_atr_pct: float = Field(default=2.5)
    extreme_volatility_atr_pct: float = Field(default=5.0, description="ATR% that downgrades to HOLD in high volatility")
    min_rr: float = Field(default=2.5, gt=0.0, description="Minimum reward:risk for normal signals")
    min_rr_cautious: float = Field(default=3.0, gt=0.0, description="Minimum reward:risk for low-confidence or contrarian signals")
    target_min_pct: float = Field(default=0.02, gt=0.0)
    target_max_pct: float = Field(default=0.05, gt=0.0)


class ScoringConfig(BaseModel):
    """Tunable scoring constants (empirical defaults, not derived)."""

    min_confidence: float = Field(default=0.1, gt=0.0, lt=1.0)
    max_total_penalty: float = Field(default=0.5, gt=0.0, le=1.0)
    max_volume_penalty: float = Field(default=0.15, gt=0.0, le=1.0)
    severe_contradiction_spread: int = Field(
        default=3,
        ge=1,
        description="Indicator spread at which the validator forces the majority direction",
    )
    trend_rank_bonus: dict[int, float] = Field(default_factory=lambda: {1: 10, 3: 7, 5: 5})
    quality_rank_multiplier: dict[int, float] = Field(
        default_factory=lambda: {1: 1.10, 3: 1.07, 5: 1.05, 10: 1.03}
    )
    quality_score_multiplier: float = Field(default=1.05, ge=1.0)
    quality_score_floor: float = Field(default=95.0)


class TrendStoreConfig(BaseModel):
    ttl_seconds: float = Field(default=600.0, gt=0.0, description="Freshness window for trend memory")


class OrchestrationConfig(BaseModel):
    asset_timeout_seconds: float = Field(default=60.0, gt=0.0)


class MetricsSettings(BaseModel):
    enabled: bool = Field(default=False)
    port: int = Field(default=9090, ge=1, le=65535)
    prefix: str = Field(default="confluence")


class PipelineConfig(BaseModel):
    """Root configuration model for the signal pipeline."""

    mode: Literal["AUTONOMOUS", "MANUAL"] = Field(
        default="AUTONOMOUS",
        description="AUTONOMOUS auto-executes qualifying signals; MANUAL only surfaces them",
    )
    thresholds: ThresholdsConfig = Field(default_factory=ThresholdsConfig)
    position_sizing: PositionSizingConfig = Field(default_factory=PositionSizingConfig)
    safety: SafetyLimitsConfig = Field(default_factory=SafetyLimitsConfig)
    limited_pairs: LimitedPairsConfig = Field(default_factory=LimitedPairsConfig)
    correlation: CorrelationConfig = Field(default_factory=CorrelationConfig)
    allocation: AllocationConfig = Field(default_factory=AllocationConfig)
    stops: StopsConfig = Field(default_factory=StopsConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    trend_store: TrendStoreConfig = Field(default_factory=TrendStoreConfig)
    orchestration: OrchestrationConfig = Field(default_factory=OrchestrationConfig)
    metrics: MetricsSettings = Field(default_factory=MetricsSettings)
    confidence_reject_override: float | None = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="MIN_CONFIDENCE_THRESHOLD override; wins over limited-pairs tiers",
    )
    ev_reject_override: float | None = Field(
        default=None,
        description="MIN_EV_THRESHOLD override; wins over limited-pairs and mode tiers",
    )

    @property
    def is_autonomous(self) -> bool:
        return self.mode == "AUTONOMOUS"
