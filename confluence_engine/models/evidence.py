"""Evidence bundle models consumed by the scoring pipeline.

Every category is an independently optional, immutable record so each scoring
rule can test for presence explicitly. Field names follow the snake_case
shape of the cycle snapshot JSON.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

TrendLabel = Literal["uptrend", "downtrend", "neutral"]
FlowTrend = Literal["increasing", "decreasing", "stable"]


class EvidenceModel(BaseModel):
    """Base for evidence records: frozen, unknown fields ignored."""

    model_config = ConfigDict(frozen=True, extra="ignore")


# --- Technical indicators ---


class MacdReading(EvidenceModel):
    macd: float | None = None
    signal: float | None = None
    histogram: float | None = None


class BollingerBands(EvidenceModel):
    upper: float
    middle: float
    lower: float


class AroonReading(EvidenceModel):
    up: float
    down: float


class StochasticReading(EvidenceModel):
    k: float
    d: float | None = None


class AdxReading(EvidenceModel):
    adx: float
    plus_di: float | None = None
    minus_di: float | None = None


class SupportResistance(EvidenceModel):
    support: float | None = None
    resistance: float | None = None


class MarketRegime(EvidenceModel):
    """Regime classification from the upstream market-regime detector."""

    regime: Literal["trending", "neutral", "choppy"] = "neutral"
    volatility: Literal["low", "normal", "high"] = "normal"


class IndicatorSet(EvidenceModel):
    """Primary-timeframe indicator outputs; every reading may be absent."""

    rsi14: float | None = None
    macd: MacdReading | None = None
    ema20: float | None = None
    ema50: float | None = None
    ema200: float | None = None
    bollinger: BollingerBands | None = None
    parabolic_sar: float | None = None
    aroon: AroonReading | None = None
    cci: float | None = None
    vwap: float | None = None
    obv: float | None = None
    stochastic: StochasticReading | None = None
    williams_r: float | None = None
    atr: float | None = None
    adx: AdxReading | None = None
    volume_change: float | None = Field(default=None, description="Volume change in percent")
    price_change_24h: float | None = Field(default=None, description="24h price change in percent")
    rsi_divergence: str | None = None
    support_resistance: SupportResistance | None = None
    market_regime: MarketRegime | None = None


class TimeframeIndicators(EvidenceModel):
    """Minimal per-timeframe set used to derive trend alignment."""

    price: float | None = None
    ema20: float | None = None
    ema50: float | None = None


class MultiTimeframeIndicators(EvidenceModel):
    daily: TimeframeIndicators | None = None
    h4: TimeframeIndicators | None = None
    h1: TimeframeIndicators | None = None


class TrendAlignment(EvidenceModel):
    """Multi-timeframe trend agreement record.

    ``alignment_score`` is on a 0-100 scale; 0 means "not computed" and makes
    the scorer fall back to the per-timeframe flags.
    """

    trend: TrendLabel | None = None
    daily_trend: TrendLabel | None = None
    h4_aligned: bool = False
    h1_aligned: bool = False
    alignment_score: float = 0.0


# --- External data ---


class DerivativesSnapshot(EvidenceModel):
    """Venue funding/open-interest/premium readings."""

    funding_rate: float | None = None
    funding_rate_trend: FlowTrend | None = None
    open_interest: float | None = None
    oi_trend: FlowTrend | None = None
    premium: float | None = None


class DepthZone(EvidenceModel):
    price: float
    distance: float  # Absolute price distance from the current price


class OrderBookDepth(EvidenceModel):
    imbalance: float = 0.0  # -1 (all asks) .. 1 (all bids)
    support_zones: tuple[DepthZone, ...] = ()
    resistance_zones: tuple[DepthZone, ...] = ()


class PriceZone(EvidenceModel):
    low: float
    high: float

    def contains(self, price: float) -> bool:
        return self.low <= price <= self.high


class SessionProfile(EvidenceModel):
    poc: float
    vah: float
    val: float


class CompositeProfile(EvidenceModel):
    accumulation_zone: PriceZone | None = None
    distribution_zone: PriceZone | None = None


class VolumeProfile(EvidenceModel):
    session: SessionProfile | None = None
    composite: CompositeProfile | None = None


class ChangeOfCharacter(EvidenceModel):
    direction: Literal["bullish", "bearish", "none"] = "none"
    reversal_signal: bool = False


class MarketStructure(EvidenceModel):
    coc: ChangeOfCharacter | None = None


class VolumeDelta(EvidenceModel):
    cvd_trend: Literal["rising", "falling", "neutral"] | None = None


class BlockchainFlow(EvidenceModel):
    estimated_exchange_flow: float | None = None  # Negative means outflow
    whale_activity_score: float | None = None


class VolumeRecommendation(EvidenceModel):
    action: Literal["enter", "hold", "exit", "wait"] | None = None
    confidence: float = 0.0


class LiquidityZone(EvidenceModel):
    type: Literal["support", "resistance"]
    low: float
    high: float
    strength: Literal["low", "medium", "high"] = "low"


class VolumeFootprint(EvidenceModel):
    net_delta: float | None = None


class VolumeAnalysis(EvidenceModel):
    """Consolidated volume analysis produced upstream."""

    recommendation: VolumeRecommendation | None = None
    liquidity_zones: tuple[LiquidityZone, ...] = ()
    footprint: VolumeFootprint | None = None


class EnhancedMetrics(EvidenceModel):
    volume_trend: FlowTrend | None = None


# --- Futures market data ---


class FundingRateData(EvidenceModel):
    current: float = 0.0
    rate_24h: float = 0.0
    rate_7d: float = 0.0


class OpenInterestData(EvidenceModel):
    current: float = 0.0
    change_24h: float = 0.0  # Percent
    momentum: float = 0.0


class LongShortRatioData(EvidenceModel):
    long_pct: float = 50.0
    short_pct: float = 50.0
    retail_long_pct: float = 50.0
    pro_long_pct: float = 50.0


class LiquidationCluster(EvidenceModel):
    price: float
    size: float  # Quote-currency notional
    side: Literal["long", "short"] = "long"


class LiquidationData(EvidenceModel):
    long_liquidations_24h: float = 0.0
    short_liquidations_24h: float = 0.0
    clusters: tuple[LiquidationCluster, ...] = ()
    safe_entry_zones: tuple[PriceZone, ...] = ()
    liquidation_distance: float = 10.0  # Percent


class BtcCorrelationData(EvidenceModel):
    correlation_7d: float = 0.0
    strength: Literal["strong", "moderate", "weak"] = "weak"
    impact_multiplier: float = 1.0


class WhaleActivity(EvidenceModel):
    smart_money_flow: float = 0.0  # -1 .. 1
    whale_score: float = 0.0


class FuturesMarketData(EvidenceModel):
    funding_rate: FundingRateData = Field(default_factory=FundingRateData)
    open_interest: OpenInterestData = Field(default_factory=OpenInterestData)
    long_short_ratio: LongShortRatioData = Field(default_factory=LongShortRatioData)
    liquidation: LiquidationData = Field(default_factory=LiquidationData)
    btc_correlation: BtcCorrelationData | None = None
    whale_activity: WhaleActivity | None = None


class ExternalData(EvidenceModel):
    """External-confirmation evidence; each category independently optional."""

    derivatives: DerivativesSnapshot | None = None
    order_book: OrderBookDepth | None = None
    volume_profile: VolumeProfile | None = None
    market_structure: MarketStructure | None = None
    volume_delta: VolumeDelta | None = None
    blockchain: BlockchainFlow | None = None
    futures: FuturesMarketData | None = None
    volume_analysis: VolumeAnalysis | None = None
    enhanced_metrics: EnhancedMetrics | None = None

    def is_empty(self) -> bool:
        """True when no category carries data."""
        return all(getattr(self, name) is None for name in type(self).model_fields)


class EvidenceBundle(EvidenceModel):
    """Read-only per-asset snapshot assembled by market-data collaborators."""

    symbol: str
    price: float | None = None
    price_string: str | None = None  # Exchange-formatted price
    indicators: IndicatorSet | None = None
    timeframes: MultiTimeframeIndicators | None = None
    trend_alignment: TrendAlignment | None = None
    external: ExternalData | None = None
    closes: tuple[float, ...] = ()  # Recent closes for the correlation matrix
