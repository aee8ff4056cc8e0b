"""Tests for the per-asset pipeline."""

import time
from collections.abc import Callable

import pytest

from confluence_engine.cache.trend_store import InMemoryTrendStore
from confluence_engine.config.models import PipelineConfig
from confluence_engine.core.asset_pipeline import AssetContext, AssetPipeline
from confluence_engine.core.state_machine import AssetState
from confluence_engine.models.evidence import (
    DerivativesSnapshot,
    EvidenceBundle,
    ExternalData,
    IndicatorSet,
    MarketRegime,
    MultiTimeframeIndicators,
    TimeframeIndicators,
    TrendAlignment,
)
from confluence_engine.models.proposal import AccountSnapshot, Position, Proposal
from confluence_engine.models.signal import SignalKind
from confluence_engine.signals.stub_provider import StubOpinionProvider


@pytest.fixture
def opinions() -> StubOpinionProvider:
    return StubOpinionProvider()


@pytest.fixture
def pipeline(
    config: PipelineConfig, opinions: StubOpinionProvider, trend_store: InMemoryTrendStore
) -> AssetPipeline:
    return AssetPipeline(config, opinions, trend_store=trend_store)


@pytest.fixture
def context() -> AssetContext:
    return AssetContext(account=AccountSnapshot(), capital_per_asset=81.0)


@pytest.fixture
def holding_context() -> AssetContext:
    account = AccountSnapshot(positions=(Position(symbol="BTC", quantity=0.1),))
    return AssetContext(account=account, capital_per_asset=81.0)


class TestDirectionalRun:
    """Full directional path."""

    async def test_long_signal_is_planned_scored_and_sized(
        self,
        pipeline: AssetPipeline,
        opinions: StubOpinionProvider,
        context: AssetContext,
        make_evidence: Callable[..., EvidenceBundle],
    ) -> None:
        opinions.set_proposal("BTC", Proposal(kind=SignalKind.ENTER_LONG))

        outcome = await pipeline.run("BTC", make_evidence(), context)

        assert outcome.failed is False
        assert outcome.state == AssetState.DONE
        signal = outcome.signal
        assert signal.kind == SignalKind.ENTER_LONG
        assert signal.entry_price == 100.0
        assert signal.entry_price_string == "100.00"
        assert signal.stop_loss == pytest.approx(96.7)
        assert signal.take_profit == pytest.approx(108.25)
        assert signal.risk_reward == pytest.approx(2.5)
        assert signal.confidence == pytest.approx(87 / 105)
        assert signal.risk_usd == pytest.approx(1.62)
        assert signal.quantity == pytest.approx(1.62 / (3.3 * 10))
        assert signal.expected_value == pytest.approx(
            signal.confidence * 1.62 * 2.5 - (1 - signal.confidence) * 1.62
        )
        assert signal.leverage == 10
        assert " OR " in signal.invalidation_condition
        assert signal.confidence_breakdown

    async def test_hold_without_position_is_converted(
        self, pipeline: AssetPipeline, context: AssetContext, make_evidence: Callable[..., EvidenceBundle]
    ) -> None:
        outcome = await pipeline.run("BTC", make_evidence(), context)
        assert outcome.signal.kind == SignalKind.ENTER_LONG
        assert outcome.signal.confidence is not None

    async def test_severe_contradiction_is_corrected(
        self,
        pipeline: AssetPipeline,
        opinions: StubOpinionProvider,
        context: AssetContext,
        make_evidence: Callable[..., EvidenceBundle],
    ) -> None:
        opinions.set_proposal("BTC", Proposal(kind=SignalKind.ENTER_SHORT))
        outcome = await pipeline.run("BTC", make_evidence(), context)
        assert outcome.signal.kind == SignalKind.ENTER_LONG

    async def test_gatekeeper_veto_still_yields_signal(
        self,
        pipeline: AssetPipeline,
        opinions: StubOpinionProvider,
        context: AssetContext,
        make_evidence: Callable[..., EvidenceBundle],
    ) -> None:
        opinions.set_proposal("BTC", Proposal(kind=SignalKind.ENTER_LONG))
        downtrend = TrendAlignment(trend="downtrend", daily_trend="downtrend")
        outcome = await pipeline.run("BTC", make_evidence(trend_alignment=downtrend), context)
        assert outcome.signal.auto_rejected is True
        assert outcome.signal.confidence == pytest.approx(0.1)
        assert outcome.signal.rejection_reason.startswith("Trend alignment")

    @pytest.mark.parametrize("proposed,expected", [(3, 3), (25, 10), (None, 10)])
    async def test_leverage_is_clamped(
        self,
        pipeline: AssetPipeline,
        opinions: StubOpinionProvider,
        context: AssetContext,
        make_evidence: Callable[..., EvidenceBundle],
        proposed: int | None,
        expected: int,
    ) -> None:
        opinions.set_proposal("BTC", Proposal(kind=SignalKind.ENTER_LONG, leverage=proposed))
        outcome = await pipeline.run("BTC", make_evidence(), context)
        assert outcome.signal.leverage == expected

    async def test_generic_invalidation_is_regenerated(
        self,
        pipeline: AssetPipeline,
        opinions: StubOpinionProvider,
        context: AssetContext,
        make_evidence: Callable[..., EvidenceBundle],
    ) -> None:
        opinions.set_proposal(
            "BTC", Proposal(kind=SignalKind.ENTER_LONG, invalidation_condition="If trend reverses")
        )
        outcome = await pipeline.run("BTC", make_evidence(), context)
        assert "MACD histogram turns negative" in outcome.signal.invalidation_condition

    async def test_specific_invalidation_is_kept(
        self,
        pipeline: AssetPipeline,
        opinions: StubOpinionProvider,
        context: AssetContext,
        make_evidence: Callable[..., EvidenceBundle],
    ) -> None:
        condition = "4h close below 95.5"
        opinions.set_proposal("BTC", Proposal(kind=SignalKind.ENTER_LONG, invalidation_condition=condition))
        outcome = await pipeline.run("BTC", make_evidence(), context)
        assert outcome.signal.invalidation_condition == condition


class TestManagementRun:
    """Management kinds skip scoring."""

    async def test_hold_with_position_skips_score(
        self,
        pipeline: AssetPipeline,
        holding_context: AssetContext,
        make_evidence: Callable[..., EvidenceBundle],
    ) -> None:
        outcome = await pipeline.run("BTC", make_evidence(), holding_context)
        assert outcome.signal.kind == SignalKind.HOLD
        assert outcome.signal.confidence is None
        assert outcome.signal.quantity is None
        assert outcome.state == AssetState.DONE

    async def test_close_is_passed_through(
        self,
        pipeline: AssetPipeline,
        opinions: StubOpinionProvider,
        holding_context: AssetContext,
        make_evidence: Callable[..., EvidenceBundle],
    ) -> None:
        opinions.set_proposal("BTC", Proposal(kind=SignalKind.CLOSE, rationale="Target reached"))
        outcome = await pipeline.run("BTC", make_evidence(), holding_context)
        assert outcome.signal.kind == SignalKind.CLOSE
        assert outcome.signal.rationale == "Target reached"


class TestExtremeVolatility:
    """High-volatility regime handling."""

    @pytest.fixture
    def volatile(self, make_evidence: Callable[..., EvidenceBundle], bullish_indicators: IndicatorSet) -> EvidenceBundle:
        indicators = bullish_indicators.model_copy(
            update={"atr": 6.0, "market_regime": MarketRegime(regime="choppy", volatility="high")}
        )
        return make_evidence(indicators=indicators)

    async def test_without_position_yields_no_signal(
        self,
        pipeline: AssetPipeline,
        opinions: StubOpinionProvider,
        context: AssetContext,
        volatile: EvidenceBundle,
    ) -> None:
        opinions.set_proposal("BTC", Proposal(kind=SignalKind.ENTER_LONG))
        outcome = await pipeline.run("BTC", volatile, context)
        assert outcome.signal is None
        assert outcome.failure_type == "extreme_volatility"
        assert outcome.state == AssetState.FAILED

    async def test_with_position_downgrades_to_hold(
        self,
        pipeline: AssetPipeline,
        opinions: StubOpinionProvider,
        holding_context: AssetContext,
        volatile: EvidenceBundle,
    ) -> None:
        opinions.set_proposal("BTC", Proposal(kind=SignalKind.ENTER_LONG))
        outcome = await pipeline.run("BTC", volatile, holding_context)
        assert outcome.signal.kind == SignalKind.HOLD


class TestFailures:
    """Failures end in FAILED without raising."""

    async def test_missing_bundle(self, pipeline: AssetPipeline, context: AssetContext) -> None:
        outcome = await pipeline.run("BTC", None, context)
        assert outcome.failed is True
        assert outcome.state == AssetState.FAILED
        assert outcome.failure_type == "evidence_missing"
        assert outcome.failure == "No evidence bundle for BTC"

    async def test_missing_price(
        self, pipeline: AssetPipeline, context: AssetContext, make_evidence: Callable[..., EvidenceBundle]
    ) -> None:
        outcome = await pipeline.run("BTC", make_evidence(price=None), context)
        assert outcome.failure == "Missing price for BTC"

    async def test_missing_indicators(
        self, pipeline: AssetPipeline, context: AssetContext, make_evidence: Callable[..., EvidenceBundle]
    ) -> None:
        outcome = await pipeline.run("BTC", make_evidence(indicators=None), context)
        assert outcome.failure == "Missing indicators for BTC"

    async def test_unparseable_proposal(
        self,
        pipeline: AssetPipeline,
        opinions: StubOpinionProvider,
        context: AssetContext,
        make_evidence: Callable[..., EvidenceBundle],
    ) -> None:
        opinions.set_failure("BTC")
        outcome = await pipeline.run("BTC", make_evidence(), context)
        assert outcome.failure_type == "proposal_malformed"
        assert outcome.state == AssetState.FAILED

    async def test_unexpected_error(
        self,
        pipeline: AssetPipeline,
        opinions: StubOpinionProvider,
        context: AssetContext,
        make_evidence: Callable[..., EvidenceBundle],
    ) -> None:
        opinions.set_failure("BTC", RuntimeError("connection reset"))
        outcome = await pipeline.run("BTC", make_evidence(), context)
        assert outcome.failure_type == "error"
        assert outcome.failure == "RuntimeError: connection reset"


class TestBuildEvidence:
    """Derived evidence fields."""

    async def test_trend_alignment_derived_from_timeframes(
        self, pipeline: AssetPipeline, make_evidence: Callable[..., EvidenceBundle]
    ) -> None:
        timeframes = MultiTimeframeIndicators(daily=TimeframeIndicators(price=100.0, ema20=95.0, ema50=90.0))
        evidence = await pipeline._build_evidence("BTC", make_evidence(trend_alignment=None, timeframes=timeframes))
        assert evidence.trend_alignment.trend == "uptrend"
        assert evidence.trend_alignment.alignment_score == 100.0

    async def test_supplied_trend_alignment_is_kept(
        self, pipeline: AssetPipeline, make_evidence: Callable[..., EvidenceBundle]
    ) -> None:
        evidence = make_evidence()
        assert await pipeline._build_evidence("BTC", evidence) is evidence

    async def test_funding_and_oi_trends_are_labelled(
        self,
        pipeline: AssetPipeline,
        trend_store: InMemoryTrendStore,
        make_evidence: Callable[..., EvidenceBundle],
    ) -> None:
        trend_store.put("oi", "BTC", 1000.0, time.time())
        trend_store.put("funding", "BTC", 0.0002, time.time())
        external = ExternalData(derivatives=DerivativesSnapshot(funding_rate=0.0001, open_interest=1100.0))

        evidence = await pipeline._build_evidence("BTC", make_evidence(external=external))

        assert evidence.external.derivatives.oi_trend == "increasing"
        assert evidence.external.derivatives.funding_rate_trend == "decreasing"
        assert trend_store.get("oi", "BTC")[0] == 1100.0

    async def test_supplied_trend_labels_are_not_overwritten(
        self,
        pipeline: AssetPipeline,
        trend_store: InMemoryTrendStore,
        make_evidence: Callable[..., EvidenceBundle],
    ) -> None:
        external = ExternalData(
            derivatives=DerivativesSnapshot(funding_rate=0.0001, funding_rate_trend="stable", oi_trend="stable")
        )
        evidence = await pipeline._build_evidence("BTC", make_evidence(external=external))
        assert evidence.external.derivatives.funding_rate_trend == "stable"
        assert trend_store.get("funding", "BTC") is None

    async def test_failing_store_leaves_trends_unset(
        self,
        config: PipelineConfig,
        opinions: StubOpinionProvider,
        context: AssetContext,
        make_evidence: Callable[..., EvidenceBundle],
    ) -> None:
        class UnreachableStore(InMemoryTrendStore):
            def get(self, metric, symbol):
                raise ConnectionError("redis down")

        pipeline = AssetPipeline(config, opinions, trend_store=UnreachableStore())
        opinions.set_proposal("BTC", Proposal(kind=SignalKind.ENTER_LONG))
        external = ExternalData(derivatives=DerivativesSnapshot(funding_rate=0.0001, open_interest=1100.0))

        outcome = await pipeline.run("BTC", make_evidence(external=external), context)

        assert outcome.failed is False
        assert outcome.signal.kind == SignalKind.ENTER_LONG
        assert outcome.state == AssetState.DONE

    async def test_failing_store_labels_are_none(
        self,
        config: PipelineConfig,
        opinions: StubOpinionProvider,
        make_evidence: Callable[..., EvidenceBundle],
    ) -> None:
        class ReadOnlyStore(InMemoryTrendStore):
            def put(self, metric, symbol, value, timestamp):
                raise ConnectionError("redis down")

        pipeline = AssetPipeline(config, opinions, trend_store=ReadOnlyStore())
        external = ExternalData(derivatives=DerivativesSnapshot(funding_rate=0.0001, open_interest=1100.0))

        evidence = await pipeline._build_evidence("BTC", make_evidence(external=external))

        assert evidence.external.derivatives.funding_rate_trend is None
        assert evidence.external.derivatives.oi_trend is None


class TestTrendStoreConfig:
    """Default trend memory follows the pipeline config."""

    def test_default_store_uses_configured_ttl(self, opinions: StubOpinionProvider) -> None:
        config = PipelineConfig(trend_store={"ttl_seconds": 42.0})
        pipeline = AssetPipeline(config, opinions)
        assert pipeline.trend_store.ttl_seconds == 42.0
