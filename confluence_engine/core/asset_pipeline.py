"""Per-asset orchestrator.

Drives one asset through BUILD_EVIDENCE -> VALIDATE_DIRECTION -> SCORE ->
POST_PROCESS -> DONE. Any failure moves the state machine to FAILED and the
asset contributes no signal; nothing raises past ``AssetPipeline.run``.
"""

import asyncio
import dataclasses
import logging
from dataclasses import dataclass

from confluence_engine.cache.trend_store import Metric, TrendStore, get_trend_store, update_trend
from confluence_engine.config.models import PipelineConfig
from confluence_engine.errors import EvidenceMissingError, ProposalParseError
from confluence_engine.models.evidence import EvidenceBundle, FlowTrend
from confluence_engine.models.proposal import AccountSnapshot, Proposal
from confluence_engine.models.results import IndicatorTally
from confluence_engine.models.signal import Signal, SignalKind
from confluence_engine.monitoring.metrics import get_metrics
from confluence_engine.monitoring.sentry_service import get_sentry
from confluence_engine.risk.capital_allocator import CapitalAllocator
from confluence_engine.risk.stops import plan_exits
from confluence_engine.scoring.confidence import ConfidenceScorer
from confluence_engine.scoring.evidence_reducer import reduce_evidence
from confluence_engine.scoring.expected_value import calculate_expected_value
from confluence_engine.scoring.trend import derive_trend_alignment
from confluence_engine.signals.invalidation import generate_invalidation_condition, needs_regeneration
from confluence_engine.signals.provider import OpinionProvider
from confluence_engine.signals.validator import OpinionValidator

from .state_machine import AssetState, StateMachine

logger = logging.getLogger(__name__)

# Confidence assumed for the min R:R choice before a signal is scored
UNSCORED_CONFIDENCE = 0.5


@dataclass(frozen=True)
class AssetContext:
    """Cycle-level inputs one asset run needs."""

    account: AccountSnapshot
    capital_per_asset: float
    asset_rank: int | None = None
    quality_score: float | None = None


@dataclass(frozen=True)
class AssetOutcome:
    """Result of one asset run."""

    symbol: str
    signal: Signal | None
    state: AssetState
    failure: str | None = None
    failure_type: str | None = None  # evidence_missing, proposal_malformed, extreme_volatility, timeout, error

    @property
    def failed(self) -> bool:
        return self.signal is None


class AssetPipeline:
    """Runs the per-asset state machine."""

    def __init__(
        self,
        config: PipelineConfig,
        opinion_provider: OpinionProvider,
        trend_store: TrendStore | None = None,
        scorer: ConfidenceScorer | None = None,
        validator: OpinionValidator | None = None,
        allocator: CapitalAllocator | None = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            config: Pipeline configuration (read-only for the cycle)
            opinion_provider: Directional-opinion collaborator
            trend_store: Funding/OI trend memory (process default when None)
            scorer: Confidence scorer
            validator: Opinion validator
            allocator: Capital allocator used for provisional sizing
        """
        self.config = config
        self.opinion_provider = opinion_provider
        self.trend_store = trend_store or get_trend_store(config.trend_store.ttl_seconds)
        self.scorer = scorer or ConfidenceScorer(config.scoring)
        self.validator = validator or OpinionValidator(config.scoring.severe_contradiction_spread)
        self.allocator = allocator or CapitalAllocator(config.allocation)

    async def run(self, symbol: str, evidence: EvidenceBundle | None, context: AssetContext) -> AssetOutcome:
        """
        Produce the signal for one asset.

        Args:
            symbol: Asset symbol
            evidence: Evidence bundle (None when market data had nothing)
            context: Account, provisional capital and ranking hints

        Returns:
            AssetOutcome; ``signal`` is None when the asset failed
        """
        machine = StateMachine(symbol)
        try:
            signal = await self._run(machine, symbol, evidence, context)
        except EvidenceMissingError as e:
            return self._failed(machine, symbol, str(e), "evidence_missing", logging.WARNING)
        except ProposalParseError as e:
            return self._failed(machine, symbol, str(e), "proposal_malformed", logging.WARNING)
        except Exception as e:
            logger.error(f"❌ {symbol}: pipeline failed in {machine.current_state.value}: {e}", exc_info=True)
            sentry = get_sentry()
            if sentry:
                sentry.capture_error(
                    e,
                    context={"symbol": symbol, "state": machine.current_state.value},
                    tags={"symbol": symbol},
                )
            return self._failed(machine, symbol, f"{type(e).__name__}: {e}", "error", None)

        if signal is None:
            return AssetOutcome(
                symbol=symbol,
                signal=None,
                state=machine.current_state,
                failure="Extreme volatility without an open position",
                failure_type="extreme_volatility",
            )

        machine.transition_to(AssetState.DONE)
        return AssetOutcome(symbol=symbol, signal=signal, state=machine.current_state)

    def _failed(
        self,
        machine: StateMachine,
        symbol: str,
        reason: str,
        failure_type: str,
        log_level: int | None,
    ) -> AssetOutcome:
        if log_level is not None:
            logger.log(log_level, f"⚠️ {symbol}: no signal ({failure_type}): {reason}")
        machine.fail()
        metrics = get_metrics()
        if metrics:
            metrics.record_asset_failure(failure_type)
        return AssetOutcome(
            symbol=symbol,
            signal=None,
            state=machine.current_state,
            failure=reason,
            failure_type=failure_type,
        )

    async def _run(
        self,
        machine: StateMachine,
        symbol: str,
        evidence: EvidenceBundle | None,
        context: AssetContext,
    ) -> Signal | None:
        # BUILD_EVIDENCE
        evidence = await self._build_evidence(symbol, evidence)
        tally = reduce_evidence(evidence.indicators, evidence.price)
        machine.transition_to(AssetState.VALIDATE_DIRECTION)

        # VALIDATE_DIRECTION
        has_position = context.account.has_position(symbol)
        proposal = await self.opinion_provider.fetch_proposal(evidence, tally, has_position)
        signal = self.validator.validate(proposal, evidence, tally, has_position)

        if signal.is_directional and self._is_extreme_volatility(evidence):
            if not has_position:
                logger.warning(f"⚠️ {symbol}: extreme volatility, no position to hold, skipping asset")
                machine.fail()
                return None
            logger.warning(f"⚠️ {symbol}: extreme volatility, downgrading {signal.kind.value} to HOLD")
            signal = dataclasses.replace(signal, kind=SignalKind.HOLD)

        if signal.is_directional:
            machine.transition_to(AssetState.SCORE)
            signal = self._score(signal, evidence, proposal, context)

        # POST_PROCESS
        machine.transition_to(AssetState.POST_PROCESS)
        return self._post_process(signal, evidence, proposal, tally, context)

    async def _build_evidence(self, symbol: str, evidence: EvidenceBundle | None) -> EvidenceBundle:
        """Check required fields and fill derivable ones."""
        if evidence is None:
            raise EvidenceMissingError(f"No evidence bundle for {symbol}")
        if not evidence.price or evidence.price <= 0:
            raise EvidenceMissingError(f"Missing price for {symbol}")
        if evidence.indicators is None:
            raise EvidenceMissingError(f"Missing indicators for {symbol}")

        updates: dict = {}
        if evidence.trend_alignment is None and evidence.timeframes is not None:
            updates["trend_alignment"] = derive_trend_alignment(evidence.timeframes)

        external = evidence.external
        derivatives = external.derivatives if external else None
        if derivatives is not None:
            labels: dict = {}
            if derivatives.funding_rate is not None and derivatives.funding_rate_trend is None:
                labels["funding_rate_trend"] = await self._trend_label("funding", symbol, derivatives.funding_rate)
            if derivatives.open_interest is not None and derivatives.oi_trend is None:
                labels["oi_trend"] = await self._trend_label("oi", symbol, derivatives.open_interest)
            if labels:
                updates["external"] = external.model_copy(
                    update={"derivatives": derivatives.model_copy(update=labels)}
                )

        return evidence.model_copy(update=updates) if updates else evidence

    async def _trend_label(self, metric: Metric, symbol: str, value: float) -> FlowTrend | None:
        """Update the trend memory off the event loop; None when the store fails."""
        try:
            return await asyncio.to_thread(update_trend, self.trend_store, metric, symbol, value)
        except Exception as e:
            logger.warning(f"⚠️ {symbol}: {metric} trend unavailable, leaving it unset: {e}")
            return None

    def _is_extreme_volatility(self, evidence: EvidenceBundle) -> bool:
        ind = evidence.indicators
        if ind is None or ind.market_regime is None or not ind.atr or not evidence.price:
            return False
        atr_pct = ind.atr / evidence.price * 100
        return ind.market_regime.volatility == "high" and atr_pct > self.config.stops.extreme_volatility_atr_pct

    def _is_cautious(self, signal: Signal) -> bool:
        confidence = signal.confidence if signal.confidence is not None else UNSCORED_CONFIDENCE
        return signal.contrarian or confidence < self.config.thresholds.confidence.medium

    def _score(
        self,
        signal: Signal,
        evidence: EvidenceBundle,
        proposal: Proposal,
        context: AssetContext,
    ) -> Signal:
        """Attach the exit plan, then score with its reward:risk."""
        atr = evidence.indicators.atr if evidence.indicators else None
        plan = plan_exits(
            signal.direction,
            signal.entry_price or 0.0,
            atr,
            proposal.take_profit,
            self._is_cautious(signal),
            self.config.stops,
        )
        if plan is not None:
            signal = dataclasses.replace(
                signal,
                stop_loss=plan.stop_loss,
                take_profit=plan.take_profit,
                risk_reward=plan.risk_reward,
            )
        elif signal.entry_price and signal.stop_loss and signal.take_profit:
            distance = abs(signal.entry_price - signal.stop_loss)
            if distance > 0:
                signal = dataclasses.replace(
                    signal, risk_reward=abs(signal.take_profit - signal.entry_price) / distance
                )

        result = self.scorer.score(
            signal,
            evidence,
            signal.risk_reward,
            asset_rank=context.asset_rank,
            quality_score=context.quality_score,
        )
        if result.auto_rejected:
            logger.info(f"🚫 {signal.symbol}: auto-rejected at {result.confidence:.2f}: {result.rejection_reason}")
            metrics = get_metrics()
            if metrics and result.rejection_reason and result.rejection_reason.startswith("Trend alignment"):
                metrics.record_gatekeeper_veto(signal.symbol)
        else:
            logger.info(
                f"📊 {signal.symbol}: {signal.kind.value} confidence {result.confidence * 100:.1f}% "
                f"({result.total_score:g}/{result.max_score:g})"
            )

        return dataclasses.replace(
            signal,
            confidence=result.confidence,
            auto_rejected=result.auto_rejected,
            rejection_reason=result.rejection_reason,
            confidence_breakdown=result.breakdown,
        )

    def _post_process(
        self,
        signal: Signal,
        evidence: EvidenceBundle,
        proposal: Proposal,
        tally: IndicatorTally,
        context: AssetContext,
    ) -> Signal:
        """Invalidation text, leverage, provisional sizing and EV."""
        updates: dict = {}
        if needs_regeneration(signal.invalidation_condition):
            updates["invalidation_condition"] = generate_invalidation_condition(
                signal.direction,
                evidence.indicators,
                evidence.price,
                signal.entry_price or evidence.price,
                signal.stop_loss,
            )

        leverage = proposal.leverage or self.config.allocation.default_leverage
        updates["leverage"] = min(max(int(leverage), 1), 10)
        signal = dataclasses.replace(signal, **updates)

        if not signal.is_directional:
            logger.info(f"✅ {signal.symbol}: {signal.kind.value} (bullish {tally.bullish} / bearish {tally.bearish})")
            return signal

        signal = self.allocator.size_signal(signal, context.capital_per_asset)
        ev = calculate_expected_value(signal.confidence, signal.risk_usd, signal.risk_reward)
        return dataclasses.replace(signal, expected_value=ev)
