"""Signal cycle runner: fan-out per asset, fan-in, allocate, filter."""

import asyncio
import logging
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from confluence_engine.cache.trend_store import TrendStore
from confluence_engine.config.models import PipelineConfig
from confluence_engine.errors import CycleFailedError
from confluence_engine.gates.signal_filter import SignalFilter
from confluence_engine.market_data.correlation import build_correlation_matrix
from confluence_engine.market_data.provider import EvidenceProvider
from confluence_engine.models.evidence import EvidenceBundle
from confluence_engine.models.proposal import AccountSnapshot
from confluence_engine.models.results import CycleResult
from confluence_engine.models.signal import ExecutionLevel
from confluence_engine.monitoring.metrics import get_metrics
from confluence_engine.monitoring.sentry_service import get_sentry
from confluence_engine.risk.capital_allocator import CapitalAllocator
from confluence_engine.signals.provider import OpinionProvider

from .asset_pipeline import AssetContext, AssetOutcome, AssetPipeline
from .state_machine import AssetState

logger = logging.getLogger(__name__)

DOWNGRADED_LEVELS = frozenset({ExecutionLevel.MARGINAL_REJECTED, ExecutionLevel.RISK_LIMIT_VIOLATION})


@dataclass
class CycleRequest:
    """Inbound contract for one cycle."""

    assets: list[str]
    account: AccountSnapshot = field(default_factory=AccountSnapshot)
    evidence: dict[str, EvidenceBundle] = field(default_factory=dict)
    ranking: dict[str, tuple[int | None, float | None]] = field(default_factory=dict)


class SignalCycle:
    """Runs one signal cycle over a set of assets."""

    def __init__(
        self,
        config: PipelineConfig,
        opinion_provider: OpinionProvider,
        evidence_provider: EvidenceProvider | None = None,
        trend_store: TrendStore | None = None,
    ) -> None:
        """
        Initialize the cycle runner.

        Args:
            config: Pipeline configuration, read-only for the cycle
            opinion_provider: Directional-opinion collaborator
            evidence_provider: Fetches bundles the request did not carry
            trend_store: Funding/OI trend memory
        """
        self.config = config
        self.evidence_provider = evidence_provider
        self.allocator = CapitalAllocator(config.allocation)
        self.pipeline = AssetPipeline(
            config,
            opinion_provider,
            trend_store=trend_store,
            allocator=self.allocator,
        )
        self.signal_filter = SignalFilter(config)

    async def run(self, request: CycleRequest) -> CycleResult:
        """
        Run one cycle.

        Per-asset runs are launched together and joined; a failed or timed-out
        asset contributes no signal and never cancels its siblings. The
        correlation matrix is built in a worker thread alongside them. The
        final allocation pass runs strictly after the join.

        Args:
            request: Assets, account, evidence and ranking hints

        Returns:
            CycleResult (empty when no signals survive)

        Raises:
            CycleFailedError: If every asset failed because the opinion
                service returned unparseable responses
        """
        started = time.perf_counter()
        assets = list(dict.fromkeys(request.assets))
        if not assets:
            logger.warning("⚠️ Signal cycle started with no assets")
            return CycleResult()

        sentry = get_sentry()
        if sentry:
            sentry.set_cycle_context(assets, self.config.mode)
            with sentry.transaction("cycle", "signal_cycle"):
                return await self._run_cycle(assets, request, started)
        return await self._run_cycle(assets, request, started)

    async def _run_cycle(self, assets: list[str], request: CycleRequest, started: float) -> CycleResult:
        logger.info(f"🚀 Signal cycle started for {len(assets)} assets ({self.config.mode})")
        evidence = await self._collect_evidence(assets, request.evidence)
        provisional = self.allocator.first_pass(request.account, assets)

        correlation_matrix, outcomes = await asyncio.gather(
            self._build_matrix(evidence),
            asyncio.gather(
                *(self._run_asset(symbol, evidence.get(symbol), request, provisional.per_signal) for symbol in assets),
                return_exceptions=True,
            ),
        )

        signals = []
        failures: dict[str, str] = {}
        failure_types: dict[str, str] = {}
        for symbol, outcome in zip(assets, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"❌ {symbol}: unexpected failure: {outcome!r}")
                failures[symbol] = f"{type(outcome).__name__}: {outcome}"
                failure_types[symbol] = "error"
            elif outcome.signal is None:
                failures[symbol] = outcome.failure or "no signal"
                failure_types[symbol] = outcome.failure_type or "error"
            else:
                signals.append(outcome.signal)

        result = CycleResult(failures=failures, correlation_matrix=correlation_matrix)
        if not signals:
            self._raise_if_structural(assets, failures, failure_types)
            self._log_empty(failures)
            self._observe_duration(started)
            return result

        signals, allocation = self.allocator.final_pass(signals, request.account)
        final, rejected = self.signal_filter.apply(signals, correlation_matrix, request.account, len(assets))

        result.signals = final
        result.rejected = rejected
        result.allocation = allocation
        self._record_metrics(result)

        if result.is_empty:
            self._log_empty(failures, rejected_count=len(rejected))
        else:
            executable = sum(1 for s in final if s.auto_tradeable)
            logger.info(
                f"✅ Signal cycle complete: {len(final)} signals ({executable} auto-tradeable), "
                f"{len(rejected)} rejected, {len(failures)} failed"
            )
        self._observe_duration(started)
        return result

    async def _collect_evidence(
        self,
        assets: Sequence[str],
        supplied: Mapping[str, EvidenceBundle],
    ) -> dict[str, EvidenceBundle | None]:
        """Use supplied bundles and fetch the rest from the evidence provider."""
        evidence: dict[str, EvidenceBundle | None] = {symbol: supplied.get(symbol) for symbol in assets}
        missing = [symbol for symbol, bundle in evidence.items() if bundle is None]
        if not missing or self.evidence_provider is None:
            return evidence

        fetched = await asyncio.gather(
            *(self.evidence_provider.get_evidence(symbol) for symbol in missing),
            return_exceptions=True,
        )
        for symbol, bundle in zip(missing, fetched):
            if isinstance(bundle, BaseException):
                logger.warning(f"⚠️ {symbol}: evidence fetch failed: {bundle}")
                continue
            evidence[symbol] = bundle
        return evidence

    async def _build_matrix(self, evidence: Mapping[str, EvidenceBundle | None]) -> dict[str, float]:
        """Correlation matrix from recent closes; skipped for a single asset."""
        closes = {symbol: bundle.closes for symbol, bundle in evidence.items() if bundle is not None and bundle.closes}
        if len(evidence) < 2 or len(closes) < 2:
            return {}
        corr = self.config.correlation
        try:
            return await asyncio.to_thread(build_correlation_matrix, closes, corr.lookback, corr.use_returns)
        except Exception as e:
            logger.error(f"❌ Correlation matrix failed, correlation filter disabled this cycle: {e}", exc_info=True)
            return {}

    async def _run_asset(
        self,
        symbol: str,
        evidence: EvidenceBundle | None,
        request: CycleRequest,
        capital_per_asset: float,
    ) -> AssetOutcome:
        rank, quality = request.ranking.get(symbol, (None, None))
        context = AssetContext(
            account=request.account,
            capital_per_asset=capital_per_asset,
            asset_rank=rank,
            quality_score=quality,
        )
        timeout = self.config.orchestration.asset_timeout_seconds
        try:
            return await asyncio.wait_for(self.pipeline.run(symbol, evidence, context), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"⚠️ {symbol}: timed out after {timeout:g}s, no signal")
            metrics = get_metrics()
            if metrics:
                metrics.record_asset_failure("timeout")
            return AssetOutcome(
                symbol=symbol,
                signal=None,
                state=AssetState.FAILED,
                failure=f"Timed out after {timeout:g}s",
                failure_type="timeout",
            )

    def _raise_if_structural(
        self,
        assets: Sequence[str],
        failures: Mapping[str, str],
        failure_types: Mapping[str, str],
    ) -> None:
        if len(failures) != len(assets) or any(t != "proposal_malformed" for t in failure_types.values()):
            return
        message = (
            f"Opinion service returned unparseable responses for all {len(assets)} assets. "
            "Likely causes: the model does not emit structured JSON, the model id is wrong, "
            "or the API key/endpoint is misconfigured."
        )
        logger.error(f"❌ {message}")
        sentry = get_sentry()
        if sentry:
            sentry.capture_warning(message, context={"failures": dict(failures)})
        raise CycleFailedError(message)

    @staticmethod
    def _log_empty(failures: Mapping[str, str], rejected_count: int = 0) -> None:
        logger.warning(f"⚠️ No signals generated ({len(failures)} failed, {rejected_count} rejected)")
        for symbol, reason in failures.items():
            logger.info(f"   {symbol}: {reason}")

    @staticmethod
    def _record_metrics(result: CycleResult) -> None:
        metrics = get_metrics()
        if not metrics:
            return
        for signal in result.signals:
            metrics.record_signal(signal.symbol, signal.kind.value)
            if signal.confidence is not None:
                metrics.observe_confidence(signal.confidence)
            if signal.execution_level in DOWNGRADED_LEVELS and signal.rejection_reason:
                metrics.record_rejection(signal.rejection_reason)
        for item in result.rejected:
            metrics.record_rejection(item.reason)

    @staticmethod
    def _observe_duration(started: float) -> None:
        metrics = get_metrics()
        if metrics:
            metrics.observe_cycle_duration(time.perf_counter() - started)
